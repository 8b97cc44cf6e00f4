"""
Order Schemas
=============
Pydantic models for order requests, server-returned orders and the
response envelopes around them.

Wire fields are kebab-case (order-type, time-in-force, price-effect, ...).
Every model also accepts the snake_case field names on input and ignores
unknown fields the server adds.

Two request forms exist:
  - OrderRequest: the generic wire form; every optional field is present
    so anything the API accepts (or echoes) can be represented and then
    checked by validate_order().
  - MarketOrder / LimitOrder / StopOrder / StopLimitOrder /
    NotionalMarketOrder: one class per order type, each declaring only the
    fields legal for that type. A MarketOrder with a price cannot be built.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator


def _kebab(name: str) -> str:
    return name.replace('_', '-')


class InstrumentType(str, Enum):
    EQUITY = "Equity"
    EQUITY_OPTION = "Equity Option"
    FUTURE = "Future"
    FUTURE_OPTION = "Future Option"
    CRYPTOCURRENCY = "Cryptocurrency"


class OrderAction(str, Enum):
    BUY_TO_OPEN = "Buy to Open"
    SELL_TO_OPEN = "Sell to Open"
    BUY_TO_CLOSE = "Buy to Close"
    SELL_TO_CLOSE = "Sell to Close"


class OrderType(str, Enum):
    MARKET = "Market"
    LIMIT = "Limit"
    STOP = "Stop"
    STOP_LIMIT = "Stop Limit"
    NOTIONAL_MARKET = "Notional Market"


class TimeInForce(str, Enum):
    DAY = "Day"
    GTC = "GTC"
    GTD = "GTD"
    EXT = "Ext"
    GTC_EXT = "GTC Ext"
    IOC = "IOC"


class PriceEffect(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"


class ComplexOrderType(str, Enum):
    OCO = "OCO"
    OTO = "OTO"
    OTOCO = "OTOCO"


class OrderStatus(str, Enum):
    # Submission phase
    RECEIVED = "Received"
    ROUTED = "Routed"
    IN_FLIGHT = "In Flight"
    CONTINGENT = "Contingent"
    # Working phase
    LIVE = "Live"
    WORKING = "Working"
    CANCEL_REQUESTED = "Cancel Requested"
    REPLACE_REQUESTED = "Replace Requested"
    # Terminal
    FILLED = "Filled"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"
    EXPIRED = "Expired"
    REMOVED = "Removed"

    @classmethod
    def is_terminal(cls, status) -> bool:
        return status in (cls.FILLED, cls.CANCELLED, cls.REJECTED, cls.EXPIRED, cls.REMOVED)


class WireModel(BaseModel):
    """Base for everything that crosses the wire."""
    model_config = ConfigDict(
        alias_generator=_kebab,
        populate_by_name=True,
        extra='ignore',
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


# ─── Requests ───────────────────────────────────────────────────────

class OrderLeg(WireModel):
    """One instrument + action (+ quantity) component of an order."""
    symbol: str
    instrument_type: InstrumentType
    action: OrderAction
    quantity: Optional[Decimal] = None  # absent only for notional-market legs

    @field_serializer('quantity')
    def _serialize_quantity(self, quantity: Optional[Decimal]):
        if quantity is None:
            return None
        if quantity == quantity.to_integral_value():
            return int(quantity)
        return str(quantity)


class OrderRequest(WireModel):
    """Generic order submission body."""
    order_type: OrderType
    time_in_force: TimeInForce = TimeInForce.DAY
    gtc_date: Optional[str] = None
    price: Optional[Decimal] = None
    price_effect: Optional[PriceEffect] = None
    stop_trigger: Optional[Decimal] = None
    value: Optional[Decimal] = None
    value_effect: Optional[PriceEffect] = None
    underlying_symbol: Optional[str] = None
    legs: List[OrderLeg] = Field(default_factory=list)
    # Stamped by OrderService; the account travels in the URL, not the body.
    account_number: Optional[str] = Field(default=None, exclude=True)

    def to_request(self) -> 'OrderRequest':
        return self


class _TypedOrder(WireModel):
    """Shared fields of the per-type order variants."""
    model_config = ConfigDict(extra='forbid')

    time_in_force: TimeInForce = TimeInForce.DAY
    gtc_date: Optional[str] = None
    underlying_symbol: Optional[str] = None
    legs: List[OrderLeg]

    def to_request(self) -> OrderRequest:
        return OrderRequest.model_validate(self.model_dump())


class MarketOrder(_TypedOrder):
    order_type: Literal[OrderType.MARKET] = OrderType.MARKET


class LimitOrder(_TypedOrder):
    order_type: Literal[OrderType.LIMIT] = OrderType.LIMIT
    price: Decimal
    price_effect: PriceEffect


class StopOrder(_TypedOrder):
    order_type: Literal[OrderType.STOP] = OrderType.STOP
    stop_trigger: Decimal


class StopLimitOrder(_TypedOrder):
    order_type: Literal[OrderType.STOP_LIMIT] = OrderType.STOP_LIMIT
    price: Decimal
    price_effect: PriceEffect
    stop_trigger: Decimal


class NotionalMarketOrder(_TypedOrder):
    order_type: Literal[OrderType.NOTIONAL_MARKET] = OrderType.NOTIONAL_MARKET
    value: Decimal
    value_effect: PriceEffect


# Anything validate_order() accepts
AnyOrder = Union[OrderRequest, MarketOrder, LimitOrder, StopOrder, StopLimitOrder, NotionalMarketOrder,
                 Dict[str, Any]]


class ComplexOrderRequest(WireModel):
    """OCO / OTO / OTOCO bundle."""
    type: ComplexOrderType
    trigger_order: Optional[OrderRequest] = None
    orders: List[OrderRequest] = Field(default_factory=list)

    @field_validator('trigger_order', mode='before')
    @classmethod
    def _coerce_trigger(cls, v):
        if isinstance(v, _TypedOrder):
            return v.to_request()
        return v

    @field_validator('orders', mode='before')
    @classmethod
    def _coerce_orders(cls, v):
        if isinstance(v, (list, tuple)):
            return [o.to_request() if isinstance(o, _TypedOrder) else o for o in v]
        return v


def as_order_request(order) -> OrderRequest:
    """Normalize a typed variant, an OrderRequest or a plain dict."""
    if isinstance(order, dict):
        return OrderRequest.model_validate(order)
    return order.to_request()


def as_complex_order_request(complex_order) -> ComplexOrderRequest:
    if isinstance(complex_order, dict):
        return ComplexOrderRequest.model_validate(complex_order)
    return complex_order


# ─── Server-returned orders ─────────────────────────────────────────

class OrderFill(WireModel):
    fill_id: Optional[str] = None
    quantity: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices('quantity', 'fill-quantity', 'fill_quantity'),
    )
    fill_price: Optional[Decimal] = None
    filled_at: Optional[datetime] = None
    destination_venue: Optional[str] = None


class OrderLegStatus(WireModel):
    symbol: str
    instrument_type: Optional[str] = None
    action: Optional[str] = None
    quantity: Optional[Decimal] = None
    remaining_quantity: Optional[Decimal] = None
    fills: List[OrderFill] = Field(default_factory=list)


class Order(WireModel):
    """Server-side truth for a single order. Treat as an immutable snapshot."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None  # dry-run orders carry no id
    account_number: Optional[str] = None
    status: Optional[str] = None
    cancellable: bool = False
    editable: bool = False
    edited: bool = False
    order_type: Optional[str] = None
    time_in_force: Optional[str] = None
    gtc_date: Optional[str] = None
    price: Optional[Decimal] = None
    price_effect: Optional[str] = None
    stop_trigger: Optional[Decimal] = None
    value: Optional[Decimal] = None
    value_effect: Optional[str] = None
    underlying_symbol: Optional[str] = None
    received_at: Optional[datetime] = None
    updated_at: Optional[int] = None
    complex_order_id: Optional[int] = None
    complex_order_tag: Optional[str] = None
    reject_reason: Optional[str] = None
    legs: List[OrderLegStatus] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return OrderStatus.is_terminal(self.status)

    @property
    def leg_signature(self) -> Dict[str, Optional[Decimal]]:
        return {leg.symbol: leg.quantity for leg in self.legs}


class OrderList(WireModel):
    items: List[Order] = Field(default_factory=list)


# ─── Response envelopes ─────────────────────────────────────────────

class OrderWarning(WireModel):
    code: Optional[str] = None
    message: Optional[str] = None


class BuyingPowerEffect(WireModel):
    change_in_margin_requirement: Optional[Decimal] = None
    change_in_margin_requirement_effect: Optional[str] = None
    change_in_buying_power: Optional[Decimal] = None
    change_in_buying_power_effect: Optional[str] = None
    current_buying_power: Optional[Decimal] = None
    current_buying_power_effect: Optional[str] = None
    new_buying_power: Optional[Decimal] = None
    new_buying_power_effect: Optional[str] = None
    isolated_order_margin_requirement: Optional[Decimal] = None
    isolated_order_margin_requirement_effect: Optional[str] = None
    is_spread: Optional[bool] = None
    impact: Optional[Decimal] = None
    effect: Optional[str] = None


class FeeCalculation(WireModel):
    regulatory_fees: Optional[Decimal] = None
    regulatory_fees_effect: Optional[str] = None
    clearing_fees: Optional[Decimal] = None
    clearing_fees_effect: Optional[str] = None
    commission: Optional[Decimal] = None
    commission_effect: Optional[str] = None
    proprietary_index_option_fees: Optional[Decimal] = None
    proprietary_index_option_fees_effect: Optional[str] = None
    total_fees: Optional[Decimal] = None
    total_fees_effect: Optional[str] = None


class OrderResponse(WireModel):
    """Body of place / dry-run / cancel-replace."""
    order: Order
    warnings: List[OrderWarning] = Field(default_factory=list)
    buying_power_effect: Optional[BuyingPowerEffect] = None
    fee_calculation: Optional[FeeCalculation] = None
    # Client-side only: True when cancel-replace located the replacement order.
    reconciled: bool = Field(default=False, exclude=True)


class ComplexOrder(WireModel):
    id: Optional[int] = None
    account_number: Optional[str] = None
    type: Optional[str] = None
    trigger_order: Optional[Order] = None
    orders: List[Order] = Field(default_factory=list)


class ComplexOrderResponse(WireModel):
    complex_order: ComplexOrder
    warnings: List[OrderWarning] = Field(default_factory=list)
    buying_power_effect: Optional[BuyingPowerEffect] = None
    fee_calculation: Optional[FeeCalculation] = None
