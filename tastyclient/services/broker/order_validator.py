"""
Order Validator
===============
Pure structural checks run before an order ever reaches the network.

validate_order() walks a fixed rule list and raises
BrokerOrderValidationException for the first rule the order breaks.
It never mutates the order and performs no I/O.

Rule order:
  1. at least one leg
  2. order-type table (required fields, forbidden fields, leg count, price bounds)
  3. GTD requires a gtc-date
  4. per-instrument-type leg caps
  5. quantities (every leg, except under Notional Market; 1 to 999999)
  6. duplicate symbols
"""

from collections import Counter, namedtuple
from decimal import Decimal

from pydantic import ValidationError

from tastyclient.services.broker.exceptions import BrokerOrderValidationException
from tastyclient.services.broker.order_models import (
    AnyOrder,
    ComplexOrderType,
    InstrumentType,
    OrderRequest,
    OrderType,
    TimeInForce,
    as_complex_order_request,
    as_order_request,
)

TypeRule = namedtuple('TypeRule', 'required forbidden exact_legs legs_carry_quantity')

ORDER_TYPE_RULES = {
    OrderType.MARKET: TypeRule(
        required=(), forbidden=('price', 'price_effect'), exact_legs=1, legs_carry_quantity=True),
    OrderType.LIMIT: TypeRule(
        required=('price', 'price_effect'), forbidden=(), exact_legs=None, legs_carry_quantity=True),
    OrderType.STOP: TypeRule(
        required=('stop_trigger',), forbidden=('price', 'price_effect'), exact_legs=None,
        legs_carry_quantity=True),
    OrderType.STOP_LIMIT: TypeRule(
        required=('price', 'price_effect', 'stop_trigger'), forbidden=(), exact_legs=None,
        legs_carry_quantity=True),
    OrderType.NOTIONAL_MARKET: TypeRule(
        required=('value', 'value_effect'), forbidden=(), exact_legs=1, legs_carry_quantity=False),
}

# Max legs per instrument type, summed across the whole order
MAX_LEGS_PER_INSTRUMENT = {
    InstrumentType.EQUITY: 1,
    InstrumentType.FUTURE: 1,
    InstrumentType.CRYPTOCURRENCY: 1,
    InstrumentType.EQUITY_OPTION: 4,
    InstrumentType.FUTURE_OPTION: 4,
}

# Fields that must be strictly positive when present
POSITIVE_FIELDS = ('price', 'stop_trigger', 'value')

# Upper bounds
MAX_QUANTITY = Decimal('999999')
MAX_PRICE = Decimal('999999')
PRICE_FIELDS = ('price', 'stop_trigger')


def _label(field: str) -> str:
    return field.replace('_', '-')


def _fail(reason: str):
    raise BrokerOrderValidationException(reason)


def _check_type_rules(order):
    rule = ORDER_TYPE_RULES.get(order.order_type)
    if rule is None:
        _fail(f"unsupported order type {order.order_type!r}")

    type_name = order.order_type.value

    for field in rule.required:
        if getattr(order, field) is None:
            _fail(f"{type_name} orders require {_label(field)}")

    for field in rule.forbidden:
        if getattr(order, field) is not None:
            _fail(f"{type_name} orders must not carry {_label(field)}")

    if not rule.legs_carry_quantity:
        for leg in order.legs:
            if leg.quantity is not None:
                _fail(f"{type_name} legs must not carry a quantity ({leg.symbol})")

    if rule.exact_legs is not None and len(order.legs) != rule.exact_legs:
        _fail(f"{type_name} orders require exactly {rule.exact_legs} leg(s), got {len(order.legs)}")

    for field in POSITIVE_FIELDS:
        amount = getattr(order, field)
        if amount is not None and amount <= 0:
            _fail(f"{_label(field)} must be greater than 0")

    for field in PRICE_FIELDS:
        amount = getattr(order, field)
        if amount is not None and amount > MAX_PRICE:
            _fail(f"{_label(field)} exceeds maximum of {MAX_PRICE}")


def _check_time_in_force(order):
    if order.time_in_force == TimeInForce.GTD and not (order.gtc_date or '').strip():
        _fail("GTD orders require a gtc-date")


def _check_instrument_caps(order):
    counts = Counter(leg.instrument_type for leg in order.legs)
    for instrument_type, count in counts.items():
        cap = MAX_LEGS_PER_INSTRUMENT.get(instrument_type)
        if cap is not None and count > cap:
            _fail(f"at most {cap} {instrument_type.value} leg(s) allowed per order, got {count}")


def _check_quantities(order):
    if order.order_type == OrderType.NOTIONAL_MARKET:
        return
    for leg in order.legs:
        if leg.quantity is None:
            _fail(f"leg {leg.symbol} requires a quantity")
        if leg.quantity <= 0:
            _fail(f"leg {leg.symbol} quantity must be greater than 0")
        if leg.quantity > MAX_QUANTITY:
            _fail(f"leg {leg.symbol} quantity exceeds maximum of {MAX_QUANTITY}")


def _check_duplicate_symbols(order):
    seen = set()
    for leg in order.legs:
        if not leg.symbol or not leg.symbol.strip():
            _fail("every leg requires a symbol")
        if leg.symbol in seen:
            _fail(f"duplicate leg symbol {leg.symbol}")
        seen.add(leg.symbol)


def validate_order(order: AnyOrder) -> OrderRequest:
    """Validate an order's structure. Returns the normalized OrderRequest.

    Accepts an OrderRequest, any typed variant (LimitOrder, ...) or a dict
    in wire shape.

    Raises:
        BrokerOrderValidationException: first rule violated
    """
    try:
        request = as_order_request(order)
    except ValidationError as e:
        raise BrokerOrderValidationException(f"malformed order: {e.errors()[0].get('msg')}") from e

    if not request.legs:
        _fail("order must have at least one leg")

    _check_type_rules(request)
    _check_time_in_force(request)
    _check_instrument_caps(request)
    _check_quantities(request)
    _check_duplicate_symbols(request)
    return request


def validate_complex_order(complex_order):
    """Check OCO / OTO / OTOCO structure, then every member order.

    Raises:
        BrokerOrderValidationException: first rule violated
    """
    try:
        request = as_complex_order_request(complex_order)
    except ValidationError as e:
        raise BrokerOrderValidationException(f"malformed complex order: {e.errors()[0].get('msg')}") from e

    kind = request.type
    if kind in (ComplexOrderType.OTO, ComplexOrderType.OTOCO) and request.trigger_order is None:
        _fail(f"{kind.value} orders require a trigger order")
    if kind == ComplexOrderType.OCO:
        if request.trigger_order is not None:
            _fail("OCO orders do not take a trigger order")
        if len(request.orders) < 2:
            _fail(f"OCO orders require at least 2 orders, got {len(request.orders)}")
    if kind == ComplexOrderType.OTO and len(request.orders) != 1:
        _fail(f"OTO orders require exactly 1 triggered order, got {len(request.orders)}")
    if kind == ComplexOrderType.OTOCO and len(request.orders) != 2:
        _fail(f"OTOCO orders require exactly 2 contingent orders, got {len(request.orders)}")

    if request.trigger_order is not None:
        validate_order(request.trigger_order)
    for member in request.orders:
        validate_order(member)
    return request
