"""
Tests for local order validation.
Pure functions: no client, no HTTP.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from tastyclient.services.broker.exceptions import BrokerOrderValidationException
from tastyclient.services.broker.order_models import (
    ComplexOrderRequest,
    ComplexOrderType,
    InstrumentType,
    LimitOrder,
    MarketOrder,
    NotionalMarketOrder,
    OrderAction,
    OrderLeg,
    OrderRequest,
    OrderType,
    PriceEffect,
    StopLimitOrder,
    StopOrder,
    TimeInForce,
)
from tastyclient.services.broker.order_validator import validate_complex_order, validate_order


def _leg(symbol='AAPL', quantity=1, instrument_type=InstrumentType.EQUITY,
         action=OrderAction.BUY_TO_OPEN):
    return OrderLeg(symbol=symbol, instrument_type=instrument_type, action=action, quantity=quantity)


def _option_leg(symbol, quantity=1):
    return _leg(symbol=symbol, quantity=quantity, instrument_type=InstrumentType.EQUITY_OPTION)


def _limit(**overrides):
    fields = dict(
        order_type=OrderType.LIMIT,
        price=Decimal('150.00'),
        price_effect=PriceEffect.DEBIT,
        legs=[_leg()],
    )
    fields.update(overrides)
    return OrderRequest(**fields)


def _reason(order):
    with pytest.raises(BrokerOrderValidationException) as exc_info:
        validate_order(order)
    return exc_info.value.reason


# ─── Valid orders ───────────────────────────────────────────────────

class TestValidOrders:

    def test_limit_order_passes(self):
        result = validate_order(_limit())
        assert result.order_type == OrderType.LIMIT
        assert result.price == Decimal('150.00')

    def test_market_order_passes(self):
        validate_order(OrderRequest(order_type=OrderType.MARKET, legs=[_leg()]))

    def test_stop_order_passes(self):
        validate_order(OrderRequest(order_type=OrderType.STOP, stop_trigger=Decimal('140'), legs=[_leg()]))

    def test_stop_limit_order_passes(self):
        validate_order(_limit(order_type=OrderType.STOP_LIMIT, stop_trigger=Decimal('149')))

    def test_notional_market_passes_without_leg_quantity(self):
        validate_order(OrderRequest(
            order_type=OrderType.NOTIONAL_MARKET,
            value=Decimal('100'),
            value_effect=PriceEffect.DEBIT,
            legs=[_leg(symbol='BTC/USD', quantity=None, instrument_type=InstrumentType.CRYPTOCURRENCY)],
        ))

    def test_four_option_legs_pass(self):
        legs = [_option_leg(f'AAPL  261218C0015{i}000') for i in range(4)]
        validate_order(_limit(legs=legs))

    def test_gtd_with_date_passes(self):
        validate_order(_limit(time_in_force=TimeInForce.GTD, gtc_date='2026-12-18'))

    def test_dict_in_wire_shape_passes(self):
        result = validate_order({
            'order-type': 'Limit',
            'time-in-force': 'Day',
            'price': '10.5',
            'price-effect': 'Credit',
            'legs': [{'symbol': 'MSFT', 'instrument-type': 'Equity',
                      'action': 'Sell to Close', 'quantity': 3}],
        })
        assert isinstance(result, OrderRequest)
        assert result.legs[0].quantity == Decimal('3')

    def test_validation_does_not_mutate_order(self):
        order = _limit()
        before = order.model_dump()
        validate_order(order)
        assert order.model_dump() == before
        assert order.account_number is None


# ─── Rule violations ────────────────────────────────────────────────

class TestRuleViolations:

    def test_no_legs(self):
        assert _reason(_limit(legs=[])) == "order must have at least one leg"

    def test_limit_requires_price(self):
        assert _reason(_limit(price=None)) == "Limit orders require price"

    def test_limit_requires_price_effect(self):
        assert _reason(_limit(price_effect=None)) == "Limit orders require price-effect"

    def test_market_rejects_price(self):
        order = OrderRequest(order_type=OrderType.MARKET, price=Decimal('1'), legs=[_leg()])
        assert _reason(order) == "Market orders must not carry price"

    def test_market_requires_single_leg(self):
        order = OrderRequest(order_type=OrderType.MARKET, legs=[_leg('AAPL'), _leg('MSFT')])
        assert _reason(order) == "Market orders require exactly 1 leg(s), got 2"

    def test_stop_requires_trigger(self):
        order = OrderRequest(order_type=OrderType.STOP, legs=[_leg()])
        assert _reason(order) == "Stop orders require stop-trigger"

    def test_stop_rejects_price(self):
        order = OrderRequest(order_type=OrderType.STOP, stop_trigger=Decimal('140'),
                             price=Decimal('141'), legs=[_leg()])
        assert _reason(order) == "Stop orders must not carry price"

    def test_stop_limit_requires_trigger(self):
        assert _reason(_limit(order_type=OrderType.STOP_LIMIT)) == "Stop Limit orders require stop-trigger"

    def test_notional_requires_value(self):
        order = OrderRequest(order_type=OrderType.NOTIONAL_MARKET,
                             legs=[_leg(quantity=None, instrument_type=InstrumentType.CRYPTOCURRENCY)])
        assert _reason(order) == "Notional Market orders require value"

    def test_notional_leg_must_not_carry_quantity(self):
        order = OrderRequest(order_type=OrderType.NOTIONAL_MARKET, value=Decimal('50'),
                             value_effect=PriceEffect.DEBIT, legs=[_leg(quantity=2)])
        assert _reason(order) == "Notional Market legs must not carry a quantity (AAPL)"

    def test_non_positive_price(self):
        assert _reason(_limit(price=Decimal('0'))) == "price must be greater than 0"

    def test_gtd_without_date(self):
        assert _reason(_limit(time_in_force=TimeInForce.GTD)) == "GTD orders require a gtc-date"

    def test_gtd_with_blank_date(self):
        assert _reason(_limit(time_in_force=TimeInForce.GTD, gtc_date='  ')) == "GTD orders require a gtc-date"

    def test_two_equity_legs_exceed_cap(self):
        reason = _reason(_limit(legs=[_leg('AAPL'), _leg('MSFT')]))
        assert reason == "at most 1 Equity leg(s) allowed per order, got 2"

    def test_five_option_legs_exceed_cap(self):
        legs = [_option_leg(f'SPY   261218P0040{i}000') for i in range(5)]
        reason = _reason(_limit(legs=legs))
        assert reason == "at most 4 Equity Option leg(s) allowed per order, got 5"

    def test_missing_quantity(self):
        assert _reason(_limit(legs=[_leg(quantity=None)])) == "leg AAPL requires a quantity"

    def test_zero_quantity(self):
        assert _reason(_limit(legs=[_leg(quantity=0)])) == "leg AAPL quantity must be greater than 0"

    def test_quantity_upper_bound(self):
        validate_order(_limit(legs=[_leg(quantity=999999)]))
        reason = _reason(_limit(legs=[_leg(quantity=1000000)]))
        assert reason == "leg AAPL quantity exceeds maximum of 999999"

    def test_price_upper_bound(self):
        reason = _reason(_limit(price=Decimal('1000000')))
        assert reason == "price exceeds maximum of 999999"

    def test_stop_trigger_upper_bound(self):
        order = OrderRequest(order_type=OrderType.STOP, stop_trigger=Decimal('1000000'), legs=[_leg()])
        assert _reason(order) == "stop-trigger exceeds maximum of 999999"

    def test_leg_requires_instrument_type(self):
        with pytest.raises(ValidationError):
            OrderLeg(symbol='AAPL  261218C00150000', action=OrderAction.BUY_TO_OPEN, quantity=1)

    def test_duplicate_symbols(self):
        sym = 'AAPL  261218C00150000'
        reason = _reason(_limit(legs=[_option_leg(sym), _option_leg(sym)]))
        assert reason == f"duplicate leg symbol {sym}"

    def test_empty_symbol(self):
        assert _reason(_limit(legs=[_leg(symbol='')])) == "every leg requires a symbol"

    def test_malformed_dict(self):
        reason = _reason({'order-type': 'Bracket', 'legs': []})
        assert reason.startswith("malformed order:")

    def test_message_prefix(self):
        with pytest.raises(BrokerOrderValidationException) as exc_info:
            validate_order(_limit(legs=[]))
        assert str(exc_info.value) == "Invalid order: order must have at least one leg"

    def test_first_failing_rule_wins(self):
        # No price and two equity legs: the order-type rule is checked first
        reason = _reason(_limit(price=None, legs=[_leg('AAPL'), _leg('MSFT')]))
        assert reason == "Limit orders require price"


# ─── Typed variants ─────────────────────────────────────────────────

class TestTypedVariants:

    def test_market_order_cannot_carry_price(self):
        with pytest.raises(ValidationError):
            MarketOrder(price=Decimal('1'), legs=[_leg()])

    def test_limit_order_requires_price(self):
        with pytest.raises(ValidationError):
            LimitOrder(price_effect=PriceEffect.DEBIT, legs=[_leg()])

    def test_stop_order_cannot_carry_value(self):
        with pytest.raises(ValidationError):
            StopOrder(stop_trigger=Decimal('10'), value=Decimal('5'), legs=[_leg()])

    def test_limit_order_normalizes(self):
        order = LimitOrder(price=Decimal('2.5'), price_effect=PriceEffect.CREDIT, legs=[_leg()])
        request = validate_order(order)
        assert isinstance(request, OrderRequest)
        assert request.order_type == OrderType.LIMIT
        assert request.price_effect == PriceEffect.CREDIT

    def test_stop_limit_order_normalizes(self):
        order = StopLimitOrder(price=Decimal('99'), price_effect=PriceEffect.DEBIT,
                               stop_trigger=Decimal('98'), legs=[_leg()])
        assert validate_order(order).stop_trigger == Decimal('98')

    def test_notional_order_payload(self):
        order = NotionalMarketOrder(
            value=Decimal('25'), value_effect=PriceEffect.DEBIT,
            legs=[_leg(symbol='ETH/USD', quantity=None, instrument_type=InstrumentType.CRYPTOCURRENCY)],
        )
        payload = validate_order(order).to_payload()
        assert payload['order-type'] == 'Notional Market'
        assert payload['value-effect'] == 'Debit'
        assert 'quantity' not in payload['legs'][0]

    def test_typed_variant_still_checked_for_leg_caps(self):
        order = MarketOrder(legs=[_leg('AAPL'), _leg('MSFT')])
        assert _reason(order) == "Market orders require exactly 1 leg(s), got 2"


# ─── Complex orders ─────────────────────────────────────────────────

class TestComplexOrders:

    def _stop(self):
        return OrderRequest(order_type=OrderType.STOP, stop_trigger=Decimal('140'),
                            legs=[_leg(action=OrderAction.SELL_TO_CLOSE)])

    def _take_profit(self):
        return _limit(price=Decimal('170'), price_effect=PriceEffect.CREDIT,
                      legs=[_leg(action=OrderAction.SELL_TO_CLOSE)])

    def _complex_reason(self, complex_order):
        with pytest.raises(BrokerOrderValidationException) as exc_info:
            validate_complex_order(complex_order)
        return exc_info.value.reason

    def test_oco_passes(self):
        request = validate_complex_order(ComplexOrderRequest(
            type=ComplexOrderType.OCO, orders=[self._take_profit(), self._stop()],
        ))
        assert len(request.orders) == 2

    def test_otoco_passes_with_typed_members(self):
        request = validate_complex_order(ComplexOrderRequest(
            type=ComplexOrderType.OTOCO,
            trigger_order=LimitOrder(price=Decimal('150'), price_effect=PriceEffect.DEBIT, legs=[_leg()]),
            orders=[self._take_profit(), self._stop()],
        ))
        assert request.trigger_order.order_type == OrderType.LIMIT

    def test_oto_requires_trigger(self):
        reason = self._complex_reason(ComplexOrderRequest(type=ComplexOrderType.OTO, orders=[self._stop()]))
        assert reason == "OTO orders require a trigger order"

    def test_oco_rejects_trigger(self):
        reason = self._complex_reason(ComplexOrderRequest(
            type=ComplexOrderType.OCO, trigger_order=_limit(),
            orders=[self._take_profit(), self._stop()],
        ))
        assert reason == "OCO orders do not take a trigger order"

    def test_oco_requires_two_orders(self):
        reason = self._complex_reason(ComplexOrderRequest(type=ComplexOrderType.OCO, orders=[self._stop()]))
        assert reason == "OCO orders require at least 2 orders, got 1"

    def test_otoco_requires_two_contingent_orders(self):
        reason = self._complex_reason(ComplexOrderRequest(
            type=ComplexOrderType.OTOCO, trigger_order=_limit(), orders=[self._stop()],
        ))
        assert reason == "OTOCO orders require exactly 2 contingent orders, got 1"

    def test_member_orders_are_validated(self):
        reason = self._complex_reason(ComplexOrderRequest(
            type=ComplexOrderType.OTO, trigger_order=_limit(price=None), orders=[self._stop()],
        ))
        assert reason == "Limit orders require price"

    def test_complex_payload_is_kebab_case(self):
        request = validate_complex_order({
            'type': 'OTO',
            'trigger-order': _limit().to_payload(),
            'orders': [self._stop().to_payload()],
        })
        payload = request.to_payload()
        assert payload['type'] == 'OTO'
        assert payload['trigger-order']['order-type'] == 'Limit'
        assert payload['orders'][0]['stop-trigger'] == '140'
