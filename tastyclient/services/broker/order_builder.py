"""
Option Strategy Builder
=======================
Builds multi-leg equity-option orders from OCC symbols.

Each builder checks the strategy's shape (option types, expirations, strike
ordering, wing widths), assembles the legs with the right actions, and
returns a limit OrderRequest that has already passed validate_order().

Usage:
    order = iron_condor(
        'SPY   261218P00540000', 'SPY   261218P00535000',
        'SPY   261218C00600000', 'SPY   261218C00605000',
        quantity=1, price=Decimal('1.25'),
    )
    client.orders.place_order(account_number, order)

Multi-leg orders are always priced: the API takes market orders with a
single leg only.
"""

import re
from collections import namedtuple
from datetime import date, datetime
from decimal import Decimal

from tastyclient.services.broker.exceptions import BrokerOrderValidationException
from tastyclient.services.broker.order_models import (
    InstrumentType,
    OrderAction,
    OrderLeg,
    OrderRequest,
    OrderType,
    PriceEffect,
    TimeInForce,
)
from tastyclient.services.broker.order_validator import validate_order

CALL = 'C'
PUT = 'P'

# ROOT (padded to 6) + YYMMDD + C/P + strike x 1000 (8 digits)
OCC_PATTERN = re.compile(r'^(?P<root>[A-Z0-9./]{1,6})\s*(?P<expiry>\d{6})(?P<kind>[CP])(?P<strike>\d{8})$')


class OptionSymbol(namedtuple('OptionSymbol', 'underlying expiration option_type strike')):
    """Parsed OCC option symbol."""
    __slots__ = ()

    @property
    def occ(self) -> str:
        return option_symbol(self.underlying, self.expiration, self.option_type, self.strike)


def option_symbol(underlying: str, expiration: date, option_type: str, strike) -> str:
    """Format an OCC symbol, e.g. ('AAPL', 2026-12-18, 'C', 150) -> 'AAPL  261218C00150000'."""
    millis = int(Decimal(str(strike)) * 1000)
    return f"{underlying.upper():<6}{expiration:%y%m%d}{option_type}{millis:08d}"


def parse_option_symbol(symbol: str) -> OptionSymbol:
    match = OCC_PATTERN.match((symbol or '').strip().upper())
    if match is None:
        raise BrokerOrderValidationException(f"unrecognized option symbol {symbol!r}")
    try:
        expiration = datetime.strptime(match.group('expiry'), '%y%m%d').date()
    except ValueError as e:
        raise BrokerOrderValidationException(f"bad expiration in option symbol {symbol!r}") from e
    return OptionSymbol(
        underlying=match.group('root'),
        expiration=expiration,
        option_type=match.group('kind'),
        strike=Decimal(match.group('strike')) / 1000,
    )


def _fail(reason: str):
    raise BrokerOrderValidationException(reason)


def _same_underlying(options):
    if len({o.underlying for o in options}) != 1:
        _fail("all options must have the same underlying symbol")


def _same_expiration(options):
    if len({o.expiration for o in options}) != 1:
        _fail("all options must have the same expiration date")


def _same_type(options):
    if len({o.option_type for o in options}) != 1:
        _fail("all options must be the same type (all calls or all puts)")


def _require_type(option, option_type, role):
    if option.option_type != option_type:
        kind = 'call' if option_type == CALL else 'put'
        _fail(f"{role} must be a {kind}")


def _leg(option: OptionSymbol, quantity, action: OrderAction) -> OrderLeg:
    return OrderLeg(
        symbol=option.occ,
        instrument_type=InstrumentType.EQUITY_OPTION,
        action=action,
        quantity=quantity,
    )


def _build(legs, price, price_effect, time_in_force) -> OrderRequest:
    return validate_order(OrderRequest(
        order_type=OrderType.LIMIT,
        time_in_force=time_in_force,
        price=price,
        price_effect=price_effect,
        underlying_symbol=parse_option_symbol(legs[0].symbol).underlying,
        legs=legs,
    ))


# ─── Two-leg spreads ────────────────────────────────────────────────

def vertical_spread(long_symbol: str, short_symbol: str, quantity, price,
                    price_effect: PriceEffect = PriceEffect.DEBIT,
                    time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    """Bull/bear spread: buy one strike, sell another, same type and expiration."""
    long_opt, short_opt = parse_option_symbol(long_symbol), parse_option_symbol(short_symbol)
    _same_type((long_opt, short_opt))
    _same_expiration((long_opt, short_opt))
    _same_underlying((long_opt, short_opt))
    return _build(
        [_leg(long_opt, quantity, OrderAction.BUY_TO_OPEN),
         _leg(short_opt, quantity, OrderAction.SELL_TO_OPEN)],
        price, price_effect, time_in_force,
    )


def calendar_spread(short_symbol: str, long_symbol: str, quantity, price,
                    price_effect: PriceEffect = PriceEffect.DEBIT,
                    time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    """Sell the near expiration, buy the far one, same strike."""
    short_opt, long_opt = parse_option_symbol(short_symbol), parse_option_symbol(long_symbol)
    _same_type((short_opt, long_opt))
    _same_underlying((short_opt, long_opt))
    if short_opt.strike != long_opt.strike:
        _fail("calendar spread options must have the same strike")
    if short_opt.expiration >= long_opt.expiration:
        _fail("short option must expire before long option")
    return _build(
        [_leg(short_opt, quantity, OrderAction.SELL_TO_OPEN),
         _leg(long_opt, quantity, OrderAction.BUY_TO_OPEN)],
        price, price_effect, time_in_force,
    )


def diagonal_spread(short_symbol: str, long_symbol: str, quantity, price,
                    price_effect: PriceEffect = PriceEffect.DEBIT,
                    time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    """Like a calendar, but with different strikes."""
    short_opt, long_opt = parse_option_symbol(short_symbol), parse_option_symbol(long_symbol)
    _same_type((short_opt, long_opt))
    _same_underlying((short_opt, long_opt))
    if short_opt.strike == long_opt.strike:
        _fail("diagonal spread options must have different strikes")
    if short_opt.expiration >= long_opt.expiration:
        _fail("short option must expire before long option")
    return _build(
        [_leg(short_opt, quantity, OrderAction.SELL_TO_OPEN),
         _leg(long_opt, quantity, OrderAction.BUY_TO_OPEN)],
        price, price_effect, time_in_force,
    )


def _put_call_pair(put_symbol, call_symbol):
    put_opt, call_opt = parse_option_symbol(put_symbol), parse_option_symbol(call_symbol)
    _require_type(put_opt, PUT, "put leg")
    _require_type(call_opt, CALL, "call leg")
    _same_expiration((put_opt, call_opt))
    _same_underlying((put_opt, call_opt))
    return put_opt, call_opt


def _pair_effect(action: OrderAction) -> PriceEffect:
    if action in (OrderAction.BUY_TO_OPEN, OrderAction.BUY_TO_CLOSE):
        return PriceEffect.DEBIT
    return PriceEffect.CREDIT


def strangle(put_symbol: str, call_symbol: str, quantity, price,
             action: OrderAction = OrderAction.BUY_TO_OPEN,
             time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    put_opt, call_opt = _put_call_pair(put_symbol, call_symbol)
    if put_opt.strike == call_opt.strike:
        _fail("strangle requires different strikes (use a straddle for the same strike)")
    return _build(
        [_leg(put_opt, quantity, action), _leg(call_opt, quantity, action)],
        price, _pair_effect(action), time_in_force,
    )


def straddle(put_symbol: str, call_symbol: str, quantity, price,
             action: OrderAction = OrderAction.BUY_TO_OPEN,
             time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    put_opt, call_opt = _put_call_pair(put_symbol, call_symbol)
    if put_opt.strike != call_opt.strike:
        _fail("straddle requires the same strike for put and call")
    return _build(
        [_leg(put_opt, quantity, action), _leg(call_opt, quantity, action)],
        price, _pair_effect(action), time_in_force,
    )


# ─── Three and four legs ────────────────────────────────────────────

def butterfly_spread(long_low_symbol: str, short_middle_symbol: str, long_high_symbol: str,
                     quantity, price, price_effect: PriceEffect = PriceEffect.DEBIT,
                     time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    """Long wings, two short bodies at the middle strike. Wings must be equidistant."""
    low, middle, high = (parse_option_symbol(s) for s in (long_low_symbol, short_middle_symbol, long_high_symbol))
    _same_type((low, middle, high))
    _same_expiration((low, middle, high))
    _same_underlying((low, middle, high))
    if not low.strike < middle.strike < high.strike:
        _fail("butterfly strikes must be low < middle < high")
    lower_wing, upper_wing = middle.strike - low.strike, high.strike - middle.strike
    if lower_wing != upper_wing:
        _fail(f"butterfly wings must be equidistant (lower {lower_wing}, upper {upper_wing})")
    return _build(
        [_leg(low, quantity, OrderAction.BUY_TO_OPEN),
         _leg(middle, quantity * 2, OrderAction.SELL_TO_OPEN),
         _leg(high, quantity, OrderAction.BUY_TO_OPEN)],
        price, price_effect, time_in_force,
    )


def iron_condor(put_short_symbol: str, put_long_symbol: str, call_short_symbol: str,
                call_long_symbol: str, quantity, price,
                price_effect: PriceEffect = PriceEffect.CREDIT,
                time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    """Short put spread below, short call spread above."""
    put_short, put_long, call_short, call_long = (
        parse_option_symbol(s)
        for s in (put_short_symbol, put_long_symbol, call_short_symbol, call_long_symbol)
    )
    _require_type(put_short, PUT, "short put")
    _require_type(put_long, PUT, "long put")
    _require_type(call_short, CALL, "short call")
    _require_type(call_long, CALL, "long call")
    options = (put_short, put_long, call_short, call_long)
    _same_expiration(options)
    _same_underlying(options)
    if put_long.strike >= put_short.strike:
        _fail("long put strike must be lower than short put strike")
    if call_long.strike <= call_short.strike:
        _fail("long call strike must be higher than short call strike")
    return _build(
        [_leg(put_short, quantity, OrderAction.SELL_TO_OPEN),
         _leg(put_long, quantity, OrderAction.BUY_TO_OPEN),
         _leg(call_short, quantity, OrderAction.SELL_TO_OPEN),
         _leg(call_long, quantity, OrderAction.BUY_TO_OPEN)],
        price, price_effect, time_in_force,
    )


def iron_butterfly(short_call_symbol: str, long_call_symbol: str, short_put_symbol: str,
                   long_put_symbol: str, quantity, price,
                   price_effect: PriceEffect = PriceEffect.CREDIT,
                   time_in_force: TimeInForce = TimeInForce.DAY) -> OrderRequest:
    """Short straddle at the center strike with equal-width long wings."""
    short_call, long_call, short_put, long_put = (
        parse_option_symbol(s)
        for s in (short_call_symbol, long_call_symbol, short_put_symbol, long_put_symbol)
    )
    _require_type(short_call, CALL, "short call")
    _require_type(long_call, CALL, "long call")
    _require_type(short_put, PUT, "short put")
    _require_type(long_put, PUT, "long put")
    options = (short_call, long_call, short_put, long_put)
    _same_expiration(options)
    _same_underlying(options)
    if short_call.strike != short_put.strike:
        _fail("short call and short put must share the center strike")
    if long_call.strike <= short_call.strike:
        _fail("long call strike must be higher than short call strike")
    if long_put.strike >= short_put.strike:
        _fail("long put strike must be lower than short put strike")
    call_wing, put_wing = long_call.strike - short_call.strike, short_put.strike - long_put.strike
    if call_wing != put_wing:
        _fail(f"wing widths must be equal (call wing {call_wing}, put wing {put_wing})")
    return _build(
        [_leg(short_call, quantity, OrderAction.SELL_TO_OPEN),
         _leg(long_call, quantity, OrderAction.BUY_TO_OPEN),
         _leg(short_put, quantity, OrderAction.SELL_TO_OPEN),
         _leg(long_put, quantity, OrderAction.BUY_TO_OPEN)],
        price, price_effect, time_in_force,
    )
