"""
Broker Package
==============
Order-management API client: session lifecycle, request pipeline,
order models, validation, option strategy builders and the order service.
"""

from tastyclient.services.broker.exceptions import (
    BrokerException,
    BrokerAPIException,
    BrokerAuthException,
    BrokerSessionExpiredException,
    BrokerOrderValidationException,
    BrokerDecodeException,
    BrokerUnavailableException,
    BrokerTimeoutException,
    BrokerCancelledException,
    is_api_error,
)
from tastyclient.services.broker.order_models import (
    ComplexOrderRequest,
    ComplexOrderType,
    InstrumentType,
    LimitOrder,
    MarketOrder,
    NotionalMarketOrder,
    Order,
    OrderAction,
    OrderLeg,
    OrderRequest,
    OrderResponse,
    OrderStatus,
    OrderType,
    PriceEffect,
    StopLimitOrder,
    StopOrder,
    TimeInForce,
)
from tastyclient.services.broker.order_validator import validate_order, validate_complex_order
from tastyclient.services.broker.order_builder import (
    butterfly_spread,
    calendar_spread,
    diagonal_spread,
    iron_butterfly,
    iron_condor,
    option_symbol,
    parse_option_symbol,
    straddle,
    strangle,
    vertical_spread,
)
from tastyclient.services.broker.session import Session, SessionManager
from tastyclient.services.broker.orders import OrderService
from tastyclient.services.broker.client import BrokerClient
from tastyclient.services.broker.factory import ClientFactory

__all__ = [
    'BrokerClient',
    'ClientFactory',
    'Session',
    'SessionManager',
    'OrderService',
    'validate_order',
    'validate_complex_order',
    'option_symbol',
    'parse_option_symbol',
    'vertical_spread',
    'calendar_spread',
    'diagonal_spread',
    'strangle',
    'straddle',
    'butterfly_spread',
    'iron_condor',
    'iron_butterfly',
    'ComplexOrderRequest',
    'ComplexOrderType',
    'InstrumentType',
    'LimitOrder',
    'MarketOrder',
    'NotionalMarketOrder',
    'Order',
    'OrderAction',
    'OrderLeg',
    'OrderRequest',
    'OrderResponse',
    'OrderStatus',
    'OrderType',
    'PriceEffect',
    'StopLimitOrder',
    'StopOrder',
    'TimeInForce',
    'BrokerException',
    'BrokerAPIException',
    'BrokerAuthException',
    'BrokerSessionExpiredException',
    'BrokerOrderValidationException',
    'BrokerDecodeException',
    'BrokerUnavailableException',
    'BrokerTimeoutException',
    'BrokerCancelledException',
    'is_api_error',
]
