"""Exchange abstraction layer.

Re-exports all public types, protocols, and errors for convenient imports:
    from btcgrid.exchange import Order, ExchangeGateway, ExchangeError
"""

from btcgrid.exchange.errors import (
    UNKNOWN_ORDER_CODE,
    ExchangeAPIError,
    ExchangeAuthError,
    ExchangeConnectionError,
    ExchangeError,
    ExchangeNotConnectedError,
    ExchangeResponseError,
    ExchangeTimeoutError,
    is_unknown_order,
)
from btcgrid.exchange.gateway import ExchangeGateway
from btcgrid.exchange.pool import GatewayPool
from btcgrid.exchange.types import Balance, Order, OrderType, Side, Trade

__all__ = [
    "UNKNOWN_ORDER_CODE",
    "Balance",
    "ExchangeAPIError",
    "ExchangeAuthError",
    "ExchangeConnectionError",
    "ExchangeError",
    "ExchangeGateway",
    "ExchangeNotConnectedError",
    "ExchangeResponseError",
    "ExchangeTimeoutError",
    "GatewayPool",
    "Order",
    "OrderType",
    "Side",
    "Trade",
    "is_unknown_order",
]
