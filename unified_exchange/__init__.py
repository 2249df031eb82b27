"""
Unified Exchange.

============================================================
PURPOSE
============================================================
One asynchronous trading interface over multiple exchange
REST APIs, with order validation, balance checks and error
normalization enforced once in a shared layer.

============================================================
"""

from .types import (
    Balance,
    MarketInfo,
    Order,
    OrderParams,
    OrderSide,
    OrderStatus,
    OrderType,
    Ticker,
    TimeInForce,
)
from .errors import (
    ErrorKind,
    ExchangeError,
    authentication_error,
    exchange_error,
    insufficient_funds_error,
    invalid_order_error,
    normalize_error,
)
from .config import ExchangeConfig, TimeoutConfig
from .adapters import (
    AdapterFactory,
    BackpackExchange,
    BaseExchange,
    ExchangeId,
    HyperliquidExchange,
    MockConfig,
    MockExchange,
    ParadexExchange,
    create_exchange,
)


__all__ = [
    # Types
    "Balance",
    "MarketInfo",
    "Order",
    "OrderParams",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "Ticker",
    "TimeInForce",
    # Errors
    "ErrorKind",
    "ExchangeError",
    "authentication_error",
    "exchange_error",
    "insufficient_funds_error",
    "invalid_order_error",
    "normalize_error",
    # Config
    "ExchangeConfig",
    "TimeoutConfig",
    # Adapters
    "AdapterFactory",
    "BackpackExchange",
    "BaseExchange",
    "ExchangeId",
    "HyperliquidExchange",
    "MockConfig",
    "MockExchange",
    "ParadexExchange",
    "create_exchange",
]
