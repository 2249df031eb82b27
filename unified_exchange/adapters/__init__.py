"""
Unified Exchange - Adapters Package.

============================================================
PURPOSE
============================================================
Exchange adapter implementations.

AVAILABLE ADAPTERS:
- HyperliquidExchange: Hyperliquid REST API
- ParadexExchange: Paradex REST API
- BackpackExchange: Backpack REST API
- MockExchange: For testing

UTILITIES:
- AdapterFactory: Factory for creating adapters

============================================================
"""

from .base import BaseExchange, DEFAULT_HISTORY_LIMIT
from .rest import RestExchange, parse_balance, parse_market, parse_order, parse_ticker
from .hyperliquid import HyperliquidExchange
from .paradex import ParadexExchange
from .backpack import BackpackExchange
from .mock import MockExchange, MockConfig
from .factory import AdapterFactory, ExchangeId, create_exchange


__all__ = [
    # Base
    "BaseExchange",
    "DEFAULT_HISTORY_LIMIT",
    # REST
    "RestExchange",
    "parse_balance",
    "parse_market",
    "parse_order",
    "parse_ticker",
    # Adapters
    "HyperliquidExchange",
    "ParadexExchange",
    "BackpackExchange",
    "MockExchange",
    "MockConfig",
    # Factory
    "AdapterFactory",
    "ExchangeId",
    "create_exchange",
]
