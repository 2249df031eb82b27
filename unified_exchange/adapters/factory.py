"""
Exchange Adapter Factory.

============================================================
PURPOSE
============================================================
Factory pattern for creating exchange adapter instances.

FEATURES:
- Centralized adapter creation
- Configuration injection
- Environment-based defaults
- Adapter registry for extension

============================================================
USAGE
============================================================
```python
# Credentials from HYPERLIQUID_API_KEY / HYPERLIQUID_API_SECRET
exchange = AdapterFactory.create("hyperliquid")

# Explicit config
config = ExchangeConfig(api_key="...", api_secret="...")
exchange = AdapterFactory.create("paradex", config=config)

async with exchange:
    price = await exchange.get_current_price("BTC-USDT")
```

============================================================
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type

from ..config import ExchangeConfig
from .base import BaseExchange


logger = logging.getLogger(__name__)


# ============================================================
# EXCHANGE IDENTIFIERS
# ============================================================

class ExchangeId(Enum):
    """Supported exchange identifiers."""

    HYPERLIQUID = "hyperliquid"
    PARADEX = "paradex"
    BACKPACK = "backpack"
    MOCK = "mock"


# ============================================================
# ADAPTER FACTORY
# ============================================================

class AdapterFactory:
    """
    Factory for creating exchange adapters.

    Built-in exchanges are imported lazily; others can be
    registered at runtime, either as an adapter class or as a
    creator callable that receives the resolved ExchangeConfig.
    """

    _registry: Dict[str, Type[BaseExchange]] = {}
    _creators: Dict[str, Callable[[ExchangeConfig], BaseExchange]] = {}

    @classmethod
    def register(
        cls,
        exchange_id: str,
        adapter_class: Optional[Type[BaseExchange]] = None,
        creator: Optional[Callable[[ExchangeConfig], BaseExchange]] = None,
    ) -> None:
        """
        Register a custom exchange.

        A creator takes precedence over an adapter class when both
        are registered under the same identifier.

        Raises:
            ValueError: If neither adapter_class nor creator is given
        """
        if adapter_class is None and creator is None:
            raise ValueError(f"Nothing to register for exchange: {exchange_id}")

        key = exchange_id.lower()
        if adapter_class is not None:
            cls._registry[key] = adapter_class
        if creator is not None:
            cls._creators[key] = creator

    @classmethod
    def unregister(cls, exchange_id: str) -> None:
        key = exchange_id.lower()
        for table in (cls._registry, cls._creators):
            table.pop(key, None)

    @classmethod
    def create(
        cls,
        exchange_id: str,
        config: Optional[ExchangeConfig] = None,
        **kwargs,
    ) -> BaseExchange:
        """
        Create an exchange adapter.

        The caller's config is never modified; overrides are
        applied to a copy.

        Args:
            exchange_id: Exchange identifier
            config: Adapter configuration (environment if None)
            **kwargs: Overrides for config fields or adapter options

        Returns:
            BaseExchange instance

        Raises:
            ValueError: If exchange not supported
            ExchangeError: AUTHENTICATION if credentials are missing
        """
        key = exchange_id.lower()
        resolved = _apply_overrides(config or ExchangeConfig.from_env(key), kwargs)

        creator = cls._creators.get(key)
        if creator is not None:
            return creator(resolved)

        adapter_class = cls._registry.get(key) or cls._builtin_class(key)
        return adapter_class(**cls._config_to_kwargs(key, resolved))

    @classmethod
    def _builtin_class(cls, exchange_id: str) -> Type[BaseExchange]:
        if exchange_id == ExchangeId.HYPERLIQUID.value:
            from .hyperliquid import HyperliquidExchange
            return HyperliquidExchange

        elif exchange_id == ExchangeId.PARADEX.value:
            from .paradex import ParadexExchange
            return ParadexExchange

        elif exchange_id == ExchangeId.BACKPACK.value:
            from .backpack import BackpackExchange
            return BackpackExchange

        elif exchange_id == ExchangeId.MOCK.value:
            from .mock import MockExchange
            return MockExchange

        raise ValueError(f"Unsupported exchange: {exchange_id}")

    @classmethod
    def _config_to_kwargs(
        cls,
        exchange_id: str,
        config: ExchangeConfig,
    ) -> Dict[str, Any]:
        """Convert config to adapter kwargs."""
        kwargs: Dict[str, Any] = {"timeout": config.timeout}

        # The mock falls back to its own dummy credentials
        if exchange_id != ExchangeId.MOCK.value or config.api_key:
            kwargs["api_key"] = config.api_key
        if exchange_id != ExchangeId.MOCK.value or config.api_secret:
            kwargs["api_secret"] = config.api_secret
        if config.base_url:
            kwargs["base_url"] = config.base_url

        kwargs.update(config.options)
        return kwargs

    @classmethod
    def create_all(
        cls,
        exchange_ids: List[str],
        config_map: Optional[Dict[str, ExchangeConfig]] = None,
    ) -> Dict[str, BaseExchange]:
        """
        Create multiple adapters.

        Exchanges that cannot be created are logged and skipped.

        Args:
            exchange_ids: List of exchange identifiers
            config_map: Optional config per exchange

        Returns:
            Dict of exchange_id -> adapter
        """
        config_map = config_map or {}
        adapters = {}

        for exchange_id in exchange_ids:
            try:
                adapters[exchange_id] = cls.create(exchange_id, config=config_map.get(exchange_id))
            except Exception as e:
                logger.error(f"Failed to create adapter for {exchange_id}: {e}")

        return adapters

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported exchanges."""
        builtin = [e.value for e in ExchangeId]
        registered = list(cls._registry.keys()) + list(cls._creators.keys())
        return sorted(set(builtin + registered))


def _apply_overrides(config: ExchangeConfig, overrides: Dict[str, Any]) -> ExchangeConfig:
    """Copy config with overrides applied; unknown keys become options."""
    options = dict(config.options)
    options.update(overrides.get("options") or {})

    fields = {}
    for key, value in overrides.items():
        if key == "options":
            continue
        if key in ExchangeConfig.__dataclass_fields__:
            fields[key] = value
        else:
            options[key] = value
    return replace(config, options=options, **fields)


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_exchange(exchange_id: str, **kwargs) -> BaseExchange:
    """
    Create exchange adapter.

    Convenience wrapper for AdapterFactory.create().
    """
    return AdapterFactory.create(exchange_id, **kwargs)
