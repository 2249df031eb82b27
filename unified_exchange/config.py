"""
Unified Exchange - Configuration.

============================================================
PURPOSE
============================================================
Configuration for exchange adapters.

Credentials come from explicit arguments or from environment
variables (a local .env file is loaded when present):

    {EXCHANGE}_API_KEY
    {EXCHANGE}_API_SECRET
    {EXCHANGE}_BASE_URL          (optional)
    {EXCHANGE}_TIMEOUT_SECONDS   (optional)

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
from dotenv import load_dotenv


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration.

    Timeout policy lives in the transport; the exchange layer
    never retries.
    """

    connection_timeout_seconds: float = 5.0
    """Connection timeout."""

    read_timeout_seconds: float = 30.0
    """Total timeout for a request including the response body."""

    def to_client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            connect=self.connection_timeout_seconds,
            total=self.read_timeout_seconds,
        )


# ============================================================
# EXCHANGE CONFIGURATION
# ============================================================

@dataclass
class ExchangeConfig:
    """
    Configuration for one exchange adapter.

    Common configuration shared across adapters.
    """

    api_key: Optional[str] = None
    api_secret: Optional[str] = None

    base_url: Optional[str] = None
    """REST endpoint. None selects the adapter default."""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    options: Dict[str, Any] = field(default_factory=dict)
    """Adapter-specific options passed through as kwargs."""

    @classmethod
    def from_env(cls, exchange_id: str) -> "ExchangeConfig":
        """
        Create config from environment variables.

        Args:
            exchange_id: Exchange identifier

        Returns:
            ExchangeConfig
        """
        load_dotenv()
        prefix = exchange_id.upper()

        timeout = TimeoutConfig()
        timeout_env = os.environ.get(f"{prefix}_TIMEOUT_SECONDS")
        if timeout_env:
            timeout.read_timeout_seconds = float(timeout_env)

        return cls(
            api_key=os.environ.get(f"{prefix}_API_KEY"),
            api_secret=os.environ.get(f"{prefix}_API_SECRET"),
            base_url=os.environ.get(f"{prefix}_BASE_URL") or None,
            timeout=timeout,
        )
