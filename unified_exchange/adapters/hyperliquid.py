"""
Unified Exchange - Hyperliquid Adapter.

============================================================
PURPOSE
============================================================
Adapter for the Hyperliquid REST API.

AUTHENTICATION:
- HL-API-Key / HL-Timestamp / HL-Signature headers
- HMAC-SHA256 (hex) over timestamp + path + JSON params

============================================================
"""

import hashlib
import hmac
import json
from typing import Any, Mapping, Optional

from .rest import RestExchange, now_ms


class HyperliquidExchange(RestExchange):
    """Hyperliquid exchange adapter."""

    DEFAULT_BASE_URL = "https://api.hyperliquid.io/v1"
    HEADER_PREFIX = "HL-"

    @property
    def exchange_id(self) -> str:
        return "hyperliquid"

    def sign_request(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> str:
        timestamp = timestamp or now_ms()
        body = json.dumps(dict(params or {}), separators=(",", ":"))
        message = f"{timestamp}{path}{body}"
        return hmac.new(
            self._api_secret.encode(),
            message.encode(),
            hashlib.sha256,
        ).hexdigest()
