"""
Unified Exchange - Backpack Adapter.

============================================================
PURPOSE
============================================================
Adapter for the Backpack REST API.

AUTHENTICATION:
- BP-API-Key / BP-Timestamp / BP-Signature headers
- HMAC-SHA256 (hex) over "path&k1=v1&k2=v2&timestamp=..." with
  params sorted by key

============================================================
"""

import hashlib
import hmac
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from .rest import RestExchange, now_ms


class BackpackExchange(RestExchange):
    """Backpack exchange adapter."""

    DEFAULT_BASE_URL = "https://api.backpack.exchange/api/v1"
    HEADER_PREFIX = "BP-"

    @property
    def exchange_id(self) -> str:
        return "backpack"

    def sign_request(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> str:
        timestamp = timestamp or now_ms()
        pairs = sorted((k, v) for k, v in (params or {}).items() if v is not None)
        pairs.append(("timestamp", timestamp))
        message = f"{path}&{urlencode(pairs)}"
        return hmac.new(
            self._api_secret.encode(),
            message.encode(),
            hashlib.sha256,
        ).hexdigest()
