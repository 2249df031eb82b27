"""
Unified Exchange - Paradex Adapter.

============================================================
PURPOSE
============================================================
Adapter for the Paradex REST API.

AUTHENTICATION:
- X-API-Key / X-Timestamp / X-Signature headers
- HMAC-SHA256 (base64) over timestamp + path + sorted JSON params

============================================================
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Mapping, Optional

from .rest import RestExchange, now_ms


class ParadexExchange(RestExchange):
    """Paradex exchange adapter."""

    DEFAULT_BASE_URL = "https://api.prod.paradex.trade/v1"
    HEADER_PREFIX = "X-"

    @property
    def exchange_id(self) -> str:
        return "paradex"

    def sign_request(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> str:
        timestamp = timestamp or now_ms()
        body = json.dumps(dict(params or {}), sort_keys=True, separators=(",", ":"))
        digest = hmac.new(
            self._api_secret.encode(),
            f"{timestamp}{path}{body}".encode(),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode()
