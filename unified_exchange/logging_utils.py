"""
Unified Exchange - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Credential masking for request logging.

SECURITY REQUIREMENTS:
1. NEVER log raw API keys or secrets
2. Mask authentication and signature headers of every exchange
3. Mask credential-like request parameters

============================================================
"""

import re
from typing import Any, Dict, Mapping, Optional


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names (lower-case) that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "x-signature",
    "hl-api-key",
    "hl-signature",
    "bp-api-key",
    "bp-signature",
}

# Parameter names (lower-case) that should be masked
SENSITIVE_PARAMS = {
    "apikey",
    "api_key",
    "secret",
    "api_secret",
    "signature",
    "password",
    "token",
}

# Long hex strings look like HMAC signatures
_HEX_SIGNATURE = re.compile(r"\b[a-f0-9]{64}\b", re.IGNORECASE)


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Mask sensitive headers."""
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def mask_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Nested mappings are masked recursively.
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, Mapping):
            masked[key] = mask_params(value)
        elif isinstance(value, str):
            masked[key] = _HEX_SIGNATURE.sub("***HMAC***", value)
        else:
            masked[key] = value
    return masked
