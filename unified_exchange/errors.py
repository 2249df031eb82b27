"""
Unified Exchange - Error Taxonomy.

============================================================
PURPOSE
============================================================
Closed set of error kinds for every caller-visible failure.

Every failure leaving this package is an ExchangeError tagged
with one ErrorKind. Transport, parsing and adapter failures are
funneled through normalize_error() before reaching a caller.

============================================================
ERROR KINDS
============================================================
1. EXCHANGE            - Generic / unclassified failure
2. AUTHENTICATION      - Credential or signature failure
3. INVALID_ORDER       - Bad order params, bad symbol, order not found
4. INSUFFICIENT_FUNDS  - Balance check failure

============================================================
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ============================================================
# ERROR KINDS
# ============================================================

class ErrorKind(Enum):
    """Error kind tag."""

    EXCHANGE = "EXCHANGE"
    AUTHENTICATION = "AUTHENTICATION"
    INVALID_ORDER = "INVALID_ORDER"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"


# Default (code, http_status) per kind
KIND_DEFAULTS: Dict[ErrorKind, Tuple[Optional[str], Optional[int]]] = {
    ErrorKind.EXCHANGE: (None, None),
    ErrorKind.AUTHENTICATION: ("AUTH_ERROR", 401),
    ErrorKind.INVALID_ORDER: ("INVALID_ORDER", 400),
    ErrorKind.INSUFFICIENT_FUNDS: ("INSUFFICIENT_FUNDS", 400),
}

# Machine code to (kind, fallback message)
CODE_MAP: Dict[str, Tuple[ErrorKind, str]] = {
    "AUTH_ERROR": (ErrorKind.AUTHENTICATION, "Authentication failed"),
    "INVALID_ORDER": (ErrorKind.INVALID_ORDER, "Invalid order parameters"),
    "INSUFFICIENT_FUNDS": (ErrorKind.INSUFFICIENT_FUNDS, "Insufficient funds"),
    "NOT_FOUND": (ErrorKind.INVALID_ORDER, "Order not found"),
}


# ============================================================
# EXCHANGE ERROR
# ============================================================

class ExchangeError(Exception):
    """
    Standardized exchange error.

    A tagged value: the kind decides how callers react, the code
    is a stable machine-readable identifier, the status mirrors
    the HTTP status where one applies.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.EXCHANGE,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        if not message:
            raise ValueError("ExchangeError requires a message")

        default_code, default_status = KIND_DEFAULTS[kind]

        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code if code is not None else default_code
        self.http_status = http_status if http_status is not None else default_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "http_status": self.http_status,
        }

    def __repr__(self) -> str:
        return f"ExchangeError(kind={self.kind.value}, code={self.code!r}, message={self.message!r})"


# ============================================================
# CONSTRUCTORS
# ============================================================

def exchange_error(
    message: str,
    code: Optional[str] = None,
    http_status: Optional[int] = None,
) -> ExchangeError:
    """Create generic exchange error."""
    return ExchangeError(message, ErrorKind.EXCHANGE, code=code, http_status=http_status)


def authentication_error(message: str) -> ExchangeError:
    """Create authentication error."""
    return ExchangeError(message, ErrorKind.AUTHENTICATION)


def invalid_order_error(message: str) -> ExchangeError:
    """Create invalid order error."""
    return ExchangeError(message, ErrorKind.INVALID_ORDER)


def insufficient_funds_error(message: str) -> ExchangeError:
    """Create insufficient funds error."""
    return ExchangeError(message, ErrorKind.INSUFFICIENT_FUNDS)


# ============================================================
# NORMALIZATION
# ============================================================

def normalize_error(error: BaseException, default_message: str) -> ExchangeError:
    """
    Translate an arbitrary failure into the taxonomy.

    Args:
        error: Underlying failure
        default_message: Message used when the failure has none

    Returns:
        ExchangeError (the same object if already classified)
    """
    if isinstance(error, ExchangeError):
        return error

    message = str(error)
    code = getattr(error, "code", None)

    if code:
        code = str(code)
        if code in CODE_MAP:
            kind, fallback = CODE_MAP[code]
            return ExchangeError(message or fallback, kind)
        return exchange_error(message or default_message, code=code)

    return exchange_error(message or default_message)
