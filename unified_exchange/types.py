"""
Unified Exchange - Types.

============================================================
PURPOSE
============================================================
Canonical domain model shared by every exchange adapter.

All entities are immutable snapshots returned per call.
Nothing here is cached or owned across calls.

============================================================
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ============================================================
# ORDER ENUMS
# ============================================================

class OrderSide(str, Enum):
    """Order side."""

    BUY = "buy"
    SELL = "sell"

    def reversed(self) -> "OrderSide":
        """Opposite side, used when closing an order."""
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    """Execute at current market price."""

    LIMIT = "limit"
    """Execute at specified price or better."""


class TimeInForce(str, Enum):
    """Time in force for orders."""

    GTC = "GTC"
    """Good Till Canceled."""

    IOC = "IOC"
    """Immediate Or Cancel."""

    FOK = "FOK"
    """Fill Or Kill."""


class OrderStatus(str, Enum):
    """Order status as reported by the exchange."""

    NEW = "new"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        """Check if no further updates are expected."""
        return self in (OrderStatus.FILLED, OrderStatus.CANCELED, OrderStatus.REJECTED)


def enum_value(value: Any) -> Any:
    """Raw value of an enum member, or the value itself."""
    if isinstance(value, Enum):
        return value.value
    return value


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def split_symbol(symbol: str) -> Tuple[str, str]:
    """
    Split a BASE-QUOTE symbol.

    Args:
        symbol: Trading symbol (e.g., BTC-USDT)

    Returns:
        (base, quote); quote is empty when the symbol has no separator
    """
    base, _, quote = symbol.partition("-")
    return base, quote


# ============================================================
# ORDERS
# ============================================================

@dataclass(frozen=True)
class OrderParams:
    """Parameters for a new order."""

    symbol: str
    """Trading symbol in BASE-QUOTE format."""

    side: OrderSide
    """Order side."""

    type: OrderType
    """Order type."""

    quantity: Decimal
    """Order quantity."""

    price: Optional[Decimal] = None
    """Limit price. Required for limit orders."""

    time_in_force: Optional[TimeInForce] = None
    """Time in force. GTC is applied at the adapter boundary."""

    def to_payload(self) -> Dict[str, Any]:
        """Render the camelCase wire body. Absent fields are omitted."""
        payload = {
            "symbol": self.symbol,
            "side": enum_value(self.side),
            "type": enum_value(self.type),
            "quantity": str(self.quantity),
        }
        if self.price is not None:
            payload["price"] = str(self.price)
        if self.time_in_force is not None:
            payload["timeInForce"] = enum_value(self.time_in_force)
        return payload


@dataclass(frozen=True)
class Order(OrderParams):
    """
    Order snapshot as reported by the exchange.

    Created by a successful create_order call and mutated only by
    the exchange backend.
    """

    order_id: str = ""
    """Exchange-assigned order ID."""

    status: OrderStatus = OrderStatus.NEW
    """Order status."""

    filled_quantity: Decimal = Decimal("0")
    """Filled quantity."""

    remaining_quantity: Decimal = Decimal("0")
    """Remaining (unfilled) quantity."""

    avg_price: Decimal = Decimal("0")
    """Average fill price."""

    timestamp: int = 0
    """Exchange timestamp in epoch milliseconds."""

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(enum_value(self.status)).is_terminal


# ============================================================
# ACCOUNT
# ============================================================

@dataclass(frozen=True)
class Balance:
    """Account balance for an asset."""

    asset: str
    """Asset ticker (e.g., USDT)."""

    free: Decimal = Decimal("0")
    """Available for new orders."""

    locked: Decimal = Decimal("0")
    """Reserved by open orders."""

    total: Decimal = Decimal("0")
    """Exchange-reported total (free + locked)."""


# ============================================================
# MARKET DATA
# ============================================================

@dataclass(frozen=True)
class MarketInfo:
    """Trading rules for a market."""

    symbol: str
    base_precision: int = 0
    quote_precision: int = 0
    min_order_size: Decimal = Decimal("0")
    max_order_size: Decimal = Decimal("0")


@dataclass(frozen=True)
class Ticker:
    """Latest market snapshot for a symbol."""

    symbol: str
    last_price: Decimal = Decimal("0")
    bid_price: Decimal = Decimal("0")
    ask_price: Decimal = Decimal("0")
    volume_24h: Decimal = Decimal("0")
    timestamp: int = 0
