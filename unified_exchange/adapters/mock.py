"""
Unified Exchange - Mock Exchange Adapter.

============================================================
PURPOSE
============================================================
In-memory adapter for testing and dry runs.

FEATURES:
- Configurable balances, prices and markets
- Order book of resting orders (no matching)
- Manual fills for partial-fill scenarios
- Error injection

============================================================
"""

import hashlib
import hmac
import json
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from ..errors import insufficient_funds_error, invalid_order_error
from ..types import (
    Balance,
    MarketInfo,
    Order,
    OrderParams,
    OrderSide,
    OrderStatus,
    OrderType,
    Ticker,
    TimeInForce,
    enum_value,
    to_decimal,
)
from .base import BaseExchange, DEFAULT_HISTORY_LIMIT


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for mock adapter."""

    balances: Dict[str, Decimal] = field(default_factory=lambda: {
        "BTC": Decimal("1.0"),
        "USDT": Decimal("5000.0"),
    })
    """Initial free balance by asset."""

    prices: Dict[str, Decimal] = field(default_factory=lambda: {
        "BTC-USDT": Decimal("50000"),
    })
    """Last price by symbol. Only these symbols are tradable."""

    spread_bps: int = 20
    """Bid/ask spread around the last price, in basis points."""

    min_order_size: Decimal = Decimal("0.0001")
    max_order_size: Decimal = Decimal("100")


# ============================================================
# MOCK EXCHANGE
# ============================================================

class MockExchange(BaseExchange):
    """
    Mock exchange adapter for testing.

    Orders rest until filled with fill_order() or canceled.
    """

    def __init__(
        self,
        api_key: str = "mock-key",
        api_secret: str = "mock-secret",
        base_url: str = "mock://exchange",
        config: Optional[MockConfig] = None,
        **kwargs,
    ):
        super().__init__(api_key, api_secret, base_url, kwargs.get("timeout"))
        self._config = config or MockConfig()

        self._balances: Dict[str, Balance] = {
            asset: Balance(asset=asset, free=amount, locked=Decimal("0"), total=amount)
            for asset, amount in self._config.balances.items()
        }
        self._prices: Dict[str, Decimal] = dict(self._config.prices)
        self._orders: Dict[str, Order] = {}
        self._withdrawals: List[Dict[str, Any]] = []

        self._force_next_error: Optional[BaseException] = None

    @property
    def exchange_id(self) -> str:
        return "mock"

    # --------------------------------------------------------
    # TEST HOOKS
    # --------------------------------------------------------

    def fail_next(self, error: BaseException) -> None:
        """Make the next adapter call raise `error`."""
        self._force_next_error = error

    def set_price(self, symbol: str, price: Decimal) -> None:
        self._prices[symbol] = to_decimal(price)

    def set_balance(self, asset: str, free: Decimal, locked: Decimal = Decimal("0")) -> None:
        free, locked = to_decimal(free), to_decimal(locked)
        self._balances[asset] = Balance(asset=asset, free=free, locked=locked, total=free + locked)

    def fill_order(self, order_id: str, quantity: Optional[Decimal] = None) -> Order:
        """
        Fill an order fully, or partially by `quantity`.

        Fills happen at the order price, or at the last price for
        market orders.
        """
        order = self._find_order(order_id)
        fill_qty = order.remaining_quantity if quantity is None else to_decimal(quantity)
        fill_qty = min(fill_qty, order.remaining_quantity)

        filled = order.filled_quantity + fill_qty
        remaining = order.quantity - filled
        price = order.price or self._prices[order.symbol]
        status = OrderStatus.FILLED if remaining <= 0 else OrderStatus.PARTIALLY_FILLED

        updated = replace(
            order,
            filled_quantity=filled,
            remaining_quantity=remaining,
            avg_price=price,
            status=status,
        )
        self._orders[order_id] = updated
        return updated

    def _raise_injected(self) -> None:
        if self._force_next_error is not None:
            error, self._force_next_error = self._force_next_error, None
            raise error

    def _find_order(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise invalid_order_error("Order not found")
        return order

    # --------------------------------------------------------
    # SIGNING
    # --------------------------------------------------------

    def sign_request(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> str:
        timestamp = timestamp or str(int(time.time() * 1000))
        message = f"{timestamp}{path}{json.dumps(dict(params or {}), sort_keys=True, default=str)}"
        return hmac.new(self._api_secret.encode(), message.encode(), hashlib.sha256).hexdigest()

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def get_markets(self) -> List[MarketInfo]:
        with self.normalizing("Failed to fetch markets"):
            self._raise_injected()
            return [
                MarketInfo(
                    symbol=symbol,
                    base_precision=8,
                    quote_precision=2,
                    min_order_size=self._config.min_order_size,
                    max_order_size=self._config.max_order_size,
                )
                for symbol in self._prices
            ]

    async def get_ticker(self, symbol: str) -> Ticker:
        with self.normalizing("Failed to fetch ticker"):
            self._raise_injected()
            if symbol not in self._prices:
                raise invalid_order_error("Invalid trading symbol")

            last = self._prices[symbol]
            half_spread = last * Decimal(self._config.spread_bps) / Decimal("20000")
            return Ticker(
                symbol=symbol,
                last_price=last,
                bid_price=last - half_spread,
                ask_price=last + half_spread,
                volume_24h=Decimal("0"),
                timestamp=int(time.time() * 1000),
            )

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def get_balances(self) -> List[Balance]:
        with self.normalizing("Failed to fetch balances"):
            self._raise_injected()
            return list(self._balances.values())

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def create_order(self, params: OrderParams) -> Order:
        await self.validate_order(params)

        with self.normalizing("Failed to create order"):
            order_type = OrderType(str(enum_value(params.type)).lower())
            quantity = to_decimal(params.quantity)

            order = Order(
                order_id=uuid.uuid4().hex,
                symbol=params.symbol,
                side=OrderSide(str(enum_value(params.side)).lower()),
                type=order_type,
                quantity=quantity,
                price=None if order_type == OrderType.MARKET else to_decimal(params.price),
                time_in_force=params.time_in_force or TimeInForce.GTC,
                status=OrderStatus.NEW,
                filled_quantity=Decimal("0"),
                remaining_quantity=quantity,
                avg_price=Decimal("0"),
                timestamp=int(time.time() * 1000),
            )
            self._orders[order.order_id] = order
            logger.debug(f"Mock order created: {order.order_id}")
            return order

    async def modify_order(
        self,
        symbol: str,
        order_id: str,
        changes: Mapping[str, Any],
    ) -> Order:
        with self.normalizing("Failed to modify order"):
            existing = await self.get_order(symbol, order_id)
            updated = self.merge_order_changes(existing, changes)
            await self.validate_order(updated, skip_balance_check=True)

            quantity = to_decimal(updated.quantity)
            modified = replace(
                existing,
                quantity=quantity,
                price=None if updated.price is None else to_decimal(updated.price),
                time_in_force=updated.time_in_force,
                remaining_quantity=quantity - existing.filled_quantity,
            )
            self._orders[order_id] = modified
            return modified

    async def cancel_order(self, symbol: str, order_id: str) -> bool:
        with self.normalizing("Failed to cancel order"):
            self._raise_injected()
            order = self._find_order(order_id)
            if order.is_terminal:
                raise invalid_order_error(f"Order {order_id} is already {order.status.value}")

            self._orders[order_id] = replace(order, status=OrderStatus.CANCELED)
            return True

    async def get_order(self, symbol: str, order_id: str) -> Order:
        with self.normalizing("Failed to fetch order"):
            self._raise_injected()
            return self._find_order(order_id)

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        with self.normalizing("Failed to fetch open orders"):
            self._raise_injected()
            return [
                o for o in self._orders.values()
                if not o.is_terminal and (symbol is None or o.symbol == symbol)
            ]

    async def get_order_history(
        self,
        symbol: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[Order]:
        with self.normalizing("Failed to fetch order history"):
            self._raise_injected()
            orders = [o for o in self._orders.values() if symbol is None or o.symbol == symbol]
            orders.sort(key=lambda o: o.timestamp, reverse=True)
            return orders[:limit]

    # --------------------------------------------------------
    # FUNDS
    # --------------------------------------------------------

    async def withdraw(self, asset: str, address: str, amount: Decimal) -> str:
        with self.normalizing("Failed to withdraw"):
            self._raise_injected()
            amount = to_decimal(amount)
            if amount <= 0:
                raise invalid_order_error("Withdrawal amount must be greater than 0")

            balance = self._balances.get(asset)
            available = balance.free if balance else Decimal("0")
            if available < amount:
                raise insufficient_funds_error(
                    f"Insufficient {asset} balance. Required: {amount}, Available: {available}"
                )

            self._balances[asset] = replace(balance, free=balance.free - amount, total=balance.total - amount)

            withdrawal_id = f"mock-withdrawal-{len(self._withdrawals) + 1}"
            self._withdrawals.append({"id": withdrawal_id, "asset": asset, "address": address, "amount": amount})
            return withdrawal_id

    async def get_deposit_address(self, asset: str) -> str:
        with self.normalizing("Failed to get deposit address"):
            self._raise_injected()
            digest = hashlib.sha256(f"{self._api_key}:{asset}".encode()).hexdigest()
            return f"mock-{asset.lower()}-{digest[:16]}"
