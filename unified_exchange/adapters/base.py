"""
Unified Exchange - Exchange Adapter Base.

============================================================
PURPOSE
============================================================
Abstract interface every exchange adapter implements, plus the
exchange-agnostic logic shared by all of them:

- Order validation (structural + balance sufficiency)
- Error normalization into the taxonomy
- Current price and single-asset balance lookups
- Order closing (cancel, then re-order on the opposite side)

The shared logic depends only on the abstract interface, never
on a concrete exchange.

============================================================
KNOWN LIMITATIONS
============================================================
- Closing is two independent calls (cancel, then create). If the
  create fails after the cancel succeeded the position is left
  without cover; nothing is rolled back.
- The balance check compares a snapshot of the free balance with
  a single reference price; it is not atomic with submission.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, List, Mapping, Optional

from ..config import TimeoutConfig
from ..errors import (
    ExchangeError,
    authentication_error,
    insufficient_funds_error,
    invalid_order_error,
    normalize_error,
)
from ..types import (
    Balance,
    MarketInfo,
    Order,
    OrderParams,
    OrderSide,
    OrderType,
    Ticker,
    TimeInForce,
    enum_value,
    split_symbol,
    to_decimal,
)


logger = logging.getLogger(__name__)


VALID_SIDES = ("buy", "sell")
VALID_TYPES = ("market", "limit")

# Fields a caller may change on an existing order
MODIFIABLE_FIELDS = ("quantity", "price", "time_in_force")

# Fields that are accepted but always taken from the existing order
IMMUTABLE_FIELDS = ("symbol", "side", "type")

DEFAULT_HISTORY_LIMIT = 50


# ============================================================
# ABSTRACT EXCHANGE
# ============================================================

class BaseExchange(ABC):
    """
    Abstract exchange adapter with shared validation and closing logic.

    Implementations:
    - HyperliquidExchange, ParadexExchange, BackpackExchange: REST APIs
    - MockExchange: For testing
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        timeout: Optional[TimeoutConfig] = None,
    ):
        """
        Initialize adapter.

        Does not touch the network.

        Args:
            api_key: API key
            api_secret: API secret
            base_url: REST endpoint
            timeout: Timeout configuration

        Raises:
            ExchangeError: AUTHENTICATION if a credential is missing
        """
        if not api_key or not api_secret:
            raise authentication_error("API key and secret are required")

        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = (base_url or "").rstrip("/")
        self._timeout_config = timeout or TimeoutConfig()

    @property
    @abstractmethod
    def exchange_id(self) -> str:
        """Get exchange identifier."""
        pass

    @property
    def base_url(self) -> str:
        return self._base_url

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open long-lived resources. Optional; requests work without it."""

    async def disconnect(self) -> None:
        """Release long-lived resources."""

    async def __aenter__(self) -> "BaseExchange":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    # --------------------------------------------------------
    # SIGNING
    # --------------------------------------------------------

    @abstractmethod
    def sign_request(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> str:
        """
        Sign a request.

        The signature must be bound to the credentials and to a
        fresh timestamp. Algorithm and header names are exchange
        specific.
        """
        pass

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    @abstractmethod
    async def get_markets(self) -> List[MarketInfo]:
        """Get trading rules for all markets."""
        pass

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Ticker:
        """
        Get ticker for symbol.

        Args:
            symbol: Trading symbol (e.g., BTC-USDT)

        Returns:
            Ticker
        """
        pass

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    @abstractmethod
    async def get_balances(self) -> List[Balance]:
        """Get balances for all assets."""
        pass

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    @abstractmethod
    async def create_order(self, params: OrderParams) -> Order:
        """
        Submit an order.

        Implementations call validate_order() before submission.

        Raises:
            ExchangeError: If validation or submission fails
        """
        pass

    @abstractmethod
    async def modify_order(
        self,
        symbol: str,
        order_id: str,
        changes: Mapping[str, Any],
    ) -> Order:
        """
        Modify an open order.

        Implementations fetch the existing order, merge the changes
        with merge_order_changes() and re-validate with
        skip_balance_check=True before submitting.
        """
        pass

    @abstractmethod
    async def cancel_order(self, symbol: str, order_id: str) -> bool:
        """Cancel an order. Returns True once the exchange accepted it."""
        pass

    @abstractmethod
    async def get_order(self, symbol: str, order_id: str) -> Order:
        """Get a single order."""
        pass

    @abstractmethod
    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        """
        Get all open orders.

        Args:
            symbol: Specific symbol, or None for all
        """
        pass

    @abstractmethod
    async def get_order_history(
        self,
        symbol: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[Order]:
        """Get past orders, at most `limit` of them."""
        pass

    # --------------------------------------------------------
    # FUNDS
    # --------------------------------------------------------

    @abstractmethod
    async def withdraw(self, asset: str, address: str, amount: Decimal) -> str:
        """Withdraw funds. Returns the withdrawal identifier."""
        pass

    @abstractmethod
    async def get_deposit_address(self, asset: str) -> str:
        """Get deposit address for asset."""
        pass

    # --------------------------------------------------------
    # ERROR HANDLING
    # --------------------------------------------------------

    def handle_error(self, error: BaseException, default_message: str) -> ExchangeError:
        """
        Normalize a failure into the error taxonomy.

        Args:
            error: Underlying failure
            default_message: Message used when the failure has none

        Returns:
            ExchangeError to raise
        """
        normalized = normalize_error(error, default_message)
        if normalized is not error:
            logger.warning(
                f"[{self.exchange_id}] {default_message}: "
                f"{type(error).__name__} -> {normalized!r}"
            )
        return normalized

    @contextmanager
    def normalizing(self, default_message: str) -> Iterator[None]:
        """
        Funnel every failure raised inside the block through handle_error().

        ExchangeErrors pass through untouched.
        """
        try:
            yield
        except ExchangeError:
            raise
        except Exception as e:
            raise self.handle_error(e, default_message) from e

    # --------------------------------------------------------
    # DERIVED LOOKUPS
    # --------------------------------------------------------

    async def get_current_price(self, symbol: str) -> Decimal:
        """Get last traded price for symbol."""
        with self.normalizing(f"Failed to get current price for {symbol}"):
            ticker = await self.get_ticker(symbol)
            return ticker.last_price

    async def get_balance(self, asset: str) -> Balance:
        """
        Get balance for a single asset.

        Raises:
            ExchangeError: INVALID_ORDER if the asset has no balance entry
        """
        with self.normalizing(f"Failed to get balance for {asset}"):
            balances = await self.get_balances()
            for balance in balances:
                if balance.asset == asset:
                    return balance
            raise invalid_order_error(f"Balance not found for asset {asset}")

    # --------------------------------------------------------
    # VALIDATION
    # --------------------------------------------------------

    async def validate_order(
        self,
        params: OrderParams,
        skip_balance_check: bool = False,
    ) -> None:
        """
        Validate order parameters. The first failing check wins.

        Args:
            params: Order parameters
            skip_balance_check: Skip the funds check (order modification,
                where the order already reserved its funds)

        Raises:
            ExchangeError: INVALID_ORDER or INSUFFICIENT_FUNDS
        """
        if not params.symbol:
            raise invalid_order_error("Symbol is required")
        if not params.side:
            raise invalid_order_error("Side is required")
        if not params.type:
            raise invalid_order_error("Type is required")
        if not _is_positive(params.quantity):
            raise invalid_order_error("Quantity must be greater than 0")

        side = str(enum_value(params.side)).lower()
        order_type = str(enum_value(params.type)).lower()

        if side not in VALID_SIDES:
            raise invalid_order_error("Invalid side")
        if order_type not in VALID_TYPES:
            raise invalid_order_error("Invalid type")

        if order_type == OrderType.LIMIT.value:
            if not _is_positive(params.price):
                raise invalid_order_error(
                    "Price is required for limit orders and must be greater than 0"
                )

        if skip_balance_check:
            return

        with self.normalizing("Failed to validate balance"):
            await self._check_balance(params, side, order_type)

    async def _check_balance(self, params: OrderParams, side: str, order_type: str) -> None:
        base_asset, quote_asset = split_symbol(params.symbol)
        if not base_asset or not quote_asset:
            raise invalid_order_error(f"Invalid symbol format: {params.symbol}")

        asset = quote_asset if side == OrderSide.BUY.value else base_asset
        balance = await self.get_balance(asset)

        if order_type == OrderType.MARKET.value or not params.price:
            reference_price = await self.get_current_price(params.symbol)
        else:
            reference_price = to_decimal(params.price)

        quantity = to_decimal(params.quantity)
        if side == OrderSide.BUY.value:
            required_amount = quantity * reference_price
        else:
            required_amount = quantity

        if balance.free < required_amount:
            raise insufficient_funds_error(
                f"Insufficient {asset} balance. "
                f"Required: {required_amount}, Available: {balance.free}"
            )

    def merge_order_changes(self, existing: Order, changes: Mapping[str, Any]) -> OrderParams:
        """
        Merge modifications into an existing order.

        Symbol, side and type always come from the existing order.

        Raises:
            ExchangeError: INVALID_ORDER for fields that cannot be modified
        """
        unknown = set(changes) - set(MODIFIABLE_FIELDS) - set(IMMUTABLE_FIELDS)
        if unknown:
            raise invalid_order_error(
                f"Cannot modify order field(s): {', '.join(sorted(unknown))}"
            )

        return OrderParams(
            symbol=existing.symbol,
            side=existing.side,
            type=existing.type,
            quantity=changes.get("quantity", existing.quantity),
            price=changes.get("price", existing.price),
            time_in_force=changes.get("time_in_force", existing.time_in_force),
        )

    # --------------------------------------------------------
    # ORDER CLOSING
    # --------------------------------------------------------

    async def close_order_market(self, symbol: str, order_id: str) -> Order:
        """
        Close an order at market price.

        Cancels the order, then submits an opposite-side market
        order for its remaining quantity.

        Raises:
            ExchangeError: INVALID_ORDER "Order not found" if the order
                does not exist; cancel and create are not attempted
        """
        return await self._close_order(
            symbol,
            order_id,
            OrderType.MARKET,
            price=None,
            default_message="Failed to close order at market price",
        )

    async def close_order_limit(self, symbol: str, order_id: str, price: Decimal) -> Order:
        """
        Close an order with a GTC limit order at `price`.

        Same flow as close_order_market().
        """
        return await self._close_order(
            symbol,
            order_id,
            OrderType.LIMIT,
            price=price,
            default_message="Failed to close order at limit price",
        )

    async def _close_order(
        self,
        symbol: str,
        order_id: str,
        order_type: OrderType,
        price: Optional[Decimal],
        default_message: str,
    ) -> Order:
        with self.normalizing(default_message):
            order = await self.get_order(symbol, order_id)
            if order is None or not order.order_id:
                raise invalid_order_error("Order not found")

            await self.cancel_order(symbol, order_id)

            close_params = OrderParams(
                symbol=order.symbol,
                side=_reverse_side(order.side),
                type=order_type,
                quantity=order.remaining_quantity,
                price=price,
                time_in_force=TimeInForce.GTC if order_type == OrderType.LIMIT else None,
            )

            logger.info(
                f"[{self.exchange_id}] Closing order {order_id}: "
                f"{close_params.side.value} {close_params.quantity} {close_params.symbol} "
                f"({order_type.value})"
            )

            return await self.create_order(close_params)


def _reverse_side(side: Any) -> OrderSide:
    return OrderSide(str(enum_value(side)).lower()).reversed()


def _is_positive(value: Any) -> bool:
    """Check for a finite amount greater than zero. NaN and junk are not."""
    if value is None or value == "":
        return False
    try:
        amount = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return False
    return amount.is_finite() and amount > 0
