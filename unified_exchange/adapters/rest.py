"""
Unified Exchange - REST Exchange Adapter.

============================================================
PURPOSE
============================================================
Endpoint wiring and response normalization shared by the
JSON REST exchanges. Concrete exchanges supply the default
endpoint, the header prefix and the signing algorithm.

ENDPOINTS:
- GET    /markets
- GET    /ticker/{symbol}
- GET    /balances
- POST   /orders
- PUT    /orders/{orderId}
- DELETE /orders/{orderId}
- GET    /orders/{orderId}
- GET    /orders
- GET    /orders/history
- POST   /withdraw
- GET    /deposit-address/{asset}

============================================================
"""

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from ..config import TimeoutConfig
from ..errors import exchange_error, invalid_order_error
from ..transport import make_request
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
)
from .base import BaseExchange, DEFAULT_HISTORY_LIMIT


logger = logging.getLogger(__name__)


def now_ms() -> str:
    """Current time in epoch milliseconds, as sent in headers."""
    return str(int(time.time() * 1000))


# ============================================================
# RESPONSE PARSING
# ============================================================

def _field(data: Any, key: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise exchange_error(
            f"Invalid response format: missing '{key}'",
            code="INVALID_RESPONSE",
        )
    return data[key]


def _decimal(value: Any, default: str = "0") -> Decimal:
    if value is None or value == "":
        value = default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise exchange_error(
            f"Invalid numeric value in response: {value!r}",
            code="INVALID_RESPONSE",
        )


def parse_market(data: Mapping[str, Any]) -> MarketInfo:
    return MarketInfo(
        symbol=data["symbol"],
        base_precision=int(data.get("basePrecision") or 0),
        quote_precision=int(data.get("quotePrecision") or 0),
        min_order_size=_decimal(data.get("minOrderSize")),
        max_order_size=_decimal(data.get("maxOrderSize")),
    )


def parse_ticker(data: Mapping[str, Any]) -> Ticker:
    return Ticker(
        symbol=data["symbol"],
        last_price=_decimal(data.get("lastPrice")),
        bid_price=_decimal(data.get("bidPrice")),
        ask_price=_decimal(data.get("askPrice")),
        volume_24h=_decimal(data.get("volume")),
        timestamp=int(data.get("timestamp") or 0),
    )


def parse_balance(data: Mapping[str, Any]) -> Balance:
    """Parse a balance entry. Some venues call the free amount 'available'."""
    free = data.get("available")
    if free is None:
        free = data.get("free")

    return Balance(
        asset=data["asset"],
        free=_decimal(free),
        locked=_decimal(data.get("locked")),
        total=_decimal(data.get("total")),
    )


def parse_order(data: Mapping[str, Any]) -> Order:
    """
    Parse an order.

    side/type/status are lower-cased, timeInForce upper-cased.
    Market orders carry no price. A null or absent orderId parses
    as an empty id, which callers treat as "order not found".
    """
    order_type = OrderType(str(_field(data, "type")).lower())
    order_id = data.get("orderId")

    return Order(
        order_id="" if order_id is None else str(order_id),
        symbol=_field(data, "symbol"),
        side=OrderSide(str(_field(data, "side")).lower()),
        type=order_type,
        quantity=_decimal(data.get("quantity")),
        price=None if order_type == OrderType.MARKET else _decimal(data.get("price")),
        time_in_force=TimeInForce(str(data.get("timeInForce") or "GTC").upper()),
        status=OrderStatus(str(_field(data, "status")).lower()),
        filled_quantity=_decimal(data.get("filledQuantity")),
        remaining_quantity=_decimal(data.get("remainingQuantity")),
        avg_price=_decimal(data.get("avgPrice")),
        timestamp=int(data.get("timestamp") or 0),
    )


# ============================================================
# REST EXCHANGE
# ============================================================

class RestExchange(BaseExchange):
    """
    JSON REST exchange adapter.

    Subclasses set DEFAULT_BASE_URL and HEADER_PREFIX and
    implement sign_request().
    """

    DEFAULT_BASE_URL = ""
    HEADER_PREFIX = ""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: Optional[str] = None,
        timeout: Optional[TimeoutConfig] = None,
    ):
        super().__init__(api_key, api_secret, base_url or self.DEFAULT_BASE_URL, timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open a pooled HTTP session."""
        if self._session is not None:
            await self.disconnect()

        self._session = aiohttp.ClientSession(
            timeout=self._timeout_config.to_client_timeout(),
        )
        logger.info(f"Connected to {self.exchange_id} ({self._base_url})")

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
            logger.info(f"Disconnected from {self.exchange_id}")

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    def _headers(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        timestamp = now_ms()
        prefix = self.HEADER_PREFIX
        return {
            f"{prefix}API-Key": self._api_key,
            f"{prefix}Timestamp": timestamp,
            f"{prefix}Signature": self.sign_request(path, params or {}, timestamp),
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        # Sign exactly what is sent: absent values never reach the wire
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        return await make_request(
            f"{self._base_url}{path}",
            method,
            self._headers(path, params),
            params,
            session=self._session,
            timeout=self._timeout_config.to_client_timeout(),
        )

    @staticmethod
    def _order_payload(params: OrderParams) -> Dict[str, Any]:
        payload = params.to_payload()
        if str(enum_value(params.type)).lower() == OrderType.LIMIT.value:
            payload.setdefault("timeInForce", TimeInForce.GTC.value)
        return payload

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def get_markets(self) -> List[MarketInfo]:
        with self.normalizing("Failed to fetch markets"):
            data = await self._request("GET", "/markets")
            return [parse_market(m) for m in _field(data, "markets")]

    async def get_ticker(self, symbol: str) -> Ticker:
        if not symbol:
            raise invalid_order_error("Symbol is required")

        with self.normalizing("Failed to fetch ticker"):
            data = await self._request("GET", f"/ticker/{symbol}")
            return parse_ticker(data)

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def get_balances(self) -> List[Balance]:
        with self.normalizing("Failed to fetch balances"):
            data = await self._request("GET", "/balances")
            return [parse_balance(b) for b in _field(data, "balances")]

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def create_order(self, params: OrderParams) -> Order:
        await self.validate_order(params)

        with self.normalizing("Failed to create order"):
            data = await self._request("POST", "/orders", self._order_payload(params))
            order = parse_order(data)
            logger.info(
                f"[{self.exchange_id}] Order created: {order.order_id} "
                f"{order.side.value} {order.quantity} {order.symbol}"
            )
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

            data = await self._request("PUT", f"/orders/{order_id}", self._order_payload(updated))
            return parse_order(data)

    async def cancel_order(self, symbol: str, order_id: str) -> bool:
        with self.normalizing("Failed to cancel order"):
            await self._request("DELETE", f"/orders/{order_id}")
            logger.info(f"[{self.exchange_id}] Order canceled: {order_id}")
            return True

    async def get_order(self, symbol: str, order_id: str) -> Order:
        with self.normalizing("Failed to fetch order"):
            data = await self._request("GET", f"/orders/{order_id}")
            return parse_order(data)

    async def get_open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        with self.normalizing("Failed to fetch open orders"):
            params = {"symbol": symbol} if symbol else {}
            data = await self._request("GET", "/orders", params)
            return [parse_order(o) for o in _field(data, "orders")]

    async def get_order_history(
        self,
        symbol: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[Order]:
        with self.normalizing("Failed to fetch order history"):
            params = {"symbol": symbol, "limit": limit}
            data = await self._request("GET", "/orders/history", params)
            return [parse_order(o) for o in _field(data, "orders")]

    # --------------------------------------------------------
    # FUNDS
    # --------------------------------------------------------

    async def withdraw(self, asset: str, address: str, amount: Decimal) -> str:
        with self.normalizing("Failed to withdraw"):
            params = {"asset": asset, "address": address, "amount": str(amount)}
            data = await self._request("POST", "/withdraw", params)
            return str(_field(data, "withdrawalId"))

    async def get_deposit_address(self, asset: str) -> str:
        with self.normalizing("Failed to get deposit address"):
            data = await self._request("GET", f"/deposit-address/{asset}")
            return str(_field(data, "address"))
