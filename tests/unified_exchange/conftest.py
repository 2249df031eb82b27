"""
Shared fixtures: an in-process fake exchange REST API.

The fake speaks the JSON wire format of the REST adapters and
accepts the header prefixes of every supported exchange.
"""

import asyncio
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from unified_exchange.adapters import MockConfig, MockExchange


HEADER_PREFIXES = ("HL-", "X-", "BP-")


def _order_json(order_id: Optional[str], **overrides: Any) -> Dict[str, Any]:
    order = {
        "orderId": order_id,
        "symbol": "BTC-USDT",
        "side": "buy",
        "type": "limit",
        "quantity": "0.1",
        "price": "50000",
        "status": "new",
        "filledQuantity": "0",
        "remainingQuantity": "0.1",
        "avgPrice": "0",
        "timestamp": int(time.time() * 1000),
        "timeInForce": "GTC",
    }
    order.update(overrides)
    return order


class FakeExchange:
    """Fake exchange API recording every request it receives."""

    def __init__(self):
        self.requests: List[Tuple[str, str]] = []
        self.queries: Dict[str, Dict[str, str]] = {}
        self.base_url = ""
        self._order_seq = 0

        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self.handle)

    def calls(self, method: str, path_prefix: str = "") -> List[Tuple[str, str]]:
        return [r for r in self.requests if r[0] == method and r[1].startswith(path_prefix)]

    @staticmethod
    def _error(status: int, message: str, code: str) -> web.Response:
        return web.json_response({"error": message, "code": code}, status=status)

    @staticmethod
    def _prefix(request: web.Request) -> Optional[str]:
        for prefix in HEADER_PREFIXES:
            if f"{prefix}API-Key" in request.headers:
                return prefix
        return None

    async def handle(self, request: web.Request) -> web.StreamResponse:
        method, path = request.method, request.path
        self.requests.append((method, path))
        self.queries[path] = dict(request.query)

        if path == "/echo":
            body = await request.json() if request.can_read_body else None
            return web.json_response({"query": dict(request.query), "body": body})
        if path == "/not-json":
            return web.Response(text="<html>oops</html>", content_type="text/html")
        if path == "/server-error":
            return web.json_response({"error": "Maintenance", "code": "MAINTENANCE"}, status=503)
        if path == "/empty":
            return web.Response(status=200)
        if path == "/slow":
            await asyncio.sleep(0.5)
            return web.json_response({})

        prefix = self._prefix(request)
        if prefix is None:
            return self._error(401, "Missing API key", "AUTH_ERROR")
        if request.headers[f"{prefix}API-Key"] == "invalid-key":
            return self._error(401, "Authentication failed", "AUTH_ERROR")
        if not request.headers.get(f"{prefix}Signature"):
            return self._error(401, "Invalid signature", "AUTH_ERROR")

        if path.startswith("/orders") and method in ("POST", "PUT"):
            return await self._submit_order(request)

        if path == "/orders/history":
            limit = int(request.query.get("limit") or 50)
            orders = [
                _order_json(
                    f"test-order-history-{i + 1}",
                    status="filled",
                    filledQuantity="0.1",
                    remainingQuantity="0",
                    avgPrice="50000",
                )
                for i in range(min(limit, 5))
            ]
            return web.json_response({"orders": orders})

        if path.startswith("/orders/") and method == "GET":
            order_id = path.rsplit("/", 1)[-1]
            if order_id == "non-existent-id":
                return self._error(404, "Order not found", "NOT_FOUND")
            if order_id == "null-id":
                return web.json_response(_order_json(None))
            if order_id == "missing-id":
                order = _order_json(order_id)
                del order["orderId"]
                return web.json_response(order)
            return web.json_response(_order_json(order_id))

        if path.startswith("/orders/") and method == "DELETE":
            return web.json_response({"success": True})

        if path == "/orders" and method == "GET":
            return web.json_response({"orders": [_order_json("open-1")]})

        if path == "/balances":
            return web.json_response({"balances": [
                {"asset": "BTC", "free": "1.0", "locked": "0.1", "total": "1.1"},
                {"asset": "USDT", "free": "5000.0", "locked": "1000.0", "total": "6000.0"},
            ]})

        if path == "/markets":
            return web.json_response({"markets": [{
                "symbol": "BTC-USDT",
                "basePrecision": 8,
                "quotePrecision": 2,
                "minOrderSize": 0.0001,
                "maxOrderSize": 100,
            }]})

        if path.startswith("/ticker"):
            if path != "/ticker/BTC-USDT":
                return self._error(400, "Invalid symbol", "INVALID_SYMBOL")
            return web.json_response({
                "symbol": "BTC-USDT",
                "lastPrice": "50000",
                "bidPrice": "49900",
                "askPrice": "50100",
                "volume": "1000",
                "timestamp": int(time.time() * 1000),
            })

        if path == "/withdraw" and method == "POST":
            return web.json_response({"withdrawalId": "wd-1"})

        if path.startswith("/deposit-address/"):
            asset = path.rsplit("/", 1)[-1]
            return web.json_response({"address": f"addr-{asset.lower()}"})

        return self._error(404, "Resource not found", "NOT_FOUND")

    async def _submit_order(self, request: web.Request) -> web.Response:
        body = await request.json()
        quantity = Decimal(body.get("quantity") or "0")

        if quantity >= 10:
            return self._error(400, "Insufficient funds", "INSUFFICIENT_FUNDS")

        price = body.get("price")
        if (
            not body.get("symbol") or not body.get("side") or not body.get("type")
            or quantity <= 0
            or (body["type"] == "limit" and (not price or Decimal(price) <= 0))
        ):
            return self._error(400, "Invalid order parameters", "INVALID_ORDER")

        if request.method == "PUT":
            order_id = request.path.rsplit("/", 1)[-1]
        else:
            self._order_seq += 1
            order_id = f"test-order-{self._order_seq}"

        return web.json_response(_order_json(
            order_id,
            symbol=body["symbol"],
            side=body["side"],
            type=body["type"],
            quantity=body["quantity"],
            price=None if body["type"] == "market" else (price or "50000"),
            remainingQuantity=body["quantity"],
            timeInForce=body.get("timeInForce") or "GTC",
        ))


@pytest.fixture
async def fake_exchange():
    """Running fake exchange; `base_url` points at it."""
    fake = FakeExchange()
    server = TestServer(fake.app)
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    try:
        yield fake
    finally:
        await server.close()


@pytest.fixture
def mock_exchange() -> MockExchange:
    """Mock exchange with 1 BTC, 5000 USDT and BTC-USDT at 50000."""
    return MockExchange(config=MockConfig())
