"""
REST Exchange Adapter Tests.

============================================================
PURPOSE
============================================================
Integration tests for the Hyperliquid, Paradex and Backpack
adapters against a local fake exchange.

TEST CATEGORIES:
- Signing
- Market data and account
- Order lifecycle
- Error mapping
- Response parsing

============================================================
"""

import base64
import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from aiohttp.test_utils import unused_port

from unified_exchange import (
    BackpackExchange,
    ErrorKind,
    ExchangeError,
    HyperliquidExchange,
    OrderParams,
    OrderSide,
    OrderStatus,
    OrderType,
    ParadexExchange,
    TimeInForce,
)
from unified_exchange.adapters import parse_balance, parse_order


REST_EXCHANGES = [HyperliquidExchange, ParadexExchange, BackpackExchange]


@pytest.fixture(params=REST_EXCHANGES, ids=lambda cls: cls.__name__)
async def exchange(request, fake_exchange):
    adapter = request.param("test-api-key", "test-api-secret", base_url=fake_exchange.base_url)
    async with adapter:
        yield adapter


def limit_buy(**overrides) -> OrderParams:
    params = dict(
        symbol="BTC-USDT",
        side=OrderSide.BUY,
        type=OrderType.LIMIT,
        quantity=Decimal("0.1"),
        price=Decimal("50000"),
    )
    params.update(overrides)
    return OrderParams(**params)


def hmac_sha256(secret: str, message: str) -> bytes:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()


# ============================================================
# CONSTRUCTION & SIGNING
# ============================================================

class TestConstruction:
    """Tests for adapter construction."""

    @pytest.mark.parametrize("exchange_class", REST_EXCHANGES)
    @pytest.mark.parametrize("key,secret", [("", "secret"), ("key", ""), (None, None)])
    def test_missing_credentials(self, exchange_class, key, secret):
        with pytest.raises(ExchangeError) as exc_info:
            exchange_class(key, secret)

        assert exc_info.value.kind == ErrorKind.AUTHENTICATION
        assert exc_info.value.message == "API key and secret are required"

    @pytest.mark.parametrize("exchange_class,exchange_id", [
        (HyperliquidExchange, "hyperliquid"),
        (ParadexExchange, "paradex"),
        (BackpackExchange, "backpack"),
    ])
    def test_defaults(self, exchange_class, exchange_id):
        adapter = exchange_class("key", "secret")

        assert adapter.exchange_id == exchange_id
        assert adapter.base_url == exchange_class.DEFAULT_BASE_URL
        assert not adapter.is_connected

    def test_base_url_trailing_slash_dropped(self):
        adapter = HyperliquidExchange("key", "secret", base_url="http://localhost:8080/v1/")

        assert adapter.base_url == "http://localhost:8080/v1"


class TestSigning:
    """Tests for exchange specific request signatures."""

    def test_hyperliquid_hex_signature(self):
        adapter = HyperliquidExchange("key", "secret")

        signature = adapter.sign_request("/orders", {"symbol": "BTC-USDT"}, "1700000000000")

        expected = hmac_sha256("secret", '1700000000000/orders{"symbol":"BTC-USDT"}').hex()
        assert signature == expected

    def test_paradex_base64_signature_sorts_keys(self):
        adapter = ParadexExchange("key", "secret")

        signature = adapter.sign_request("/orders", {"side": "buy", "amount": "1"}, "1700000000000")

        message = '1700000000000/orders{"amount":"1","side":"buy"}'
        assert signature == base64.b64encode(hmac_sha256("secret", message)).decode()

    def test_backpack_query_style_signature(self):
        adapter = BackpackExchange("key", "secret")

        signature = adapter.sign_request(
            "/orders/history",
            {"symbol": "BTC-USDT", "limit": 5, "cursor": None},
            "1700000000000",
        )

        message = "/orders/history&limit=5&symbol=BTC-USDT&timestamp=1700000000000"
        assert signature == hmac_sha256("secret", message).hex()

    @pytest.mark.parametrize("exchange_class", REST_EXCHANGES)
    def test_signature_bound_to_secret_and_timestamp(self, exchange_class):
        first = exchange_class("key", "secret-a")
        second = exchange_class("key", "secret-b")

        assert first.sign_request("/balances", {}, "1") != second.sign_request("/balances", {}, "1")
        assert first.sign_request("/balances", {}, "1") != first.sign_request("/balances", {}, "2")

    def test_headers_use_exchange_prefix(self):
        adapter = BackpackExchange("key", "secret")

        headers = adapter._headers("/balances")

        assert headers["BP-API-Key"] == "key"
        assert headers["BP-Timestamp"].isdigit()
        assert headers["BP-Signature"] == adapter.sign_request("/balances", {}, headers["BP-Timestamp"])


# ============================================================
# MARKET DATA & ACCOUNT
# ============================================================

class TestMarketData:
    """Tests for markets, tickers and balances."""

    @pytest.mark.asyncio
    async def test_get_markets(self, exchange):
        markets = await exchange.get_markets()

        assert len(markets) == 1
        assert markets[0].symbol == "BTC-USDT"
        assert markets[0].base_precision == 8
        assert markets[0].min_order_size == Decimal("0.0001")

    @pytest.mark.asyncio
    async def test_get_ticker(self, exchange):
        ticker = await exchange.get_ticker("BTC-USDT")

        assert ticker.last_price == Decimal("50000")
        assert ticker.bid_price < ticker.ask_price
        assert ticker.volume_24h == Decimal("1000")

    @pytest.mark.asyncio
    async def test_get_ticker_requires_symbol(self, exchange, fake_exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.get_ticker("")

        assert exc_info.value.message == "Symbol is required"
        assert fake_exchange.calls("GET", "/ticker") == []

    @pytest.mark.asyncio
    async def test_get_ticker_invalid_symbol(self, exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.get_ticker("DOGE-EUR")

        assert exc_info.value.kind == ErrorKind.INVALID_ORDER

    @pytest.mark.asyncio
    async def test_get_current_price(self, exchange):
        assert await exchange.get_current_price("BTC-USDT") == Decimal("50000")

    @pytest.mark.asyncio
    async def test_get_balances(self, exchange):
        balances = {b.asset: b for b in await exchange.get_balances()}

        assert balances["BTC"].free == Decimal("1.0")
        assert balances["USDT"].locked == Decimal("1000.0")
        assert balances["USDT"].total == Decimal("6000.0")

    @pytest.mark.asyncio
    async def test_get_balance_missing_asset(self, exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.get_balance("ETH")

        assert exc_info.value.message == "Balance not found for asset ETH"

    @pytest.mark.asyncio
    async def test_get_balance_is_repeatable(self, exchange):
        first = await exchange.get_balance("USDT")
        second = await exchange.get_balance("USDT")

        assert first == second
        assert first.free == Decimal("5000.0")
        assert first.total == Decimal("6000.0")


# ============================================================
# ORDER LIFECYCLE
# ============================================================

class TestOrders:
    """Tests for order operations."""

    @pytest.mark.asyncio
    async def test_create_limit_order(self, exchange):
        order = await exchange.create_order(limit_buy())

        assert order.order_id.startswith("test-order-")
        assert order.side == OrderSide.BUY
        assert order.type == OrderType.LIMIT
        assert order.quantity == Decimal("0.1")
        assert order.price == Decimal("50000")
        assert order.status == OrderStatus.NEW
        assert order.time_in_force == TimeInForce.GTC

    @pytest.mark.asyncio
    async def test_create_market_order_has_no_price(self, exchange):
        order = await exchange.create_order(
            limit_buy(type=OrderType.MARKET, price=None, quantity=Decimal("0.05"))
        )

        assert order.type == OrderType.MARKET
        assert order.price is None

    @pytest.mark.asyncio
    async def test_invalid_order_never_reaches_exchange(self, exchange, fake_exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.create_order(limit_buy(price=None))

        assert exc_info.value.kind == ErrorKind.INVALID_ORDER
        assert fake_exchange.calls("POST", "/orders") == []

    @pytest.mark.asyncio
    async def test_insufficient_funds_never_reaches_exchange(self, exchange, fake_exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.create_order(limit_buy(quantity=Decimal("10000")))

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert fake_exchange.calls("POST", "/orders") == []

    @pytest.mark.asyncio
    async def test_exchange_side_insufficient_funds(self, exchange):
        # Modification skips the local balance check
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.modify_order("BTC-USDT", "order-1", {"quantity": Decimal("10")})

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_FUNDS

    @pytest.mark.asyncio
    async def test_modify_order(self, exchange, fake_exchange):
        order = await exchange.modify_order("BTC-USDT", "order-1", {"price": Decimal("49000")})

        assert order.order_id == "order-1"
        assert order.price == Decimal("49000")
        assert fake_exchange.calls("PUT", "/orders/order-1")

    @pytest.mark.asyncio
    async def test_modify_rejects_unknown_field(self, exchange, fake_exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.modify_order("BTC-USDT", "order-1", {"reduceOnly": True})

        assert exc_info.value.kind == ErrorKind.INVALID_ORDER
        assert fake_exchange.calls("PUT") == []

    @pytest.mark.asyncio
    async def test_cancel_order(self, exchange, fake_exchange):
        assert await exchange.cancel_order("BTC-USDT", "order-1") is True
        assert fake_exchange.calls("DELETE", "/orders/order-1")

    @pytest.mark.asyncio
    async def test_get_order(self, exchange):
        order = await exchange.get_order("BTC-USDT", "order-7")

        assert order.order_id == "order-7"
        assert order.remaining_quantity == Decimal("0.1")

    @pytest.mark.asyncio
    async def test_get_missing_order(self, exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.get_order("BTC-USDT", "non-existent-id")

        assert exc_info.value.kind == ErrorKind.INVALID_ORDER
        assert exc_info.value.message == "Order not found"

    @pytest.mark.asyncio
    async def test_get_open_orders(self, exchange):
        orders = await exchange.get_open_orders("BTC-USDT")

        assert [o.order_id for o in orders] == ["open-1"]

    @pytest.mark.asyncio
    async def test_order_history_respects_limit(self, exchange):
        orders = await exchange.get_order_history("BTC-USDT", limit=3)

        assert len(orders) == 3
        assert all(o.status == OrderStatus.FILLED for o in orders)

    @pytest.mark.asyncio
    async def test_order_history_default_limit(self, exchange):
        orders = await exchange.get_order_history()

        assert len(orders) == 5

    @pytest.mark.asyncio
    async def test_order_history_signs_what_it_sends(self, exchange, fake_exchange):
        exchange.sign_request = MagicMock(wraps=exchange.sign_request)

        await exchange.get_order_history()

        path, signed_params, _ = exchange.sign_request.call_args.args
        assert path == "/orders/history"
        assert signed_params == {"limit": 50}
        assert fake_exchange.queries["/orders/history"] == {"limit": "50"}


# ============================================================
# ORDER CLOSING
# ============================================================

class TestClosing:
    """Tests for closing orders through the REST adapters."""

    @pytest.mark.asyncio
    async def test_close_market(self, exchange, fake_exchange):
        closing = await exchange.close_order_market("BTC-USDT", "order-1")

        assert closing.side == OrderSide.SELL
        assert closing.type == OrderType.MARKET
        assert closing.quantity == Decimal("0.1")
        assert fake_exchange.calls("DELETE", "/orders/order-1")

    @pytest.mark.asyncio
    async def test_close_limit(self, exchange):
        closing = await exchange.close_order_limit("BTC-USDT", "order-1", Decimal("51000"))

        assert closing.side == OrderSide.SELL
        assert closing.price == Decimal("51000")
        assert closing.time_in_force == TimeInForce.GTC

    @pytest.mark.asyncio
    async def test_close_missing_order(self, exchange, fake_exchange):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.close_order_market("BTC-USDT", "non-existent-id")

        assert exc_info.value.message == "Order not found"
        assert fake_exchange.calls("DELETE") == []
        assert fake_exchange.calls("POST") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order_id", ["null-id", "missing-id"])
    async def test_close_order_without_id(self, exchange, fake_exchange, order_id):
        with pytest.raises(ExchangeError) as exc_info:
            await exchange.close_order_market("BTC-USDT", order_id)

        assert exc_info.value.kind == ErrorKind.INVALID_ORDER
        assert exc_info.value.message == "Order not found"
        assert fake_exchange.calls("DELETE") == []
        assert fake_exchange.calls("POST") == []


# ============================================================
# FUNDS
# ============================================================

class TestFunds:
    """Tests for withdrawals and deposit addresses."""

    @pytest.mark.asyncio
    async def test_withdraw(self, exchange):
        assert await exchange.withdraw("BTC", "bc1-address", Decimal("0.5")) == "wd-1"

    @pytest.mark.asyncio
    async def test_deposit_address(self, exchange):
        assert await exchange.get_deposit_address("BTC") == "addr-btc"


# ============================================================
# ERROR MAPPING
# ============================================================

class TestErrorMapping:
    """Tests for transport level failures through the adapters."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exchange_class", REST_EXCHANGES)
    async def test_invalid_credentials(self, exchange_class, fake_exchange):
        adapter = exchange_class("invalid-key", "secret", base_url=fake_exchange.base_url)

        with pytest.raises(ExchangeError) as exc_info:
            await adapter.get_balances()

        assert exc_info.value.kind == ErrorKind.AUTHENTICATION
        assert exc_info.value.http_status == 401

    @pytest.mark.asyncio
    async def test_network_error(self):
        adapter = HyperliquidExchange("key", "secret", base_url=f"http://127.0.0.1:{unused_port()}")

        with pytest.raises(ExchangeError) as exc_info:
            await adapter.get_markets()

        assert exc_info.value.kind == ErrorKind.EXCHANGE
        assert exc_info.value.code == "NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_works_without_connect(self, fake_exchange):
        adapter = ParadexExchange("key", "secret", base_url=fake_exchange.base_url)

        assert not adapter.is_connected
        assert await adapter.get_current_price("BTC-USDT") == Decimal("50000")

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, fake_exchange):
        adapter = BackpackExchange("key", "secret", base_url=fake_exchange.base_url)

        async with adapter:
            assert adapter.is_connected

        assert not adapter.is_connected


# ============================================================
# RESPONSE PARSING
# ============================================================

class TestParsing:
    """Tests for wire format parsing."""

    def test_parse_order_normalizes_case(self):
        order = parse_order({
            "orderId": 42,
            "symbol": "BTC-USDT",
            "side": "SELL",
            "type": "LIMIT",
            "quantity": "1",
            "price": "100",
            "status": "PARTIALLY_FILLED",
            "timeInForce": "ioc",
        })

        assert order.order_id == "42"
        assert order.side == OrderSide.SELL
        assert order.status == OrderStatus.PARTIALLY_FILLED
        assert order.time_in_force == TimeInForce.IOC
        assert order.filled_quantity == Decimal("0")

    def test_parse_market_order_drops_price(self):
        order = parse_order({
            "orderId": "m-1",
            "symbol": "BTC-USDT",
            "side": "buy",
            "type": "market",
            "quantity": "1",
            "price": "50000",
            "status": "filled",
        })

        assert order.price is None
        assert order.time_in_force == TimeInForce.GTC
        assert order.is_terminal

    def test_parse_balance_prefers_available(self):
        balance = parse_balance({"asset": "BTC", "available": "0.7", "free": "0.9", "locked": "0.3", "total": "1"})

        assert balance.free == Decimal("0.7")

    @pytest.mark.parametrize("missing", ["type", "side", "status", "symbol"])
    def test_parse_order_requires_core_fields(self, missing):
        data = {
            "orderId": "x",
            "symbol": "BTC-USDT",
            "side": "buy",
            "type": "limit",
            "quantity": "1",
            "price": "100",
            "status": "new",
        }
        del data[missing]

        with pytest.raises(ExchangeError) as exc_info:
            parse_order(data)

        assert exc_info.value.code == "INVALID_RESPONSE"

    def test_parse_order_null_id_is_empty(self):
        order = parse_order({
            "orderId": None,
            "symbol": "BTC-USDT",
            "side": "buy",
            "type": "limit",
            "quantity": "1",
            "price": "100",
            "status": "new",
        })

        assert order.order_id == ""

    def test_parse_order_rejects_bad_numbers(self):
        with pytest.raises(ExchangeError) as exc_info:
            parse_order({
                "orderId": "x",
                "symbol": "BTC-USDT",
                "side": "buy",
                "type": "limit",
                "quantity": "lots",
                "status": "new",
            })

        assert exc_info.value.code == "INVALID_RESPONSE"

    def test_order_payload_defaults_gtc_for_limit(self):
        payload = HyperliquidExchange._order_payload(limit_buy())

        assert payload == {
            "symbol": "BTC-USDT",
            "side": "buy",
            "type": "limit",
            "quantity": "0.1",
            "price": "50000",
            "timeInForce": "GTC",
        }
        assert json.loads(json.dumps(payload)) == payload
