"""Tests for BinanceGateway over a mocked HTTP transport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest

from btcgrid.config import ExchangeConfig
from btcgrid.exchange.binance import BinanceGateway, binance_gateway_pool
from btcgrid.exchange.binance.signing import sign_query
from btcgrid.exchange.errors import (
    ExchangeAPIError,
    ExchangeAuthError,
    ExchangeConnectionError,
    ExchangeNotConnectedError,
    ExchangeResponseError,
    ExchangeTimeoutError,
)
from btcgrid.exchange.types import Side

Handler = Callable[[httpx.Request], httpx.Response]


def _config(**overrides: Any) -> ExchangeConfig:
    values: dict[str, Any] = {
        "testnet_api_key": "test-key",
        "testnet_secret_key": "test-secret",
    }
    values.update(overrides)
    return ExchangeConfig(**values)


def _order_json(order_id: int, side: str = "BUY", price: str = "41000.00") -> dict[str, Any]:
    return {
        "symbol": "BTCUSDT",
        "orderId": order_id,
        "price": price,
        "origQty": "0.01000000",
        "executedQty": "0.00000000",
        "status": "NEW",
        "type": "LIMIT",
        "side": side,
        "transactTime": 1700000000000,
    }


class _Recorder:
    """Collects requests and answers from a route table."""

    def __init__(self, routes: dict[tuple[str, str], Handler]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"code": -1, "msg": "no route"})
        return handler(request)


@pytest.fixture
def recorder() -> _Recorder:
    return _Recorder({})


@pytest.fixture
async def gateway(recorder: _Recorder) -> AsyncIterator[BinanceGateway]:
    gw = BinanceGateway(_config(), transport=httpx.MockTransport(recorder))
    await gw.connect()
    try:
        yield gw
    finally:
        await gw.disconnect()


class TestConnect:
    async def test_missing_keys_raise_auth_error(self) -> None:
        gw = BinanceGateway(_config(testnet_api_key=""))
        with pytest.raises(ExchangeAuthError, match="BTCGRID_EXCHANGE__TESTNET_API_KEY"):
            await gw.connect()

    async def test_production_missing_keys_names_prod_vars(self) -> None:
        gw = BinanceGateway(_config(), use_production=True)
        with pytest.raises(ExchangeAuthError, match="PROD_API_KEY"):
            await gw.connect()

    async def test_call_before_connect(self) -> None:
        gw = BinanceGateway(_config())
        with pytest.raises(ExchangeNotConnectedError):
            await gw.get_price()

    async def test_context_manager(self, recorder: _Recorder) -> None:
        recorder.routes[("GET", "/api/v3/ticker/price")] = lambda r: httpx.Response(
            200, json={"symbol": "BTCUSDT", "price": "42000.00"}
        )
        async with BinanceGateway(
            _config(), transport=httpx.MockTransport(recorder)
        ) as gw:
            assert await gw.get_price() == Decimal("42000.00")


class TestRequests:
    async def test_get_price_is_unsigned(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/ticker/price")] = lambda r: httpx.Response(
            200, json={"symbol": "BTCUSDT", "price": "42123.45"}
        )
        assert await gateway.get_price() == Decimal("42123.45")
        request = recorder.requests[0]
        assert request.url.params["symbol"] == "BTCUSDT"
        assert "signature" not in request.url.params
        assert request.headers["X-MBX-APIKEY"] == "test-key"

    async def test_signed_request_carries_valid_signature(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/openOrders")] = lambda r: httpx.Response(
            200, json=[_order_json(1), _order_json(2, side="SELL", price="43000.00")]
        )

        orders = await gateway.get_open_orders()

        assert [o.order_id for o in orders] == [1, 2]
        query = recorder.requests[0].url.query.decode()
        unsigned, _, signature = query.rpartition("&signature=")
        assert signature == sign_query(unsigned, "test-secret")
        assert "recvWindow=60000" in unsigned

    async def test_get_trades_newest_first(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        def trades(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "20"
            return httpx.Response(
                200,
                json=[
                    {"id": 1, "orderId": 10, "price": "1", "qty": "1", "time": 1},
                    {"id": 3, "orderId": 12, "price": "1", "qty": "1", "time": 3},
                    {"id": 2, "orderId": 11, "price": "1", "qty": "1", "time": 2},
                ],
            )

        recorder.routes[("GET", "/api/v3/myTrades")] = trades
        result = await gateway.get_trades(20)
        assert [t.trade_id for t in result] == [3, 2, 1]

    async def test_get_account_balances(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/account")] = lambda r: httpx.Response(
            200,
            json={
                "canTrade": True,
                "balances": [
                    {"asset": "BTC", "free": "0.01000000", "locked": "0.00500000"},
                    {"asset": "USDT", "free": "1000.00", "locked": "not-a-number"},
                ],
            },
        )

        balances = {b.asset: b for b in await gateway.get_account_balances()}

        assert balances["BTC"].total == Decimal("0.015")
        assert balances["USDT"].free == Decimal("1000")
        assert balances["USDT"].locked == Decimal("0")
        query = recorder.requests[0].url.query.decode()
        unsigned, _, signature = query.rpartition("&signature=")
        assert unsigned.startswith("timestamp=")
        assert signature == sign_query(unsigned, "test-secret")

    async def test_account_payload_must_be_object(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/account")] = lambda r: httpx.Response(
            200, json=[]
        )
        with pytest.raises(ExchangeResponseError):
            await gateway.get_account_balances()

    async def test_create_limit_order_params(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("POST", "/api/v3/order")] = lambda r: httpx.Response(
            200, json=_order_json(77, price="41915.00")
        )

        order = await gateway.create_limit_order(
            Side.BUY, Decimal("41915"), Decimal("0.01000")
        )

        assert order.order_id == 77
        params = recorder.requests[0].url.params
        assert params["type"] == "LIMIT"
        assert params["timeInForce"] == "GTC"
        assert params["price"] == "41915.00"
        assert params["quantity"] == "0.01"
        assert params["side"] == "BUY"

    async def test_create_market_order_params(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("POST", "/api/v3/order")] = lambda r: httpx.Response(
            200, json={**_order_json(78, side="SELL", price="0"), "type": "MARKET"}
        )
        await gateway.create_market_order(Side.SELL, Decimal("0.02"))
        params = recorder.requests[0].url.params
        assert params["type"] == "MARKET"
        assert "price" not in params

    async def test_modify_is_cancel_then_create(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("DELETE", "/api/v3/order")] = lambda r: httpx.Response(
            200, json={"orderId": 5, "status": "CANCELED"}
        )
        recorder.routes[("POST", "/api/v3/order")] = lambda r: httpx.Response(
            200, json=_order_json(6, price="41500.00")
        )

        new_order = await gateway.modify_order(5, Side.BUY, Decimal("41500"), Decimal("0.01"))

        assert new_order.order_id == 6
        assert [r.method for r in recorder.requests] == ["DELETE", "POST"]
        assert recorder.requests[0].url.params["orderId"] == "5"

    async def test_modify_does_not_recreate_when_cancel_fails(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("DELETE", "/api/v3/order")] = lambda r: httpx.Response(
            400, json={"code": -2011, "msg": "Unknown order sent."}
        )

        with pytest.raises(ExchangeAPIError) as exc_info:
            await gateway.modify_order(5, Side.BUY, Decimal("41500"), Decimal("0.01"))

        assert exc_info.value.is_unknown_order
        assert [r.method for r in recorder.requests] == ["DELETE"]


class TestErrorTranslation:
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors(
        self, gateway: BinanceGateway, recorder: _Recorder, status: int
    ) -> None:
        recorder.routes[("GET", "/api/v3/openOrders")] = lambda r: httpx.Response(
            status, json={"code": -2015, "msg": "Invalid API-key"}
        )
        with pytest.raises(ExchangeAuthError):
            await gateway.get_open_orders()

    async def test_business_error(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("POST", "/api/v3/order")] = lambda r: httpx.Response(
            400, json={"code": -2010, "msg": "Account has insufficient balance."}
        )
        with pytest.raises(ExchangeAPIError) as exc_info:
            await gateway.create_limit_order(Side.BUY, Decimal("1"), Decimal("1"))
        assert exc_info.value.code == -2010
        assert exc_info.value.status_code == 400
        assert not exc_info.value.is_unknown_order

    async def test_non_json_error_body(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/openOrders")] = lambda r: httpx.Response(
            502, text="Bad Gateway"
        )
        with pytest.raises(ExchangeAPIError) as exc_info:
            await gateway.get_open_orders()
        assert exc_info.value.message == "Bad Gateway"

    async def test_non_json_success_body(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/ticker/price")] = lambda r: httpx.Response(
            200, text="<html>"
        )
        with pytest.raises(ExchangeResponseError):
            await gateway.get_price()

    async def test_unexpected_shape(
        self, gateway: BinanceGateway, recorder: _Recorder
    ) -> None:
        recorder.routes[("GET", "/api/v3/openOrders")] = lambda r: httpx.Response(
            200, content=json.dumps({"orders": []})
        )
        with pytest.raises(ExchangeResponseError, match="list"):
            await gateway.get_open_orders()

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        async with BinanceGateway(_config(), transport=httpx.MockTransport(handler)) as gw:
            with pytest.raises(ExchangeTimeoutError):
                await gw.get_price()

    async def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with BinanceGateway(_config(), transport=httpx.MockTransport(handler)) as gw:
            with pytest.raises(ExchangeConnectionError):
                await gw.get_price()


class TestGatewayPool:
    def test_testnet_only_without_production_keys(self) -> None:
        pool = binance_gateway_pool(_config())
        assert not pool.has_production
        with pytest.raises(ExchangeAuthError):
            pool.for_environment(True)

    def test_production_with_keys(self) -> None:
        pool = binance_gateway_pool(
            _config(prod_api_key="prod-key", prod_secret_key="prod-secret")
        )
        assert pool.has_production
        gateway = pool.for_environment(True)
        assert isinstance(gateway, BinanceGateway)
        assert gateway.environment == "production"
