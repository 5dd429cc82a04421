"""BinanceGateway -- ExchangeGateway over the Binance spot REST API.

One instance per environment (testnet or production). All HTTP and
decoding failures are translated into the ExchangeError hierarchy here,
so callers never see httpx exceptions.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Self

import httpx
import structlog

from btcgrid.config import ExchangeConfig
from btcgrid.exchange.binance.mappers import (
    binance_account_to_balances,
    binance_order_to_order,
    binance_price_to_decimal,
    binance_trade_to_trade,
    format_price,
    format_quantity,
)
from btcgrid.exchange.binance.signing import build_signed_query
from btcgrid.exchange.errors import (
    ExchangeAPIError,
    ExchangeAuthError,
    ExchangeConnectionError,
    ExchangeNotConnectedError,
    ExchangeResponseError,
    ExchangeTimeoutError,
)
from btcgrid.exchange.pool import GatewayPool
from btcgrid.exchange.types import Balance, Order, Side, Trade
from btcgrid.utils.time import now_ms

logger = structlog.get_logger()

_API_KEY_HEADER = "X-MBX-APIKEY"


class BinanceGateway:
    """ExchangeGateway implementation backed by httpx.

    Public endpoints (ticker price) are unsigned; account and order
    endpoints are signed with the environment's secret key.
    """

    def __init__(
        self,
        config: ExchangeConfig,
        use_production: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._use_production = use_production
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lifecycle_lock = asyncio.Lock()

        if use_production:
            self._api_key = config.prod_api_key
            self._secret_key = config.prod_secret_key
            self._base_url = config.prod_base_url
        else:
            self._api_key = config.testnet_api_key
            self._secret_key = config.testnet_secret_key
            self._base_url = config.testnet_base_url

    @property
    def environment(self) -> str:
        return "production" if self._use_production else "testnet"

    async def connect(self) -> None:
        """Validate credentials are present and open the HTTP client."""
        async with self._lifecycle_lock:
            if self._client is not None:
                logger.warning("binance_gateway_already_connected")
                return

            if not self._api_key or not self._secret_key:
                prefix = "PROD" if self._use_production else "TESTNET"
                raise ExchangeAuthError(
                    f"{self.environment} API keys are not configured. "
                    f"Set BTCGRID_EXCHANGE__{prefix}_API_KEY and "
                    f"BTCGRID_EXCHANGE__{prefix}_SECRET_KEY.",
                )

            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._config.timeout_seconds,
                headers={_API_KEY_HEADER: self._api_key},
                transport=self._transport,
            )
            logger.info("binance_gateway_connected", environment=self.environment)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        async with self._lifecycle_lock:
            if self._client is None:
                return
            await self._client.aclose()
            self._client = None
            logger.info("binance_gateway_disconnected", environment=self.environment)

    async def get_price(self) -> Decimal:
        payload = await self._request(
            "GET",
            "/api/v3/ticker/price",
            {"symbol": self._config.symbol},
            signed=False,
        )
        return binance_price_to_decimal(payload)

    async def get_open_orders(self) -> list[Order]:
        payload = await self._request(
            "GET",
            "/api/v3/openOrders",
            {"symbol": self._config.symbol},
        )
        return [binance_order_to_order(o) for o in self._expect_list(payload)]

    async def get_trades(self, limit: int) -> list[Trade]:
        payload = await self._request(
            "GET",
            "/api/v3/myTrades",
            {"symbol": self._config.symbol, "limit": str(limit)},
        )
        trades = [binance_trade_to_trade(t) for t in self._expect_list(payload)]
        # Binance returns oldest first; the protocol promises newest first.
        trades.sort(key=lambda t: t.trade_id, reverse=True)
        return trades

    async def get_account_balances(self) -> list[Balance]:
        payload = await self._request("GET", "/api/v3/account", {})
        if not isinstance(payload, dict):
            raise ExchangeResponseError(
                f"Expected a JSON object, got {type(payload).__name__}"
            )
        return binance_account_to_balances(payload)

    async def cancel_order(self, order_id: int) -> None:
        await self._request(
            "DELETE",
            "/api/v3/order",
            {"symbol": self._config.symbol, "orderId": str(order_id)},
        )
        logger.info("order_canceled", order_id=order_id, environment=self.environment)

    async def create_limit_order(
        self,
        side: Side,
        price: Decimal,
        qty: Decimal,
    ) -> Order:
        payload = await self._request(
            "POST",
            "/api/v3/order",
            {
                "symbol": self._config.symbol,
                "side": side.value,
                "type": "LIMIT",
                "timeInForce": "GTC",
                "quantity": format_quantity(qty),
                "price": format_price(price),
            },
        )
        order = binance_order_to_order(payload)
        logger.info(
            "limit_order_created",
            order_id=order.order_id,
            side=side.value,
            price=str(price),
            qty=str(qty),
            environment=self.environment,
        )
        return order

    async def create_market_order(self, side: Side, qty: Decimal) -> Order:
        payload = await self._request(
            "POST",
            "/api/v3/order",
            {
                "symbol": self._config.symbol,
                "side": side.value,
                "type": "MARKET",
                "quantity": format_quantity(qty),
            },
        )
        order = binance_order_to_order(payload)
        logger.info(
            "market_order_created",
            order_id=order.order_id,
            side=side.value,
            qty=str(qty),
            environment=self.environment,
        )
        return order

    async def modify_order(
        self,
        order_id: int,
        side: Side,
        new_price: Decimal,
        qty: Decimal,
    ) -> Order:
        """Cancel then recreate. If the cancel fails nothing is recreated."""
        await self.cancel_order(order_id)
        return await self.create_limit_order(side, new_price, qty)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.disconnect()

    # --- Internal helpers ---

    def _require_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ExchangeNotConnectedError("Not connected. Call connect() first.")
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str],
        signed: bool = True,
    ) -> Any:
        client = self._require_connected()

        if signed:
            query = build_signed_query(
                params,
                self._secret_key,
                timestamp_ms=now_ms(),
                recv_window_ms=self._config.recv_window_ms,
            )
            url = f"{path}?{query}"
            request_params = None
        else:
            url = path
            request_params = params

        try:
            response = await client.request(method, url, params=request_params)
        except httpx.TimeoutException as e:
            raise ExchangeTimeoutError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise ExchangeConnectionError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            self._handle_error_response(response)

        try:
            return response.json()
        except ValueError as e:
            raise ExchangeResponseError(
                f"{method} {path} returned non-JSON body: {response.text[:200]!r}"
            ) from e

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Translate an HTTP error response into our error hierarchy."""
        status = response.status_code
        try:
            body = response.json()
            code = int(body.get("code", 0))
            message = str(body.get("msg", response.text))
        except (ValueError, TypeError, AttributeError):
            code = 0
            message = response.text

        if status in (401, 403):
            raise ExchangeAuthError(f"Authentication failed ({status}): {message}")
        raise ExchangeAPIError(status, code, message)

    @staticmethod
    def _expect_list(payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            raise ExchangeResponseError(f"Expected a JSON list, got {type(payload).__name__}")
        return payload


def binance_gateway_pool(config: ExchangeConfig) -> GatewayPool:
    """Build the gateway pool for every configured environment.

    Testnet is always present; production only when both keys are set.
    """
    production = (
        BinanceGateway(config, use_production=True)
        if config.has_production_keys
        else None
    )
    return GatewayPool(
        testnet=BinanceGateway(config, use_production=False),
        production=production,
    )
