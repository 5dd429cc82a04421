"""Shared test fixtures for btcgrid."""

from __future__ import annotations

import contextlib
import os
from collections.abc import AsyncIterator
from decimal import Decimal
from typing import Any

import pytest

from btcgrid.exchange.fake import FakeExchangeGateway
from btcgrid.exchange.pool import GatewayPool
from btcgrid.trailing.registry import TrailingOrderRegistry


@pytest.fixture
def fake_gateway() -> FakeExchangeGateway:
    return FakeExchangeGateway(price=Decimal("42000"))


@pytest.fixture
def pool(fake_gateway: FakeExchangeGateway) -> GatewayPool:
    """Pool with the fake as the testnet gateway and no production."""
    return GatewayPool(testnet=fake_gateway)


@pytest.fixture
def registry() -> TrailingOrderRegistry:
    return TrailingOrderRegistry()


@pytest.fixture
def binance_testnet_config() -> Any:
    """Exchange config for the Binance spot testnet from environment variables.

    Skips the test if API keys are not set.
    """
    from btcgrid.config import ExchangeConfig

    api_key = os.environ.get("BTCGRID_EXCHANGE__TESTNET_API_KEY", "")
    secret_key = os.environ.get("BTCGRID_EXCHANGE__TESTNET_SECRET_KEY", "")

    if not api_key or not secret_key:
        pytest.skip(
            "Binance testnet keys not set. Set BTCGRID_EXCHANGE__TESTNET_API_KEY "
            "and BTCGRID_EXCHANGE__TESTNET_SECRET_KEY.",
        )

    return ExchangeConfig(testnet_api_key=api_key, testnet_secret_key=secret_key)


@pytest.fixture
async def binance_gateway(binance_testnet_config: Any) -> AsyncIterator[Any]:
    """Connected testnet BinanceGateway. Cancels open orders on teardown."""
    from btcgrid.exchange.binance import BinanceGateway
    from btcgrid.exchange.errors import ExchangeError

    gateway = BinanceGateway(binance_testnet_config)
    await gateway.connect()
    try:
        yield gateway
    finally:
        with contextlib.suppress(ExchangeError):
            for order in await gateway.get_open_orders():
                with contextlib.suppress(ExchangeError):
                    await gateway.cancel_order(order.order_id)
        await gateway.disconnect()
