"""GatewayPool -- one connected gateway per exchange environment.

Trailing orders remember whether they were placed on testnet or
production; the pool hands back the gateway for that environment.
"""

from __future__ import annotations

from typing import Self

import structlog

from btcgrid.exchange.errors import ExchangeAuthError
from btcgrid.exchange.gateway import ExchangeGateway

log = structlog.get_logger()


class GatewayPool:
    """Testnet gateway (always present) plus an optional production one."""

    def __init__(
        self,
        testnet: ExchangeGateway,
        production: ExchangeGateway | None = None,
    ) -> None:
        self._testnet = testnet
        self._production = production

    @property
    def default(self) -> ExchangeGateway:
        """Gateway used for market data and fill detection."""
        return self._testnet

    @property
    def has_production(self) -> bool:
        return self._production is not None

    def for_environment(self, use_production: bool) -> ExchangeGateway:
        """Resolve the gateway for an environment.

        Raises:
            ExchangeAuthError: production requested but not configured.
        """
        if not use_production:
            return self._testnet
        if self._production is None:
            raise ExchangeAuthError("Production API keys are not configured")
        return self._production

    async def connect(self) -> None:
        await self._testnet.connect()
        if self._production is not None:
            await self._production.connect()
        log.info("gateway_pool_connected", production=self.has_production)

    async def disconnect(self) -> None:
        if self._production is not None:
            await self._production.disconnect()
        await self._testnet.disconnect()

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
