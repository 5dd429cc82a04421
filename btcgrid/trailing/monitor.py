"""TrailingMonitor -- periodic repricing of trailing orders.

Each cycle: fetch the market price once, advance every reference price
and collect orders outside the deadband (one write section), then
reprice each candidate on the exchange with the lock released.
"""

from __future__ import annotations

import asyncio
import contextlib
from decimal import Decimal

import structlog

from btcgrid.exchange.errors import ExchangeAPIError, ExchangeError
from btcgrid.exchange.pool import GatewayPool
from btcgrid.trailing.registry import TrailingOrderRegistry
from btcgrid.trailing.types import (
    DEFAULT_DEADBAND,
    RepriceCandidate,
    TrailingCycleResult,
)
from btcgrid.utils.logging import new_correlation_id

log = structlog.get_logger()

DEFAULT_INTERVAL_SECONDS = 10.0


class TrailingMonitor:
    """Control loop that keeps trailing orders near their target price.

    Market data comes from the pool's default gateway; reprices go
    through the gateway of the environment each order was placed on.
    """

    def __init__(
        self,
        pool: GatewayPool,
        registry: TrailingOrderRegistry,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        deadband: Decimal = DEFAULT_DEADBAND,
    ) -> None:
        self._pool = pool
        self._registry = registry
        self._interval = interval
        self._deadband = deadband
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._stop_event.set()

    async def run(self) -> None:
        """Run cycles until stop() is called or the task is cancelled."""
        log.info("trailing_monitor_started", interval=self._interval)
        while not self._stop_event.is_set():
            await self.run_cycle()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        log.info("trailing_monitor_stopped")

    async def run_cycle(self) -> TrailingCycleResult:
        """One repricing pass. Never raises; failures are logged."""
        new_correlation_id("trail")
        try:
            return await self._cycle()
        except Exception:
            log.exception("trailing_cycle_failed")
            return TrailingCycleResult(
                market_price=None, orders_checked=0, repriced=0, removed=0, failed=0
            )

    async def _cycle(self) -> TrailingCycleResult:
        orders_checked = await self._registry.count()
        if orders_checked == 0:
            return TrailingCycleResult(
                market_price=None, orders_checked=0, repriced=0, removed=0, failed=0
            )

        try:
            market_price = await self._pool.default.get_price()
        except ExchangeError as exc:
            log.warning("trailing_price_fetch_failed", error=str(exc))
            return TrailingCycleResult(
                market_price=None,
                orders_checked=orders_checked,
                repriced=0,
                removed=0,
                failed=0,
            )

        candidates = await self._registry.mark_for_reprice(market_price, self._deadband)
        log.debug(
            "trailing_cycle_evaluated",
            market_price=str(market_price),
            orders=orders_checked,
            candidates=len(candidates),
        )

        repriced = removed = failed = 0
        for candidate in candidates:
            outcome = await self._reprice(candidate)
            if outcome == "repriced":
                repriced += 1
            elif outcome == "removed":
                removed += 1
            elif outcome == "failed":
                failed += 1

        if candidates:
            log.info(
                "trailing_cycle_complete",
                market_price=str(market_price),
                repriced=repriced,
                removed=removed,
                failed=failed,
            )
        return TrailingCycleResult(
            market_price=market_price,
            orders_checked=orders_checked,
            repriced=repriced,
            removed=removed,
            failed=failed,
        )

    async def _reprice(self, candidate: RepriceCandidate) -> str:
        """Move one order on the exchange and write back the outcome.

        Returns "repriced", "removed", "failed" or "stale" (the entry
        disappeared while the exchange call was in flight).
        """
        order = candidate.order
        try:
            gateway = self._pool.for_environment(order.use_production)
            new_order = await gateway.modify_order(
                order.exchange_order_id,
                order.side,
                candidate.new_price,
                order.quantity,
            )
        except ExchangeAPIError as exc:
            if exc.is_unknown_order:
                await self._registry.discard(order.id)
                log.info(
                    "trailing_order_gone",
                    trailing_id=order.id,
                    exchange_order_id=order.exchange_order_id,
                    error=str(exc),
                )
                return "removed"
            log.warning(
                "trailing_reprice_rejected",
                trailing_id=order.id,
                exchange_order_id=order.exchange_order_id,
                code=exc.code,
                error=exc.message,
            )
            return "failed"
        except ExchangeError as exc:
            log.warning(
                "trailing_reprice_failed",
                trailing_id=order.id,
                exchange_order_id=order.exchange_order_id,
                error=str(exc),
            )
            return "failed"

        applied = await self._registry.apply_reprice(
            order.id, new_order.order_id, candidate.new_price
        )
        if not applied:
            log.info(
                "trailing_reprice_stale",
                trailing_id=order.id,
                new_exchange_order_id=new_order.order_id,
            )
            return "stale"

        log.info(
            "trailing_order_repriced",
            trailing_id=order.id,
            side=order.side.value,
            old_price=str(order.current_order_price),
            new_price=str(candidate.new_price),
            exchange_order_id=new_order.order_id,
        )
        return "repriced"
