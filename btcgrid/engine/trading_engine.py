"""TradingEngine -- process-level wiring of the reconciliation loops.

Owns the gateway pool, the trailing registry, both monitors and the
service facade. run() connects the gateways, runs both loops until
stop() is called (or the task is cancelled), then disconnects.
"""

from __future__ import annotations

import asyncio

import structlog

from btcgrid.config import AppConfig
from btcgrid.exchange.binance import binance_gateway_pool
from btcgrid.exchange.pool import GatewayPool
from btcgrid.fills.monitor import FillMonitor
from btcgrid.notifications.sink import LogNotificationSink, NotificationSink
from btcgrid.service import TradingService
from btcgrid.trailing.monitor import TrailingMonitor
from btcgrid.trailing.registry import TrailingOrderRegistry

log = structlog.get_logger()


class TradingEngine:
    """Composition root for the long-running service."""

    def __init__(
        self,
        config: AppConfig,
        pool: GatewayPool | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        self._config = config
        self.pool = pool if pool is not None else binance_gateway_pool(config.exchange)
        self.sink = sink if sink is not None else LogNotificationSink()
        self.registry = TrailingOrderRegistry()
        self.trailing_monitor = TrailingMonitor(
            self.pool,
            self.registry,
            interval=config.trailing.interval_seconds,
            deadband=config.trailing.deadband_pct,
        )
        self.fill_monitor = FillMonitor(
            self.pool.default,
            self.sink,
            interval=config.fills.interval_seconds,
            trade_lookback=config.fills.trade_lookback,
        )
        self.service = TradingService(
            self.pool,
            self.registry,
            quote_asset=config.exchange.quote_asset,
            base_asset=config.exchange.base_asset,
            history_limit=config.history.trade_limit,
            max_trailing_percent=config.trailing.max_trailing_percent,
        )
        self._stop_event = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal both loops to exit after their current iteration."""
        log.info("engine_stop_requested")
        self._stop_event.set()
        self.trailing_monitor.stop()
        self.fill_monitor.stop()

    async def run(self) -> None:
        """Run until stop() or cancellation. Gateways are always disconnected.

        If either loop dies on its own, the other is cancelled and the
        loop's exception propagates out of run().
        """
        await self.pool.connect()
        self._running = True
        log.info("engine_started", production=self.pool.has_production)

        tasks = [
            asyncio.create_task(self.trailing_monitor.run(), name="trailing-monitor"),
            asyncio.create_task(self.fill_monitor.run(), name="fill-monitor"),
        ]
        stop_waiter = asyncio.create_task(self._stop_event.wait(), name="stop-waiter")
        try:
            done, _ = await asyncio.wait(
                [stop_waiter, *tasks], return_when=asyncio.FIRST_COMPLETED
            )
            for task in tasks:
                if task not in done or task.cancelled():
                    continue
                exc = task.exception()
                if exc is not None:
                    log.error("engine_task_failed", task=task.get_name(), exc_info=exc)
                    raise exc
                if not self._stop_event.is_set():
                    log.warning("engine_task_exited", task=task.get_name())

            if not self._stop_event.is_set():
                self.stop()
            await asyncio.gather(*tasks)
        finally:
            stop_waiter.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(stop_waiter, *tasks, return_exceptions=True)
            self._running = False
            await self.pool.disconnect()
            log.info("engine_stopped")
