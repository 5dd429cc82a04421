"""FillMonitor -- detect filled or canceled orders and notify.

Keeps the set of open order ids seen last cycle and the id of the
newest trade already reported. When any known order disappears from
the open set, every trade newer than that mark is reported.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field

import structlog

from btcgrid.exchange.errors import ExchangeError
from btcgrid.exchange.gateway import ExchangeGateway
from btcgrid.exchange.types import Side, Trade
from btcgrid.notifications.sink import NotificationSink
from btcgrid.utils.logging import new_correlation_id

log = structlog.get_logger()

DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_TRADE_LOOKBACK = 20


@dataclass(frozen=True)
class FillCheckResult:
    """Outcome of one detection pass."""

    missing_order_ids: frozenset[int] = field(default_factory=frozenset)
    notifications_sent: int = 0
    aborted: bool = False


class FillMonitor:
    """Polls open orders and reports new trades when an order goes away.

    All new trades are reported whenever any order disappears; there is
    no attribution of trades to the order that vanished.
    """

    def __init__(
        self,
        gateway: ExchangeGateway,
        sink: NotificationSink,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        trade_lookback: int = DEFAULT_TRADE_LOOKBACK,
    ) -> None:
        self._gateway = gateway
        self._sink = sink
        self._interval = interval
        self._trade_lookback = trade_lookback
        self._known_order_ids: set[int] = set()
        self._last_trade_id: int | None = None
        self._stop_event = asyncio.Event()

    @property
    def known_order_ids(self) -> frozenset[int]:
        return frozenset(self._known_order_ids)

    @property
    def last_trade_id(self) -> int | None:
        return self._last_trade_id

    async def initialize(self) -> None:
        """Snapshot current open orders and the newest trade id.

        Failures are logged and leave the corresponding part empty.
        """
        new_correlation_id("fills")
        try:
            orders = await self._gateway.get_open_orders()
        except ExchangeError as exc:
            log.warning("fill_monitor_init_orders_failed", error=str(exc))
        else:
            self._known_order_ids = {o.order_id for o in orders}

        try:
            trades = await self._gateway.get_trades(1)
        except ExchangeError as exc:
            log.warning("fill_monitor_init_trades_failed", error=str(exc))
        else:
            if trades:
                self._last_trade_id = trades[0].trade_id

        log.info(
            "fill_monitor_initialized",
            open_orders=len(self._known_order_ids),
            last_trade_id=self._last_trade_id,
        )

    async def check_for_fills(self) -> FillCheckResult:
        """One detection pass.

        If open orders cannot be fetched the pass aborts and no state
        changes. A failed trade fetch still replaces the known set.
        """
        new_correlation_id("fills")
        try:
            orders = await self._gateway.get_open_orders()
        except ExchangeError as exc:
            log.warning("fill_check_orders_failed", error=str(exc))
            return FillCheckResult(aborted=True)

        current_ids = {o.order_id for o in orders}
        missing = frozenset(self._known_order_ids - current_ids)
        sent = 0

        if missing:
            log.info("orders_left_book", order_ids=sorted(missing))
            try:
                trades = await self._gateway.get_trades(self._trade_lookback)
            except ExchangeError as exc:
                log.warning("fill_check_trades_failed", error=str(exc))
            else:
                sent = await self._report_new_trades(trades)

        self._known_order_ids = current_ids
        return FillCheckResult(missing_order_ids=missing, notifications_sent=sent)

    async def _report_new_trades(self, trades: list[Trade]) -> int:
        mark = self._last_trade_id
        new_trades = [t for t in trades if mark is None or t.trade_id > mark]
        if not new_trades:
            return 0

        sent = 0
        # Oldest first so notifications arrive in execution order
        for trade in sorted(new_trades, key=lambda t: t.trade_id):
            try:
                if trade.side == Side.BUY:
                    await self._sink.notify_buy_filled(trade.price, trade.qty)
                else:
                    await self._sink.notify_sell_filled(trade.price, trade.qty)
            except Exception:
                log.exception("fill_notification_failed", trade_id=trade.trade_id)
                continue
            sent += 1

        self._last_trade_id = max(t.trade_id for t in new_trades)
        return sent

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        """initialize(), then poll until stop() or cancellation."""
        await self.initialize()
        log.info("fill_monitor_started", interval=self._interval)
        while not self._stop_event.is_set():
            try:
                await self.check_for_fills()
            except Exception:
                log.exception("fill_cycle_failed")
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        log.info("fill_monitor_stopped")
