"""NotificationSink protocol and the structlog-backed default sink.

Delivery is best-effort: callers log and swallow sink failures so a
broken push channel can never stall a control loop.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

import structlog

log = structlog.get_logger()


@runtime_checkable
class NotificationSink(Protocol):
    """Fire-and-forget user notifications about fills."""

    async def notify_buy_filled(self, price: Decimal, qty: Decimal) -> None:
        """A buy order executed."""
        ...

    async def notify_sell_filled(
        self,
        price: Decimal,
        qty: Decimal,
        profit: Decimal | None = None,
    ) -> None:
        """A sell order executed. ``profit`` is None when not attributed."""
        ...


def format_buy_message(price: Decimal, qty: Decimal) -> tuple[str, str]:
    """Title and body for a buy fill."""
    return "BUY filled", f"Bought {qty} BTC @ ${price:,.2f}"


def format_sell_message(
    price: Decimal,
    qty: Decimal,
    profit: Decimal | None,
) -> tuple[str, str]:
    """Title and body for a sell fill, with profit when known."""
    body = f"Sold {qty} BTC @ ${price:,.2f}"
    if profit is not None:
        body += f" (profit: ${profit:,.2f})"
    return "SELL filled", body


class LogNotificationSink:
    """NotificationSink that writes each notification to the log.

    Used when no push channel is configured, and as the audit trail of
    what would have been pushed.
    """

    async def notify_buy_filled(self, price: Decimal, qty: Decimal) -> None:
        title, body = format_buy_message(price, qty)
        log.info("notification_sent", title=title, body=body)

    async def notify_sell_filled(
        self,
        price: Decimal,
        qty: Decimal,
        profit: Decimal | None = None,
    ) -> None:
        title, body = format_sell_message(price, qty, profit)
        log.info("notification_sent", title=title, body=body)
