"""Tests for notification formatting and the log sink."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from btcgrid.notifications.sink import (
    LogNotificationSink,
    NotificationSink,
    format_buy_message,
    format_sell_message,
)


class TestFormatting:
    def test_buy_message(self) -> None:
        title, body = format_buy_message(Decimal("41915"), Decimal("0.01"))
        assert title == "BUY filled"
        assert body == "Bought 0.01 BTC @ $41,915.00"

    def test_sell_message_without_profit(self) -> None:
        _, body = format_sell_message(Decimal("42570.5"), Decimal("0.01"), None)
        assert body == "Sold 0.01 BTC @ $42,570.50"

    def test_sell_message_with_profit(self) -> None:
        _, body = format_sell_message(
            Decimal("42570"), Decimal("0.01"), Decimal("6.55")
        )
        assert body.endswith("(profit: $6.55)")


class TestLogNotificationSink:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(LogNotificationSink(), NotificationSink)

    async def test_logs_buy(self) -> None:
        with patch("btcgrid.notifications.sink.log") as log:
            await LogNotificationSink().notify_buy_filled(
                Decimal("41000"), Decimal("0.01")
            )
        log.info.assert_called_once()
        args, kwargs = log.info.call_args
        assert args == ("notification_sent",)
        assert kwargs["title"] == "BUY filled"

    async def test_logs_sell(self) -> None:
        with patch("btcgrid.notifications.sink.log") as log:
            await LogNotificationSink().notify_sell_filled(
                Decimal("43000"), Decimal("0.01")
            )
        assert log.info.call_args.kwargs["title"] == "SELL filled"
