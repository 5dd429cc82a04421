"""User notifications about order fills."""

from btcgrid.notifications.sink import LogNotificationSink, NotificationSink

__all__ = ["LogNotificationSink", "NotificationSink"]
