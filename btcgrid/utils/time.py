"""UTC and epoch helpers.

All times are UTC. Exchange payloads carry epoch milliseconds.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current UTC datetime, timezone-aware."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Current time as epoch milliseconds (exchange request timestamps)."""
    return int(utc_now().timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    """Convert epoch milliseconds to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=UTC)

