"""Trailing limit orders: registry, entity and repricing loop."""

from btcgrid.trailing.monitor import TrailingMonitor
from btcgrid.trailing.registry import TrailingOrderRegistry
from btcgrid.trailing.types import (
    DEFAULT_DEADBAND,
    RepriceCandidate,
    TrailingCycleResult,
    TrailingOrder,
    TrailingOrderView,
    round_price,
)

__all__ = [
    "DEFAULT_DEADBAND",
    "RepriceCandidate",
    "TrailingCycleResult",
    "TrailingMonitor",
    "TrailingOrder",
    "TrailingOrderRegistry",
    "TrailingOrderView",
    "round_price",
]
