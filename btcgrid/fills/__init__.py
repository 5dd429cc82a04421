"""Detection of filled and canceled orders."""

from btcgrid.fills.monitor import FillCheckResult, FillMonitor

__all__ = ["FillCheckResult", "FillMonitor"]
