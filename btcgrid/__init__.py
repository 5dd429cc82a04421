"""btcgrid: trailing-order and fill reconciliation engine for Binance spot."""

__version__ = "0.1.0"
