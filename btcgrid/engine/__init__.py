"""Engine layer: wiring of the control loops and the service facade."""

from btcgrid.engine.trading_engine import TradingEngine

__all__ = ["TradingEngine"]
