"""Pairing result types -- derived views, recomputed on every query.

Frozen dataclasses; never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from btcgrid.exchange.types import Order, Trade


@dataclass(frozen=True)
class GridPair:
    """A resting BUY matched with a resting SELL of similar quantity."""

    buy_order: Order
    sell_order: Order
    profit_usd: Decimal
    profit_percent: Decimal


@dataclass(frozen=True)
class CompletedPair:
    """A historical buy fill matched with a later, more expensive sell fill."""

    buy_trade: Trade
    sell_trade: Trade
    quantity: Decimal
    buy_price: Decimal
    sell_price: Decimal
    gross_profit_usd: Decimal
    commission_usd: Decimal
    net_profit_usd: Decimal
    profit_percent: Decimal
    completed_at: datetime


@dataclass(frozen=True)
class ProfitSummary:
    """Aggregate over completed pairs."""

    total_trades: int
    total_gross_profit: Decimal
    total_commission: Decimal
    total_net_profit: Decimal
    average_profit_percent: Decimal
