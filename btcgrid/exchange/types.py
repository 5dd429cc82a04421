"""Exchange domain types shared across the trading system.

Frozen dataclasses for value objects. All monetary values use Decimal
(never float). Timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Side(str, Enum):
    """Order side -- matches Binance side strings."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: str) -> Side:
        """Case-insensitive lookup. Raises ValueError for anything else."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Side must be BUY or SELL, got {value!r}") from None


class OrderType(str, Enum):
    """Supported order types."""

    LIMIT = "LIMIT"
    MARKET = "MARKET"


@dataclass(frozen=True)
class Order:
    """An order as reported by the exchange."""

    order_id: int
    symbol: str
    side: Side
    order_type: OrderType
    price: Decimal
    quantity: Decimal
    executed_qty: Decimal
    status: str
    time: datetime

    @property
    def is_buy(self) -> bool:
        return self.side == Side.BUY

    @property
    def usd_value(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Trade:
    """A single execution from the account trade history."""

    trade_id: int
    order_id: int
    symbol: str
    price: Decimal
    qty: Decimal
    quote_qty: Decimal
    commission: Decimal
    commission_asset: str
    time: datetime
    is_buyer: bool
    is_maker: bool

    @property
    def side(self) -> Side:
        return Side.BUY if self.is_buyer else Side.SELL


@dataclass(frozen=True)
class Balance:
    """Holdings of one asset in the account."""

    asset: str
    free: Decimal
    locked: Decimal

    @property
    def total(self) -> Decimal:
        return self.free + self.locked
