"""Trailing-order domain types.

TrailingOrder is a mutable state object owned by the registry;
TrailingOrderView is the frozen snapshot handed to readers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from btcgrid.exchange.types import Side

_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_PRICE_QUANTUM = Decimal("0.01")

# Minimum relative gap between resting price and target before repricing
DEFAULT_DEADBAND = Decimal("0.001")


def round_price(price: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up (BTCUSDT tick size)."""
    return price.quantize(_PRICE_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TrailingOrderView:
    """Read-only snapshot of a trailing order for reporting."""

    id: str
    exchange_order_id: int
    side: Side
    trailing_percent: Decimal
    current_order_price: Decimal
    reference_price: Decimal
    quantity: Decimal
    use_production: bool
    created_at: datetime


@dataclass
class TrailingOrder:
    """A resting limit order whose price follows the market.

    ``reference_price`` only moves in the favorable direction: down for
    BUY, up for SELL. ``current_order_price`` is what rests on the
    exchange and only changes through apply_reprice().
    """

    id: str
    exchange_order_id: int
    side: Side
    trailing_percent: Decimal
    current_order_price: Decimal
    reference_price: Decimal
    quantity: Decimal
    use_production: bool
    created_at: datetime

    def update_reference(self, market_price: Decimal) -> bool:
        """Move the reference toward the favorable extreme.

        Returns True if the reference changed.
        """
        if self.side == Side.BUY:
            if market_price < self.reference_price:
                self.reference_price = market_price
                return True
        elif market_price > self.reference_price:
            self.reference_price = market_price
            return True
        return False

    def target_price(self) -> Decimal:
        """Unrounded price the order should rest at, from the reference."""
        offset = self.trailing_percent / _HUNDRED
        if self.side == Side.BUY:
            return self.reference_price * (_ONE + offset)
        return self.reference_price * (_ONE - offset)

    def calculate_adjustment(
        self,
        deadband: Decimal = DEFAULT_DEADBAND,
    ) -> Decimal | None:
        """Rounded target price if the order must move, else None.

        Orders only move in the favorable direction: a BUY is lowered and
        a SELL is raised, each by more than ``deadband`` (relative to the
        resting price). A BUY resting below its target or a SELL resting
        above it stays put rather than crossing the spread.
        """
        target = round_price(self.target_price())
        if self.current_order_price <= Decimal("0"):
            return target
        if self.side == Side.BUY:
            gap = (self.current_order_price - target) / self.current_order_price
        else:
            gap = (target - self.current_order_price) / self.current_order_price
        if gap > deadband:
            return target
        return None

    def apply_reprice(self, new_exchange_order_id: int, new_price: Decimal) -> None:
        """Record a reprice the exchange confirmed."""
        self.exchange_order_id = new_exchange_order_id
        self.current_order_price = new_price

    def view(self) -> TrailingOrderView:
        return TrailingOrderView(
            id=self.id,
            exchange_order_id=self.exchange_order_id,
            side=self.side,
            trailing_percent=self.trailing_percent,
            current_order_price=self.current_order_price,
            reference_price=self.reference_price,
            quantity=self.quantity,
            use_production=self.use_production,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class RepriceCandidate:
    """Snapshot taken under the write lock of an order that needs repricing."""

    order: TrailingOrderView
    new_price: Decimal


@dataclass(frozen=True)
class TrailingCycleResult:
    """Outcome of one repricing cycle, for logging and test assertions."""

    market_price: Decimal | None
    orders_checked: int
    repriced: int
    removed: int
    failed: int
