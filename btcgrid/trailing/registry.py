"""In-memory registry of trailing orders.

All access goes through a reader/writer lock. The lock is never held
across a gateway call: the monitor snapshots candidates inside a write
section, talks to the exchange with the lock released, then writes the
result back only if the entry still exists.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import structlog

from btcgrid.exchange.types import Side
from btcgrid.trailing.types import (
    DEFAULT_DEADBAND,
    RepriceCandidate,
    TrailingOrder,
    TrailingOrderView,
)
from btcgrid.utils.locks import ReadWriteLock
from btcgrid.utils.time import utc_now

log = structlog.get_logger()

_ZERO = Decimal("0")


class TrailingOrderRegistry:
    """Trailing orders keyed by internal id. Process lifetime only."""

    def __init__(self) -> None:
        self._orders: dict[str, TrailingOrder] = {}
        self._lock = ReadWriteLock()

    async def add(
        self,
        exchange_order_id: int,
        side: Side,
        order_price: Decimal,
        market_price: Decimal,
        quantity: Decimal,
        trailing_percent: Decimal,
        use_production: bool = False,
    ) -> str:
        """Start trailing an order that already rests on the exchange.

        The reference price is seeded from the market price, not the
        order price. No exchange call is made.

        Raises:
            ValueError: If a price, quantity or percent is not positive.
        """
        if trailing_percent <= _ZERO:
            raise ValueError(f"trailing_percent must be positive, got {trailing_percent}")
        if quantity <= _ZERO:
            raise ValueError(f"quantity must be positive, got {quantity}")
        if order_price <= _ZERO or market_price <= _ZERO:
            raise ValueError(
                f"prices must be positive, got order={order_price} market={market_price}"
            )

        order = TrailingOrder(
            id=str(uuid4()),
            exchange_order_id=exchange_order_id,
            side=side,
            trailing_percent=trailing_percent,
            current_order_price=order_price,
            reference_price=market_price,
            quantity=quantity,
            use_production=use_production,
            created_at=utc_now(),
        )
        async with self._lock.write():
            self._orders[order.id] = order

        log.info(
            "trailing_order_added",
            trailing_id=order.id,
            exchange_order_id=exchange_order_id,
            side=side.value,
            order_price=str(order_price),
            reference_price=str(market_price),
            trailing_percent=str(trailing_percent),
            use_production=use_production,
        )
        return order.id

    async def remove(self, trailing_id: str) -> TrailingOrder | None:
        """Stop trailing. The exchange order itself is left untouched."""
        async with self._lock.write():
            order = self._orders.pop(trailing_id, None)
        if order is not None:
            log.info(
                "trailing_order_removed",
                trailing_id=trailing_id,
                exchange_order_id=order.exchange_order_id,
            )
        return order

    async def remove_by_exchange_order_id(
        self, exchange_order_id: int
    ) -> TrailingOrder | None:
        async with self._lock.write():
            for trailing_id, order in self._orders.items():
                if order.exchange_order_id == exchange_order_id:
                    del self._orders[trailing_id]
                    break
            else:
                return None
        log.info(
            "trailing_order_removed",
            trailing_id=order.id,
            exchange_order_id=exchange_order_id,
        )
        return order

    async def get(self, trailing_id: str) -> TrailingOrderView | None:
        async with self._lock.read():
            order = self._orders.get(trailing_id)
            return order.view() if order is not None else None

    async def list_all(self) -> list[TrailingOrderView]:
        """Snapshot of every trailing order, oldest first."""
        async with self._lock.read():
            views = [o.view() for o in self._orders.values()]
        return sorted(views, key=lambda v: v.created_at)

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._orders)

    async def mark_for_reprice(
        self,
        market_price: Decimal,
        deadband: Decimal = DEFAULT_DEADBAND,
    ) -> list[RepriceCandidate]:
        """Advance every reference price and collect orders that must move.

        Runs entirely inside one write section; no I/O happens here.
        """
        candidates: list[RepriceCandidate] = []
        async with self._lock.write():
            for order in self._orders.values():
                order.update_reference(market_price)
                new_price = order.calculate_adjustment(deadband)
                if new_price is not None:
                    candidates.append(
                        RepriceCandidate(order=order.view(), new_price=new_price)
                    )
        return candidates

    async def apply_reprice(
        self,
        trailing_id: str,
        new_exchange_order_id: int,
        new_price: Decimal,
    ) -> bool:
        """Write back a confirmed reprice.

        Returns False if the entry was removed while the exchange call
        was in flight; the removed entry is not recreated.
        """
        async with self._lock.write():
            order = self._orders.get(trailing_id)
            if order is None:
                return False
            order.apply_reprice(new_exchange_order_id, new_price)
            return True

    async def discard(self, trailing_id: str) -> bool:
        """Drop an entry whose exchange order no longer exists."""
        async with self._lock.write():
            return self._orders.pop(trailing_id, None) is not None
