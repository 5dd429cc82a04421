"""FakeExchangeGateway -- in-memory order book for testing.

Lightweight implementation of ExchangeGateway for unit testing the
control loops and the service facade. Orders rest until a test fills
or cancels them; fills append to the trade history.
"""

from __future__ import annotations

import itertools
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Self

from btcgrid.exchange.errors import UNKNOWN_ORDER_CODE, ExchangeAPIError
from btcgrid.exchange.types import Balance, Order, OrderType, Side, Trade

_BASE_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


class FakeExchangeGateway:
    """In-memory ExchangeGateway for testing.

    Supply a starting price at construction, then drive the market with
    set_price()/fill_order(). Inspect ``mutation_calls`` to assert how
    many cancel/create/modify requests reached the exchange.
    """

    def __init__(
        self,
        price: Decimal = Decimal("42000"),
        symbol: str = "BTCUSDT",
        quote_asset: str = "USDT",
    ) -> None:
        self._price = price
        self._symbol = symbol
        self._quote_asset = quote_asset
        self._orders: dict[int, Order] = {}
        self._trades: list[Trade] = []
        self._balances: dict[str, Balance] = {}
        self._order_ids = itertools.count(1000)
        self._trade_ids = itertools.count(1)
        self._clock = itertools.count(1)
        self._connected = False
        self.price_calls = 0
        self.mutation_calls: list[tuple[str, int | None]] = []

    # --- Test controls ---

    def set_price(self, price: Decimal) -> None:
        self._price = price

    def seed_order(
        self,
        side: Side,
        price: Decimal,
        qty: Decimal,
    ) -> Order:
        """Place a resting order without counting it as a mutation."""
        return self._rest(side, price, qty)

    def fill_order(self, order_id: int, price: Decimal | None = None) -> Trade:
        """Execute a resting order in full and record the trade."""
        order = self._orders.pop(order_id)
        fill_price = price if price is not None else order.price
        return self._record_trade(order.order_id, order.side, fill_price, order.quantity)

    def set_balance(
        self,
        asset: str,
        free: Decimal,
        locked: Decimal = Decimal("0"),
    ) -> None:
        self._balances[asset] = Balance(asset=asset, free=free, locked=locked)

    def remove_externally(self, order_id: int) -> None:
        """Cancel an order as if done by another client (no trade)."""
        self._orders.pop(order_id, None)

    def order(self, order_id: int) -> Order | None:
        return self._orders.get(order_id)

    @property
    def connected(self) -> bool:
        return self._connected

    # --- ExchangeGateway ---

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_price(self) -> Decimal:
        self.price_calls += 1
        return self._price

    async def get_open_orders(self) -> list[Order]:
        return list(self._orders.values())

    async def get_trades(self, limit: int) -> list[Trade]:
        newest_first = sorted(self._trades, key=lambda t: t.trade_id, reverse=True)
        return newest_first[:limit]

    async def get_account_balances(self) -> list[Balance]:
        return list(self._balances.values())

    async def cancel_order(self, order_id: int) -> None:
        self.mutation_calls.append(("cancel", order_id))
        self._require_order(order_id)
        del self._orders[order_id]

    async def create_limit_order(
        self,
        side: Side,
        price: Decimal,
        qty: Decimal,
    ) -> Order:
        self.mutation_calls.append(("create_limit", None))
        return self._rest(side, price, qty)

    async def create_market_order(self, side: Side, qty: Decimal) -> Order:
        self.mutation_calls.append(("create_market", None))
        order_id = next(self._order_ids)
        self._record_trade(order_id, side, self._price, qty)
        return Order(
            order_id=order_id,
            symbol=self._symbol,
            side=side,
            order_type=OrderType.MARKET,
            price=Decimal("0"),
            quantity=qty,
            executed_qty=qty,
            status="FILLED",
            time=self._tick(),
        )

    async def modify_order(
        self,
        order_id: int,
        side: Side,
        new_price: Decimal,
        qty: Decimal,
    ) -> Order:
        self.mutation_calls.append(("modify", order_id))
        self._require_order(order_id)
        del self._orders[order_id]
        return self._rest(side, new_price, qty)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.disconnect()

    # --- Internal helpers ---

    def _tick(self) -> datetime:
        return _BASE_TIME + timedelta(seconds=next(self._clock))

    def _require_order(self, order_id: int) -> None:
        if order_id not in self._orders:
            raise ExchangeAPIError(400, UNKNOWN_ORDER_CODE, "Unknown order sent.")

    def _rest(self, side: Side, price: Decimal, qty: Decimal) -> Order:
        order = Order(
            order_id=next(self._order_ids),
            symbol=self._symbol,
            side=side,
            order_type=OrderType.LIMIT,
            price=price,
            quantity=qty,
            executed_qty=Decimal("0"),
            status="NEW",
            time=self._tick(),
        )
        self._orders[order.order_id] = order
        return order

    def _record_trade(
        self,
        order_id: int,
        side: Side,
        price: Decimal,
        qty: Decimal,
    ) -> Trade:
        trade = Trade(
            trade_id=next(self._trade_ids),
            order_id=order_id,
            symbol=self._symbol,
            price=price,
            qty=qty,
            quote_qty=price * qty,
            commission=Decimal("0"),
            commission_asset=self._quote_asset,
            time=self._tick(),
            is_buyer=side == Side.BUY,
            is_maker=True,
        )
        self._trades.append(trade)
        return trade
