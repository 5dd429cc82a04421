"""TradingService -- the operations exposed to the outer surfaces.

Validates requests, routes each call to the gateway for the requested
environment, and keeps the trailing registry in step with manual order
changes. Exchange errors propagate unchanged; request problems raise a
ServiceError subclass.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from uuid import UUID

import structlog

from btcgrid.exchange.errors import ExchangeError
from btcgrid.exchange.pool import GatewayPool
from btcgrid.exchange.types import Balance, Order, Side
from btcgrid.pairing import (
    CompletedPair,
    GridPair,
    ProfitSummary,
    make_grid_pair,
    match_completed_pairs,
    match_open_pairs,
    summarize,
)
from btcgrid.trailing.registry import TrailingOrderRegistry
from btcgrid.trailing.types import TrailingOrderView

log = structlog.get_logger()

_ZERO = Decimal("0")
# BTC lot step on BTCUSDT
_QTY_STEP = Decimal("0.00001")
MIN_GRID_AMOUNT_USD = Decimal("1")
DEFAULT_HISTORY_LIMIT = 100


class ServiceError(Exception):
    """Base class for request-level failures."""


class InvalidOrderRequestError(ServiceError):
    """Request parameters failed validation."""


class InvalidTrailingOrderIdError(InvalidOrderRequestError):
    """Trailing order id is not a well-formed UUID."""


class TrailingOrderNotFoundError(ServiceError):
    """No trailing order with the given id."""


class OrderNotFoundError(ServiceError):
    """No open exchange order with the given id."""


@dataclass(frozen=True)
class AccountBalance:
    """Base and quote holdings valued at the current price.

    ``price`` is 0 when the price could not be fetched, which zeroes the
    base valuation but still reports the holdings.
    """

    base: Balance
    quote: Balance
    price: Decimal

    @property
    def base_value_usd(self) -> Decimal:
        return self.base.total * self.price

    @property
    def total_usd(self) -> Decimal:
        return self.quote.total + self.base_value_usd


def _parse_side(side: Side | str) -> Side:
    if isinstance(side, Side):
        return side
    try:
        return Side.parse(side)
    except ValueError as e:
        raise InvalidOrderRequestError(str(e)) from e


def _require_positive(name: str, value: Decimal) -> None:
    if value <= _ZERO:
        raise InvalidOrderRequestError(f"{name.capitalize()} must be positive")


def grid_quantity(amount_usd: Decimal, buy_price: Decimal) -> Decimal:
    """BTC quantity for a USD amount at the buy price, rounded down to the lot step."""
    return (amount_usd / buy_price).quantize(_QTY_STEP, rounding=ROUND_DOWN)


class TradingService:
    """Facade over the gateway pool and the trailing registry."""

    def __init__(
        self,
        pool: GatewayPool,
        registry: TrailingOrderRegistry,
        quote_asset: str = "USDT",
        base_asset: str = "BTC",
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        max_trailing_percent: Decimal = Decimal("10"),
    ) -> None:
        self._pool = pool
        self._registry = registry
        self._quote_asset = quote_asset
        self._base_asset = base_asset
        self._history_limit = history_limit
        self._max_trailing_percent = max_trailing_percent

    # --- Trailing orders ---

    async def list_trailing_orders(self) -> list[TrailingOrderView]:
        return await self._registry.list_all()

    async def add_trailing_order(
        self,
        exchange_order_id: int,
        side: Side | str,
        order_price: Decimal,
        market_price: Decimal,
        quantity: Decimal,
        trailing_percent: Decimal,
        use_production: bool = False,
    ) -> str:
        """Register an existing exchange order for trailing."""
        self._validate_trailing_percent(trailing_percent)
        try:
            return await self._registry.add(
                exchange_order_id=exchange_order_id,
                side=_parse_side(side),
                order_price=order_price,
                market_price=market_price,
                quantity=quantity,
                trailing_percent=trailing_percent,
                use_production=use_production,
            )
        except ValueError as e:
            raise InvalidOrderRequestError(str(e)) from e

    async def remove_trailing_order(self, trailing_id: str) -> TrailingOrderView:
        """Stop trailing. The exchange order keeps resting at its last price.

        Raises:
            InvalidTrailingOrderIdError: ``trailing_id`` is not a UUID.
            TrailingOrderNotFoundError: no such trailing order.
        """
        try:
            UUID(trailing_id)
        except ValueError as e:
            raise InvalidTrailingOrderIdError("Invalid UUID format") from e

        removed = await self._registry.remove(trailing_id)
        if removed is None:
            raise TrailingOrderNotFoundError(f"Trailing order {trailing_id} not found")
        return removed.view()

    # --- Orders ---

    async def place_limit_order(
        self,
        side: Side | str,
        price: Decimal,
        qty: Decimal,
        trailing_percent: Decimal | None = None,
        use_production: bool = False,
    ) -> Order:
        """Place a limit order, optionally registering it for trailing.

        The trailing reference is seeded from the market price fetched
        right after placement.
        """
        parsed_side = _parse_side(side)
        _require_positive("price", price)
        _require_positive("quantity", qty)
        if trailing_percent is not None:
            self._validate_trailing_percent(trailing_percent)

        gateway = self._pool.for_environment(use_production)
        order = await gateway.create_limit_order(parsed_side, price, qty)

        if trailing_percent is not None:
            market_price = await self._pool.default.get_price()
            await self._registry.add(
                exchange_order_id=order.order_id,
                side=parsed_side,
                order_price=price,
                market_price=market_price,
                quantity=qty,
                trailing_percent=trailing_percent,
                use_production=use_production,
            )
        return order

    async def place_market_order(
        self,
        side: Side | str,
        qty: Decimal,
        use_production: bool = False,
    ) -> Order:
        parsed_side = _parse_side(side)
        _require_positive("quantity", qty)
        gateway = self._pool.for_environment(use_production)
        return await gateway.create_market_order(parsed_side, qty)

    async def create_grid_pair(
        self,
        buy_price: Decimal,
        sell_price: Decimal,
        amount_usd: Decimal,
        use_production: bool = False,
    ) -> GridPair:
        """Place a BUY below and a SELL above for the same quantity.

        Returns the pair with its estimated profit if both fill.
        """
        if buy_price >= sell_price:
            raise InvalidOrderRequestError("Buy price must be less than sell price")
        if amount_usd < MIN_GRID_AMOUNT_USD:
            raise InvalidOrderRequestError("Minimum amount is $1")
        _require_positive("price", buy_price)

        qty = grid_quantity(amount_usd, buy_price)
        if qty <= _ZERO:
            raise InvalidOrderRequestError("Amount is too small for the lot size")

        gateway = self._pool.for_environment(use_production)
        buy_order = await gateway.create_limit_order(Side.BUY, buy_price, qty)
        sell_order = await gateway.create_limit_order(Side.SELL, sell_price, qty)

        pair = make_grid_pair(buy_order, sell_order)
        log.info(
            "grid_pair_created",
            buy_price=str(buy_price),
            sell_price=str(sell_price),
            qty=str(qty),
            estimated_profit=str(pair.profit_usd),
        )
        return pair

    async def modify_order(
        self,
        order_id: int,
        new_price: Decimal,
        use_production: bool = False,
    ) -> Order:
        """Move an open order to a new price, keeping its side and quantity.

        Raises:
            OrderNotFoundError: ``order_id`` is not among the open orders.
        """
        _require_positive("price", new_price)
        gateway = self._pool.for_environment(use_production)
        open_orders = await gateway.get_open_orders()
        existing = next((o for o in open_orders if o.order_id == order_id), None)
        if existing is None:
            raise OrderNotFoundError(f"Order {order_id} not found")

        new_order = await gateway.modify_order(
            order_id, existing.side, new_price, existing.quantity
        )
        log.info(
            "order_modified",
            order_id=order_id,
            new_order_id=new_order.order_id,
            new_price=str(new_price),
        )
        return new_order

    async def cancel_order(self, order_id: int, use_production: bool = False) -> None:
        """Cancel on the exchange and stop trailing it, if it was trailed."""
        gateway = self._pool.for_environment(use_production)
        await gateway.cancel_order(order_id)
        await self._registry.remove_by_exchange_order_id(order_id)

    # --- Reporting ---

    async def current_price(self) -> Decimal:
        """Latest market price, from the default gateway."""
        return await self._pool.default.get_price()

    async def balance(self, use_production: bool = False) -> AccountBalance:
        """Base and quote holdings of the account, valued at market.

        Holdings and price are fetched concurrently. A failed price fetch
        values the base asset at 0; a failed account fetch propagates.
        """
        gateway = self._pool.for_environment(use_production)
        balances, price = await asyncio.gather(
            gateway.get_account_balances(),
            gateway.get_price(),
            return_exceptions=True,
        )
        if isinstance(balances, BaseException):
            raise balances
        if isinstance(price, ExchangeError):
            log.warning("balance_price_unavailable", error=str(price))
            price = _ZERO
        elif isinstance(price, BaseException):
            raise price

        by_asset = {b.asset: b for b in balances}
        return AccountBalance(
            base=self._holding(by_asset, self._base_asset),
            quote=self._holding(by_asset, self._quote_asset),
            price=price,
        )

    async def grid_overview(
        self, use_production: bool = False
    ) -> tuple[list[GridPair], list[Order]]:
        """Open orders grouped into grid pairs plus the unpaired rest."""
        gateway = self._pool.for_environment(use_production)
        return match_open_pairs(await gateway.get_open_orders())

    async def trade_history(
        self,
        limit: int | None = None,
        use_production: bool = False,
    ) -> tuple[list[CompletedPair], Decimal]:
        """Completed round trips from recent trades and their total net profit."""
        pairs = await self._completed_pairs(limit, use_production)
        total = sum((p.net_profit_usd for p in pairs), _ZERO)
        return pairs, total

    async def profit_summary(
        self,
        limit: int | None = None,
        use_production: bool = False,
    ) -> ProfitSummary:
        return summarize(await self._completed_pairs(limit, use_production))

    async def _completed_pairs(
        self, limit: int | None, use_production: bool
    ) -> list[CompletedPair]:
        gateway = self._pool.for_environment(use_production)
        trades = await gateway.get_trades(limit or self._history_limit)
        return match_completed_pairs(trades, self._quote_asset)

    @staticmethod
    def _holding(by_asset: dict[str, Balance], asset: str) -> Balance:
        return by_asset.get(asset, Balance(asset=asset, free=_ZERO, locked=_ZERO))

    def _validate_trailing_percent(self, trailing_percent: Decimal) -> None:
        if trailing_percent <= _ZERO or trailing_percent > self._max_trailing_percent:
            raise InvalidOrderRequestError(
                f"Trailing percent must be in (0, {self._max_trailing_percent}]"
            )
