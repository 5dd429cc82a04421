"""ExchangeGateway protocol -- abstract interface to the exchange.

All gateway implementations (Binance REST, fake) must satisfy this protocol.
A gateway is bound to a single environment (testnet or production).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from btcgrid.exchange.types import Balance, Order, Side, Trade


@runtime_checkable
class ExchangeGateway(Protocol):
    """Async interface for market data and order execution.

    Implementations must support ``async with`` for lifecycle management.
    Every method may raise an ExchangeError subclass.
    """

    async def connect(self) -> None:
        """Open the underlying transport."""
        ...

    async def disconnect(self) -> None:
        """Tear down the transport and release resources."""
        ...

    async def get_price(self) -> Decimal:
        """Latest traded price of the configured symbol."""
        ...

    async def get_open_orders(self) -> list[Order]:
        """All currently resting orders for the configured symbol."""
        ...

    async def get_trades(self, limit: int) -> list[Trade]:
        """Most recent account trades, newest first."""
        ...

    async def get_account_balances(self) -> list[Balance]:
        """Free and locked holdings of every asset in the account."""
        ...

    async def cancel_order(self, order_id: int) -> None:
        """Cancel a resting order by exchange order ID."""
        ...

    async def create_limit_order(
        self,
        side: Side,
        price: Decimal,
        qty: Decimal,
    ) -> Order:
        """Place a GTC limit order."""
        ...

    async def create_market_order(self, side: Side, qty: Decimal) -> Order:
        """Place a market order (executes immediately)."""
        ...

    async def modify_order(
        self,
        order_id: int,
        side: Side,
        new_price: Decimal,
        qty: Decimal,
    ) -> Order:
        """Cancel ``order_id`` and recreate it at ``new_price``.

        Not an amend-in-place: the returned order carries a NEW order ID
        and the old ID must be treated as invalid afterwards.
        """
        ...

    async def __aenter__(self) -> ExchangeGateway:
        """Connect on context manager entry."""
        ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Disconnect on context manager exit."""
        ...

