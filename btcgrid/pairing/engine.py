"""Pairing and profit engine -- pure functions, no I/O.

Turns open orders into grid pairs and trade history into completed
pairs with realized profit. Monetary values and percentages use Decimal.
"""

from __future__ import annotations

from decimal import Decimal

from btcgrid.exchange.types import Order, Trade
from btcgrid.pairing.types import CompletedPair, GridPair, ProfitSummary

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

# Relative quantity tolerance for pairing
OPEN_PAIR_QTY_TOLERANCE = Decimal("0.01")
COMPLETED_PAIR_QTY_TOLERANCE = Decimal("0.05")

DEFAULT_QUOTE_ASSET = "USDT"


def _qty_within(buy_qty: Decimal, other_qty: Decimal, tolerance: Decimal) -> bool:
    """Relative difference against the buy quantity, at most ``tolerance``."""
    if buy_qty <= _ZERO:
        return False
    return abs(buy_qty - other_qty) / buy_qty <= tolerance


def _percent_gain(buy_price: Decimal, sell_price: Decimal) -> Decimal:
    if buy_price <= _ZERO:
        return _ZERO
    return (sell_price - buy_price) / buy_price * _HUNDRED


def make_grid_pair(buy_order: Order, sell_order: Order) -> GridPair:
    """Pair two orders and compute the profit if both fill."""
    profit_usd = (sell_order.price - buy_order.price) * buy_order.quantity
    return GridPair(
        buy_order=buy_order,
        sell_order=sell_order,
        profit_usd=profit_usd,
        profit_percent=_percent_gain(buy_order.price, sell_order.price),
    )


def match_open_pairs(orders: list[Order]) -> tuple[list[GridPair], list[Order]]:
    """Match resting orders into grid pairs.

    Greedy: each BUY (in list order) takes the first unmatched SELL whose
    quantity is within 1% of its own. No price or time tie-breaking.

    Returns:
        (pairs, unpaired) -- unpaired keeps the input order.
    """
    buys = [o for o in orders if o.is_buy]
    sells = [o for o in orders if not o.is_buy]

    pairs: list[GridPair] = []
    matched_ids: set[int] = set()

    for buy in buys:
        for sell in sells:
            if sell.order_id in matched_ids:
                continue
            if _qty_within(buy.quantity, sell.quantity, OPEN_PAIR_QTY_TOLERANCE):
                pairs.append(make_grid_pair(buy, sell))
                matched_ids.add(buy.order_id)
                matched_ids.add(sell.order_id)
                break

    unpaired = [o for o in orders if o.order_id not in matched_ids]
    return pairs, unpaired


def commission_in_quote(trade: Trade, quote_asset: str = DEFAULT_QUOTE_ASSET) -> Decimal:
    """Commission as a notional quote-currency figure.

    Paid in the quote asset: used as-is. Paid in anything else (BTC, BNB):
    multiplied by this trade's execution price. An approximation, not an
    FX conversion.
    """
    if trade.commission_asset == quote_asset:
        return trade.commission
    return trade.commission * trade.price


def match_completed_pairs(
    trades: list[Trade],
    quote_asset: str = DEFAULT_QUOTE_ASSET,
) -> list[CompletedPair]:
    """Match trade history into completed buy -> sell pairs.

    Each SELL (oldest first) takes the first unmatched BUY that happened
    strictly earlier with quantity within 5%. A match whose sell price is
    not above the buy price consumes both trades but is NOT reported.

    Returns:
        Pairs sorted by completion time, newest first.
    """
    buys = sorted((t for t in trades if t.is_buyer), key=lambda t: t.time)
    sells = sorted((t for t in trades if not t.is_buyer), key=lambda t: t.time)

    pairs: list[CompletedPair] = []
    matched_buy_ids: set[int] = set()

    for sell in sells:
        for buy in buys:
            if buy.trade_id in matched_buy_ids or buy.time >= sell.time:
                continue
            if not _qty_within(buy.qty, sell.qty, COMPLETED_PAIR_QTY_TOLERANCE):
                continue

            matched_buy_ids.add(buy.trade_id)
            if sell.price > buy.price:
                pairs.append(_make_completed_pair(buy, sell, quote_asset))
            break

    pairs.sort(key=lambda p: p.completed_at, reverse=True)
    return pairs


def _make_completed_pair(
    buy: Trade,
    sell: Trade,
    quote_asset: str,
) -> CompletedPair:
    quantity = min(buy.qty, sell.qty)
    gross = (sell.price - buy.price) * quantity
    commission = commission_in_quote(buy, quote_asset) + commission_in_quote(
        sell, quote_asset
    )
    return CompletedPair(
        buy_trade=buy,
        sell_trade=sell,
        quantity=quantity,
        buy_price=buy.price,
        sell_price=sell.price,
        gross_profit_usd=gross,
        commission_usd=commission,
        net_profit_usd=gross - commission,
        profit_percent=_percent_gain(buy.price, sell.price),
        completed_at=sell.time,
    )


def summarize(pairs: list[CompletedPair]) -> ProfitSummary:
    """Totals plus the unweighted mean of per-pair percent profit."""
    if not pairs:
        return ProfitSummary(
            total_trades=0,
            total_gross_profit=_ZERO,
            total_commission=_ZERO,
            total_net_profit=_ZERO,
            average_profit_percent=_ZERO,
        )

    total_percent = sum((p.profit_percent for p in pairs), _ZERO)
    return ProfitSummary(
        total_trades=len(pairs),
        total_gross_profit=sum((p.gross_profit_usd for p in pairs), _ZERO),
        total_commission=sum((p.commission_usd for p in pairs), _ZERO),
        total_net_profit=sum((p.net_profit_usd for p in pairs), _ZERO),
        average_profit_percent=total_percent / Decimal(len(pairs)),
    )
