"""Binance JSON payload to domain type converters.

All string-to-Decimal conversion happens here -- this is the Decimal
boundary. Numeric fields are parsed leniently (malformed -> 0); missing
identifiers or an unknown side mean the payload is not what we expect
and raise ExchangeResponseError.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from btcgrid.exchange.errors import ExchangeResponseError
from btcgrid.exchange.types import Balance, Order, OrderType, Side, Trade
from btcgrid.exchange.utils import parse_decimal
from btcgrid.utils.time import from_epoch_ms

_ORDER_TYPE_MAP: dict[str, OrderType] = {
    "LIMIT": OrderType.LIMIT,
    "LIMIT_MAKER": OrderType.LIMIT,
    "MARKET": OrderType.MARKET,
}

_PRICE_QUANTUM = Decimal("0.01")


def _require(payload: dict[str, Any], key: str) -> Any:
    try:
        return payload[key]
    except (KeyError, TypeError) as e:
        raise ExchangeResponseError(f"Missing field {key!r} in payload") from e


def _to_int(payload: dict[str, Any], key: str) -> int:
    value = _require(payload, key)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ExchangeResponseError(f"Field {key!r} is not an integer: {value!r}") from e


def binance_price_to_decimal(payload: dict[str, Any]) -> Decimal:
    """Ticker payload ``{"symbol": ..., "price": "42000.01"}`` -> Decimal."""
    price = parse_decimal(_require(payload, "price"))
    if price <= Decimal("0"):
        raise ExchangeResponseError(f"Non-positive ticker price: {payload!r}")
    return price


def binance_order_to_order(payload: dict[str, Any]) -> Order:
    """Map an open-order or new-order response to an Order.

    New-order responses carry ``transactTime`` instead of ``time``.
    """
    try:
        side = Side(_require(payload, "side"))
    except ValueError as e:
        raise ExchangeResponseError(f"Unknown order side: {payload.get('side')!r}") from e

    ts = payload.get("time", payload.get("transactTime", 0))
    return Order(
        order_id=_to_int(payload, "orderId"),
        symbol=str(payload.get("symbol", "")),
        side=side,
        order_type=_ORDER_TYPE_MAP.get(str(payload.get("type", "")), OrderType.LIMIT),
        price=parse_decimal(payload.get("price")),
        quantity=parse_decimal(payload.get("origQty")),
        executed_qty=parse_decimal(payload.get("executedQty")),
        status=str(payload.get("status", "")),
        time=from_epoch_ms(int(parse_decimal(ts))),
    )


def binance_trade_to_trade(payload: dict[str, Any]) -> Trade:
    """Map one ``myTrades`` entry to a Trade."""
    return Trade(
        trade_id=_to_int(payload, "id"),
        order_id=_to_int(payload, "orderId"),
        symbol=str(payload.get("symbol", "")),
        price=parse_decimal(payload.get("price")),
        qty=parse_decimal(payload.get("qty")),
        quote_qty=parse_decimal(payload.get("quoteQty")),
        commission=parse_decimal(payload.get("commission")),
        commission_asset=str(payload.get("commissionAsset", "")),
        time=from_epoch_ms(int(parse_decimal(payload.get("time")))),
        is_buyer=bool(payload.get("isBuyer", False)),
        is_maker=bool(payload.get("isMaker", False)),
    )


def binance_account_to_balances(payload: dict[str, Any]) -> list[Balance]:
    """Map the ``/api/v3/account`` response to one Balance per asset."""
    entries = _require(payload, "balances")
    if not isinstance(entries, list):
        raise ExchangeResponseError(f"Field 'balances' is not a list: {entries!r}")
    return [
        Balance(
            asset=str(_require(entry, "asset")),
            free=parse_decimal(entry.get("free")),
            locked=parse_decimal(entry.get("locked")),
        )
        for entry in entries
    ]


def format_price(price: Decimal) -> str:
    """Price as sent to Binance: two decimals, no exponent."""
    return format(price.quantize(_PRICE_QUANTUM, rounding=ROUND_HALF_UP), "f")


def format_quantity(qty: Decimal) -> str:
    """Quantity as sent to Binance: trailing zeros stripped, no exponent."""
    text = format(qty, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
