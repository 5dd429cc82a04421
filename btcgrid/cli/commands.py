"""Click CLI commands for btcgrid."""

from __future__ import annotations

import asyncio
import signal
from decimal import Decimal

import click

from btcgrid.config import AppConfig
from btcgrid.exchange.binance import binance_gateway_pool
from btcgrid.exchange.errors import ExchangeError
from btcgrid.exchange.pool import GatewayPool
from btcgrid.exchange.types import Order
from btcgrid.pairing import CompletedPair, GridPair, ProfitSummary
from btcgrid.service import AccountBalance, ServiceError, TradingService
from btcgrid.trailing.registry import TrailingOrderRegistry
from btcgrid.utils.logging import setup_logging


def _mask(secret: str) -> str:
    """Show only the last 4 characters of a credential."""
    if not secret:
        return "(not set)"
    if len(secret) <= 4:
        return "****"
    return f"****{secret[-4:]}"


@click.group()
def cli() -> None:
    """btcgrid: trailing limit orders and grid reconciliation for Binance spot."""


@cli.command()
def run() -> None:
    """Start the trailing and fill-detection loops."""
    cfg = AppConfig()
    setup_logging(cfg.log_level, cfg.log_format)
    click.echo("Starting btcgrid engine (Ctrl+C to stop)...")
    try:
        asyncio.run(_run_engine(cfg))
    except ExchangeError as e:
        raise click.ClickException(str(e)) from e
    click.echo("Engine stopped.")


async def _run_engine(cfg: AppConfig) -> None:
    from btcgrid.engine import TradingEngine

    engine = TradingEngine(cfg)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, engine.stop)
    await engine.run()


@cli.command()
def config() -> None:
    """Show current configuration (credentials masked)."""
    cfg = AppConfig()

    click.echo("=== btcgrid Configuration ===\n")

    click.echo(f"Log Level:    {cfg.log_level}")
    click.echo(f"Log Format:   {cfg.log_format}")
    click.echo("")

    click.echo("[Exchange]")
    click.echo(f"  Symbol:          {cfg.exchange.symbol}")
    click.echo(f"  Base Asset:      {cfg.exchange.base_asset}")
    click.echo(f"  Quote Asset:     {cfg.exchange.quote_asset}")
    click.echo(f"  Testnet URL:     {cfg.exchange.testnet_base_url}")
    click.echo(f"  Testnet Key:     {_mask(cfg.exchange.testnet_api_key)}")
    click.echo(f"  Testnet Secret:  {_mask(cfg.exchange.testnet_secret_key)}")
    click.echo(f"  Production URL:  {cfg.exchange.prod_base_url}")
    click.echo(f"  Production Key:  {_mask(cfg.exchange.prod_api_key)}")
    click.echo(f"  Prod Secret:     {_mask(cfg.exchange.prod_secret_key)}")
    click.echo("")

    click.echo("[Trailing]")
    click.echo(f"  Interval:        {cfg.trailing.interval_seconds}s")
    click.echo(f"  Deadband:        {cfg.trailing.deadband_pct}")
    click.echo(f"  Max Trailing %:  {cfg.trailing.max_trailing_percent}")
    click.echo("")

    click.echo("[Fill Monitor]")
    click.echo(f"  Interval:        {cfg.fills.interval_seconds}s")
    click.echo(f"  Trade Lookback:  {cfg.fills.trade_lookback}")
    click.echo("")

    click.echo(f"History Limit:  {cfg.history.trade_limit}")


@cli.command()
@click.option("--production", is_flag=True, help="Query the production account.")
def pairs(production: bool) -> None:
    """Show open orders grouped into grid pairs."""
    cfg = AppConfig()
    try:
        grid_pairs, unpaired = asyncio.run(_grid_overview(cfg, production))
    except (ExchangeError, ServiceError) as e:
        raise click.ClickException(str(e)) from e
    _print_grid_overview(grid_pairs, unpaired)


async def _grid_overview(
    cfg: AppConfig, production: bool
) -> tuple[list[GridPair], list[Order]]:
    async with _build_pool(cfg) as pool:
        service = _build_service(cfg, pool)
        return await service.grid_overview(use_production=production)


def _print_grid_overview(grid_pairs: list[GridPair], unpaired: list[Order]) -> None:
    click.echo(f"\nGrid Pairs: {len(grid_pairs)}")
    for pair in grid_pairs:
        click.echo(
            f"  BUY {pair.buy_order.quantity} @ ${pair.buy_order.price:,.2f}"
            f" -> SELL @ ${pair.sell_order.price:,.2f}"
            f"  (est. ${pair.profit_usd:,.2f}, {pair.profit_percent:.2f}%)"
        )

    click.echo(f"\nUnpaired Orders: {len(unpaired)}")
    for order in unpaired:
        click.echo(
            f"  #{order.order_id} {order.side.value} {order.quantity}"
            f" @ ${order.price:,.2f}"
        )


@cli.command()
@click.option("--production", is_flag=True, help="Query the production account.")
@click.option("--limit", default=None, type=int, help="Number of recent trades to scan.")
def profit(production: bool, limit: int | None) -> None:
    """Show realized profit from completed buy/sell round trips."""
    cfg = AppConfig()
    try:
        completed, summary = asyncio.run(_profit(cfg, production, limit))
    except (ExchangeError, ServiceError) as e:
        raise click.ClickException(str(e)) from e
    _print_profit(completed, summary)


async def _profit(
    cfg: AppConfig, production: bool, limit: int | None
) -> tuple[list[CompletedPair], ProfitSummary]:
    async with _build_pool(cfg) as pool:
        service = _build_service(cfg, pool)
        completed, _ = await service.trade_history(limit, use_production=production)
        summary = await service.profit_summary(limit, use_production=production)
        return completed, summary


def _print_profit(completed: list[CompletedPair], summary: ProfitSummary) -> None:
    click.echo("\nProfit Summary:")
    click.echo(f"  Completed Pairs:  {summary.total_trades}")
    click.echo(f"  Gross Profit:     ${summary.total_gross_profit:,.2f}")
    click.echo(f"  Commission:       ${summary.total_commission:,.2f}")
    click.echo(f"  Net Profit:       ${summary.total_net_profit:,.2f}")
    click.echo(f"  Avg Profit:       {summary.average_profit_percent:.2f}%")

    if completed:
        click.echo("\nRecent Round Trips:")
        for pair in completed:
            click.echo(
                f"  {pair.completed_at:%Y-%m-%d %H:%M} {pair.quantity} BTC"
                f" ${pair.buy_price:,.2f} -> ${pair.sell_price:,.2f}"
                f"  net ${pair.net_profit_usd:,.2f}"
            )


@cli.command()
def price() -> None:
    """Show the current market price."""
    cfg = AppConfig()
    try:
        current = asyncio.run(_current_price(cfg))
    except (ExchangeError, ServiceError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"{cfg.exchange.symbol}: ${current:,.2f}")


async def _current_price(cfg: AppConfig) -> Decimal:
    async with _build_pool(cfg) as pool:
        return await _build_service(cfg, pool).current_price()


@cli.command()
@click.option("--production", is_flag=True, help="Query the production account.")
def balance(production: bool) -> None:
    """Show account holdings valued at the current price."""
    cfg = AppConfig()
    try:
        holdings = asyncio.run(_balance(cfg, production))
    except (ExchangeError, ServiceError) as e:
        raise click.ClickException(str(e)) from e
    _print_balance(holdings)


async def _balance(cfg: AppConfig, production: bool) -> AccountBalance:
    async with _build_pool(cfg) as pool:
        return await _build_service(cfg, pool).balance(use_production=production)


def _print_balance(holdings: AccountBalance) -> None:
    click.echo("\nBalances:")
    for held in (holdings.quote, holdings.base):
        click.echo(
            f"  {held.asset:<5} free {held.free}  locked {held.locked}"
            f"  total {held.total}"
        )
    click.echo(f"\n  {holdings.base.asset} Value:  ${holdings.base_value_usd:,.2f}")
    click.echo(f"  Total Value:  ${holdings.total_usd:,.2f}")


def _build_pool(cfg: AppConfig) -> GatewayPool:
    return binance_gateway_pool(cfg.exchange)


def _build_service(cfg: AppConfig, pool: GatewayPool) -> TradingService:
    return TradingService(
        pool,
        TrailingOrderRegistry(),
        quote_asset=cfg.exchange.quote_asset,
        base_asset=cfg.exchange.base_asset,
        history_limit=cfg.history.trade_limit,
        max_trailing_percent=cfg.trailing.max_trailing_percent,
    )
