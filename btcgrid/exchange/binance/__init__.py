"""Binance spot REST gateway."""

from btcgrid.exchange.binance.gateway import BinanceGateway, binance_gateway_pool

__all__ = ["BinanceGateway", "binance_gateway_pool"]
