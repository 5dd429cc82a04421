"""In-memory exchange implementation for tests."""

from btcgrid.exchange.fake.gateway import FakeExchangeGateway

__all__ = ["FakeExchangeGateway"]
