"""Tests for the exchange error hierarchy and error classification."""

from __future__ import annotations

import pytest

from btcgrid.exchange.errors import (
    UNKNOWN_ORDER_CODE,
    ExchangeAPIError,
    ExchangeAuthError,
    ExchangeConnectionError,
    ExchangeError,
    ExchangeNotConnectedError,
    ExchangeResponseError,
    ExchangeTimeoutError,
    is_unknown_order,
)


class TestExchangeErrorHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [
            ExchangeConnectionError,
            ExchangeTimeoutError,
            ExchangeResponseError,
            ExchangeAuthError,
            ExchangeNotConnectedError,
            ExchangeAPIError,
        ],
    )
    def test_inherits_from_exchange_error(self, cls: type[Exception]) -> None:
        assert issubclass(cls, ExchangeError)


class TestExchangeAPIError:
    def test_stores_status_code_and_message(self) -> None:
        err = ExchangeAPIError(400, -1013, "Filter failure: LOT_SIZE")
        assert err.status_code == 400
        assert err.code == -1013
        assert err.message == "Filter failure: LOT_SIZE"
        assert "400" in str(err)
        assert "-1013" in str(err)
        assert "LOT_SIZE" in str(err)

    def test_unknown_order_by_code(self) -> None:
        assert ExchangeAPIError(400, UNKNOWN_ORDER_CODE, "whatever").is_unknown_order

    def test_unknown_order_by_message(self) -> None:
        err = ExchangeAPIError(400, 0, "Unknown order sent.")
        assert err.is_unknown_order

    def test_other_business_error(self) -> None:
        err = ExchangeAPIError(400, -2010, "Account has insufficient balance")
        assert not err.is_unknown_order


class TestIsUnknownOrder:
    def test_api_error(self) -> None:
        assert is_unknown_order(ExchangeAPIError(400, -2011, "Unknown order sent."))

    @pytest.mark.parametrize(
        "exc",
        [
            ExchangeConnectionError("Unknown order"),
            ExchangeTimeoutError("timeout"),
            ValueError("Unknown order"),
        ],
    )
    def test_non_api_errors_are_not_terminal(self, exc: Exception) -> None:
        assert not is_unknown_order(exc)
