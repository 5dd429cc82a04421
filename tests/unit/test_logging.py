"""Tests for structured logging setup."""

from __future__ import annotations

import io
import json
import logging
import sys
from collections.abc import Callable

import structlog

from btcgrid.utils.logging import (
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
    setup_logging,
)


def _capture(emit: Callable[[], None]) -> str:
    captured = io.StringIO()
    old_stderr = sys.stderr
    sys.stderr = captured
    try:
        # Handler binds sys.stderr at setup time, so re-point it
        for handler in logging.getLogger().handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setStream(captured)
        emit()
    finally:
        sys.stderr = old_stderr
    return captured.getvalue().strip()


class TestSetupLogging:
    def test_setup_logging_returns_none(self) -> None:
        result = setup_logging(level="INFO", log_format="json")
        assert result is None

    def test_named_logger_available_after_setup(self) -> None:
        setup_logging(level="INFO", log_format="json")
        assert structlog.get_logger("test") is not None

    def test_http_client_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG", log_format="json")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


class TestJsonFormat:
    def test_json_output_is_valid(self) -> None:
        setup_logging(level="INFO", log_format="json")
        logger = structlog.get_logger("test_json")

        output = _capture(lambda: logger.info("test message", extra_key="extra_value"))

        if output:
            parsed = json.loads(output)
            assert parsed["event"] == "test message"
            assert parsed["extra_key"] == "extra_value"
            assert "timestamp" in parsed
            assert "level" in parsed


class TestConsoleFormat:
    def test_console_output_is_not_json(self) -> None:
        setup_logging(level="INFO", log_format="console")
        logger = structlog.get_logger("test_console")

        output = _capture(lambda: logger.info("console test"))

        if output:
            try:
                json.loads(output)
                is_json = True
            except json.JSONDecodeError:
                is_json = False
            assert not is_json


class TestCorrelationId:
    def test_set_and_get_correlation_id(self) -> None:
        set_correlation_id("corr-123")
        assert get_correlation_id() == "corr-123"

    def test_default_correlation_id(self) -> None:
        set_correlation_id("")
        assert get_correlation_id() == ""

    def test_new_correlation_id_has_prefix_and_is_set(self) -> None:
        cid = new_correlation_id("trail")
        assert cid.startswith("trail-")
        assert len(cid) == len("trail-") + 8
        assert get_correlation_id() == cid

    def test_new_correlation_ids_differ(self) -> None:
        assert new_correlation_id("fills") != new_correlation_id("fills")

    def test_correlation_id_in_log(self) -> None:
        setup_logging(level="INFO", log_format="json")
        set_correlation_id("corr-456")
        logger = structlog.get_logger("test_corr")

        output = _capture(lambda: logger.info("correlated event"))

        if output:
            parsed = json.loads(output)
            assert parsed.get("correlation_id") == "corr-456"
