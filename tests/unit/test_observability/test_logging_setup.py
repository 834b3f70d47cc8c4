"""Unit tests for structured logging setup."""

import io
import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from src.features.observability import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore the default structlog configuration after each test."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.unit
    def test_json_output(self) -> None:
        """Test that events are rendered as JSON lines."""
        stream = io.StringIO()
        configure_logging(level=logging.INFO, output=stream, json_format=True)

        get_logger().info("attempt_finished", status=200)

        record = json.loads(stream.getvalue().strip())
        assert record["event"] == "attempt_finished"
        assert record["status"] == 200
        assert record["level"] == "info"
        assert "timestamp" in record

    @pytest.mark.unit
    def test_level_filtering(self) -> None:
        """Test that events below the level are dropped."""
        stream = io.StringIO()
        configure_logging(level=logging.WARNING, output=stream, json_format=True)

        get_logger().info("quiet")

        assert stream.getvalue() == ""

    @pytest.mark.unit
    def test_request_context(self) -> None:
        """Test that the request id is bound and cleared."""
        stream = io.StringIO()
        configure_logging(level=logging.INFO, output=stream, json_format=True)
        logger = get_logger()

        bind_request_context("req-1")
        logger.info("with_context")
        clear_request_context()
        logger.info("without_context")

        first, second = (json.loads(line) for line in stream.getvalue().splitlines())
        assert first["request_id"] == "req-1"
        assert "request_id" not in second
