"""Tests for viewrate/core/logging.py — renderers, root handler, quiet loggers."""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from viewrate.core.config import reset_settings
from viewrate.core.logging import setup_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    reset_settings()
    root = logging.getLogger()
    level = root.level
    access = logging.getLogger("aiohttp.access")
    access_level = access.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
    access.setLevel(access_level)
    structlog.reset_defaults()
    reset_settings()


class TestSetupLogging:
    def test_single_root_handler(self) -> None:
        setup_logging(level="DEBUG", fmt="json", stream=io.StringIO())
        setup_logging(level="DEBUG", fmt="json", stream=io.StringIO())
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert root.level == logging.DEBUG

    def test_structlog_event_rendered_as_json(self) -> None:
        stream = io.StringIO()
        setup_logging(level="INFO", fmt="json", stream=stream)

        structlog.get_logger("viewrate.test").info("alert_sent", item_id="vid1")

        line = json.loads(stream.getvalue().strip())
        assert line["event"] == "alert_sent"
        assert line["item_id"] == "vid1"
        assert line["level"] == "info"
        assert line["logger"] == "viewrate.test"
        assert "timestamp" in line

    def test_stdlib_records_share_renderer(self) -> None:
        stream = io.StringIO()
        setup_logging(level="INFO", fmt="json", stream=stream)

        logging.getLogger("aiohttp.client").warning("connection reset")

        line = json.loads(stream.getvalue().strip())
        assert line["event"] == "connection reset"
        assert line["level"] == "warning"

    def test_level_filters(self) -> None:
        stream = io.StringIO()
        setup_logging(level="WARNING", fmt="json", stream=stream)
        structlog.get_logger("viewrate.test").info("quiet")
        assert stream.getvalue() == ""

    def test_access_log_quieted(self) -> None:
        stream = io.StringIO()
        setup_logging(level="INFO", fmt="console", stream=stream)

        assert logging.getLogger("aiohttp.access").level == logging.WARNING
        logging.getLogger("aiohttp.access").info("GET /api/items 200")
        assert stream.getvalue() == ""

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(level="chatty", fmt="json", stream=io.StringIO())
        assert logging.getLogger().level == logging.INFO

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValueError, match="xml"):
            setup_logging(fmt="xml", stream=io.StringIO())
