"""Tests for beaconwatch.core.logging."""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from beaconwatch.core.logging import JsonFormatter, configure_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_console_uses_rich(self) -> None:
        handler = configure_logging("DEBUG")
        assert isinstance(handler, RichHandler)
        assert logging.getLogger().handlers == [handler]
        assert logging.getLogger().level == logging.DEBUG

    def test_json_format(self) -> None:
        handler = configure_logging("info", fmt="json")
        assert isinstance(handler.formatter, JsonFormatter)
        assert logging.getLogger().level == logging.INFO

    def test_replaces_handlers(self) -> None:
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_one_object_per_record(self) -> None:
        record = logging.LogRecord("beaconwatch.test", logging.WARNING, __file__, 1, "hello %s", ("x",), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "beaconwatch.test"
        assert payload["message"] == "hello x"
        assert "time" in payload
