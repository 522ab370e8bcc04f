"""
test_logging_config.py — Unit tests for structured logging setup.
"""

import json
import logging

import pytest

from plantpulse.services.logging_config import JSONFormatter, setup_logging, setup_logging_from_env


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


def _record(**extra):
    record = logging.LogRecord(
        name="plantpulse-dashboard",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Dashboard pass %s",
        args=("abc123",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_core_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "plantpulse-dashboard"
        assert entry["message"] == "Dashboard pass abc123"
        assert "pass_id" not in entry

    def test_pass_and_timing_fields(self):
        entry = json.loads(JSONFormatter().format(
            _record(pass_id="abc123", timed_function="compute_dashboard", duration_ms=1.25)
        ))
        assert entry["pass_id"] == "abc123"
        assert entry["timed_function"] == "compute_dashboard"
        assert entry["duration_ms"] == 1.25


class TestSetup:

    def test_json_handler(self, restore_root_logger):
        setup_logging(level="debug")
        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_text_from_env(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setenv("LOG_FORMAT", "text")
        setup_logging_from_env()
        assert restore_root_logger.level == logging.WARNING
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
