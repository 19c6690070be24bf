"""
Tests for structured logging configuration.
"""
import json
import logging
import sys

import pytest

from iqcat.core.config import Settings
from iqcat.core.logging_config import (
    JSONFormatter,
    build_logging_config,
    get_logger,
    session_id_context,
)


def _record(message="hello", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="iqcat.test",
        level=level,
        pathname="/tmp/module.py",
        lineno=42,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSON log formatting."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "iqcat.test"
        assert entry["message"] == "hello"
        assert "timestamp" in entry
        assert "session_id" not in entry
        assert "source" not in entry

    def test_session_id_from_context(self):
        token = session_id_context.set("session-123")
        try:
            entry = json.loads(JSONFormatter().format(_record()))
        finally:
            session_id_context.reset(token)
        assert entry["session_id"] == "session-123"

    def test_structured_extras(self):
        record = _record(theta=0.42, standard_error=0.31, item_id="Q7", stop_reason="max_items")
        entry = json.loads(JSONFormatter().format(record))
        assert entry["theta"] == 0.42
        assert entry["standard_error"] == 0.31
        assert entry["item_id"] == "Q7"
        assert entry["stop_reason"] == "max_items"

    def test_errors_include_source(self):
        entry = json.loads(JSONFormatter().format(_record(level=logging.ERROR)))
        assert entry["source"] == "/tmp/module.py:42"

    def test_exception_info(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestBuildLoggingConfig:
    """Tests for the dictConfig mapping."""

    @pytest.mark.parametrize(
        "env,log_format,expected",
        [
            ("production", "auto", "json"),
            ("development", "auto", "text"),
            ("development", "json", "json"),
            ("production", "text", "text"),
        ],
    )
    def test_formatter_selection(self, env, log_format, expected):
        source = Settings(_env_file=None, ENV=env, LOG_FORMAT=log_format)
        config = build_logging_config(source)
        assert config["handlers"]["console"]["formatter"] == expected

    def test_log_level(self):
        config = build_logging_config(Settings(_env_file=None, LOG_LEVEL="warning"))
        assert config["root"]["level"] == logging.WARNING
        assert config["loggers"]["iqcat"]["level"] == logging.WARNING

    def test_estimator_debug_only_in_debug_mode(self):
        quiet = build_logging_config(Settings(_env_file=None, LOG_LEVEL="DEBUG", DEBUG=False))
        loud = build_logging_config(Settings(_env_file=None, LOG_LEVEL="DEBUG", DEBUG=True))
        name = "iqcat.core.cat.ability_estimation"
        assert quiet["loggers"][name]["level"] == logging.INFO
        assert loud["loggers"][name]["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        config = build_logging_config(Settings(_env_file=None, LOG_LEVEL="chatty"))
        assert config["root"]["level"] == logging.INFO


def test_get_logger():
    assert get_logger("iqcat.engine") is logging.getLogger("iqcat.engine")
