"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from dohproxy.app.core.config import Settings
from dohproxy.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
)
from dohproxy.app.main import create_app
from dohproxy.app.middleware.rate_limit import RateLimiter


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        """Context fields are promoted to the top level."""
        record = make_record("Resolved")
        record.request_id = "req-1"
        record.client_id = "203.0.113.7"
        record.provider = "dns.google"
        record.attempt = 2
        record.duration_ms = 12.5

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["client_id"] == "203.0.113.7"
        assert data["provider"] == "dns.google"
        assert data["attempt"] == 2
        assert data["duration_ms"] == 12.5
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = make_record("Custom event")
        record.max_retries = 3

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["max_retries"] == 3

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:

    def test_adds_missing_fields(self):
        record = make_record()

        assert ContextFilter().filter(record) is True
        assert record.request_id is None
        assert record.client_id is None
        assert record.provider is None

    def test_keeps_existing_fields(self):
        record = make_record()
        record.provider = "dns.quad9.net"

        ContextFilter().filter(record)

        assert record.provider == "dns.quad9.net"


class TestLoggingConfig:

    def test_json_format_selected(self):
        with patch("dohproxy.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "debug"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["dohproxy"]["level"] == "DEBUG"

    def test_text_format_is_default(self):
        with patch("dohproxy.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "standard"
        assert "json" not in config["formatters"]

    def test_structured_format(self):
        with patch("dohproxy.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "INFO"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert "client_id=%(client_id)s" in config["formatters"]["structured"]["format"]

    def test_given_settings_win_over_globals(self):
        cfg = Settings(_env_file=None, log_format="json", log_level="warning")

        with patch("dohproxy.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"
            config = get_logging_config(cfg)

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["root"]["level"] == "WARNING"

    def test_create_app_applies_log_level(self):
        cfg = Settings(_env_file=None, log_level="ERROR")

        create_app(cfg, RateLimiter(use_redis=False))

        assert logging.getLogger("dohproxy").level == logging.ERROR
        create_app(Settings(_env_file=None), RateLimiter(use_redis=False))


def test_get_log_context_drops_none():
    context = get_log_context(request_id="req-1", provider=None, attempt=1)

    assert context == {"request_id": "req-1", "attempt": 1}


def test_get_logger_default_name():
    assert get_logger().name == "dohproxy"
    assert get_logger("dohproxy.app.main").name == "dohproxy.app.main"
