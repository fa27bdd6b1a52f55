"""
Unit tests for the structured logging subsystem.
"""

import json
import logging
import sys

import pytest

from src.core.config.config import Config
from src.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    LoggingSettings,
    clear_log_context,
    get_log_context,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord(
        name="src.tests",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


class TestContext:
    def test_log_context_scopes_fields(self):
        with LogContext(user_id=1, guild_id=2, command="/ping"):
            context = get_log_context()
            assert context["user_id"] == "1"
            assert context["command"] == "/ping"
            assert context["correlation_id"]

        assert get_log_context() == {}

    @pytest.mark.asyncio
    async def test_async_log_context(self):
        async with LogContext(component="control_plane", operation="notify_bot"):
            assert get_log_context()["operation"] == "notify_bot"

        assert get_log_context() == {}

    def test_set_log_context_merges(self):
        set_log_context(user_id=5)
        set_log_context(operation="tick", service="monitor")

        context = get_log_context()
        assert context["user_id"] == "5"
        assert context["service"] == "monitor"


class TestContextFilter:
    def test_defaults_when_no_context(self):
        record = _record()

        assert ContextFilter().filter(record) is True
        assert record.user_id == "N/A"
        assert record.correlation_id == "N/A"
        assert record.component == "src"

    def test_context_applied(self):
        record = _record()

        with LogContext(guild_id=9, component="dispatcher", correlation_id="abc"):
            ContextFilter().filter(record)

        assert record.guild_id == "9"
        assert record.component == "dispatcher"
        assert record.correlation_id == "abc"

    def test_explicit_extra_wins(self):
        record = _record(user_id=77)

        with LogContext(user_id=1):
            ContextFilter().filter(record)

        assert record.user_id == 77


class TestJSONFormatter:
    def test_emits_json_with_extras(self):
        record = _record(event_name="ready", subscriber_id="x")
        ContextFilter().filter(record)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["extra"]["event_name"] == "ready"
        assert "user_id" not in payload

    def test_includes_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad" in payload["exception"]


class TestSetup:
    def test_setup_is_idempotent_and_shutdown_restores(self):
        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level

        try:
            setup_logging()
            handlers_after_first = list(root.handlers)
            setup_logging()

            assert root.handlers == handlers_after_first
            assert get_logging_health().initialized is True

            logging.getLogger("src.tests").info("through the queue")
            shutdown_logging()

            health = get_logging_health()
            assert health.initialized is False
            assert health.records_enqueued >= 1
        finally:
            shutdown_logging()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_shutdown_without_setup_is_noop(self):
        shutdown_logging()

        assert get_logging_health().initialized is False


class TestSettings:
    @pytest.mark.parametrize(
        "environment, expected", [("production", True), ("development", False)]
    )
    def test_json_defaults_to_production(self, monkeypatch, environment, expected):
        monkeypatch.setattr(Config, "ENVIRONMENT", environment)
        monkeypatch.setattr(Config, "LOG_JSON", None)

        assert LoggingSettings.from_config().json_output is expected

    def test_explicit_log_json_wins(self, monkeypatch):
        monkeypatch.setattr(Config, "ENVIRONMENT", "production")
        monkeypatch.setattr(Config, "LOG_JSON", False)

        settings = LoggingSettings.from_config()

        assert settings.json_output is False
