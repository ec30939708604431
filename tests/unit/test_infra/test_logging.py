"""Tests for logging context, JSON formatting and lazy logging."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from unittest.mock import MagicMock

import pytest

from notify_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    LazyLoggerAdapter,
    clear_log_context,
    get_log_context,
    get_logger,
    remove_from_log_context,
    set_log_context,
)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("test.logger", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _reset_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestLogContext:
    """Tests for contextvar-backed log context."""

    def test_set_get_remove(self):
        set_log_context(batch_id="b1", notification_id="n1")
        assert get_log_context() == {"batch_id": "b1", "notification_id": "n1"}

        remove_from_log_context("notification_id")
        assert get_log_context() == {"batch_id": "b1"}

    def test_filter_injects_context_without_overwriting(self):
        set_log_context(batch_id="b1", notification_id="n1")
        record = _record(notification_id="explicit")

        assert ContextInjectingFilter().filter(record) is True
        assert record.batch_id == "b1"
        assert record.notification_id == "explicit"

    @pytest.mark.asyncio
    async def test_context_is_isolated_between_tasks(self):
        """Each gathered task sees only its own notification_id."""
        set_log_context(batch_id="b1")

        async def worker(notification_id: str) -> dict:
            set_log_context(notification_id=notification_id)
            await asyncio.sleep(0)
            return get_log_context()

        first, second = await asyncio.gather(worker("a"), worker("b"))

        assert first == {"batch_id": "b1", "notification_id": "a"}
        assert second == {"batch_id": "b1", "notification_id": "b"}
        assert get_log_context() == {"batch_id": "b1"}

    def test_bound_logger_merges_extra(self):
        logger = get_logger("x", provider="sms").bind(channel="sms")

        _, kwargs = logger.process("msg", {"extra": {"notification_id": "n1"}})

        assert kwargs["extra"] == {"provider": "sms", "channel": "sms", "notification_id": "n1"}


@pytest.mark.unit
class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_one_json_object_with_extras(self):
        formatter = JSONFormatter(static={"service": "notify-service"})

        line = formatter.format(_record("Batch dispatched", batch_id="b1", sent=3))
        data = json.loads(line)

        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["message"] == "Batch dispatched"
        assert data["service"] == "notify-service"
        assert data["batch_id"] == "b1"
        assert data["sent"] == 3
        assert data["timestamp"].endswith("Z")
        assert "\n" not in line

    def test_exception_is_single_line(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("t", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        line = JSONFormatter().format(record)

        assert "\n" not in line
        assert "ValueError: boom" in json.loads(line)["exception"]

    def test_non_serializable_values_use_str(self):
        data = json.loads(JSONFormatter().format(_record(obj=object())))
        assert data["obj"].startswith("<object object")


@pytest.mark.unit
class TestLazyLogger:
    """Tests for LazyLoggerAdapter."""

    def test_callable_not_evaluated_when_disabled(self):
        logger = logging.getLogger("test.lazy.disabled")
        logger.setLevel(logging.INFO)
        builder = MagicMock(return_value="expensive")

        LazyLoggerAdapter(logger, {}).debug(builder)

        builder.assert_not_called()

    def test_callable_evaluated_when_enabled(self, caplog):
        logger = logging.getLogger("test.lazy.enabled")
        logger.setLevel(logging.DEBUG)

        with caplog.at_level(logging.DEBUG, logger="test.lazy.enabled"):
            LazyLoggerAdapter(logger, {}).debug(lambda: "built %s", lambda: "lazily")

        assert "built lazily" in caplog.text
