"""Tests for the structured logging system (liquidity_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from liquidity_kernel.exceptions import EpochClosedTooEarlyError
from liquidity_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "liquidity_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("pool_refreshed", extra={"refresh_seq": 42, "caller": "op"})

        record = _parse_log(stream)
        assert record["refresh_seq"] == 42
        assert record["caller"] == "op"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", pool_id="pool-1", epoch_id=7)
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["pool_id"] == "pool-1"
        assert record["epoch_id"] == 7

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise EpochClosedTooEarlyError(3, 1_704_153_600, 1_704_110_400)
        except EpochClosedTooEarlyError:
            get_logger("test").error("epoch_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "EPOCH_CLOSED_TOO_EARLY"
        assert record["exc_type"] == "EpochClosedTooEarlyError"
        assert record["exc_epoch_id"] == 3
        assert record["exc_end_time"] == 1_704_153_600

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "pool_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_uuid", extra={"request_id": uid})

        assert _parse_log(stream)["request_id"] == str(uid)

    def test_large_amounts_rendered_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        amount = 2**96 - 1
        get_logger("test").info(
            "big", extra={"amount": amount, "small": 5, "pair": (amount, 1)}
        )

        record = _parse_log(stream)
        assert record["amount"] == str(amount)
        assert record["small"] == 5
        assert record["pair"] == [str(amount), 1]

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug line is dropped.
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "tranche" not in LogContext.get_all()
        with LogContext.bind(tranche="junior"):
            assert LogContext.get_all()["tranche"] == "junior"
        assert "tranche" not in LogContext.get_all()

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(pool_id=None, unknown="x", actor_id="a"):
            assert LogContext.get_all() == {"actor_id": "a"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            pool_id="p",
            actor_id="a",
            epoch_id=4,
            tranche="senior",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["epoch_id"] == 4


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("liquidity_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.pool").name == "liquidity_kernel.services.pool"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "liquidity_kernel.deep.nested.module"
