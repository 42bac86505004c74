"""Tests for the structured logging system (billsplit_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from fractions import Fraction
from io import StringIO
from uuid import uuid4

import pytest

from billsplit_kernel.exceptions import IllegalTransitionError
from billsplit_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "billsplit.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("allocated", extra={"participant_count": 3, "strategy": "shares"})

        record = _parse_log(stream)
        assert record["participant_count"] == 3
        assert record["strategy"] == "shares"

    def test_money_types_serialized_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("amounts", extra={
            "amount": Decimal("12.50"),
            "share": Fraction(1, 3),
            "row_id": (uid := uuid4()),
        })

        record = _parse_log(stream)
        assert record["amount"] == "12.50"
        assert record["share"] == "1/3"
        assert record["row_id"] == str(uid)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(bill_id="bill-9", actor_id="alice")
        get_logger("test").info("with_context")

        record = _parse_log(stream)
        assert record["bill_id"] == "bill-9"
        assert record["actor_id"] == "alice"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "bill_id" not in record
        assert "request_id" not in record

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

    def test_billsplit_exception_attributes_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise IllegalTransitionError("req-1", "rejected", "accept")
        except IllegalTransitionError:
            get_logger("test").error("transition_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "ILLEGAL_TRANSITION"
        assert record["exc_type"] == "IllegalTransitionError"
        assert record["exc_status"] == "rejected"
        assert record["exc_event"] == "accept"

    def test_default_level_drops_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", request_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "request_id": "y"}

    def test_clear(self):
        LogContext.set(bill_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(request_id="temp"):
            assert LogContext.get_all()["request_id"] == "temp"
        assert "request_id" not in LogContext.get_all()

    def test_bind_ignores_none_and_unknown_fields(self):
        with LogContext.bind(bill_id=None, merchant="Corner Bistro"):
            assert LogContext.get_all() == {}

    def test_bind_stringifies_values(self):
        uid = uuid4()
        with LogContext.bind(request_id=uid):
            assert LogContext.get_all()["request_id"] == str(uid)


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        handlers = logging.getLogger("billsplit").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("billsplit").propagate is False

    def test_get_logger_returns_child(self):
        assert get_logger("services.payment_request").name == "billsplit.services.payment_request"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("engines.reconciler").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "billsplit.engines.reconciler"
