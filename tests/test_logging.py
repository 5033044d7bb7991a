"""Tests for the structured logging system (erp_kernel/logging_config.py)."""

import json
import logging
import threading
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from erp_kernel.domain.dtos import PaymentType
from erp_kernel.exceptions import InsufficientRemainingError
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
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
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "erp_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("settled", extra={"line_count": 2, "payment_type": "cash"})

        record = _parse_log(stream)
        assert record["line_count"] == 2
        assert record["payment_type"] == "cash"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(tenant_id="tenant-1", actor_id="user-7")
        with LogContext.bind(operation="consignment_settlement"):
            get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["tenant_id"] == "tenant-1"
        assert record["actor_id"] == "user-7"
        assert record["operation"] == "consignment_settlement"

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        try:
            raise InsufficientRemainingError("item-1", 5, 3)
        except InsufficientRemainingError:
            get_logger("test").error("sale_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["error_code"] == "INSUFFICIENT_REMAINING"
        assert record["error_type"] == "InsufficientRemainingError"
        assert record["error_detail"] == {"item_id": "item-1", "requested": 5, "remaining": 3}
        assert "traceback" in record

    def test_plain_exception_has_no_code(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            get_logger("test").error("unexpected", exc_info=True)

        record = _parse_log(stream)
        assert record["error_type"] == "RuntimeError"
        assert record["error_message"] == "boom"
        assert "error_code" not in record

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "consignment_id": uid,
                "amount": Decimal("84.00"),
                "payment_type": PaymentType.MIXED,
                "period_start": date(2024, 3, 1),
            },
        )

        record = _parse_log(stream)
        assert record["consignment_id"] == str(uid)
        assert record["amount"] == "84.00"
        assert record["payment_type"] == "mixed"
        assert record["period_start"] == "2024-03-01"

    def test_debug_filtered_at_info_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(actor_id="y", tenant_id="x")
        assert LogContext.get_all() == {"tenant_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(tenant_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(correlation_id="abc")
        with pytest.raises(TypeError):
            with LogContext.bind(trace_id="abc"):
                pass
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(tenant_id="outer")
        with LogContext.bind(tenant_id="inner", operation="event_sale"):
            assert LogContext.get_all() == {"tenant_id": "inner", "operation": "event_sale"}
        assert LogContext.get_all() == {"tenant_id": "outer"}

    def test_bind_restores_after_exception(self):
        with pytest.raises(ValueError):
            with LogContext.bind(tenant_id="t"):
                raise ValueError("boom")
        assert LogContext.get_all() == {}

    def test_bind_ignores_none(self):
        with LogContext.bind(tenant_id="t", actor_id=None):
            assert LogContext.get_all() == {"tenant_id": "t"}
        assert LogContext.get_all() == {}

    def test_bind_stringifies_uuid(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid):
            assert LogContext.get_all()["actor_id"] == str(uid)

    def test_other_thread_cannot_change_context(self):
        def worker():
            LogContext.set(tenant_id="worker-tenant", operation="event_sale")

        with LogContext.bind(tenant_id="main-tenant"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()
            assert LogContext.get_all() == {"tenant_id": "main-tenant"}
