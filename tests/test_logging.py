"""Tests for the structured logging system (contracts_kernel/logging_config.py)."""

import json
import logging
from io import StringIO

import pytest

from contracts_kernel.domain.contract_status import ContractStatus
from contracts_kernel.exceptions import ContractUpdateConcurrencyError, DuplicateContractError
from contracts_kernel.logging_config import (
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


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


class _Unserializable:
    def __str__(self) -> str:
        return "unserializable"


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "contracts_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("contract_created", extra={"contract_id": 42, "replaced_count": 2})

        record = _parse_log(stream)
        assert record["contract_id"] == 42
        assert record["replaced_count"] == 2

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", contract_number="C-001")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["contract_number"] == "C-001"

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        with LogContext.bind(contract_number="C-001"):
            logger.info("contract_inserted", extra={"contract_number": "C-001"})

        assert _parse_log(stream)["contract_number"] == "C-001"

    def test_enum_and_datetime_serialized(self):
        from datetime import datetime, timezone

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        at = datetime(2024, 6, 15, 23, 59, tzinfo=timezone.utc)
        logger.info("with_enum", extra={"contract_status": ContractStatus.APPROVED, "cutoff": at})

        record = _parse_log(stream)
        assert record["contract_status"] == "APPROVED"
        assert record["cutoff"] == at.isoformat()

    def test_extra_values_use_json_encoder(self):
        from datetime import datetime, timezone
        from decimal import Decimal
        from uuid import UUID

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info(
            "contract_reminders_requested",
            extra={
                "cutoff": datetime(2024, 6, 15, 23, 59, tzinfo=timezone.utc),
                "value": Decimal("1250.50"),
                "message_id": UUID("12345678-1234-5678-1234-567812345678"),
                "blob_path": _Unserializable(),
            },
        )

        record = _parse_log(stream)
        assert record["cutoff"] == "2024-06-15T23:59:00+00:00"
        assert record["value"] == "1250.50"
        assert record["message_id"] == "12345678-1234-5678-1234-567812345678"
        assert record["blob_path"] == "unserializable"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise DuplicateContractError("C-001", 3)
        except DuplicateContractError:
            logger.error("create_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "DUPLICATE_CONTRACT"
        assert record["exc_type"] == "DuplicateContractError"
        assert record["exc_contract_number"] == "C-001"
        assert record["exc_contract_version"] == 3

    def test_enum_exception_field(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise ContractUpdateConcurrencyError("C-001", 1, 7, ContractStatus.PUBLISHED_TO_PROVIDER)
        except ContractUpdateConcurrencyError:
            logger.warning("conflict", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CONTRACT_UPDATE_CONCURRENCY"
        assert record["exc_status"] == "PUBLISHED_TO_PROVIDER"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "contract_number" not in record

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
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", contract_number="C-9")
        assert LogContext.get_all() == {"correlation_id": "x", "contract_number": "C-9"}

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
        """bind() restores to None if there was no previous value."""
        assert "contract_number" not in LogContext.get_all()
        with LogContext.bind(contract_number="C-1"):
            assert LogContext.get_all()["contract_number"] == "C-1"
        assert "contract_number" not in LogContext.get_all()

    def test_bind_stringifies_and_skips_none(self):
        with LogContext.bind(contract_version=3, actor_id=None, unknown_field="x"):
            assert LogContext.get_all() == {"contract_version": "3"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            contract_number="n",
            contract_version="1",
            contract_id="7",
            actor_id="a",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["contract_id"] == "7"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("contracts_kernel")
        structured = [
            h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)
        ]
        assert structured == [h1]

    def test_get_logger_returns_child(self):
        logger = get_logger("services.contract_service")
        assert logger.name == "contracts_kernel.services.contract_service"

    def test_logger_hierarchy(self):
        """Child loggers inherit the contracts_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "contracts_kernel.deep.nested.module"
