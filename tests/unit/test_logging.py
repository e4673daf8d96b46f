"""Unit tests for correlation IDs and structured log helpers."""

import logging
from typing import Generator

import pytest

from eventbook.utils.logging import (
    NO_CORRELATION_ID,
    CorrelationIdFilter,
    StructuredFormatter,
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_booking_operation,
    log_webhook_event,
    set_correlation_id,
)

# === Test Configuration ===

LOGGER_NAME = "eventbook.tests.logging"


@pytest.fixture(autouse=True)
def clean_correlation_id() -> Generator[None, None, None]:
    clear_correlation_id()
    yield
    clear_correlation_id()


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(LOGGER_NAME, logging.INFO, __file__, 1, message, None, None)


class TestCorrelationId:
    def test_set_generates_when_missing(self) -> None:
        cid = set_correlation_id()

        assert cid
        assert get_correlation_id() == cid

    def test_set_keeps_given_value(self) -> None:
        assert set_correlation_id("req-123") == "req-123"
        assert get_correlation_id() == "req-123"

    def test_clear(self) -> None:
        set_correlation_id("req-123")
        clear_correlation_id()

        assert get_correlation_id() is None

    def test_filter_stamps_record(self) -> None:
        record = _record()
        set_correlation_id("req-123")

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "req-123"

    def test_formatter_prefixes_line(self) -> None:
        formatter = StructuredFormatter("%(levelname)s %(message)s")

        assert formatter.format(_record()) == f"[{NO_CORRELATION_ID}] INFO hello"

        set_correlation_id("req-123")
        assert formatter.format(_record()) == "[req-123] INFO hello"

    def test_get_logger_adds_filter_once(self) -> None:
        logger = get_logger(LOGGER_NAME)
        get_logger(LOGGER_NAME)

        assert sum(isinstance(f, CorrelationIdFilter) for f in logger.filters) == 1


class TestConfigureLogging:
    def test_installs_single_structured_handler(self) -> None:
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        try:
            configure_logging("debug")
            configure_logging("DEBUG")

            structured = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
            assert len(structured) == 1
            assert root.level == logging.DEBUG
        finally:
            root.handlers = handlers
            root.setLevel(level)


class TestOperationLogging:
    @pytest.mark.parametrize(
        ("result", "level"),
        [
            ("success", logging.INFO),
            ("duplicate", logging.WARNING),
            ("conflict", logging.WARNING),
            ("lock_timeout", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_booking_operation_level(
        self, caplog: pytest.LogCaptureFixture, result: str, level: int
    ) -> None:
        logger = logging.getLogger(LOGGER_NAME)

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_booking_operation(
                logger, "create_booking", tenant_id="tn_lakeside",
                event_date="2025-06-15", booking_id="bk_1", amount_cents=0, result=result,
            )

        record = caplog.records[-1]
        assert record.levelno == level
        assert record.getMessage() == (
            "Booking operation: create_booking | tenant_id=tn_lakeside | event_date=2025-06-15"
            f" | booking_id=bk_1 | amount_cents=0 | result={result}"
        )
        assert record.tenant_id == "tn_lakeside"

    def test_booking_error_without_result_logs_error(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_booking_operation(
                logging.getLogger(LOGGER_NAME), "create_checkout",
                tenant_id="tn_lakeside", error="boom",
            )

        assert caplog.records[-1].levelno == logging.ERROR
        assert "error=boom" in caplog.text

    def test_webhook_event(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_webhook_event(
                logging.getLogger(LOGGER_NAME), "checkout.session.completed", "evt_1",
                tenant_id="tn_lakeside", booking_id="bk_1", result="in_flight",
            )

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == (
            "Webhook event: checkout.session.completed (evt_1) | result=in_flight"
            " | tenant=tn_lakeside | booking=bk_1"
        )
        assert record.event_id == "evt_1"
