"""JSON log lines and request-scoped context (ledger_kernel/logging_config.py)."""

import json
import logging
import threading
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import PeriodLockedError, UnbalancedEntryError
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_namespace():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def log_lines():
    """Configure the ledger namespace onto a buffer; return a reader of parsed lines."""

    def _configure(level=logging.INFO):
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        configure_logging(handler=handler, level=level)
        return lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    return _configure


class TestLine:
    def test_core_keys(self, log_lines):
        read = log_lines()
        get_logger("reporting").info("trial_balance_built")

        (line,) = read()
        assert line["level"] == "INFO"
        assert line["message"] == "trial_balance_built"
        assert line["logger"] == "ledger_kernel.reporting"
        assert line["ts"].endswith("+00:00")

    def test_extra_values_serialized(self, log_lines):
        read = log_lines()
        account_id = uuid4()
        get_logger("journal").info(
            "entry_posted",
            extra={"serial_number": "JRN-2024-0001", "account_id": account_id, "amount": Decimal("75.500")},
        )

        (line,) = read()
        assert line["serial_number"] == "JRN-2024-0001"
        assert line["account_id"] == str(account_id)
        assert line["amount"] == "75.500"

    def test_context_rides_along(self, log_lines):
        read = log_lines()
        LogContext.set(correlation_id="req-9", document_id="doc-3")
        get_logger("documents").info("document_posted")

        (line,) = read()
        assert (line["correlation_id"], line["document_id"]) == ("req-9", "doc-3")
        assert "entry_id" not in line

    def test_plain_exception(self, log_lines):
        read = log_lines()
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            get_logger("db").exception("commit_failed")

        (line,) = read()
        assert line["exc_type"] == "RuntimeError"
        assert line["exc_message"] == "disk full"
        assert "exc_code" not in line
        assert "Traceback" in line["traceback"]

    @pytest.mark.parametrize(
        "error, expected",
        [
            (
                PeriodLockedError("FY-2024", "2024-03-15"),
                {"exc_code": "PERIOD_LOCKED", "exc_period_code": "FY-2024", "exc_entry_date": "2024-03-15"},
            ),
            (
                UnbalancedEntryError("100", "90"),
                {"exc_code": "UNBALANCED_ENTRY", "exc_debits": "100", "exc_credits": "90"},
            ),
        ],
    )
    def test_ledger_error_fields(self, log_lines, error, expected):
        read = log_lines()
        try:
            raise error
        except type(error):
            get_logger("journal").error("post_rejected", exc_info=True)

        (line,) = read()
        assert line["exc_type"] == type(error).__name__
        assert expected.items() <= line.items()

    def test_level_filter(self, log_lines):
        read = log_lines()
        logger = get_logger("sweep")
        logger.debug("scan_started")
        logger.info("document_posted")
        logger.warning("document_skipped")

        assert [line["message"] for line in read()] == ["document_posted", "document_skipped"]

    def test_nested_logger_at_debug(self, log_lines):
        read = log_lines(level=logging.DEBUG)
        get_logger("modules.reporting.statements").debug("fold_done")

        (line,) = read()
        assert line["logger"] == "ledger_kernel.modules.reporting.statements"


class TestLogContext:
    def test_set_merges(self):
        LogContext.set(correlation_id="c1")
        LogContext.set(entry_id="e1", actor_id=None)

        assert LogContext.get_all() == {"correlation_id": "c1", "entry_id": "e1"}

    def test_values_stringified(self):
        entry_id = uuid4()
        LogContext.set(entry_id=entry_id)
        assert LogContext.get_all() == {"entry_id": str(entry_id)}

    def test_clear(self):
        LogContext.set(correlation_id="c1", period_code="FY-2024")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", period_code="FY-2024"):
            assert LogContext.get_all() == {"correlation_id": "inner", "period_code": "FY-2024"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(ValueError):
            with LogContext.bind(document_id="doc-1"):
                raise ValueError
        assert LogContext.get_all() == {}

    def test_bind_ignores_none(self):
        with LogContext.bind(entry_id="e-1", actor_id=None):
            assert LogContext.get_all() == {"entry_id": "e-1"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(tenant="t-1")

    def test_threads_do_not_share_context(self):
        LogContext.set(correlation_id="main")

        def worker():
            LogContext.set(correlation_id="worker")

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert LogContext.get_all() == {"correlation_id": "main"}


class TestConfigure:
    def test_repeat_calls_keep_one_handler(self):
        configure_logging(stream=StringIO())
        configure_logging(stream=StringIO())

        assert len(logging.getLogger("ledger_kernel").handlers) == 1

    def test_reset_allows_reconfigure(self):
        configure_logging(stream=StringIO())
        reset_logging()
        assert logging.getLogger("ledger_kernel").handlers == []

        configure_logging(stream=StringIO(), level=logging.DEBUG)
        assert logging.getLogger("ledger_kernel").level == logging.DEBUG

    def test_isolated_from_root(self):
        configure_logging(stream=StringIO())
        namespace = logging.getLogger("ledger_kernel")

        assert namespace.propagate is False
        assert isinstance(namespace.handlers[0].formatter, StructuredFormatter)

    def test_get_logger_namespaced(self):
        assert get_logger("services.journal_writer").name == "ledger_kernel.services.journal_writer"
