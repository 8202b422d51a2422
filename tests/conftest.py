"""
Shared fixtures.

Each test gets its own in-memory SQLite database (StaticPool, so every
session sees the same connection). ``session`` is rolled back at teardown;
``session_factory`` and ``api`` commit for real. The clock is frozen at
2024-06-15 09:00 UTC and the packaged default configuration is active.
"""

import json
import logging
from collections.abc import Generator
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from ledger_config import get_active_config
from ledger_kernel.db.engine import build_engine, create_tables
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import (
    ACTIVE,
    AccountInfo,
    EntryMeta,
    JournalEntryRecord,
    LineInput,
    LineRecord,
)
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.journal import JournalEntryStatus, LineSide
from ledger_services.bootstrap import LedgerBootstrap
from ledger_services.container import LedgerServices
from ledger_services.ledger_api import LedgerAPI

TEST_ACTOR_ID = "test-actor"


# -----------------------------------------------------------------------------
# Logs
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _json_logging_to_buffer():
    """Ledger logs go to a throwaway buffer at DEBUG so every log call is formatted."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _empty_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Returns a callable giving every ledger log line emitted so far, parsed.

        services.journal_writer.post(...)
        assert "entry_posted" in [r["message"] for r in captured_logs()]
    """
    buffer = StringIO()
    tap = logging.StreamHandler(buffer)
    tap.setFormatter(StructuredFormatter())
    namespace = logging.getLogger("ledger_kernel")
    saved_level = namespace.level
    namespace.setLevel(logging.DEBUG)
    namespace.addHandler(tap)

    yield lambda: [json.loads(raw) for raw in buffer.getvalue().splitlines() if raw]

    namespace.removeHandler(tap)
    namespace.setLevel(saved_level)


# -----------------------------------------------------------------------------
# Database
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _immutability_guards():
    """ORM guards stay registered for the whole run; tamper tests re-register."""
    register_immutability_listeners()
    yield


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """Session for service-level tests. Rolled back at teardown."""
    sess = session_factory()
    yield sess
    try:
        sess.rollback()
    finally:
        sess.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger_config(monkeypatch):
    """Packaged default configuration, unaffected by the environment."""
    monkeypatch.delenv("LEDGER_CONFIG_DIR", raising=False)
    monkeypatch.delenv("LEDGER_DATABASE_URL", raising=False)
    return get_active_config()


@pytest.fixture
def services(session, ledger_config, deterministic_clock) -> LedgerServices:
    """Every service for ``session``, chart seeded and 2024 covered."""
    LedgerBootstrap(session, ledger_config, deterministic_clock).run()
    return LedgerServices(session, ledger_config, clock=deterministic_clock)


@pytest.fixture
def account_ids(services) -> dict[str, object]:
    """Account code -> id for the seeded chart."""
    return {a.code: a.id for a in services.accounts.list_accounts(active_only=False)}


@pytest.fixture
def api(session_factory, ledger_config, deterministic_clock) -> LedgerAPI:
    """Bootstrapped facade over the per-test database."""
    facade = LedgerAPI(session_factory, config=ledger_config, clock=deterministic_clock)
    facade.bootstrap()
    return facade


@pytest.fixture
def test_actor_id() -> str:
    return TEST_ACTOR_ID


# -----------------------------------------------------------------------------
# Record builders
# -----------------------------------------------------------------------------


@pytest.fixture
def post(services):
    """Post a simple two-line entry: post(date, debit_code, credit_code, amount, **meta)."""
    def _post(entry_date: date, debit_code: str, credit_code: str, amount, **meta):
        return services.journal_writer.post(
            entry_date,
            [LineInput.dr(debit_code, amount), LineInput.cr(credit_code, amount)],
            EntryMeta(**meta) if meta else None,
        )

    return _post


def _make_account(code: str, account_type: AccountType, name: str | None = None, **kwargs) -> AccountInfo:
    """In-memory AccountInfo for pure fold tests."""
    return AccountInfo(
        id=uuid4(),
        code=code,
        name_local=name or f"account {code}",
        name_alt=name,
        account_type=account_type,
        normal_balance=account_type.normal_balance,
        **kwargs,
    )


_serials = iter(range(1, 1_000_000))


def _make_entry(
    entry_date: date,
    lines: list[tuple[AccountInfo, str, Decimal | str]],
    status: JournalEntryStatus = JournalEntryStatus.APPROVED,
    state=ACTIVE,
    **fields,
) -> JournalEntryRecord:
    """
    In-memory JournalEntryRecord.

    ``lines`` are (account, "debit" | "credit", amount) triples.
    """
    records = tuple(
        LineRecord(
            account_id=account.id,
            account_code=account.code,
            side=LineSide(side),
            amount=Decimal(str(amount)),
            line_seq=i,
        )
        for i, (account, side, amount) in enumerate(lines)
    )
    total_debit = sum((r.debit for r in records), Decimal("0"))
    total_credit = sum((r.credit for r in records), Decimal("0"))
    return JournalEntryRecord(
        id=uuid4(),
        serial_number=fields.pop("serial_number", f"JRN-{entry_date.year}-{next(_serials):04d}"),
        version=1,
        entry_date=entry_date,
        total_debit=total_debit,
        total_credit=total_credit,
        status=status,
        state=state,
        lines=records,
        **fields,
    )


@pytest.fixture
def chart() -> dict[str, AccountInfo]:
    """A small in-memory chart for pure statement tests."""
    return {
        "1000": _make_account("1000", AccountType.ASSET, "Cash"),
        "1100": _make_account("1100", AccountType.ASSET, "Banks"),
        "1200": _make_account("1200", AccountType.ASSET, "Receivables"),
        "1500": _make_account("1500", AccountType.ASSET, "Equipment"),
        "2000": _make_account("2000", AccountType.LIABILITY, "Payables"),
        "2100": _make_account("2100", AccountType.LIABILITY, "Deposits Received"),
        "2200": _make_account("2200", AccountType.LIABILITY, "Tax Payable"),
        "2500": _make_account("2500", AccountType.LIABILITY, "Long-term Loan"),
        "3000": _make_account("3000", AccountType.EQUITY, "Capital"),
        "4000": _make_account("4000", AccountType.REVENUE, "Rent Revenue"),
        "5000": _make_account("5000", AccountType.EXPENSE, "Operating Expenses"),
    }


@pytest.fixture
def make_account():
    return _make_account


@pytest.fixture
def make_entry():
    return _make_entry
