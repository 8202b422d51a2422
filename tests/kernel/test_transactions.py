"""session_scope and run_in_transaction: commit, rollback and retry."""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    run_in_transaction,
    session_scope,
)
from ledger_kernel.exceptions import PersistenceError
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.account_service import AccountService


def _transient():
    return OperationalError("UPDATE sequence_counters", {}, Exception("database is locked"))


class TestSessionScope:
    def test_commit_is_visible_to_next_session(self, session_factory):
        with session_scope(session_factory) as session:
            AccountService(session).create_account("1900", "misc", AccountType.ASSET)

        with session_scope(session_factory) as session:
            assert AccountService(session).get_account_by_code("1900").code == "1900"

    def test_exception_rolls_back(self, session_factory):
        with pytest.raises(ValueError):
            with session_scope(session_factory) as session:
                AccountService(session).create_account("1900", "misc", AccountType.ASSET)
                raise ValueError("abort")

        with session_scope(session_factory) as session:
            assert AccountService(session).count() == 0


class TestRunInTransaction:
    def test_returns_operation_result(self, session_factory):
        result = run_in_transaction(
            lambda s: AccountService(s).create_account("1900", "misc", AccountType.ASSET).code,
            session_factory=session_factory,
        )
        assert result == "1900"

    def test_transient_error_retried(self, session_factory, captured_logs):
        attempts = []

        def _operation(session):
            attempts.append(1)
            if len(attempts) < 2:
                raise _transient()
            return "done"

        result = run_in_transaction(
            _operation, session_factory=session_factory, backoff_seconds=0, name="flaky"
        )

        assert result == "done"
        assert len(attempts) == 2
        retries = [r for r in captured_logs() if r["message"] == "transaction_retry"]
        assert retries[0]["operation"] == "flaky"

    def test_exhausted_retries_raise_persistence_error(self, session_factory):
        def _operation(session):
            raise _transient()

        with pytest.raises(PersistenceError) as exc_info:
            run_in_transaction(
                _operation,
                session_factory=session_factory,
                max_attempts=3,
                backoff_seconds=0,
                name="always_locked",
            )
        assert exc_info.value.code == "PERSISTENCE_ERROR"
        assert exc_info.value.attempts == 3

    def test_domain_errors_are_not_retried(self, session_factory):
        attempts = []

        def _operation(session):
            attempts.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            run_in_transaction(_operation, session_factory=session_factory, backoff_seconds=0)
        assert len(attempts) == 1

    def test_zero_attempts_rejected(self, session_factory):
        with pytest.raises(ValueError):
            run_in_transaction(lambda s: None, session_factory=session_factory, max_attempts=0)


class TestProcessEngine:
    @pytest.fixture
    def process_engine(self):
        yield init_engine_from_url("sqlite://")
        reset_engine()

    def test_tables_round_trip(self, process_engine):
        create_tables()
        assert "journal_entries" in inspect(process_engine).get_table_names()

        drop_tables()
        assert inspect(process_engine).get_table_names() == []

    def test_session_bound_to_engine(self, process_engine):
        with get_session() as session:
            assert session.get_bind() is process_engine

    def test_reset_forgets_engine(self, process_engine):
        reset_engine()

        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()
