"""
Several writers posting through one facade against a file database.

Each thread runs its own sessions on a shared QueuePool engine. SQLite
serializes the writers; a transaction that loses the lock is retried and
may give up with PersistenceError, which is an acceptable outcome here.
What must hold is that every committed entry got a distinct serial, the
committed serials have no gaps and the audit chain still verifies.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier, Lock

import pytest
from sqlalchemy.orm import sessionmaker

from ledger_kernel.db.engine import build_engine, create_tables
from ledger_kernel.domain.dtos import LineInput
from ledger_kernel.exceptions import PersistenceError
from ledger_services.ledger_api import LedgerAPI

pytestmark = pytest.mark.slow

THREADS = 4
ENTRIES_PER_THREAD = 10


@pytest.fixture
def file_api(tmp_path, ledger_config, deterministic_clock):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_tables(engine)
    facade = LedgerAPI(
        sessionmaker(bind=engine, expire_on_commit=False),
        config=ledger_config,
        clock=deterministic_clock,
    )
    facade.bootstrap()
    yield facade
    engine.dispose()


class TestConcurrentJournalPosting:
    def test_parallel_writers_get_distinct_gapless_serials(self, file_api):
        barrier = Barrier(THREADS)
        results_lock = Lock()
        serials: list[str] = []
        gave_up: list[PersistenceError] = []

        def _writer(_index: int) -> None:
            barrier.wait()
            for _ in range(ENTRIES_PER_THREAD):
                try:
                    entry = file_api.create_journal_entry(
                        date(2024, 3, 1), [LineInput.dr("1000", "10"), LineInput.cr("4000", "10")]
                    )
                except PersistenceError as exc:
                    with results_lock:
                        gave_up.append(exc)
                    continue
                with results_lock:
                    serials.append(entry.serial_number)

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            # result() re-raises anything other than PersistenceError
            for future in [pool.submit(_writer, i) for i in range(THREADS)]:
                future.result()

        assert serials
        assert len(serials) + len(gave_up) == THREADS * ENTRIES_PER_THREAD
        assert len(set(serials)) == len(serials)
        assert sorted(serials) == [f"JRN-2024-{n:04d}" for n in range(1, len(serials) + 1)]

        assert len(file_api.search_journal_entries()) == len(serials)
        assert file_api.validate_audit_chain() is True

    def test_parallel_writers_keep_trial_balance_even(self, file_api):
        barrier = Barrier(THREADS)

        def _writer(_index: int) -> int:
            barrier.wait()
            committed = 0
            for _ in range(ENTRIES_PER_THREAD // 2):
                try:
                    file_api.create_journal_entry(
                        date(2024, 3, 2), [LineInput.dr("1000", "25"), LineInput.cr("4000", "25")]
                    )
                except PersistenceError:
                    continue
                committed += 1
            return committed

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            committed = sum(pool.map(_writer, range(THREADS)))

        cash = next(a for a in file_api.list_accounts() if a.code == "1000")
        trial_balance = file_api.get_trial_balance()

        assert trial_balance.is_balanced
        assert trial_balance.total_debits == Decimal(25 * committed)
        assert file_api.get_account_balance(cash.id).balance == Decimal(25 * committed)
