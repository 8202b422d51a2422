"""
Serial numbers for journal entries, documents and audit rows.

Serials read ``{PREFIX}-{YEAR}-{n:04d}``: ``JRN-2024-0001``,
``INV-2024-0017``. Each prefix/year pair counts on its own row
(``"INV:2024"``), and the audit log counts on ``"audit_log"``.

The counter row is read ``FOR UPDATE`` and bumped inside the caller's
transaction. Nothing here commits: if the entry that asked for a serial
is rolled back, the bump goes with it and the number is handed out again.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def counter_name(prefix: str, year: int) -> str:
    return f"{prefix}:{year}"


def format_serial(prefix: str, year: int, value: int) -> str:
    return f"{prefix}-{year}-{value:04d}"


class SequenceService:
    """Allocates counter values on the caller's session."""

    AUDIT_LOG = "audit_log"

    def __init__(self, session: Session):
        self._session = session

    def next_serial(self, prefix: str, year: int) -> str:
        serial = format_serial(prefix, year, self.next_value(counter_name(prefix, year)))
        logger.info("serial_allocated", extra={"prefix": prefix, "year": year, "serial_number": serial})
        return serial

    def next_value(self, name: str) -> int:
        counter = self._lock(name) or self._create(name)
        counter.current_value += 1
        self._session.flush()
        logger.debug("sequence_allocated", extra={"sequence_name": name, "value": counter.current_value})
        return counter.current_value

    def current_value(self, name: str) -> int:
        """Last value handed out for ``name``; 0 if it has never been used."""
        stmt = select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        return self._session.execute(stmt).scalar_one_or_none() or 0

    def _lock(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _create(self, name: str) -> SequenceCounter:
        """
        Insert a zeroed counter under a savepoint.

        A concurrent writer may insert the same name first; the unique
        constraint then fails our savepoint and we lock theirs instead.
        """
        try:
            with self._session.begin_nested():
                counter = SequenceCounter(name=name, current_value=0)
                self._session.add(counter)
            return counter
        except IntegrityError:
            logger.warning("sequence_counter_race", extra={"sequence_name": name})
            counter = self._lock(name)
            if counter is None:
                raise
            return counter
