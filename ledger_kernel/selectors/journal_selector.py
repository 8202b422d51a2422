"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to journal entries and their lines, as
    frozen JournalEntryRecord snapshots.  Loads the entry set every report
    folds over.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Entries ordered by (entry_date, serial_number); lines by line_seq.
    - ``current_entries`` returns only entries whose state is Active and
      whose status is not CANCELLED.

Failure modes:
    - get() returns None for an unknown id; require() raises
      EntryNotFoundError.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from ledger_kernel.domain.dtos import JournalEntryRecord
from ledger_kernel.exceptions import EntryNotFoundError
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class EntrySearch:
    """Filters for JournalSelector.search(). Unset fields do not filter."""

    from_date: date | None = None
    to_date: date | None = None
    status: JournalEntryStatus | None = None
    document_type: str | None = None
    contact_id: str | None = None
    property_id: str | None = None
    bank_account_id: str | None = None
    project_id: str | None = None
    account_id: UUID | None = None
    text: str | None = None
    include_superseded: bool = False
    limit: int | None = None


class JournalSelector(BaseSelector):
    """Selector for journal entries."""

    def _base_query(self):
        return select(JournalEntry).options(
            selectinload(JournalEntry.lines).selectinload(JournalLine.account)
        )

    def _records(self, stmt) -> list[JournalEntryRecord]:
        stmt = stmt.order_by(JournalEntry.entry_date, JournalEntry.serial_number)
        return [
            JournalEntryRecord.from_model(entry)
            for entry in self.session.execute(stmt).scalars().unique().all()
        ]

    def get(self, entry_id: UUID) -> JournalEntryRecord | None:
        entry = self.session.execute(
            self._base_query().where(JournalEntry.id == entry_id)
        ).scalar_one_or_none()
        return JournalEntryRecord.from_model(entry) if entry else None

    def require(self, entry_id: UUID) -> JournalEntryRecord:
        record = self.get(entry_id)
        if record is None:
            raise EntryNotFoundError(str(entry_id))
        return record

    def get_by_serial(self, serial_number: str) -> JournalEntryRecord | None:
        entry = self.session.execute(
            self._base_query().where(JournalEntry.serial_number == serial_number)
        ).scalar_one_or_none()
        return JournalEntryRecord.from_model(entry) if entry else None

    def current_entries(self, to_date: date | None = None) -> list[JournalEntryRecord]:
        """
        The fold input: active, non-cancelled entries up to ``to_date``.

        Entries before any report's ``from_date`` are included so ledgers can
        compute their opening balance.
        """
        stmt = self._base_query().where(
            JournalEntry.replaced_by_id.is_(None),
            JournalEntry.status != JournalEntryStatus.CANCELLED.value,
        )
        if to_date is not None:
            stmt = stmt.where(JournalEntry.entry_date <= to_date)
        return self._records(stmt)

    def all_entries(self) -> list[JournalEntryRecord]:
        """Every entry including superseded and cancelled ones."""
        return self._records(self._base_query())

    def search(self, criteria: EntrySearch) -> list[JournalEntryRecord]:
        stmt = self._base_query()
        if not criteria.include_superseded:
            stmt = stmt.where(JournalEntry.replaced_by_id.is_(None))
        if criteria.from_date is not None:
            stmt = stmt.where(JournalEntry.entry_date >= criteria.from_date)
        if criteria.to_date is not None:
            stmt = stmt.where(JournalEntry.entry_date <= criteria.to_date)
        if criteria.status is not None:
            stmt = stmt.where(
                JournalEntry.status == JournalEntryStatus(criteria.status).value
            )
        if criteria.document_type is not None:
            stmt = stmt.where(JournalEntry.document_type == criteria.document_type)
        if criteria.contact_id is not None:
            stmt = stmt.where(JournalEntry.contact_id == criteria.contact_id)
        if criteria.property_id is not None:
            stmt = stmt.where(JournalEntry.property_id == criteria.property_id)
        if criteria.bank_account_id is not None:
            stmt = stmt.where(JournalEntry.bank_account_id == criteria.bank_account_id)
        if criteria.project_id is not None:
            stmt = stmt.where(JournalEntry.project_id == criteria.project_id)
        if criteria.account_id is not None:
            stmt = stmt.where(
                JournalEntry.lines.any(JournalLine.account_id == criteria.account_id)
            )
        if criteria.text:
            pattern = f"%{criteria.text.strip()}%"
            stmt = stmt.where(
                or_(
                    JournalEntry.serial_number.ilike(pattern),
                    JournalEntry.description_local.ilike(pattern),
                    JournalEntry.description_alt.ilike(pattern),
                )
            )
        records = self._records(stmt)
        if criteria.limit is not None:
            records = records[: criteria.limit]
        return records
