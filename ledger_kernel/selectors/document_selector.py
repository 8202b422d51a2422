"""
Module: ledger_kernel.selectors.document_selector
Responsibility: Read-only access to business documents, including the
    "unposted approved" condition operators are shown until the next
    posting sweep clears it.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import or_, select

from ledger_kernel.domain.dtos import DocumentRecord
from ledger_kernel.models.document import (
    POSTABLE_STATUSES,
    Document,
    DocumentStatus,
    DocumentType,
)
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class DocumentSearch:
    """Filters for DocumentSelector.search(). Unset fields do not filter."""

    document_type: DocumentType | None = None
    status: DocumentStatus | None = None
    from_date: date | None = None
    to_date: date | None = None
    contact_id: str | None = None
    property_id: str | None = None
    posted: bool | None = None
    text: str | None = None
    limit: int | None = None


class DocumentSelector(BaseSelector):
    """Selector for documents."""

    def get(self, document_id: UUID) -> DocumentRecord | None:
        document = self.session.get(Document, document_id)
        return DocumentRecord.from_model(document) if document else None

    def _records(self, stmt) -> list[DocumentRecord]:
        stmt = stmt.order_by(Document.document_date, Document.serial_number)
        return [DocumentRecord.from_model(d) for d in self.session.scalars(stmt).all()]

    def find_unposted_approved(
        self,
        document_types: frozenset[str] | None = None,
    ) -> list[DocumentRecord]:
        """APPROVED or PAID documents with no journal entry, oldest first."""
        stmt = select(Document).where(
            Document.journal_entry_id.is_(None),
            Document.status.in_([s.value for s in POSTABLE_STATUSES]),
        )
        if document_types is not None:
            stmt = stmt.where(Document.document_type.in_(sorted(document_types)))
        return self._records(stmt)

    def search(self, criteria: DocumentSearch) -> list[DocumentRecord]:
        stmt = select(Document)
        if criteria.document_type is not None:
            stmt = stmt.where(
                Document.document_type == DocumentType(criteria.document_type).value
            )
        if criteria.status is not None:
            stmt = stmt.where(Document.status == DocumentStatus(criteria.status).value)
        if criteria.from_date is not None:
            stmt = stmt.where(Document.document_date >= criteria.from_date)
        if criteria.to_date is not None:
            stmt = stmt.where(Document.document_date <= criteria.to_date)
        if criteria.contact_id is not None:
            stmt = stmt.where(Document.contact_id == criteria.contact_id)
        if criteria.property_id is not None:
            stmt = stmt.where(Document.property_id == criteria.property_id)
        if criteria.posted is True:
            stmt = stmt.where(Document.journal_entry_id.is_not(None))
        elif criteria.posted is False:
            stmt = stmt.where(Document.journal_entry_id.is_(None))
        if criteria.text:
            pattern = f"%{criteria.text.strip()}%"
            stmt = stmt.where(
                or_(
                    Document.serial_number.ilike(pattern),
                    Document.reference.ilike(pattern),
                    Document.description_local.ilike(pattern),
                    Document.description_alt.ilike(pattern),
                )
            )
        records = self._records(stmt)
        if criteria.limit is not None:
            records = records[: criteria.limit]
        return records
