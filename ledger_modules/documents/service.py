"""
Document Service (``ledger_modules.documents.service``).

Responsibility
--------------
Owns the business document lifecycle -- create, confirm, cancel -- and the
bridge from documents to the ledger: the posting sweep that turns every
approved or paid document without a journal entry into exactly one
balanced entry.

Architecture position
---------------------
**Modules layer** -- imperative shell over the pure derivation in
``rules.py``.  Posts only through ``JournalWriter``, so the period gate,
balance check, serial allocation and audit apply unchanged.

Invariants enforced
-------------------
* A document is linked to at most one journal entry; ``journal_entry_id``
  is written once (ORM guard backs this).
* Creating a document never touches the ledger.  Posting is the explicit
  ``post_unposted_documents()`` step.
* Posted documents do not change status and are not cancelled.
* Each document posts in its own SAVEPOINT: one failure leaves the rest
  of the sweep and the caller's transaction intact.

Failure modes
-------------
* ``InvalidDocumentError`` naming the offending field.
* ``DuplicateSerialError`` for a manual serial already in use.
* ``DocumentNotFoundError`` / ``DocumentAlreadyPostedError``.
* Sweep failures (locked period, missing rule, inactive account) are
  recorded in ``PostingSweepResult.errors``, never raised.

Audit relevance
---------------
CREATE on creation, UPDATE on status change and on posting, CANCEL on
cancellation.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config.schema import PostingRuleDef
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    DocumentInput,
    DocumentRecord,
    EntryMeta,
    JournalEntryRecord,
)
from ledger_kernel.domain.values import TOLERANCE, ZERO
from ledger_kernel.exceptions import (
    DocumentAlreadyPostedError,
    DocumentNotFoundError,
    DuplicateSerialError,
    InvalidDocumentError,
    LedgerError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType
from ledger_kernel.models.document import (
    Document,
    DocumentStatus,
    DocumentType,
    PaymentMethod,
)
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_kernel.selectors.document_selector import DocumentSearch, DocumentSelector
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.documents.models import PostingFailure, PostingSweepResult
from ledger_modules.documents.rules import (
    PostingRuleTable,
    compute_amounts,
    derive_lines,
    resolve_payment_method,
    serial_prefix,
)

logger = get_logger("modules.documents.service")


def _snapshot(document: Document) -> dict:
    return {
        "serial_number": document.serial_number,
        "document_type": document.document_type,
        "status": document.status,
        "document_date": document.document_date,
        "total_amount": document.total_amount,
        "journal_entry_id": document.journal_entry_id,
    }


class DocumentService:
    """
    Document lifecycle and document-to-ledger posting.

    Contract
    --------
    * Returns frozen DocumentRecord snapshots, never ORM objects.
    * Flush-only; the caller's ``session_scope()`` commits.
    """

    def __init__(
        self,
        session: Session,
        posting_rules: Iterable[PostingRuleDef],
        journal_writer: JournalWriter | None = None,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        currency: str = "OMR",
        default_vat_rate: Decimal | None = None,
        tolerance: Decimal = TOLERANCE,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._writer = journal_writer or JournalWriter(
            session, auditor=self._auditor, clock=self._clock
        )
        self._rules = PostingRuleTable(posting_rules)
        self._sequences = SequenceService(session)
        self._selector = DocumentSelector(session)
        self._currency = currency
        self._default_vat_rate = default_vat_rate
        self._tolerance = tolerance

    # =========================================================================
    # Queries
    # =========================================================================

    def _get_orm(self, document_id: UUID, for_update: bool = False) -> Document:
        stmt = select(Document).where(Document.id == document_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        document = self._session.execute(stmt).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def get_document(self, document_id: UUID) -> DocumentRecord:
        return DocumentRecord.from_model(self._get_orm(document_id))

    def list_documents(self, criteria: DocumentSearch | None = None) -> list[DocumentRecord]:
        return self._selector.search(criteria or DocumentSearch())

    def find_unposted_approved(self) -> list[DocumentRecord]:
        """APPROVED or PAID documents of a postable type with no journal entry."""
        pending = self._selector.find_unposted_approved(self._rules.posting_types())
        if pending:
            logger.warning(
                "unposted_documents_pending",
                extra={"count": len(pending), "serial_numbers": [d.serial_number for d in pending]},
            )
        return pending

    def _serial_taken(self, serial: str) -> bool:
        stmt = select(Document.id).where(Document.serial_number == serial)
        return self._session.execute(stmt).first() is not None

    def _next_free_serial(self, document_type: DocumentType, year: int) -> str:
        """Next counter serial, stepping past any a manual serial already took."""
        prefix = serial_prefix(document_type)
        serial = self._sequences.next_serial(prefix, year)
        while self._serial_taken(serial):
            logger.info("document_serial_skipped", extra={"serial_number": serial})
            serial = self._sequences.next_serial(prefix, year)
        return serial

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_document(self, document: DocumentInput) -> DocumentRecord:
        """
        Validate, number and persist a document.  No ledger effect.

        Raises:
            InvalidDocumentError: A document invariant does not hold.
            DuplicateSerialError: ``serial_number`` was given and is taken.
        """
        document_type = DocumentType(document.document_type)
        amounts = compute_amounts(document, self._default_vat_rate, self._tolerance)
        if amounts.total_amount == ZERO and document_type.value in self._rules.posting_types():
            # every posting line would be zero and the sweep could never clear it
            raise InvalidDocumentError("amount", f"{document_type.value} total must be greater than zero")

        if document.serial_number:
            serial = document.serial_number.strip()
            if self._serial_taken(serial):
                logger.warning("duplicate_document_serial", extra={"serial_number": serial})
                raise DuplicateSerialError(serial)
        else:
            serial = self._next_free_serial(document_type, document.document_date.year)

        model = Document(
            serial_number=serial,
            document_type=document_type.value,
            status=DocumentStatus(document.status).value,
            document_date=document.document_date,
            due_date=document.due_date,
            contact_id=document.contact_id,
            bank_account_id=document.bank_account_id,
            property_id=document.property_id,
            project_id=document.project_id,
            booking_id=document.booking_id,
            contract_id=document.contract_id,
            amount=amounts.amount,
            currency=document.currency or self._currency,
            vat_rate=amounts.vat_rate,
            vat_amount=amounts.vat_amount,
            total_amount=amounts.total_amount,
            payment_method=(
                PaymentMethod(document.payment_method).value
                if document.payment_method
                else None
            ),
            payment_reference=document.payment_reference,
            cheque_number=document.cheque_number,
            cheque_due_date=document.cheque_due_date,
            cheque_bank_name=document.cheque_bank_name,
            reference=document.reference,
            description_local=document.description_local,
            description_alt=document.description_alt,
            notes=document.notes,
            items=[item.to_json() for item in document.items] or None,
            attachments=[dict(a) for a in document.attachments] or None,
            created_by=document.actor_id,
        )
        self._session.add(model)
        self._session.flush()

        logger.info(
            "document_created",
            extra={
                "serial_number": serial,
                "document_type": document_type.value,
                "status": model.status,
                "total_amount": str(model.total_amount),
            },
        )
        self._auditor.record(
            AuditAction.CREATE,
            AuditEntityType.DOCUMENT,
            model.id,
            user_id=document.actor_id,
            new_state=_snapshot(model),
        )
        return DocumentRecord.from_model(model)

    def set_status(
        self,
        document_id: UUID,
        status: DocumentStatus | str,
        actor_id: str | None = None,
    ) -> DocumentRecord:
        """
        Move a document to ``status`` (e.g. DRAFT -> APPROVED on confirmation).

        Setting the current status again is a no-op.

        Raises:
            DocumentAlreadyPostedError: The document has a journal entry.
            InvalidDocumentError: The document is cancelled.
        """
        status = DocumentStatus(status)
        document = self._get_orm(document_id, for_update=True)
        if DocumentStatus(document.status) == status:
            return DocumentRecord.from_model(document)
        if document.journal_entry_id is not None:
            raise DocumentAlreadyPostedError(str(document.id), str(document.journal_entry_id))
        if DocumentStatus(document.status) == DocumentStatus.CANCELLED:
            raise InvalidDocumentError("status", "a cancelled document cannot change status")

        before = _snapshot(document)
        document.status = status.value
        self._session.flush()

        logger.info(
            "document_status_changed",
            extra={
                "serial_number": document.serial_number,
                "from_status": before["status"],
                "to_status": status.value,
            },
        )
        self._auditor.record(
            AuditAction.UPDATE,
            AuditEntityType.DOCUMENT,
            document.id,
            user_id=actor_id,
            previous_state=before,
            new_state=_snapshot(document),
        )
        return DocumentRecord.from_model(document)

    def cancel_document(
        self,
        document_id: UUID,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> DocumentRecord:
        """
        Cancel an unposted document.  Idempotent.

        Raises:
            DocumentAlreadyPostedError: Posted documents are corrected
                through the journal instead.
        """
        document = self._get_orm(document_id, for_update=True)
        if document.journal_entry_id is not None:
            raise DocumentAlreadyPostedError(str(document.id), str(document.journal_entry_id))
        if DocumentStatus(document.status) == DocumentStatus.CANCELLED:
            return DocumentRecord.from_model(document)

        before = _snapshot(document)
        document.status = DocumentStatus.CANCELLED.value
        self._session.flush()

        logger.info(
            "document_cancelled",
            extra={"serial_number": document.serial_number, "reason": reason},
        )
        self._auditor.record(
            AuditAction.CANCEL,
            AuditEntityType.DOCUMENT,
            document.id,
            user_id=actor_id,
            reason=reason,
            previous_state=before,
            new_state=_snapshot(document),
        )
        return DocumentRecord.from_model(document)

    # =========================================================================
    # Posting
    # =========================================================================

    def _post_one(self, document: Document, actor_id: str | None) -> JournalEntryRecord:
        record = DocumentRecord.from_model(document)
        method = resolve_payment_method(record)
        rule = self._rules.lookup(record.document_type.value, method.value)
        lines = derive_lines(record, rule)

        meta = EntryMeta(
            description_local=record.description_local
            or f"{record.document_type.value} {record.serial_number}",
            description_alt=record.description_alt,
            document_type=record.document_type.value,
            document_id=record.id,
            contact_id=record.contact_id,
            bank_account_id=record.bank_account_id,
            property_id=record.property_id,
            project_id=record.project_id,
            status=JournalEntryStatus.APPROVED,
            actor_id=actor_id,
        )
        entry = self._writer.post(record.document_date, lines, meta)

        document.journal_entry_id = entry.id
        self._session.flush()

        self._auditor.record(
            AuditAction.UPDATE,
            AuditEntityType.DOCUMENT,
            document.id,
            user_id=actor_id,
            reason=f"posted as {entry.serial_number}",
            previous_state={"journal_entry_id": None},
            new_state={
                "journal_entry_id": entry.id,
                "journal_serial_number": entry.serial_number,
            },
        )
        return entry

    def post_unposted_documents(self, actor_id: str | None = None) -> PostingSweepResult:
        """
        Post every unposted APPROVED/PAID document of a postable type.

        Documents are taken oldest first.  Running the sweep again posts
        nothing new.
        """
        candidates = self._session.execute(
            select(Document)
            .where(
                Document.journal_entry_id.is_(None),
                Document.status.in_(
                    [DocumentStatus.APPROVED.value, DocumentStatus.PAID.value]
                ),
                Document.document_type.in_(sorted(self._rules.posting_types())),
            )
            .order_by(Document.document_date, Document.serial_number)
        ).scalars().all()

        posted_ids: list[UUID] = []
        entry_ids: list[UUID] = []
        failures: list[PostingFailure] = []

        for document in candidates:
            document_id = document.id
            serial = document.serial_number
            with LogContext.bind(document_id=str(document_id)):
                try:
                    with self._session.begin_nested():
                        entry = self._post_one(document, actor_id)
                except LedgerError as exc:
                    failures.append(
                        PostingFailure(
                            document_id=document_id,
                            serial_number=serial,
                            error_code=exc.code,
                            message=str(exc),
                        )
                    )
                    logger.warning(
                        "document_posting_failed",
                        extra={"serial_number": serial, "error_code": exc.code},
                    )
                    continue

                posted_ids.append(document_id)
                entry_ids.append(entry.id)
                logger.info(
                    "document_posted",
                    extra={
                        "serial_number": serial,
                        "journal_serial_number": entry.serial_number,
                    },
                )

        result = PostingSweepResult(
            posted=len(posted_ids),
            failed=len(failures),
            errors=tuple(failures),
            posted_document_ids=tuple(posted_ids),
            entry_ids=tuple(entry_ids),
        )
        logger.info(
            "posting_sweep_completed",
            extra={
                "candidates": len(candidates),
                "posted": result.posted,
                "failed": result.failed,
            },
        )
        return result
