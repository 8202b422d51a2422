"""
Module: ledger_kernel.models.document
Responsibility: ORM persistence for business documents (invoices, receipts,
    payments, cheques, purchase orders, ...) that may be posted to the ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced (by DocumentService before insert):
    - total_amount == amount + (vat_amount or 0).
    - With items, amount == sum(quantity * unit_price).
    - journal_entry_id is written once, by DocumentService, when the
      document is posted.

A document with status APPROVED or PAID and no journal_entry_id is the
"unposted approved" condition: queryable, and cleared by the next sweep.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class DocumentType(str, Enum):
    """Business document types."""

    INVOICE = "INVOICE"
    RECEIPT = "RECEIPT"
    QUOTE = "QUOTE"
    DEPOSIT = "DEPOSIT"
    PAYMENT = "PAYMENT"
    JOURNAL = "JOURNAL"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    PURCHASE_INV = "PURCHASE_INV"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    OTHER = "OTHER"


class DocumentStatus(str, Enum):
    """Document workflow status."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


POSTABLE_STATUSES = frozenset({DocumentStatus.APPROVED, DocumentStatus.PAID})


class PaymentMethod(str, Enum):
    """How money moved for the document."""

    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"


class Document(TrackedBase):
    """
    Business-facing record that can be posted as exactly one journal entry.

    items is a JSON list of {description, quantity, unit_price, account_code?};
    attachments a JSON list of {name, url}.
    """

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_document_serial"),
        Index("idx_document_type_status", "document_type", "status"),
        Index("idx_document_date", "document_date"),
        Index("idx_document_journal", "journal_entry_id"),
    )

    serial_number: Mapped[str] = mapped_column(String(40), nullable=False)

    document_type: Mapped[DocumentType] = mapped_column(String(30), nullable=False)

    status: Mapped[DocumentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=DocumentStatus.DRAFT,
    )

    document_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    contact_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    property_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    booking_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contract_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    vat_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    vat_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    payment_method: Mapped[PaymentMethod | None] = mapped_column(String(20), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cheque_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cheque_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    cheque_bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description_local: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description_alt: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    items: Mapped[list | None] = mapped_column(JSON, nullable=True)
    attachments: Mapped[list | None] = mapped_column(JSON, nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Document {self.serial_number} {self.document_type} {self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.journal_entry_id is not None

    @property
    def is_unposted_approved(self) -> bool:
        return (
            self.journal_entry_id is None
            and DocumentStatus(self.status) in POSTABLE_STATUSES
        )
