"""
Journal entries and their lines: the only tables balances are folded from.

Rows here are append-only (see ``db/immutability.py``). The single update
ever allowed is stamping ``replaced_by_id`` on an entry when a correction
supersedes it; after that the old entry still lists but no longer counts.
Serial numbers are unique (``uq_journal_serial``); a duplicate surfaces
as an IntegrityError from the flush.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account

DESCRIPTION_LENGTH = 500
EXTERNAL_ID_LENGTH = 100
BALANCE_TOLERANCE = Decimal("0.01")


class JournalEntryStatus(str, Enum):
    """Workflow status, copied from the source document when there is one."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class LineSide(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


def _text(length: int) -> Mapped[str | None]:
    return mapped_column(String(length), nullable=True)


class JournalEntry(TrackedBase):
    """
    A dated, balanced set of lines with serial ``JRN-YYYY-NNNN``.

    ``version`` is 1 for an original and previous + 1 for each correction.
    Cancelled and superseded entries stay listable but drop out of every
    balance and report.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_journal_serial"),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_document", "document_type", "document_id"),
        Index("idx_journal_bank_account", "bank_account_id"),
        Index("idx_journal_property", "property_id"),
        Index("idx_journal_contact", "contact_id"),
    )

    serial_number: Mapped[str] = mapped_column(String(40), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    entry_date: Mapped[date] = mapped_column(nullable=False)
    total_debit: Mapped[Decimal] = mapped_column(nullable=False)
    total_credit: Mapped[Decimal] = mapped_column(nullable=False)
    description_local: Mapped[str | None] = _text(DESCRIPTION_LENGTH)
    description_alt: Mapped[str | None] = _text(DESCRIPTION_LENGTH)

    # set when DocumentService derived the entry
    document_type: Mapped[str | None] = _text(30)
    document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # tags owned by the contact, bank and property catalogs
    contact_id: Mapped[str | None] = _text(EXTERNAL_ID_LENGTH)
    bank_account_id: Mapped[str | None] = _text(EXTERNAL_ID_LENGTH)
    property_id: Mapped[str | None] = _text(EXTERNAL_ID_LENGTH)
    project_id: Mapped[str | None] = _text(EXTERNAL_ID_LENGTH)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20), nullable=False, default=JournalEntryStatus.APPROVED
    )
    replaced_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="save-update, merge",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.serial_number} v{self.version} {self.status}>"

    @property
    def is_superseded(self) -> bool:
        return self.replaced_by_id is not None

    @property
    def is_current(self) -> bool:
        """Counts toward balances and reports."""
        return not self.is_superseded and JournalEntryStatus(self.status) != JournalEntryStatus.CANCELLED

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) <= BALANCE_TOLERANCE


class JournalLine(TrackedBase):
    """
    One side of an entry. ``amount`` is positive and ``side`` says which
    column it belongs in; ``debit``/``credit`` give the two-column view.
    """

    __tablename__ = "journal_lines"
    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False
    )
    account_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("accounts.id"), nullable=False)
    side: Mapped[LineSide] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description_local: Mapped[str | None] = _text(DESCRIPTION_LENGTH)
    description_alt: Mapped[str | None] = _text(DESCRIPTION_LENGTH)
    line_seq: Mapped[int] = mapped_column(nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return f"<JournalLine #{self.line_seq} {self.side} {self.amount}>"

    @property
    def debit(self) -> Decimal:
        return self.amount if LineSide(self.side) == LineSide.DEBIT else Decimal("0")

    @property
    def credit(self) -> Decimal:
        return self.amount if LineSide(self.side) == LineSide.CREDIT else Decimal("0")
