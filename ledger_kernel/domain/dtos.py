"""
DTOs -- Immutable data transfer objects for the ledger.

Responsibility:
    Defines the frozen structures that cross the service boundary: posting
    input (LineInput, EntryMeta, DocumentInput) and read-side snapshots
    (JournalEntryRecord, LineRecord, AccountInfo, FiscalPeriodInfo,
    DocumentRecord, AuditEntryRecord).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers.  Report folds consume these records and
    never see ORM objects.

Invariants enforced:
    - Entry state is a tagged value: ActiveState or SupersededBy(entry_id).
      ``JournalEntryRecord.is_current`` is the single predicate every fold
      filters on.
    - LineInput rejects float amounts at construction.

Data flow:
    LineInput + EntryMeta -> JournalWriter -> JournalEntry (ORM)
        -> JournalEntryRecord -> reporting folds
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Union
from uuid import UUID

from ledger_kernel.domain.values import ZERO, round_money, to_decimal
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.models.document import DocumentStatus, DocumentType, PaymentMethod
from ledger_kernel.models.fiscal_period import PeriodStatus
from ledger_kernel.models.journal import JournalEntryStatus, LineSide

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.audit_log import AuditLogEntry as AuditLogEntryModel
    from ledger_kernel.models.document import Document as DocumentModel
    from ledger_kernel.models.fiscal_period import FiscalPeriod as FiscalPeriodModel
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel


# ---------------------------------------------------------------------------
# Posting input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineInput:
    """
    One proposed journal line in two-column form.

    Contract:
        Identify the account by ``account_id`` or ``account_code`` (id wins
        when both are given).  Exactly one of debit/credit must be positive;
        JournalWriter enforces that, this class only normalizes to Decimal.
    """

    account_id: UUID | None = None
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description_local: str | None = None
    description_alt: str | None = None
    account_code: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    @classmethod
    def dr(cls, account: UUID | str, amount, **kwargs) -> LineInput:
        """Debit line for an account id or account code."""
        if isinstance(account, UUID):
            return cls(account_id=account, debit=amount, **kwargs)
        return cls(account_code=account, debit=amount, **kwargs)

    @classmethod
    def cr(cls, account: UUID | str, amount, **kwargs) -> LineInput:
        """Credit line for an account id or account code."""
        if isinstance(account, UUID):
            return cls(account_id=account, credit=amount, **kwargs)
        return cls(account_code=account, credit=amount, **kwargs)


@dataclass(frozen=True)
class EntryMeta:
    """Header fields of a journal entry that are not lines or date."""

    description_local: str | None = None
    description_alt: str | None = None
    document_type: str | None = None
    document_id: UUID | None = None
    contact_id: str | None = None
    bank_account_id: str | None = None
    property_id: str | None = None
    project_id: str | None = None
    status: JournalEntryStatus = JournalEntryStatus.APPROVED
    actor_id: str | None = None


# ---------------------------------------------------------------------------
# Entry state (tagged)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActiveState:
    """The entry is the current version of its fact."""

    kind: str = "active"


@dataclass(frozen=True)
class SupersededBy:
    """The entry was corrected; ``entry_id`` is its replacement."""

    entry_id: UUID
    kind: str = "superseded"


EntryState = Union[ActiveState, SupersededBy]

ACTIVE = ActiveState()


def entry_state_for(replaced_by_id: UUID | None) -> EntryState:
    return ACTIVE if replaced_by_id is None else SupersededBy(replaced_by_id)


# ---------------------------------------------------------------------------
# Read-side records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineRecord:
    """A persisted journal line, read-only."""

    account_id: UUID
    account_code: str
    side: LineSide
    amount: Decimal
    line_seq: int = 0
    description_local: str | None = None
    description_alt: str | None = None

    @property
    def debit(self) -> Decimal:
        return self.amount if self.side == LineSide.DEBIT else ZERO

    @property
    def credit(self) -> Decimal:
        return self.amount if self.side == LineSide.CREDIT else ZERO


@dataclass(frozen=True)
class JournalEntryRecord:
    """
    A finalized journal entry.

    Guarantees:
        - Immutable (frozen dataclass); lines ordered by line_seq.
        - ``state`` mirrors replaced_by_id as a tagged value.
    """

    id: UUID
    serial_number: str
    version: int
    entry_date: date
    total_debit: Decimal
    total_credit: Decimal
    status: JournalEntryStatus
    state: EntryState
    lines: tuple[LineRecord, ...]
    description_local: str | None = None
    description_alt: str | None = None
    document_type: str | None = None
    document_id: UUID | None = None
    contact_id: str | None = None
    bank_account_id: str | None = None
    property_id: str | None = None
    project_id: str | None = None
    created_by: str | None = None

    @property
    def is_current(self) -> bool:
        """Included in balance and report folds."""
        return isinstance(self.state, ActiveState) and (
            self.status != JournalEntryStatus.CANCELLED
        )

    @property
    def replaced_by_id(self) -> UUID | None:
        return self.state.entry_id if isinstance(self.state, SupersededBy) else None

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalEntryRecord:
        lines = tuple(
            LineRecord(
                account_id=line.account_id,
                account_code=line.account.code if line.account else "",
                side=LineSide(line.side),
                amount=round_money(line.amount),
                line_seq=line.line_seq,
                description_local=line.description_local,
                description_alt=line.description_alt,
            )
            for line in sorted(model.lines, key=lambda x: x.line_seq)
        )
        return cls(
            id=model.id,
            serial_number=model.serial_number,
            version=model.version,
            entry_date=model.entry_date,
            total_debit=round_money(model.total_debit),
            total_credit=round_money(model.total_credit),
            status=JournalEntryStatus(model.status),
            state=entry_state_for(model.replaced_by_id),
            lines=lines,
            description_local=model.description_local,
            description_alt=model.description_alt,
            document_type=model.document_type,
            document_id=model.document_id,
            contact_id=model.contact_id,
            bank_account_id=model.bank_account_id,
            property_id=model.property_id,
            project_id=model.project_id,
            created_by=model.created_by,
        )


@dataclass(frozen=True)
class AccountInfo:
    """Immutable snapshot of an account."""

    id: UUID
    code: str
    name_local: str
    account_type: AccountType
    normal_balance: NormalBalance
    is_active: bool = True
    name_alt: str | None = None
    parent_id: UUID | None = None
    sort_order: int = 0

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name_local=model.name_local,
            name_alt=model.name_alt,
            account_type=AccountType(model.account_type),
            normal_balance=NormalBalance(model.normal_balance),
            is_active=model.is_active,
            parent_id=model.parent_id,
            sort_order=model.sort_order,
        )


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """Immutable snapshot of a fiscal period."""

    id: UUID
    period_code: str
    start_date: date
    end_date: date
    is_locked: bool
    closed_at: datetime | None = None
    closed_by: str | None = None

    @property
    def status(self) -> PeriodStatus:
        return PeriodStatus.LOCKED if self.is_locked else PeriodStatus.OPEN

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(cls, model: FiscalPeriodModel) -> FiscalPeriodInfo:
        return cls(
            id=model.id,
            period_code=model.period_code,
            start_date=model.start_date,
            end_date=model.end_date,
            is_locked=model.is_locked,
            closed_at=model.closed_at,
            closed_by=model.closed_by,
        )


@dataclass(frozen=True)
class DocumentItem:
    """A document line item; ``account_code`` routes purchase items."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    account_code: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_decimal(self.quantity))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))

    @property
    def line_total(self) -> Decimal:
        return round_money(self.quantity * self.unit_price)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
        }
        if self.account_code:
            data["account_code"] = self.account_code
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> DocumentItem:
        return cls(
            description=data.get("description", ""),
            quantity=data.get("quantity", "0"),
            unit_price=data.get("unit_price", "0"),
            account_code=data.get("account_code"),
        )


@dataclass(frozen=True)
class DocumentInput:
    """
    Fields for DocumentService.create_document().

    amount, vat_amount and total_amount may be omitted; the service derives
    them from items and vat_rate.  ``serial_number`` is for manual numbering.
    """

    document_type: DocumentType
    document_date: date
    amount: Decimal | None = None
    status: DocumentStatus = DocumentStatus.DRAFT
    currency: str | None = None
    vat_rate: Decimal | None = None
    vat_amount: Decimal | None = None
    total_amount: Decimal | None = None
    items: tuple[DocumentItem, ...] = ()
    due_date: date | None = None
    contact_id: str | None = None
    bank_account_id: str | None = None
    property_id: str | None = None
    project_id: str | None = None
    booking_id: str | None = None
    contract_id: str | None = None
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    cheque_number: str | None = None
    cheque_due_date: date | None = None
    cheque_bank_name: str | None = None
    reference: str | None = None
    description_local: str | None = None
    description_alt: str | None = None
    notes: str | None = None
    attachments: tuple[dict[str, str], ...] = ()
    serial_number: str | None = None
    actor_id: str | None = None


@dataclass(frozen=True)
class DocumentRecord:
    """Immutable snapshot of a document."""

    id: UUID
    serial_number: str
    document_type: DocumentType
    status: DocumentStatus
    document_date: date
    amount: Decimal
    currency: str
    total_amount: Decimal
    vat_rate: Decimal | None = None
    vat_amount: Decimal | None = None
    due_date: date | None = None
    contact_id: str | None = None
    bank_account_id: str | None = None
    property_id: str | None = None
    project_id: str | None = None
    booking_id: str | None = None
    contract_id: str | None = None
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    cheque_number: str | None = None
    cheque_due_date: date | None = None
    cheque_bank_name: str | None = None
    reference: str | None = None
    description_local: str | None = None
    description_alt: str | None = None
    notes: str | None = None
    items: tuple[DocumentItem, ...] = ()
    attachments: tuple[dict[str, str], ...] = ()
    journal_entry_id: UUID | None = None

    @property
    def is_posted(self) -> bool:
        return self.journal_entry_id is not None

    @classmethod
    def from_model(cls, model: DocumentModel) -> DocumentRecord:
        return cls(
            id=model.id,
            serial_number=model.serial_number,
            document_type=DocumentType(model.document_type),
            status=DocumentStatus(model.status),
            document_date=model.document_date,
            amount=round_money(model.amount),
            currency=model.currency,
            total_amount=round_money(model.total_amount),
            vat_rate=model.vat_rate,
            vat_amount=(
                round_money(model.vat_amount) if model.vat_amount is not None else None
            ),
            due_date=model.due_date,
            contact_id=model.contact_id,
            bank_account_id=model.bank_account_id,
            property_id=model.property_id,
            project_id=model.project_id,
            booking_id=model.booking_id,
            contract_id=model.contract_id,
            payment_method=(
                PaymentMethod(model.payment_method) if model.payment_method else None
            ),
            payment_reference=model.payment_reference,
            cheque_number=model.cheque_number,
            cheque_due_date=model.cheque_due_date,
            cheque_bank_name=model.cheque_bank_name,
            reference=model.reference,
            description_local=model.description_local,
            description_alt=model.description_alt,
            notes=model.notes,
            items=tuple(DocumentItem.from_json(i) for i in (model.items or ())),
            attachments=tuple(dict(a) for a in (model.attachments or ())),
            journal_entry_id=model.journal_entry_id,
        )


@dataclass(frozen=True)
class AuditEntryRecord:
    """Immutable snapshot of an audit log row."""

    id: UUID
    seq: int
    timestamp: datetime
    action: str
    entity_type: str
    entity_id: str
    hash: str
    prev_hash: str | None = None
    user_id: str | None = None
    reason: str | None = None
    previous_state: dict[str, Any] | None = field(default=None, compare=False)
    new_state: dict[str, Any] | None = field(default=None, compare=False)

    @classmethod
    def from_model(cls, model: AuditLogEntryModel) -> AuditEntryRecord:
        return cls(
            id=model.id,
            seq=model.seq,
            timestamp=model.timestamp,
            action=model.action,
            entity_type=model.entity_type,
            entity_id=model.entity_id,
            hash=model.hash,
            prev_hash=model.prev_hash,
            user_id=model.user_id,
            reason=model.reason,
            previous_state=model.previous_state,
            new_state=model.new_state,
        )
