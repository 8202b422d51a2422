"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType, AuditLogEntry
from ledger_kernel.models.document import (
    POSTABLE_STATUSES,
    Document,
    DocumentStatus,
    DocumentType,
    PaymentMethod,
)
from ledger_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    LineSide,
)
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "AuditAction",
    "AuditEntityType",
    "AuditLogEntry",
    "Document",
    "DocumentStatus",
    "DocumentType",
    "PaymentMethod",
    "POSTABLE_STATUSES",
    "FiscalPeriod",
    "PeriodStatus",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LineSide",
    "SequenceCounter",
]
