"""
Pure domain layer.

Immutable DTOs, money helpers, the injectable clock and report deadlines.
Nothing here opens a session or touches the database.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.deadline import CancellationToken, Deadline
from ledger_kernel.domain.dtos import (
    ACTIVE,
    AccountInfo,
    ActiveState,
    AuditEntryRecord,
    DocumentInput,
    DocumentItem,
    DocumentRecord,
    EntryMeta,
    EntryState,
    FiscalPeriodInfo,
    JournalEntryRecord,
    LineInput,
    LineRecord,
    SupersededBy,
)
from ledger_kernel.domain.values import (
    PRECISION,
    TOLERANCE,
    ZERO,
    money_sum,
    round_money,
    to_decimal,
    within_tolerance,
)

__all__ = [
    "ACTIVE",
    "AccountInfo",
    "ActiveState",
    "AuditEntryRecord",
    "CancellationToken",
    "Clock",
    "Deadline",
    "DeterministicClock",
    "DocumentInput",
    "DocumentItem",
    "DocumentRecord",
    "EntryMeta",
    "EntryState",
    "FiscalPeriodInfo",
    "JournalEntryRecord",
    "LineInput",
    "LineRecord",
    "PRECISION",
    "SupersededBy",
    "SystemClock",
    "TOLERANCE",
    "ZERO",
    "money_sum",
    "round_money",
    "to_decimal",
    "within_tolerance",
]
