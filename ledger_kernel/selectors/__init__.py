"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.document_selector import DocumentSearch, DocumentSelector
from ledger_kernel.selectors.journal_selector import EntrySearch, JournalSelector

__all__ = [
    "DocumentSearch",
    "DocumentSelector",
    "EntrySearch",
    "JournalSelector",
]
