"""
Document posting result types (``ledger_modules.documents.models``).

Frozen value objects returned by ``DocumentService.post_unposted_documents``.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class PostingFailure:
    """One document the sweep could not post; it stays unposted."""

    document_id: UUID
    serial_number: str
    error_code: str
    message: str


@dataclass(frozen=True)
class PostingSweepResult:
    """
    Outcome of one posting sweep.

    ``entry_ids`` pairs with ``posted_document_ids`` by position.
    """

    posted: int
    failed: int
    errors: tuple[PostingFailure, ...] = ()
    posted_document_ids: tuple[UUID, ...] = ()
    entry_ids: tuple[UUID, ...] = ()

    @property
    def is_clean(self) -> bool:
        return self.failed == 0
