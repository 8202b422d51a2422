"""Utility modules for the ledger kernel."""

from ledger_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_event,
    hash_payload,
    hash_report,
)

__all__ = [
    "canonicalize_json",
    "hash_audit_event",
    "hash_payload",
    "hash_report",
]
