"""
ORM listeners that refuse in-place changes to posted history.

They run on ``before_update`` / ``before_delete`` during flush, so a bad
change raises ImmutabilityViolationError before any SQL is sent, whatever
code path made it. ``updated_at`` may always change. Per table:

    journal_entries   only replaced_by_id, and only from NULL
    journal_lines     nothing; no deletes
    audit_log         nothing; no deletes
    accounts          code, account_type, normal_balance fixed; no deletes
    fiscal_periods    is_locked never goes back to False, dates fixed once
                      locked; no deletes
    documents         journal_entry_id set once; no deletes

``register_immutability_listeners()`` is idempotent and runs at startup.
Tamper tests call ``unregister_immutability_listeners()`` to write behind
the guards.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Row metadata that may change on any record
_METADATA_FIELDS = frozenset({"updated_at"})


def _changed_fields(target, mapper) -> set[str]:
    """Names of mapped column attributes with pending changes."""
    changed = set()
    for attr in mapper.column_attrs:
        if attr.key in _METADATA_FIELDS:
            continue
        if get_history(target, attr.key).has_changes():
            changed.add(attr.key)
    return changed


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Allow exactly one transition: replaced_by_id NULL -> entry id.

    Every other column change is blocked.
    """
    changed = _changed_fields(target, mapper)
    if not changed:
        return

    if changed == {"replaced_by_id"}:
        history = get_history(target, "replaced_by_id")
        previous = history.deleted[0] if history.deleted else None
        if previous is None and target.replaced_by_id is not None:
            return
        _block("JournalEntry", target, "UPDATE", "replaced_by_id can only be set once")

    _block(
        "JournalEntry",
        target,
        "UPDATE",
        f"journal entries are append-only (changed: {sorted(changed)})",
    )


def _check_journal_entry_delete(mapper, connection, target):
    _block("JournalEntry", target, "DELETE", "journal entries cannot be deleted")


def _check_journal_line_immutability(mapper, connection, target):
    if _changed_fields(target, mapper):
        _block("JournalLine", target, "UPDATE", "journal lines are append-only")


def _check_journal_line_delete(mapper, connection, target):
    _block("JournalLine", target, "DELETE", "journal lines cannot be deleted")


def _check_audit_entry_immutability(mapper, connection, target):
    _block("AuditLogEntry", target, "UPDATE", "audit log entries are immutable")


def _check_audit_entry_delete(mapper, connection, target):
    _block("AuditLogEntry", target, "DELETE", "audit log entries cannot be deleted")


# Structural fields fix how historical lines are signed and grouped
ACCOUNT_STRUCTURAL_FIELDS = frozenset({"account_type", "normal_balance", "code"})


def _check_account_structural_immutability(mapper, connection, target):
    changed = _changed_fields(target, mapper) & ACCOUNT_STRUCTURAL_FIELDS
    if changed:
        _block(
            "Account",
            target,
            "UPDATE",
            f"structural fields are immutable: {sorted(changed)}",
        )


def _check_account_delete(mapper, connection, target):
    _block("Account", target, "DELETE", "accounts are deactivated, never deleted")


def _check_fiscal_period_immutability(mapper, connection, target):
    lock_history = get_history(target, "is_locked")
    was_locked = bool(lock_history.deleted and lock_history.deleted[0])
    if not lock_history.has_changes():
        was_locked = bool(target.is_locked)

    if was_locked and not target.is_locked:
        _block("FiscalPeriod", target, "UPDATE", "a locked period cannot be unlocked")

    if was_locked:
        changed = _changed_fields(target, mapper) - {"is_locked", "closed_at", "closed_by"}
        if changed:
            _block(
                "FiscalPeriod",
                target,
                "UPDATE",
                f"locked period fields are frozen: {sorted(changed)}",
            )


def _check_fiscal_period_delete(mapper, connection, target):
    _block("FiscalPeriod", target, "DELETE", "fiscal periods cannot be deleted")


def _check_document_immutability(mapper, connection, target):
    history = get_history(target, "journal_entry_id")
    if history.has_changes() and history.deleted and history.deleted[0] is not None:
        _block("Document", target, "UPDATE", "journal_entry_id can only be set once")


def _check_document_delete(mapper, connection, target):
    _block("Document", target, "DELETE", "documents cannot be deleted")


def _listener_table():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.audit_log import AuditLogEntry
    from ledger_kernel.models.document import Document
    from ledger_kernel.models.fiscal_period import FiscalPeriod
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return (
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (AuditLogEntry, "before_update", _check_audit_entry_immutability),
        (AuditLogEntry, "before_delete", _check_audit_entry_delete),
        (Account, "before_update", _check_account_structural_immutability),
        (Account, "before_delete", _check_account_delete),
        (FiscalPeriod, "before_update", _check_fiscal_period_immutability),
        (FiscalPeriod, "before_delete", _check_fiscal_period_delete),
        (Document, "before_update", _check_document_immutability),
        (Document, "before_delete", _check_document_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Call after all models are imported and before any database operations.
    Registering twice is a no-op.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    to verify detection (e.g. audit chain tampering).
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
