"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Appends one immutable, hash-chained row for every state-changing action
    (account creation and deactivation, entry creation and correction,
    document creation, posting and cancellation, period locks).  Provides
    chain validation for tamper detection and the filtered audit log query.

Architecture position:
    Kernel > Services -- imperative shell, called by AccountService,
    JournalWriter, PeriodService and DocumentService.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never raw SQL max+1).
    - Chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)``; the first row chains to GENESIS.
    - Append-only: audit rows are never modified or deleted (ORM guards).
    - Best effort: a failed audit write never rolls back the financial
      write it describes.  Each attempt runs in its own SAVEPOINT.

Failure modes:
    - AuditWriteFailure: logged (``audit_write_failed``) after the retry
      budget is spent, never raised.
    - AuditChainBrokenError: raised by validate_chain() on a mismatch.
"""

import json
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AuditEntryRecord
from ledger_kernel.exceptions import AuditChainBrokenError, AuditWriteFailure
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType, AuditLogEntry
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")


def _plain(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_safe(state: dict[str, Any] | None) -> dict[str, Any] | None:
    """Snapshot as stored in the JSON column (and as hashed)."""
    if state is None:
        return None
    return json.loads(json.dumps(state, default=_plain))


def _payload(
    user_id: str | None,
    reason: str | None,
    previous_state: dict[str, Any] | None,
    new_state: dict[str, Any] | None,
) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "reason": reason,
        "previous_state": previous_state,
        "new_state": new_state,
    }


class AuditorService:
    """
    Service for managing the audit trail.

    Contract:
        ``record()`` returns the persisted row as an AuditEntryRecord, or
        None when every attempt failed.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        retry_attempts: int = 3,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._retry_attempts = max(1, retry_attempts)
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        """Get the hash of the most recent audit row."""
        last = self._session.execute(
            select(AuditLogEntry).order_by(AuditLogEntry.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def _append(
        self,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: str,
        user_id: str | None,
        reason: str | None,
        previous_state: dict[str, Any] | None,
        new_state: dict[str, Any] | None,
    ) -> AuditLogEntry:
        seq = self._sequence_service.next_value(SequenceService.AUDIT_LOG)
        prev_hash = self._get_last_hash()

        payload_hash = hash_payload(_payload(user_id, reason, previous_state, new_state))
        entry_hash = hash_audit_event(
            entity_type=entity_type.value,
            entity_id=entity_id,
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditLogEntry(
            seq=seq,
            timestamp=self._clock.now(),
            action=action.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
            user_id=user_id,
            reason=reason,
            previous_state=previous_state,
            new_state=new_state,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def record(
        self,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: UUID | str,
        user_id: str | None = None,
        reason: str | None = None,
        previous_state: dict[str, Any] | None = None,
        new_state: dict[str, Any] | None = None,
    ) -> AuditEntryRecord | None:
        """
        Append an audit row, retrying storage errors; never raises them.

        Postconditions:
            - On success the row is flushed with the next seq and a valid
              chain link.
            - On failure every attempt's SAVEPOINT was rolled back, the
              caller's own work is untouched, and ``audit_write_failed``
              is logged.
        """
        entity_id = str(entity_id)
        previous_state = json_safe(previous_state)
        new_state = json_safe(new_state)

        for attempt in range(1, self._retry_attempts + 1):
            savepoint = self._session.begin_nested()
            try:
                entry = self._append(
                    action,
                    entity_type,
                    entity_id,
                    user_id,
                    reason,
                    previous_state,
                    new_state,
                )
                savepoint.commit()
            except SQLAlchemyError:
                savepoint.rollback()
                logger.warning(
                    "audit_write_retry",
                    extra={
                        "action": action.value,
                        "entity_type": entity_type.value,
                        "entity_id": entity_id,
                        "attempt": attempt,
                    },
                    exc_info=True,
                )
                continue

            logger.info(
                "audit_event_created",
                extra={
                    "action": action.value,
                    "entity_type": entity_type.value,
                    "entity_id": entity_id,
                    "seq": entry.seq,
                },
            )
            return AuditEntryRecord.from_model(entry)

        failure = AuditWriteFailure(
            action.value, entity_type.value, entity_id, self._retry_attempts
        )
        logger.error(
            "audit_write_failed",
            extra={
                "action": action.value,
                "entity_type": entity_type.value,
                "entity_id": entity_id,
                "attempts": self._retry_attempts,
            },
            exc_info=failure,
        )
        return None

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Recomputes each row's payload hash from its stored fields and its
        chained hash from the predecessor.

        Raises:
            AuditChainBrokenError: If validation fails at any row.
        """
        rows = self._session.execute(
            select(AuditLogEntry).order_by(AuditLogEntry.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for row in rows:
            if row.prev_hash != prev_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"seq": row.seq, "reason": "prev_hash mismatch"},
                )
                raise AuditChainBrokenError(
                    str(row.id), prev_hash or "None", row.prev_hash or "None"
                )

            payload_hash = hash_payload(
                _payload(row.user_id, row.reason, row.previous_state, row.new_state)
            )
            expected = hash_audit_event(
                entity_type=row.entity_type,
                entity_id=row.entity_id,
                action=row.action,
                payload_hash=payload_hash,
                prev_hash=row.prev_hash,
            )
            if row.hash != expected:
                logger.critical(
                    "audit_chain_broken",
                    extra={"seq": row.seq, "reason": "hash mismatch"},
                )
                raise AuditChainBrokenError(str(row.id), expected, row.hash)
            prev_hash = row.hash

        logger.info("audit_chain_valid", extra={"event_count": len(rows)})
        return True

    # Queries

    def get_audit_log(
        self,
        limit: int | None = None,
        entity_type: AuditEntityType | str | None = None,
        entity_id: UUID | str | None = None,
        action: AuditAction | str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[AuditEntryRecord]:
        """Audit rows, newest first, optionally filtered."""
        stmt = select(AuditLogEntry)
        if entity_type is not None:
            stmt = stmt.where(
                AuditLogEntry.entity_type == AuditEntityType(entity_type).value
            )
        if entity_id is not None:
            stmt = stmt.where(AuditLogEntry.entity_id == str(entity_id))
        if action is not None:
            stmt = stmt.where(AuditLogEntry.action == AuditAction(action).value)
        if from_date is not None:
            stmt = stmt.where(
                AuditLogEntry.timestamp
                >= datetime.combine(from_date, time.min, tzinfo=timezone.utc)
            )
        if to_date is not None:
            stmt = stmt.where(
                AuditLogEntry.timestamp
                <= datetime.combine(to_date, time.max, tzinfo=timezone.utc)
            )
        stmt = stmt.order_by(AuditLogEntry.seq.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        return [
            AuditEntryRecord.from_model(row)
            for row in self._session.execute(stmt).scalars().all()
        ]
