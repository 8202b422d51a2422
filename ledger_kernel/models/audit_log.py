"""
Module: ledger_kernel.models.audit_log
Responsibility: ORM persistence for the tamper-evident audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (db/immutability.py).
    - Hash chain: hash = H(entity_type | entity_id | action | payload_hash |
      prev_hash).  Validated by AuditorService.validate_chain().
    - seq is monotonically increasing, allocated by SequenceService.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    CANCEL = "CANCEL"
    CORRECT = "CORRECT"
    DEACTIVATE = "DEACTIVATE"
    PERIOD_LOCK = "PERIOD_LOCK"


class AuditEntityType(str, Enum):
    """Record classes that produce audit rows."""

    ACCOUNT = "ACCOUNT"
    JOURNAL_ENTRY = "JOURNAL_ENTRY"
    DOCUMENT = "DOCUMENT"
    PERIOD = "PERIOD"


class AuditLogEntry(Base):
    """
    One audit row.

    Contract:
        previous_state / new_state are JSON snapshots of the fields that
        matter for the action (serial, date, totals, lock flag ...), not
        full row dumps.
    """

    __tablename__ = "audit_log"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_timestamp", "timestamp"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    action: Mapped[AuditAction] = mapped_column(String(30), nullable=False)

    entity_type: Mapped[AuditEntityType] = mapped_column(String(30), nullable=False)

    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)

    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    previous_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    new_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Null only for the first row of the chain
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
