"""
Module: ledger_kernel.models.sequence
Responsibility: Counter rows backing every serial number and the audit
    sequence.
Architecture position: Kernel > Models.  May import from db/base.py only.

Each row is a named counter ("JRN:2024", "RCP:2025", "audit_log").  The row
is locked with SELECT ... FOR UPDATE while it is incremented, so the value
never comes from an aggregate max+1 over the tagged records.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
