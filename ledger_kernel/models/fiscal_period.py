"""
Fiscal periods: the date ranges every posting is checked against.

Periods never overlap (PeriodService checks on create) and are never
deleted. Locking is one-way; ``db/immutability.py`` refuses to set
``is_locked`` back to False. Only PeriodService writes the lock columns.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class PeriodStatus(str, Enum):
    OPEN = "open"
    LOCKED = "locked"


class FiscalPeriod(TrackedBase):
    """``FY-2024`` style period; both ends of the range are inclusive."""

    __tablename__ = "fiscal_periods"
    __table_args__ = (
        UniqueConstraint("period_code", name="uq_period_code"),
        Index("idx_period_dates", "start_date", "end_date"),
    )

    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date] = mapped_column(nullable=False)
    is_locked: Mapped[bool] = mapped_column(default=False, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.period_code} {self.status.value}>"

    @property
    def status(self) -> PeriodStatus:
        return PeriodStatus.LOCKED if self.is_locked else PeriodStatus.OPEN

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date
