"""
PeriodService -- fiscal period lifecycle and posting-date validation.

Responsibility:
    Partitions time into fiscal periods, keeps every posting date covered
    (auto-creating the fiscal year on demand), locks periods one way, and
    is the gate every posting path calls before writing.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalWriter (and through it DocumentService) for every
    posting, and by LedgerAPI/LedgerBootstrap for coverage and locking.

Invariants enforced:
    - OPEN -> LOCKED is the only transition and LOCKED is terminal.  No
      unlock path exists here, and the ORM guard blocks one anyway.
    - Periods never overlap (checked on create).
    - No posting into a locked period: ``validate_posting_date()``.
    - Returns frozen FiscalPeriodInfo DTOs, never ORM entities.

Failure modes:
    - PeriodLockedError (PERIOD_LOCKED, field="date").
    - PeriodNotFoundError for an unknown period id.
    - PeriodOverlapError when a new range intersects an existing one.

Audit relevance:
    Locks append a PERIOD_LOCK audit row with reason
    "period closed for posting".
"""

from calendar import monthrange
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import FiscalPeriodInfo
from ledger_kernel.exceptions import (
    PeriodLockedError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")

LOCK_REASON = "period closed for posting"


def fiscal_year_bounds(for_date: date, start_month: int = 1) -> tuple[int, date, date]:
    """
    The fiscal year containing ``for_date``: (start year, start, end).

    With start_month=1 this is the calendar year.
    """
    start_year = for_date.year if for_date.month >= start_month else for_date.year - 1
    start = date(start_year, start_month, 1)
    if start_month == 1:
        end = date(start_year, 12, 31)
    else:
        end_month = start_month - 1
        end = date(start_year + 1, end_month, monthrange(start_year + 1, end_month)[1])
    return start_year, start, end


class PeriodService(BaseService):
    """
    Service for fiscal periods.

    Contract:
        ``validate_posting_date`` is the single gate protecting historical
        reports from silent revision.  Flush-only.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        fiscal_year_start_month: int = 1,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditorService(session, self._clock)
        self._start_month = fiscal_year_start_month

    # Queries

    def list_periods(self) -> list[FiscalPeriodInfo]:
        periods = self._session.scalars(
            select(FiscalPeriod).order_by(FiscalPeriod.start_date)
        ).all()
        return [FiscalPeriodInfo.from_model(p) for p in periods]

    def _get_period_for_date_orm(self, for_date: date) -> FiscalPeriod | None:
        return self._session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= for_date,
                FiscalPeriod.end_date >= for_date,
            )
        ).scalar_one_or_none()

    def get_period(self, period_id: UUID) -> FiscalPeriodInfo:
        period = self._session.get(FiscalPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return FiscalPeriodInfo.from_model(period)

    def get_period_for_date(self, for_date: date) -> FiscalPeriodInfo | None:
        period = self._get_period_for_date_orm(for_date)
        return FiscalPeriodInfo.from_model(period) if period else None

    def is_locked_for_date(self, for_date: date) -> bool:
        """True when a locked period contains ``for_date``."""
        period = self._get_period_for_date_orm(for_date)
        return bool(period and period.is_locked)

    # Lifecycle

    def create_period(
        self,
        period_code: str,
        start_date: date,
        end_date: date,
        actor_id: str | None = None,
    ) -> FiscalPeriodInfo:
        """
        Create an OPEN period.

        Raises:
            ValueError: If end_date is before start_date.
            PeriodOverlapError: If the range intersects an existing period.
        """
        if end_date < start_date:
            raise ValueError(
                f"Period {period_code} ends ({end_date}) before it starts ({start_date})"
            )

        existing = self._session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
        ).scalars().first()
        if existing is not None:
            logger.warning(
                "period_overlap_rejected",
                extra={
                    "period_code": period_code,
                    "existing_period_code": existing.period_code,
                },
            )
            raise PeriodOverlapError(
                period_code,
                existing.period_code,
                str(max(start_date, existing.start_date)),
                str(min(end_date, existing.end_date)),
            )

        period = FiscalPeriod(
            period_code=period_code,
            start_date=start_date,
            end_date=end_date,
            is_locked=False,
            created_by=actor_id,
        )
        self._session.add(period)
        self._session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return FiscalPeriodInfo.from_model(period)

    def ensure_coverage(self, for_date: date) -> FiscalPeriodInfo:
        """
        Return the period containing ``for_date``, creating its fiscal year
        when none exists.

        A fiscal year that would overlap a manually created period is
        trimmed to the free days around ``for_date``.
        """
        period = self._get_period_for_date_orm(for_date)
        if period is not None:
            return FiscalPeriodInfo.from_model(period)

        start_year, start, end = fiscal_year_bounds(for_date, self._start_month)
        neighbours = self._session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= end,
                FiscalPeriod.end_date >= start,
            )
        ).scalars().all()
        for other in neighbours:
            if other.end_date < for_date:
                start = max(start, date.fromordinal(other.end_date.toordinal() + 1))
            elif other.start_date > for_date:
                end = min(end, date.fromordinal(other.start_date.toordinal() - 1))

        code = f"FY-{start_year}"
        taken = self._session.execute(
            select(FiscalPeriod.id).where(FiscalPeriod.period_code == code)
        ).first()
        if taken is not None:
            code = f"FY-{start_year}-{start:%m%d}"

        return self.create_period(code, start, end)

    def lock_period(self, period_id: UUID, user_id: str | None = None) -> FiscalPeriodInfo:
        """
        Lock a period. Idempotent.

        Postconditions:
            - is_locked is True, closed_at/closed_by are set on the first
              call only.  A second call returns the current state and writes
              no audit row.

        Raises:
            PeriodNotFoundError: If ``period_id`` is unknown.
        """
        period = self._session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))

        if period.is_locked:
            logger.info(
                "period_already_locked",
                extra={"period_code": period.period_code},
            )
            return FiscalPeriodInfo.from_model(period)

        period.is_locked = True
        period.closed_at = self._clock.now()
        period.closed_by = user_id
        self._session.flush()

        logger.info(
            "period_locked",
            extra={"period_code": period.period_code, "closed_by": user_id},
        )
        self._auditor.record(
            AuditAction.PERIOD_LOCK,
            AuditEntityType.PERIOD,
            period.id,
            user_id=user_id,
            reason=LOCK_REASON,
            previous_state={"period_code": period.period_code, "is_locked": False},
            new_state={
                "period_code": period.period_code,
                "is_locked": True,
                "closed_at": period.closed_at,
            },
        )
        return FiscalPeriodInfo.from_model(period)

    # Gate

    def validate_posting_date(self, for_date: date) -> FiscalPeriodInfo:
        """
        Ensure ``for_date`` is covered and open for posting.

        Raises:
            PeriodLockedError: If the covering period is locked.
        """
        period = self.ensure_coverage(for_date)
        if period.is_locked:
            logger.warning(
                "posting_to_locked_period_rejected",
                extra={"period_code": period.period_code, "entry_date": str(for_date)},
            )
            raise PeriodLockedError(period.period_code, str(for_date))
        return period
