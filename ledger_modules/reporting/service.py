"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates report generation -- account balance and ledger, trial
balance, income statement, balance sheet, cash flow statement, bank and
property/contact sub-ledgers -- by bridging ``JournalSelector`` to the pure
folds in ``statements.py``.  This is a **read-only** service: no journal
entries are posted and nothing is cached or persisted.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config`` + fiscal year start month + optional timeout.

Invariants enforced
-------------------
* Read-only -- no mutations to the database.
* Every report is recomputed from current entries on each call.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* Unknown account id  -> ``AccountNotFoundError``.
* Invalid range (to_date < from_date)  -> ``ValueError`` before querying.
* Timeout or cancellation  -> ``ReportCancelledError``; no partial report.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.deadline import CancellationToken, Deadline
from ledger_kernel.domain.dtos import AccountInfo, JournalEntryRecord
from ledger_kernel.domain.values import TOLERANCE
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.period_service import fiscal_year_bounds
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountBalance,
    AccountLedgerReport,
    BalanceSheetReport,
    BankLedgerReport,
    CashFlowStatementReport,
    DimensionLedgerReport,
    IncomeStatementReport,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    account_balance,
    build_account_ledger,
    build_balance_sheet,
    build_bank_ledger,
    build_cash_flow_statement,
    build_dimension_ledger,
    build_income_statement,
    build_trial_balance,
)

logger = get_logger("modules.reporting.service")


def _check_range(from_date: date | None, to_date: date | None) -> None:
    if from_date is not None and to_date is not None and to_date < from_date:
        raise ValueError(f"to_date {to_date} is before from_date {from_date}")


class ReportingService:
    """
    Report generation service.

    Contract
    --------
    * Every public method returns a typed, frozen report.
    * All methods are **read-only**.
    * ``token`` lets another thread abandon a running report.

    Non-goals
    ---------
    * Does NOT post journal entries.
    * Does NOT enforce fiscal-period locks (read-only service).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        fiscal_year_start_month: int = 1,
        timeout_seconds: float | None = None,
        tolerance: Decimal = TOLERANCE,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._start_month = fiscal_year_start_month
        self._timeout = timeout_seconds
        self._tolerance = tolerance
        self._journal = JournalSelector(session)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _deadline(
        self,
        report_type: ReportType,
        token: CancellationToken | None,
    ) -> Deadline:
        deadline = Deadline(report_type.value, self._timeout, token)
        deadline.check()
        return deadline

    def _load_accounts(self) -> list[AccountInfo]:
        """All accounts, inactive included, so historical activity still reports."""
        accounts = self._session.scalars(select(Account).order_by(Account.code)).all()
        return [AccountInfo.from_model(a) for a in accounts]

    def _load_account(self, account_id: UUID) -> AccountInfo:
        account = self._session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return AccountInfo.from_model(account)

    def _entries(self, to_date: date | None = None) -> list[JournalEntryRecord]:
        entries = self._journal.current_entries(to_date=to_date)
        logger.debug(
            "entries_loaded_for_reporting",
            extra={"entry_count": len(entries)},
        )
        return entries

    def _log(self, report_type: ReportType, **params) -> None:
        logger.info(
            "report_generated",
            extra={
                "report_type": report_type.value,
                **{k: str(v) if v is not None else None for k, v in params.items()},
            },
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def account_balance(
        self,
        account_id: UUID,
        as_of: date | None = None,
        token: CancellationToken | None = None,
    ) -> AccountBalance:
        deadline = self._deadline(ReportType.ACCOUNT_BALANCE, token)
        account = self._load_account(account_id)
        result = account_balance(account, self._entries(as_of), as_of, deadline)
        self._log(ReportType.ACCOUNT_BALANCE, account_code=account.code, as_of=as_of)
        return result

    def account_ledger(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> AccountLedgerReport:
        _check_range(from_date, to_date)
        deadline = self._deadline(ReportType.ACCOUNT_LEDGER, token)
        account = self._load_account(account_id)
        report = build_account_ledger(
            account, self._entries(to_date), from_date, to_date, deadline
        )
        self._log(
            ReportType.ACCOUNT_LEDGER,
            account_code=account.code,
            from_date=from_date,
            to_date=to_date,
        )
        return report

    def trial_balance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> TrialBalanceReport:
        _check_range(from_date, to_date)
        deadline = self._deadline(ReportType.TRIAL_BALANCE, token)
        report = build_trial_balance(
            self._entries(to_date),
            self._load_accounts(),
            from_date,
            to_date,
            self._tolerance,
            deadline,
        )
        self._log(ReportType.TRIAL_BALANCE, from_date=from_date, to_date=to_date)
        if not report.is_balanced:
            logger.error(
                "trial_balance_out_of_balance",
                extra={
                    "total_debits": str(report.total_debits),
                    "total_credits": str(report.total_credits),
                },
            )
        return report

    def income_statement(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> IncomeStatementReport:
        _check_range(from_date, to_date)
        deadline = self._deadline(ReportType.INCOME_STATEMENT, token)
        report = build_income_statement(
            self._entries(to_date), self._load_accounts(), from_date, to_date, deadline
        )
        self._log(ReportType.INCOME_STATEMENT, from_date=from_date, to_date=to_date)
        return report

    def balance_sheet(
        self,
        as_of: date | None = None,
        token: CancellationToken | None = None,
    ) -> BalanceSheetReport:
        """Balance sheet as of ``as_of`` (default: today)."""
        as_of = as_of or self._clock.today()
        deadline = self._deadline(ReportType.BALANCE_SHEET, token)
        _, fiscal_year_start, _ = fiscal_year_bounds(as_of, self._start_month)
        report = build_balance_sheet(
            self._entries(as_of),
            self._load_accounts(),
            as_of,
            fiscal_year_start,
            self._config,
            self._tolerance,
            deadline,
        )
        self._log(ReportType.BALANCE_SHEET, as_of=as_of)
        if not report.is_balanced:
            logger.error(
                "balance_sheet_out_of_balance",
                extra={
                    "total_assets": str(report.total_assets),
                    "total_liabilities_and_equity": str(
                        report.total_liabilities_and_equity
                    ),
                },
            )
        return report

    def cash_flow_statement(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> CashFlowStatementReport:
        """Cash flow for the range; defaults to the fiscal year to date."""
        to_date = to_date or self._clock.today()
        if from_date is None:
            _, from_date, _ = fiscal_year_bounds(to_date, self._start_month)
        _check_range(from_date, to_date)
        deadline = self._deadline(ReportType.CASH_FLOW, token)
        report = build_cash_flow_statement(
            self._entries(to_date),
            self._load_accounts(),
            from_date,
            to_date,
            self._config,
            self._tolerance,
            deadline,
        )
        self._log(ReportType.CASH_FLOW, from_date=from_date, to_date=to_date)
        return report

    def bank_account_ledger(
        self,
        bank_account_id: str,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> BankLedgerReport:
        _check_range(from_date, to_date)
        deadline = self._deadline(ReportType.BANK_LEDGER, token)
        report = build_bank_ledger(
            bank_account_id,
            self._entries(to_date),
            self._load_accounts(),
            from_date,
            to_date,
            self._config,
            deadline,
        )
        self._log(
            ReportType.BANK_LEDGER,
            bank_account_id=bank_account_id,
            from_date=from_date,
            to_date=to_date,
        )
        return report

    def dimension_ledger(
        self,
        property_id: str | None = None,
        contact_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> DimensionLedgerReport:
        _check_range(from_date, to_date)
        deadline = self._deadline(ReportType.DIMENSION_LEDGER, token)
        report = build_dimension_ledger(
            self._entries(to_date), property_id, contact_id, from_date, to_date, deadline
        )
        self._log(
            ReportType.DIMENSION_LEDGER,
            property_id=property_id,
            contact_id=contact_id,
            from_date=from_date,
            to_date=to_date,
        )
        return report
