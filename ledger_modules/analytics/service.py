"""
AnomalyService -- loads balances and history, runs the advisory heuristics.

Read-only.  Findings are returned and logged; they never block a posting.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config.schema import AnomalySettings
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.document_selector import DocumentSearch, DocumentSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.period_service import fiscal_year_bounds
from ledger_modules.analytics.anomaly import (
    AgingBucket,
    AnomalyFinding,
    FinancialRatio,
    detect,
    liquidity_ratio,
    monthly_expense_activity,
    receivable_aging,
)
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.statements import build_balance_sheet, build_trial_balance

logger = get_logger("modules.analytics.service")

HISTORY_MONTHS = 12


class AnomalyService:
    """Advisory analytics over the current ledger."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: AnomalySettings | None = None,
        config: ReportingConfig | None = None,
        fiscal_year_start_month: int = 1,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or AnomalySettings()
        self._config = config or ReportingConfig()
        self._start_month = fiscal_year_start_month
        self._journal = JournalSelector(session)

    def _accounts(self) -> list[AccountInfo]:
        accounts = self._session.scalars(select(Account).order_by(Account.code)).all()
        return [AccountInfo.from_model(a) for a in accounts]

    def detect_anomalies(self, as_of: date | None = None) -> list[AnomalyFinding]:
        """Balances of every active account, checked against the heuristics."""
        as_of = as_of or self._clock.today()
        accounts = self._accounts()
        entries = self._journal.current_entries(to_date=as_of)

        trial_balance = build_trial_balance(entries, accounts, to_date=as_of)
        by_id = {a.id: a for a in accounts}
        balances = [(by_id[row.account_id], row.balance) for row in trial_balance.lines]

        months = max(HISTORY_MONTHS, self._settings.min_history_months + 1)
        history = monthly_expense_activity(entries, accounts, as_of, months)

        findings = detect(balances, history, self._settings)
        logger.info(
            "anomaly_scan_completed",
            extra={"as_of": str(as_of), "finding_count": len(findings)},
        )
        for finding in findings:
            logger.warning(
                "anomaly_detected",
                extra={
                    "account_code": finding.account_code,
                    "kind": finding.kind.value,
                    "severity": finding.severity.value,
                    "balance": str(finding.balance),
                },
            )
        return findings

    def receivable_aging(self, as_of: date | None = None) -> list[AgingBucket]:
        as_of = as_of or self._clock.today()
        documents = DocumentSelector(self._session).search(
            DocumentSearch(to_date=as_of, posted=True)
        )
        return receivable_aging(documents, as_of)

    def liquidity(self, as_of: date | None = None) -> FinancialRatio:
        """Current ratio from the balance sheet as of ``as_of``."""
        as_of = as_of or self._clock.today()
        _, fiscal_year_start, _ = fiscal_year_bounds(as_of, self._start_month)
        sheet = build_balance_sheet(
            self._journal.current_entries(to_date=as_of),
            self._accounts(),
            as_of,
            fiscal_year_start,
            self._config,
        )
        return liquidity_ratio(sheet.current_assets.total, sheet.current_liabilities.total)
