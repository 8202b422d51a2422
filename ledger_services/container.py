"""
LedgerServices -- per-session service wiring.

Responsibility:
    Builds every kernel and module service for one Session, once, in
    dependency order, from a LedgerConfig.  LedgerAPI creates one of these
    inside each unit of work.

Invariants enforced:
    - Single-instance lifecycle: one AuditorService, SequenceService and
      PeriodService per session, shared by every dependent service.
    - Settings (tolerance, retry budget, fiscal year start, VAT, currency,
      report timeout) flow from LedgerConfig into every service.

Non-goals:
    - Does NOT manage transaction boundaries (caller's responsibility).
    - Does NOT own the Session lifecycle (no commit/rollback).
"""

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.analytics.service import AnomalyService
from ledger_modules.documents.service import DocumentService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.service import ReportingService


class LedgerServices:
    """Central factory for the services of one unit of work."""

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
        reporting_config: ReportingConfig | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.clock = clock or SystemClock()
        settings = config.settings
        reporting_config = reporting_config or ReportingConfig.from_dict(config.reporting)

        # Foundational services
        self.auditor = AuditorService(
            session, self.clock, retry_attempts=settings.audit_retry_attempts
        )
        self.sequences = SequenceService(session)
        self.periods = PeriodService(
            session,
            auditor=self.auditor,
            clock=self.clock,
            fiscal_year_start_month=settings.fiscal_year_start_month,
        )
        self.accounts = AccountService(session, auditor=self.auditor, clock=self.clock)

        # Writers (depend on periods, auditor, sequences)
        self.journal_writer = JournalWriter(
            session,
            period_service=self.periods,
            auditor=self.auditor,
            clock=self.clock,
            sequence_service=self.sequences,
            tolerance=settings.balance_tolerance,
        )
        self.documents = DocumentService(
            session,
            config.posting_rules,
            journal_writer=self.journal_writer,
            auditor=self.auditor,
            clock=self.clock,
            currency=settings.currency,
            default_vat_rate=settings.vat_rate or None,
            tolerance=settings.balance_tolerance,
        )

        # Read side
        self.journal = JournalSelector(session)
        self.document_selector = DocumentSelector(session)
        self.reporting = ReportingService(
            session,
            clock=self.clock,
            config=reporting_config,
            fiscal_year_start_month=settings.fiscal_year_start_month,
            timeout_seconds=settings.report_timeout_seconds,
            tolerance=settings.balance_tolerance,
        )
        self.anomalies = AnomalyService(
            session,
            clock=self.clock,
            settings=config.anomaly,
            config=reporting_config,
            fiscal_year_start_month=settings.fiscal_year_start_month,
        )
