"""
LedgerAPI -- the single entry point for callers of the ledger.

Responsibility:
    Exposes every ledger operation as one call, one unit of work.  Each
    call opens a session through run_in_transaction(), builds the services
    for that session (LedgerServices), runs, and commits or rolls back.

Architecture position:
    Services -- outermost layer.  Owns the session factory, the active
    LedgerConfig, the clock and the InvalidationBus.

Invariants enforced:
    - One transaction per call.  A failed call leaves nothing behind.
    - Transient OperationalErrors are retried up to
      ``persistence_retry_attempts``; domain errors are never retried.
    - Change notifications are published only after a commit.
    - Bootstrap is explicit (``bootstrap()``), never implicit on reads.

Failure modes:
    - Every LedgerError subclass propagates unchanged to the caller.
    - PersistenceError once retries are exhausted.

Returned values are frozen DTOs; no ORM object escapes a call.
"""

from collections.abc import Callable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from ledger_config import LedgerConfig, get_active_config
from ledger_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    run_in_transaction,
)
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.db.invalidation import (
    EntityClass,
    InvalidationBus,
    install_invalidation_listeners,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.deadline import CancellationToken
from ledger_kernel.domain.dtos import (
    AccountInfo,
    AuditEntryRecord,
    DocumentInput,
    DocumentRecord,
    EntryMeta,
    FiscalPeriodInfo,
    JournalEntryRecord,
    LineInput,
)
from ledger_kernel.exceptions import EntryNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType
from ledger_kernel.models.document import DocumentStatus
from ledger_kernel.selectors.document_selector import DocumentSearch
from ledger_kernel.selectors.journal_selector import EntrySearch
from ledger_modules.analytics.anomaly import (
    AgingBucket,
    AnomalyFinding,
    FinancialRatio,
    suggest_account,
)
from ledger_modules.documents.models import PostingSweepResult
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountBalance,
    AccountLedgerReport,
    BalanceSheetReport,
    BankLedgerReport,
    CashFlowStatementReport,
    DimensionLedgerReport,
    IncomeStatementReport,
    TrialBalanceReport,
)
from ledger_services.bootstrap import BootstrapReport, LedgerBootstrap
from ledger_services.container import LedgerServices

logger = get_logger("services.ledger_api")

T = TypeVar("T")


class LedgerAPI:
    """
    Facade over the ledger services.

    Contract:
        Receives a sessionmaker and optionally a LedgerConfig, Clock and
        InvalidationBus.  Installs the invalidation listeners on the
        sessionmaker at construction; a second facade on the same
        sessionmaker reuses the bus the first one wired.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
        bus: InvalidationBus | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._reporting_config = ReportingConfig.from_dict(self._config.reporting)
        self._bus = install_invalidation_listeners(session_factory, bus or InvalidationBus())

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ) -> "LedgerAPI":
        """
        Initialize the engine for ``config.settings.database_url``, create
        missing tables and install the immutability guards.

        Does not bootstrap; call ``bootstrap()`` once after this.
        """
        config = config or get_active_config()
        engine = init_engine_from_url(config.settings.database_url)
        create_tables(engine)
        register_immutability_listeners()
        return cls(get_session_factory(), config=config, clock=clock)

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def bus(self) -> InvalidationBus:
        return self._bus

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _run(self, name: str, operation: Callable[[LedgerServices], T]) -> T:
        def _unit(session: Session) -> T:
            services = LedgerServices(
                session,
                self._config,
                clock=self._clock,
                reporting_config=self._reporting_config,
            )
            return operation(services)

        with LogContext.bind(correlation_id=str(uuid4())):
            logger.debug("api_call_started", extra={"operation": name})
            return run_in_transaction(
                _unit,
                session_factory=self._session_factory,
                max_attempts=self._config.settings.persistence_retry_attempts,
                name=name,
            )

    def subscribe(
        self,
        entity_class: EntityClass | None,
        callback: Callable[[EntityClass], None],
    ) -> Callable[[], None]:
        """Register for change notifications; returns the unsubscribe callable."""
        return self._bus.subscribe(entity_class, callback)

    def bootstrap(self) -> BootstrapReport:
        return self._run(
            "bootstrap",
            lambda s: LedgerBootstrap(s.session, self._config, self._clock).run(),
        )

    # =========================================================================
    # Chart of accounts
    # =========================================================================

    def list_accounts(self, active_only: bool = True) -> list[AccountInfo]:
        return self._run("list_accounts", lambda s: s.accounts.list_accounts(active_only))

    def create_account(
        self,
        code: str,
        name_local: str,
        account_type: AccountType | str,
        name_alt: str | None = None,
        parent_id: UUID | None = None,
        sort_order: int | None = None,
        actor_id: str | None = None,
    ) -> AccountInfo:
        return self._run(
            "create_account",
            lambda s: s.accounts.create_account(
                code,
                name_local,
                account_type,
                name_alt=name_alt,
                parent_id=parent_id,
                sort_order=sort_order,
                actor_id=actor_id,
            ),
        )

    def deactivate_account(self, account_id: UUID, actor_id: str | None = None) -> AccountInfo:
        return self._run(
            "deactivate_account", lambda s: s.accounts.deactivate(account_id, actor_id)
        )

    def get_account_balance(
        self,
        account_id: UUID,
        as_of: date | None = None,
        token: CancellationToken | None = None,
    ) -> AccountBalance:
        return self._run(
            "get_account_balance",
            lambda s: s.reporting.account_balance(account_id, as_of, token),
        )

    def get_account_ledger(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> AccountLedgerReport:
        return self._run(
            "get_account_ledger",
            lambda s: s.reporting.account_ledger(account_id, from_date, to_date, token),
        )

    def suggest_account(self, description: str | None) -> AccountInfo | None:
        """Best keyword match among active accounts, or None."""
        return self._run(
            "suggest_account",
            lambda s: suggest_account(description, s.accounts.list_accounts()),
        )

    # =========================================================================
    # Journal
    # =========================================================================

    def create_journal_entry(
        self,
        entry_date: date,
        lines: Sequence[LineInput],
        meta: EntryMeta | None = None,
    ) -> JournalEntryRecord:
        return self._run(
            "create_journal_entry",
            lambda s: s.journal_writer.post(entry_date, lines, meta),
        )

    def correct_journal_entry(
        self,
        entry_id: UUID,
        entry_date: date,
        lines: Sequence[LineInput],
        meta: EntryMeta | None = None,
    ) -> JournalEntryRecord:
        return self._run(
            "correct_journal_entry",
            lambda s: s.journal_writer.correct(entry_id, entry_date, lines, meta),
        )

    def create_opening_balance_entry(
        self,
        entry_date: date,
        balances: Mapping[str, Decimal],
        actor_id: str | None = None,
    ) -> JournalEntryRecord:
        return self._run(
            "create_opening_balance_entry",
            lambda s: s.journal_writer.post_opening_balance(
                entry_date,
                balances,
                actor_id=actor_id,
                equity_code=self._config.settings.opening_balance_equity_code,
            ),
        )

    def get_journal_entry(self, entry_id: UUID) -> JournalEntryRecord:
        def _get(s: LedgerServices) -> JournalEntryRecord:
            entry = s.journal.get(entry_id)
            if entry is None:
                raise EntryNotFoundError(str(entry_id))
            return entry

        return self._run("get_journal_entry", _get)

    def search_journal_entries(
        self, criteria: EntrySearch | None = None
    ) -> list[JournalEntryRecord]:
        return self._run(
            "search_journal_entries",
            lambda s: s.journal.search(criteria or EntrySearch()),
        )

    # =========================================================================
    # Documents
    # =========================================================================

    def create_document(self, document: DocumentInput) -> DocumentRecord:
        return self._run(
            "create_document", lambda s: s.documents.create_document(document)
        )

    def get_document(self, document_id: UUID) -> DocumentRecord:
        return self._run("get_document", lambda s: s.documents.get_document(document_id))

    def list_documents(self, criteria: DocumentSearch | None = None) -> list[DocumentRecord]:
        return self._run("list_documents", lambda s: s.documents.list_documents(criteria))

    def get_unposted_documents(self) -> list[DocumentRecord]:
        return self._run(
            "get_unposted_documents", lambda s: s.documents.find_unposted_approved()
        )

    def confirm_document(
        self,
        document_id: UUID,
        status: DocumentStatus | str = DocumentStatus.APPROVED,
        actor_id: str | None = None,
    ) -> DocumentRecord:
        return self._run(
            "confirm_document",
            lambda s: s.documents.set_status(document_id, status, actor_id),
        )

    def cancel_document(
        self,
        document_id: UUID,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> DocumentRecord:
        return self._run(
            "cancel_document",
            lambda s: s.documents.cancel_document(document_id, reason, actor_id),
        )

    def post_unposted_documents_detailed(
        self, actor_id: str | None = None
    ) -> PostingSweepResult:
        """Run the posting sweep and return per-document outcomes."""
        return self._run(
            "post_unposted_documents",
            lambda s: s.documents.post_unposted_documents(actor_id),
        )

    def post_unposted_documents(self, actor_id: str | None = None) -> int:
        """Run the posting sweep; returns how many documents were posted."""
        return self.post_unposted_documents_detailed(actor_id).posted

    # =========================================================================
    # Reports
    # =========================================================================

    def get_trial_balance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> TrialBalanceReport:
        return self._run(
            "get_trial_balance",
            lambda s: s.reporting.trial_balance(from_date, to_date, token),
        )

    def get_income_statement(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> IncomeStatementReport:
        return self._run(
            "get_income_statement",
            lambda s: s.reporting.income_statement(from_date, to_date, token),
        )

    def get_balance_sheet(
        self,
        as_of: date | None = None,
        token: CancellationToken | None = None,
    ) -> BalanceSheetReport:
        return self._run(
            "get_balance_sheet", lambda s: s.reporting.balance_sheet(as_of, token)
        )

    def get_cash_flow_statement(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> CashFlowStatementReport:
        return self._run(
            "get_cash_flow_statement",
            lambda s: s.reporting.cash_flow_statement(from_date, to_date, token),
        )

    def get_bank_account_ledger(
        self,
        bank_account_id: str,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> BankLedgerReport:
        return self._run(
            "get_bank_account_ledger",
            lambda s: s.reporting.bank_account_ledger(
                bank_account_id, from_date, to_date, token
            ),
        )

    def get_property_or_contact_ledger(
        self,
        property_id: str | None = None,
        contact_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        token: CancellationToken | None = None,
    ) -> DimensionLedgerReport:
        return self._run(
            "get_property_or_contact_ledger",
            lambda s: s.reporting.dimension_ledger(
                property_id, contact_id, from_date, to_date, token
            ),
        )

    # =========================================================================
    # Periods
    # =========================================================================

    def get_fiscal_periods(self) -> list[FiscalPeriodInfo]:
        return self._run("get_fiscal_periods", lambda s: s.periods.list_periods())

    def create_fiscal_period(
        self,
        period_code: str,
        start_date: date,
        end_date: date,
    ) -> FiscalPeriodInfo:
        return self._run(
            "create_fiscal_period",
            lambda s: s.periods.create_period(period_code, start_date, end_date),
        )

    def lock_period(self, period_id: UUID, user_id: str | None = None) -> FiscalPeriodInfo:
        return self._run("lock_period", lambda s: s.periods.lock_period(period_id, user_id))

    # =========================================================================
    # Audit and analytics
    # =========================================================================

    def get_audit_log(
        self,
        limit: int | None = None,
        entity_type: AuditEntityType | str | None = None,
        entity_id: UUID | str | None = None,
        action: AuditAction | str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[AuditEntryRecord]:
        return self._run(
            "get_audit_log",
            lambda s: s.auditor.get_audit_log(
                limit=limit,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                from_date=from_date,
                to_date=to_date,
            ),
        )

    def validate_audit_chain(self) -> bool:
        return self._run("validate_audit_chain", lambda s: s.auditor.validate_chain())

    def ai_detect_anomalies(self, as_of: date | None = None) -> list[AnomalyFinding]:
        return self._run(
            "ai_detect_anomalies", lambda s: s.anomalies.detect_anomalies(as_of)
        )

    def get_receivable_aging(self, as_of: date | None = None) -> list[AgingBucket]:
        return self._run(
            "get_receivable_aging", lambda s: s.anomalies.receivable_aging(as_of)
        )

    def get_liquidity_ratio(self, as_of: date | None = None) -> FinancialRatio:
        return self._run("get_liquidity_ratio", lambda s: s.anomalies.liquidity(as_of))
