"""
LedgerBootstrap -- explicit, idempotent first-run setup.

Seeds the default chart of accounts and makes sure a fiscal period covers
today.  Nothing in the read path calls this; LedgerAPI.bootstrap() or an
installer does, once, after create_tables().
"""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.period_service import PeriodService

logger = get_logger("services.bootstrap")


@dataclass(frozen=True)
class BootstrapReport:
    accounts_created: int
    period_code: str


class LedgerBootstrap:
    """
    Seed accounts and the current fiscal period.

    Running it again creates nothing and returns accounts_created=0.
    Flush-only; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        auditor = AuditorService(
            session, self._clock, retry_attempts=config.settings.audit_retry_attempts
        )
        self._accounts = AccountService(session, auditor=auditor, clock=self._clock)
        self._periods = PeriodService(
            session,
            auditor=auditor,
            clock=self._clock,
            fiscal_year_start_month=config.settings.fiscal_year_start_month,
        )

    def run(self) -> BootstrapReport:
        created = self._accounts.seed_defaults(self._config.accounts)
        period = self._periods.ensure_coverage(self._clock.today())

        report = BootstrapReport(
            accounts_created=len(created),
            period_code=period.period_code,
        )
        logger.info(
            "ledger_bootstrap_completed",
            extra={
                "accounts_created": report.accounts_created,
                "period_code": report.period_code,
                "config_checksum": self._config.checksum,
            },
        )
        return report
