"""
AccountService -- Chart of Accounts maintenance.

Responsibility:
    Creates, looks up and deactivates accounts, and seeds the standard
    property-management chart at bootstrap.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerAPI and
    LedgerBootstrap; JournalWriter resolves line accounts through it.

Invariants enforced:
    - Account codes are unique (checked before insert, backed by
      uq_account_code).
    - normal_balance is derived from account_type at creation and both
      are frozen afterwards (ORM guard).
    - Accounts are deactivated, never deleted.

Failure modes:
    - DuplicateAccountCodeError (DUPLICATE_CODE, field="code").
    - AccountNotFoundError for unknown ids or codes.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountNotFoundError, DuplicateAccountCodeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


def _default_sort_order(code: str) -> int:
    return int(code) if code.isdigit() else 0


def _snapshot(account: Account) -> dict:
    return {
        "code": account.code,
        "name_local": account.name_local,
        "name_alt": account.name_alt,
        "account_type": account.account_type,
        "is_active": account.is_active,
    }


class AccountService(BaseService):
    """
    Service for the Chart of Accounts.

    Contract:
        Returns AccountInfo DTOs, never ORM entities.  Flush-only.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditorService(session, self._clock)

    # Reads

    def list_accounts(self, active_only: bool = True) -> list[AccountInfo]:
        """Accounts ordered by sort_order, then code."""
        stmt = select(Account)
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        stmt = stmt.order_by(Account.sort_order, Account.code)
        return [AccountInfo.from_model(a) for a in self._session.scalars(stmt).all()]

    def _get_orm(self, account_id: UUID) -> Account:
        account = self._session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _get_orm_by_code(self, code: str) -> Account | None:
        return self._session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get_account(self, account_id: UUID) -> AccountInfo:
        return AccountInfo.from_model(self._get_orm(account_id))

    def get_account_by_code(self, code: str) -> AccountInfo:
        account = self._get_orm_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return AccountInfo.from_model(account)

    def count(self) -> int:
        return self._session.scalar(select(func.count()).select_from(Account)) or 0

    # Writes

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
        """
        Create an account.

        Raises:
            DuplicateAccountCodeError: If ``code`` is already in the chart.
            AccountNotFoundError: If ``parent_id`` is given and unknown.
        """
        code = code.strip()
        account_type = AccountType(account_type)

        if self._get_orm_by_code(code) is not None:
            logger.warning("duplicate_account_code", extra={"account_code": code})
            raise DuplicateAccountCodeError(code)

        if parent_id is not None:
            self._get_orm(parent_id)

        account = Account(
            code=code,
            name_local=name_local,
            name_alt=name_alt,
            account_type=account_type.value,
            normal_balance=account_type.normal_balance.value,
            parent_id=parent_id,
            is_active=True,
            sort_order=sort_order if sort_order is not None else _default_sort_order(code),
            created_by=actor_id,
        )
        self._session.add(account)
        self._session.flush()

        logger.info(
            "account_created",
            extra={"account_code": code, "account_type": account_type.value},
        )
        self._auditor.record(
            AuditAction.CREATE,
            AuditEntityType.ACCOUNT,
            account.id,
            user_id=actor_id,
            new_state=_snapshot(account),
        )
        return AccountInfo.from_model(account)

    def deactivate(self, account_id: UUID, actor_id: str | None = None) -> AccountInfo:
        """Deactivate an account. Idempotent; no audit row when already inactive."""
        account = self._get_orm(account_id)
        if not account.is_active:
            return AccountInfo.from_model(account)

        before = _snapshot(account)
        account.is_active = False
        self._session.flush()

        logger.info("account_deactivated", extra={"account_code": account.code})
        self._auditor.record(
            AuditAction.DEACTIVATE,
            AuditEntityType.ACCOUNT,
            account.id,
            user_id=actor_id,
            previous_state=before,
            new_state=_snapshot(account),
        )
        return AccountInfo.from_model(account)

    def seed_defaults(self, definitions: Iterable) -> list[AccountInfo]:
        """
        Add every default account whose code is missing.

        ``definitions`` are objects with code, name_local, name_alt,
        account_type and sort_order attributes (``ledger_config.AccountDef``).
        Running twice creates nothing the second time.
        """
        created = []
        for definition in definitions:
            if self._get_orm_by_code(definition.code) is not None:
                continue
            created.append(
                self.create_account(
                    code=definition.code,
                    name_local=definition.name_local,
                    account_type=definition.account_type,
                    name_alt=definition.name_alt,
                    sort_order=definition.sort_order,
                )
            )
        if created:
            logger.info("chart_of_accounts_seeded", extra={"accounts_created": len(created)})
        return created
