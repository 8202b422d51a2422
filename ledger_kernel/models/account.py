"""
Chart of accounts.

Codes are four-digit strings grouped by type (1xxx assets, 2xxx
liabilities, 3xxx equity, 4xxx revenue, 5xxx expenses) and are unique
(``uq_account_code``). An account's type and normal balance never change
once lines exist against it, since that would re-sign every past report;
accounts are deactivated, never deleted. Both rules are enforced by
``db/immutability.py``.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class NormalBalance(str, Enum):
    """Side on which an account's balance grows."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> NormalBalance:
        return NormalBalance.DEBIT if self in _DEBIT_NORMAL else NormalBalance.CREDIT


_DEBIT_NORMAL = frozenset({AccountType.ASSET, AccountType.EXPENSE})


class Account(TrackedBase):
    """
    One account. ``name_local`` is the Arabic name shown first,
    ``name_alt`` the English one. ``parent_id`` groups accounts for
    display only and is not checked for cycles.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name_local: Mapped[str] = mapped_column(String(255), nullable=False)
    name_alt: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)
    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(UUIDString(), ForeignKey("accounts.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(back_populates="account", lazy="dynamic")

    def __repr__(self) -> str:
        return f"<Account {self.code} {self.account_type}>"

    @property
    def is_debit_normal(self) -> bool:
        return NormalBalance(self.normal_balance) == NormalBalance.DEBIT
