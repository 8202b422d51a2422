"""
Report values returned by the statement folds and ReportingService.

Everything is a frozen dataclass of Decimals, dates and ids, with no
generation timestamp: folding the same entries twice gives equal reports,
so ``report_fingerprint`` can compare recomputations.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReportType(str, Enum):
    """Names used in ReportCancelledError and the report log events."""

    ACCOUNT_BALANCE = "account_balance"
    ACCOUNT_LEDGER = "account_ledger"
    TRIAL_BALANCE = "trial_balance"
    INCOME_STATEMENT = "income_statement"
    BALANCE_SHEET = "balance_sheet"
    CASH_FLOW = "cash_flow"
    BANK_LEDGER = "bank_ledger"
    DIMENSION_LEDGER = "dimension_ledger"


# -- account, bank and property/contact ledgers ---------------------------


@dataclass(frozen=True)
class AccountBalance:
    """Debit and credit totals of one account plus its natural balance."""

    account_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    as_of: date | None = None


@dataclass(frozen=True)
class LedgerLine:
    """One line of a ledger listing, with the running balance after it."""

    entry_id: UUID
    serial_number: str
    entry_date: date
    line_seq: int
    account_code: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal
    description: str | None = None


@dataclass(frozen=True)
class AccountLedgerReport:
    """
    Lines touching one account in a date range.

    ``opening_balance`` is the natural balance before ``from_date``;
    ``closing_balance`` equals the last running balance.
    """

    account_id: UUID
    account_code: str
    account_name: str
    from_date: date | None
    to_date: date | None
    opening_balance: Decimal
    lines: tuple[LedgerLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class BankLedgerReport:
    """
    Statement of one bank account (or the cash box, ``bank_account_id="CASH"``).

    Balance is debit minus credit on the ledger account.
    """

    bank_account_id: str
    ledger_account_code: str
    from_date: date | None
    to_date: date | None
    lines: tuple[LedgerLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class DimensionAccountSummary:
    """Per-account totals inside a property/contact ledger."""

    account_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class DimensionLedgerReport:
    """
    Entries tagged with a property and/or contact.

    When both ids are given an entry matching either is included.
    Running balance is debit minus credit over all listed lines.
    """

    property_id: str | None
    contact_id: str | None
    from_date: date | None
    to_date: date | None
    entry_ids: tuple[UUID, ...]
    lines: tuple[LedgerLine, ...]
    accounts: tuple[DimensionAccountSummary, ...]
    total_debit: Decimal
    total_credit: Decimal


# -- trial balance ---------------------------------------------------------


@dataclass(frozen=True)
class TrialBalanceLineItem:
    """Period debit and credit on one account; ``balance`` is on its normal side."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    """``is_balanced``: debits and credits agree within the configured tolerance."""

    from_date: date | None
    to_date: date | None
    lines: tuple[TrialBalanceLineItem, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


# -- income statement and balance sheet ------------------------------------


@dataclass(frozen=True)
class StatementLine:
    """One account on a statement, at its natural balance."""

    account_id: UUID
    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class StatementSection:
    """Labelled group of lines, e.g. "Current Assets", with its total."""

    label: str
    lines: tuple[StatementLine, ...]
    total: Decimal


@dataclass(frozen=True)
class IncomeStatementReport:
    """net_income = total_revenue - total_expenses."""

    from_date: date | None
    to_date: date | None
    revenue: StatementSection
    expenses: StatementSection
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Balance sheet split into current and non-current by account code.

    ``total_equity`` covers the equity accounts plus the prior-year result
    not yet closed to retained earnings.  Current-year ``net_income`` is
    shown separately, so
    ``total_assets == total_liabilities + total_equity + net_income``.
    """

    as_of: date
    fiscal_year_start: date
    current_assets: StatementSection
    non_current_assets: StatementSection
    total_assets: Decimal
    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    total_liabilities: Decimal
    equity: StatementSection
    unclosed_prior_result: Decimal
    total_equity: Decimal
    net_income: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool


# -- cash flow, indirect method -------------------------------------------


@dataclass(frozen=True)
class CashFlowLineItem:
    """Change in one account's balance over the period, signed as its cash effect."""

    description: str
    amount: Decimal
    account_code: str | None = None


@dataclass(frozen=True)
class CashFlowSection:
    label: str
    lines: tuple[CashFlowLineItem, ...]
    total: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Net income adjusted by working-capital movements (operating), plus
    non-current asset movements (investing) and non-current liability and
    equity movements (financing). Cash accounts themselves are excluded;
    ``cash_change_reconciles`` checks the sum against their actual change.
    """

    from_date: date | None
    to_date: date
    net_income: Decimal
    working_capital_changes: CashFlowSection
    net_cash_from_operations: Decimal
    investing_activities: CashFlowSection
    net_cash_from_investing: Decimal
    financing_activities: CashFlowSection
    net_cash_from_financing: Decimal
    net_change_in_cash: Decimal
    beginning_cash: Decimal
    ending_cash: Decimal
    cash_change_reconciles: bool
