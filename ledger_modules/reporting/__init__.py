"""
Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only module that derives every report from the journal on demand:
account balance and ledger, trial balance, income statement, balance
sheet, indirect-method cash flow statement, and the bank and
property/contact sub-ledgers.

Invariants enforced
-------------------
* No journal entries are created by this module.
* No stored balances: every call folds the current entry set.
* Identical entry sets produce identical reports (``report_fingerprint``).
"""

from ledger_modules.reporting.config import AccountClassification, ReportingConfig
from ledger_modules.reporting.models import (
    AccountBalance,
    AccountLedgerReport,
    BalanceSheetReport,
    BankLedgerReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    DimensionAccountSummary,
    DimensionLedgerReport,
    IncomeStatementReport,
    LedgerLine,
    ReportType,
    StatementLine,
    StatementSection,
    TrialBalanceLineItem,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import (
    CASH_SENTINEL,
    account_balance,
    build_account_ledger,
    build_balance_sheet,
    build_bank_ledger,
    build_cash_flow_statement,
    build_dimension_ledger,
    build_income_statement,
    build_trial_balance,
    compute_natural_balance,
    report_fingerprint,
)

__all__ = [
    "AccountBalance",
    "AccountClassification",
    "AccountLedgerReport",
    "BalanceSheetReport",
    "BankLedgerReport",
    "CASH_SENTINEL",
    "CashFlowLineItem",
    "CashFlowSection",
    "CashFlowStatementReport",
    "DimensionAccountSummary",
    "DimensionLedgerReport",
    "IncomeStatementReport",
    "LedgerLine",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "StatementLine",
    "StatementSection",
    "TrialBalanceLineItem",
    "TrialBalanceReport",
    "account_balance",
    "build_account_ledger",
    "build_balance_sheet",
    "build_bank_ledger",
    "build_cash_flow_statement",
    "build_dimension_ledger",
    "build_income_statement",
    "build_trial_balance",
    "compute_natural_balance",
    "report_fingerprint",
]
