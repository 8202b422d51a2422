"""Advisory analytics: anomaly detection, aging, liquidity, account suggestion."""

from ledger_modules.analytics.anomaly import (
    AgingBucket,
    AnomalyFinding,
    AnomalyKind,
    FinancialRatio,
    Severity,
    calculate_aging,
    detect,
    liquidity_ratio,
    monthly_expense_activity,
    receivable_aging,
    suggest_account,
)
from ledger_modules.analytics.service import AnomalyService

__all__ = [
    "AgingBucket",
    "AnomalyFinding",
    "AnomalyKind",
    "AnomalyService",
    "FinancialRatio",
    "Severity",
    "calculate_aging",
    "detect",
    "liquidity_ratio",
    "monthly_expense_activity",
    "receivable_aging",
    "suggest_account",
]
