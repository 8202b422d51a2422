"""
Analytics -- advisory heuristics over computed balances.

Pure functions: anomaly detection, receivable aging, the current ratio and
account suggestion from free text.  Nothing here blocks or changes a
posting; findings are shown to an operator who decides.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_config.schema import AnomalySettings
from ledger_kernel.domain.dtos import AccountInfo, DocumentRecord, JournalEntryRecord
from ledger_kernel.domain.values import ZERO, round_money
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.document import DocumentStatus, DocumentType


class AnomalyKind(str, Enum):
    NEGATIVE_BALANCE = "NEGATIVE_BALANCE"
    DEVIATION = "DEVIATION"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class AnomalyFinding:
    """One flagged account. ``message`` is the local-language text."""

    account_id: UUID
    account_code: str
    account_name: str
    balance: Decimal
    message: str
    kind: AnomalyKind
    severity: Severity
    message_alt: str | None = None
    suggested_action: str | None = None


@dataclass(frozen=True)
class AgingBucket:
    bucket: str
    bucket_local: str
    amount: Decimal
    count: int


@dataclass(frozen=True)
class FinancialRatio:
    name: str
    name_local: str
    value: Decimal
    formula: str
    interpretation: str


# =========================================================================
# Anomaly detection
# =========================================================================


def _month_key(day: date) -> tuple[int, int]:
    return (day.year, day.month)


def _previous_month(key: tuple[int, int]) -> tuple[int, int]:
    year, month = key
    return (year - 1, 12) if month == 1 else (year, month - 1)


def monthly_expense_activity(
    entries: Iterable[JournalEntryRecord],
    accounts: Sequence[AccountInfo],
    as_of: date,
    months: int,
) -> dict[UUID, list[Decimal]]:
    """
    Natural (debit - credit) activity per expense account for the
    ``months`` calendar months ending with the month of ``as_of``.

    Lists run oldest first; the last element is the latest month.
    """
    expense_ids = {a.id for a in accounts if a.account_type == AccountType.EXPENSE}

    window = [_month_key(as_of)]
    while len(window) < months:
        window.append(_previous_month(window[-1]))
    window.reverse()
    position = {key: i for i, key in enumerate(window)}

    activity: dict[UUID, list[Decimal]] = defaultdict(lambda: [ZERO] * len(window))
    for entry in entries:
        if not entry.is_current or entry.entry_date > as_of:
            continue
        index = position.get(_month_key(entry.entry_date))
        if index is None:
            continue
        for line in entry.lines:
            if line.account_id in expense_ids:
                activity[line.account_id][index] += line.debit - line.credit
    return dict(activity)


def detect(
    balances: Iterable[tuple[AccountInfo, Decimal]],
    monthly_activity: Mapping[UUID, Sequence[Decimal]] | None = None,
    settings: AnomalySettings | None = None,
) -> list[AnomalyFinding]:
    """
    Flag active accounts that break simple domain heuristics.

    - Asset natural balance below the threshold (HIGH).
    - Liability natural balance below the threshold (MEDIUM).
    - Expense whose latest month exceeds ``growth_factor`` times the
      average of the earlier months, given at least
      ``min_history_months`` earlier months with a positive average (LOW).

    Findings are sorted by account code.
    """
    settings = settings or AnomalySettings()
    monthly_activity = monthly_activity or {}
    findings: list[AnomalyFinding] = []

    for account, balance in sorted(balances, key=lambda pair: pair[0].code):
        if not account.is_active:
            continue
        label = account.name_alt or account.name_local

        if (
            account.account_type == AccountType.ASSET
            and balance < settings.negative_asset_threshold
        ):
            findings.append(
                AnomalyFinding(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name_local,
                    balance=balance,
                    message="رصيد أصول سالب - تحقق من القيود",
                    message_alt=f"Negative asset balance: {label}",
                    kind=AnomalyKind.NEGATIVE_BALANCE,
                    severity=Severity.HIGH,
                    suggested_action="Verify entries and consider reversal",
                )
            )
        elif (
            account.account_type == AccountType.LIABILITY
            and balance < settings.negative_liability_threshold
        ):
            findings.append(
                AnomalyFinding(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name_local,
                    balance=balance,
                    message="رصيد التزامات سالب - تحقق من القيود",
                    message_alt=f"Negative liability balance: {label}",
                    kind=AnomalyKind.NEGATIVE_BALANCE,
                    severity=Severity.MEDIUM,
                    suggested_action="Review postings",
                )
            )
        elif account.account_type == AccountType.EXPENSE:
            history = list(monthly_activity.get(account.id, ()))
            if len(history) < settings.min_history_months + 1:
                continue
            latest, earlier = history[-1], history[:-1]
            average = sum(earlier, ZERO) / len(earlier)
            if average > ZERO and latest > settings.growth_factor * average:
                findings.append(
                    AnomalyFinding(
                        account_id=account.id,
                        account_code=account.code,
                        account_name=account.name_local,
                        balance=balance,
                        message="نمو غير معتاد في المصروفات - راجع القيود",
                        message_alt=(
                            f"Unusual expense growth: {label} "
                            f"({round_money(latest)} vs average {round_money(average)})"
                        ),
                        kind=AnomalyKind.DEVIATION,
                        severity=Severity.LOW,
                        suggested_action="Review recent expense postings",
                    )
                )

    return findings


# =========================================================================
# Aging and ratios
# =========================================================================

_AGING_BUCKETS = (
    ("current", "الحالي"),
    ("1-30", "1-30 يوم"),
    ("31-60", "31-60 يوم"),
    ("61-90", "61-90 يوم"),
    ("90+", "أكثر من 90 يوم"),
)


def calculate_aging(
    amounts: Iterable[tuple[Decimal, date]],
    as_of: date,
) -> list[AgingBucket]:
    """Bucket (amount, due_date) pairs by days overdue at ``as_of``."""
    totals = [ZERO] * len(_AGING_BUCKETS)
    counts = [0] * len(_AGING_BUCKETS)
    for amount, due_date in amounts:
        days_overdue = (as_of - due_date).days
        if days_overdue <= 0:
            index = 0
        elif days_overdue <= 30:
            index = 1
        elif days_overdue <= 60:
            index = 2
        elif days_overdue <= 90:
            index = 3
        else:
            index = 4
        totals[index] += amount
        counts[index] += 1
    return [
        AgingBucket(bucket=key, bucket_local=local, amount=totals[i], count=counts[i])
        for i, (key, local) in enumerate(_AGING_BUCKETS)
    ]


def receivable_aging(documents: Iterable[DocumentRecord], as_of: date) -> list[AgingBucket]:
    """Aging of posted invoices not yet marked PAID (due date, else document date)."""
    open_items = [
        (doc.total_amount, doc.due_date or doc.document_date)
        for doc in documents
        if doc.document_type == DocumentType.INVOICE
        and doc.is_posted
        and doc.status not in (DocumentStatus.PAID, DocumentStatus.CANCELLED)
    ]
    return calculate_aging(open_items, as_of)


def liquidity_ratio(current_assets: Decimal, current_liabilities: Decimal) -> FinancialRatio:
    """Current ratio; zero when there are no current liabilities."""
    ratio = current_assets / current_liabilities if current_liabilities > ZERO else ZERO
    if ratio >= Decimal("1.5"):
        interpretation = "Strong"
    elif ratio >= Decimal("1"):
        interpretation = "Adequate"
    else:
        interpretation = "Weak"
    return FinancialRatio(
        name="Current Ratio",
        name_local="نسبة التداول",
        value=round_money(ratio),
        formula="Current Assets / Current Liabilities",
        interpretation=interpretation,
    )


# =========================================================================
# Account suggestion
# =========================================================================

_SUGGESTIONS = (
    (re.compile(r"\b(صندوق|نقد|cash|كاش)\b"), "1000"),
    (re.compile(r"\b(بنك|bank|تحويل)\b"), "1100"),
    (re.compile(r"\b(عميل|عملاء|receivable|مدين)\b"), "1200"),
    (re.compile(r"\b(عربون|وديعة|deposit)\b"), "1300"),
    (re.compile(r"\b(مورد|موردون|payable|دائن)\b"), "2000"),
    (re.compile(r"\b(ضريبة|vat|زكاة|tax)\b"), "2200"),
    (re.compile(r"\b(رأس مال|capital)\b"), "3000"),
    (re.compile(r"\b(إيجار|rent|إيراد)\b"), "4000"),
    (re.compile(r"\b(مبيعات|sales)\b"), "4100"),
    (re.compile(r"\b(مصروف|expense|صيانة)\b"), "5000"),
)


def suggest_account(description: str | None, accounts: Sequence[AccountInfo]) -> AccountInfo | None:
    """First account whose keyword pattern matches ``description``."""
    text = (description or "").lower().strip()
    if not text:
        return None
    by_code = {a.code: a for a in accounts}
    for pattern, code in _SUGGESTIONS:
        if pattern.search(text):
            return by_code.get(code)
    return None
