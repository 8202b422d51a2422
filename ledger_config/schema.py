"""
Configuration Schema (``ledger_config.schema``).

Responsibility
--------------
Frozen dataclasses describing everything the ledger reads from YAML:
runtime settings, the default chart of accounts, the document posting
rules, and the anomaly thresholds.

Architecture position
---------------------
**Config layer** -- pure data definitions with ZERO I/O.  Produced by
``ledger_config.loader`` and consumed by bootstrap, DocumentService,
ReportingService and AnomalyService.

Invariants enforced
-------------------
* Every dataclass is ``frozen=True``.
* Monetary and ratio values are ``Decimal``, never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

WILDCARD = "*"

AMOUNT_BASES = frozenset({"total", "net", "vat"})
SIDES = frozenset({"debit", "credit"})


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings (``settings.yaml`` -> ``ledger``)."""

    database_url: str = "sqlite:///ledger.db"
    currency: str = "OMR"
    vat_rate: Decimal = Decimal("0")
    fiscal_year_start_month: int = 1
    balance_tolerance: Decimal = Decimal("0.01")
    precision: int = 2
    audit_retry_attempts: int = 3
    persistence_retry_attempts: int = 3
    report_timeout_seconds: float | None = 30.0
    opening_balance_equity_code: str = "3000"


@dataclass(frozen=True)
class AccountDef:
    """One default account (``chart_of_accounts.yaml``)."""

    code: str
    name_local: str
    account_type: str
    name_alt: str | None = None
    sort_order: int | None = None


@dataclass(frozen=True)
class PostingLineDef:
    """
    One line template of a posting rule.

    ``amount`` picks the document figure: total, net (amount before VAT)
    or vat.  With ``allocate_items`` the line's figure is first split to
    the items that name their own ``account_code``; ``account`` receives
    the remainder.
    """

    side: str
    account: str
    amount: str = "total"
    allocate_items: bool = False


@dataclass(frozen=True)
class PostingRuleDef:
    """Maps (document_type, payment_method) to line templates."""

    document_type: str
    payment_method: str
    lines: tuple[PostingLineDef, ...]

    @property
    def key(self) -> tuple[str, str]:
        return (self.document_type, self.payment_method)


@dataclass(frozen=True)
class AnomalySettings:
    """Thresholds for the anomaly heuristics."""

    negative_asset_threshold: Decimal = Decimal("-0.01")
    negative_liability_threshold: Decimal = Decimal("-0.01")
    growth_factor: Decimal = Decimal("2")
    min_history_months: int = 3


@dataclass(frozen=True)
class LedgerConfig:
    """Everything ``get_active_config()`` returns."""

    settings: LedgerSettings
    accounts: tuple[AccountDef, ...]
    posting_rules: tuple[PostingRuleDef, ...]
    anomaly: AnomalySettings = field(default_factory=AnomalySettings)
    reporting: dict[str, Any] = field(default_factory=dict, compare=False)
    checksum: str = ""
