"""
How the statement folds split the chart.

The property-management chart keys everything off the account code:
asset and liability codes starting ``15``-``19`` / ``25``-``29`` are
non-current, everything else of those types is current. ``1000`` (cash
box) and ``1100`` (bank) are the cash and cash equivalents the cash
flow statement reconciles against.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Self

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType

logger = get_logger("modules.reporting.config")


def _as_codes(values: Any) -> tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    return tuple(str(v) for v in values)


@dataclass(frozen=True)
class AccountClassification:
    non_current_asset_prefixes: tuple[str, ...] = ("15", "16", "17", "18", "19")
    non_current_liability_prefixes: tuple[str, ...] = ("25", "26", "27", "28", "29")
    cash_account_codes: tuple[str, ...] = ("1000", "1100")

    def __post_init__(self):
        # YAML hands us lists (and bare ints for codes written unquoted)
        for f in fields(self):
            object.__setattr__(self, f.name, _as_codes(getattr(self, f.name)))

    def is_non_current(self, code: str, account_type: AccountType) -> bool:
        """True for a non-current asset or liability; other types are never non-current."""
        if account_type == AccountType.ASSET:
            prefixes = self.non_current_asset_prefixes
        elif account_type == AccountType.LIABILITY:
            prefixes = self.non_current_liability_prefixes
        else:
            return False
        return code.startswith(prefixes)

    def is_cash(self, code: str) -> bool:
        return code in self.cash_account_codes


@dataclass(frozen=True)
class ReportingConfig:
    """
    The ``reporting`` block of settings.yaml.

    The bank sub-ledger reads ``cash_ledger_account_code`` for the "CASH"
    sentinel and ``bank_ledger_account_code`` for every tagged bank account.
    """

    classification: AccountClassification = field(default_factory=AccountClassification)
    cash_ledger_account_code: str = "1000"
    bank_ledger_account_code: str = "1100"

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown reporting setting(s): {', '.join(sorted(unknown))}")

        values = dict(data)
        rules = values.get("classification")
        if isinstance(rules, dict):
            allowed = {f.name for f in fields(AccountClassification)}
            bad = set(rules) - allowed
            if bad:
                raise ValueError(f"Unknown classification key(s): {', '.join(sorted(bad))}")
            values["classification"] = AccountClassification(**rules)
        for key in ("cash_ledger_account_code", "bank_ledger_account_code"):
            if key in values:
                values[key] = str(values[key])

        logger.debug("reporting_config_loaded", extra={"keys": sorted(values)})
        return cls(**values)
