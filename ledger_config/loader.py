"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the YAML files in a configuration directory and parses them into
``ledger_config.schema`` dataclasses.  The public runtime entry point is
``ledger_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (unknown side, amount basis, account type)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AMOUNT_BASES,
    SIDES,
    WILDCARD,
    AccountDef,
    AnomalySettings,
    LedgerConfig,
    LedgerSettings,
    PostingLineDef,
    PostingRuleDef,
)

SETTINGS_FILE = "settings.yaml"
CHART_FILE = "chart_of_accounts.yaml"
POSTING_RULES_FILE = "posting_rules.yaml"

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Parse ``LedgerSettings``; absent keys keep their defaults."""
    defaults = LedgerSettings()
    timeout = data.get("report_timeout_seconds", defaults.report_timeout_seconds)
    start_month = int(data.get("fiscal_year_start_month", defaults.fiscal_year_start_month))
    if not 1 <= start_month <= 12:
        raise ValueError(f"fiscal_year_start_month must be 1-12, got {start_month}")
    return LedgerSettings(
        database_url=data.get("database_url", defaults.database_url),
        currency=data.get("currency", defaults.currency),
        vat_rate=_decimal(data.get("vat_rate", defaults.vat_rate)),
        fiscal_year_start_month=start_month,
        balance_tolerance=_decimal(data.get("balance_tolerance", defaults.balance_tolerance)),
        precision=int(data.get("precision", defaults.precision)),
        audit_retry_attempts=int(
            data.get("audit_retry_attempts", defaults.audit_retry_attempts)
        ),
        persistence_retry_attempts=int(
            data.get("persistence_retry_attempts", defaults.persistence_retry_attempts)
        ),
        report_timeout_seconds=float(timeout) if timeout is not None else None,
        opening_balance_equity_code=str(
            data.get("opening_balance_equity_code", defaults.opening_balance_equity_code)
        ),
    )


def parse_account(data: dict[str, Any]) -> AccountDef:
    """Parse an ``AccountDef``. ``type`` is case-insensitive."""
    account_type = str(data["type"]).lower()
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"Unknown account type {data['type']!r} for {data['code']}")
    return AccountDef(
        code=str(data["code"]),
        name_local=data["name_local"],
        name_alt=data.get("name_alt"),
        account_type=account_type,
        sort_order=data.get("sort_order"),
    )


def parse_posting_line(data: dict[str, Any]) -> PostingLineDef:
    side = str(data["side"]).lower()
    basis = str(data.get("amount", "total")).lower()
    if side not in SIDES:
        raise ValueError(f"Unknown posting side {data['side']!r}")
    if basis not in AMOUNT_BASES:
        raise ValueError(f"Unknown amount basis {data.get('amount')!r}")
    return PostingLineDef(
        side=side,
        account=str(data["account"]),
        amount=basis,
        allocate_items=bool(data.get("allocate_items", False)),
    )


def parse_posting_rule(data: dict[str, Any]) -> PostingRuleDef:
    """
    Parse a ``PostingRuleDef``.

    ``payment_method`` may be a single method, a list of methods, or
    omitted (wildcard).  A list is expanded by ``parse_posting_rules``.
    """
    return PostingRuleDef(
        document_type=str(data["document_type"]).upper(),
        payment_method=str(data.get("payment_method", WILDCARD)).upper(),
        lines=tuple(parse_posting_line(line) for line in data["lines"]),
    )


def parse_posting_rules(data: list[dict[str, Any]]) -> tuple[PostingRuleDef, ...]:
    rules = []
    seen: set[tuple[str, str]] = set()
    for raw in data:
        methods = raw.get("payment_method", WILDCARD)
        if not isinstance(methods, list):
            methods = [methods]
        for method in methods:
            rule = parse_posting_rule({**raw, "payment_method": method})
            if rule.key in seen:
                raise ValueError(f"Duplicate posting rule for {rule.key}")
            seen.add(rule.key)
            rules.append(rule)
    return tuple(rules)


def parse_anomaly(data: dict[str, Any]) -> AnomalySettings:
    defaults = AnomalySettings()
    return AnomalySettings(
        negative_asset_threshold=_decimal(
            data.get("negative_asset_threshold", defaults.negative_asset_threshold)
        ),
        negative_liability_threshold=_decimal(
            data.get("negative_liability_threshold", defaults.negative_liability_threshold)
        ),
        growth_factor=_decimal(data.get("growth_factor", defaults.growth_factor)),
        min_history_months=int(data.get("min_history_months", defaults.min_history_months)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON of the raw configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_config_directory(config_dir: Path) -> LedgerConfig:
    """
    Load settings, chart and posting rules from ``config_dir``.

    All three files are required.
    """
    settings_raw = load_yaml_file(config_dir / SETTINGS_FILE)
    chart_raw = load_yaml_file(config_dir / CHART_FILE)
    rules_raw = load_yaml_file(config_dir / POSTING_RULES_FILE)

    return LedgerConfig(
        settings=parse_settings(settings_raw.get("ledger", {})),
        accounts=tuple(parse_account(a) for a in chart_raw.get("accounts", [])),
        posting_rules=parse_posting_rules(rules_raw.get("posting_rules", [])),
        anomaly=parse_anomaly(settings_raw.get("anomaly", {})),
        reporting=dict(settings_raw.get("reporting", {})),
        checksum=compute_checksum(
            {"settings": settings_raw, "chart": chart_raw, "rules": rules_raw}
        ),
    )
