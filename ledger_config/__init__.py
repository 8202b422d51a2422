"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the returned LedgerConfig
    (or pieces of it) by injection and never read YAML or environment
    variables themselves.

Architecture position:
    Configuration -- sits beside ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``; bootstrap and the API facade pass
    values down.

Environment:
    LEDGER_CONFIG_DIR     -- directory holding the three YAML files
                             (defaults to ``ledger_config/defaults``).
    LEDGER_DATABASE_URL   -- overrides ``ledger.database_url``.

Failure modes:
    - ``FileNotFoundError`` -- a YAML file is missing.
    - ``ValueError`` -- an invalid value in a YAML file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from ledger_config.loader import load_config_directory, load_yaml_file
from ledger_config.schema import (
    WILDCARD,
    AccountDef,
    AnomalySettings,
    LedgerConfig,
    LedgerSettings,
    PostingLineDef,
    PostingRuleDef,
)

_logger = logging.getLogger("ledger_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "defaults"

CONFIG_DIR_ENV = "LEDGER_CONFIG_DIR"
DATABASE_URL_ENV = "LEDGER_DATABASE_URL"


def get_active_config(config_dir: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the directory: ``config_dir`` argument, then
    ``LEDGER_CONFIG_DIR``, then the packaged defaults.  A
    ``LEDGER_DATABASE_URL`` environment variable replaces the configured
    database URL.

    Returns:
        A frozen LedgerConfig.  Not cached; hold it for the process.
    """
    directory = Path(config_dir or os.environ.get(CONFIG_DIR_ENV) or _DEFAULT_CONFIG_DIR)
    config = load_config_directory(directory)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config = replace(config, settings=replace(config.settings, database_url=database_url))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "config_dir": str(directory),
            "checksum": config.checksum,
            "account_count": len(config.accounts),
            "posting_rule_count": len(config.posting_rules),
        },
    )
    return config


__all__ = [
    "AccountDef",
    "AnomalySettings",
    "LedgerConfig",
    "LedgerSettings",
    "PostingLineDef",
    "PostingRuleDef",
    "WILDCARD",
    "get_active_config",
    "load_yaml_file",
]
