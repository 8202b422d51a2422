"""
ledger_services -- Package init and public API.

Responsibility:
    Orchestration over the kernel and modules: per-session service wiring
    (LedgerServices), first-run setup (LedgerBootstrap) and the LedgerAPI
    facade that callers use.

Architecture position:
    Services -- outermost layer.

        ledger_services/ -> ledger_modules/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)
        ledger_modules/  -> ledger_services/ (FORBIDDEN)
"""

from ledger_services.bootstrap import BootstrapReport, LedgerBootstrap
from ledger_services.container import LedgerServices
from ledger_services.ledger_api import LedgerAPI

__all__ = [
    "BootstrapReport",
    "LedgerAPI",
    "LedgerBootstrap",
    "LedgerServices",
]
