"""
Documents Module (``ledger_modules.documents``).

Business documents (invoices, receipts, deposits, payments, notes) and the
bridge that posts approved ones to the ledger through the configured
posting rules.
"""

from ledger_modules.documents.models import PostingFailure, PostingSweepResult
from ledger_modules.documents.rules import (
    DOCUMENT_PREFIXES,
    DocumentAmounts,
    PostingRuleTable,
    compute_amounts,
    derive_lines,
    resolve_payment_method,
    serial_prefix,
)
from ledger_modules.documents.service import DocumentService

__all__ = [
    "DOCUMENT_PREFIXES",
    "DocumentAmounts",
    "DocumentService",
    "PostingFailure",
    "PostingRuleTable",
    "PostingSweepResult",
    "compute_amounts",
    "derive_lines",
    "resolve_payment_method",
    "serial_prefix",
]
