"""
Errors raised by the ledger.

Each error class carries a stable ``code`` (``"PERIOD_LOCKED"``,
``"UNBALANCED_ENTRY"``, ...) that the desktop client and any HTTP layer map
to user-facing messages, plus its context as plain attributes. Errors
blamed on one input field set ``field`` (``"lines"``, ``"date"``,
``"code"``) so a form can highlight it::

    try:
        api.create_journal_entry(entry_date, lines, meta)
    except LedgerError as e:
        show_error(e.code, field=e.field)

Validation errors are raised before anything is written and are never
retried. ``PersistenceError`` is the one raised after retries, once
``run_in_transaction`` gives up on a locked or unreachable database.
``AuditWriteFailure`` is logged by the auditor but not raised, so a
failed audit row never undoes the financial write it describes.
"""


class LedgerError(Exception):
    """Root of every ledger error."""

    code: str = "LEDGER_ERROR"
    field: str | None = None


# Posting-related exceptions


class PostingError(LedgerError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"
    field = "lines"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Unbalanced entry: debits={debits}, credits={credits}")


class InvalidJournalEntryError(PostingError):
    """Journal entry shape is invalid (line count, line amounts)."""

    code: str = "INVALID_JOURNAL_ENTRY"
    field = "lines"

    def __init__(self, reason: str, line_index: int | None = None):
        self.reason = reason
        self.line_index = line_index
        where = f" (line {line_index})" if line_index is not None else ""
        super().__init__(f"Invalid journal entry{where}: {reason}")


class EntryNotFoundError(PostingError):
    """Journal entry not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class EntryAlreadySupersededError(PostingError):
    """Journal entry has already been replaced by a correction."""

    code: str = "ENTRY_ALREADY_SUPERSEDED"

    def __init__(self, entry_id: str, replaced_by_id: str):
        self.entry_id = entry_id
        self.replaced_by_id = replaced_by_id
        super().__init__(
            f"Journal entry {entry_id} is already superseded by {replaced_by_id}"
        )


# Period-related exceptions


class PeriodError(LedgerError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodLockedError(PeriodError):
    """Attempted to post into a locked fiscal period."""

    code: str = "PERIOD_LOCKED"
    field = "date"

    def __init__(self, period_code: str, entry_date: str):
        self.period_code = period_code
        self.entry_date = entry_date
        super().__init__(
            f"Cannot post to locked period {period_code} (date: {entry_date})"
        )


class PeriodNotFoundError(PeriodError):
    """No period found for the given identifier."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Fiscal period not found: {period_id}")


class PeriodOverlapError(PeriodError):
    """New period date range overlaps with an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        new_period_code: str,
        existing_period_code: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Period {new_period_code} overlaps with {existing_period_code} "
            f"({overlap_start} to {overlap_end})"
        )


# Account-related exceptions


class AccountError(LedgerError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class DuplicateAccountCodeError(AccountError):
    """Account code already exists in the chart of accounts."""

    code: str = "DUPLICATE_CODE"
    field = "code"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountNotFoundError(AccountError):
    """Account not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountInactiveError(AccountError):
    """Account is deactivated and cannot receive postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str):
        self.account_id = account_id
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


# Document-related exceptions


class DocumentError(LedgerError):
    """Base exception for document-related errors."""

    code: str = "DOCUMENT_ERROR"


class InvalidDocumentError(DocumentError):
    """Document amounts or fields are inconsistent."""

    code: str = "INVALID_DOCUMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid document field '{field}': {reason}")


class DocumentNotFoundError(DocumentError):
    """Document not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class DocumentAlreadyPostedError(DocumentError):
    """Document is already linked to a journal entry."""

    code: str = "DOCUMENT_ALREADY_POSTED"

    def __init__(self, document_id: str, journal_entry_id: str):
        self.document_id = document_id
        self.journal_entry_id = journal_entry_id
        super().__init__(
            f"Document {document_id} already posted as journal entry {journal_entry_id}"
        )


class PostingRuleNotFoundError(DocumentError):
    """No posting rule maps this document type and payment method."""

    code: str = "POSTING_RULE_NOT_FOUND"

    def __init__(self, document_type: str, payment_method: str | None):
        self.document_type = document_type
        self.payment_method = payment_method
        super().__init__(
            f"No posting rule for document type {document_type} "
            f"(payment method: {payment_method})"
        )


class DuplicateSerialError(DocumentError):
    """Serial number is already in use."""

    code: str = "DUPLICATE_SERIAL"
    field = "serial_number"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__(f"Serial number already in use: {serial_number}")


# Audit-related exceptions


class AuditError(LedgerError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


class AuditWriteFailure(AuditError):
    """An audit row could not be written. Logged, never propagated."""

    code: str = "AUDIT_WRITE_FAILURE"

    def __init__(self, action: str, entity_type: str, entity_id: str, attempts: int):
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"Audit write for {action} on {entity_type}:{entity_id} "
            f"failed after {attempts} attempt(s)"
        )


# Immutability-related exceptions


class ImmutabilityError(LedgerError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    JournalEntry, JournalLine and AuditLogEntry are immutable after creation;
    Account type and FiscalPeriod lock state are one-way.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Report-related exceptions


class ReportError(LedgerError):
    """Base exception for report generation errors."""

    code: str = "REPORT_ERROR"


class ReportCancelledError(ReportError):
    """Report computation was cancelled or exceeded its deadline."""

    code: str = "REPORT_CANCELLED"

    def __init__(self, report_type: str, reason: str):
        self.report_type = report_type
        self.reason = reason
        super().__init__(f"Report {report_type} cancelled: {reason}")


# Persistence-related exceptions


class PersistenceError(LedgerError):
    """Transient storage errors persisted past the retry budget."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, attempts: int, cause: str):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"{operation} failed after {attempts} attempt(s): {cause}"
        )
