"""
JournalWriter -- the only writer of ledger facts.

Responsibility:
    Validates proposed lines, gates the date through PeriodService,
    allocates the JRN serial, and persists the entry with its lines in one
    flush.  Also owns the append-only correction chain and opening-balance
    entries.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerAPI directly
    and by DocumentService for derived entries.  Delegates serials to
    SequenceService, the date gate to PeriodService, and the side record to
    AuditorService.

Invariants enforced:
    - At least two lines; every line has exactly one positive side.
    - Debits == Credits within tolerance, both rounded to 2 places.
    - No posting into a locked period.
    - Entries are never edited.  correct() posts a new version and sets
      replaced_by_id on the old one exactly once.

Failure modes:
    - InvalidJournalEntryError: line count or line amounts.
    - UnbalancedEntryError (UNBALANCED_ENTRY, field="lines").
    - PeriodLockedError (PERIOD_LOCKED, field="date").
    - AccountNotFoundError / AccountInactiveError.
    - EntryNotFoundError / EntryAlreadySupersededError from correct().

Validation happens before the first write, so a rejected entry leaves
nothing behind.
"""

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import EntryMeta, JournalEntryRecord, LineInput
from ledger_kernel.domain.values import TOLERANCE, ZERO, round_money, within_tolerance
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    EntryAlreadySupersededError,
    EntryNotFoundError,
    InvalidJournalEntryError,
    PeriodLockedError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, NormalBalance
from ledger_kernel.models.audit_log import AuditAction, AuditEntityType
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    LineSide,
)
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")

JOURNAL_PREFIX = "JRN"
OPENING_BALANCE_EQUITY_CODE = "3000"


def validate_lines(
    lines: Sequence[LineInput],
    tolerance: Decimal = TOLERANCE,
) -> tuple[Decimal, Decimal]:
    """
    Check entry shape and balance; return (total_debit, total_credit).

    Raises:
        InvalidJournalEntryError: Fewer than two lines, a negative amount,
            both sides positive, or both sides zero.
        UnbalancedEntryError: Totals differ by more than ``tolerance``.
    """
    if len(lines) < 2:
        raise InvalidJournalEntryError(
            f"an entry needs at least 2 lines, got {len(lines)}"
        )

    total_debit = ZERO
    total_credit = ZERO
    for index, line in enumerate(lines):
        debit = round_money(line.debit)
        credit = round_money(line.credit)
        if debit < ZERO or credit < ZERO:
            raise InvalidJournalEntryError("amounts must not be negative", index)
        if debit > ZERO and credit > ZERO:
            raise InvalidJournalEntryError("a line cannot be both debit and credit", index)
        if debit == ZERO and credit == ZERO:
            raise InvalidJournalEntryError("a line needs a debit or a credit amount", index)
        total_debit += debit
        total_credit += credit

    if not within_tolerance(total_debit, total_credit, tolerance):
        raise UnbalancedEntryError(str(total_debit), str(total_credit))

    return total_debit, total_credit


def _entry_snapshot(entry: JournalEntry) -> dict:
    return {
        "serial_number": entry.serial_number,
        "version": entry.version,
        "entry_date": entry.entry_date,
        "total_debit": entry.total_debit,
        "total_credit": entry.total_credit,
        "status": entry.status,
        "document_type": entry.document_type,
        "document_id": entry.document_id,
    }


class JournalWriter(BaseService):
    """
    Service that validates and persists journal entries.

    Contract:
        ``post()`` returns a frozen JournalEntryRecord.  Flush-only; the
        caller's session_scope() makes entry, lines, serial and audit row
        visible together.
    """

    def __init__(
        self,
        session: Session,
        period_service: PeriodService | None = None,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
        tolerance: Decimal = TOLERANCE,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditorService(session, self._clock)
        self._periods = period_service or PeriodService(
            session, auditor=self._auditor, clock=self._clock
        )
        self._sequences = sequence_service or SequenceService(session)
        self._tolerance = tolerance

    # Account resolution

    def _resolve_account(self, line: LineInput, index: int) -> Account:
        if line.account_id is not None:
            account = self._session.get(Account, line.account_id)
            key = str(line.account_id)
        elif line.account_code:
            account = self._session.execute(
                select(Account).where(Account.code == line.account_code)
            ).scalar_one_or_none()
            key = line.account_code
        else:
            raise InvalidJournalEntryError("line has no account", index)

        if account is None:
            raise AccountNotFoundError(key)
        if not account.is_active:
            raise AccountInactiveError(str(account.id), account.code)
        return account

    # Posting

    def _write(
        self,
        entry_date: date,
        lines: Sequence[LineInput],
        meta: EntryMeta,
        version: int = 1,
    ) -> JournalEntry:
        total_debit, total_credit = validate_lines(lines, self._tolerance)
        self._periods.validate_posting_date(entry_date)
        accounts = [self._resolve_account(line, i) for i, line in enumerate(lines)]

        serial = self._sequences.next_serial(JOURNAL_PREFIX, entry_date.year)

        entry = JournalEntry(
            serial_number=serial,
            version=version,
            entry_date=entry_date,
            total_debit=round_money(total_debit),
            total_credit=round_money(total_credit),
            description_local=meta.description_local,
            description_alt=meta.description_alt,
            document_type=meta.document_type,
            document_id=meta.document_id,
            contact_id=meta.contact_id,
            bank_account_id=meta.bank_account_id,
            property_id=meta.property_id,
            project_id=meta.project_id,
            status=JournalEntryStatus(meta.status).value,
            created_by=meta.actor_id,
        )
        for seq, (line, account) in enumerate(zip(lines, accounts)):
            debit = round_money(line.debit)
            side = LineSide.DEBIT if debit > ZERO else LineSide.CREDIT
            entry.lines.append(
                JournalLine(
                    account_id=account.id,
                    side=side.value,
                    amount=debit if side == LineSide.DEBIT else round_money(line.credit),
                    description_local=line.description_local,
                    description_alt=line.description_alt,
                    line_seq=seq,
                    created_by=meta.actor_id,
                )
            )

        self._session.add(entry)
        self._session.flush()

        with LogContext.bind(entry_id=str(entry.id), actor_id=meta.actor_id):
            logger.info(
                "entry_posted",
                extra={
                    "serial_number": serial,
                    "entry_date": str(entry_date),
                    "total_debit": str(entry.total_debit),
                    "line_count": len(lines),
                    "version": version,
                },
            )
        self._auditor.record(
            AuditAction.CREATE,
            AuditEntityType.JOURNAL_ENTRY,
            entry.id,
            user_id=meta.actor_id,
            new_state=_entry_snapshot(entry),
        )
        return entry

    def post(
        self,
        entry_date: date,
        lines: Sequence[LineInput],
        meta: EntryMeta | None = None,
    ) -> JournalEntryRecord:
        """
        Validate and persist one balanced entry.

        Steps: shape and balance, period gate, accounts, serial, insert,
        audit.  Any failure before the insert leaves no trace.
        """
        entry = self._write(entry_date, lines, meta or EntryMeta())
        return JournalEntryRecord.from_model(entry)

    def correct(
        self,
        entry_id: UUID,
        entry_date: date,
        lines: Sequence[LineInput],
        meta: EntryMeta | None = None,
    ) -> JournalEntryRecord:
        """
        Replace an entry with a corrected version.

        The replacement inherits the old entry's header (descriptions,
        document link, dimensions, status) unless ``meta`` is given.

        Raises:
            EntryNotFoundError: Unknown ``entry_id``.
            EntryAlreadySupersededError: The entry was already corrected.
            PeriodLockedError: The old or the new date is in a locked period.
        """
        old = self._session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if old is None:
            raise EntryNotFoundError(str(entry_id))
        if old.replaced_by_id is not None:
            raise EntryAlreadySupersededError(str(old.id), str(old.replaced_by_id))

        old_period = self._periods.get_period_for_date(old.entry_date)
        if old_period is not None and old_period.is_locked:
            logger.warning(
                "correction_in_locked_period_rejected",
                extra={"serial_number": old.serial_number, "period_code": old_period.period_code},
            )
            raise PeriodLockedError(old_period.period_code, str(old.entry_date))

        if meta is None:
            meta = EntryMeta(
                description_local=old.description_local,
                description_alt=old.description_alt,
                document_type=old.document_type,
                document_id=old.document_id,
                contact_id=old.contact_id,
                bank_account_id=old.bank_account_id,
                property_id=old.property_id,
                project_id=old.project_id,
                status=JournalEntryStatus(old.status),
            )

        new = self._write(entry_date, lines, meta, version=old.version + 1)

        old.replaced_by_id = new.id
        self._session.flush()

        logger.info(
            "entry_corrected",
            extra={
                "serial_number": old.serial_number,
                "replaced_by_serial": new.serial_number,
                "version": new.version,
            },
        )
        self._auditor.record(
            AuditAction.CORRECT,
            AuditEntityType.JOURNAL_ENTRY,
            old.id,
            user_id=meta.actor_id,
            reason=f"replaced by {new.serial_number}",
            previous_state={"serial_number": old.serial_number, "replaced_by_id": None},
            new_state={
                "serial_number": old.serial_number,
                "replaced_by_id": new.id,
                "replaced_by_serial": new.serial_number,
            },
        )
        return JournalEntryRecord.from_model(new)

    def post_opening_balance(
        self,
        entry_date: date,
        balances: Mapping[str, Decimal],
        actor_id: str | None = None,
        equity_code: str = OPENING_BALANCE_EQUITY_CODE,
    ) -> JournalEntryRecord:
        """
        Post opening balances against equity.

        ``balances`` maps account code to natural balance (positive means
        the account's normal side).  Zero balances are skipped and the net
        difference goes to ``equity_code``.

        Raises:
            InvalidJournalEntryError: If every balance is zero.
            AccountNotFoundError: For an unknown account code.
        """
        lines: list[LineInput] = []
        net = ZERO
        for code in sorted(balances):
            amount = round_money(balances[code])
            if amount == ZERO:
                continue
            account = self._session.execute(
                select(Account).where(Account.code == code)
            ).scalar_one_or_none()
            if account is None:
                raise AccountNotFoundError(code)

            debit_side = (NormalBalance(account.normal_balance) == NormalBalance.DEBIT) == (
                amount > ZERO
            )
            if debit_side:
                lines.append(LineInput(account_id=account.id, debit=abs(amount)))
                net += abs(amount)
            else:
                lines.append(LineInput(account_id=account.id, credit=abs(amount)))
                net -= abs(amount)

        if not lines:
            raise InvalidJournalEntryError("opening balance has no non-zero amounts")

        if net > ZERO:
            lines.append(LineInput(account_code=equity_code, credit=net))
        elif net < ZERO:
            lines.append(LineInput(account_code=equity_code, debit=-net))

        meta = EntryMeta(
            description_local="رصيد افتتاحي",
            description_alt="Opening balance",
            actor_id=actor_id,
        )
        return self.post(entry_date, lines, meta)
