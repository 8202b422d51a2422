"""
Statement folds: entries and accounts in, frozen report dataclasses out.

Nothing here touches the database or the clock, so the same snapshot of
JournalEntryRecords always folds to the same report (and fingerprint).
Superseded and cancelled entries are skipped inside every fold; callers
can pass the whole journal. Folds call ``Deadline.check()`` once per
entry, and an expired or cancelled deadline surfaces as
ReportCancelledError with no partial report.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.deadline import Deadline
from ledger_kernel.domain.dtos import AccountInfo, JournalEntryRecord, LineRecord
from ledger_kernel.domain.values import TOLERANCE, ZERO, within_tolerance
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.utils.hashing import hash_report
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountBalance,
    AccountLedgerReport,
    BalanceSheetReport,
    BankLedgerReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    DimensionAccountSummary,
    DimensionLedgerReport,
    IncomeStatementReport,
    LedgerLine,
    ReportType,
    StatementLine,
    StatementSection,
    TrialBalanceLineItem,
    TrialBalanceReport,
)

CASH_SENTINEL = "CASH"

Totals = dict[UUID, tuple[Decimal, Decimal]]


# =========================================================================
# Helpers
# =========================================================================


def compute_natural_balance(
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    """Debit minus credit for debit-normal accounts, the reverse otherwise.

    A cash account with more paid out than in comes back negative.
    """
    if normal_balance == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


def _deadline(deadline: Deadline | None, report_type: ReportType) -> Deadline:
    return deadline or Deadline.none(report_type.value)


def _sorted_current(
    entries: Iterable[JournalEntryRecord],
    from_date: date | None,
    to_date: date | None,
    deadline: Deadline,
) -> Iterator[JournalEntryRecord]:
    """Current entries inside [from_date, to_date], by date then serial."""
    ordered = sorted(entries, key=lambda e: (e.entry_date, e.serial_number))
    for entry in ordered:
        deadline.check()
        if not entry.is_current:
            continue
        if from_date is not None and entry.entry_date < from_date:
            continue
        if to_date is not None and entry.entry_date > to_date:
            continue
        yield entry


def _totals(
    entries: Iterable[JournalEntryRecord],
    from_date: date | None,
    to_date: date | None,
    deadline: Deadline,
) -> Totals:
    debit: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    credit: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for entry in _sorted_current(entries, from_date, to_date, deadline):
        for line in entry.lines:
            debit[line.account_id] += line.debit
            credit[line.account_id] += line.credit
    return {
        account_id: (debit[account_id], credit[account_id])
        for account_id in set(debit) | set(credit)
    }


def _day_before(day: date) -> date:
    return day - timedelta(days=1)


def _statement_line(account: AccountInfo, amount: Decimal) -> StatementLine:
    return StatementLine(
        account_id=account.id,
        account_code=account.code,
        account_name=account.name_local,
        amount=amount,
    )


def _make_section(label: str, lines: list[StatementLine]) -> StatementSection:
    """Create a statement section; lines sorted by account code."""
    t = tuple(sorted(lines, key=lambda x: x.account_code))
    return StatementSection(
        label=label,
        lines=t,
        total=sum((line.amount for line in t), ZERO),
    )


def _ledger_line(entry: JournalEntryRecord, line: LineRecord, running: Decimal) -> LedgerLine:
    return LedgerLine(
        entry_id=entry.id,
        serial_number=entry.serial_number,
        entry_date=entry.entry_date,
        line_seq=line.line_seq,
        account_code=line.account_code,
        debit=line.debit,
        credit=line.credit,
        running_balance=running,
        description=line.description_local or entry.description_local,
    )


def _net_income(totals: Totals, accounts: dict[UUID, AccountInfo]) -> Decimal:
    """REVENUE natural balances minus EXPENSE natural balances."""
    revenue = ZERO
    expense = ZERO
    for account_id, (debit, credit) in totals.items():
        account = accounts.get(account_id)
        if account is None:
            continue
        natural = compute_natural_balance(debit, credit, account.normal_balance)
        if account.account_type == AccountType.REVENUE:
            revenue += natural
        elif account.account_type == AccountType.EXPENSE:
            expense += natural
    return revenue - expense


def _index(accounts: Iterable[AccountInfo]) -> dict[UUID, AccountInfo]:
    return {account.id: account for account in accounts}


# =========================================================================
# 1. BALANCES AND ACCOUNT LEDGER
# =========================================================================


def account_balance(
    account: AccountInfo,
    entries: Iterable[JournalEntryRecord],
    as_of: date | None = None,
    deadline: Deadline | None = None,
) -> AccountBalance:
    """Debit, credit and natural balance of one account up to ``as_of``."""
    deadline = _deadline(deadline, ReportType.ACCOUNT_BALANCE)
    debit = ZERO
    credit = ZERO
    for entry in _sorted_current(entries, None, as_of, deadline):
        for line in entry.lines:
            if line.account_id == account.id:
                debit += line.debit
                credit += line.credit
    return AccountBalance(
        account_id=account.id,
        account_code=account.code,
        debit=debit,
        credit=credit,
        balance=compute_natural_balance(debit, credit, account.normal_balance),
        as_of=as_of,
    )


def build_account_ledger(
    account: AccountInfo,
    entries: Iterable[JournalEntryRecord],
    from_date: date | None = None,
    to_date: date | None = None,
    deadline: Deadline | None = None,
) -> AccountLedgerReport:
    """
    Lines touching ``account`` in the range with a running natural balance.

    The running balance starts from the natural balance of everything
    dated before ``from_date``.
    """
    deadline = _deadline(deadline, ReportType.ACCOUNT_LEDGER)
    entries = list(entries)

    opening = ZERO
    if from_date is not None:
        opening = account_balance(
            account, entries, _day_before(from_date), deadline
        ).balance

    running = opening
    total_debit = ZERO
    total_credit = ZERO
    lines: list[LedgerLine] = []
    for entry in _sorted_current(entries, from_date, to_date, deadline):
        for line in entry.lines:
            if line.account_id != account.id:
                continue
            running += compute_natural_balance(
                line.debit, line.credit, account.normal_balance
            )
            total_debit += line.debit
            total_credit += line.credit
            lines.append(_ledger_line(entry, line, running))

    return AccountLedgerReport(
        account_id=account.id,
        account_code=account.code,
        account_name=account.name_local,
        from_date=from_date,
        to_date=to_date,
        opening_balance=opening,
        lines=tuple(lines),
        total_debit=total_debit,
        total_credit=total_credit,
        closing_balance=running,
    )


# =========================================================================
# 2. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    entries: Iterable[JournalEntryRecord],
    accounts: Sequence[AccountInfo],
    from_date: date | None = None,
    to_date: date | None = None,
    tolerance: Decimal = TOLERANCE,
    deadline: Deadline | None = None,
) -> TrialBalanceReport:
    """
    One row per account with activity in the range, sorted by code.

    Inactive accounts with activity are listed; an account without any
    line in the range is omitted.
    """
    deadline = _deadline(deadline, ReportType.TRIAL_BALANCE)
    by_id = _index(accounts)
    totals = _totals(entries, from_date, to_date, deadline)

    items: list[TrialBalanceLineItem] = []
    for account_id, (debit, credit) in totals.items():
        if debit == ZERO and credit == ZERO:
            continue
        account = by_id.get(account_id)
        if account is None:
            continue
        items.append(
            TrialBalanceLineItem(
                account_id=account_id,
                account_code=account.code,
                account_name=account.name_local,
                account_type=account.account_type.value,
                debit=debit,
                credit=credit,
                balance=compute_natural_balance(debit, credit, account.normal_balance),
            )
        )

    lines = tuple(sorted(items, key=lambda x: x.account_code))
    total_debits = sum((item.debit for item in lines), ZERO)
    total_credits = sum((item.credit for item in lines), ZERO)

    return TrialBalanceReport(
        from_date=from_date,
        to_date=to_date,
        lines=lines,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=within_tolerance(total_debits, total_credits, tolerance),
    )


# =========================================================================
# 3. INCOME STATEMENT
# =========================================================================


def build_income_statement(
    entries: Iterable[JournalEntryRecord],
    accounts: Sequence[AccountInfo],
    from_date: date | None = None,
    to_date: date | None = None,
    deadline: Deadline | None = None,
) -> IncomeStatementReport:
    """Revenue and expense accounts with activity; net income = revenue - expenses."""
    deadline = _deadline(deadline, ReportType.INCOME_STATEMENT)
    by_id = _index(accounts)
    totals = _totals(entries, from_date, to_date, deadline)

    revenue: list[StatementLine] = []
    expenses: list[StatementLine] = []
    for account_id, (debit, credit) in totals.items():
        account = by_id.get(account_id)
        if account is None:
            continue
        natural = compute_natural_balance(debit, credit, account.normal_balance)
        if account.account_type == AccountType.REVENUE:
            revenue.append(_statement_line(account, natural))
        elif account.account_type == AccountType.EXPENSE:
            expenses.append(_statement_line(account, natural))

    revenue_section = _make_section("Revenue", revenue)
    expense_section = _make_section("Expenses", expenses)

    return IncomeStatementReport(
        from_date=from_date,
        to_date=to_date,
        revenue=revenue_section,
        expenses=expense_section,
        total_revenue=revenue_section.total,
        total_expenses=expense_section.total,
        net_income=revenue_section.total - expense_section.total,
    )


# =========================================================================
# 4. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    entries: Iterable[JournalEntryRecord],
    accounts: Sequence[AccountInfo],
    as_of: date,
    fiscal_year_start: date,
    config: ReportingConfig | None = None,
    tolerance: Decimal = TOLERANCE,
    deadline: Deadline | None = None,
) -> BalanceSheetReport:
    """
    Classified balance sheet as of ``as_of``.

    Revenue and expense dated before ``fiscal_year_start`` form the
    unclosed prior-year result (inside ``total_equity``); revenue and
    expense from ``fiscal_year_start`` to ``as_of`` form ``net_income``.
    No closing entry is required for the sheet to balance.
    """
    config = config or ReportingConfig()
    rules = config.classification
    deadline = _deadline(deadline, ReportType.BALANCE_SHEET)
    by_id = _index(accounts)
    entries = list(entries)

    totals = _totals(entries, None, as_of, deadline)
    prior_totals = _totals(entries, None, _day_before(fiscal_year_start), deadline)
    current_totals = _totals(entries, fiscal_year_start, as_of, deadline)

    current_assets: list[StatementLine] = []
    non_current_assets: list[StatementLine] = []
    current_liabilities: list[StatementLine] = []
    non_current_liabilities: list[StatementLine] = []
    equity: list[StatementLine] = []

    for account_id, (debit, credit) in totals.items():
        account = by_id.get(account_id)
        if account is None:
            continue
        natural = compute_natural_balance(debit, credit, account.normal_balance)
        if natural == ZERO:
            continue
        line = _statement_line(account, natural)
        if account.account_type == AccountType.ASSET:
            if rules.is_non_current(account.code, account.account_type):
                non_current_assets.append(line)
            else:
                current_assets.append(line)
        elif account.account_type == AccountType.LIABILITY:
            if rules.is_non_current(account.code, account.account_type):
                non_current_liabilities.append(line)
            else:
                current_liabilities.append(line)
        elif account.account_type == AccountType.EQUITY:
            equity.append(line)

    ca = _make_section("Current Assets", current_assets)
    nca = _make_section("Non-Current Assets", non_current_assets)
    cl = _make_section("Current Liabilities", current_liabilities)
    ncl = _make_section("Non-Current Liabilities", non_current_liabilities)
    eq = _make_section("Equity", equity)

    prior_result = _net_income(prior_totals, by_id)
    net_income = _net_income(current_totals, by_id)

    total_assets = ca.total + nca.total
    total_liabilities = cl.total + ncl.total
    total_equity = eq.total + prior_result
    total_le = total_liabilities + total_equity + net_income

    return BalanceSheetReport(
        as_of=as_of,
        fiscal_year_start=fiscal_year_start,
        current_assets=ca,
        non_current_assets=nca,
        total_assets=total_assets,
        current_liabilities=cl,
        non_current_liabilities=ncl,
        total_liabilities=total_liabilities,
        equity=eq,
        unclosed_prior_result=prior_result,
        total_equity=total_equity,
        net_income=net_income,
        total_liabilities_and_equity=total_le,
        is_balanced=within_tolerance(total_assets, total_le, tolerance),
    )


# =========================================================================
# 5. CASH FLOW STATEMENT
# =========================================================================


def build_cash_flow_statement(
    entries: Iterable[JournalEntryRecord],
    accounts: Sequence[AccountInfo],
    from_date: date | None,
    to_date: date,
    config: ReportingConfig | None = None,
    tolerance: Decimal = TOLERANCE,
    deadline: Deadline | None = None,
) -> CashFlowStatementReport:
    """
    Indirect-method cash flow statement for [from_date, to_date].

    Every non-cash account's change lands in exactly one place:
    revenue and expense in net income, other assets and liabilities in
    operating (current) or investing/financing (non-current by prefix),
    equity in financing.  Because each entry balances, operating +
    investing + financing equals the change of the configured cash
    accounts.
    """
    config = config or ReportingConfig()
    rules = config.classification
    deadline = _deadline(deadline, ReportType.CASH_FLOW)
    by_id = _index(accounts)
    entries = list(entries)

    opening: Totals = {}
    if from_date is not None:
        opening = _totals(entries, None, _day_before(from_date), deadline)
    closing = _totals(entries, None, to_date, deadline)
    period = _totals(entries, from_date, to_date, deadline)

    def signed(totals: Totals, account_id: UUID) -> Decimal:
        debit, credit = totals.get(account_id, (ZERO, ZERO))
        return debit - credit

    beginning_cash = ZERO
    ending_cash = ZERO
    working_capital: list[CashFlowLineItem] = []
    investing: list[CashFlowLineItem] = []
    financing: list[CashFlowLineItem] = []

    touched = sorted(
        (by_id[a] for a in set(opening) | set(closing) if a in by_id),
        key=lambda a: a.code,
    )
    for account in touched:
        account_id = account.id
        if rules.is_cash(account.code):
            beginning_cash += signed(opening, account_id)
            ending_cash += signed(closing, account_id)
            continue
        if account.account_type in (AccountType.REVENUE, AccountType.EXPENSE):
            continue

        # Cash effect of a non-cash balance change is the negated debit-minus-credit change
        effect = signed(opening, account_id) - signed(closing, account_id)
        if effect == ZERO:
            continue
        item = CashFlowLineItem(
            description=f"Change in {account.name_alt or account.name_local}",
            amount=effect,
            account_code=account.code,
        )
        if account.account_type == AccountType.ASSET:
            if rules.is_non_current(account.code, account.account_type):
                investing.append(item)
            else:
                working_capital.append(item)
        elif account.account_type == AccountType.LIABILITY:
            if rules.is_non_current(account.code, account.account_type):
                financing.append(item)
            else:
                working_capital.append(item)
        else:
            financing.append(item)

    net_income = _net_income(period, by_id)

    def section(label: str, items: list[CashFlowLineItem]) -> CashFlowSection:
        return CashFlowSection(
            label=label,
            lines=tuple(items),
            total=sum((i.amount for i in items), ZERO),
        )

    wc = section("Changes in Working Capital", working_capital)
    inv = section("Investing Activities", investing)
    fin = section("Financing Activities", financing)

    ops = net_income + wc.total
    net_change = ops + inv.total + fin.total

    return CashFlowStatementReport(
        from_date=from_date,
        to_date=to_date,
        net_income=net_income,
        working_capital_changes=wc,
        net_cash_from_operations=ops,
        investing_activities=inv,
        net_cash_from_investing=inv.total,
        financing_activities=fin,
        net_cash_from_financing=fin.total,
        net_change_in_cash=net_change,
        beginning_cash=beginning_cash,
        ending_cash=ending_cash,
        cash_change_reconciles=within_tolerance(
            ending_cash - beginning_cash, net_change, tolerance
        ),
    )


# =========================================================================
# 6. SUB-LEDGERS
# =========================================================================


def build_bank_ledger(
    bank_account_id: str,
    entries: Iterable[JournalEntryRecord],
    accounts: Sequence[AccountInfo],
    from_date: date | None = None,
    to_date: date | None = None,
    config: ReportingConfig | None = None,
    deadline: Deadline | None = None,
) -> BankLedgerReport:
    """
    Statement of one bank account.

    Entries tagged with ``bank_account_id`` contribute their lines on the
    bank ledger account.  The sentinel ``"CASH"`` selects untagged entries
    and the cash ledger account instead.
    """
    config = config or ReportingConfig()
    deadline = _deadline(deadline, ReportType.BANK_LEDGER)

    is_cash = bank_account_id == CASH_SENTINEL
    code = config.cash_ledger_account_code if is_cash else config.bank_ledger_account_code
    ledger_account = next((a for a in accounts if a.code == code), None)

    running = ZERO
    total_debit = ZERO
    total_credit = ZERO
    lines: list[LedgerLine] = []
    if ledger_account is not None:
        for entry in _sorted_current(entries, from_date, to_date, deadline):
            matches = (
                not entry.bank_account_id
                if is_cash
                else entry.bank_account_id == bank_account_id
            )
            if not matches:
                continue
            for line in entry.lines:
                if line.account_id != ledger_account.id:
                    continue
                running += line.debit - line.credit
                total_debit += line.debit
                total_credit += line.credit
                lines.append(_ledger_line(entry, line, running))

    return BankLedgerReport(
        bank_account_id=bank_account_id,
        ledger_account_code=code,
        from_date=from_date,
        to_date=to_date,
        lines=tuple(lines),
        total_debit=total_debit,
        total_credit=total_credit,
        balance=total_debit - total_credit,
    )


def build_dimension_ledger(
    entries: Iterable[JournalEntryRecord],
    property_id: str | None = None,
    contact_id: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    deadline: Deadline | None = None,
) -> DimensionLedgerReport:
    """
    Entries tagged with a property and/or contact, filtered on the entry.

    With both ids an entry matching either is included; with one id only
    that id must match; with none every current entry is included.
    """
    deadline = _deadline(deadline, ReportType.DIMENSION_LEDGER)

    def matches(entry: JournalEntryRecord) -> bool:
        match_property = not property_id or entry.property_id == property_id
        match_contact = not contact_id or entry.contact_id == contact_id
        if property_id and contact_id:
            return match_property or match_contact
        return match_property and match_contact

    running = ZERO
    entry_ids: list[UUID] = []
    lines: list[LedgerLine] = []
    per_account: dict[UUID, list] = {}
    for entry in _sorted_current(entries, from_date, to_date, deadline):
        if not matches(entry):
            continue
        entry_ids.append(entry.id)
        for line in entry.lines:
            running += line.debit - line.credit
            lines.append(_ledger_line(entry, line, running))
            summary = per_account.setdefault(line.account_id, [line.account_code, ZERO, ZERO])
            summary[1] += line.debit
            summary[2] += line.credit

    summaries = tuple(
        sorted(
            (
                DimensionAccountSummary(
                    account_id=account_id,
                    account_code=code,
                    debit=debit,
                    credit=credit,
                )
                for account_id, (code, debit, credit) in per_account.items()
            ),
            key=lambda s: s.account_code,
        )
    )

    return DimensionLedgerReport(
        property_id=property_id,
        contact_id=contact_id,
        from_date=from_date,
        to_date=to_date,
        entry_ids=tuple(entry_ids),
        lines=tuple(lines),
        accounts=summaries,
        total_debit=sum((line.debit for line in lines), ZERO),
        total_credit=sum((line.credit for line in lines), ZERO),
    )


# =========================================================================
# 7. FINGERPRINT
# =========================================================================


def report_fingerprint(report: object) -> str:
    """SHA-256 over the canonical JSON of a report dataclass."""
    return hash_report(report)
