"""Pure domain helpers: money, entry state, deadlines and the clock."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.deadline import CancellationToken, Deadline
from ledger_kernel.domain.dtos import ACTIVE, DocumentItem, SupersededBy, entry_state_for
from ledger_kernel.domain.values import (
    ZERO,
    money_sum,
    round_money,
    to_decimal,
    within_tolerance,
)
from ledger_kernel.exceptions import ReportCancelledError
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.models.journal import JournalEntryStatus


class TestMoney:
    @pytest.mark.parametrize(
        "raw, expected",
        [("1.005", "1.01"), ("1.004", "1.00"), ("-1.005", "-1.01"), (7, "7.00")],
    )
    def test_round_half_up(self, raw, expected):
        assert round_money(raw) == Decimal(expected)

    def test_none_is_zero(self):
        assert to_decimal(None) == ZERO

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            to_decimal("ten")

    def test_tolerance_is_inclusive(self):
        assert within_tolerance(Decimal("10.00"), Decimal("10.01"))
        assert not within_tolerance(Decimal("10.00"), Decimal("10.02"))

    def test_money_sum(self):
        assert money_sum(["0.333", "0.333", "0.334"]) == Decimal("1.00")


class TestAccountTypes:
    @pytest.mark.parametrize(
        "account_type, normal",
        [
            (AccountType.ASSET, NormalBalance.DEBIT),
            (AccountType.EXPENSE, NormalBalance.DEBIT),
            (AccountType.LIABILITY, NormalBalance.CREDIT),
            (AccountType.EQUITY, NormalBalance.CREDIT),
            (AccountType.REVENUE, NormalBalance.CREDIT),
        ],
    )
    def test_normal_balance(self, account_type, normal):
        assert account_type.normal_balance == normal


class TestEntryState:
    def test_state_from_replaced_by(self):
        successor = uuid4()
        assert entry_state_for(None) is ACTIVE
        assert entry_state_for(successor) == SupersededBy(successor)

    def test_cancelled_entries_are_not_current(self, make_entry, chart):
        entry = make_entry(
            datetime(2024, 1, 5).date(),
            [(chart["1000"], "debit", "10"), (chart["4000"], "credit", "10")],
            status=JournalEntryStatus.CANCELLED,
        )
        assert entry.is_current is False

    def test_superseded_entries_are_not_current(self, make_entry, chart):
        successor = uuid4()
        entry = make_entry(
            datetime(2024, 1, 5).date(),
            [(chart["1000"], "debit", "10"), (chart["4000"], "credit", "10")],
            state=SupersededBy(successor),
        )
        assert entry.is_current is False
        assert entry.replaced_by_id == successor


class TestDocumentItem:
    def test_line_total_rounded(self):
        item = DocumentItem("cleaning", "3", "33.335")
        assert item.line_total == Decimal("100.01")

    def test_json_shape(self):
        item = DocumentItem("paint", "2", "12.50", account_code="5100")
        assert DocumentItem.from_json(item.to_json()) == item


class TestDeadline:
    def test_none_never_expires(self):
        Deadline.none().check()

    def test_cancel_token(self):
        token = CancellationToken()
        deadline = Deadline("trial_balance", token=token)
        deadline.check()

        token.cancel()
        with pytest.raises(ReportCancelledError) as exc_info:
            deadline.check()
        assert exc_info.value.reason == "cancelled"
        assert exc_info.value.report_type == "trial_balance"

    def test_zero_timeout_expires(self):
        with pytest.raises(ReportCancelledError) as exc_info:
            Deadline("balance_sheet", timeout_seconds=0).check()
        assert exc_info.value.reason == "timeout"


class TestDeterministicClock:
    def test_advance_and_tick(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        clock = DeterministicClock(start)

        clock.advance(30)
        assert clock.now() == start + timedelta(seconds=30)
        assert clock.tick() == start + timedelta(seconds=31)
        assert clock.today() == start.date()
