"""
Pure report folds over in-memory journal records.

The book below spans a prior fiscal year (capital and some revenue in
December 2023) and the first quarter of 2024 (rent, an expense, equipment
bought on a long-term loan, and a tenant deposit).
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.deadline import CancellationToken, Deadline
from ledger_kernel.domain.dtos import SupersededBy
from ledger_kernel.exceptions import ReportCancelledError
from ledger_kernel.models.account import NormalBalance
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.statements import (
    CASH_SENTINEL,
    account_balance,
    build_account_ledger,
    build_balance_sheet,
    build_bank_ledger,
    build_cash_flow_statement,
    build_dimension_ledger,
    build_income_statement,
    build_trial_balance,
    compute_natural_balance,
    report_fingerprint,
)

D = Decimal


@pytest.fixture
def book(chart, make_entry):
    def entry(day, debit, credit, amount, **fields):
        return make_entry(
            day, [(chart[debit], "debit", amount), (chart[credit], "credit", amount)], **fields
        )

    return [
        entry(date(2023, 12, 1), "1000", "3000", "1000.00"),
        entry(date(2023, 12, 15), "1000", "4000", "300.00"),
        entry(date(2024, 2, 1), "1100", "4000", "500.00", bank_account_id="bank-1", property_id="villa-7"),
        entry(date(2024, 2, 10), "5000", "1000", "120.00"),
        entry(date(2024, 3, 1), "1500", "2500", "400.00"),
        entry(date(2024, 3, 5), "1000", "2100", "200.00", contact_id="tenant-1", property_id="villa-9"),
    ]


@pytest.fixture
def accounts(chart):
    return list(chart.values())


class TestNaturalBalance:
    def test_debit_normal(self):
        assert compute_natural_balance(D("100"), D("30"), NormalBalance.DEBIT) == D("70")

    def test_credit_normal(self):
        assert compute_natural_balance(D("100"), D("30"), NormalBalance.CREDIT) == D("-70")


class TestAccountBalance:
    def test_balance_as_of(self, chart, book):
        assert account_balance(chart["1000"], book).balance == D("1380.00")
        assert account_balance(chart["1000"], book, as_of=date(2023, 12, 31)).balance == D("1300.00")

    def test_credit_normal_account(self, chart, book):
        result = account_balance(chart["4000"], book)
        assert (result.debit, result.credit, result.balance) == (D("0"), D("800.00"), D("800.00"))


class TestAccountLedger:
    def test_opening_and_running_balance(self, chart, book):
        report = build_account_ledger(chart["1000"], book, from_date=date(2024, 1, 1))

        assert report.opening_balance == D("1300.00")
        assert [line.running_balance for line in report.lines] == [D("1180.00"), D("1380.00")]
        assert report.closing_balance == D("1380.00")
        assert (report.total_debit, report.total_credit) == (D("200.00"), D("120.00"))

    def test_without_from_date_starts_at_zero(self, chart, book):
        report = build_account_ledger(chart["1000"], book)
        assert report.opening_balance == D("0")
        assert len(report.lines) == 4


class TestTrialBalance:
    def test_balanced_totals(self, accounts, book):
        report = build_trial_balance(book, accounts)

        assert report.total_debits == report.total_credits == D("2520.00")
        assert report.is_balanced
        assert [line.account_code for line in report.lines] == sorted(
            line.account_code for line in report.lines
        )

    def test_accounts_without_activity_omitted(self, accounts, book):
        codes = {line.account_code for line in build_trial_balance(book, accounts).lines}
        assert "2000" not in codes
        assert "2200" not in codes

    def test_range(self, accounts, book):
        report = build_trial_balance(book, accounts, from_date=date(2024, 1, 1), to_date=date(2024, 2, 28))
        assert report.total_debits == D("620.00")

    def test_cancelled_and_superseded_excluded(self, accounts, book, chart, make_entry):
        noise = [
            make_entry(
                date(2024, 2, 2),
                [(chart["1000"], "debit", "999"), (chart["4000"], "credit", "999")],
                status=JournalEntryStatus.CANCELLED,
            ),
            replace(book[3], state=SupersededBy(book[0].id)),
        ]
        baseline = build_trial_balance(book, accounts)
        with_noise = build_trial_balance(book + noise, accounts)

        assert with_noise.total_debits == baseline.total_debits

    def test_unbalanced_input_is_flagged(self, accounts, chart, make_entry):
        broken = make_entry(
            date(2024, 1, 5),
            [(chart["1000"], "debit", "100"), (chart["4000"], "credit", "90")],
        )
        assert build_trial_balance([broken], accounts).is_balanced is False

    def test_cancelled_token(self, accounts, book):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ReportCancelledError) as exc_info:
            build_trial_balance(book, accounts, deadline=Deadline("trial_balance", token=token))
        assert exc_info.value.code == "REPORT_CANCELLED"


class TestIncomeStatement:
    def test_fiscal_year(self, accounts, book):
        report = build_income_statement(book, accounts, date(2024, 1, 1), date(2024, 12, 31))

        assert report.total_revenue == D("500.00")
        assert report.total_expenses == D("120.00")
        assert report.net_income == D("380.00")

    def test_all_time(self, accounts, book):
        assert build_income_statement(book, accounts).net_income == D("680.00")


class TestBalanceSheet:
    def test_closes_with_unclosed_prior_result(self, accounts, book):
        report = build_balance_sheet(book, accounts, date(2024, 3, 31), date(2024, 1, 1))

        assert report.current_assets.total == D("1880.00")
        assert report.non_current_assets.total == D("400.00")
        assert report.total_assets == D("2280.00")
        assert report.current_liabilities.total == D("200.00")
        assert report.non_current_liabilities.total == D("400.00")
        assert report.equity.total == D("1000.00")
        assert report.unclosed_prior_result == D("300.00")
        assert report.total_equity == D("1300.00")
        assert report.net_income == D("380.00")
        assert report.total_liabilities_and_equity == D("2280.00")
        assert report.is_balanced

    def test_prefix_classification_is_configurable(self, accounts, book):
        config = ReportingConfig.from_dict(
            {"classification": {"non_current_asset_prefixes": ["11"]}}
        )
        report = build_balance_sheet(book, accounts, date(2024, 3, 31), date(2024, 1, 1), config)

        assert [l.account_code for l in report.non_current_assets.lines] == ["1100"]
        assert report.is_balanced

    @pytest.mark.parametrize(
        "data",
        [{"classification": {"equity_prefixes": ["3"]}}, {"entity_name": "Villas"}],
    )
    def test_unknown_reporting_keys_rejected(self, data):
        with pytest.raises(ValueError):
            ReportingConfig.from_dict(data)


class TestCashFlow:
    def test_three_sections_reconcile(self, accounts, book):
        report = build_cash_flow_statement(book, accounts, date(2024, 1, 1), date(2024, 3, 31))

        assert report.beginning_cash == D("1300.00")
        assert report.ending_cash == D("1880.00")
        assert report.net_income == D("380.00")
        assert report.working_capital_changes.total == D("200.00")
        assert report.net_cash_from_operations == D("580.00")
        assert report.net_cash_from_investing == D("-400.00")
        assert report.net_cash_from_financing == D("400.00")
        assert report.net_change_in_cash == D("580.00")
        assert report.cash_change_reconciles

    def test_line_items_name_their_accounts(self, accounts, book):
        report = build_cash_flow_statement(book, accounts, date(2024, 1, 1), date(2024, 3, 31))

        assert [i.account_code for i in report.investing_activities.lines] == ["1500"]
        assert [i.account_code for i in report.financing_activities.lines] == ["2500"]


class TestSubLedgers:
    def test_bank_ledger(self, accounts, book):
        report = build_bank_ledger("bank-1", book, accounts)

        assert report.ledger_account_code == "1100"
        assert [l.debit for l in report.lines] == [D("500.00")]
        assert report.balance == D("500.00")

    def test_cash_sentinel_selects_untagged_entries(self, accounts, book):
        report = build_bank_ledger(CASH_SENTINEL, book, accounts)

        assert report.ledger_account_code == "1000"
        assert report.balance == D("1380.00")
        assert len(report.lines) == 4

    def test_unknown_bank_is_empty(self, accounts, book):
        report = build_bank_ledger("bank-404", book, accounts)
        assert report.lines == ()
        assert report.balance == D("0")

    def test_dimension_by_property(self, book):
        report = build_dimension_ledger(book, property_id="villa-7")

        assert report.entry_ids == (book[2].id,)
        assert report.total_debit == report.total_credit == D("500.00")
        assert [a.account_code for a in report.accounts] == ["1100", "4000"]

    def test_dimension_by_contact(self, book):
        assert build_dimension_ledger(book, contact_id="tenant-1").entry_ids == (book[5].id,)

    def test_dimension_with_both_ids_matches_either(self, book):
        report = build_dimension_ledger(book, property_id="villa-7", contact_id="tenant-1")
        assert report.entry_ids == (book[2].id, book[5].id)

    def test_dimension_without_ids_returns_everything(self, book):
        assert len(build_dimension_ledger(book).entry_ids) == len(book)


class TestFingerprint:
    def test_same_input_same_fingerprint(self, accounts, book):
        first = build_trial_balance(book, accounts, to_date=date(2024, 3, 31))
        second = build_trial_balance(list(reversed(book)), accounts, to_date=date(2024, 3, 31))

        assert report_fingerprint(first) == report_fingerprint(second)

    def test_different_input_different_fingerprint(self, accounts, book):
        full = build_trial_balance(book, accounts)
        partial = build_trial_balance(book[:-1], accounts)

        assert report_fingerprint(full) != report_fingerprint(partial)
