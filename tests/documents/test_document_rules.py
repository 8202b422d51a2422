"""Pure document derivation: amounts, rule lookup and derived lines."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_config.schema import PostingLineDef, PostingRuleDef
from ledger_kernel.domain.dtos import DocumentInput, DocumentItem, DocumentRecord
from ledger_kernel.exceptions import InvalidDocumentError, PostingRuleNotFoundError
from ledger_kernel.models.document import DocumentStatus, DocumentType, PaymentMethod
from ledger_modules.documents.rules import (
    PostingRuleTable,
    compute_amounts,
    derive_lines,
    resolve_payment_method,
    serial_prefix,
)


def _record(document_type=DocumentType.RECEIPT, total="105.00", vat="5.00", **fields) -> DocumentRecord:
    total = Decimal(total)
    vat_amount = Decimal(vat) if vat is not None else None
    return DocumentRecord(
        id=uuid4(),
        serial_number=fields.pop("serial_number", "RCP-2024-0001"),
        document_type=document_type,
        status=DocumentStatus.APPROVED,
        document_date=date(2024, 3, 1),
        amount=total - (vat_amount or Decimal("0")),
        currency="OMR",
        total_amount=total,
        vat_amount=vat_amount,
        **fields,
    )


def _sides(lines):
    return [
        (l.account_code, "debit" if l.debit else "credit", l.debit or l.credit)
        for l in lines
    ]


@pytest.fixture
def rules(ledger_config) -> PostingRuleTable:
    return PostingRuleTable(ledger_config.posting_rules)


class TestComputeAmounts:
    def test_vat_from_rate(self):
        amounts = compute_amounts(
            DocumentInput(DocumentType.INVOICE, date(2024, 3, 1), amount="100", vat_rate=Decimal("5"))
        )
        assert amounts.vat_amount == Decimal("5.00")
        assert amounts.total_amount == Decimal("105.00")

    def test_amount_from_items(self):
        amounts = compute_amounts(
            DocumentInput(
                DocumentType.INVOICE,
                date(2024, 3, 1),
                items=(DocumentItem("rent", "2", "250"), DocumentItem("parking", "1", "15.5")),
            )
        )
        assert amounts.amount == Decimal("515.50")
        assert amounts.vat_amount is None
        assert amounts.total_amount == Decimal("515.50")

    def test_amount_must_match_items(self):
        with pytest.raises(InvalidDocumentError) as exc_info:
            compute_amounts(
                DocumentInput(
                    DocumentType.INVOICE,
                    date(2024, 3, 1),
                    amount="100",
                    items=(DocumentItem("rent", "1", "90"),),
                )
            )
        assert exc_info.value.field == "amount"
        assert exc_info.value.code == "INVALID_DOCUMENT"

    def test_total_must_equal_amount_plus_vat(self):
        with pytest.raises(InvalidDocumentError) as exc_info:
            compute_amounts(
                DocumentInput(
                    DocumentType.RECEIPT,
                    date(2024, 3, 1),
                    amount="100",
                    vat_amount="5",
                    total_amount="110",
                )
            )
        assert exc_info.value.field == "total_amount"

    def test_net_derived_from_total(self):
        amounts = compute_amounts(
            DocumentInput(DocumentType.RECEIPT, date(2024, 3, 1), total_amount="105", vat_amount="5")
        )
        assert amounts.amount == Decimal("100.00")

    def test_default_rate_only_without_explicit_vat(self):
        bare = DocumentInput(DocumentType.RECEIPT, date(2024, 3, 1), amount="200")
        explicit = DocumentInput(DocumentType.RECEIPT, date(2024, 3, 1), amount="200", vat_amount="0")

        assert compute_amounts(bare, default_vat_rate=Decimal("5")).vat_amount == Decimal("10.00")
        assert compute_amounts(explicit, default_vat_rate=Decimal("5")).vat_amount == Decimal("0.00")

    def test_missing_amount(self):
        with pytest.raises(InvalidDocumentError) as exc_info:
            compute_amounts(DocumentInput(DocumentType.RECEIPT, date(2024, 3, 1)))
        assert exc_info.value.field == "amount"

    def test_due_date_before_document_date(self):
        with pytest.raises(InvalidDocumentError) as exc_info:
            compute_amounts(
                DocumentInput(
                    DocumentType.INVOICE,
                    date(2024, 3, 1),
                    amount="10",
                    due_date=date(2024, 2, 1),
                )
            )
        assert exc_info.value.field == "due_date"

    def test_negative_item_rejected(self):
        with pytest.raises(InvalidDocumentError) as exc_info:
            compute_amounts(
                DocumentInput(
                    DocumentType.INVOICE,
                    date(2024, 3, 1),
                    items=(DocumentItem("refund", "1", "-5"),),
                )
            )
        assert exc_info.value.field == "items[0]"


class TestRuleLookup:
    def test_exact_rule(self, rules):
        rule = rules.lookup("RECEIPT", "CHEQUE")
        assert rule.lines[0].account == "1150"

    def test_list_payment_methods_expand(self, rules):
        assert rules.lookup("PAYMENT", "CHEQUE").lines[1].account == "1100"
        assert rules.lookup("PAYMENT", "BANK_TRANSFER").lines[1].account == "1100"

    def test_wildcard_rule(self, rules):
        assert rules.lookup("PURCHASE_INV", "CASH").key == ("PURCHASE_INV", "*")

    def test_exact_beats_wildcard(self):
        table = PostingRuleTable(
            [
                PostingRuleDef("OTHER", "*", (PostingLineDef("debit", "5000"), PostingLineDef("credit", "1000"))),
                PostingRuleDef("OTHER", "CHEQUE", (PostingLineDef("debit", "5000"), PostingLineDef("credit", "1150"))),
            ]
        )
        assert table.lookup("OTHER", "CHEQUE").lines[1].account == "1150"
        assert table.lookup("OTHER", "CASH").lines[1].account == "1000"

    def test_unmapped_type(self, rules):
        with pytest.raises(PostingRuleNotFoundError) as exc_info:
            rules.lookup("QUOTE", "CASH")
        assert exc_info.value.code == "POSTING_RULE_NOT_FOUND"

    def test_postable_types(self, rules):
        types = rules.posting_types()
        assert {"RECEIPT", "INVOICE", "DEPOSIT", "PAYMENT", "PURCHASE_INV"} <= types
        assert "QUOTE" not in types
        assert "JOURNAL" not in types


class TestPaymentMethod:
    def test_explicit_method_wins(self):
        record = _record(payment_method=PaymentMethod.CHEQUE, bank_account_id="bank-1")
        assert resolve_payment_method(record) == PaymentMethod.CHEQUE

    def test_bank_account_means_transfer(self):
        assert resolve_payment_method(_record(bank_account_id="bank-1")) == PaymentMethod.BANK_TRANSFER

    def test_default_is_cash(self):
        assert resolve_payment_method(_record()) == PaymentMethod.CASH


class TestDeriveLines:
    def test_receipt_with_vat(self, rules):
        lines = derive_lines(_record(), rules.lookup("RECEIPT", "CASH"))

        assert _sides(lines) == [
            ("1000", "debit", Decimal("105.00")),
            ("4000", "credit", Decimal("100.00")),
            ("2200", "credit", Decimal("5.00")),
        ]

    def test_zero_vat_line_skipped(self, rules):
        lines = derive_lines(_record(total="50", vat=None), rules.lookup("RECEIPT", "CASH"))

        assert _sides(lines) == [
            ("1000", "debit", Decimal("50.00")),
            ("4000", "credit", Decimal("50.00")),
        ]

    def test_deposit_goes_to_liability(self, rules):
        lines = derive_lines(
            _record(DocumentType.DEPOSIT, total="500", vat=None),
            rules.lookup("DEPOSIT", "BANK_TRANSFER"),
        )
        assert _sides(lines) == [
            ("1100", "debit", Decimal("500.00")),
            ("2100", "credit", Decimal("500.00")),
        ]

    def test_purchase_items_route_to_their_accounts(self, rules):
        record = _record(
            DocumentType.PURCHASE_INV,
            total="315",
            vat="15",
            items=(
                DocumentItem("plumbing", "1", "200", account_code="5200"),
                DocumentItem("supplies", "1", "100"),
            ),
        )

        lines = derive_lines(record, rules.lookup("PURCHASE_INV", "CASH"))

        assert _sides(lines) == [
            ("5200", "debit", Decimal("200.00")),
            ("5000", "debit", Decimal("100.00")),
            ("2200", "debit", Decimal("15.00")),
            ("2000", "credit", Decimal("315.00")),
        ]

    def test_over_allocation_rejected(self, rules):
        record = _record(
            DocumentType.PURCHASE_INV,
            total="50",
            vat=None,
            items=(DocumentItem("roof", "1", "80", account_code="5200"),),
        )
        with pytest.raises(InvalidDocumentError):
            derive_lines(record, rules.lookup("PURCHASE_INV", "CASH"))

    def test_description_defaults_to_type_and_serial(self, rules):
        lines = derive_lines(_record(), rules.lookup("RECEIPT", "CASH"))
        assert lines[0].description_local == "RECEIPT RCP-2024-0001"


class TestSerialPrefix:
    @pytest.mark.parametrize(
        "document_type, prefix",
        [
            (DocumentType.INVOICE, "INV"),
            (DocumentType.RECEIPT, "RCP"),
            (DocumentType.PURCHASE_INV, "PINV"),
            (DocumentType.JOURNAL, "JV"),
        ],
    )
    def test_prefixes(self, document_type, prefix):
        assert serial_prefix(document_type) == prefix
