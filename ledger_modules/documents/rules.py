"""
Document rules -- pure derivation of amounts, serial prefixes and journal
lines for business documents.

Responsibility:
    Computes a document's missing VAT and totals, validates the document
    invariants, picks the posting rule for (document_type, payment_method)
    and turns it into balanced LineInputs.

Architecture position:
    Modules > Documents -- pure functional core, zero I/O.
    DocumentService is the only caller.

Invariants enforced:
    - total_amount == amount + (vat_amount or 0), within tolerance.
    - With items, amount == sum(quantity * unit_price), within tolerance.
    - Derived lines never carry a zero amount.

Failure modes:
    - InvalidDocumentError(field, reason) for any violated invariant.
    - PostingRuleNotFoundError when no rule (exact or wildcard) matches.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ledger_config.schema import WILDCARD, PostingRuleDef
from ledger_kernel.domain.dtos import DocumentInput, DocumentRecord, LineInput
from ledger_kernel.domain.values import TOLERANCE, ZERO, round_money, within_tolerance
from ledger_kernel.exceptions import InvalidDocumentError, PostingRuleNotFoundError
from ledger_kernel.models.document import DocumentType, PaymentMethod

DOCUMENT_PREFIXES: dict[DocumentType, str] = {
    DocumentType.INVOICE: "INV",
    DocumentType.PURCHASE_INV: "PINV",
    DocumentType.RECEIPT: "RCP",
    DocumentType.QUOTE: "QOT",
    DocumentType.DEPOSIT: "DEP",
    DocumentType.PAYMENT: "PAY",
    DocumentType.PURCHASE_ORDER: "PO",
    DocumentType.CREDIT_NOTE: "CN",
    DocumentType.DEBIT_NOTE: "DN",
    DocumentType.JOURNAL: "JV",
    DocumentType.OTHER: "DOC",
}


def serial_prefix(document_type: DocumentType | str) -> str:
    return DOCUMENT_PREFIXES[DocumentType(document_type)]


@dataclass(frozen=True)
class DocumentAmounts:
    """amount (net), vat_rate, vat_amount and total after derivation."""

    amount: Decimal
    vat_rate: Decimal | None
    vat_amount: Decimal | None
    total_amount: Decimal


def compute_amounts(
    document: DocumentInput,
    default_vat_rate: Decimal | None = None,
    tolerance: Decimal = TOLERANCE,
) -> DocumentAmounts:
    """
    Fill in missing figures and check the document invariants.

    ``vat_rate`` is a percentage.  ``default_vat_rate`` applies only when
    the document gives neither a rate nor an amount.
    """
    if document.items:
        for index, item in enumerate(document.items):
            if item.quantity < ZERO or item.unit_price < ZERO:
                raise InvalidDocumentError(
                    f"items[{index}]", "quantity and unit price must not be negative"
                )
        items_total = round_money(sum((i.quantity * i.unit_price for i in document.items), ZERO))
        if document.amount is not None and not within_tolerance(
            round_money(document.amount), items_total, tolerance
        ):
            raise InvalidDocumentError(
                "amount",
                f"amount {round_money(document.amount)} does not match items total {items_total}",
            )
        amount = items_total
    elif document.amount is not None:
        amount = round_money(document.amount)
    elif document.total_amount is not None:
        amount = round_money(document.total_amount) - round_money(document.vat_amount)
    else:
        raise InvalidDocumentError("amount", "amount, items or total_amount is required")

    if amount < ZERO:
        raise InvalidDocumentError("amount", "amount must not be negative")

    vat_rate = document.vat_rate
    if vat_rate is None and document.vat_amount is None and default_vat_rate:
        vat_rate = default_vat_rate
    if vat_rate is not None:
        vat_rate = Decimal(vat_rate)
        if vat_rate < ZERO:
            raise InvalidDocumentError("vat_rate", "VAT rate must not be negative")

    if document.vat_amount is not None:
        vat_amount = round_money(document.vat_amount)
    elif vat_rate is not None:
        vat_amount = round_money(amount * vat_rate / Decimal(100))
    else:
        vat_amount = None
    if vat_amount is not None and vat_amount < ZERO:
        raise InvalidDocumentError("vat_amount", "VAT amount must not be negative")

    expected_total = amount + (vat_amount or ZERO)
    if document.total_amount is not None:
        total = round_money(document.total_amount)
        if not within_tolerance(total, expected_total, tolerance):
            raise InvalidDocumentError(
                "total_amount",
                f"total {total} does not equal amount plus VAT {expected_total}",
            )
    else:
        total = expected_total

    if document.due_date is not None and document.due_date < document.document_date:
        raise InvalidDocumentError("due_date", "due date is before the document date")

    return DocumentAmounts(
        amount=amount,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        total_amount=total,
    )


def resolve_payment_method(document: DocumentRecord) -> PaymentMethod:
    """The document's method, else BANK_TRANSFER with a bank account, else CASH."""
    if document.payment_method is not None:
        return PaymentMethod(document.payment_method)
    if document.bank_account_id:
        return PaymentMethod.BANK_TRANSFER
    return PaymentMethod.CASH


class PostingRuleTable:
    """
    Lookup over configured posting rules.

    An exact (document_type, payment_method) rule wins over the
    (document_type, "*") wildcard.
    """

    def __init__(self, rules: Iterable[PostingRuleDef]):
        self._rules = {rule.key: rule for rule in rules}

    def __len__(self) -> int:
        return len(self._rules)

    def posting_types(self) -> frozenset[str]:
        """Document types that have at least one rule."""
        return frozenset(document_type for document_type, _ in self._rules)

    def lookup(self, document_type: str, payment_method: str) -> PostingRuleDef:
        rule = self._rules.get((document_type, payment_method)) or self._rules.get(
            (document_type, WILDCARD)
        )
        if rule is None:
            raise PostingRuleNotFoundError(document_type, payment_method)
        return rule


def _line(side: str, account_code: str, amount: Decimal, description: str) -> LineInput:
    if side == "debit":
        return LineInput(account_code=account_code, debit=amount, description_local=description)
    return LineInput(account_code=account_code, credit=amount, description_local=description)


def derive_lines(document: DocumentRecord, rule: PostingRuleDef) -> list[LineInput]:
    """
    Turn a posting rule into journal lines for ``document``.

    ``net`` is total minus VAT.  A line with ``allocate_items`` routes the
    items that name an ``account_code`` to that account and puts the
    remainder on the rule's account.

    Raises:
        InvalidDocumentError: If item allocation exceeds the line figure.
    """
    vat = round_money(document.vat_amount)
    total = round_money(document.total_amount)
    figures = {"total": total, "vat": vat, "net": total - vat}
    description = document.description_local or (
        f"{DocumentType(document.document_type).value} {document.serial_number}"
    )

    lines: list[LineInput] = []
    for template in rule.lines:
        figure = figures[template.amount]
        if template.allocate_items:
            allocated: dict[str, Decimal] = {}
            for item in document.items:
                if item.account_code and item.line_total > ZERO:
                    allocated[item.account_code] = (
                        allocated.get(item.account_code, ZERO) + item.line_total
                    )
            routed = sum(allocated.values(), ZERO)
            if routed > figure:
                raise InvalidDocumentError(
                    "items", f"allocated items {routed} exceed the {template.amount} {figure}"
                )
            for code in sorted(allocated):
                lines.append(_line(template.side, code, allocated[code], description))
            figure -= routed
        if figure > ZERO:
            lines.append(_line(template.side, template.account, figure, description))
    return lines
