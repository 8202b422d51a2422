"""DocumentService: lifecycle, numbering and the posting sweep."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import DocumentInput, DocumentItem
from ledger_kernel.exceptions import (
    DocumentAlreadyPostedError,
    DocumentNotFoundError,
    DuplicateSerialError,
    InvalidDocumentError,
)
from ledger_kernel.models.audit_log import AuditAction
from ledger_kernel.models.document import DocumentStatus, DocumentType, PaymentMethod
from ledger_kernel.models.journal import LineSide
from ledger_kernel.selectors.document_selector import DocumentSearch


@pytest.fixture
def create(services):
    """create(document_type, amount, **fields) with a 2024-03-10 date by default."""
    def _create(document_type=DocumentType.RECEIPT, amount="50.00", **fields):
        fields.setdefault("document_date", date(2024, 3, 10))
        return services.documents.create_document(
            DocumentInput(document_type=document_type, amount=amount, **fields)
        )

    return _create


class TestCreate:
    def test_serial_per_type_and_year(self, create):
        first = create()
        second = create()
        invoice = create(DocumentType.INVOICE)
        next_year = create(document_date=date(2025, 1, 3))

        assert first.serial_number == "RCP-2024-0001"
        assert second.serial_number == "RCP-2024-0002"
        assert invoice.serial_number == "INV-2024-0001"
        assert next_year.serial_number == "RCP-2025-0001"

    def test_defaults(self, create):
        record = create()

        assert record.status == DocumentStatus.DRAFT
        assert record.currency == "OMR"
        assert record.total_amount == Decimal("50.00")
        assert record.is_posted is False

    def test_creation_has_no_ledger_effect(self, services, create):
        create(status=DocumentStatus.APPROVED)

        assert services.journal.all_entries() == []

    def test_manual_serial(self, create):
        assert create(serial_number="RCP-MANUAL-7").serial_number == "RCP-MANUAL-7"

    def test_duplicate_manual_serial(self, create):
        create(serial_number="RCP-MANUAL-7")
        with pytest.raises(DuplicateSerialError) as exc_info:
            create(serial_number="RCP-MANUAL-7")
        assert exc_info.value.code == "DUPLICATE_SERIAL"

    def test_counter_steps_over_manual_serial_in_counter_format(self, create):
        create(serial_number="RCP-2024-0001")
        create(serial_number="RCP-2024-0002")

        assert create().serial_number == "RCP-2024-0003"
        assert create().serial_number == "RCP-2024-0004"

    @pytest.mark.parametrize("document_type", [DocumentType.RECEIPT, DocumentType.INVOICE])
    def test_zero_total_postable_document_rejected(self, services, create, document_type):
        with pytest.raises(InvalidDocumentError) as exc_info:
            create(document_type=document_type, amount="0")

        assert exc_info.value.field == "amount"
        assert services.documents.list_documents() == []

    def test_zero_total_quote_allowed(self, create):
        assert create(document_type=DocumentType.QUOTE, amount="0").total_amount == Decimal("0")

    def test_invalid_document_persists_nothing(self, services, create):
        with pytest.raises(InvalidDocumentError):
            create(amount="10", total_amount="99")

        assert services.documents.list_documents() == []

    def test_items_round_trip(self, create):
        record = create(
            DocumentType.INVOICE,
            amount=None,
            items=(DocumentItem("rent", "1", "400"), DocumentItem("cleaning", "2", "12.5")),
        )
        assert record.amount == Decimal("425.00")
        assert [i.description for i in record.items] == ["rent", "cleaning"]

    def test_audited(self, services, create):
        record = create(actor_id="clerk")
        rows = services.auditor.get_audit_log(entity_id=record.id)
        assert [r.action for r in rows] == [AuditAction.CREATE.value]


class TestStatus:
    def test_confirm(self, services, create):
        record = create()
        confirmed = services.documents.set_status(record.id, DocumentStatus.APPROVED, actor_id="mgr")

        assert confirmed.status == DocumentStatus.APPROVED
        rows = services.auditor.get_audit_log(entity_id=record.id, action=AuditAction.UPDATE)
        assert rows[0].previous_state["status"] == "DRAFT"
        assert rows[0].new_state["status"] == "APPROVED"

    def test_same_status_is_noop(self, services, create):
        record = create(status=DocumentStatus.APPROVED)
        services.documents.set_status(record.id, DocumentStatus.APPROVED)

        assert services.auditor.get_audit_log(entity_id=record.id, action=AuditAction.UPDATE) == []

    def test_cancelled_cannot_be_confirmed(self, services, create):
        record = create()
        services.documents.cancel_document(record.id, reason="duplicate")

        with pytest.raises(InvalidDocumentError):
            services.documents.set_status(record.id, DocumentStatus.APPROVED)

    def test_unknown_document(self, services):
        from uuid import uuid4

        with pytest.raises(DocumentNotFoundError):
            services.documents.get_document(uuid4())


class TestCancel:
    def test_cancel_is_idempotent(self, services, create):
        record = create()
        services.documents.cancel_document(record.id, reason="typo")
        again = services.documents.cancel_document(record.id)

        assert again.status == DocumentStatus.CANCELLED
        cancels = services.auditor.get_audit_log(entity_id=record.id, action=AuditAction.CANCEL)
        assert len(cancels) == 1
        assert cancels[0].reason == "typo"

    def test_posted_document_cannot_be_cancelled(self, services, create):
        record = create(status=DocumentStatus.APPROVED)
        services.documents.post_unposted_documents()

        with pytest.raises(DocumentAlreadyPostedError):
            services.documents.cancel_document(record.id)

    def test_cancelled_document_is_not_posted(self, services, create):
        record = create(status=DocumentStatus.APPROVED)
        services.documents.cancel_document(record.id)

        assert services.documents.post_unposted_documents().posted == 0


class TestPostingSweep:
    def test_receipt_posts_balanced_entry(self, services, create):
        record = create(status=DocumentStatus.APPROVED, property_id="villa-7")

        result = services.documents.post_unposted_documents(actor_id="system")

        assert result.posted == 1
        assert result.is_clean
        entry = services.journal.require(result.entry_ids[0])
        assert entry.total_debit == entry.total_credit == Decimal("50.00")
        assert [(l.account_code, l.side) for l in entry.lines] == [
            ("1000", LineSide.DEBIT),
            ("4000", LineSide.CREDIT),
        ]
        assert entry.document_id == record.id
        assert entry.document_type == "RECEIPT"
        assert entry.property_id == "villa-7"
        assert services.documents.get_document(record.id).journal_entry_id == entry.id

    def test_second_sweep_posts_nothing(self, services, create):
        create(status=DocumentStatus.APPROVED)
        services.documents.post_unposted_documents()

        again = services.documents.post_unposted_documents()

        assert again.posted == 0
        assert len(services.journal.all_entries()) == 1

    def test_drafts_and_quotes_are_skipped(self, services, create):
        create()
        create(DocumentType.QUOTE, status=DocumentStatus.APPROVED)

        assert services.documents.find_unposted_approved() == []
        assert services.documents.post_unposted_documents().posted == 0

    def test_paid_invoice_with_bank_account(self, services, create):
        create(
            DocumentType.INVOICE,
            amount="200",
            vat_rate=Decimal("5"),
            status=DocumentStatus.PAID,
            bank_account_id="bank-1",
        )

        result = services.documents.post_unposted_documents()

        entry = services.journal.require(result.entry_ids[0])
        assert {(l.account_code, l.amount) for l in entry.lines} == {
            ("1100", Decimal("210.00")),
            ("4000", Decimal("200.00")),
            ("2200", Decimal("10.00")),
        }
        assert entry.bank_account_id == "bank-1"

    def test_cheque_receipt_debits_cheques_account(self, services, create):
        create(status=DocumentStatus.APPROVED, payment_method=PaymentMethod.CHEQUE, cheque_number="000123")

        result = services.documents.post_unposted_documents()

        entry = services.journal.require(result.entry_ids[0])
        assert entry.lines[0].account_code == "1150"

    def test_failure_is_recorded_and_others_still_post(self, services, account_ids, create):
        services.accounts.deactivate(account_ids["2200"])
        bad = create(
            amount="100",
            vat_amount="5",
            status=DocumentStatus.APPROVED,
            document_date=date(2024, 3, 1),
        )
        good = create(status=DocumentStatus.APPROVED, document_date=date(2024, 3, 2))

        result = services.documents.post_unposted_documents()

        assert result.posted == 1
        assert result.failed == 1
        assert result.errors[0].document_id == bad.id
        assert result.errors[0].error_code == "ACCOUNT_INACTIVE"
        assert result.posted_document_ids == (good.id,)
        assert services.documents.get_document(bad.id).is_posted is False
        # the failed attempt leaves no hole in the journal numbering
        assert services.journal.require(result.entry_ids[0]).serial_number == "JRN-2024-0001"

    def test_locked_period_document_stays_unposted(self, services, create, captured_logs):
        document = create(status=DocumentStatus.APPROVED)
        period = services.periods.get_period_for_date(document.document_date)
        services.periods.lock_period(period.id)

        result = services.documents.post_unposted_documents()

        assert result.posted == 0
        assert result.errors[0].error_code == "PERIOD_LOCKED"
        assert [d.id for d in services.documents.find_unposted_approved()] == [document.id]
        flagged = [r for r in captured_logs() if r["message"] == "unposted_documents_pending"]
        assert flagged[-1]["count"] == 1
        assert flagged[-1]["level"] == "WARNING"

    def test_posting_is_audited(self, services, create):
        record = create(status=DocumentStatus.APPROVED)
        result = services.documents.post_unposted_documents()

        rows = services.auditor.get_audit_log(entity_id=record.id, action=AuditAction.UPDATE)
        entry = services.journal.require(result.entry_ids[0])
        assert rows[0].reason == f"posted as {entry.serial_number}"

    def test_sweep_takes_oldest_first(self, services, create):
        later = create(status=DocumentStatus.APPROVED, document_date=date(2024, 5, 1))
        earlier = create(status=DocumentStatus.APPROVED, document_date=date(2024, 4, 1))

        result = services.documents.post_unposted_documents()

        assert result.posted_document_ids == (earlier.id, later.id)


class TestListDocuments:
    def test_filters(self, services, create):
        create(contact_id="tenant-1")
        create(DocumentType.INVOICE, contact_id="tenant-2", status=DocumentStatus.APPROVED)
        services.documents.post_unposted_documents()

        by_contact = services.documents.list_documents(DocumentSearch(contact_id="tenant-1"))
        posted = services.documents.list_documents(DocumentSearch(posted=True))
        invoices = services.documents.list_documents(DocumentSearch(document_type=DocumentType.INVOICE))

        assert [d.contact_id for d in by_contact] == ["tenant-1"]
        assert [d.document_type for d in posted] == [DocumentType.INVOICE]
        assert len(invoices) == 1

    def test_text_search(self, services, create):
        create(reference="LEASE-2024-17")
        create(reference="LEASE-2024-18")

        found = services.documents.list_documents(DocumentSearch(text="2024-17"))
        assert [d.reference for d in found] == ["LEASE-2024-17"]
