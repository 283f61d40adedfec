"""
Change-detection decision table.

Covers first snapshots, the still-terminal skips, restoration after a
delete, terminal transitions and the amount-unchanged / delta split.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from taxledger_engines.entry_decision import decide_entry, state_override
from taxledger_kernel.domain.invoice import ClientSnapshot, InvoiceSnapshot
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import EventKind, InvoiceStatus, TaxReportStatus
from taxledger_kernel.domain.values import TaxSummary, TransactionEventMetadata

INVOICE_ID = uuid4()


def make_invoice(amount="110", status=InvoiceStatus.SENT, is_deleted=False):
    return InvoiceSnapshot(
        id=INVOICE_ID,
        company_id=uuid4(),
        client=ClientSnapshot(id=uuid4()),
        number="INV-1",
        date=date(2025, 9, 1),
        amount=Decimal(amount),
        balance=Decimal(amount),
        paid_to_date=Decimal("0"),
        status=status,
        is_deleted=is_deleted,
    )


def make_prior(status, amount="110"):
    return LedgerEntry(
        id=uuid4(),
        invoice_id=INVOICE_ID,
        client_id=uuid4(),
        company_id=uuid4(),
        event_kind=EventKind.INVOICE_UPDATED,
        timestamp=datetime(2025, 9, 30, tzinfo=timezone.utc),
        period=date(2025, 9, 30),
        entry_seq=1,
        invoice_amount=Decimal(amount),
        invoice_balance=Decimal(amount),
        invoice_partial=Decimal("0"),
        invoice_paid_to_date=Decimal("0"),
        invoice_status="sent",
        client_balance=Decimal("0"),
        client_paid_to_date=Decimal("0"),
        client_credit_balance=Decimal("0"),
        metadata=TransactionEventMetadata(
            tax_summary=TaxSummary(Decimal("100"), Decimal("10"), status)
        ),
    )


class TestStateOverride:
    def test_cancelled_wins_over_deleted(self):
        invoice = make_invoice(status=InvoiceStatus.CANCELLED, is_deleted=True)
        assert state_override(invoice) == TaxReportStatus.CANCELLED

    def test_deleted_wins_over_reversed(self):
        invoice = make_invoice(status=InvoiceStatus.REVERSED, is_deleted=True)
        assert state_override(invoice) == TaxReportStatus.DELETED

    def test_plain_invoice_has_no_override(self):
        assert state_override(make_invoice()) is None


class TestFirstSnapshot:
    def test_plain_invoice_writes_updated(self):
        decision = decide_entry(make_invoice(), None)
        assert decision.write
        assert decision.status == TaxReportStatus.UPDATED

    @pytest.mark.parametrize(
        "status, is_deleted, expected",
        [
            (InvoiceStatus.CANCELLED, False, TaxReportStatus.CANCELLED),
            (InvoiceStatus.SENT, True, TaxReportStatus.DELETED),
            (InvoiceStatus.REVERSED, False, TaxReportStatus.REVERSED),
        ],
    )
    def test_terminal_state_on_first_snapshot(self, status, is_deleted, expected):
        decision = decide_entry(make_invoice(status=status, is_deleted=is_deleted), None)
        assert decision.write
        assert decision.status == expected


class TestSkips:
    def test_still_deleted(self):
        decision = decide_entry(make_invoice(is_deleted=True), make_prior(TaxReportStatus.DELETED))
        assert not decision.write
        assert decision.reason == "still_deleted"

    def test_still_cancelled(self):
        decision = decide_entry(
            make_invoice(status=InvoiceStatus.CANCELLED), make_prior(TaxReportStatus.CANCELLED)
        )
        assert not decision.write
        assert decision.reason == "still_cancelled"

    def test_still_reversed(self):
        decision = decide_entry(
            make_invoice(status=InvoiceStatus.REVERSED), make_prior(TaxReportStatus.REVERSED)
        )
        assert not decision.write

    def test_amount_unchanged(self):
        decision = decide_entry(make_invoice(), make_prior(TaxReportStatus.UPDATED))
        assert not decision.write
        assert decision.reason == "amount_unchanged"


class TestWrites:
    def test_amount_changed_is_delta(self):
        decision = decide_entry(make_invoice(amount="220"), make_prior(TaxReportStatus.UPDATED))
        assert decision.write
        assert decision.status == TaxReportStatus.DELTA

    def test_restore_with_unchanged_amount(self):
        decision = decide_entry(make_invoice(), make_prior(TaxReportStatus.DELETED))
        assert decision.write
        assert decision.status == TaxReportStatus.RESTORED

    def test_restored_but_cancelled_uses_cancelled_shape(self):
        decision = decide_entry(
            make_invoice(status=InvoiceStatus.CANCELLED), make_prior(TaxReportStatus.DELETED)
        )
        assert decision.status == TaxReportStatus.CANCELLED

    def test_cancellation_after_update(self):
        decision = decide_entry(
            make_invoice(status=InvoiceStatus.CANCELLED), make_prior(TaxReportStatus.UPDATED)
        )
        assert decision.write
        assert decision.status == TaxReportStatus.CANCELLED

    def test_deletion_after_cancellation(self):
        decision = decide_entry(
            make_invoice(status=InvoiceStatus.SENT, is_deleted=True),
            make_prior(TaxReportStatus.CANCELLED),
        )
        assert decision.status == TaxReportStatus.DELETED
