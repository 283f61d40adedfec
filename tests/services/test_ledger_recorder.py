"""
LedgerRecorder: sequencing, ordering guard and duplicate suppression.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from taxledger_kernel.domain.clock import DeterministicClock
from taxledger_kernel.domain.status import EventKind, TaxReportStatus
from taxledger_kernel.domain.values import TaxSummary, TransactionEventMetadata
from taxledger_kernel.exceptions import LedgerOrderingError
from taxledger_kernel.selectors.ledger_selector import LedgerSelector
from taxledger_services.ledger_recorder import LedgerEntryDraft, LedgerRecorder

PERIOD = date(2025, 9, 30)


def draft_for(invoice, status=TaxReportStatus.UPDATED, kind=EventKind.INVOICE_UPDATED):
    return LedgerEntryDraft(
        invoice=invoice.to_snapshot(),
        event_kind=kind,
        period=PERIOD,
        metadata=TransactionEventMetadata(
            tax_summary=TaxSummary(Decimal("100.00"), Decimal("10.00"), status)
        ),
    )


class TestRecord:
    def test_first_entry(self, db_session, clock, make_invoice):
        invoice = make_invoice()
        entry = LedgerRecorder(db_session, clock).record(draft_for(invoice))

        assert entry.entry_seq == 1
        assert entry.period == PERIOD
        assert entry.timestamp == clock.now()
        assert entry.invoice_amount == Decimal("110")
        assert entry.invoice_status == "sent"
        assert entry.report_status == TaxReportStatus.UPDATED
        assert entry.client_id == invoice.client_id

    def test_sequence_grows_per_invoice(self, db_session, clock, make_invoice):
        first, second = make_invoice(), make_invoice()
        recorder = LedgerRecorder(db_session, clock)
        recorder.record(draft_for(first))
        recorder.record(draft_for(second))
        entry = recorder.record(draft_for(first, TaxReportStatus.DELTA))

        assert entry.entry_seq == 2
        latest = LedgerSelector(db_session).latest_entry(first.id)
        assert latest.report_status == TaxReportStatus.DELTA

    def test_deleted_invoice_status_snapshot(self, db_session, clock, make_invoice):
        invoice = make_invoice(is_deleted=True)
        entry = LedgerRecorder(db_session, clock).record(draft_for(invoice, TaxReportStatus.DELETED))
        assert entry.invoice_status == "deleted"

    def test_logs_recorded_event(self, db_session, clock, make_invoice, captured_logs):
        LedgerRecorder(db_session, clock).record(draft_for(make_invoice()))
        recorded = [r for r in captured_logs() if r["message"] == "ledger_entry_recorded"]
        assert recorded[0]["event_kind"] == "INVOICE_UPDATED"
        assert recorded[0]["entry_seq"] == 1


class TestOrdering:
    def test_older_timestamp_is_rejected(self, db_session, make_invoice):
        invoice = make_invoice()
        clock = DeterministicClock(datetime(2025, 10, 1, 12, tzinfo=timezone.utc))
        LedgerRecorder(db_session, clock).record(draft_for(invoice))

        clock.set_time(datetime(2025, 10, 1, 11, tzinfo=timezone.utc))
        with pytest.raises(LedgerOrderingError) as exc_info:
            LedgerRecorder(db_session, clock).record(draft_for(invoice))
        assert exc_info.value.invoice_id == str(invoice.id)

    def test_equal_timestamps_are_ordered_by_sequence(self, db_session, clock, make_invoice):
        invoice = make_invoice()
        recorder = LedgerRecorder(db_session, clock)
        recorder.record(draft_for(invoice, TaxReportStatus.UPDATED))
        recorder.record(draft_for(invoice, TaxReportStatus.CANCELLED))

        latest = LedgerSelector(db_session).latest_entry(invoice.id)
        assert latest.report_status == TaxReportStatus.CANCELLED
        assert latest.entry_seq == 2


class TestDedup:
    def test_duplicate_key_is_a_no_op(self, db_session, clock, make_invoice, captured_logs):
        invoice = make_invoice()
        recorder = LedgerRecorder(db_session, clock)

        assert recorder.record(draft_for(invoice), dedup_key="k-1") is not None
        assert recorder.record(draft_for(invoice), dedup_key="k-1") is None

        entries = LedgerSelector(db_session).entries_for_invoice(invoice.id)
        assert len(entries) == 1
        assert any(r["message"] == "ledger_entry_conflict" for r in captured_logs())

    def test_conflict_keeps_earlier_work(self, db_session, clock, make_invoice):
        first, second = make_invoice(), make_invoice()
        recorder = LedgerRecorder(db_session, clock)
        recorder.record(draft_for(first), dedup_key="shared")
        recorder.record(draft_for(second), dedup_key="shared")
        recorder.record(draft_for(second))
        db_session.commit()

        ledger = LedgerSelector(db_session)
        assert len(ledger.entries_for_invoice(first.id)) == 1
        assert len(ledger.entries_for_invoice(second.id)) == 1

    def test_live_writes_without_key_never_conflict(self, db_session, clock, make_invoice):
        invoice = make_invoice()
        recorder = LedgerRecorder(db_session, clock)
        recorder.record(draft_for(invoice))
        recorder.record(draft_for(invoice))
        assert LedgerSelector(db_session).max_entry_seq(invoice.id) == 2
