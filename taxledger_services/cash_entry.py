"""
CashBasisEntry -- ledger entries for payments received in a window.

Responsibility:
    Records one PAYMENT_CASH entry for an invoice stamped with the window's
    end date.  The tax figures are the invoice's tax scaled by its full paid
    ratio; the payment totals and history cover only allocations created
    inside ``[start_date, end_date]``.

Architecture position:
    Services.  Used by the backfill orchestrator (one call per invoice and
    payment month) and available to payment event handlers.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from taxledger_engines.metadata_builders import BuildContext, build_cash, payment_history
from taxledger_kernel.db.types import ZERO
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.domain.invoice import InvoiceCalculator, InvoiceSnapshot, StoredTaxCalculator
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import EventKind
from taxledger_kernel.domain.values import TransactionEventMetadata, payment_ratio
from taxledger_services.ledger_recorder import LedgerEntryDraft, LedgerRecorder


def cash_dedup_key(invoice: InvoiceSnapshot, period: date) -> str:
    return f"cash:{invoice.id}:{period.isoformat()}"


class CashBasisEntry:
    """Writes cash-basis snapshots.  Never commits."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: InvoiceCalculator | None = None,
    ):
        self._calculator = calculator or StoredTaxCalculator()
        self._recorder = LedgerRecorder(session, clock or SystemClock())

    def run(
        self,
        invoice: InvoiceSnapshot,
        start_date: date,
        end_date: date,
        dedup: bool = False,
    ) -> LedgerEntry | None:
        """Append the entry; None only when a duplicate was suppressed."""
        history = payment_history(invoice.allocations, start_date, end_date)
        paid = sum((p.amount for p in history), ZERO)
        refunded = sum((p.refunded for p in history), ZERO)

        ratio = payment_ratio(invoice.amount, invoice.paid_to_date)
        built = build_cash(
            BuildContext(invoice, self._calculator.calc(invoice), prior=None, paid_ratio=ratio)
        )

        draft = LedgerEntryDraft(
            invoice=invoice,
            event_kind=EventKind.PAYMENT_CASH,
            period=end_date,
            metadata=TransactionEventMetadata(
                tax_summary=built.summary,
                tax_details=built.details,
                payment_history=history,
            ),
            payment_amount=paid,
            payment_applied=paid,
            payment_refunded=refunded,
        )
        dedup_key = cash_dedup_key(invoice, end_date) if dedup else None
        return self._recorder.record(draft, dedup_key=dedup_key)
