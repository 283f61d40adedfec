"""
PaymentAdjustmentEntry -- ledger corrections for refunded or deleted payments.

Responsibility:
    When a payment against an invoice from an already-closed month is
    refunded or deleted, the tax reported for that month is not rewritten.
    Instead an ADJUSTMENT entry is appended to the current period carrying
    the tax that is no longer paid as a negative ``tax_adjustment``.

Invariants enforced:
    - Invoices whose own month has not yet closed are skipped; the next
      change-detection snapshot for that month already reflects the payment.
    - Earlier entries are never touched.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from taxledger_engines.metadata_builders import (
    BuildContext,
    build_payment_deleted_adjustment,
    build_refund_adjustment,
    payment_history,
)
from taxledger_kernel.db.types import ZERO
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.domain.invoice import (
    InvoiceCalculator,
    InvoiceSnapshot,
    PaymentSnapshot,
    StoredTaxCalculator,
)
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import EventKind
from taxledger_kernel.domain.values import TransactionEventMetadata, payment_ratio
from taxledger_kernel.logging_config import get_logger
from taxledger_services.ledger_recorder import LedgerEntryDraft, LedgerRecorder

logger = get_logger("services.payment_adjustment")


def end_of_month(day: date) -> date:
    return day + relativedelta(day=31)


class PaymentAdjustmentEntry:
    """Writes ADJUSTMENT entries for payment refunds and deletions.  Never commits."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: InvoiceCalculator | None = None,
    ):
        self._clock = clock or SystemClock()
        self._calculator = calculator or StoredTaxCalculator()
        self._recorder = LedgerRecorder(session, self._clock)

    def run(
        self,
        invoice: InvoiceSnapshot,
        payments: Sequence[PaymentSnapshot],
        is_deleted: bool,
        period: date | None = None,
    ) -> LedgerEntry | None:
        """
        Record the adjustment for ``invoice``.

        ``payments`` are the refunded (or deleted) payments; only their
        allocations to this invoice count toward the tax still paid.  Returns
        None when the invoice month is still open.
        """
        today = self._clock.today()
        if end_of_month(invoice.date) >= today:
            logger.debug(
                "payment_adjustment_skipped",
                extra={"invoice_id": str(invoice.id), "reason": "invoice_month_open"},
            )
            return None

        allocations = [
            allocation
            for payment in payments
            for allocation in payment.allocations
            if allocation.invoice_id == invoice.id
        ]
        history = payment_history(allocations)
        net_paid = sum((p.net_amount for p in history), ZERO)

        ctx = BuildContext(
            invoice,
            self._calculator.calc(invoice),
            prior=None,
            paid_ratio=payment_ratio(invoice.amount, invoice.paid_to_date),
        )
        if is_deleted:
            built = build_payment_deleted_adjustment(ctx, net_paid)
            kind = EventKind.PAYMENT_DELETED
        else:
            built = build_refund_adjustment(ctx, net_paid)
            kind = EventKind.PAYMENT_REFUNDED

        draft = LedgerEntryDraft(
            invoice=invoice,
            event_kind=kind,
            period=period or end_of_month(today),
            metadata=TransactionEventMetadata(
                tax_summary=built.summary,
                tax_details=built.details,
                payment_history=history,
            ),
            payment_amount=sum((p.amount for p in payments), ZERO),
            payment_applied=sum((p.applied for p in payments), ZERO),
            payment_refunded=sum((p.refunded for p in payments), ZERO),
        )
        return self._recorder.record(draft)
