"""
ChangeDetectionGate -- the accrual-basis ledger producer.

Responsibility:
    Invoked whenever an invoice is created, saved, cancelled, reversed,
    deleted or restored.  Compares the invoice with its most recent
    INVOICE_UPDATED entry, and when the decision table says so, appends a new
    snapshot whose metadata shape follows the chosen TaxReportStatus.

Architecture position:
    Services.  Decision logic lives in ``taxledger_engines.entry_decision``;
    metadata shapes in ``taxledger_engines.metadata_builders``; persistence
    in ``LedgerRecorder``.

Invariants enforced:
    - At most one entry per invocation.
    - A skipped invocation writes nothing and has no other side effect.
    - The paid ratio and payment history are computed once, before the
      decision, and shared by every builder.

Failure modes:
    - MissingPriorEntryError propagates if a delta is ever chosen without a
      prior entry.
    - LedgerOrderingError propagates from the recorder.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from taxledger_config.schema import LedgerSettings
from taxledger_engines.entry_decision import decide_entry
from taxledger_engines.metadata_builders import BuildContext, build_metadata, payment_history
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.domain.invoice import InvoiceCalculator, InvoiceSnapshot, StoredTaxCalculator
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import EventKind
from taxledger_kernel.domain.values import TransactionEventMetadata, payment_ratio
from taxledger_kernel.logging_config import get_logger
from taxledger_kernel.selectors.ledger_selector import LedgerSelector
from taxledger_services.ledger_recorder import LedgerEntryDraft, LedgerRecorder

logger = get_logger("services.change_detection")


def default_period(now: datetime, skew_hours: int) -> date:
    """Last day of the month containing ``now - skew_hours``."""
    shifted = now - timedelta(hours=skew_hours)
    return (shifted + relativedelta(day=31)).date()


def gate_dedup_key(invoice: InvoiceSnapshot, period: date, prior: LedgerEntry | None) -> str:
    prior_seq = prior.entry_seq if prior is not None else 0
    return f"{invoice.id}:{period.isoformat()}:{int(EventKind.INVOICE_UPDATED)}:{prior_seq}"


class ChangeDetectionGate:
    """
    Decides whether an invoice needs a new accrual snapshot and writes it.

    Contract:
        ``run`` never commits.  With ``dedup=True`` (backfill) the entry
        carries a dedup key derived from the prior entry, so two runs racing
        on the same invoice and period record at most one snapshot.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: InvoiceCalculator | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._clock = clock or SystemClock()
        self._calculator = calculator or StoredTaxCalculator()
        self._settings = settings or LedgerSettings()
        self._ledger = LedgerSelector(session)
        self._recorder = LedgerRecorder(session, self._clock)

    def default_period(self) -> date:
        return default_period(self._clock.now(), self._settings.period_skew_hours)

    def run(
        self,
        invoice: InvoiceSnapshot | None,
        period: date | None = None,
        dedup: bool = False,
    ) -> LedgerEntry | None:
        """Return the written entry, or None when nothing was recorded."""
        if invoice is None:
            return None

        period = period or self.default_period()
        ratio = payment_ratio(invoice.amount, invoice.paid_to_date)
        history = payment_history(invoice.allocations)

        prior = self._ledger.latest_entry(invoice.id, EventKind.INVOICE_UPDATED)
        decision = decide_entry(invoice, prior)
        if not decision.write:
            logger.debug(
                "ledger_entry_skipped",
                extra={
                    "invoice_id": str(invoice.id),
                    "period": period.isoformat(),
                    "reason": decision.reason,
                },
            )
            return None

        calculation = self._calculator.calc(invoice)
        built = build_metadata(decision.status, BuildContext(invoice, calculation, prior, ratio))

        draft = LedgerEntryDraft(
            invoice=invoice,
            event_kind=EventKind.INVOICE_UPDATED,
            period=period,
            metadata=TransactionEventMetadata(
                tax_summary=built.summary,
                tax_details=built.details,
                payment_history=history,
            ),
        )
        dedup_key = gate_dedup_key(invoice, period, prior) if dedup else None

        logger.debug(
            "ledger_entry_decided",
            extra={
                "invoice_id": str(invoice.id),
                "report_status": decision.status.value,
                "reason": decision.reason,
            },
        )
        return self._recorder.record(draft, dedup_key=dedup_key)
