"""
LedgerRecorder -- the only writer of TransactionEvent rows.

Responsibility:
    Turns a ``LedgerEntryDraft`` (invoice snapshot, event kind, period and
    tax metadata) into an appended ledger row, assigning the per-invoice
    ``entry_seq`` and the timestamp from the injected clock.

Architecture position:
    Services.  Called by the change-detection gate, the cash-basis entry and
    the payment adjustment entry.

Invariants enforced:
    - Append-only: rows are added, never updated.
    - Per-invoice ordering: a new entry's timestamp is never older than the
      invoice's latest entry (LedgerOrderingError otherwise); entry_seq is
      max + 1 and UNIQUE per invoice.
    - Idempotent replays: a draft recorded with a ``dedup_key`` that already
      exists is a no-op.

Failure modes:
    - LedgerOrderingError when the clock is behind the invoice's latest entry.
    - A concurrent writer that takes the same entry_seq, or a duplicate
      dedup_key, rolls back only this entry's SAVEPOINT; ``record`` returns
      None and logs ``ledger_entry_conflict``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taxledger_kernel.db.types import ensure_utc
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.domain.invoice import InvoiceSnapshot
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import EventKind
from taxledger_kernel.domain.values import TransactionEventMetadata
from taxledger_kernel.exceptions import LedgerOrderingError
from taxledger_kernel.logging_config import get_logger
from taxledger_kernel.models.transaction_event import TransactionEvent
from taxledger_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("services.ledger_recorder")

DELETED_INVOICE_STATUS = "deleted"


@dataclass(frozen=True)
class LedgerEntryDraft:
    """Everything needed to append one entry, before sequencing."""

    invoice: InvoiceSnapshot
    event_kind: EventKind
    period: date
    metadata: TransactionEventMetadata
    payment_amount: Decimal | None = None
    payment_applied: Decimal | None = None
    payment_refunded: Decimal | None = None

    @property
    def invoice_status(self) -> str:
        """Invoice status as snapshotted; soft-deleted invoices read ``deleted``."""
        if self.invoice.is_deleted:
            return DELETED_INVOICE_STATUS
        return self.invoice.status.value


class LedgerRecorder:
    """
    Appends ledger entries.

    Contract:
        ``record`` flushes inside a SAVEPOINT and never commits; the caller
        owns the outer transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    def record(self, draft: LedgerEntryDraft, dedup_key: str | None = None) -> LedgerEntry | None:
        invoice = draft.invoice
        timestamp = ensure_utc(self._clock.now())

        latest = self._ledger.latest_entry(invoice.id)
        if latest is not None and timestamp < latest.timestamp:
            raise LedgerOrderingError(
                str(invoice.id),
                latest.timestamp.isoformat(),
                timestamp.isoformat(),
            )

        entry_seq = self._ledger.max_entry_seq(invoice.id) + 1
        summary = draft.metadata.tax_summary
        client = invoice.client

        row = TransactionEvent(
            invoice_id=invoice.id,
            client_id=client.id,
            company_id=invoice.company_id,
            event_kind=int(draft.event_kind),
            timestamp=timestamp,
            period=draft.period,
            entry_seq=entry_seq,
            invoice_amount=invoice.amount,
            invoice_balance=invoice.balance,
            invoice_partial=invoice.partial,
            invoice_paid_to_date=invoice.paid_to_date,
            invoice_status=draft.invoice_status,
            client_balance=client.balance,
            client_paid_to_date=client.paid_to_date,
            client_credit_balance=client.credit_balance,
            payment_amount=draft.payment_amount,
            payment_applied=draft.payment_applied,
            payment_refunded=draft.payment_refunded,
            report_status=summary.status.value,
            dedup_key=dedup_key,
            event_metadata=draft.metadata.to_dict(),
        )

        try:
            with self._session.begin_nested():
                self._session.add(row)
                self._session.flush()
        except IntegrityError:
            logger.info(
                "ledger_entry_conflict",
                extra={
                    "invoice_id": str(invoice.id),
                    "event_kind": draft.event_kind.name,
                    "period": draft.period.isoformat(),
                    "entry_seq": entry_seq,
                    "dedup_key": dedup_key,
                },
            )
            return None

        logger.info(
            "ledger_entry_recorded",
            extra={
                "invoice_id": str(invoice.id),
                "event_kind": draft.event_kind.name,
                "period": draft.period.isoformat(),
                "entry_seq": entry_seq,
                "report_status": summary.status.value,
                "taxable_amount": str(summary.taxable_amount),
                "total_taxes": str(summary.total_taxes),
            },
        )
        return row.to_dto()
