"""
Module: taxledger_kernel.selectors.ledger_selector
Responsibility: Read access to the transaction event ledger: latest entry per
    invoice (the change-detection baseline), per-period existence checks used
    by backfill, and the in-range entry lists used by report assembly.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - "Most recent" always means ORDER BY timestamp DESC, entry_seq DESC.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import and_, func, or_, select

from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import EventKind, TaxReportStatus
from taxledger_kernel.models.transaction_event import TransactionEvent
from taxledger_kernel.selectors.base import BaseSelector

_NEWEST_FIRST = (TransactionEvent.timestamp.desc(), TransactionEvent.entry_seq.desc())


def accrual_entry_filter():
    """Entries that belong on an accrual-basis report."""
    return TransactionEvent.event_kind == int(EventKind.INVOICE_UPDATED)


def cash_entry_filter():
    """
    Entries that belong on a cash-basis report.

    Reversal corrections are accrual-kind entries but move cash-basis tax, so
    they are included alongside every non-accrual entry.
    """
    return or_(
        TransactionEvent.event_kind != int(EventKind.INVOICE_UPDATED),
        TransactionEvent.report_status == TaxReportStatus.REVERSED.value,
    )


class LedgerSelector(BaseSelector):
    """Selector for TransactionEvent rows."""

    def latest_entry(
        self,
        invoice_id: UUID,
        event_kind: EventKind | None = None,
    ) -> LedgerEntry | None:
        """Most recent entry for the invoice, optionally of one kind."""
        stmt = select(TransactionEvent).where(TransactionEvent.invoice_id == invoice_id)
        if event_kind is not None:
            stmt = stmt.where(TransactionEvent.event_kind == int(event_kind))
        row = self.session.scalars(stmt.order_by(*_NEWEST_FIRST).limit(1)).first()
        return row.to_dto() if row is not None else None

    def latest_entry_for_period(self, invoice_id: UUID, period: date) -> LedgerEntry | None:
        """Most recent entry of any kind stamped with exactly ``period``."""
        stmt = (
            select(TransactionEvent)
            .where(
                TransactionEvent.invoice_id == invoice_id,
                TransactionEvent.period == period,
            )
            .order_by(*_NEWEST_FIRST)
            .limit(1)
        )
        row = self.session.scalars(stmt).first()
        return row.to_dto() if row is not None else None

    def has_entry_for_period(
        self,
        invoice_id: UUID,
        period: date,
        event_kind: EventKind | None = None,
    ) -> bool:
        stmt = select(TransactionEvent.id).where(
            TransactionEvent.invoice_id == invoice_id,
            TransactionEvent.period == period,
        )
        if event_kind is not None:
            stmt = stmt.where(TransactionEvent.event_kind == int(event_kind))
        return self.session.execute(stmt.limit(1)).first() is not None

    def max_entry_seq(self, invoice_id: UUID) -> int:
        """Highest entry_seq recorded for the invoice (0 when none)."""
        stmt = select(func.max(TransactionEvent.entry_seq)).where(
            TransactionEvent.invoice_id == invoice_id
        )
        return self.session.execute(stmt).scalar() or 0

    def entries_for_report(
        self,
        invoice_id: UUID,
        start_date: date,
        end_date: date,
        cash_basis: bool,
    ) -> list[LedgerEntry]:
        """In-range entries for one invoice, most recent first."""
        basis_filter = cash_entry_filter() if cash_basis else accrual_entry_filter()
        stmt = (
            select(TransactionEvent)
            .where(
                and_(
                    TransactionEvent.invoice_id == invoice_id,
                    TransactionEvent.period >= start_date,
                    TransactionEvent.period <= end_date,
                    basis_filter,
                )
            )
            .order_by(*_NEWEST_FIRST)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def entries_for_invoice(self, invoice_id: UUID) -> list[LedgerEntry]:
        """Full history for the invoice, oldest first."""
        stmt = (
            select(TransactionEvent)
            .where(TransactionEvent.invoice_id == invoice_id)
            .order_by(TransactionEvent.timestamp, TransactionEvent.entry_seq)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]
