"""Frozen read-side view of one persisted ledger entry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from taxledger_kernel.domain.status import EventKind, TaxReportStatus
from taxledger_kernel.domain.values import TransactionEventMetadata


@dataclass(frozen=True)
class LedgerEntry:
    """
    Snapshot of an invoice (and its client) as recorded for a period.

    Guarantees:
        - ``timestamp`` is timezone-aware UTC.
        - ``metadata`` is the parsed ``tax_report`` block.
    """

    id: UUID
    invoice_id: UUID
    client_id: UUID
    company_id: UUID
    event_kind: EventKind
    timestamp: datetime
    period: date
    entry_seq: int
    invoice_amount: Decimal
    invoice_balance: Decimal
    invoice_partial: Decimal
    invoice_paid_to_date: Decimal
    invoice_status: str
    client_balance: Decimal
    client_paid_to_date: Decimal
    client_credit_balance: Decimal
    metadata: TransactionEventMetadata
    payment_amount: Decimal | None = None
    payment_applied: Decimal | None = None
    payment_refunded: Decimal | None = None

    @property
    def report_status(self) -> TaxReportStatus:
        return self.metadata.tax_summary.status
