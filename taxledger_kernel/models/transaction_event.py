"""
Module: taxledger_kernel.models.transaction_event
Responsibility: ORM model for the append-only tax ledger.  Each row is a
    point-in-time snapshot of an invoice (plus client balances) for a reporting
    period, with a ``tax_report`` metadata block (summary, details, payment
    history).
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Append-only: before_update / before_delete listeners (db/immutability.py)
      raise ImmutabilityViolationError.
    - Per-invoice ordering: UNIQUE (invoice_id, entry_seq); entry_seq grows
      with every entry and breaks ties between equal timestamps.
    - Idempotent backfill writes: UNIQUE dedup_key (NULL for live writes).

Audit relevance:
    The most recent entry for (invoice, period) by (timestamp, entry_seq) is
    the authoritative tax position for that period.  Earlier entries remain
    as the visible history of corrections.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, SmallInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from taxledger_kernel.db.base import Base
from taxledger_kernel.db.types import ensure_utc


class TransactionEvent(Base):
    """
    One ledger snapshot.

    Contract:
        Rows are created only through LedgerRecorder.record(); nothing updates
        or deletes them.

    Guarantees:
        - ``report_status`` mirrors ``metadata.tax_report.tax_summary.status``
          so queries can filter on it without JSON operators.
        - ``event_metadata`` is stored in the ``metadata`` column.
    """

    __tablename__ = "transaction_events"

    __table_args__ = (
        UniqueConstraint("invoice_id", "entry_seq", name="uq_transaction_event_invoice_seq"),
        UniqueConstraint("dedup_key", name="uq_transaction_event_dedup_key"),
        Index("idx_transaction_event_company_period", "company_id", "period"),
        Index("idx_transaction_event_invoice_period", "invoice_id", "period"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    company_id: Mapped[UUID] = mapped_column(nullable=False)

    event_kind: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    period: Mapped[date] = mapped_column(Date, nullable=False)
    entry_seq: Mapped[int] = mapped_column(nullable=False)

    # Invoice snapshot
    invoice_amount: Mapped[Decimal] = mapped_column(nullable=False)
    invoice_balance: Mapped[Decimal] = mapped_column(nullable=False)
    invoice_partial: Mapped[Decimal] = mapped_column(nullable=False)
    invoice_paid_to_date: Mapped[Decimal] = mapped_column(nullable=False)
    invoice_status: Mapped[str] = mapped_column(String(20), nullable=False)

    # Client snapshot
    client_balance: Mapped[Decimal] = mapped_column(nullable=False)
    client_paid_to_date: Mapped[Decimal] = mapped_column(nullable=False)
    client_credit_balance: Mapped[Decimal] = mapped_column(nullable=False)

    # Payment totals (cash and payment adjustment entries only)
    payment_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_applied: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_refunded: Mapped[Decimal | None] = mapped_column(nullable=True)

    report_status: Mapped[str] = mapped_column(String(20), nullable=False)
    dedup_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False)

    def to_dto(self):
        from taxledger_kernel.domain.ledger import LedgerEntry
        from taxledger_kernel.domain.status import EventKind
        from taxledger_kernel.domain.values import TransactionEventMetadata
        return LedgerEntry(
            id=self.id,
            invoice_id=self.invoice_id,
            client_id=self.client_id,
            company_id=self.company_id,
            event_kind=EventKind(self.event_kind),
            timestamp=ensure_utc(self.timestamp),
            period=self.period,
            entry_seq=self.entry_seq,
            invoice_amount=self.invoice_amount,
            invoice_balance=self.invoice_balance,
            invoice_partial=self.invoice_partial,
            invoice_paid_to_date=self.invoice_paid_to_date,
            invoice_status=self.invoice_status,
            client_balance=self.client_balance,
            client_paid_to_date=self.client_paid_to_date,
            client_credit_balance=self.client_credit_balance,
            metadata=TransactionEventMetadata.from_dict(self.event_metadata),
            payment_amount=self.payment_amount,
            payment_applied=self.payment_applied,
            payment_refunded=self.payment_refunded,
        )

    def __repr__(self) -> str:
        return (
            f"<TransactionEvent invoice={self.invoice_id} kind={self.event_kind} "
            f"period={self.period} status={self.report_status}>"
        )
