"""
Module: taxledger_kernel.selectors.invoice_selector
Responsibility: Scans over the invoicing read model for backfill and report
    query planning.  Large companies are walked page by page with keyset
    pagination so no cursor stays open while the caller writes ledger rows.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Soft-deleted invoices are always included; deletion is a ledger event.
    - Every scan yields InvoiceSnapshot DTOs, never ORM rows.
"""

from collections.abc import Iterable, Iterator
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, exists, or_, select

from taxledger_kernel.domain.invoice import InvoiceSnapshot
from taxledger_kernel.domain.status import InvoiceStatus
from taxledger_kernel.models.invoice import InvoiceModel
from taxledger_kernel.models.transaction_event import TransactionEvent
from taxledger_kernel.selectors.base import BaseSelector
from taxledger_kernel.selectors.ledger_selector import (
    accrual_entry_filter,
    cash_entry_filter,
)

_TERMINAL_INVOICE_STATUSES = (InvoiceStatus.CANCELLED.value, InvoiceStatus.REVERSED.value)


class InvoiceSelector(BaseSelector):
    """Selector for the invoicing read model."""

    def get(self, invoice_id: UUID) -> InvoiceSnapshot | None:
        row = self.session.get(InvoiceModel, invoice_id)
        return row.to_snapshot() if row is not None else None

    # ------------------------------------------------------------------
    # Backfill scans
    # ------------------------------------------------------------------

    def iter_missing_period(
        self,
        company_id: UUID,
        statuses: Iterable[str],
        end_date: date,
        page_size: int,
    ) -> Iterator[InvoiceSnapshot]:
        """
        Invoices dated on/before ``end_date`` with no entry for that period.

        Pages are keyed on id, so entries written for yielded invoices while
        the scan is in progress never cause a row to be skipped or repeated.
        """
        has_period_entry = exists().where(
            TransactionEvent.invoice_id == InvoiceModel.id,
            TransactionEvent.period == end_date,
        )
        criteria = (
            InvoiceModel.company_id == company_id,
            InvoiceModel.status.in_(tuple(statuses)),
            InvoiceModel.invoice_date <= end_date,
            ~has_period_entry,
        )
        yield from self._iter_by_id(criteria, page_size)

    def iter_terminal_since(
        self,
        company_id: UUID,
        end_date: date,
        page_size: int,
    ) -> Iterator[InvoiceSnapshot]:
        """Invoices with an entry at/before ``end_date`` that are now cancelled, reversed or deleted."""
        has_prior_entry = exists().where(
            TransactionEvent.invoice_id == InvoiceModel.id,
            TransactionEvent.period <= end_date,
        )
        criteria = (
            InvoiceModel.company_id == company_id,
            or_(
                InvoiceModel.status.in_(_TERMINAL_INVOICE_STATUSES),
                InvoiceModel.is_deleted.is_(True),
            ),
            has_prior_entry,
        )
        yield from self._iter_by_id(criteria, page_size)

    def _iter_by_id(self, criteria: tuple, page_size: int) -> Iterator[InvoiceSnapshot]:
        last_id: UUID | None = None
        while True:
            stmt = select(InvoiceModel).where(*criteria)
            if last_id is not None:
                stmt = stmt.where(InvoiceModel.id > last_id)
            page = list(self.session.scalars(stmt.order_by(InvoiceModel.id).limit(page_size)))
            if not page:
                return
            snapshots = [row.to_snapshot() for row in page]
            last_id = page[-1].id
            yield from snapshots
            if len(page) < page_size:
                return

    # ------------------------------------------------------------------
    # Report scan
    # ------------------------------------------------------------------

    def iter_for_report(
        self,
        company_id: UUID,
        statuses: Iterable[str],
        start_date: date,
        end_date: date,
        cash_basis: bool,
        page_size: int,
        client_id: UUID | None = None,
    ) -> Iterator[InvoiceSnapshot]:
        """
        Invoices with at least one basis-relevant entry in the window.

        Ordered by balance descending (id ascending within equal balances).
        """
        basis_filter = cash_entry_filter() if cash_basis else accrual_entry_filter()
        has_entry = exists().where(
            TransactionEvent.invoice_id == InvoiceModel.id,
            TransactionEvent.period >= start_date,
            TransactionEvent.period <= end_date,
            basis_filter,
        )
        criteria = [
            InvoiceModel.company_id == company_id,
            InvoiceModel.status.in_(tuple(statuses)),
            has_entry,
        ]
        if client_id is not None:
            criteria.append(InvoiceModel.client_id == client_id)

        last: tuple[Decimal, UUID] | None = None
        while True:
            stmt = select(InvoiceModel).where(*criteria)
            if last is not None:
                last_balance, last_id = last
                stmt = stmt.where(
                    or_(
                        InvoiceModel.balance < last_balance,
                        and_(InvoiceModel.balance == last_balance, InvoiceModel.id > last_id),
                    )
                )
            stmt = stmt.order_by(InvoiceModel.balance.desc(), InvoiceModel.id).limit(page_size)
            page = list(self.session.scalars(stmt))
            if not page:
                return
            last = (page[-1].balance, page[-1].id)
            for row in page:
                yield row.to_snapshot()
            if len(page) < page_size:
                return
