"""
BackfillOrchestrator -- heals missing ledger entries before a report runs.

Responsibility:
    Makes sure every invoice relevant to a reporting period has the entries a
    report needs, for ledgers that missed live writes (imports, downtime,
    invoices that predate the ledger).

    Pass (a): invoices in the backfill status set dated on/before
    ``end_date`` with no entry for exactly ``period = end_date`` are run
    through the change-detection gate.  Paid and partially paid invoices also
    get one cash-basis entry per payment month, unless that month already
    has one.

    Pass (b): invoices that already have an entry on/before ``end_date`` but
    are now cancelled, reversed or deleted are run through the gate again,
    unless their latest entry for ``end_date`` is already cancelled or
    deleted.

Architecture position:
    Services.  Owns its transaction boundary: the lease is committed before
    any ledger write, results are committed at the end, and the lease is
    released (and committed) even on failure.

Invariants enforced:
    - One backfill per company at a time (BackfillLeaseManager).
    - Idempotent: every write carries a dedup key, and a second run over an
      unchanged read model writes nothing.
    - Isolation: each invoice runs in its own SAVEPOINT; a failing invoice
      is rolled back, logged and counted, and the pass continues.

Failure modes:
    - BackfillAlreadyRunningError when another holder owns a live lease.
    - Any error outside the per-invoice savepoints rolls back the session and
      propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from taxledger_config.schema import BackfillSettings, LedgerSettings
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.domain.invoice import InvoiceCalculator, InvoiceSnapshot, StoredTaxCalculator
from taxledger_kernel.domain.status import EventKind, TaxReportStatus
from taxledger_kernel.logging_config import LogContext, get_logger
from taxledger_kernel.selectors.invoice_selector import InvoiceSelector
from taxledger_kernel.selectors.ledger_selector import LedgerSelector
from taxledger_services.backfill_lease import BackfillLeaseManager
from taxledger_services.cash_entry import CashBasisEntry
from taxledger_services.change_detection import ChangeDetectionGate

logger = get_logger("services.backfill")

_SETTLED_STATUSES = (TaxReportStatus.CANCELLED, TaxReportStatus.DELETED)


@dataclass(frozen=True)
class BackfillResult:
    """Counters for one backfill run."""

    company_id: UUID
    end_date: date
    invoices_processed: int = 0
    entries_written: int = 0
    invoices_skipped: int = 0
    invoices_failed: int = 0


@dataclass
class _PassCounters:
    processed: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0


def payment_months(invoice: InvoiceSnapshot) -> list[tuple[date, date]]:
    """
    ``(month_start, month_end)`` for every month the invoice received a payment.

    Allocations are grouped by (invoice, YYYY-MM); the first of each group
    determines the window.
    """
    seen: set[tuple[UUID, str]] = set()
    months = []
    for allocation in invoice.allocations:
        created_on = allocation.created_on
        key = (allocation.invoice_id, created_on.strftime("%Y-%m"))
        if key in seen:
            continue
        seen.add(key)
        months.append(
            (created_on + relativedelta(day=1), created_on + relativedelta(day=31))
        )
    return months


class BackfillOrchestrator:
    """
    Runs both backfill passes for one company and period.

    Contract:
        ``run`` commits.  Pass it a session that holds no uncommitted work
        the caller still intends to roll back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: InvoiceCalculator | None = None,
        settings: BackfillSettings | None = None,
        ledger_settings: LedgerSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or BackfillSettings()
        calculator = calculator or StoredTaxCalculator()

        self._invoices = InvoiceSelector(session)
        self._ledger = LedgerSelector(session)
        self._gate = ChangeDetectionGate(session, self._clock, calculator, ledger_settings)
        self._cash = CashBasisEntry(session, self._clock, calculator)
        self._leases = BackfillLeaseManager(
            session, self._clock, ttl_seconds=self._settings.lease_ttl_seconds
        )

    def run(self, company_id: UUID, end_date: date) -> BackfillResult:
        holder = f"backfill-{uuid4()}"
        self._leases.acquire(company_id, holder)
        self._session.commit()

        try:
            with LogContext.bind(company_id=company_id):
                missing = self._run_missing_period_pass(company_id, end_date)
                terminal = self._run_terminal_pass(company_id, end_date)
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.error(
                "backfill_failed",
                extra={"company_id": str(company_id), "end_date": end_date.isoformat()},
                exc_info=True,
            )
            raise
        finally:
            self._leases.release(company_id, holder)
            self._session.commit()

        result = BackfillResult(
            company_id=company_id,
            end_date=end_date,
            invoices_processed=missing.processed + terminal.processed,
            entries_written=missing.written + terminal.written,
            invoices_skipped=missing.skipped + terminal.skipped,
            invoices_failed=missing.failed + terminal.failed,
        )
        logger.info(
            "backfill_completed",
            extra={
                "company_id": str(company_id),
                "end_date": end_date.isoformat(),
                "invoices_processed": result.invoices_processed,
                "entries_written": result.entries_written,
                "invoices_failed": result.invoices_failed,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _run_missing_period_pass(self, company_id: UUID, end_date: date) -> _PassCounters:
        counters = _PassCounters()
        invoices = self._invoices.iter_missing_period(
            company_id, self._settings.statuses, end_date, self._settings.page_size
        )
        for invoice in invoices:
            self._in_savepoint(counters, invoice, self._backfill_missing, end_date)
        self._log_pass("missing_period", company_id, end_date, counters)
        return counters

    def _run_terminal_pass(self, company_id: UUID, end_date: date) -> _PassCounters:
        counters = _PassCounters()
        invoices = self._invoices.iter_terminal_since(
            company_id, end_date, self._settings.page_size
        )
        for invoice in invoices:
            self._in_savepoint(counters, invoice, self._backfill_terminal, end_date)
        self._log_pass("terminal_state", company_id, end_date, counters)
        return counters

    def _in_savepoint(self, counters, invoice, step, end_date: date) -> None:
        counters.processed += 1
        savepoint = self._session.begin_nested()
        try:
            with LogContext.bind(invoice_id=invoice.id):
                written = step(invoice, end_date)
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            counters.failed += 1
            logger.warning(
                "backfill_invoice_failed",
                extra={"invoice_id": str(invoice.id), "end_date": end_date.isoformat()},
                exc_info=True,
            )
            return

        if written:
            counters.written += written
        else:
            counters.skipped += 1

    def _log_pass(self, name: str, company_id: UUID, end_date: date, counters: _PassCounters) -> None:
        logger.info(
            "backfill_pass_completed",
            extra={
                "pass_name": name,
                "company_id": str(company_id),
                "end_date": end_date.isoformat(),
                "invoices_processed": counters.processed,
                "entries_written": counters.written,
                "invoices_skipped": counters.skipped,
                "invoices_failed": counters.failed,
            },
        )

    # ------------------------------------------------------------------
    # Per-invoice steps (return the number of entries written)
    # ------------------------------------------------------------------

    def _backfill_missing(self, invoice: InvoiceSnapshot, end_date: date) -> int:
        written = 0
        if self._gate.run(invoice, period=end_date, dedup=True) is not None:
            written += 1

        if invoice.is_paid_or_partial:
            for month_start, month_end in payment_months(invoice):
                if self._ledger.has_entry_for_period(
                    invoice.id, month_end, EventKind.PAYMENT_CASH
                ):
                    continue
                if self._cash.run(invoice, month_start, month_end, dedup=True) is not None:
                    written += 1
        return written

    def _backfill_terminal(self, invoice: InvoiceSnapshot, end_date: date) -> int:
        latest = self._ledger.latest_entry_for_period(invoice.id, end_date)
        if latest is not None and latest.report_status in _SETTLED_STATUSES:
            return 0
        return 1 if self._gate.run(invoice, period=end_date, dedup=True) is not None else 0
