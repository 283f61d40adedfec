"""
Tax Period Report -- assembles the cash or accrual tax report for a company.

Responsibility:
    Resolves the reporting window, optionally heals the ledger with a
    backfill, selects the invoices whose ledger entries fall in the window,
    turns every matching entry into summary and detail rows, and renders the
    two-sheet workbook.

Architecture position:
    Reporting.  Reads through ``InvoiceSelector`` / ``LedgerSelector``;
    writes only through ``BackfillOrchestrator`` (which owns its own commits).

Stages (each callable on its own, ``run`` executes them in order):
    boot -> set_accounting_type -> set_currency_format -> calculate_date_range
    -> initialize_data -> build_data -> write_to_spreadsheet -> get_xls_file

Invariants enforced:
    - Cash basis iff the request is not ``is_income_billed``.
    - Entries for one invoice are emitted most recent first.
    - Amounts stay Decimal until openpyxl writes them.

Failure modes:
    - A failure while building one invoice's rows is logged and that invoice
      is skipped; the report continues.
    - A live backfill lease held by another process skips the backfill.
    - Anything else is raised as one TaxReportGenerationError chained to the
      cause, naming the stage that failed.

Audit relevance:
    Start and completion are logged with the window, basis and row counts
    under a per-report ``report_id`` log context.

Usage:
    report = TaxPeriodReport(session, company, TaxReportRequest(date_range="last_quarter"))
    xlsx = report.run()
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from openpyxl import Workbook
from sqlalchemy.orm import Session

from taxledger_config.schema import TaxPeriodSettings
from taxledger_engines.regional import RegionalTaxCalculatorFactory
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.domain.invoice import CompanyProfile, InvoiceCalculator
from taxledger_kernel.exceptions import BackfillAlreadyRunningError, TaxReportGenerationError
from taxledger_kernel.logging_config import LogContext, get_logger
from taxledger_kernel.selectors.invoice_selector import InvoiceSelector
from taxledger_kernel.selectors.ledger_selector import LedgerSelector
from taxledger_reporting.date_range import resolve_date_range
from taxledger_reporting.rows import ReportRowBuilder
from taxledger_reporting.workbook import TaxReportWorkbook, currency_format, workbook_bytes
from taxledger_services.backfill import BackfillOrchestrator

logger = get_logger("reporting.service")

DEFAULT_DATE_RANGE = "last_month"


@dataclass(frozen=True)
class TaxReportRequest:
    """Report request parameters."""

    date_range: str = DEFAULT_DATE_RANGE
    start_date: Any = None
    end_date: Any = None
    client_id: UUID | None = None
    is_income_billed: bool = True
    backfill: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaxReportRequest:
        client_id = data.get("client_id")
        return cls(
            date_range=data.get("date_range") or DEFAULT_DATE_RANGE,
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            client_id=UUID(str(client_id)) if client_id else None,
            is_income_billed=bool(data.get("is_income_billed", True)),
            backfill=bool(data.get("backfill", True)),
        )


class TaxPeriodReport:
    """
    One report request.

    Contract:
        Construct per request; stages mutate instance state and are meant to
        run once, in order.
    """

    def __init__(
        self,
        session: Session,
        company: CompanyProfile,
        request: TaxReportRequest,
        clock: Clock | None = None,
        settings: TaxPeriodSettings | None = None,
        calculator: InvoiceCalculator | None = None,
        calculator_factory: RegionalTaxCalculatorFactory | None = None,
    ):
        self._session = session
        self._company = company
        self._request = request
        self._clock = clock or SystemClock()
        self._settings = settings or TaxPeriodSettings()
        self._calculator = calculator
        self._regional = (calculator_factory or RegionalTaxCalculatorFactory()).create(company)
        self._rows = ReportRowBuilder(
            self._regional, self._settings.ledger.tax_verification_tolerance
        )

        self._stage = "init"
        self.cash_accounting = False
        self.currency_format = ""
        self.start_date: date | None = None
        self.end_date: date | None = None
        self.data: dict[str, list[list[Any]]] = {"invoices": [], "invoice_items": []}
        self.workbook: Workbook | None = None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run(self) -> bytes:
        """Execute every stage and return the XLSX bytes."""
        report_id = uuid4()
        with LogContext.bind(company_id=self._company.id, report_id=report_id):
            logger.info(
                "tax_period_report_started",
                extra={
                    "date_range": self._request.date_range,
                    "is_income_billed": self._request.is_income_billed,
                },
            )
            try:
                content = self.boot().write_to_spreadsheet().get_xls_file()
            except TaxReportGenerationError:
                raise
            except Exception as exc:
                logger.error(
                    "tax_period_report_failed",
                    extra={"stage": self._stage},
                    exc_info=True,
                )
                raise TaxReportGenerationError(
                    str(self._company.id), self._stage, str(exc)
                ) from exc

            logger.info(
                "tax_period_report_completed",
                extra={
                    "cash_accounting": self.cash_accounting,
                    "start_date": self.start_date,
                    "end_date": self.end_date,
                    "invoice_rows": len(self.data["invoices"]) - 1,
                    "detail_rows": len(self.data["invoice_items"]) - 1,
                },
            )
            return content

    def boot(self) -> TaxPeriodReport:
        return (
            self.set_accounting_type()
            .set_currency_format()
            .calculate_date_range()
            .initialize_data()
            .build_data()
        )

    def set_accounting_type(self) -> TaxPeriodReport:
        self._stage = "set_accounting_type"
        self.cash_accounting = not self._request.is_income_billed
        return self

    def set_currency_format(self) -> TaxPeriodReport:
        self._stage = "set_currency_format"
        self.currency_format = currency_format(self._company)
        return self

    def calculate_date_range(self) -> TaxPeriodReport:
        self._stage = "calculate_date_range"
        window = resolve_date_range(
            self._request.date_range,
            self._clock.today(),
            self._company.fiscal_year_start_month,
            self._request.start_date,
            self._request.end_date,
        )
        self.start_date = window.start_date
        self.end_date = window.end_date
        return self

    def initialize_data(self) -> TaxPeriodReport:
        """Backfill the ledger up to the window's end date."""
        self._stage = "initialize_data"
        if not (self._request.backfill and self._settings.backfill.enabled):
            return self

        orchestrator = BackfillOrchestrator(
            self._session,
            self._clock,
            self._calculator,
            self._settings.backfill,
            self._settings.ledger,
        )
        try:
            orchestrator.run(self._company.id, self.end_date)
        except BackfillAlreadyRunningError as exc:
            logger.warning(
                "backfill_skipped_lease_held",
                extra={"holder": exc.holder, "expires_at": exc.expires_at},
            )
        return self

    def build_data(self) -> TaxPeriodReport:
        self._stage = "build_data"
        report_settings = self._settings.report
        statuses = (
            report_settings.cash_statuses if self.cash_accounting
            else report_settings.accrual_statuses
        )

        invoices_rows = [self._rows.summary_headers()]
        detail_rows = [self._rows.detail_headers()]

        invoices = InvoiceSelector(self._session).iter_for_report(
            self._company.id,
            statuses,
            self.start_date,
            self.end_date,
            self.cash_accounting,
            report_settings.page_size,
            client_id=self._request.client_id,
        )
        ledger = LedgerSelector(self._session)

        for invoice in invoices:
            try:
                entries = ledger.entries_for_report(
                    invoice.id, self.start_date, self.end_date, self.cash_accounting
                )
                summaries = []
                details = []
                for entry in entries:
                    summaries.append(self._rows.summary_row(invoice, entry))
                    details.extend(self._rows.detail_rows(invoice, entry))
            except Exception:
                logger.warning(
                    "tax_report_invoice_skipped",
                    extra={"invoice_id": str(invoice.id)},
                    exc_info=True,
                )
                continue
            invoices_rows.extend(summaries)
            detail_rows.extend(details)

        self.data = {"invoices": invoices_rows, "invoice_items": detail_rows}
        return self

    def write_to_spreadsheet(self) -> TaxPeriodReport:
        self._stage = "write_to_spreadsheet"
        self.workbook = TaxReportWorkbook(self._company, self._settings.report).build(self.data)
        return self

    def get_xls_file(self) -> bytes:
        self._stage = "get_xls_file"
        if self.workbook is None:
            self.write_to_spreadsheet()
        return workbook_bytes(self.workbook)

    def get_data(self) -> dict[str, list[list[Any]]]:
        """Row data including header rows; runs ``boot`` if it has not run."""
        if self.start_date is None:
            self.boot()
        return self.data
