"""
Report row builders.

One ``RowFigures`` function per TaxReportStatus picks which ledger fields
land in the Invoice Total / Paid / Tax Amount / Taxable Amount columns:

    status              total              paid                 tax             taxable
    ------------------  -----------------  -------------------  --------------  --------------
    updated, restored   invoice_amount     invoice_paid_to_date total_taxes     taxable_amount
    delta, reversed     invoice_amount     payment history sum  tax_adjustment  adjustment
    adjustment          invoice_amount     invoice_paid_to_date tax_adjustment  taxable_amount
    cancelled           invoice_paid_to_date payment history sum total_taxes    taxable_amount
    deleted             -invoice_amount    -payment history sum total_taxes     taxable_amount

Deleted, reversed and cancelled metadata is already signed and scaled by the
metadata builders, so the tax columns are taken as stored.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from taxledger_engines.regional import RegionalTaxCalculator
from taxledger_kernel.domain.invoice import InvoiceSnapshot
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import TaxReportStatus
from taxledger_kernel.logging_config import get_logger

logger = get_logger("reporting.rows")

SUMMARY_HEADERS = [
    "Invoice Number",
    "Invoice Date",
    "Invoice Total",
    "Paid",
    "Tax Amount",
    "Taxable Amount",
    "Status",
]

DETAIL_HEADERS = [
    "Invoice Number",
    "Invoice Date",
    "Tax Name",
    "Tax Rate",
    "Tax Amount",
    "Taxable Amount",
    "Status",
    "Postal Code",
]


@dataclass(frozen=True)
class RowFigures:
    total: Decimal
    paid: Decimal
    tax: Decimal
    taxable: Decimal


def _payable(entry: LedgerEntry) -> RowFigures:
    summary = entry.metadata.tax_summary
    return RowFigures(
        entry.invoice_amount, entry.invoice_paid_to_date,
        summary.total_taxes, summary.taxable_amount,
    )


def _movement(entry: LedgerEntry) -> RowFigures:
    summary = entry.metadata.tax_summary
    return RowFigures(
        entry.invoice_amount, entry.metadata.total_paid,
        summary.tax_adjustment, summary.adjustment,
    )


def _adjustment(entry: LedgerEntry) -> RowFigures:
    summary = entry.metadata.tax_summary
    return RowFigures(
        entry.invoice_amount, entry.invoice_paid_to_date,
        summary.tax_adjustment, summary.taxable_amount,
    )


def _cancelled(entry: LedgerEntry) -> RowFigures:
    summary = entry.metadata.tax_summary
    return RowFigures(
        entry.invoice_paid_to_date, entry.metadata.total_paid,
        summary.total_taxes, summary.taxable_amount,
    )


def _deleted(entry: LedgerEntry) -> RowFigures:
    summary = entry.metadata.tax_summary
    return RowFigures(
        -entry.invoice_amount, -entry.metadata.total_paid,
        summary.total_taxes, summary.taxable_amount,
    )


ROW_FIGURES: dict[TaxReportStatus, Callable[[LedgerEntry], RowFigures]] = {
    TaxReportStatus.UPDATED: _payable,
    TaxReportStatus.RESTORED: _payable,
    TaxReportStatus.DELTA: _movement,
    TaxReportStatus.REVERSED: _movement,
    TaxReportStatus.ADJUSTMENT: _adjustment,
    TaxReportStatus.CANCELLED: _cancelled,
    TaxReportStatus.DELETED: _deleted,
}


class ReportRowBuilder:
    """Turns ledger entries into summary and detail rows."""

    def __init__(self, regional: RegionalTaxCalculator, tolerance: Decimal = Decimal("0.02")):
        self._regional = regional
        self._tolerance = tolerance

    def summary_headers(self) -> list[str]:
        return SUMMARY_HEADERS + self._regional.get_headers()

    def detail_headers(self) -> list[str]:
        return DETAIL_HEADERS + self._regional.get_headers()

    def summary_row(self, invoice: InvoiceSnapshot, entry: LedgerEntry) -> list[Any]:
        status = entry.report_status
        figures = ROW_FIGURES[status](entry)
        return [
            invoice.number,
            invoice.date,
            figures.total,
            figures.paid,
            figures.tax,
            figures.taxable,
            status.label(),
        ] + self._regional.calculate_columns(invoice, figures.tax)

    def detail_rows(self, invoice: InvoiceSnapshot, entry: LedgerEntry) -> list[list[Any]]:
        status = entry.report_status
        rows = []
        for detail in entry.metadata.tax_details:
            if not detail.verify_tax_calculation(self._tolerance):
                logger.warning(
                    "tax_detail_verification_failed",
                    extra={
                        "invoice_id": str(invoice.id),
                        "tax_name": detail.tax_name,
                        "tax_rate": str(detail.tax_rate),
                        "taxable_amount": str(detail.taxable_amount),
                        "tax_amount": str(detail.tax_amount),
                    },
                )
            rows.append(
                [
                    invoice.number,
                    invoice.date,
                    detail.tax_name,
                    detail.tax_rate,
                    detail.tax_amount,
                    detail.taxable_amount,
                    status.label(),
                    detail.postal_code,
                ]
                + self._regional.calculate_columns(invoice, detail.tax_amount)
            )
        return rows
