"""
Two-sheet XLSX rendering of the report data (openpyxl).

Sheet 1 holds one row per ledger entry, sheet 2 one row per tax line.  Each
sheet starts with its header row; data cells in the date, money and rate
columns get number formats derived from the company's settings.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from taxledger_config.schema import ReportSettings
from taxledger_kernel.domain.invoice import CompanyProfile

_SUMMARY_MONEY_COLUMNS = ("C", "D", "E", "F")
_DETAIL_MONEY_COLUMNS = ("E", "F")
_DATE_COLUMN = "B"
_DETAIL_RATE_COLUMN = "D"


def number_format(company: CompanyProfile) -> str:
    """
    Excel number pattern for the company's currency.

    9990 is rendered with the company precision and separators, then every
    ``9`` becomes ``#``: ``9,990.00`` -> ``#,##0.00``.
    """
    formatted = f"{9990:,.{company.currency_precision}f}"
    formatted = (
        formatted.replace(",", "\0")
        .replace(".", company.decimal_separator)
        .replace("\0", company.thousand_separator)
    )
    return formatted.replace("9", "#")


def currency_format(company: CompanyProfile) -> str:
    return f"{company.currency_symbol}{number_format(company)}"


def _format_column(worksheet: Worksheet, column: str, fmt: str) -> None:
    for cell in worksheet[column][1:]:
        cell.number_format = fmt


def _fill(worksheet: Worksheet, rows: list[list[Any]]) -> None:
    for row in rows:
        worksheet.append(row)


class TaxReportWorkbook:
    """Builds the workbook from ``{"invoices": [...], "invoice_items": [...]}``."""

    def __init__(self, company: CompanyProfile, settings: ReportSettings | None = None):
        self._company = company
        self._settings = settings or ReportSettings()

    @property
    def date_format(self) -> str:
        return self._company.date_format or self._settings.default_date_format

    def build(self, data: dict[str, list[list[Any]]]) -> Workbook:
        money = currency_format(self._company)

        workbook = Workbook()
        summary = workbook.active
        summary.title = self._settings.summary_sheet_title
        _fill(summary, data["invoices"])
        _format_column(summary, _DATE_COLUMN, self.date_format)
        for column in _SUMMARY_MONEY_COLUMNS:
            _format_column(summary, column, money)

        detail = workbook.create_sheet(self._settings.detail_sheet_title)
        _fill(detail, data["invoice_items"])
        _format_column(detail, _DATE_COLUMN, self.date_format)
        _format_column(detail, _DETAIL_RATE_COLUMN, self._settings.tax_rate_format)
        for column in _DETAIL_MONEY_COLUMNS:
            _format_column(detail, column, money)

        return workbook


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
