"""Tax period report: date windows, row assembly and workbook rendering."""

from taxledger_reporting.date_range import DateRange, resolve_date_range
from taxledger_reporting.service import TaxPeriodReport, TaxReportRequest

__all__ = ["DateRange", "TaxPeriodReport", "TaxReportRequest", "resolve_date_range"]
