"""
Reporting window presets.

Every preset resolves to an inclusive ``[start_date, end_date]`` pair of
plain dates computed from the injected clock's ``today()``.  Ledger periods
are month ends, so a window catches every period whose month end falls
inside it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from taxledger_kernel.logging_config import get_logger

logger = get_logger("reporting.date_range")

# Presets that the UI offers but which resolve to the last closed month.
_LAST_MONTH_ALIASES = frozenset({"last7", "last30", "this_month", "last_month"})


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: date


def _quarter_start(day: date) -> date:
    return date(day.year, (day.month - 1) // 3 * 3 + 1, 1)


def _fiscal_year_start(today: date, first_month: int) -> date:
    start = date(today.year, first_month, 1)
    if today < start:
        start -= relativedelta(years=1)
    return start


def _year_from(start: date) -> DateRange:
    return DateRange(start, start + relativedelta(years=1, days=-1))


def _parse(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"not a date: {value!r}")
    return date_parser.parse(value).date()


def resolve_date_range(
    preset: str | None,
    today: date,
    fiscal_year_start_month: int = 1,
    start_date: Any = None,
    end_date: Any = None,
) -> DateRange:
    """
    Resolve a preset name to a window.

    Unknown presets (and ``all``) fall back to calendar year to date.  An
    unparseable ``custom`` bound also falls back to year to date.
    """
    year_to_date = DateRange(date(today.year, 1, 1), today)

    if preset in _LAST_MONTH_ALIASES:
        start = today + relativedelta(months=-1, day=1)
        return DateRange(start, start + relativedelta(day=31))

    if preset == "this_quarter":
        start = _quarter_start(today)
        return DateRange(start, start + relativedelta(months=3, days=-1))

    if preset == "last_quarter":
        start = _quarter_start(today - relativedelta(months=3))
        return DateRange(start, start + relativedelta(months=3, days=-1))

    if preset == "last365_days":
        return DateRange(today - timedelta(days=365), today)

    if preset == "this_year":
        return _year_from(_fiscal_year_start(today, fiscal_year_start_month))

    if preset == "last_year":
        start = _fiscal_year_start(today, fiscal_year_start_month) - relativedelta(years=1)
        return _year_from(start)

    if preset == "custom":
        try:
            return DateRange(_parse(start_date), _parse(end_date))
        except (ValueError, OverflowError) as exc:
            logger.debug(
                "custom_date_range_unparseable",
                extra={
                    "start_date": str(start_date),
                    "end_date": str(end_date),
                    "error": str(exc),
                },
            )
            return year_to_date

    return year_to_date
