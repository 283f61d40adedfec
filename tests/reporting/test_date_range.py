"""
Tests for reporting window presets.
"""

from datetime import date

import pytest

from taxledger_reporting.date_range import DateRange, resolve_date_range

TODAY = date(2025, 10, 15)


class TestPresets:
    @pytest.mark.parametrize("preset", ["last7", "last30", "this_month", "last_month"])
    def test_last_month_aliases(self, preset):
        assert resolve_date_range(preset, TODAY) == DateRange(date(2025, 9, 1), date(2025, 9, 30))

    def test_last_month_across_year_end(self):
        window = resolve_date_range("last_month", date(2025, 1, 10))
        assert window == DateRange(date(2024, 12, 1), date(2024, 12, 31))

    def test_this_quarter(self):
        assert resolve_date_range("this_quarter", TODAY) == DateRange(
            date(2025, 10, 1), date(2025, 12, 31)
        )

    def test_last_quarter(self):
        assert resolve_date_range("last_quarter", TODAY) == DateRange(
            date(2025, 7, 1), date(2025, 9, 30)
        )

    def test_last_quarter_in_first_quarter(self):
        assert resolve_date_range("last_quarter", date(2025, 2, 3)) == DateRange(
            date(2024, 10, 1), date(2024, 12, 31)
        )

    def test_last365_days(self):
        assert resolve_date_range("last365_days", TODAY) == DateRange(date(2024, 10, 15), TODAY)


class TestFiscalYear:
    def test_this_year_calendar(self):
        assert resolve_date_range("this_year", TODAY) == DateRange(
            date(2025, 1, 1), date(2025, 12, 31)
        )

    def test_this_year_after_fiscal_start(self):
        assert resolve_date_range("this_year", TODAY, fiscal_year_start_month=4) == DateRange(
            date(2025, 4, 1), date(2026, 3, 31)
        )

    def test_this_year_before_fiscal_start(self):
        window = resolve_date_range("this_year", date(2025, 2, 10), fiscal_year_start_month=4)
        assert window == DateRange(date(2024, 4, 1), date(2025, 3, 31))

    def test_last_year(self):
        assert resolve_date_range("last_year", TODAY) == DateRange(
            date(2024, 1, 1), date(2024, 12, 31)
        )

    def test_last_year_with_fiscal_start(self):
        window = resolve_date_range("last_year", TODAY, fiscal_year_start_month=7)
        assert window == DateRange(date(2024, 7, 1), date(2025, 6, 30))


class TestCustomAndFallback:
    def test_custom_strings(self):
        window = resolve_date_range("custom", TODAY, start_date="2025-01-05", end_date="2025-02-10")
        assert window == DateRange(date(2025, 1, 5), date(2025, 2, 10))

    def test_custom_dates(self):
        window = resolve_date_range(
            "custom", TODAY, start_date=date(2025, 3, 1), end_date=date(2025, 3, 31)
        )
        assert window == DateRange(date(2025, 3, 1), date(2025, 3, 31))

    def test_custom_unparseable_falls_back(self, captured_logs):
        window = resolve_date_range("custom", TODAY, start_date="not-a-date", end_date=None)

        assert window == DateRange(date(2025, 1, 1), TODAY)
        assert any(r["message"] == "custom_date_range_unparseable" for r in captured_logs())

    @pytest.mark.parametrize("preset", [None, "all", "fortnight"])
    def test_unknown_is_year_to_date(self, preset):
        assert resolve_date_range(preset, TODAY) == DateRange(date(2025, 1, 1), TODAY)
