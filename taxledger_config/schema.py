"""
Tax period settings schema.

YAML is parsed by the loader into these frozen dataclasses; every consumer
receives typed settings, never raw dicts.  Validation happens in
``__post_init__`` so an invalid file fails at load time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

_INVOICE_STATUSES = frozenset({"draft", "sent", "partial", "paid", "cancelled", "reversed"})


def _check_statuses(name: str, statuses: tuple[str, ...]) -> None:
    unknown = set(statuses) - _INVOICE_STATUSES
    if unknown:
        raise ValueError(f"{name} contains unknown invoice statuses: {sorted(unknown)}")
    if not statuses:
        raise ValueError(f"{name} must not be empty")


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReportSettings:
    """Query planning and workbook presentation."""

    accrual_statuses: tuple[str, ...] = ("sent", "partial", "paid", "cancelled")
    cash_statuses: tuple[str, ...] = ("sent", "partial", "paid", "cancelled", "reversed")
    summary_sheet_title: str = "Invoice Summary"
    detail_sheet_title: str = "Tax Item Detail"
    default_date_format: str = "yyyy-mm-dd"
    tax_rate_format: str = '0.00"%"'
    page_size: int = 200

    def __post_init__(self) -> None:
        _check_statuses("report.accrual_statuses", self.accrual_statuses)
        _check_statuses("report.cash_statuses", self.cash_statuses)
        if self.page_size < 1:
            raise ValueError(f"report.page_size must be >= 1, got {self.page_size}")


# ---------------------------------------------------------------------------
# Backfill
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackfillSettings:
    """Backfill scan and lease behaviour."""

    statuses: tuple[str, ...] = ("sent", "partial", "paid", "cancelled")
    page_size: int = 500
    lease_ttl_seconds: int = 3600
    enabled: bool = True

    def __post_init__(self) -> None:
        _check_statuses("backfill.statuses", self.statuses)
        if self.page_size < 1:
            raise ValueError(f"backfill.page_size must be >= 1, got {self.page_size}")
        if self.lease_ttl_seconds < 1:
            raise ValueError(
                f"backfill.lease_ttl_seconds must be >= 1, got {self.lease_ttl_seconds}"
            )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Change-detection defaults."""

    # Jobs that start shortly before a month end and finish after midnight
    # must still stamp the month being closed.
    period_skew_hours: int = 5
    tax_verification_tolerance: Decimal = Decimal("0.02")

    def __post_init__(self) -> None:
        if not 0 <= self.period_skew_hours <= 72:
            raise ValueError(
                f"ledger.period_skew_hours must be within 0..72, got {self.period_skew_hours}"
            )
        if self.tax_verification_tolerance < 0:
            raise ValueError("ledger.tax_verification_tolerance must be >= 0")


@dataclass(frozen=True)
class TaxPeriodSettings:
    """Root settings object returned by ``taxledger_config.get_settings()``."""

    report: ReportSettings = field(default_factory=ReportSettings)
    backfill: BackfillSettings = field(default_factory=BackfillSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
