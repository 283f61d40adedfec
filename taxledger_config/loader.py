"""
Settings loader (``taxledger_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``taxledger_config.schema``.  Runtime callers go through
``taxledger_config.get_settings()``; this module is the parsing layer.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from taxledger_config.schema import (
    BackfillSettings,
    LedgerSettings,
    ReportSettings,
    TaxPeriodSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _reject_unknown(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {sorted(unknown)}")


def parse_report(data: dict[str, Any]) -> ReportSettings:
    """Parse the ``report`` section."""
    defaults = ReportSettings()
    _reject_unknown("report", data, set(defaults.__dataclass_fields__))
    return ReportSettings(
        accrual_statuses=tuple(data.get("accrual_statuses", defaults.accrual_statuses)),
        cash_statuses=tuple(data.get("cash_statuses", defaults.cash_statuses)),
        summary_sheet_title=str(data.get("summary_sheet_title", defaults.summary_sheet_title)),
        detail_sheet_title=str(data.get("detail_sheet_title", defaults.detail_sheet_title)),
        default_date_format=str(data.get("default_date_format", defaults.default_date_format)),
        tax_rate_format=str(data.get("tax_rate_format", defaults.tax_rate_format)),
        page_size=int(data.get("page_size", defaults.page_size)),
    )


def parse_backfill(data: dict[str, Any]) -> BackfillSettings:
    """Parse the ``backfill`` section."""
    defaults = BackfillSettings()
    _reject_unknown("backfill", data, set(defaults.__dataclass_fields__))
    return BackfillSettings(
        statuses=tuple(data.get("statuses", defaults.statuses)),
        page_size=int(data.get("page_size", defaults.page_size)),
        lease_ttl_seconds=int(data.get("lease_ttl_seconds", defaults.lease_ttl_seconds)),
        enabled=bool(data.get("enabled", defaults.enabled)),
    )


def parse_ledger(data: dict[str, Any]) -> LedgerSettings:
    """Parse the ``ledger`` section."""
    defaults = LedgerSettings()
    _reject_unknown("ledger", data, set(defaults.__dataclass_fields__))
    raw_tolerance = data.get("tax_verification_tolerance", defaults.tax_verification_tolerance)
    try:
        tolerance = Decimal(str(raw_tolerance))
    except InvalidOperation:
        raise ValueError(
            f"ledger.tax_verification_tolerance is not a number: {raw_tolerance!r}"
        ) from None
    return LedgerSettings(
        period_skew_hours=int(data.get("period_skew_hours", defaults.period_skew_hours)),
        tax_verification_tolerance=tolerance,
    )


def parse_settings(data: dict[str, Any]) -> TaxPeriodSettings:
    """Parse a full settings document."""
    _reject_unknown("<root>", data, {"report", "backfill", "ledger"})
    return TaxPeriodSettings(
        report=parse_report(data.get("report") or {}),
        backfill=parse_backfill(data.get("backfill") or {}),
        ledger=parse_ledger(data.get("ledger") or {}),
    )


def load_settings(path: Path) -> TaxPeriodSettings:
    """Load and parse a YAML settings file."""
    return parse_settings(load_yaml_file(path))
