"""
taxledger_config -- single public entrypoint for tax period settings.

Responsibility:
    ``get_settings()`` is the only way services obtain configuration.  The
    packaged ``defaults.yaml`` is used unless a path is given explicitly or
    the ``TAXLEDGER_SETTINGS`` environment variable names another file.

Failure modes:
    - ``FileNotFoundError`` -- the named settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import os
from pathlib import Path

from taxledger_config.loader import load_settings
from taxledger_config.schema import (
    BackfillSettings,
    LedgerSettings,
    ReportSettings,
    TaxPeriodSettings,
)
from taxledger_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"
SETTINGS_ENV_VAR = "TAXLEDGER_SETTINGS"


def get_settings(path: Path | str | None = None) -> TaxPeriodSettings:
    """The public settings entrypoint."""
    if path is None:
        path = os.environ.get(SETTINGS_ENV_VAR) or DEFAULT_SETTINGS_PATH
    settings = load_settings(Path(path))
    logger.info(
        "taxledger_settings_loaded",
        extra={
            "path": str(path),
            "backfill_enabled": settings.backfill.enabled,
            "period_skew_hours": settings.ledger.period_skew_hours,
        },
    )
    return settings


__all__ = [
    "BackfillSettings",
    "LedgerSettings",
    "ReportSettings",
    "TaxPeriodSettings",
    "get_settings",
    "DEFAULT_SETTINGS_PATH",
]
