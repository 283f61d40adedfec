"""
Typed Exception Hierarchy for the tax ledger.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from TaxLedgerError:

    TaxLedgerError (base)
    |
    +-- LedgerError
    |   +-- MissingPriorEntryError
    |   +-- LedgerOrderingError
    |   +-- InvalidLedgerMetadataError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- BackfillError
    |   +-- BackfillAlreadyRunningError
    |
    +-- ReportError
        +-- TaxReportGenerationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Ledger          | MISSING_PRIOR_ENTRY         | Delta snapshot with no earlier entry
                | LEDGER_ORDERING             | Entry older than the invoice's latest
                | INVALID_LEDGER_METADATA     | Stored tax_report block can't be parsed
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a ledger entry
----------------|-----------------------------|-----------------------------------------
Backfill        | BACKFILL_ALREADY_RUNNING    | Live lease held for the company
----------------|-----------------------------|-----------------------------------------
Report          | TAX_REPORT_FAILED           | Report request could not be assembled

Every exception carries a ``code`` class attribute and stores its context
as attributes, so it survives structured logging and API serialization.
"""


class TaxLedgerError(Exception):
    """
    Base exception for all tax ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TAX_LEDGER_ERROR"


# Ledger-related exceptions


class LedgerError(TaxLedgerError):
    """Base exception for ledger write/read errors."""

    code: str = "LEDGER_ERROR"


class MissingPriorEntryError(LedgerError):
    """
    A delta snapshot was requested for an invoice with no earlier entry.

    Deltas are defined against the previous snapshot, so this is a
    programming error in the caller, never a recoverable condition.
    """

    code: str = "MISSING_PRIOR_ENTRY"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(
            f"Delta snapshot requires a prior ledger entry for invoice {invoice_id}"
        )


class LedgerOrderingError(LedgerError):
    """A ledger entry would be older than the invoice's most recent entry."""

    code: str = "LEDGER_ORDERING"

    def __init__(self, invoice_id: str, latest_timestamp: str, attempted_timestamp: str):
        self.invoice_id = invoice_id
        self.latest_timestamp = latest_timestamp
        self.attempted_timestamp = attempted_timestamp
        super().__init__(
            f"Ledger entry for invoice {invoice_id} at {attempted_timestamp} "
            f"predates latest entry at {latest_timestamp}"
        )


class InvalidLedgerMetadataError(LedgerError):
    """Persisted tax_report metadata is missing a field or has a bad value."""

    code: str = "INVALID_LEDGER_METADATA"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid ledger metadata field '{field}': {reason}")


# Immutability-related exceptions


class ImmutabilityError(TaxLedgerError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Transaction events are append-only: corrections are new entries.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Backfill-related exceptions


class BackfillError(TaxLedgerError):
    """Base exception for backfill errors."""

    code: str = "BACKFILL_ERROR"


class BackfillAlreadyRunningError(BackfillError):
    """Another holder owns a live backfill lease for the company."""

    code: str = "BACKFILL_ALREADY_RUNNING"

    def __init__(self, company_id: str, holder: str, expires_at: str):
        self.company_id = company_id
        self.holder = holder
        self.expires_at = expires_at
        super().__init__(
            f"Backfill for company {company_id} already running "
            f"(holder={holder}, expires_at={expires_at})"
        )


# Report-related exceptions


class ReportError(TaxLedgerError):
    """Base exception for report errors."""

    code: str = "REPORT_ERROR"


class TaxReportGenerationError(ReportError):
    """The tax period report request failed as a whole."""

    code: str = "TAX_REPORT_FAILED"

    def __init__(self, company_id: str, stage: str, reason: str):
        self.company_id = company_id
        self.stage = stage
        self.reason = reason
        super().__init__(
            f"Tax period report for company {company_id} failed at {stage}: {reason}"
        )
