"""
Pure domain layer.

Value objects, status vocabularies, read-model snapshots and the clock.
NO dependencies on the ORM, the database or I/O (SystemClock aside).
"""

from taxledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from taxledger_kernel.domain.invoice import (
    ClientSnapshot,
    CompanyProfile,
    InvoiceCalculator,
    InvoiceSnapshot,
    PaymentAllocation,
    PaymentSnapshot,
    StoredTaxCalculator,
    TaxCalculation,
    TaxLine,
    UsTaxData,
)
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import (
    EventKind,
    InvoiceStatus,
    TaxReportStatus,
)
from taxledger_kernel.domain.values import (
    PaymentRecord,
    TaxDetail,
    TaxSummary,
    TransactionEventMetadata,
    payment_ratio,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ClientSnapshot",
    "CompanyProfile",
    "InvoiceCalculator",
    "InvoiceSnapshot",
    "PaymentAllocation",
    "PaymentSnapshot",
    "StoredTaxCalculator",
    "TaxCalculation",
    "TaxLine",
    "LedgerEntry",
    "UsTaxData",
    "EventKind",
    "InvoiceStatus",
    "TaxReportStatus",
    "PaymentRecord",
    "TaxDetail",
    "TaxSummary",
    "TransactionEventMetadata",
    "payment_ratio",
]
