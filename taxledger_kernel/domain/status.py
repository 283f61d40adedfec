"""
Status vocabularies for invoices and ledger entries.

TaxReportStatus is the shape tag of a ledger snapshot's tax metadata.  It
selects both the metadata builder on the write side and the row builder on
the report side, so the two sides can never disagree about what a status
means.
"""

from enum import Enum, IntEnum


class TaxReportStatus(str, Enum):
    """Tax metadata shape of a ledger entry."""

    UPDATED = "updated"
    DELTA = "delta"
    ADJUSTMENT = "adjustment"
    CANCELLED = "cancelled"
    DELETED = "deleted"
    RESTORED = "restored"
    REVERSED = "reversed"

    def is_payable(self) -> bool:
        """True only for statuses that represent tax currently owed."""
        return self in (TaxReportStatus.UPDATED, TaxReportStatus.DELTA)

    def label(self) -> str:
        """Display label used in the report Status column."""
        return "payable" if self.is_payable() else self.value


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status as exposed by the invoicing read model."""

    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


class EventKind(IntEnum):
    """Why a ledger entry was written."""

    INVOICE_UPDATED = 1
    PAYMENT_REFUNDED = 2
    PAYMENT_DELETED = 3
    PAYMENT_CASH = 4
