"""ORM models for the tax ledger."""

from taxledger_kernel.models.backfill_lease import BackfillLease
from taxledger_kernel.models.invoice import (
    ClientModel,
    CompanyModel,
    InvoiceModel,
    InvoiceTaxLineModel,
    PaymentAllocationModel,
)
from taxledger_kernel.models.transaction_event import TransactionEvent

__all__ = [
    "BackfillLease",
    "ClientModel",
    "CompanyModel",
    "InvoiceModel",
    "InvoiceTaxLineModel",
    "PaymentAllocationModel",
    "TransactionEvent",
]
