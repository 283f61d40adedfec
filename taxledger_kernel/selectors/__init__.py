"""Read-only selectors over the ledger and the invoicing read model."""

from taxledger_kernel.selectors.invoice_selector import InvoiceSelector
from taxledger_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["InvoiceSelector", "LedgerSelector"]
