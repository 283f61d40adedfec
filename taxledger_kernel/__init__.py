"""
Tax Ledger Kernel

The append-only per-invoice tax ledger underneath the period tax reports:
- Immutable transaction event snapshots
- Tax summary / tax detail value objects
- Read models for invoices, clients and companies
- Structured logging and typed errors
"""

__version__ = "0.1.0"
