"""
taxledger_services -- ledger writers and the backfill orchestrator.

Every service takes its ``Session`` (and optionally a ``Clock``) through the
constructor.  Writers append ledger entries through ``LedgerRecorder``; none
of them commits except ``BackfillOrchestrator``, which owns its transaction
boundary so the company lease is visible to other processes.
"""

from taxledger_services.backfill import BackfillOrchestrator, BackfillResult
from taxledger_services.backfill_lease import BackfillLeaseManager
from taxledger_services.cash_entry import CashBasisEntry
from taxledger_services.change_detection import ChangeDetectionGate, default_period
from taxledger_services.ledger_recorder import LedgerEntryDraft, LedgerRecorder
from taxledger_services.payment_adjustment import PaymentAdjustmentEntry

__all__ = [
    "BackfillLeaseManager",
    "BackfillOrchestrator",
    "BackfillResult",
    "CashBasisEntry",
    "ChangeDetectionGate",
    "LedgerEntryDraft",
    "LedgerRecorder",
    "PaymentAdjustmentEntry",
    "default_period",
]
