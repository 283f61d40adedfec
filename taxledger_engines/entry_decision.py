"""
Change-detection decision.

Given the current invoice and the most recent prior INVOICE_UPDATED entry,
decide whether a new snapshot must be written and which TaxReportStatus
shapes its metadata.

Decision order (first match wins):

    prior?  prior status   current invoice            action
    ------  -------------  -------------------------  --------------------------
    no      -              any                        write, status per state
    yes     DELETED        still deleted              skip
    yes     CANCELLED      still cancelled            skip
    yes     REVERSED       still reversed             skip
    yes     DELETED        no longer deleted          write RESTORED
    yes     other          cancelled/reversed/deleted write (terminal transition)
    yes     other          amount unchanged           skip
    yes     other          amount changed             write DELTA

Whatever the table selects, a cancelled, deleted or reversed invoice (checked
in that order) is always written with the matching specialized shape.
"""

from dataclasses import dataclass

from taxledger_kernel.domain.invoice import InvoiceSnapshot
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import TaxReportStatus


@dataclass(frozen=True)
class EntryDecision:
    """Outcome of the change-detection table."""

    write: bool
    status: TaxReportStatus | None = None
    reason: str = ""

    @classmethod
    def skip(cls, reason: str) -> "EntryDecision":
        return cls(write=False, reason=reason)


def state_override(invoice: InvoiceSnapshot) -> TaxReportStatus | None:
    """Specialized metadata shape forced by the invoice's current state."""
    if invoice.is_cancelled:
        return TaxReportStatus.CANCELLED
    if invoice.is_deleted:
        return TaxReportStatus.DELETED
    if invoice.is_reversed:
        return TaxReportStatus.REVERSED
    return None


def decide_entry(invoice: InvoiceSnapshot, prior: LedgerEntry | None) -> EntryDecision:
    """Apply the change-detection table."""
    override = state_override(invoice)

    if prior is None:
        return EntryDecision(
            write=True,
            status=override or TaxReportStatus.UPDATED,
            reason="first_snapshot",
        )

    prior_status = prior.report_status

    if invoice.is_deleted and prior_status == TaxReportStatus.DELETED:
        return EntryDecision.skip("still_deleted")
    if invoice.is_cancelled and prior_status == TaxReportStatus.CANCELLED:
        return EntryDecision.skip("still_cancelled")
    if invoice.is_reversed and prior_status == TaxReportStatus.REVERSED:
        return EntryDecision.skip("still_reversed")

    if prior_status == TaxReportStatus.DELETED:
        # Restores are always recorded, even with an unchanged amount.
        return EntryDecision(
            write=True,
            status=override or TaxReportStatus.RESTORED,
            reason="restored",
        )

    if override is not None:
        return EntryDecision(write=True, status=override, reason="terminal_transition")

    if invoice.amount == prior.invoice_amount:
        return EntryDecision.skip("amount_unchanged")

    return EntryDecision(write=True, status=TaxReportStatus.DELTA, reason="amount_changed")
