"""
Metadata builders -- TaxSummary / TaxDetail shapes for ledger snapshots.

Responsibility:
    One pure function per TaxReportStatus that turns an invoice snapshot, its
    tax calculation, the prior ledger entry (if any) and the paid ratio into
    the summary and per-line details stored on a new ledger entry.  The
    change-detection gate picks the status; ``build_metadata`` dispatches on
    it through ``METADATA_BUILDERS``.

    Cash-basis and payment-adjustment shapes live here too so every ledger
    metadata shape is defined in one place.

Architecture position:
    Engines -- pure functions, no session, no clock.

Invariants enforced:
    - Every reportable amount is rounded with round_money (2 dp, HALF_UP).
    - Delta requires a prior entry: MissingPriorEntryError otherwise.
    - Reversed and deleted shapes carry negated amounts; cancelled and
      reversed shapes are scaled by the paid ratio; deleted is unscaled.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from taxledger_kernel.db.types import ZERO, round_money
from taxledger_kernel.domain.invoice import (
    InvoiceSnapshot,
    PaymentAllocation,
    TaxCalculation,
    TaxLine,
)
from taxledger_kernel.domain.ledger import LedgerEntry
from taxledger_kernel.domain.status import TaxReportStatus
from taxledger_kernel.domain.values import PaymentRecord, TaxDetail, TaxSummary
from taxledger_kernel.exceptions import MissingPriorEntryError

ONE = Decimal("1")
MINUS_ONE = Decimal("-1")


@dataclass(frozen=True)
class BuildContext:
    """Everything a builder may read.  Computed once by the caller."""

    invoice: InvoiceSnapshot
    calculation: TaxCalculation
    prior: LedgerEntry | None
    paid_ratio: Decimal


@dataclass(frozen=True)
class BuiltMetadata:
    summary: TaxSummary
    details: tuple[TaxDetail, ...]


MetadataBuilder = Callable[[BuildContext], BuiltMetadata]


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------


def _base(line: TaxLine, calculation: TaxCalculation) -> Decimal:
    return line.base_amount if line.base_amount is not None else calculation.net_subtotal


def _scaled_line(
    line: TaxLine,
    calculation: TaxCalculation,
    postal_code: str,
    factor: Decimal,
    scale_totals: bool,
) -> TaxDetail:
    """Detail with taxable/tax scaled by ``factor``; raw totals unless ``scale_totals``."""
    base = _base(line, calculation)
    taxable = round_money(base * factor)
    tax = round_money(line.total * factor)
    return TaxDetail(
        tax_name=line.name,
        tax_rate=line.rate,
        taxable_amount=taxable,
        tax_amount=tax,
        line_total=taxable if scale_totals else base,
        total_tax=tax if scale_totals else line.total,
        postal_code=postal_code,
    )


def _scaled_details(ctx: BuildContext, factor: Decimal, scale_totals: bool) -> tuple[TaxDetail, ...]:
    postal_code = ctx.invoice.client.postal_code
    return tuple(
        _scaled_line(line, ctx.calculation, postal_code, factor, scale_totals)
        for line in ctx.calculation.tax_map
    )


# ---------------------------------------------------------------------------
# Accrual builders
# ---------------------------------------------------------------------------


def build_updated(ctx: BuildContext) -> BuiltMetadata:
    """Raw calculation values."""
    calc = ctx.calculation
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal),
            total_taxes=round_money(calc.total_taxes),
            status=TaxReportStatus.UPDATED,
        ),
        details=_scaled_details(ctx, ONE, scale_totals=False),
    )


def build_restored(ctx: BuildContext) -> BuiltMetadata:
    """As updated, tagged RESTORED so the recovery is visible on reports."""
    built = build_updated(ctx)
    summary = built.summary
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=summary.taxable_amount,
            total_taxes=summary.total_taxes,
            status=TaxReportStatus.RESTORED,
        ),
        details=built.details,
    )


def build_delta(ctx: BuildContext) -> BuiltMetadata:
    """
    Raw current values plus the movement since the prior entry.

    Per line, taxable/tax amounts are the difference against the prior line
    of the same tax name (0 if the tax is new); line_total / total_tax keep
    the raw current values for the next delta.
    """
    if ctx.prior is None:
        raise MissingPriorEntryError(str(ctx.invoice.id))

    calc = ctx.calculation
    prior_meta = ctx.prior.metadata
    prior_lines = {d.tax_name: d for d in prior_meta.tax_details}
    postal_code = ctx.invoice.client.postal_code

    details = []
    for line in calc.tax_map:
        base = _base(line, calc)
        previous = prior_lines.get(line.name)
        details.append(
            TaxDetail(
                tax_name=line.name,
                tax_rate=line.rate,
                taxable_amount=round_money(base - (previous.line_total if previous else ZERO)),
                tax_amount=round_money(line.total - (previous.total_tax if previous else ZERO)),
                line_total=base,
                total_tax=line.total,
                postal_code=postal_code,
            )
        )

    prior_summary = prior_meta.tax_summary
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal),
            total_taxes=round_money(calc.total_taxes),
            status=TaxReportStatus.DELTA,
            adjustment=round_money(calc.net_subtotal - prior_summary.taxable_amount),
            tax_adjustment=round_money(calc.total_taxes - prior_summary.total_taxes),
        ),
        details=tuple(details),
    )


def build_cancelled(ctx: BuildContext) -> BuiltMetadata:
    """Only the paid share of a cancelled invoice remains reportable."""
    calc = ctx.calculation
    ratio = ctx.paid_ratio
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal * ratio),
            total_taxes=round_money(calc.total_taxes * ratio),
            status=TaxReportStatus.CANCELLED,
        ),
        details=_scaled_details(ctx, ratio, scale_totals=True),
    )


def build_reversed(ctx: BuildContext) -> BuiltMetadata:
    """Paid share, negated; the adjustment fields carry the same reversal."""
    calc = ctx.calculation
    factor = ctx.paid_ratio * MINUS_ONE
    taxable = round_money(calc.net_subtotal * factor)
    taxes = round_money(calc.total_taxes * factor)
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=taxable,
            total_taxes=taxes,
            status=TaxReportStatus.REVERSED,
            adjustment=taxable,
            tax_adjustment=taxes,
        ),
        details=_scaled_details(ctx, factor, scale_totals=True),
    )


def build_deleted(ctx: BuildContext) -> BuiltMetadata:
    """Full amounts negated, regardless of payments."""
    calc = ctx.calculation
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal * MINUS_ONE),
            total_taxes=round_money(calc.total_taxes * MINUS_ONE),
            status=TaxReportStatus.DELETED,
        ),
        details=_scaled_details(ctx, MINUS_ONE, scale_totals=True),
    )


METADATA_BUILDERS: dict[TaxReportStatus, MetadataBuilder] = {
    TaxReportStatus.UPDATED: build_updated,
    TaxReportStatus.RESTORED: build_restored,
    TaxReportStatus.DELTA: build_delta,
    TaxReportStatus.CANCELLED: build_cancelled,
    TaxReportStatus.REVERSED: build_reversed,
    TaxReportStatus.DELETED: build_deleted,
}


def build_metadata(status: TaxReportStatus, ctx: BuildContext) -> BuiltMetadata:
    """Dispatch to the accrual builder registered for ``status``."""
    try:
        builder = METADATA_BUILDERS[status]
    except KeyError:
        raise ValueError(f"No accrual metadata builder for status {status.value!r}") from None
    return builder(ctx)


# ---------------------------------------------------------------------------
# Cash basis
# ---------------------------------------------------------------------------


def build_cash(ctx: BuildContext) -> BuiltMetadata:
    """Realized share of the invoice's tax, scaled by the full paid ratio."""
    calc = ctx.calculation
    ratio = ctx.paid_ratio
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal * ratio),
            total_taxes=round_money(calc.total_taxes * ratio),
            status=TaxReportStatus.UPDATED,
        ),
        details=_scaled_details(ctx, ratio, scale_totals=False),
    )


# ---------------------------------------------------------------------------
# Payment adjustments
# ---------------------------------------------------------------------------


def tax_paid(invoice: InvoiceSnapshot, net_paid: Decimal) -> Decimal:
    """Tax share of ``net_paid`` (payments minus refunds) on the invoice."""
    if invoice.amount == ZERO:
        return ZERO
    return round_money(invoice.total_taxes * (net_paid / invoice.amount))


def build_refund_adjustment(ctx: BuildContext, net_paid: Decimal) -> BuiltMetadata:
    """
    Refund: the unpaid share of the invoice's tax becomes a negative adjustment.

    Summary taxable_amount is the (negative) taxable movement
    ``net x ratio - net``; total_taxes and tax_adjustment both hold
    ``-(total_taxes - tax_paid)``.
    """
    calc = ctx.calculation
    outstanding = round_money(ctx.invoice.total_taxes - tax_paid(ctx.invoice, net_paid))
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal * ctx.paid_ratio - calc.net_subtotal),
            total_taxes=-outstanding,
            status=TaxReportStatus.ADJUSTMENT,
            adjustment=ZERO,
            tax_adjustment=-outstanding,
        ),
        details=_scaled_details(ctx, ctx.paid_ratio, scale_totals=False),
    )


def build_payment_deleted_adjustment(ctx: BuildContext, net_paid: Decimal) -> BuiltMetadata:
    """Payment deleted: raw totals, with the no-longer-paid tax as the adjustment."""
    calc = ctx.calculation
    outstanding = round_money(ctx.invoice.total_taxes - tax_paid(ctx.invoice, net_paid))
    return BuiltMetadata(
        summary=TaxSummary(
            taxable_amount=round_money(calc.net_subtotal),
            total_taxes=round_money(calc.total_taxes),
            status=TaxReportStatus.ADJUSTMENT,
            adjustment=ZERO,
            tax_adjustment=-outstanding,
        ),
        details=_scaled_details(ctx, ONE, scale_totals=False),
    )


# ---------------------------------------------------------------------------
# Payment history
# ---------------------------------------------------------------------------


def payment_history(
    allocations: Iterable[PaymentAllocation],
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[PaymentRecord, ...]:
    """Denormalized payment records, optionally limited to ``[start_date, end_date]``."""
    records = []
    for allocation in allocations:
        created_on = allocation.created_on
        if start_date is not None and created_on < start_date:
            continue
        if end_date is not None and created_on > end_date:
            continue
        records.append(
            PaymentRecord(
                number=allocation.payment_number,
                amount=allocation.amount,
                refunded=allocation.refunded,
                date=created_on,
            )
        )
    return tuple(records)
