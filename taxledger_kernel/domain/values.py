"""
Module: taxledger_kernel.domain.values
Responsibility: Immutable value objects carried in a ledger entry's
    ``tax_report`` metadata block: TaxSummary (period-level facts), TaxDetail
    (per tax line), PaymentRecord (denormalized payment allocation) and the
    TransactionEventMetadata envelope that (de)serializes them.
Architecture position: Kernel > Domain.  Pure; no ORM, no I/O, no clock.

Invariants enforced:
    - All amounts are Decimal.  JSON storage uses decimal strings so a round
      trip through the metadata column never passes through float.
    - Objects are frozen; metadata parsed from storage is never mutated.

Failure modes:
    - InvalidLedgerMetadataError when a stored block lacks a required field or
      carries an unknown status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from taxledger_kernel.db.types import ZERO, round_money, to_decimal
from taxledger_kernel.domain.status import TaxReportStatus
from taxledger_kernel.exceptions import InvalidLedgerMetadataError

_HUNDRED = Decimal("100")


def payment_ratio(amount: Decimal, paid_to_date: Decimal) -> Decimal:
    """Share of the invoice amount already paid; 0 when amount <= 0."""
    if amount <= ZERO:
        return ZERO
    return paid_to_date / amount


@dataclass(frozen=True)
class TaxSummary:
    """
    Period-level tax facts for one ledger entry.

    Guarantees:
        - ``status`` always holds a TaxReportStatus member.
        - ``adjustment`` / ``tax_adjustment`` are 0 unless the entry is a
          delta, reversal or payment adjustment.
    """

    taxable_amount: Decimal
    total_taxes: Decimal
    status: TaxReportStatus
    adjustment: Decimal = ZERO
    tax_adjustment: Decimal = ZERO

    @staticmethod
    def payment_ratio(amount: Decimal, paid_to_date: Decimal) -> Decimal:
        return payment_ratio(amount, paid_to_date)

    def calculate_total_paid(self, ratio: Decimal) -> Decimal:
        return round_money(self.total_taxes * ratio)

    def calculate_total_remaining(self, ratio: Decimal) -> Decimal:
        return round_money(self.total_taxes * (Decimal("1") - ratio))

    def to_dict(self) -> dict[str, Any]:
        return {
            "taxable_amount": str(self.taxable_amount),
            "total_taxes": str(self.total_taxes),
            "status": self.status.value,
            "adjustment": str(self.adjustment),
            "tax_adjustment": str(self.tax_adjustment),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaxSummary:
        """
        Parse a stored summary.

        Older entries stored the tax total under ``tax_amount``; it is used
        when ``total_taxes`` is absent.
        """
        raw_status = data.get("status", TaxReportStatus.UPDATED.value)
        try:
            status = TaxReportStatus(raw_status)
        except ValueError:
            raise InvalidLedgerMetadataError(
                "tax_summary.status", f"unknown status {raw_status!r}"
            ) from None

        if "total_taxes" in data:
            total_taxes = data["total_taxes"]
        else:
            total_taxes = data.get("tax_amount")

        return cls(
            taxable_amount=to_decimal(data.get("taxable_amount")),
            total_taxes=to_decimal(total_taxes),
            status=status,
            adjustment=to_decimal(data.get("adjustment")),
            tax_adjustment=to_decimal(data.get("tax_adjustment")),
        )


@dataclass(frozen=True)
class TaxDetail:
    """
    Per tax-line facts for one ledger entry.

    ``taxable_amount`` / ``tax_amount`` are the reportable (possibly scaled,
    negated or differenced) values; ``line_total`` / ``total_tax`` keep the
    line's raw base and tax so a later delta can difference against them.
    """

    tax_name: str
    tax_rate: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal = ZERO
    total_tax: Decimal = ZERO
    postal_code: str = ""

    def calculate_tax_paid(self, ratio: Decimal) -> Decimal:
        return round_money(self.tax_amount * ratio)

    def calculate_tax_remaining(self, ratio: Decimal) -> Decimal:
        return round_money(self.tax_amount * (Decimal("1") - ratio))

    def calculate_taxable_amount_paid(self, ratio: Decimal) -> Decimal:
        return round_money(self.taxable_amount * ratio)

    def calculate_taxable_amount_remaining(self, ratio: Decimal) -> Decimal:
        return round_money(self.taxable_amount * (Decimal("1") - ratio))

    def tax_rate_formatted(self) -> str:
        return f"{round_money(self.tax_rate):,}%"

    def tax_rate_decimal(self) -> Decimal:
        return self.tax_rate / _HUNDRED

    def verify_tax_calculation(self, tolerance: Decimal = Decimal("0.02")) -> bool:
        """Soft check: tax_amount is within tolerance of taxable_amount x rate."""
        expected = round_money(self.taxable_amount * self.tax_rate_decimal())
        return abs(self.tax_amount - expected) <= tolerance

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax_name": self.tax_name,
            "tax_rate": str(self.tax_rate),
            "taxable_amount": str(self.taxable_amount),
            "tax_amount": str(self.tax_amount),
            "line_total": str(self.line_total),
            "total_tax": str(self.total_tax),
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaxDetail:
        if "tax_name" not in data:
            raise InvalidLedgerMetadataError("tax_details.tax_name", "missing")
        return cls(
            tax_name=data["tax_name"],
            tax_rate=to_decimal(data.get("tax_rate")),
            taxable_amount=to_decimal(data.get("taxable_amount")),
            tax_amount=to_decimal(data.get("tax_amount")),
            line_total=to_decimal(data.get("line_total")),
            total_tax=to_decimal(data.get("total_tax")),
            postal_code=data.get("postal_code") or "",
        )


@dataclass(frozen=True)
class PaymentRecord:
    """Point-in-time copy of a payment allocated to the invoice."""

    number: str
    amount: Decimal
    refunded: Decimal
    date: date

    @property
    def net_amount(self) -> Decimal:
        return self.amount - self.refunded

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "amount": str(self.amount),
            "refunded": str(self.refunded),
            "date": self.date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentRecord:
        raw_date = data.get("date")
        if isinstance(raw_date, datetime):
            parsed = raw_date.date()
        elif isinstance(raw_date, date):
            parsed = raw_date
        elif isinstance(raw_date, str) and raw_date:
            parsed = date.fromisoformat(raw_date[:10])
        else:
            raise InvalidLedgerMetadataError("payment_history.date", "missing")
        return cls(
            number=str(data.get("number", "")),
            amount=to_decimal(data.get("amount")),
            refunded=to_decimal(data.get("refunded")),
            date=parsed,
        )


@dataclass(frozen=True)
class TransactionEventMetadata:
    """
    The ``tax_report`` envelope stored on every ledger entry.

    Stored shape::

        {"tax_report": {"tax_summary": {...},
                        "tax_details": [{...}, ...],
                        "payment_history": [{...}, ...]}}
    """

    tax_summary: TaxSummary
    tax_details: tuple[TaxDetail, ...] = ()
    payment_history: tuple[PaymentRecord, ...] = field(default=())

    @property
    def total_paid(self) -> Decimal:
        """Sum of allocated payment amounts in the history."""
        return sum((p.amount for p in self.payment_history), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax_report": {
                "tax_summary": self.tax_summary.to_dict(),
                "tax_details": [d.to_dict() for d in self.tax_details],
                "payment_history": [p.to_dict() for p in self.payment_history],
            }
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TransactionEventMetadata:
        if not data or "tax_report" not in data:
            raise InvalidLedgerMetadataError("tax_report", "missing")
        report = data["tax_report"]
        if "tax_summary" not in report:
            raise InvalidLedgerMetadataError("tax_report.tax_summary", "missing")
        return cls(
            tax_summary=TaxSummary.from_dict(report["tax_summary"]),
            tax_details=tuple(
                TaxDetail.from_dict(d) for d in report.get("tax_details") or ()
            ),
            payment_history=tuple(
                PaymentRecord.from_dict(p) for p in report.get("payment_history") or ()
            ),
        )
