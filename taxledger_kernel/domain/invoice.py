"""
Read-model DTOs consumed by the ledger.

The invoicing application owns invoices, clients, companies and payment
allocations.  The ledger only ever sees these frozen projections; the ORM
read-model rows are converted by ``to_snapshot()`` before any ledger logic
runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from taxledger_kernel.db.types import ZERO, to_decimal
from taxledger_kernel.domain.status import InvoiceStatus


@dataclass(frozen=True)
class TaxLine:
    """One entry of an invoice's per-tax-name breakdown."""

    name: str
    rate: Decimal
    base_amount: Decimal | None
    total: Decimal


@dataclass(frozen=True)
class TaxCalculation:
    """Output of the external tax calculator for one invoice."""

    net_subtotal: Decimal
    total_taxes: Decimal
    tax_map: tuple[TaxLine, ...] = ()


@dataclass(frozen=True)
class PaymentAllocation:
    """A payment (or part of one) applied to an invoice."""

    invoice_id: UUID
    payment_number: str
    amount: Decimal
    refunded: Decimal
    created_at: datetime

    @property
    def created_on(self) -> date:
        return self.created_at.date()


@dataclass(frozen=True)
class PaymentSnapshot:
    """A payment being refunded or deleted, with its invoice allocations."""

    id: UUID
    number: str
    amount: Decimal
    applied: Decimal
    refunded: Decimal
    is_deleted: bool = False
    allocations: tuple[PaymentAllocation, ...] = ()


@dataclass(frozen=True)
class UsTaxData:
    """Stored US sales-tax breakdown (state/county/city/district rates)."""

    geo_state: str = ""
    state_sales_tax: Decimal = ZERO
    geo_county: str = ""
    county_sales_tax: Decimal = ZERO
    geo_city: str = ""
    city_sales_tax: Decimal = ZERO
    district_sales_tax: Decimal = ZERO
    tax_sales: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsTaxData:
        """Build from the camelCase keys the tax provider returns."""
        return cls(
            geo_state=data.get("geoState") or "",
            state_sales_tax=to_decimal(data.get("stateSalesTax")),
            geo_county=data.get("geoCounty") or "",
            county_sales_tax=to_decimal(data.get("countySalesTax")),
            geo_city=data.get("geoCity") or "",
            city_sales_tax=to_decimal(data.get("citySalesTax")),
            district_sales_tax=to_decimal(data.get("districtSalesTax")),
            tax_sales=to_decimal(data.get("taxSales")),
        )


@dataclass(frozen=True)
class ClientSnapshot:
    id: UUID
    balance: Decimal = ZERO
    paid_to_date: Decimal = ZERO
    credit_balance: Decimal = ZERO
    postal_code: str = ""


@dataclass(frozen=True)
class InvoiceSnapshot:
    """
    Point-in-time projection of an invoice as the ledger needs it.

    Guarantees:
        - ``tax_lines`` and ``allocations`` are tuples (hashable, immutable).
        - ``us_tax_data`` is None when the invoice has no stored US breakdown.
    """

    id: UUID
    company_id: UUID
    client: ClientSnapshot
    number: str
    date: date
    amount: Decimal
    balance: Decimal
    paid_to_date: Decimal
    status: InvoiceStatus
    net_subtotal: Decimal = ZERO
    total_taxes: Decimal = ZERO
    partial: Decimal = ZERO
    due_date: date | None = None
    is_deleted: bool = False
    tax_lines: tuple[TaxLine, ...] = ()
    allocations: tuple[PaymentAllocation, ...] = field(default=())
    us_tax_data: UsTaxData | None = None

    @property
    def client_id(self) -> UUID:
        return self.client.id

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    @property
    def is_reversed(self) -> bool:
        return self.status == InvoiceStatus.REVERSED

    @property
    def is_paid_or_partial(self) -> bool:
        return self.status in (InvoiceStatus.PAID, InvoiceStatus.PARTIAL)


@dataclass(frozen=True)
class CompanyProfile:
    """Company settings the report layer needs."""

    id: UUID
    country_iso: str = "US"
    locale: str = "en"
    fiscal_year_start_month: int = 1
    date_format: str = "yyyy-mm-dd"
    currency_symbol: str = "$"
    currency_precision: int = 2
    decimal_separator: str = "."
    thousand_separator: str = ","

    def __post_init__(self) -> None:
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError(
                f"fiscal_year_start_month must be 1..12, got {self.fiscal_year_start_month}"
            )


class InvoiceCalculator(Protocol):
    """External collaborator returning an invoice's net subtotal and taxes."""

    def calc(self, invoice: InvoiceSnapshot) -> TaxCalculation: ...


class StoredTaxCalculator:
    """
    Calculator that trusts the totals and tax lines persisted on the invoice.

    The invoicing application recalculates on every save, so the stored
    values are the calculation result.
    """

    def calc(self, invoice: InvoiceSnapshot) -> TaxCalculation:
        return TaxCalculation(
            net_subtotal=invoice.net_subtotal,
            total_taxes=invoice.total_taxes,
            tax_map=invoice.tax_lines,
        )
