"""
Invoicing read-model ORM tables (``taxledger_kernel.models.invoice``).

Responsibility:
    Mirror of the invoicing application's companies, clients, invoices, tax
    lines and payment allocations.  The ledger never writes these tables; it
    reads them and projects each row into a frozen DTO via ``to_snapshot()``
    / ``to_dto()``.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38, 9)) -- NEVER float.
    - Invoice status stored as the InvoiceStatus .value string.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taxledger_kernel.db.base import Base
from taxledger_kernel.db.types import ensure_utc


# ---------------------------------------------------------------------------
# CompanyModel
# ---------------------------------------------------------------------------

class CompanyModel(Base):
    """Company settings: locale, fiscal year and currency presentation."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    country_iso: Mapped[str] = mapped_column(String(2), nullable=False, default="US")
    locale: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    fiscal_year_start_month: Mapped[int] = mapped_column(nullable=False, default=1)
    date_format: Mapped[str] = mapped_column(String(30), nullable=False, default="yyyy-mm-dd")
    currency_symbol: Mapped[str] = mapped_column(String(10), nullable=False, default="$")
    currency_precision: Mapped[int] = mapped_column(nullable=False, default=2)
    decimal_separator: Mapped[str] = mapped_column(String(1), nullable=False, default=".")
    thousand_separator: Mapped[str] = mapped_column(String(1), nullable=False, default=",")

    def to_dto(self):
        from taxledger_kernel.domain.invoice import CompanyProfile
        return CompanyProfile(
            id=self.id,
            country_iso=self.country_iso,
            locale=self.locale,
            fiscal_year_start_month=self.fiscal_year_start_month,
            date_format=self.date_format,
            currency_symbol=self.currency_symbol,
            currency_precision=self.currency_precision,
            decimal_separator=self.decimal_separator,
            thousand_separator=self.thousand_separator,
        )

    def __repr__(self) -> str:
        return f"<CompanyModel {self.id} country={self.country_iso}>"


# ---------------------------------------------------------------------------
# ClientModel
# ---------------------------------------------------------------------------

class ClientModel(Base):
    """Client balances as maintained by the invoicing application."""

    __tablename__ = "clients"

    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    paid_to_date: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    def to_dto(self):
        from taxledger_kernel.domain.invoice import ClientSnapshot
        return ClientSnapshot(
            id=self.id,
            balance=self.balance,
            paid_to_date=self.paid_to_date,
            credit_balance=self.credit_balance,
            postal_code=self.postal_code,
        )


# ---------------------------------------------------------------------------
# InvoiceModel
# ---------------------------------------------------------------------------

class InvoiceModel(Base):
    """
    Invoice header.

    Contract:
        ``is_deleted`` is a soft delete; deleted invoices keep their rows so
        the ledger can record the deletion and a later restore.
    """

    __tablename__ = "invoices"

    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id"), nullable=False)
    number: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    partial: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    paid_to_date: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_taxes: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    us_tax_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    client: Mapped["ClientModel"] = relationship("ClientModel", lazy="select")
    tax_lines: Mapped[list["InvoiceTaxLineModel"]] = relationship(
        "InvoiceTaxLineModel", lazy="select", order_by="InvoiceTaxLineModel.position",
    )
    allocations: Mapped[list["PaymentAllocationModel"]] = relationship(
        "PaymentAllocationModel", lazy="select", order_by="PaymentAllocationModel.created_at",
    )

    __table_args__ = (
        Index("idx_invoice_company_status", "company_id", "status"),
        Index("idx_invoice_company_date", "company_id", "invoice_date"),
    )

    def to_snapshot(self):
        from taxledger_kernel.domain.invoice import InvoiceSnapshot, UsTaxData
        from taxledger_kernel.domain.status import InvoiceStatus
        return InvoiceSnapshot(
            id=self.id,
            company_id=self.company_id,
            client=self.client.to_dto(),
            number=self.number,
            date=self.invoice_date,
            due_date=self.due_date,
            amount=self.amount,
            balance=self.balance,
            partial=self.partial,
            paid_to_date=self.paid_to_date,
            net_subtotal=self.net_subtotal,
            total_taxes=self.total_taxes,
            status=InvoiceStatus(self.status),
            is_deleted=self.is_deleted,
            tax_lines=tuple(line.to_dto() for line in self.tax_lines),
            allocations=tuple(a.to_dto() for a in self.allocations),
            us_tax_data=UsTaxData.from_dict(self.us_tax_data) if self.us_tax_data else None,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.number} status={self.status} deleted={self.is_deleted}>"


class InvoiceTaxLineModel(Base):
    """One line of the invoice's per-tax-name breakdown."""

    __tablename__ = "invoice_tax_lines"

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    base_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    def to_dto(self):
        from taxledger_kernel.domain.invoice import TaxLine
        return TaxLine(
            name=self.name,
            rate=self.rate,
            base_amount=self.base_amount,
            total=self.total,
        )


class PaymentAllocationModel(Base):
    """A payment applied to an invoice (paymentables row)."""

    __tablename__ = "payment_allocations"

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    payment_number: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    refunded: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_allocation_invoice", "invoice_id"),
    )

    def to_dto(self):
        from taxledger_kernel.domain.invoice import PaymentAllocation
        return PaymentAllocation(
            invoice_id=self.invoice_id,
            payment_number=self.payment_number,
            amount=self.amount,
            refunded=self.refunded,
            created_at=ensure_utc(self.created_at),
        )
