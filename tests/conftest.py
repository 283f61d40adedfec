"""
Pytest fixtures for the tax ledger test suite.

Provides:
- In-memory SQLite sessions (tables created per test)
- A deterministic clock pinned to 2025-10-01 12:00 UTC
- Factories for companies, clients, invoices and payment allocations
- Structured log capture
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import taxledger_kernel.models  # noqa: F401
from taxledger_kernel.db.base import Base
from taxledger_kernel.db.engine import enable_sqlite_savepoints
from taxledger_kernel.db.immutability import register_immutability_listeners
from taxledger_kernel.domain.clock import DeterministicClock
from taxledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from taxledger_kernel.models import (
    ClientModel,
    CompanyModel,
    InvoiceModel,
    InvoiceTaxLineModel,
    PaymentAllocationModel,
)

FIXED_NOW = datetime(2025, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture taxledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, gate):
            gate.run(invoice)
            assert any(r["message"] == "ledger_entry_recorded" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("taxledger")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine("sqlite:///:memory:")
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    register_immutability_listeners()
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """In-memory SQLite session for fast unit tests."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=FIXED_NOW)


# =============================================================================
# Read-model factories
# =============================================================================


@pytest.fixture
def company(db_session):
    model = CompanyModel(name="Acme", country_iso="GB")
    db_session.add(model)
    db_session.flush()
    return model


@pytest.fixture
def us_company(db_session):
    model = CompanyModel(name="Acme US", country_iso="US")
    db_session.add(model)
    db_session.flush()
    return model


@pytest.fixture
def client(db_session, company):
    model = ClientModel(company_id=company.id, name="Client", postal_code="SW1A 1AA")
    db_session.add(model)
    db_session.flush()
    return model


@pytest.fixture
def make_invoice(db_session, company, client):
    """
    Factory for invoices with one 10% tax line by default.

    ``amount`` defaults to net_subtotal + total_taxes and ``balance`` to
    amount - paid_to_date.
    """
    counter = {"n": 0}

    def _make(
        net_subtotal=Decimal("100"),
        total_taxes=Decimal("10"),
        amount=None,
        paid_to_date=Decimal("0"),
        balance=None,
        status="sent",
        invoice_date=date(2025, 9, 15),
        is_deleted=False,
        tax_lines=(("VAT", Decimal("10"), None, Decimal("10")),),
        us_tax_data=None,
        for_company=None,
        for_client=None,
    ):
        counter["n"] += 1
        amount = amount if amount is not None else net_subtotal + total_taxes
        owner = for_company or company
        payer = for_client or client
        invoice = InvoiceModel(
            company_id=owner.id,
            client_id=payer.id,
            client=payer,
            number=f"INV-{counter['n']:04d}",
            invoice_date=invoice_date,
            amount=amount,
            balance=balance if balance is not None else amount - paid_to_date,
            paid_to_date=paid_to_date,
            net_subtotal=net_subtotal,
            total_taxes=total_taxes,
            status=status,
            is_deleted=is_deleted,
            us_tax_data=us_tax_data,
        )
        for position, (name, rate, base, total) in enumerate(tax_lines):
            invoice.tax_lines.append(
                InvoiceTaxLineModel(
                    position=position, name=name, rate=rate, base_amount=base, total=total
                )
            )
        db_session.add(invoice)
        db_session.flush()
        return invoice

    return _make


@pytest.fixture
def add_payment(db_session):
    """Allocate a payment to an invoice; keeps paid_to_date/balance/status in step."""
    counter = {"n": 0}

    def _add(invoice, amount, created_at, refunded=Decimal("0")):
        counter["n"] += 1
        invoice.allocations.append(
            PaymentAllocationModel(
                payment_number=f"PAY-{counter['n']:04d}",
                amount=amount,
                refunded=refunded,
                created_at=created_at,
            )
        )
        invoice.paid_to_date = invoice.paid_to_date + amount - refunded
        invoice.balance = invoice.amount - invoice.paid_to_date
        invoice.status = "paid" if invoice.balance <= 0 else "partial"
        db_session.flush()
        return invoice

    return _add
