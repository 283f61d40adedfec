"""
End-to-end tests for the tax period report over an in-memory ledger.

The fixed clock sits on 2025-10-01, so the default ``last_month`` window is
September 2025.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from io import BytesIO
from uuid import uuid4

import pytest
from openpyxl import load_workbook

from taxledger_config.schema import BackfillSettings, TaxPeriodSettings
from taxledger_engines.regional import RegionalTaxCalculatorFactory, UsaTaxCalculator
from taxledger_kernel.domain.invoice import CompanyProfile
from taxledger_kernel.exceptions import TaxReportGenerationError
from taxledger_kernel.models import ClientModel
from taxledger_kernel.models.backfill_lease import BackfillLease
from taxledger_reporting.rows import DETAIL_HEADERS, SUMMARY_HEADERS
from taxledger_reporting.service import TaxPeriodReport, TaxReportRequest

D = Decimal


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class ExplodingColumns:
    def get_headers(self):
        return []

    def calculate_columns(self, invoice, amount):
        raise RuntimeError("regional data unavailable")


def report_for(session, company, clock, request=None, **kwargs):
    return TaxPeriodReport(
        session, company.to_dto(), request or TaxReportRequest(), clock=clock, **kwargs
    )


class TestAccrualReport:
    def test_backfilled_invoice_appears(self, db_session, clock, company, make_invoice):
        make_invoice()

        data = report_for(db_session, company, clock).get_data()

        assert data["invoices"][0] == SUMMARY_HEADERS
        assert data["invoices"][1] == [
            "INV-0001", date(2025, 9, 15), D("110"), D("0"), D("10"), D("100"), "payable",
        ]
        assert data["invoice_items"][0] == DETAIL_HEADERS
        assert data["invoice_items"][1][2:8] == [
            "VAT", D("10"), D("10"), D("100"), "payable", "SW1A 1AA",
        ]

    def test_invoices_outside_window_are_excluded(self, db_session, clock, company, make_invoice):
        make_invoice(invoice_date=date(2025, 10, 1))

        data = report_for(db_session, company, clock).get_data()

        assert data["invoices"] == [SUMMARY_HEADERS]

    def test_without_backfill_nothing_is_written(self, db_session, clock, company, make_invoice):
        make_invoice()
        request = TaxReportRequest(backfill=False)

        data = report_for(db_session, company, clock, request).get_data()

        assert data["invoices"] == [SUMMARY_HEADERS]

    def test_backfill_disabled_in_settings(self, db_session, clock, company, make_invoice):
        make_invoice()
        settings = TaxPeriodSettings(backfill=BackfillSettings(enabled=False))

        data = report_for(db_session, company, clock, settings=settings).get_data()

        assert data["invoices"] == [SUMMARY_HEADERS]

    def test_client_filter(self, db_session, clock, company, make_invoice):
        other = ClientModel(company_id=company.id, name="Other", postal_code="EC1A 1BB")
        db_session.add(other)
        db_session.flush()
        make_invoice()
        mine = make_invoice(for_client=other)

        request = TaxReportRequest(client_id=other.id)
        data = report_for(db_session, company, clock, request).get_data()

        assert [row[0] for row in data["invoices"][1:]] == [mine.number]

    def test_rows_ordered_by_balance(self, db_session, clock, company, make_invoice):
        make_invoice(net_subtotal=D("50"), total_taxes=D("5"))
        make_invoice(net_subtotal=D("500"), total_taxes=D("50"))

        data = report_for(db_session, company, clock).get_data()

        assert [row[0] for row in data["invoices"][1:]] == ["INV-0002", "INV-0001"]


class TestCashReport:
    def test_only_cash_entries(self, db_session, clock, company, make_invoice, add_payment):
        invoice = make_invoice()
        add_payment(invoice, D("110"), utc(2025, 9, 20))
        make_invoice()
        request = TaxReportRequest(is_income_billed=False)

        report = report_for(db_session, company, clock, request)
        data = report.get_data()

        assert report.cash_accounting is True
        assert data["invoices"][1:] == [
            ["INV-0001", date(2025, 9, 15), D("110"), D("110"), D("10"), D("100"), "payable"],
        ]


class TestRegionalColumns:
    def test_us_company_gets_sales_tax_columns(self, db_session, clock, us_company, make_invoice):
        client = ClientModel(company_id=us_company.id, name="US client", postal_code="90210")
        db_session.add(client)
        db_session.flush()
        make_invoice(
            net_subtotal=D("100"),
            total_taxes=D("8"),
            tax_lines=(("Sales Tax", D("8"), None, D("8")),),
            us_tax_data={
                "geoState": "CA", "stateSalesTax": "5",
                "geoCounty": "Los Angeles", "countySalesTax": "2",
                "geoCity": "Beverly Hills", "citySalesTax": "1",
                "districtSalesTax": "0", "taxSales": "8",
            },
            for_company=us_company,
            for_client=client,
        )

        data = report_for(db_session, us_company, clock).get_data()

        assert data["invoices"][0] == SUMMARY_HEADERS + UsaTaxCalculator.HEADERS
        row = data["invoices"][1]
        assert [row[9], row[12], row[15], row[17]] == [D("5.00"), D("2.00"), D("1.00"), D("0.00")]


class TestRun:
    def test_returns_xlsx(self, db_session, clock, company, make_invoice, captured_logs):
        make_invoice()

        content = report_for(db_session, company, clock).run()

        workbook = load_workbook(BytesIO(content))
        assert workbook.sheetnames == ["Invoice Summary", "Tax Item Detail"]
        assert workbook["Invoice Summary"]["A2"].value == "INV-0001"
        completed = [r for r in captured_logs() if r["message"] == "tax_period_report_completed"]
        assert completed[0]["invoice_rows"] == 1
        assert completed[0]["company_id"] == str(company.id)

    def test_failing_invoice_is_skipped(self, db_session, clock, company, make_invoice, captured_logs):
        make_invoice()
        factory = RegionalTaxCalculatorFactory(candidates=((lambda iso: True, ExplodingColumns),))

        data = report_for(db_session, company, clock, calculator_factory=factory).get_data()

        assert data["invoices"] == [SUMMARY_HEADERS]
        assert any(r["message"] == "tax_report_invoice_skipped" for r in captured_logs())

    def test_held_lease_skips_backfill(self, db_session, clock, company, make_invoice, captured_logs):
        make_invoice()
        db_session.add(
            BackfillLease(
                company_id=company.id,
                holder="other-worker",
                acquired_at=clock.now(),
                expires_at=clock.now() + timedelta(hours=1),
            )
        )
        db_session.commit()

        data = report_for(db_session, company, clock).get_data()

        assert data["invoices"] == [SUMMARY_HEADERS]
        skipped = [r for r in captured_logs() if r["message"] == "backfill_skipped_lease_held"]
        assert skipped[0]["holder"] == "other-worker"

    def test_failure_is_wrapped_with_stage(self, db_session, clock, captured_logs):
        broken = CompanyProfile(id=uuid4(), currency_precision=-1)
        report = TaxPeriodReport(db_session, broken, TaxReportRequest(), clock=clock)

        with pytest.raises(TaxReportGenerationError) as exc_info:
            report.run()

        assert exc_info.value.stage == "set_currency_format"
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert any(r["message"] == "tax_period_report_failed" for r in captured_logs())


class TestRequest:
    def test_from_dict(self):
        client_id = uuid4()
        request = TaxReportRequest.from_dict(
            {"client_id": str(client_id), "is_income_billed": False}
        )

        assert request.client_id == client_id
        assert request.is_income_billed is False
        assert request.date_range == "last_month"
        assert request.backfill is True

    def test_empty_dict_matches_defaults(self):
        assert TaxReportRequest.from_dict({}) == TaxReportRequest()

    def test_explicit_date_range_kept(self):
        assert TaxReportRequest.from_dict({"date_range": "all"}).date_range == "all"
