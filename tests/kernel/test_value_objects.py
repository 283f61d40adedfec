"""
Tests for the ledger metadata value objects.

TaxSummary / TaxDetail / PaymentRecord / TransactionEventMetadata:
paid-ratio helpers, serialization to decimal strings, and parsing of stored
blocks (including legacy keys and malformed input).
"""

from datetime import date
from decimal import Decimal

import pytest

from taxledger_kernel.domain.status import TaxReportStatus
from taxledger_kernel.domain.values import (
    PaymentRecord,
    TaxDetail,
    TaxSummary,
    TransactionEventMetadata,
    payment_ratio,
)
from taxledger_kernel.exceptions import InvalidLedgerMetadataError


class TestPaymentRatio:
    def test_partial_payment(self):
        assert payment_ratio(Decimal("200"), Decimal("50")) == Decimal("0.25")

    def test_zero_amount_is_zero_ratio(self):
        assert payment_ratio(Decimal("0"), Decimal("50")) == Decimal("0")

    def test_negative_amount_is_zero_ratio(self):
        assert payment_ratio(Decimal("-10"), Decimal("5")) == Decimal("0")

    def test_static_helper_matches_module_function(self):
        assert TaxSummary.payment_ratio(Decimal("80"), Decimal("20")) == Decimal("0.25")


class TestTaxSummary:
    def test_paid_and_remaining(self):
        summary = TaxSummary(Decimal("100"), Decimal("10"), TaxReportStatus.UPDATED)
        assert summary.calculate_total_paid(Decimal("0.25")) == Decimal("2.50")
        assert summary.calculate_total_remaining(Decimal("0.25")) == Decimal("7.50")

    def test_to_dict_uses_decimal_strings(self):
        summary = TaxSummary(
            Decimal("100.00"), Decimal("10.00"), TaxReportStatus.DELTA,
            adjustment=Decimal("5.00"), tax_adjustment=Decimal("0.50"),
        )
        assert summary.to_dict() == {
            "taxable_amount": "100.00",
            "total_taxes": "10.00",
            "status": "delta",
            "adjustment": "5.00",
            "tax_adjustment": "0.50",
        }

    def test_round_trip(self):
        summary = TaxSummary(Decimal("-12.34"), Decimal("-1.23"), TaxReportStatus.REVERSED)
        assert TaxSummary.from_dict(summary.to_dict()) == summary

    def test_legacy_tax_amount_key(self):
        parsed = TaxSummary.from_dict(
            {"taxable_amount": "100", "tax_amount": "10", "status": "updated"}
        )
        assert parsed.total_taxes == Decimal("10")

    def test_missing_status_defaults_to_updated(self):
        parsed = TaxSummary.from_dict({"taxable_amount": "1", "total_taxes": "0.1"})
        assert parsed.status == TaxReportStatus.UPDATED

    def test_unknown_status_raises(self):
        with pytest.raises(InvalidLedgerMetadataError) as exc_info:
            TaxSummary.from_dict({"status": "bogus"})
        assert exc_info.value.field == "tax_summary.status"
        assert exc_info.value.code == "INVALID_LEDGER_METADATA"


class TestTaxDetail:
    def _detail(self, **overrides):
        values = dict(
            tax_name="VAT",
            tax_rate=Decimal("10"),
            taxable_amount=Decimal("200"),
            tax_amount=Decimal("20"),
        )
        values.update(overrides)
        return TaxDetail(**values)

    def test_paid_and_remaining(self):
        detail = self._detail()
        ratio = Decimal("0.25")
        assert detail.calculate_tax_paid(ratio) == Decimal("5.00")
        assert detail.calculate_tax_remaining(ratio) == Decimal("15.00")
        assert detail.calculate_taxable_amount_paid(ratio) == Decimal("50.00")
        assert detail.calculate_taxable_amount_remaining(ratio) == Decimal("150.00")

    def test_rate_helpers(self):
        detail = self._detail(tax_rate=Decimal("7.25"))
        assert detail.tax_rate_formatted() == "7.25%"
        assert detail.tax_rate_decimal() == Decimal("0.0725")

    def test_verify_within_tolerance(self):
        assert self._detail(tax_amount=Decimal("20.01")).verify_tax_calculation()

    def test_verify_outside_tolerance(self):
        assert not self._detail(tax_amount=Decimal("21")).verify_tax_calculation()

    def test_verify_custom_tolerance(self):
        detail = self._detail(tax_amount=Decimal("21"))
        assert detail.verify_tax_calculation(tolerance=Decimal("1"))

    def test_missing_tax_name_raises(self):
        with pytest.raises(InvalidLedgerMetadataError):
            TaxDetail.from_dict({"tax_rate": "10"})

    def test_from_dict_defaults(self):
        parsed = TaxDetail.from_dict({"tax_name": "VAT", "tax_rate": 10})
        assert parsed.taxable_amount == Decimal("0")
        assert parsed.postal_code == ""


class TestPaymentRecord:
    def test_net_amount(self):
        record = PaymentRecord("P-1", Decimal("50"), Decimal("20"), date(2025, 9, 3))
        assert record.net_amount == Decimal("30")

    def test_parses_datetime_string(self):
        parsed = PaymentRecord.from_dict(
            {"number": "P-1", "amount": "10", "refunded": "0", "date": "2025-09-03 10:00:00"}
        )
        assert parsed.date == date(2025, 9, 3)

    def test_missing_date_raises(self):
        with pytest.raises(InvalidLedgerMetadataError):
            PaymentRecord.from_dict({"number": "P-1", "amount": "10"})


class TestTransactionEventMetadata:
    def test_round_trip_and_total_paid(self):
        metadata = TransactionEventMetadata(
            tax_summary=TaxSummary(Decimal("100"), Decimal("10"), TaxReportStatus.UPDATED),
            tax_details=(TaxDetail("VAT", Decimal("10"), Decimal("100"), Decimal("10")),),
            payment_history=(
                PaymentRecord("P-1", Decimal("30"), Decimal("0"), date(2025, 9, 1)),
                PaymentRecord("P-2", Decimal("25"), Decimal("5"), date(2025, 9, 2)),
            ),
        )
        stored = metadata.to_dict()
        assert set(stored) == {"tax_report"}
        assert TransactionEventMetadata.from_dict(stored) == metadata
        assert metadata.total_paid == Decimal("55")

    def test_missing_envelope_raises(self):
        with pytest.raises(InvalidLedgerMetadataError):
            TransactionEventMetadata.from_dict({})

    def test_missing_summary_raises(self):
        with pytest.raises(InvalidLedgerMetadataError) as exc_info:
            TransactionEventMetadata.from_dict({"tax_report": {"tax_details": []}})
        assert exc_info.value.field == "tax_report.tax_summary"


class TestTaxReportStatus:
    @pytest.mark.parametrize(
        "status, label",
        [
            (TaxReportStatus.UPDATED, "payable"),
            (TaxReportStatus.DELTA, "payable"),
            (TaxReportStatus.CANCELLED, "cancelled"),
            (TaxReportStatus.DELETED, "deleted"),
            (TaxReportStatus.RESTORED, "restored"),
            (TaxReportStatus.REVERSED, "reversed"),
            (TaxReportStatus.ADJUSTMENT, "adjustment"),
        ],
    )
    def test_labels(self, status, label):
        assert status.label() == label

    def test_is_payable(self):
        payable = {s for s in TaxReportStatus if s.is_payable()}
        assert payable == {TaxReportStatus.UPDATED, TaxReportStatus.DELTA}


class TestDomainExports:
    def test_all_names_resolve(self):
        import taxledger_kernel.domain as domain

        missing = [name for name in domain.__all__ if not hasattr(domain, name)]
        assert missing == []
