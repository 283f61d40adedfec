"""
Regional tax calculators and their factory.

Contract:
    ``RegionalTaxCalculator`` appends country-specific columns to report rows.
    ``RegionalTaxCalculatorFactory`` holds an ordered list of
    ``(predicate, constructor)`` candidates; the first whose predicate accepts
    the company's country wins.  ``GenericTaxCalculator`` is always last and
    accepts every country, so resolution never fails.

Architecture:
    Engines.  Pure; callers resolve once per report and keep the instance.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from taxledger_kernel.db.types import ZERO, round_money
from taxledger_kernel.domain.invoice import CompanyProfile, InvoiceSnapshot


@runtime_checkable
class RegionalTaxCalculator(Protocol):
    """Interface for country-specific report columns."""

    def get_headers(self) -> list[str]: ...

    def calculate_columns(self, invoice: InvoiceSnapshot, amount: Decimal) -> list[Any]: ...

    @staticmethod
    def supports(country_iso: str) -> bool: ...


class GenericTaxCalculator:
    """Fallback: no regional columns."""

    def get_headers(self) -> list[str]:
        return []

    def calculate_columns(self, invoice: InvoiceSnapshot, amount: Decimal) -> list[Any]:
        return []

    @staticmethod
    def supports(country_iso: str) -> bool:
        return True


class UsaTaxCalculator:
    """
    Decomposes a US sales-tax amount into state, county, city and district parts.

    Each component is ``round(sub_rate / combined_rate * amount, 2)`` using the
    rates stored on the invoice by the tax provider.  Without a stored
    breakdown (or a zero combined rate) the amount columns are left empty.
    """

    HEADERS = [
        "State",
        "State Tax Rate",
        "State Tax Amount",
        "County",
        "County Tax Rate",
        "County Tax Amount",
        "City",
        "City Tax Rate",
        "City Tax Amount",
        "District Tax Rate",
        "District Tax Amount",
    ]

    def get_headers(self) -> list[str]:
        return list(self.HEADERS)

    def calculate_columns(self, invoice: InvoiceSnapshot, amount: Decimal) -> list[Any]:
        data = invoice.us_tax_data
        if data is None:
            return ["", "", "", "", "", "", "", "", "", "", ""]

        if data.tax_sales == ZERO:
            return [
                data.geo_state, data.state_sales_tax, "",
                data.geo_county, data.county_sales_tax, "",
                data.geo_city, data.city_sales_tax, "",
                data.district_sales_tax, "",
            ]

        def share(rate: Decimal) -> Decimal:
            return round_money(rate / data.tax_sales * amount)

        return [
            data.geo_state, data.state_sales_tax, share(data.state_sales_tax),
            data.geo_county, data.county_sales_tax, share(data.county_sales_tax),
            data.geo_city, data.city_sales_tax, share(data.city_sales_tax),
            data.district_sales_tax, share(data.district_sales_tax),
        ]

    @staticmethod
    def supports(country_iso: str) -> bool:
        return country_iso == "US"


CalculatorCandidate = tuple[Callable[[str], bool], Callable[[], RegionalTaxCalculator]]

DEFAULT_CANDIDATES: tuple[CalculatorCandidate, ...] = (
    (UsaTaxCalculator.supports, UsaTaxCalculator),
    (GenericTaxCalculator.supports, GenericTaxCalculator),
)


class RegionalTaxCalculatorFactory:
    """Ordered-candidate resolution of the calculator for a company."""

    def __init__(self, candidates: tuple[CalculatorCandidate, ...] = DEFAULT_CANDIDATES):
        self._candidates = candidates

    def create(self, company: CompanyProfile) -> RegionalTaxCalculator:
        country_iso = (company.country_iso or "").upper()
        for predicate, constructor in self._candidates:
            if predicate(country_iso):
                return constructor()
        return GenericTaxCalculator()

    def has_regional_calculator(self, company: CompanyProfile) -> bool:
        return not isinstance(self.create(company), GenericTaxCalculator)
