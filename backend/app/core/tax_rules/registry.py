"""
Jurisdiction registry: country code -> TaxRules implementation.
"""

from dataclasses import dataclass

from app.core.categories import DeductibleCategory
from app.core.errors import UnsupportedJurisdictionError
from app.core.situations import HomeOfficeMode, IncomeCategory, VatStatus
from app.core.tax_rules.at import AustrianTaxRules
from app.core.tax_rules.base import TaxRules
from app.core.tax_rules.de import GermanTaxRules

_REGISTRY: dict[str, TaxRules] = {
    "AT": AustrianTaxRules(),
    "DE": GermanTaxRules(),
}


def get_tax_rules(jurisdiction: str) -> TaxRules:
    code = (jurisdiction or "").upper()
    rules = _REGISTRY.get(code)
    if rules is None:
        raise UnsupportedJurisdictionError(jurisdiction, supported_jurisdictions())
    return rules


def is_supported(jurisdiction: str) -> bool:
    return (jurisdiction or "").upper() in _REGISTRY


def supported_jurisdictions() -> list[str]:
    return sorted(_REGISTRY)


@dataclass(frozen=True)
class JurisdictionProfile:
    code: str
    name: str
    small_business_threshold_cents: int
    fixed_percentages: dict[DeductibleCategory, int | None]
    home_office_deduction_cents: dict[HomeOfficeMode, int]
    income_category_labels: dict[IncomeCategory, str]
    vat_status_labels: dict[VatStatus, str]
    home_office_labels: dict[HomeOfficeMode, str]


def describe_jurisdiction(jurisdiction: str) -> JurisdictionProfile:
    """Constants and display labels a settings screen needs for one jurisdiction."""
    rules = get_tax_rules(jurisdiction)
    return JurisdictionProfile(
        code=rules.jurisdiction,
        name=rules.jurisdiction_name,
        small_business_threshold_cents=rules.small_business_threshold_cents(),
        fixed_percentages=rules.fixed_percentages(),
        home_office_deduction_cents={mode: rules.home_office_deduction_cents(mode) for mode in HomeOfficeMode},
        income_category_labels=rules.income_category_labels(),
        vat_status_labels=rules.vat_status_labels(),
        home_office_labels=rules.home_office_labels(),
    )
