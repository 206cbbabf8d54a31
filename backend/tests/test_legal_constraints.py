"""
Tests for jurisdiction legal constraints (Austria, Germany) and the registry.
"""

from dataclasses import replace
from datetime import date

import pytest

from app.core.categories import DeductibleCategory
from app.core.errors import UnsupportedJurisdictionError
from app.core.legal_constraints import (
    ClassificationCandidate,
    ViolationSeverity,
    enforce_legal_constraints,
    format_violations,
    has_errors,
)
from app.core.situations import Allocation, HomeOfficeMode, IncomeCategory, Situation, VatStatus, VehicleType
from app.core.tax_rules import (
    AustrianTaxRules,
    GermanTaxRules,
    describe_jurisdiction,
    get_tax_rules,
    is_supported,
    supported_jurisdictions,
)


def candidate(category, income_tax_percent=100, vat_recoverable=True, amount_cents=None):
    return ClassificationCandidate(
        category=category,
        income_tax_percent=income_tax_percent,
        vat_recoverable=vat_recoverable,
        amount_cents=amount_cents,
    )


@pytest.fixture
def at_situation():
    return Situation(id=1, valid_from=date(2024, 1, 1), valid_to=None, jurisdiction="AT", telecom_business_percent=60)


@pytest.fixture
def de_situation():
    return Situation(id=1, valid_from=date(2024, 1, 1), valid_to=None, jurisdiction="DE")


class TestRegistry:
    def test_supported(self):
        assert supported_jurisdictions() == ["AT", "DE"]
        assert is_supported("at")
        assert not is_supported("FR")

    def test_lookup_is_case_insensitive(self):
        assert isinstance(get_tax_rules("at"), AustrianTaxRules)
        assert isinstance(get_tax_rules("DE"), GermanTaxRules)

    def test_describe_austria(self):
        profile = describe_jurisdiction("at")
        assert profile.code == "AT"
        assert profile.name == "Austria"
        assert profile.small_business_threshold_cents == 55_000_00
        assert profile.fixed_percentages[DeductibleCategory.MEALS] == 50
        assert profile.home_office_deduction_cents[HomeOfficeMode.FLAT_RATE_FULL] == 1_200_00
        assert profile.vat_status_labels[VatStatus.SMALL_BUSINESS_EXEMPT].startswith("Kleinunternehmer")
        assert set(profile.home_office_labels) == set(HomeOfficeMode)

    def test_describe_germany(self):
        profile = describe_jurisdiction("DE")
        assert profile.fixed_percentages[DeductibleCategory.MEALS] == 70
        assert profile.home_office_deduction_cents[HomeOfficeMode.DAILY_RATE] == 6_00
        assert profile.home_office_deduction_cents[HomeOfficeMode.FLAT_RATE_FULL] == 0
        assert profile.income_category_labels[IncomeCategory.RENTAL] == "Vermietung und Verpachtung"

    def test_unknown_jurisdiction(self, at_situation):
        with pytest.raises(UnsupportedJurisdictionError):
            get_tax_rules("FR")
        with pytest.raises(ValueError):
            enforce_legal_constraints(candidate(DeductibleCategory.FULL), at_situation, "FR")


class TestAustrianConstraints:
    def test_valid_classification_unchanged(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.FULL), at_situation)
        assert not result.was_modified
        assert result.violations == []

    def test_small_business_no_vat(self, at_situation):
        exempt = replace(at_situation, vat_status=VatStatus.SMALL_BUSINESS_EXEMPT)
        result = enforce_legal_constraints(candidate(DeductibleCategory.FULL), exempt)
        assert result.classification.vat_recoverable is False
        assert result.violations[0].severity == ViolationSeverity.ERROR
        assert result.violations[0].legal_reference == "§6 Abs 1 Z 27 UStG"

    def test_ice_vehicle_no_vat(self, at_situation):
        ice = replace(at_situation, has_company_vehicle=True, vehicle_type=VehicleType.ICE)
        result = enforce_legal_constraints(candidate(DeductibleCategory.VEHICLE), ice)
        assert result.classification.vat_recoverable is False
        [violation] = result.violations
        assert violation.field == "vat_recoverable"
        assert violation.suggested_value is True
        assert violation.corrected_value is False
        assert violation.rule == "ICE/hybrid vehicle: no VAT recovery"
        assert violation.severity == ViolationSeverity.ERROR

    def test_vehicle_without_company_car(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.VEHICLE), at_situation)
        assert result.classification.vat_recoverable is False
        assert result.violations[0].rule == "Vehicle expenses: no VAT recovery unless electric"

    def test_electric_vehicle_keeps_vat(self, at_situation):
        electric = replace(at_situation, has_company_vehicle=True, vehicle_type=VehicleType.ELECTRIC)
        result = enforce_legal_constraints(candidate(DeductibleCategory.VEHICLE), electric)
        assert result.classification.vat_recoverable is True
        assert not result.was_modified

    def test_electric_vehicle_exempt_business(self, at_situation):
        electric = replace(
            at_situation,
            has_company_vehicle=True,
            vehicle_type=VehicleType.ELECTRIC,
            vat_status=VatStatus.SMALL_BUSINESS_EXEMPT,
        )
        result = enforce_legal_constraints(candidate(DeductibleCategory.VEHICLE), electric)
        assert result.classification.vat_recoverable is False

    def test_vehicle_income_tax_warning(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.VEHICLE, income_tax_percent=70, vat_recoverable=False), at_situation)
        [violation] = result.violations
        assert violation.field == "income_tax_percent"
        assert violation.corrected_value == 100
        assert violation.severity == ViolationSeverity.WARNING

    def test_meals_fifty_percent(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.MEALS), at_situation)
        assert result.classification.income_tax_percent == 50
        assert result.classification.vat_recoverable is True
        assert result.violations[0].severity == ViolationSeverity.ERROR
        assert result.violations[0].legal_reference == "§20 EStG"

    def test_meals_vat_restored(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.MEALS, 50, False), at_situation)
        [violation] = result.violations
        assert violation.field == "vat_recoverable"
        assert violation.severity == ViolationSeverity.WARNING

    def test_gift_over_limit(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.GIFTS, amount_cents=40_01), at_situation)
        assert result.classification.vat_recoverable is False

    def test_gift_at_limit(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.GIFTS, amount_cents=40_00), at_situation)
        assert not result.was_modified

    def test_none_category(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.NONE), at_situation)
        assert result.classification.income_tax_percent == 0
        assert result.classification.vat_recoverable is False
        assert has_errors(result.violations)

    def test_full_category_corrected(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.FULL, 80, False), at_situation)
        assert result.classification.income_tax_percent == 100
        assert result.classification.vat_recoverable is True
        assert not has_errors(result.violations)

    def test_telecom_uses_configured_percent(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.TELECOM, 100, True), at_situation)
        assert result.classification.income_tax_percent == 60
        assert result.violations[0].severity == ViolationSeverity.WARNING

    def test_unknown_percent_left_alone(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.TELECOM, None, True), at_situation)
        assert result.classification.income_tax_percent is None

    @pytest.mark.parametrize("category", list(DeductibleCategory))
    @pytest.mark.parametrize("exempt", [False, True])
    @pytest.mark.parametrize("vehicle_type", [None, VehicleType.ICE, VehicleType.ELECTRIC])
    def test_idempotent(self, at_situation, category, exempt, vehicle_type):
        situation = replace(
            at_situation,
            vat_status=VatStatus.SMALL_BUSINESS_EXEMPT if exempt else VatStatus.STANDARD,
            has_company_vehicle=vehicle_type is not None,
            vehicle_type=vehicle_type,
        )
        first = enforce_legal_constraints(candidate(category, 100, True, 100_00), situation)
        second = enforce_legal_constraints(first.classification, situation)
        assert second.violations == []
        assert second.classification == first.classification


class TestGermanConstraints:
    def test_kleinunternehmer(self, de_situation):
        exempt = replace(de_situation, vat_status=VatStatus.SMALL_BUSINESS_EXEMPT)
        result = enforce_legal_constraints(candidate(DeductibleCategory.FULL), exempt)
        assert result.classification.vat_recoverable is False
        assert result.violations[0].legal_reference == "§19 UStG"

    def test_meals_seventy_percent(self, de_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.MEALS), de_situation)
        assert result.classification.income_tax_percent == 70
        assert result.violations[0].severity == ViolationSeverity.WARNING

    def test_gift_over_limit(self, de_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.GIFTS, amount_cents=35_01), de_situation)
        assert result.classification.income_tax_percent == 0
        assert result.classification.vat_recoverable is False
        assert len(result.violations) == 2

    def test_gift_within_limit(self, de_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.GIFTS, amount_cents=35_00), de_situation)
        assert not result.was_modified

    def test_vehicle_vat_allowed(self, de_situation):
        car = replace(de_situation, has_company_vehicle=True, vehicle_type=VehicleType.ICE)
        result = enforce_legal_constraints(candidate(DeductibleCategory.VEHICLE), car)
        assert not result.was_modified

    def test_explicit_jurisdiction_overrides_situation(self, at_situation):
        result = enforce_legal_constraints(candidate(DeductibleCategory.MEALS), at_situation, "DE")
        assert result.classification.income_tax_percent == 70

    @pytest.mark.parametrize("category", list(DeductibleCategory))
    def test_idempotent(self, de_situation, category):
        first = enforce_legal_constraints(candidate(category, 100, True, 100_00), de_situation)
        second = enforce_legal_constraints(first.classification, de_situation)
        assert second.violations == []


class TestJurisdictionRules:
    def test_at_vat_recovery(self, at_situation):
        rules = get_tax_rules("AT")
        assert rules.calculate_vat_recovery(DeductibleCategory.MEALS, at_situation).recoverable
        assert not rules.calculate_vat_recovery(DeductibleCategory.GIFTS, at_situation, 50_00).recoverable
        telecom = rules.calculate_vat_recovery(DeductibleCategory.TELECOM, at_situation)
        assert telecom.percent == 60

    def test_income_tax_percent(self, at_situation, de_situation):
        at, de = get_tax_rules("AT"), get_tax_rules("DE")
        assert at.calculate_income_tax_percent(DeductibleCategory.MEALS, at_situation).percent == 50
        assert at.calculate_income_tax_percent(DeductibleCategory.TELECOM, at_situation).percent == 60
        assert de.calculate_income_tax_percent(DeductibleCategory.MEALS, de_situation).percent == 70
        assert de.calculate_income_tax_percent(DeductibleCategory.GIFTS, de_situation, 36_00).percent == 0
        assert de.calculate_income_tax_percent(DeductibleCategory.GIFTS, de_situation, 35_00).percent == 100

    def test_at_ten_percent_rule(self):
        issues = get_tax_rules("AT").validate_allocations([Allocation("a", 95), Allocation("b", 5)])
        assert [i.code for i in issues] == ["AT_10_PERCENT_RULE"]

    def test_de_has_no_ten_percent_rule(self):
        assert get_tax_rules("DE").validate_allocations([Allocation("a", 95), Allocation("b", 5)]) == []

    def test_at_home_office(self):
        rules = get_tax_rules("AT")
        assert rules.home_office_deduction_cents(HomeOfficeMode.FLAT_RATE_FULL) == 1_200_00
        assert rules.home_office_deduction_cents(HomeOfficeMode.FLAT_RATE_REDUCED) == 300_00

    def test_de_imputed_income(self, de_situation):
        car = replace(de_situation, has_company_vehicle=True, vehicle_list_price_cents=45_000_00)
        assert get_tax_rules("DE").calculate_imputed_income(car, 2025, 3).amount_cents == 450_00
        assert get_tax_rules("AT").calculate_imputed_income(car, 2025, 3).amount_cents == 0

    def test_thresholds(self):
        assert get_tax_rules("AT").small_business_threshold_cents() == 55_000_00
        assert get_tax_rules("DE").small_business_threshold_cents() == 100_000_00

    def test_prompt_instructions_mention_meals(self, at_situation, de_situation):
        assert "50%" in get_tax_rules("AT").get_prompt_instructions(at_situation)
        assert "70%" in get_tax_rules("DE").get_prompt_instructions(de_situation)

    def test_format_violations(self, at_situation):
        assert format_violations([]) == "No legal constraint violations"
        result = enforce_legal_constraints(candidate(DeductibleCategory.MEALS), at_situation)
        assert "50%" in format_violations(result.violations)
