"""
Austrian Tax Rules
For sole proprietors (Einzelunternehmer), based on EStG and UStG as of 2025.

Key provisions:
  - §6 Abs 1 Z 27 UStG: small business exemption, no input VAT recovery
  - §12 Abs 2 Z 2 UStG: no input VAT on passenger cars, except zero-emission vehicles
  - §20 EStG: business meals 50% income tax deductible, VAT fully recoverable
  - 10% rule: business use shares must be 0% or at least 10%
  - Home office flat rate: €1,200 (no other workplace) or €300 (other workplace)
"""

from app.core.categories import DeductibleCategory
from app.core.situations import (
    Allocation,
    HomeOfficeMode,
    IncomeCategory,
    IncomeSource,
    Situation,
    VatStatus,
    VehicleType,
)
from app.core.tax_rules.base import (
    ClassificationCandidate,
    ConstraintResult,
    CorrectionLog,
    IncomeTaxResult,
    TaxRules,
    ValidationIssue,
    VatRecoveryResult,
    ViolationSeverity,
)

SMALL_BUSINESS_THRESHOLD_CENTS = 55_000_00
GIFT_VAT_LIMIT_CENTS = 40_00
MIN_BUSINESS_SHARE_PERCENT = 10

HOME_OFFICE_FLAT_RATE_CENTS = {
    HomeOfficeMode.FLAT_RATE_FULL: 1_200_00,
    HomeOfficeMode.FLAT_RATE_REDUCED: 300_00,
    HomeOfficeMode.ACTUAL: 0,
    HomeOfficeMode.NONE: 0,
    HomeOfficeMode.DAILY_RATE: 0,
}

FIXED_INCOME_TAX_PERCENT: dict[DeductibleCategory, int | None] = {
    DeductibleCategory.FULL: 100,
    DeductibleCategory.VEHICLE: 100,
    DeductibleCategory.MEALS: 50,
    DeductibleCategory.TELECOM: None,
    DeductibleCategory.PARTIAL: None,
    DeductibleCategory.GIFTS: 100,
    DeductibleCategory.NONE: 0,
    DeductibleCategory.UNCLEAR: None,
}


class AustrianTaxRules(TaxRules):
    """
    Deterministic Austrian rules. Legal constraints override whatever the
    external classifier suggested when it contradicts the law.
    """

    jurisdiction = "AT"
    jurisdiction_name = "Austria"

    def enforce_legal_constraints(
        self, candidate: ClassificationCandidate, situation: Situation
    ) -> ConstraintResult:
        log = CorrectionLog(candidate)
        exempt = situation.is_small_business_exempt
        category = candidate.category

        if exempt and log.candidate.vat_recoverable is True:
            log.correct(
                "vat_recoverable", False,
                "Small business exemption: no VAT recovery",
                ViolationSeverity.ERROR, "§6 Abs 1 Z 27 UStG",
            )

        if category == DeductibleCategory.VEHICLE:
            allow_vat = (
                situation.has_company_vehicle
                and situation.vehicle_type == VehicleType.ELECTRIC
                and not exempt
            )
            if log.candidate.vat_recoverable is True and not allow_vat:
                if situation.has_company_vehicle and situation.vehicle_type != VehicleType.ELECTRIC:
                    rule = "ICE/hybrid vehicle: no VAT recovery"
                else:
                    rule = "Vehicle expenses: no VAT recovery unless electric"
                log.correct("vat_recoverable", False, rule, ViolationSeverity.ERROR, "§12 Abs 2 Z 2 UStG")
            if log.candidate.income_tax_percent is not None:
                log.correct(
                    "income_tax_percent", 100,
                    "Vehicle expenses: 100% of business portion deductible",
                    ViolationSeverity.WARNING,
                )

        elif category == DeductibleCategory.MEALS:
            log.correct(
                "income_tax_percent", 50,
                "Business meals: 50% income tax deductibility",
                ViolationSeverity.ERROR, "§20 EStG",
            )
            if not exempt:
                log.correct(
                    "vat_recoverable", True,
                    "Business meals: 100% VAT recovery despite 50% income tax",
                    ViolationSeverity.WARNING,
                )

        elif category == DeductibleCategory.GIFTS:
            over_limit = candidate.amount_cents is not None and candidate.amount_cents > GIFT_VAT_LIMIT_CENTS
            if over_limit and log.candidate.vat_recoverable is True and not exempt:
                log.correct(
                    "vat_recoverable", False,
                    "Business gifts over €40: no VAT recovery",
                    ViolationSeverity.ERROR, "§12 Abs 2 Z 2 lit a UStG",
                )

        elif category == DeductibleCategory.NONE:
            if log.candidate.income_tax_percent is not None:
                log.correct(
                    "income_tax_percent", 0,
                    "Non-deductible category: 0% income tax",
                    ViolationSeverity.ERROR,
                )
            if log.candidate.vat_recoverable is not None:
                log.correct(
                    "vat_recoverable", False,
                    "Non-deductible category: no VAT recovery",
                    ViolationSeverity.ERROR,
                )

        elif category == DeductibleCategory.FULL:
            if log.candidate.income_tax_percent is not None:
                log.correct(
                    "income_tax_percent", 100,
                    "Full category: 100% income tax deductible",
                    ViolationSeverity.WARNING,
                )
            if not exempt:
                log.correct(
                    "vat_recoverable", True,
                    "Full category: VAT recoverable",
                    ViolationSeverity.WARNING,
                )

        elif category == DeductibleCategory.TELECOM:
            expected = situation.telecom_business_percent
            if log.candidate.income_tax_percent is not None:
                log.correct(
                    "income_tax_percent", expected,
                    f"Telecom: {expected}% business use (per configuration)",
                    ViolationSeverity.WARNING,
                )

        return log.result()

    def calculate_vat_recovery(
        self,
        category: DeductibleCategory,
        situation: Situation,
        amount_cents: int | None = None,
    ) -> VatRecoveryResult:
        if situation.is_small_business_exempt:
            return VatRecoveryResult(False, 0, "Small business exemption - no VAT recovery (§6 Abs 1 Z 27 UStG)")
        if category == DeductibleCategory.NONE:
            return VatRecoveryResult(False, 0, "Personal expense - not deductible")
        if category == DeductibleCategory.UNCLEAR:
            return VatRecoveryResult(False, 0, "Deductibility unclear - needs review")

        if category == DeductibleCategory.VEHICLE:
            if not situation.has_company_vehicle:
                return VatRecoveryResult(False, 0, "No company vehicle configured")
            if situation.vehicle_type == VehicleType.ELECTRIC:
                return VatRecoveryResult(True, 100, "Electric vehicle (0g CO2) - full VAT recovery allowed")
            if situation.vehicle_type == VehicleType.HYBRID_PLUGIN:
                return VatRecoveryResult(True, 50, "Plug-in hybrid - partial VAT recovery (consult a tax advisor)")
            return VatRecoveryResult(False, 0, "Passenger car - no VAT recovery (§12 Abs 2 Z 2b UStG)")

        if category == DeductibleCategory.TELECOM:
            percent = situation.telecom_business_percent
            return VatRecoveryResult(True, percent, f"Telecom - {percent}% business use")
        if category == DeductibleCategory.MEALS:
            return VatRecoveryResult(True, 100, "Business meals - 100% VAT recovery (§12 UStG)")
        if category == DeductibleCategory.GIFTS:
            if amount_cents is not None and amount_cents > GIFT_VAT_LIMIT_CENTS:
                return VatRecoveryResult(False, 0, "Gifts over €40 - no VAT recovery")
            return VatRecoveryResult(True, 100, "Advertising gifts - full VAT recovery")

        return VatRecoveryResult(True, 100, "Business expense - full VAT recovery")

    def calculate_income_tax_percent(
        self,
        category: DeductibleCategory,
        situation: Situation,
        amount_cents: int | None = None,
    ) -> IncomeTaxResult:
        if category == DeductibleCategory.FULL:
            return IncomeTaxResult(100, "Fully deductible business expense")
        if category == DeductibleCategory.VEHICLE:
            percent = situation.vehicle_business_percent
            return IncomeTaxResult(percent, f"Vehicle expense - {percent}% business use")
        if category == DeductibleCategory.MEALS:
            return IncomeTaxResult(50, "Business meals - 50% deductible (§20 Abs 1 Z 3 EStG)")
        if category == DeductibleCategory.TELECOM:
            percent = situation.telecom_business_percent
            return IncomeTaxResult(percent, f"Telecom - {percent}% business use")
        if category == DeductibleCategory.GIFTS:
            return IncomeTaxResult(100, "Advertising gifts - 100% deductible")
        if category == DeductibleCategory.PARTIAL:
            return IncomeTaxResult(50, "Partially deductible - 50% default")
        if category == DeductibleCategory.NONE:
            return IncomeTaxResult(0, "Personal expense - not deductible (§20 EStG)")
        return IncomeTaxResult(0, "Deductibility unclear - needs review")

    def validate_allocations(self, allocations: list[Allocation]) -> list[ValidationIssue]:
        issues = self._validate_total(allocations)
        for alloc in allocations:
            if 0 < alloc.percent < MIN_BUSINESS_SHARE_PERCENT:
                issues.append(ValidationIssue(
                    field=f"allocations.{alloc.source_id}",
                    message=(
                        f"Allocation of {alloc.percent}% violates the Austrian 10% rule. "
                        "Must be 0% or at least 10%."
                    ),
                    code="AT_10_PERCENT_RULE",
                ))
        return issues

    def _validate_share(self, field_name: str, value: int) -> list[ValidationIssue]:
        issues = []
        if 0 < value < MIN_BUSINESS_SHARE_PERCENT:
            issues.append(ValidationIssue(
                field=field_name,
                message=f"{field_name} of {value}% violates the Austrian 10% rule",
                code="AT_10_PERCENT_RULE",
            ))
        if value < 0 or value > 100:
            issues.append(ValidationIssue(
                field=field_name,
                message=f"{field_name} must be between 0% and 100%",
                code="INVALID_PERCENT",
            ))
        return issues

    def validate_situation(self, situation: Situation) -> list[ValidationIssue]:
        issues = self._validate_interval(situation.valid_from, situation.valid_to, "valid_to")

        issues += self._validate_share("vehicle_business_percent", situation.vehicle_business_percent)
        issues += self._validate_share("telecom_business_percent", situation.telecom_business_percent)
        issues += self._validate_share("internet_business_percent", situation.internet_business_percent)

        if situation.has_company_vehicle and situation.vehicle_type is None:
            issues.append(ValidationIssue(
                field="vehicle_type",
                message="Vehicle type is required when a company vehicle is configured",
                code="MISSING_VEHICLE_TYPE",
            ))
        if not situation.has_company_vehicle and situation.vehicle_business_percent > 0:
            issues.append(ValidationIssue(
                field="vehicle_business_percent",
                message="Vehicle business percent should be 0 without a company vehicle",
                code="INVALID_VEHICLE_CONFIG",
            ))
        if situation.home_office == HomeOfficeMode.DAILY_RATE:
            issues.append(ValidationIssue(
                field="home_office",
                message='Home office mode "daily_rate" is not available in Austria',
                code="INVALID_HOME_OFFICE_MODE",
            ))
        return issues

    def validate_income_source(self, source: IncomeSource) -> list[ValidationIssue]:
        issues = []
        if not source.id or not all(c.islower() or c.isdigit() or c == "_" for c in source.id):
            issues.append(ValidationIssue(
                field="id",
                message="ID must contain only lowercase letters, numbers, and underscores",
                code="INVALID_ID_FORMAT",
            ))
        if not source.name or not source.name.strip():
            issues.append(ValidationIssue(field="name", message="Name is required", code="MISSING_NAME"))
        issues += self._validate_interval(source.valid_from, source.valid_to, "valid_to")

        for field_name in ("telecom_percent_override", "internet_percent_override", "vehicle_percent_override"):
            value = getattr(source, field_name)
            if value is not None:
                issues += self._validate_share(field_name, value)
        return issues

    def fixed_percentages(self) -> dict[DeductibleCategory, int | None]:
        return dict(FIXED_INCOME_TAX_PERCENT)

    def home_office_deduction_cents(self, mode: HomeOfficeMode) -> int:
        return HOME_OFFICE_FLAT_RATE_CENTS.get(mode, 0)

    def small_business_threshold_cents(self) -> int:
        return SMALL_BUSINESS_THRESHOLD_CENTS

    def income_category_labels(self) -> dict[IncomeCategory, str]:
        return {
            IncomeCategory.SELF_EMPLOYMENT: "Selbständige Arbeit (Freiberufler)",
            IncomeCategory.TRADE_BUSINESS: "Gewerbebetrieb (Unternehmen)",
            IncomeCategory.EMPLOYMENT: "Nichtselbständige Arbeit (Angestellt)",
            IncomeCategory.RENTAL: "Vermietung und Verpachtung",
            IncomeCategory.AGRICULTURE_FORESTRY: "Land- und Forstwirtschaft",
        }

    def vat_status_labels(self) -> dict[VatStatus, str]:
        return {
            VatStatus.SMALL_BUSINESS_EXEMPT: "Kleinunternehmer (< €55k, keine USt)",
            VatStatus.STANDARD: "Regelbesteuert (USt-pflichtig)",
        }

    def home_office_labels(self) -> dict[HomeOfficeMode, str]:
        return {
            HomeOfficeMode.FLAT_RATE_FULL: "Pauschale €1.200/Jahr (kein anderer Arbeitsplatz)",
            HomeOfficeMode.FLAT_RATE_REDUCED: "Pauschale €300/Jahr (anderer Arbeitsplatz vorhanden)",
            HomeOfficeMode.ACTUAL: "Tatsächliche Kosten (eigenes Arbeitszimmer)",
            HomeOfficeMode.DAILY_RATE: "Tagespauschale (not valid in AT)",
            HomeOfficeMode.NONE: "Kein Home Office",
        }

    def get_prompt_instructions(self, situation: Situation) -> str:
        exempt = situation.is_small_business_exempt
        telecom = situation.telecom_business_percent
        vehicle_vat = self.calculate_vat_recovery(DeductibleCategory.VEHICLE, situation)

        if situation.has_company_vehicle:
            vehicle_line = f"- Company vehicle type: {situation.vehicle_type.value.upper() if situation.vehicle_type else 'UNKNOWN'}"
        else:
            vehicle_line = "- No company vehicle"
        vat_word = "NO" if exempt else "100%"

        return f"""
   IMPORTANT AUSTRIAN TAX RULES:
   - Income tax (EStG) and VAT (UStG) deductibility are SEPARATE
   {vehicle_line}
   - {vehicle_vat.reason}
   - Business meals: 50% income tax, {vat_word} VAT recovery

   Categories:
   - full: 100% income tax + {vat_word} VAT recovery
     * Software, cloud services, dev tools, hosting, domains
     * Professional services (accountant, legal), work hardware, education
   - vehicle: 100% income tax of business portion, {"WITH" if vehicle_vat.recoverable else "NO"} VAT recovery
     * Fuel, car service, car wash, tolls, vignette, parking, car insurance
   - meals: 50% income tax, {vat_word} VAT recovery
   - telecom: {telecom}% for both income tax and VAT (mobile, internet)
   - gifts: 100% deductible if advertising; no VAT recovery above €40
   - none: not deductible (streaming, groceries, personal care, fitness)
   - unclear: needs manual review (marketplaces, electronics stores, mixed use)
    """
