"""
German Tax Rules
For self-employed (Freiberufler) and trade businesses (Gewerbe), 2025.

Key provisions:
  - §19 UStG: small business (Kleinunternehmer), no input VAT recovery
  - §4 Abs 5 Nr 2 EStG: business meals 70% income tax deductible, VAT fully recoverable
  - §4 Abs 5 Nr 1 EStG / §15 Abs 1a UStG: gifts over €35 neither deductible nor VAT recoverable
  - §6 Abs 1 Nr 4 EStG: 1% rule, private use of a company car taxed as imputed income
  - Home office day rate: €6 per day (max. €1,260 per year)
"""

from app.core.categories import DeductibleCategory
from app.core.situations import (
    Allocation,
    HomeOfficeMode,
    IncomeCategory,
    IncomeSource,
    Situation,
    VatStatus,
)
from app.core.tax_rules.base import (
    ClassificationCandidate,
    ConstraintResult,
    CorrectionLog,
    ImputedIncomeResult,
    IncomeTaxResult,
    TaxRules,
    ValidationIssue,
    VatRecoveryResult,
    ViolationSeverity,
)

SMALL_BUSINESS_THRESHOLD_CENTS = 100_000_00
GIFT_LIMIT_CENTS = 35_00
HOME_OFFICE_DAY_RATE_CENTS = 6_00
HOME_OFFICE_ANNUAL_CAP_CENTS = 1_260_00
MEALS_INCOME_TAX_PERCENT = 70
IMPUTED_INCOME_RATE = 0.01

FIXED_INCOME_TAX_PERCENT: dict[DeductibleCategory, int | None] = {
    DeductibleCategory.FULL: 100,
    DeductibleCategory.VEHICLE: 100,
    DeductibleCategory.MEALS: MEALS_INCOME_TAX_PERCENT,
    DeductibleCategory.TELECOM: None,
    DeductibleCategory.PARTIAL: None,
    DeductibleCategory.GIFTS: 100,
    DeductibleCategory.NONE: 0,
    DeductibleCategory.UNCLEAR: None,
}


class GermanTaxRules(TaxRules):
    jurisdiction = "DE"
    jurisdiction_name = "Germany"

    def enforce_legal_constraints(
        self, candidate: ClassificationCandidate, situation: Situation
    ) -> ConstraintResult:
        log = CorrectionLog(candidate)
        category = candidate.category

        if situation.is_small_business_exempt and log.candidate.vat_recoverable is True:
            log.correct(
                "vat_recoverable", False,
                "Kleinunternehmer: no input VAT recovery",
                ViolationSeverity.ERROR, "§19 UStG",
            )

        if category == DeductibleCategory.MEALS:
            log.correct(
                "income_tax_percent", MEALS_INCOME_TAX_PERCENT,
                "Business meals: 70% income tax deductibility",
                ViolationSeverity.WARNING, "§4 Abs 5 Nr 2 EStG",
            )

        elif category == DeductibleCategory.GIFTS:
            if candidate.amount_cents is not None and candidate.amount_cents > GIFT_LIMIT_CENTS:
                log.correct(
                    "income_tax_percent", 0,
                    "Gifts over €35 are not deductible",
                    ViolationSeverity.ERROR, "§4 Abs 5 Nr 1 EStG",
                )
                log.correct(
                    "vat_recoverable", False,
                    "Gifts over €35: no input VAT recovery",
                    ViolationSeverity.ERROR, "§15 Abs 1a UStG",
                )

        elif category == DeductibleCategory.NONE:
            if log.candidate.income_tax_percent is not None:
                log.correct(
                    "income_tax_percent", 0,
                    "Non-deductible category: 0% income tax",
                    ViolationSeverity.ERROR, "§12 EStG",
                )
            if log.candidate.vat_recoverable is not None:
                log.correct(
                    "vat_recoverable", False,
                    "Non-deductible category: no VAT recovery",
                    ViolationSeverity.ERROR,
                )

        return log.result()

    def calculate_vat_recovery(
        self,
        category: DeductibleCategory,
        situation: Situation,
        amount_cents: int | None = None,
    ) -> VatRecoveryResult:
        if situation.is_small_business_exempt:
            return VatRecoveryResult(False, 0, "Kleinunternehmer (§19 UStG) - no VAT recovery")
        if category == DeductibleCategory.NONE:
            return VatRecoveryResult(False, 0, "Personal expense")
        if category == DeductibleCategory.UNCLEAR:
            return VatRecoveryResult(False, 0, "Deductibility unclear - needs review")

        if category == DeductibleCategory.VEHICLE:
            if situation.has_company_vehicle:
                return VatRecoveryResult(
                    True, 100,
                    "Company car (business asset) - 100% input VAT, private use taxed as output VAT",
                )
            return VatRecoveryResult(False, 0, "Private car - mileage allowance only (no VAT recovery)")

        if category == DeductibleCategory.MEALS:
            return VatRecoveryResult(True, 100, "Business meals - 100% VAT recovery (§15 UStG)")
        if category == DeductibleCategory.GIFTS:
            if amount_cents is not None and amount_cents > GIFT_LIMIT_CENTS:
                return VatRecoveryResult(False, 0, "Gift over €35 - no VAT recovery (§15 Abs 1a UStG)")
            return VatRecoveryResult(True, 100, "Gift up to €35 - full VAT recovery")
        if category == DeductibleCategory.TELECOM:
            percent = situation.telecom_business_percent
            return VatRecoveryResult(True, percent, f"Telecom - {percent}% business use")

        return VatRecoveryResult(True, 100, "Business expense")

    def calculate_income_tax_percent(
        self,
        category: DeductibleCategory,
        situation: Situation,
        amount_cents: int | None = None,
    ) -> IncomeTaxResult:
        if category == DeductibleCategory.FULL:
            return IncomeTaxResult(100, "Fully deductible")
        if category == DeductibleCategory.MEALS:
            return IncomeTaxResult(MEALS_INCOME_TAX_PERCENT, "Business meals - 70% deductible (§4 Abs 5 EStG)")
        if category == DeductibleCategory.GIFTS:
            if amount_cents is not None and amount_cents > GIFT_LIMIT_CENTS:
                return IncomeTaxResult(0, "Gift over €35 - not deductible (§4 Abs 5 EStG)")
            return IncomeTaxResult(100, "Gift up to €35 - fully deductible")
        if category == DeductibleCategory.VEHICLE:
            if situation.has_company_vehicle:
                return IncomeTaxResult(100, "Company car - 100% expense (private use taxed via 1% rule)")
            return IncomeTaxResult(0, "Private car - use mileage allowance instead of actual costs")
        if category == DeductibleCategory.TELECOM:
            return IncomeTaxResult(situation.telecom_business_percent, "Business portion")
        if category == DeductibleCategory.PARTIAL:
            return IncomeTaxResult(50, "Partially deductible - 50% default")
        if category == DeductibleCategory.NONE:
            return IncomeTaxResult(0, "Personal")
        return IncomeTaxResult(0, "Unknown")

    def calculate_imputed_income(self, situation: Situation, year: int, month: int) -> ImputedIncomeResult:
        if situation.has_company_vehicle and situation.vehicle_list_price_cents:
            monthly = round(situation.vehicle_list_price_cents * IMPUTED_INCOME_RATE)
            return ImputedIncomeResult(amount_cents=monthly, reason="1% rule (private use of company car)")
        return ImputedIncomeResult(amount_cents=0, reason="No imputed income")

    def validate_allocations(self, allocations: list[Allocation]) -> list[ValidationIssue]:
        return self._validate_total(allocations)

    def validate_situation(self, situation: Situation) -> list[ValidationIssue]:
        issues = self._validate_interval(situation.valid_from, situation.valid_to, "valid_to")
        if situation.home_office in (HomeOfficeMode.FLAT_RATE_FULL, HomeOfficeMode.FLAT_RATE_REDUCED):
            issues.append(ValidationIssue(
                field="home_office",
                message=(
                    f'Home office mode "{situation.home_office.value}" is Austria-specific. '
                    'Use "daily_rate" or "actual" for Germany.'
                ),
                code="INVALID_HOME_OFFICE_MODE",
            ))
        for field_name in ("vehicle_business_percent", "telecom_business_percent", "internet_business_percent"):
            value = getattr(situation, field_name)
            if value < 0 or value > 100:
                issues.append(ValidationIssue(
                    field=field_name,
                    message=f"{field_name} must be between 0% and 100%",
                    code="INVALID_PERCENT",
                ))
        return issues

    def validate_income_source(self, source: IncomeSource) -> list[ValidationIssue]:
        issues = []
        if not source.name or not source.name.strip():
            issues.append(ValidationIssue(field="name", message="Name is required", code="MISSING_NAME"))
        if source.category == IncomeCategory.EMPLOYMENT:
            issues.append(ValidationIssue(
                field="category",
                message=(
                    "Only self-employment and trade business income are supported for Germany; "
                    "employment income is not."
                ),
                code="DE_EMPLOYMENT_NOT_SUPPORTED",
            ))
        issues += self._validate_interval(source.valid_from, source.valid_to, "valid_to")
        return issues

    def fixed_percentages(self) -> dict[DeductibleCategory, int | None]:
        return dict(FIXED_INCOME_TAX_PERCENT)

    def home_office_deduction_cents(self, mode: HomeOfficeMode) -> int:
        # Per day for daily_rate; the annual cap is HOME_OFFICE_ANNUAL_CAP_CENTS
        if mode == HomeOfficeMode.DAILY_RATE:
            return HOME_OFFICE_DAY_RATE_CENTS
        return 0

    def small_business_threshold_cents(self) -> int:
        return SMALL_BUSINESS_THRESHOLD_CENTS

    def income_category_labels(self) -> dict[IncomeCategory, str]:
        return {
            IncomeCategory.SELF_EMPLOYMENT: "Selbständige Arbeit (Freiberufler)",
            IncomeCategory.TRADE_BUSINESS: "Gewerbebetrieb",
            IncomeCategory.EMPLOYMENT: "Nichtselbständige Arbeit (not supported)",
            IncomeCategory.RENTAL: "Vermietung und Verpachtung",
            IncomeCategory.AGRICULTURE_FORESTRY: "Land- und Forstwirtschaft",
        }

    def vat_status_labels(self) -> dict[VatStatus, str]:
        return {
            VatStatus.SMALL_BUSINESS_EXEMPT: "Kleinunternehmer (§19 UStG)",
            VatStatus.STANDARD: "Regelbesteuert",
        }

    def home_office_labels(self) -> dict[HomeOfficeMode, str]:
        return {
            HomeOfficeMode.DAILY_RATE: "Tagespauschale (€6/Tag)",
            HomeOfficeMode.ACTUAL: "Tatsächliche Kosten (Arbeitszimmer)",
            HomeOfficeMode.FLAT_RATE_FULL: "N/A (AT only)",
            HomeOfficeMode.FLAT_RATE_REDUCED: "N/A (AT only)",
            HomeOfficeMode.NONE: "Kein Home Office",
        }

    def get_prompt_instructions(self, situation: Situation) -> str:
        telecom = situation.telecom_business_percent
        if situation.has_company_vehicle:
            vehicle_line = "* Company car: 100% of expenses booked. Private use taxed via the 1% method."
        else:
            vehicle_line = "* Private car: use the mileage allowance (€0.30/km). Actual costs NOT deductible."

        return f"""
   IMPORTANT GERMAN TAX RULES (2025):
   - Income tax (EStG) and VAT (UStG) often differ
   - Kleinunternehmer: revenue previous year <= €25k, current year <= €100k. If so, NO VAT recovery.

   Categories:
   - full: 100% deductible + VAT recovery (unless Kleinunternehmer)
     * Software, hardware, professional services
   - meals: 70% income tax deductible, but 100% VAT recovery
   - gifts:
     * up to €35: 100% deductible + VAT recovery
     * over €35: 0% deductible + NO VAT recovery
   - vehicle:
     {vehicle_line}
   - telecom: {telecom}% business use
    """
