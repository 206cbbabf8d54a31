"""
Jurisdiction contract.

Each country module implements TaxRules: deterministic legal constraint
enforcement, VAT recovery and income tax percentages per deductibility
category, configuration validation, and the instruction block handed to the
external classifier.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum

from app.core.categories import DeductibleCategory
from app.core.situations import (
    Allocation,
    HomeOfficeMode,
    IncomeCategory,
    IncomeSource,
    Situation,
    VatStatus,
)


class ViolationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    code: str


@dataclass(frozen=True)
class VatRecoveryResult:
    recoverable: bool
    percent: int
    reason: str


@dataclass(frozen=True)
class IncomeTaxResult:
    percent: int
    reason: str


@dataclass(frozen=True)
class ImputedIncomeResult:
    amount_cents: int
    reason: str


@dataclass(frozen=True)
class ClassificationCandidate:
    category: DeductibleCategory
    income_tax_percent: int | None
    vat_recoverable: bool | None
    amount_cents: int | None = None
    vendor_name: str | None = None


@dataclass(frozen=True)
class ConstraintViolation:
    field: str
    suggested_value: object
    corrected_value: object
    rule: str
    severity: ViolationSeverity
    legal_reference: str | None = None


@dataclass
class ConstraintResult:
    classification: ClassificationCandidate
    violations: list[ConstraintViolation] = field(default_factory=list)
    was_modified: bool = False


class CorrectionLog:
    """Applies corrections to a candidate and records each one as a violation."""

    def __init__(self, candidate: ClassificationCandidate):
        self.candidate = candidate
        self.violations: list[ConstraintViolation] = []

    def correct(
        self,
        field_name: str,
        corrected_value,
        rule: str,
        severity: ViolationSeverity,
        legal_reference: str | None = None,
    ) -> None:
        current = getattr(self.candidate, field_name)
        if current == corrected_value:
            return
        self.violations.append(ConstraintViolation(
            field=field_name,
            suggested_value=current,
            corrected_value=corrected_value,
            rule=rule,
            severity=severity,
            legal_reference=legal_reference,
        ))
        self.candidate = replace(self.candidate, **{field_name: corrected_value})

    def result(self) -> ConstraintResult:
        return ConstraintResult(
            classification=self.candidate,
            violations=list(self.violations),
            was_modified=bool(self.violations),
        )


class TaxRules(ABC):
    jurisdiction: str = ""
    jurisdiction_name: str = ""

    # ── Legal constraints ──

    @abstractmethod
    def enforce_legal_constraints(
        self, candidate: ClassificationCandidate, situation: Situation
    ) -> ConstraintResult:
        ...

    # ── Tax calculations ──

    @abstractmethod
    def calculate_vat_recovery(
        self,
        category: DeductibleCategory,
        situation: Situation,
        amount_cents: int | None = None,
    ) -> VatRecoveryResult:
        ...

    @abstractmethod
    def calculate_income_tax_percent(
        self,
        category: DeductibleCategory,
        situation: Situation,
        amount_cents: int | None = None,
    ) -> IncomeTaxResult:
        ...

    def calculate_imputed_income(self, situation: Situation, year: int, month: int) -> ImputedIncomeResult:
        return ImputedIncomeResult(amount_cents=0, reason="No imputed income")

    # ── Validation ──

    @abstractmethod
    def validate_allocations(self, allocations: list[Allocation]) -> list[ValidationIssue]:
        ...

    @abstractmethod
    def validate_situation(self, situation: Situation) -> list[ValidationIssue]:
        ...

    @abstractmethod
    def validate_income_source(self, source: IncomeSource) -> list[ValidationIssue]:
        ...

    # ── Defaults & constants ──

    @abstractmethod
    def fixed_percentages(self) -> dict[DeductibleCategory, int | None]:
        ...

    @abstractmethod
    def home_office_deduction_cents(self, mode: HomeOfficeMode) -> int:
        ...

    @abstractmethod
    def small_business_threshold_cents(self) -> int:
        ...

    # ── Display & classifier prompts ──

    @abstractmethod
    def income_category_labels(self) -> dict[IncomeCategory, str]:
        ...

    @abstractmethod
    def vat_status_labels(self) -> dict[VatStatus, str]:
        ...

    @abstractmethod
    def home_office_labels(self) -> dict[HomeOfficeMode, str]:
        ...

    @abstractmethod
    def get_prompt_instructions(self, situation: Situation) -> str:
        ...

    # ── Shared validation helpers ──

    def _validate_total(self, allocations: list[Allocation]) -> list[ValidationIssue]:
        issues = []
        total = sum(a.percent for a in allocations)
        if total > 100:
            issues.append(ValidationIssue(
                field="allocations",
                message=f"Total allocation is {total}%, cannot exceed 100%",
                code="ALLOCATION_EXCEEDS_100",
            ))
        for alloc in allocations:
            if alloc.percent < 0 or alloc.percent > 100:
                issues.append(ValidationIssue(
                    field=f"allocations.{alloc.source_id}",
                    message=f"Allocation must be between 0% and 100%, got {alloc.percent}%",
                    code="INVALID_PERCENT",
                ))
        return issues

    def _validate_interval(self, valid_from, valid_to, to_field: str) -> list[ValidationIssue]:
        if valid_to is not None and valid_to <= valid_from:
            return [ValidationIssue(
                field=to_field,
                message="End date must be after start date",
                code="INVALID_DATE_RANGE",
            )]
        return []
