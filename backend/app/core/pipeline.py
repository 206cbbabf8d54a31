"""
Classification Pipeline
Validates the external classifier's suggestion in a fixed, single pass:

  0. Force override      known personal services, streaming, groceries
  1. Legal constraints   jurisdiction rules correct the tax treatment
  2. Cross-validation    compare against the vendor knowledge base
  3. Anomaly detection   optional, flags suspicious patterns

Each stage may only add corrections or flags; none undoes an earlier stage.
"""

import logging
from dataclasses import dataclass, field

from app.core.anomaly import (
    AnomalyCandidate,
    AnomalyFlag,
    AnomalySeverity,
    VendorHistory,
    check_for_anomalies,
)
from app.core.categories import DeductibleCategory, deductibility_label
from app.core.cross_validate import (
    Confidence,
    CrossValidationMatch,
    CrossValidationResult,
    ForceOverride,
    cross_validate,
    get_force_override,
)
from app.core.legal_constraints import (
    ClassificationCandidate,
    ConstraintViolation,
    ViolationSeverity,
    enforce_legal_constraints,
)
from app.core.records import ClassifierSuggestion, ExpenseRecord
from app.core.situations import Situation
from app.core.tax_rules.registry import get_tax_rules

logger = logging.getLogger(__name__)

_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


def _at_most(current: Confidence, ceiling: Confidence) -> Confidence:
    return min(current, ceiling, key=_CONFIDENCE_RANK.__getitem__)


@dataclass
class ValidationOptions:
    apply_force_overrides: bool = True
    # Legal corrections are applied automatically; they only need review when asked
    review_on_legal_violation: bool = False
    check_anomalies: bool = True


@dataclass(frozen=True)
class OriginalSuggestion:
    category: DeductibleCategory | None
    income_tax_percent: int | None
    vat_recoverable: bool | None
    reason: str | None


@dataclass(frozen=True)
class ValidatedClassification:
    category: DeductibleCategory
    income_tax_percent: int | None
    vat_recoverable: bool | None
    reason: str
    original: OriginalSuggestion
    legal_violations: tuple[ConstraintViolation, ...]
    cross_validation: CrossValidationResult
    anomalies: tuple[AnomalyFlag, ...]
    force_override: ForceOverride | None
    confidence: Confidence
    needs_review: bool
    review_reasons: tuple[str, ...]
    was_modified: bool


def validate_classification(
    expense: ExpenseRecord,
    suggestion: ClassifierSuggestion,
    situation: Situation,
    account: str,
    options: ValidationOptions | None = None,
    vendor_history: VendorHistory | None = None,
) -> ValidatedClassification:
    opts = options or ValidationOptions()
    subject = expense.subject or ""
    snippet = expense.snippet or ""
    amount_cents = expense.invoice_amount_cents

    was_modified = False
    review_reasons: list[str] = []

    category = suggestion.category or DeductibleCategory.UNCLEAR
    income_tax_percent = suggestion.income_tax_percent
    vat_recoverable = suggestion.vat_recoverable
    reason = suggestion.reason or ""

    # Stage 0: force override
    force_override = None
    if opts.apply_force_overrides:
        matched = get_force_override(expense.sender_domain, subject, snippet)
        # Only an override that changed the category is recorded
        if matched is not None and matched.category != category:
            force_override = matched
            category = force_override.category
            reason = force_override.reason
            was_modified = True
            if category == DeductibleCategory.NONE:
                income_tax_percent = 0
                vat_recoverable = False
            logger.debug("Force override for %s: %s", expense.id, force_override.reason)

    # Stage 1: legal constraints
    legal = enforce_legal_constraints(
        ClassificationCandidate(
            category=category,
            income_tax_percent=income_tax_percent,
            vat_recoverable=vat_recoverable,
            amount_cents=amount_cents,
            vendor_name=suggestion.vendor_product,
        ),
        situation,
    )
    error_violations = [v for v in legal.violations if v.severity == ViolationSeverity.ERROR]
    if legal.was_modified:
        category = legal.classification.category
        income_tax_percent = legal.classification.income_tax_percent
        vat_recoverable = legal.classification.vat_recoverable
        was_modified = True
        for violation in error_violations:
            reason += f" [Corrected: {violation.rule}]"
        if opts.review_on_legal_violation:
            review_reasons.extend(f"Legal: {v.rule}" for v in error_violations)

    # Stage 2: cross-validation
    cross = cross_validate(category, expense.sender_domain, subject, snippet)
    if cross.match == CrossValidationMatch.DISAGREE and cross.confidence == Confidence.LOW:
        if cross.suggested_action:
            review_reasons.append(cross.suggested_action)

    # Stage 3: anomaly detection
    anomalies: list[AnomalyFlag] = []
    if opts.check_anomalies:
        expected_vat = None
        if category != DeductibleCategory.UNCLEAR:
            rules = get_tax_rules(situation.jurisdiction)
            expected_vat = rules.calculate_vat_recovery(category, situation, amount_cents).recoverable
        check = check_for_anomalies(
            AnomalyCandidate(
                category=category,
                amount_cents=amount_cents,
                vendor_product=suggestion.vendor_product,
                vat_recoverable=vat_recoverable,
            ),
            expense.sender_domain,
            vendor_history,
            expected_vat,
        )
        anomalies = check.flags
        review_reasons.extend(
            f.message for f in anomalies if f.severity == AnomalySeverity.REVIEW_REQUIRED
        )

    confidence = Confidence.HIGH
    if cross.match == CrossValidationMatch.UNKNOWN_VENDOR:
        confidence = _at_most(confidence, Confidence.MEDIUM)
    if cross.match == CrossValidationMatch.DISAGREE:
        confidence = _at_most(confidence, cross.confidence)
    if any(f.severity == AnomalySeverity.REVIEW_REQUIRED for f in anomalies):
        confidence = Confidence.LOW
    elif anomalies:
        confidence = _at_most(confidence, Confidence.MEDIUM)
    if error_violations and confidence == Confidence.LOW:
        confidence = Confidence.MEDIUM

    needs_review = bool(review_reasons) or category == DeductibleCategory.UNCLEAR

    logger.debug(
        "Validated %s for %s: %s (%s confidence, review=%s)",
        expense.id, account, category.value, confidence.value, needs_review,
    )

    return ValidatedClassification(
        category=category,
        income_tax_percent=income_tax_percent,
        vat_recoverable=vat_recoverable,
        reason=reason,
        original=OriginalSuggestion(
            category=suggestion.category,
            income_tax_percent=suggestion.income_tax_percent,
            vat_recoverable=suggestion.vat_recoverable,
            reason=suggestion.reason or None,
        ),
        legal_violations=tuple(legal.violations),
        cross_validation=cross,
        anomalies=tuple(anomalies),
        force_override=force_override,
        confidence=confidence,
        needs_review=needs_review,
        review_reasons=tuple(review_reasons),
        was_modified=was_modified,
    )


@dataclass
class ValidationSummary:
    total: int = 0
    modified: int = 0
    needs_review: int = 0
    by_confidence: dict[str, int] = field(default_factory=lambda: {c.value: 0 for c in Confidence})
    legal_violations: int = 0
    anomalies: int = 0
    force_overrides: int = 0


def summarize_validation(results: list[ValidatedClassification]) -> ValidationSummary:
    summary = ValidationSummary(total=len(results))
    for result in results:
        if result.was_modified:
            summary.modified += 1
        if result.needs_review:
            summary.needs_review += 1
        summary.by_confidence[result.confidence.value] += 1
        summary.legal_violations += len(result.legal_violations)
        summary.anomalies += len(result.anomalies)
        if result.force_override is not None:
            summary.force_overrides += 1
    return summary


def format_validation_result(result: ValidatedClassification) -> str:
    lines = [f"{deductibility_label(result.category)} ({result.confidence.value} confidence)"]
    if result.was_modified:
        lines.append("Classification modified by validation")
        if result.force_override is not None:
            lines.append(f"  - Force: {result.force_override.reason}")
        for v in result.legal_violations:
            if v.severity != ViolationSeverity.ERROR:
                continue
            lines.append(f"  - Legal: {v.rule}")
            if v.legal_reference:
                lines.append(f"    ({v.legal_reference})")

    if result.cross_validation.match == CrossValidationMatch.DISAGREE:
        lines.append(f"  - Vendor DB: {result.cross_validation.suggested_action}")

    for anomaly in result.anomalies:
        marker = "review" if anomaly.severity == AnomalySeverity.REVIEW_REQUIRED else "info"
        lines.append(f"  - [{marker}] {anomaly.message}")

    return "\n".join(lines)
