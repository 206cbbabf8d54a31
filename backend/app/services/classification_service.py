"""
Full classification run for one expense: resolve the situation for the
invoice date, validate the classifier's suggestion, allocate to income
sources, persist the result and append a history entry, all in one
transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.core.allocation import (
    AllocationInput,
    AllocationResult,
    AllocationSource,
    allocate_expense,
    assignment_status_for,
    build_assignment_metadata,
    get_primary_source_id,
    normalize_allocations,
    serialize_allocations,
    serialize_assignment_metadata,
)
from app.core.fingerprint import compute_fingerprint, context_for_date
from app.core.pipeline import ValidatedClassification, ValidationOptions, validate_classification
from app.core.records import CLASSIFIED_STATUSES, ClassifierSuggestion, ExpenseStatus
from app.core.situations import TaxConfig
from app.models.base import utcnow
from app.models.history import ClassificationTrigger
from app.services.expense_store import (
    AllocationUpdate,
    ClassificationUpdate,
    apply_allocation,
    apply_classification,
    get_expense,
    get_vendor_history,
    to_record,
    transaction,
)
from app.services.history import append_history

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationOutcome:
    expense_id: str
    account: str
    covered: bool
    situation_id: int | None = None
    fingerprint: str | None = None
    validated: ValidatedClassification | None = None
    allocation: AllocationResult | None = None


def options_from_settings(settings: Settings | None = None) -> ValidationOptions:
    settings = settings or get_settings()
    return ValidationOptions(
        apply_force_overrides=settings.APPLY_FORCE_OVERRIDES,
        review_on_legal_violation=settings.REVIEW_ON_LEGAL_VIOLATION,
        check_anomalies=settings.CHECK_ANOMALIES,
    )


def classify_and_allocate(
    session: Session,
    config: TaxConfig,
    expense_id: str,
    account: str,
    suggestion: ClassifierSuggestion,
    trigger: ClassificationTrigger = ClassificationTrigger.INITIAL,
    options: ValidationOptions | None = None,
    now: datetime | None = None,
) -> ClassificationOutcome:
    expense = get_expense(session, expense_id, account)
    if expense.invoice_date is None:
        logger.info("Expense %s has no invoice date; skipped", expense_id)
        return ClassificationOutcome(expense_id=expense_id, account=account, covered=False)

    context = context_for_date(config, expense.invoice_date)
    if context is None:
        logger.info("No situation covers %s for expense %s", expense.invoice_date, expense_id)
        return ClassificationOutcome(expense_id=expense_id, account=account, covered=False)

    situation = context.situation
    fingerprint = compute_fingerprint(context)
    record = to_record(expense)

    history = get_vendor_history(session, account, expense.sender_domain, exclude_expense_id=expense.id)
    validated = validate_classification(
        record, suggestion, situation, account, options or options_from_settings(), history
    )
    allocation = allocate_expense(
        config,
        AllocationInput(
            expense=record,
            category=validated.category,
            suggested_source_id=suggestion.suggested_source_id,
            is_split_candidate=suggestion.is_split_candidate,
        ),
    )

    timestamp = now or utcnow()
    allocations = normalize_allocations(list(allocation.allocations))
    allocation_json = serialize_allocations(allocations)

    with transaction(session):
        apply_classification(expense, ClassificationUpdate(
            category=validated.category,
            reason=validated.reason,
            income_tax_percent=validated.income_tax_percent,
            vat_recoverable=validated.vat_recoverable,
            needs_review=validated.needs_review or allocation.source == AllocationSource.REVIEW_NEEDED,
            confidence=validated.confidence.value,
            situation_id=situation.id,
            situation_hash=fingerprint,
        ), now=timestamp)

        # A confirmed assignment belongs to the user and is left untouched
        if allocation.source != AllocationSource.MANUAL_OVERRIDE:
            apply_allocation(expense, AllocationUpdate(
                income_source_id=get_primary_source_id(allocations),
                allocation_json=allocation_json,
                assignment_status=assignment_status_for(allocation.source),
                assignment_metadata=serialize_assignment_metadata(
                    build_assignment_metadata(allocation, now=timestamp)
                ),
            ))

        if expense.status not in CLASSIFIED_STATUSES:
            expense.status = ExpenseStatus.EXTRACTED

        append_history(
            session,
            expense_id=expense.id,
            account=account,
            trigger=trigger,
            category=validated.category,
            income_tax_percent=validated.income_tax_percent,
            vat_recoverable=validated.vat_recoverable,
            situation_hash=fingerprint,
            situation_id=situation.id,
            income_source_id=expense.income_source_id,
            allocation_json=expense.allocation_json,
            classified_at=timestamp,
        )

    logger.info(
        "Classified %s (%s): %s via %s",
        expense_id, account, validated.category.value, allocation.source.value,
    )
    return ClassificationOutcome(
        expense_id=expense_id,
        account=account,
        covered=True,
        situation_id=situation.id,
        fingerprint=fingerprint,
        validated=validated,
        allocation=allocation,
    )
