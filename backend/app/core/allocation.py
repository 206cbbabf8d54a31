"""
Allocation Engine
Routes an expense to one or more income sources. First applicable tier wins:

  1. Manual override    a confirmed assignment is returned unchanged   (1.0)
  2. Allocation rule    first matching user rule, active sources only   (1.0)
  3. AI suggestion      classifier's proposed source, if active         (0.8)
  4. Category default   configured source for the final category        (0.7)
  5. Heuristic          exactly one active source                       (0.9)
     otherwise          review_needed, no allocation                    (0.0)

A split candidate with several active sources skips tiers 3 and 4 and goes
to review.

Results are never persisted as "confirmed"; only an explicit user action
promotes an allocation to a manual override.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from app.core.categories import DeductibleCategory
from app.core.errors import InvalidAllocationRuleError
from app.core.records import AssignmentStatus, ExpenseRecord
from app.core.situations import (
    Allocation,
    AllocationRule,
    IncomeSource,
    TaxConfig,
    active_income_sources,
)
from app.core.tax_rules.base import ValidationIssue
from app.core.tax_rules.registry import get_tax_rules

logger = logging.getLogger(__name__)

LOGIC_VERSION = "2.0.0"


class AllocationSource(str, Enum):
    MANUAL_OVERRIDE = "manual_override"
    ALLOCATION_RULE = "allocation_rule"
    AI_SUGGESTION = "ai_suggestion"
    CATEGORY_DEFAULT = "category_default"
    HEURISTIC_SINGLE_SOURCE = "heuristic_single_source"
    REVIEW_NEEDED = "review_needed"


ASSIGNMENT_STATUS_BY_SOURCE = {
    AllocationSource.MANUAL_OVERRIDE: AssignmentStatus.CONFIRMED,
    AllocationSource.ALLOCATION_RULE: AssignmentStatus.RULE_MATCH,
    AllocationSource.AI_SUGGESTION: AssignmentStatus.AI_SUGGESTED,
    AllocationSource.CATEGORY_DEFAULT: AssignmentStatus.CATEGORY_DEFAULT,
    AllocationSource.HEURISTIC_SINGLE_SOURCE: AssignmentStatus.HEURISTIC,
    AllocationSource.REVIEW_NEEDED: AssignmentStatus.MANUAL_REVIEW,
}


@dataclass(frozen=True)
class AllocationInput:
    expense: ExpenseRecord
    category: DeductibleCategory | None
    suggested_source_id: str | None = None
    is_split_candidate: bool = False


@dataclass(frozen=True)
class AllocationResult:
    allocations: tuple[Allocation, ...]
    source: AllocationSource
    confidence: float
    reason: str
    rule_id: str | None = None
    alternatives_considered: tuple[str, ...] = ()


@dataclass(frozen=True)
class AssignmentMetadata:
    source: AllocationSource
    confidence: float
    timestamp: str
    logic_version: str = LOGIC_VERSION
    rule_id: str | None = None
    alternatives_considered: list[str] = field(default_factory=list)


# ── Rule matching ──

def rule_matches(rule: AllocationRule, expense: ExpenseRecord, category: DeductibleCategory | None) -> bool:
    """All present criteria must hold; a rule without criteria never matches."""
    if not rule.has_criteria():
        return False

    if rule.vendor_domain:
        if not expense.sender_domain:
            return False
        if rule.vendor_domain.lower() not in expense.sender_domain.lower():
            return False

    if rule.vendor_pattern:
        text = " ".join(part for part in (expense.sender_domain, expense.subject, expense.sender) if part)
        try:
            matched = re.search(rule.vendor_pattern, text, re.IGNORECASE)
        except re.error as e:
            raise InvalidAllocationRuleError(rule.id, f"invalid vendor_pattern: {e}") from e
        if not matched:
            return False

    if rule.category is not None and category != rule.category:
        return False

    if rule.min_amount_cents is not None:
        if expense.invoice_amount_cents is None or expense.invoice_amount_cents < rule.min_amount_cents:
            return False

    return True


def find_matching_rule(
    rules: list[AllocationRule], expense: ExpenseRecord, category: DeductibleCategory | None
) -> AllocationRule | None:
    return next((rule for rule in rules if rule_matches(rule, expense, category)), None)


# ── Engine ──

def _manual_allocations(expense: ExpenseRecord) -> list[Allocation]:
    if expense.allocation_json:
        return parse_allocations(expense.allocation_json)
    if expense.income_source_id:
        return [Allocation(source_id=expense.income_source_id, percent=100)]
    return []


def allocate_expense(config: TaxConfig, allocation_input: AllocationInput) -> AllocationResult:
    expense = allocation_input.expense
    category = allocation_input.category

    # Tier 1: manual override
    if expense.assignment_status == AssignmentStatus.CONFIRMED:
        return AllocationResult(
            allocations=tuple(_manual_allocations(expense)),
            source=AllocationSource.MANUAL_OVERRIDE,
            confidence=1.0,
            reason="User confirmed allocation",
        )

    active = active_income_sources(config, expense.invoice_date) if expense.invoice_date else []
    active_ids = {s.id for s in active}
    by_id = {s.id: s for s in active}

    # Tier 2: allocation rule
    rule = find_matching_rule(config.allocation_rules, expense, category)
    if rule is not None:
        valid = [a for a in rule.allocations if a.source_id in active_ids]
        if valid and sum(a.percent for a in valid) <= 100:
            return AllocationResult(
                allocations=tuple(valid),
                source=AllocationSource.ALLOCATION_RULE,
                confidence=1.0,
                reason=f"Matched rule: {rule.id}",
                rule_id=rule.id,
            )
        if valid:
            logger.warning("Allocation rule %s allocates more than 100%%; skipped", rule.id)

    if allocation_input.is_split_candidate and len(active) > 1:
        return AllocationResult(
            allocations=(),
            source=AllocationSource.REVIEW_NEEDED,
            confidence=0.0,
            reason=f"Split across sources, assign shares manually: {', '.join(s.name for s in active)}",
            alternatives_considered=tuple(s.name for s in active),
        )

    # Tier 3: AI suggestion
    suggested = allocation_input.suggested_source_id
    if suggested and suggested in by_id:
        return AllocationResult(
            allocations=(Allocation(source_id=suggested, percent=100),),
            source=AllocationSource.AI_SUGGESTION,
            confidence=0.8,
            reason=f"AI suggested: {by_id[suggested].name}",
            alternatives_considered=tuple(s.id for s in active if s.id != suggested),
        )

    # Tier 4: category default
    if category is not None:
        default_id = config.category_defaults.get(category)
        if default_id and default_id in by_id:
            return AllocationResult(
                allocations=(Allocation(source_id=default_id, percent=100),),
                source=AllocationSource.CATEGORY_DEFAULT,
                confidence=0.7,
                reason=f"Category default: {category.value} -> {by_id[default_id].name}",
                alternatives_considered=tuple(s.id for s in active if s.id != default_id),
            )

    # Tier 5: heuristics
    if len(active) == 1:
        only = active[0]
        return AllocationResult(
            allocations=(Allocation(source_id=only.id, percent=100),),
            source=AllocationSource.HEURISTIC_SINGLE_SOURCE,
            confidence=0.9,
            reason=f"Only one active source: {only.name}",
        )

    if not active:
        reason = "No active income sources for this date"
    else:
        reason = f"Multiple sources active, manual review needed: {', '.join(s.name for s in active)}"
    return AllocationResult(
        allocations=(),
        source=AllocationSource.REVIEW_NEEDED,
        confidence=0.0,
        reason=reason,
        alternatives_considered=tuple(s.name for s in active),
    )


# ── Utilities ──

def validate_allocation(jurisdiction: str, allocations: list[Allocation]) -> list[ValidationIssue]:
    return get_tax_rules(jurisdiction).validate_allocations(allocations)


def normalize_allocations(allocations: list[Allocation]) -> list[Allocation]:
    """Drop zero entries and sort by percent, highest first."""
    return sorted((a for a in allocations if a.percent > 0), key=lambda a: a.percent, reverse=True)


def is_split_allocation(allocations: list[Allocation]) -> bool:
    return len([a for a in allocations if a.percent > 0]) > 1


def get_primary_source_id(allocations: list[Allocation]) -> str | None:
    if not allocations:
        return None
    return max(allocations, key=lambda a: a.percent).source_id


def format_allocations(allocations: list[Allocation], sources: list[IncomeSource]) -> str:
    if not allocations:
        return "Unassigned"
    names = {s.id: s.name for s in sources}
    parts = []
    for alloc in allocations:
        if alloc.percent <= 0:
            continue
        name = names.get(alloc.source_id, alloc.source_id)
        parts.append(name if alloc.percent == 100 else f"{name} ({alloc.percent}%)")
    return " / ".join(parts)


def serialize_allocations(allocations) -> str:
    return json.dumps([{"source_id": a.source_id, "percent": a.percent} for a in allocations])


def parse_allocations(raw: str | None) -> list[Allocation]:
    """Malformed or over-allocated JSON parses to an empty list."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
        allocations = [
            Allocation(source_id=str(item["source_id"]), percent=int(item["percent"]))
            for item in data
        ]
    except (ValueError, TypeError, KeyError) as e:
        logger.warning("Ignoring malformed allocation JSON: %s", e)
        return []

    if any(a.percent < 0 for a in allocations) or sum(a.percent for a in allocations) > 100:
        logger.warning("Ignoring allocation JSON outside 0-100%%: %s", raw)
        return []
    return allocations


def build_assignment_metadata(result: AllocationResult, now: datetime | None = None) -> AssignmentMetadata:
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return AssignmentMetadata(
        source=result.source,
        confidence=result.confidence,
        timestamp=timestamp,
        rule_id=result.rule_id,
        alternatives_considered=list(result.alternatives_considered),
    )


def serialize_assignment_metadata(metadata: AssignmentMetadata) -> str:
    return json.dumps({
        "source": metadata.source.value,
        "rule_id": metadata.rule_id,
        "confidence": metadata.confidence,
        "timestamp": metadata.timestamp,
        "alternatives_considered": metadata.alternatives_considered,
        "logic_version": metadata.logic_version,
    })


def parse_assignment_metadata(raw: str | None) -> AssignmentMetadata | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
        return AssignmentMetadata(
            source=AllocationSource(data["source"]),
            confidence=float(data["confidence"]),
            timestamp=str(data["timestamp"]),
            logic_version=str(data.get("logic_version", LOGIC_VERSION)),
            rule_id=data.get("rule_id"),
            alternatives_considered=list(data.get("alternatives_considered") or []),
        )
    except (ValueError, TypeError, KeyError) as e:
        logger.warning("Ignoring malformed assignment metadata: %s", e)
        return None


def assignment_status_for(source: AllocationSource) -> AssignmentStatus:
    return ASSIGNMENT_STATUS_BY_SOURCE[source]
