"""
Configuration management for the Situation Store.

Every helper takes a TaxConfig snapshot and returns a new one; the input is
never mutated. Referencing an unknown id, adding a duplicate, or creating an
overlapping situation raises a ConfigurationError subclass immediately.
"""

import copy
import logging
import re
import uuid
from dataclasses import dataclass, field, fields, replace

from app.core.categories import DeductibleCategory
from app.core.errors import (
    ConfigurationError,
    DuplicateIncomeSourceError,
    IncomeSourceNotFoundError,
    InvalidAllocationRuleError,
    SituationNotFoundError,
    SituationOverlapError,
)
from app.core.situations import (
    AllocationRule,
    IncomeSource,
    Situation,
    TaxConfig,
    find_situation_gaps,
    find_situation_overlaps,
    get_income_source,
    get_situation,
)
from app.core.tax_rules.base import ValidationIssue
from app.core.tax_rules.registry import get_tax_rules, is_supported, supported_jurisdictions

logger = logging.getLogger(__name__)


@dataclass
class ConfigValidationResult:
    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)


def _copy(config: TaxConfig) -> TaxConfig:
    return copy.deepcopy(config)


def _check_fields(kind: type, changes: dict) -> None:
    unknown = sorted(set(changes) - {f.name for f in fields(kind)})
    if unknown:
        raise ConfigurationError(f"Unknown {kind.__name__} field(s): {', '.join(unknown)}")


def _check_dates(situation: Situation) -> None:
    if situation.valid_to is not None and situation.valid_to <= situation.valid_from:
        raise ConfigurationError(
            f"Situation {situation.id}: valid_to {situation.valid_to} must be after valid_from {situation.valid_from}"
        )


def _check_no_overlap(situations: list[Situation], candidate: Situation) -> None:
    others = [s for s in situations if s.id != candidate.id]
    for first, second in find_situation_overlaps(others + [candidate]):
        if candidate.id in (first.id, second.id):
            other = second if first.id == candidate.id else first
            raise SituationOverlapError(
                f"Situation {candidate.id} ({candidate.valid_from} - {candidate.valid_to or 'ongoing'}) "
                f"overlaps with situation {other.id} "
                f"({other.jurisdiction} {other.valid_from} - {other.valid_to or 'ongoing'})",
                situation_ids=(candidate.id, other.id),
            )


# ── Situations ──

def add_situation(config: TaxConfig, situation: Situation) -> TaxConfig:
    """Append a situation; its id is assigned as max(existing ids) + 1."""
    new_config = _copy(config)
    next_id = max((s.id for s in new_config.situations), default=0) + 1
    added = replace(copy.deepcopy(situation), id=next_id)

    _check_dates(added)
    _check_no_overlap(new_config.situations, added)

    new_config.situations.append(added)
    logger.info("Added situation %d (%s from %s)", added.id, added.jurisdiction, added.valid_from)
    return new_config


def update_situation(config: TaxConfig, situation_id: int, **changes) -> TaxConfig:
    if get_situation(config, situation_id) is None:
        raise SituationNotFoundError(situation_id)
    if "id" in changes:
        raise ConfigurationError("Situation id cannot be changed")
    _check_fields(Situation, changes)

    new_config = _copy(config)
    index = next(i for i, s in enumerate(new_config.situations) if s.id == situation_id)
    updated = replace(new_config.situations[index], **changes)

    _check_dates(updated)
    _check_no_overlap(new_config.situations, updated)

    new_config.situations[index] = updated
    return new_config


def remove_situation(config: TaxConfig, situation_id: int) -> TaxConfig:
    if get_situation(config, situation_id) is None:
        raise SituationNotFoundError(situation_id)
    new_config = _copy(config)
    new_config.situations = [s for s in new_config.situations if s.id != situation_id]
    logger.info("Removed situation %d", situation_id)
    return new_config


# ── Income sources ──

def add_income_source(config: TaxConfig, source: IncomeSource) -> TaxConfig:
    if get_income_source(config, source.id) is not None:
        raise DuplicateIncomeSourceError(source.id)
    new_config = _copy(config)
    new_config.income_sources.append(copy.deepcopy(source))
    return new_config


def update_income_source(config: TaxConfig, source_id: str, **changes) -> TaxConfig:
    if get_income_source(config, source_id) is None:
        raise IncomeSourceNotFoundError(source_id)
    if "id" in changes and changes["id"] != source_id:
        raise ConfigurationError("Income source id cannot be changed")
    _check_fields(IncomeSource, changes)

    new_config = _copy(config)
    index = next(i for i, s in enumerate(new_config.income_sources) if s.id == source_id)
    new_config.income_sources[index] = replace(new_config.income_sources[index], **changes)
    return new_config


def remove_income_source(config: TaxConfig, source_id: str) -> TaxConfig:
    """Remove a source and every reference to it; rules left without allocations are dropped."""
    if get_income_source(config, source_id) is None:
        raise IncomeSourceNotFoundError(source_id)

    new_config = _copy(config)
    new_config.income_sources = [s for s in new_config.income_sources if s.id != source_id]
    new_config.category_defaults = {
        category: default for category, default in new_config.category_defaults.items()
        if default != source_id
    }

    kept_rules = []
    for rule in new_config.allocation_rules:
        rule.allocations = [a for a in rule.allocations if a.source_id != source_id]
        if rule.allocations:
            kept_rules.append(rule)
        else:
            logger.info("Dropped allocation rule %s: no allocations left after removing %s", rule.id, source_id)
    new_config.allocation_rules = kept_rules
    return new_config


def set_category_default(
    config: TaxConfig, category: DeductibleCategory, source_id: str | None
) -> TaxConfig:
    new_config = _copy(config)
    if source_id is None:
        new_config.category_defaults.pop(category, None)
        return new_config
    if get_income_source(config, source_id) is None:
        raise IncomeSourceNotFoundError(source_id)
    new_config.category_defaults[category] = source_id
    return new_config


# ── Allocation rules ──

def validate_allocation_rule(config: TaxConfig, rule: AllocationRule) -> list[ValidationIssue]:
    issues = []
    prefix = f"allocation_rules.{rule.id or 'new'}"

    if not rule.has_criteria():
        issues.append(ValidationIssue(
            field=prefix,
            message="Rule must have at least one matching criterion",
            code="RULE_NO_CRITERIA",
        ))
    if rule.vendor_pattern:
        try:
            re.compile(rule.vendor_pattern)
        except re.error as e:
            issues.append(ValidationIssue(
                field=f"{prefix}.vendor_pattern",
                message=f"Invalid regular expression: {e}",
                code="RULE_INVALID_PATTERN",
            ))
    if not rule.allocations:
        issues.append(ValidationIssue(
            field=f"{prefix}.allocations",
            message="Rule must allocate to at least one income source",
            code="RULE_NO_ALLOCATIONS",
        ))

    known = {s.id for s in config.income_sources}
    for alloc in rule.allocations:
        if alloc.source_id not in known:
            issues.append(ValidationIssue(
                field=f"{prefix}.allocations.{alloc.source_id}",
                message=f"Unknown income source: {alloc.source_id}",
                code="INVALID_SOURCE_ID",
            ))

    if is_supported(config.jurisdiction):
        for issue in get_tax_rules(config.jurisdiction).validate_allocations(rule.allocations):
            issues.append(replace(issue, field=f"{prefix}.{issue.field}"))
    return issues


def add_allocation_rule(config: TaxConfig, rule: AllocationRule) -> TaxConfig:
    rule = copy.deepcopy(rule)
    if not rule.id:
        rule.id = f"rule_{uuid.uuid4().hex[:8]}"
    if any(r.id == rule.id for r in config.allocation_rules):
        raise InvalidAllocationRuleError(rule.id, "a rule with this id already exists")

    issues = validate_allocation_rule(config, rule)
    if issues:
        raise InvalidAllocationRuleError(rule.id, "; ".join(i.message for i in issues))

    new_config = _copy(config)
    new_config.allocation_rules.append(rule)
    return new_config


def remove_allocation_rule(config: TaxConfig, rule_id: str) -> TaxConfig:
    if not any(r.id == rule_id for r in config.allocation_rules):
        raise InvalidAllocationRuleError(rule_id, "not found")
    new_config = _copy(config)
    new_config.allocation_rules = [r for r in new_config.allocation_rules if r.id != rule_id]
    return new_config


# ── Whole-config validation ──

def validate_config(config: TaxConfig) -> ConfigValidationResult:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    if not is_supported(config.jurisdiction):
        errors.append(ValidationIssue(
            field="jurisdiction",
            message=(
                f"Unsupported jurisdiction: {config.jurisdiction}. "
                f"Supported: {', '.join(supported_jurisdictions())}"
            ),
            code="UNSUPPORTED_JURISDICTION",
        ))

    if not config.situations:
        warnings.append(ValidationIssue(
            field="situations",
            message="No situations configured; every expense will lack situation coverage",
            code="NO_SITUATIONS",
        ))

    for situation in config.situations:
        if not is_supported(situation.jurisdiction):
            errors.append(ValidationIssue(
                field=f"situations.{situation.id}.jurisdiction",
                message=f"Unsupported jurisdiction: {situation.jurisdiction}",
                code="UNSUPPORTED_JURISDICTION",
            ))
            continue
        rules = get_tax_rules(situation.jurisdiction)
        for issue in rules.validate_situation(situation):
            errors.append(replace(issue, field=f"situations.{situation.id}.{issue.field}"))

    for first, second in find_situation_overlaps(config.situations):
        errors.append(ValidationIssue(
            field=f"situations.{first.id}",
            message=f"Situation {first.id} overlaps with situation {second.id}",
            code="SITUATION_OVERLAP",
        ))

    for gap in find_situation_gaps(config.situations):
        warnings.append(ValidationIssue(
            field="situations",
            message=f"No situation covers {gap.valid_from} - {gap.valid_to}",
            code="SITUATION_GAP",
        ))

    seen_sources = set()
    source_rules = get_tax_rules(config.jurisdiction) if is_supported(config.jurisdiction) else None
    for source in config.income_sources:
        if source.id in seen_sources:
            errors.append(ValidationIssue(
                field=f"income_sources.{source.id}",
                message=f"Duplicate income source id: {source.id}",
                code="DUPLICATE_SOURCE_ID",
            ))
        seen_sources.add(source.id)
        if source_rules is not None:
            for issue in source_rules.validate_income_source(source):
                errors.append(replace(issue, field=f"income_sources.{source.id}.{issue.field}"))

    for rule in config.allocation_rules:
        errors.extend(validate_allocation_rule(config, rule))

    for category, source_id in config.category_defaults.items():
        if source_id not in seen_sources:
            errors.append(ValidationIssue(
                field=f"category_defaults.{category.value}",
                message=f"Unknown income source: {source_id}",
                code="INVALID_SOURCE_ID",
            ))

    return ConfigValidationResult(valid=not errors, errors=errors, warnings=warnings)
