"""
Legal Constraint Enforcer
Deterministic post-classification correction. Whatever the external
classifier suggested, hard legal rules of the situation's jurisdiction are
applied on top and every correction is recorded as a violation.

Enforcement is idempotent: running it on its own output yields no further
violations for the same situation.
"""

import logging

from app.core.situations import Situation
from app.core.tax_rules.base import (
    ClassificationCandidate,
    ConstraintResult,
    ConstraintViolation,
    ViolationSeverity,
)
from app.core.tax_rules.registry import get_tax_rules

logger = logging.getLogger(__name__)

__all__ = [
    "ClassificationCandidate",
    "ConstraintResult",
    "ConstraintViolation",
    "ViolationSeverity",
    "enforce_legal_constraints",
    "has_errors",
    "format_violations",
]


def enforce_legal_constraints(
    candidate: ClassificationCandidate,
    situation: Situation,
    jurisdiction: str | None = None,
) -> ConstraintResult:
    rules = get_tax_rules(jurisdiction or situation.jurisdiction)
    result = rules.enforce_legal_constraints(candidate, situation)
    if result.was_modified:
        logger.debug(
            "%s legal constraints corrected %d field(s) for category %s",
            rules.jurisdiction,
            len(result.violations),
            candidate.category.value,
        )
    return result


def has_errors(violations: list[ConstraintViolation]) -> bool:
    return any(v.severity == ViolationSeverity.ERROR for v in violations)


def format_violations(violations: list[ConstraintViolation]) -> str:
    if not violations:
        return "No legal constraint violations"

    lines = []
    for v in violations:
        icon = "ERROR" if v.severity == ViolationSeverity.ERROR else "WARN"
        line = f"[{icon}] {v.field}: {v.suggested_value!r} -> {v.corrected_value!r} ({v.rule})"
        if v.legal_reference:
            line += f" [{v.legal_reference}]"
        lines.append(line)
    return "\n".join(lines)
