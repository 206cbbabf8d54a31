"""
Reclassification Detector
Compares the fingerprint stored on each classified expense with the
fingerprint of the configuration that applies today, and reports the
expenses whose classification is stale.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Protocol

from app.core.fingerprint import compute_fingerprint, context_for_date
from app.core.situations import TaxConfig, parse_date


class ReclassificationReason(str, Enum):
    SITUATION_CHANGED = "situation_changed"
    NEVER_CLASSIFIED = "never_classified"
    NO_SITUATION_COVERAGE = "no_situation_coverage"
    FORCE_RECLASSIFY = "force_reclassify"


class FingerprintedExpense(Protocol):
    id: str
    invoice_date: date | None
    situation_hash: str | None


@dataclass(frozen=True)
class ReclassificationNeeded:
    expense_id: str
    invoice_date: date
    stored_fingerprint: str | None
    new_fingerprint: str | None
    reason: ReclassificationReason


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date


@dataclass
class ReclassificationSummary:
    total: int
    by_reason: dict[ReclassificationReason, int] = field(default_factory=dict)
    date_range: DateRange | None = None


@dataclass
class AffectedExpenses:
    count: int
    date_range: DateRange | None = None
    samples: list[dict] = field(default_factory=list)


def check_expense(
    config: TaxConfig,
    expense_id: str,
    invoice_date: date | str,
    stored_fingerprint: str | None,
) -> ReclassificationNeeded | None:
    invoice_date = parse_date(invoice_date)
    context = context_for_date(config, invoice_date)

    if context is None:
        if stored_fingerprint is None:
            return None
        return ReclassificationNeeded(
            expense_id=expense_id,
            invoice_date=invoice_date,
            stored_fingerprint=stored_fingerprint,
            new_fingerprint=None,
            reason=ReclassificationReason.NO_SITUATION_COVERAGE,
        )

    current = compute_fingerprint(context)
    if stored_fingerprint is None:
        reason = ReclassificationReason.NEVER_CLASSIFIED
    elif stored_fingerprint != current:
        reason = ReclassificationReason.SITUATION_CHANGED
    else:
        return None

    return ReclassificationNeeded(
        expense_id=expense_id,
        invoice_date=invoice_date,
        stored_fingerprint=stored_fingerprint,
        new_fingerprint=current,
        reason=reason,
    )


def detect_reclassification(
    config: TaxConfig, expenses: Iterable[FingerprintedExpense]
) -> list[ReclassificationNeeded]:
    """Expenses without an invoice date are skipped."""
    needs = []
    for expense in expenses:
        if expense.invoice_date is None:
            continue
        need = check_expense(config, expense.id, expense.invoice_date, expense.situation_hash)
        if need is not None:
            needs.append(need)
    return needs


def summarize_reclassification_needs(needs: list[ReclassificationNeeded]) -> ReclassificationSummary:
    by_reason = {reason: 0 for reason in ReclassificationReason}
    for need in needs:
        by_reason[need.reason] += 1

    date_range = None
    if needs:
        dates = [n.invoice_date for n in needs]
        date_range = DateRange(start=min(dates), end=max(dates))

    return ReclassificationSummary(total=len(needs), by_reason=by_reason, date_range=date_range)
