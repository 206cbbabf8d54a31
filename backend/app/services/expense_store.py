"""
Expense persistence.

Reads and writes the classification and allocation fields of the expense row
keyed by (expense_id, account). Writes go through explicit update structs;
batch operations run in a single transaction.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.anomaly import VendorHistory
from app.core.categories import DeductibleCategory
from app.core.errors import ExpenseNotFoundError
from app.core.reclassification import (
    AffectedExpenses,
    DateRange,
    ReclassificationNeeded,
    detect_reclassification,
)
from app.core.records import CLASSIFIED_STATUSES, AssignmentStatus, ExpenseRecord
from app.core.situations import TaxConfig
from app.core.vendors import extract_domain
from app.models.base import utcnow
from app.models.expense import Expense

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5


@dataclass(frozen=True)
class ClassificationUpdate:
    category: DeductibleCategory
    reason: str
    income_tax_percent: int | None
    vat_recoverable: bool | None
    needs_review: bool
    confidence: str
    situation_id: int | None
    situation_hash: str | None


@dataclass(frozen=True)
class AllocationUpdate:
    income_source_id: str | None
    allocation_json: str
    assignment_status: AssignmentStatus
    assignment_metadata: str


@dataclass(frozen=True)
class SituationHashUpdate:
    expense_id: str
    situation_hash: str | None
    situation_id: int | None = None


@contextmanager
def transaction(session: Session):
    """Commit on success, roll back and re-raise on failure."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


# ── Reads ──

def get_expense(session: Session, expense_id: str, account: str) -> Expense:
    expense = session.get(Expense, (expense_id, account))
    if expense is None:
        raise ExpenseNotFoundError(expense_id, account)
    return expense


def to_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=expense.id,
        account=expense.account,
        sender=expense.sender,
        sender_domain=expense.sender_domain or extract_domain(expense.sender),
        subject=expense.subject,
        snippet=expense.snippet,
        invoice_date=expense.invoice_date,
        invoice_amount_cents=expense.invoice_amount_cents,
        assignment_status=expense.assignment_status,
        allocation_json=expense.allocation_json,
        income_source_id=expense.income_source_id,
    )


def _classified(account: str):
    return select(Expense).where(
        Expense.account == account,
        Expense.status.in_(CLASSIFIED_STATUSES),
        Expense.invoice_date.is_not(None),
    )


def list_classified_expenses(
    session: Session, account: str, date_range: DateRange | None = None
) -> list[Expense]:
    query = _classified(account)
    if date_range is not None:
        query = query.where(
            Expense.invoice_date >= date_range.start,
            Expense.invoice_date <= date_range.end,
        )
    return list(session.execute(query.order_by(Expense.invoice_date, Expense.id)).scalars())


def get_vendor_history(
    session: Session,
    account: str,
    sender_domain: str | None,
    exclude_expense_id: str | None = None,
) -> VendorHistory:
    if not sender_domain:
        return VendorHistory()

    conditions = [
        Expense.account == account,
        Expense.sender_domain == sender_domain,
        Expense.status.in_(CLASSIFIED_STATUSES),
    ]
    if exclude_expense_id is not None:
        conditions.append(Expense.id != exclude_expense_id)

    count, total, avg = session.execute(
        select(
            func.count(Expense.id),
            func.sum(Expense.invoice_amount_cents),
            func.avg(Expense.invoice_amount_cents),
        ).where(*conditions)
    ).one()
    if not count:
        return VendorHistory()

    last_category = session.execute(
        select(Expense.deductible)
        .where(*conditions, Expense.deductible.is_not(None))
        .order_by(Expense.invoice_date.desc(), Expense.updated_at.desc())
        .limit(1)
    ).scalar_one_or_none()

    return VendorHistory(
        invoice_count=count,
        last_category=last_category,
        total_amount_cents=int(total or 0),
        avg_amount_cents=round(avg or 0),
    )


# ── Row writes (caller commits) ──

def apply_classification(expense: Expense, changes: ClassificationUpdate, now: datetime | None = None) -> None:
    expense.deductible = changes.category
    expense.deductible_reason = changes.reason
    expense.income_tax_percent = changes.income_tax_percent
    expense.vat_recoverable = changes.vat_recoverable
    expense.needs_review = changes.needs_review
    expense.confidence = changes.confidence
    expense.situation_id = changes.situation_id
    expense.situation_hash = changes.situation_hash
    expense.last_classified_at = now or utcnow()


def apply_allocation(expense: Expense, changes: AllocationUpdate) -> None:
    expense.income_source_id = changes.income_source_id
    expense.allocation_json = changes.allocation_json
    expense.assignment_status = changes.assignment_status
    expense.assignment_metadata = changes.assignment_metadata


# ── Reclassification ──

def detect_reclassification_needed(
    session: Session,
    account: str,
    config: TaxConfig,
    date_range: DateRange | None = None,
) -> list[ReclassificationNeeded]:
    return detect_reclassification(config, list_classified_expenses(session, account, date_range))


def mark_for_reclassification(session: Session, account: str, expense_ids: list[str]) -> int:
    """Clear the stored fingerprint so the next run treats the expenses as never classified."""
    if not expense_ids:
        return 0
    with transaction(session):
        result = session.execute(
            update(Expense)
            .where(Expense.account == account, Expense.id.in_(expense_ids))
            .values(situation_hash=None, updated_at=utcnow())
        )
    logger.info("Marked %d expense(s) for reclassification in %s", result.rowcount, account)
    return result.rowcount


def mark_date_range_for_reclassification(session: Session, account: str, start: date, end: date) -> int:
    with transaction(session):
        result = session.execute(
            update(Expense)
            .where(
                Expense.account == account,
                Expense.status.in_(CLASSIFIED_STATUSES),
                Expense.invoice_date >= start,
                Expense.invoice_date <= end,
            )
            .values(situation_hash=None, updated_at=utcnow())
        )
    logger.info("Marked %d expense(s) between %s and %s for reclassification", result.rowcount, start, end)
    return result.rowcount


def count_affected_expenses(
    session: Session, account: str, valid_from: date, valid_to: date | None = None
) -> AffectedExpenses:
    """Expenses a situation covering [valid_from, valid_to) would affect."""
    query = _classified(account).where(Expense.invoice_date >= valid_from)
    if valid_to is not None:
        query = query.where(Expense.invoice_date < valid_to)
    expenses = list(session.execute(query.order_by(Expense.invoice_date, Expense.id)).scalars())

    if not expenses:
        return AffectedExpenses(count=0)
    return AffectedExpenses(
        count=len(expenses),
        date_range=DateRange(start=expenses[0].invoice_date, end=expenses[-1].invoice_date),
        samples=[
            {"id": e.id, "subject": e.subject, "invoice_date": e.invoice_date.isoformat()}
            for e in expenses[:SAMPLE_SIZE]
        ],
    )


def update_situation_hash(
    session: Session,
    account: str,
    expense_id: str,
    situation_hash: str | None,
    situation_id: int | None = None,
) -> None:
    with transaction(session):
        expense = get_expense(session, expense_id, account)
        expense.situation_hash = situation_hash
        expense.situation_id = situation_id


def update_situation_hash_batch(session: Session, account: str, updates: list[SituationHashUpdate]) -> int:
    """All or nothing: an unknown expense id rolls back every update in the batch."""
    with transaction(session):
        for item in updates:
            expense = get_expense(session, item.expense_id, account)
            expense.situation_hash = item.situation_hash
            expense.situation_id = item.situation_id
    return len(updates)
