"""
Classification History Log. Append-only: one row per classification event.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.categories import DeductibleCategory
from app.models.base import utcnow
from app.models.history import ClassificationHistory, ClassificationTrigger


def append_history(
    session: Session,
    expense_id: str,
    account: str,
    trigger: ClassificationTrigger,
    category: DeductibleCategory | None,
    income_tax_percent: int | None,
    vat_recoverable: bool | None,
    situation_hash: str | None,
    situation_id: int | None,
    income_source_id: str | None = None,
    allocation_json: str | None = None,
    classified_at: datetime | None = None,
) -> ClassificationHistory:
    entry = ClassificationHistory(
        expense_id=expense_id,
        account=account,
        trigger=trigger,
        category=category,
        income_tax_percent=income_tax_percent,
        vat_recoverable=vat_recoverable,
        situation_hash=situation_hash,
        situation_id=situation_id,
        income_source_id=income_source_id,
        allocation_json=allocation_json,
        classified_at=classified_at or utcnow(),
    )
    session.add(entry)
    return entry


def list_history(session: Session, account: str, expense_id: str) -> list[ClassificationHistory]:
    query = (
        select(ClassificationHistory)
        .where(ClassificationHistory.account == account, ClassificationHistory.expense_id == expense_id)
        .order_by(ClassificationHistory.classified_at, ClassificationHistory.id)
    )
    return list(session.execute(query).scalars())


def latest_history(session: Session, account: str, expense_id: str) -> ClassificationHistory | None:
    query = (
        select(ClassificationHistory)
        .where(ClassificationHistory.account == account, ClassificationHistory.expense_id == expense_id)
        .order_by(ClassificationHistory.classified_at.desc(), ClassificationHistory.id.desc())
        .limit(1)
    )
    return session.execute(query).scalar_one_or_none()
