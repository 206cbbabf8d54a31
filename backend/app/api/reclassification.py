"""
Reclassification API routes.
Detects expenses whose stored fingerprint no longer matches the current
configuration, and marks expenses for another classification run.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_db, http_errors
from app.core.reclassification import DateRange, summarize_reclassification_needs
from app.schemas.schemas import (
    AffectedExpensesRequest,
    DetectReclassificationRequest,
    MarkReclassificationRequest,
    MarkReclassificationResponse,
)
from app.services.expense_store import (
    count_affected_expenses,
    detect_reclassification_needed,
    mark_date_range_for_reclassification,
    mark_for_reclassification,
)

router = APIRouter()


def _date_range(start, end) -> DateRange | None:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise HTTPException(status_code=400, detail="Both start and end are required for a date range")
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return DateRange(start=start, end=end)


@router.post("/detect")
def detect(data: DetectReclassificationRequest, db: Session = Depends(get_db)):
    """List stored expenses whose classification is stale."""
    date_range = _date_range(data.start, data.end)
    with http_errors():
        needs = detect_reclassification_needed(db, data.account, data.config.to_domain(), date_range)
        return {
            "expenses": [asdict(n) for n in needs],
            "summary": asdict(summarize_reclassification_needs(needs)),
        }


@router.post("/mark", response_model=MarkReclassificationResponse)
def mark(data: MarkReclassificationRequest, db: Session = Depends(get_db)):
    """Clear stored fingerprints by expense id or by invoice date range."""
    date_range = _date_range(data.start, data.end)
    if not data.expense_ids and date_range is None:
        raise HTTPException(status_code=400, detail="Provide expense_ids or a start/end date range")

    marked = 0
    if data.expense_ids:
        marked += mark_for_reclassification(db, data.account, data.expense_ids)
    if date_range is not None:
        marked += mark_date_range_for_reclassification(db, data.account, date_range.start, date_range.end)
    return MarkReclassificationResponse(account=data.account, marked=marked)


@router.post("/affected")
def affected(data: AffectedExpensesRequest, db: Session = Depends(get_db)):
    """Expenses a situation covering [valid_from, valid_to) would affect."""
    if data.valid_to is not None and data.valid_to <= data.valid_from:
        raise HTTPException(status_code=400, detail="valid_to must be after valid_from")
    return asdict(count_affected_expenses(db, data.account, data.valid_from, data.valid_to))
