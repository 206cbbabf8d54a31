"""
Classification API routes.
Validates classifier suggestions against the situation that applies on the
invoice date, and runs full classifications against stored expenses.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, http_errors
from app.core.pipeline import format_validation_result, validate_classification
from app.core.situations import resolve_situation
from app.schemas.schemas import ClassifyExpenseRequest, ValidateClassificationRequest
from app.services.classification_service import classify_and_allocate

router = APIRouter()


@router.post("/validate")
async def validate(data: ValidateClassificationRequest):
    """Run force overrides, legal constraints, cross-validation and anomaly checks."""
    with http_errors():
        config = data.config.to_domain()
        expense = data.expense.to_domain()
        situation = resolve_situation(config, expense.invoice_date) if expense.invoice_date else None
        if situation is None:
            return {"covered": False, "situation_id": None, "result": None}

        result = validate_classification(
            expense,
            data.suggestion.to_domain(),
            situation,
            expense.account,
            data.options.to_domain() if data.options else None,
            data.vendor_history.to_domain() if data.vendor_history else None,
        )
        return {
            "covered": True,
            "situation_id": situation.id,
            "result": asdict(result),
            "summary": format_validation_result(result),
        }


@router.post("/classify")
def classify(data: ClassifyExpenseRequest, db: Session = Depends(get_db)):
    """Classify and allocate a stored expense, persisting the result and a history entry."""
    with http_errors():
        outcome = classify_and_allocate(
            db,
            data.config.to_domain(),
            data.expense_id,
            data.account,
            data.suggestion.to_domain(),
            trigger=data.trigger,
            options=data.options.to_domain() if data.options else None,
        )
        return asdict(outcome)
