"""
Classification history API routes.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.schemas import HistoryEntryResponse
from app.services.history import list_history

router = APIRouter()


@router.get("/{account}/{expense_id}", response_model=list[HistoryEntryResponse])
def get_history(account: str, expense_id: str, db: Session = Depends(get_db)):
    """Every classification event for an expense, oldest first."""
    return list_history(db, account, expense_id)
