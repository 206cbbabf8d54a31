"""
Allocation API routes.
"""

from dataclasses import asdict

from fastapi import APIRouter

from app.api.deps import http_errors
from app.core.allocation import (
    AllocationInput,
    allocate_expense,
    assignment_status_for,
    format_allocations,
    serialize_allocations,
)
from app.schemas.schemas import AllocateRequest

router = APIRouter()


@router.post("/allocate")
async def allocate(data: AllocateRequest):
    """Route an expense to one or more income sources."""
    with http_errors():
        config = data.config.to_domain()
        result = allocate_expense(
            config,
            AllocationInput(
                expense=data.expense.to_domain(),
                category=data.category,
                suggested_source_id=data.suggested_source_id,
                is_split_candidate=data.is_split_candidate,
            ),
        )
        return {
            **asdict(result),
            "assignment_status": assignment_status_for(result.source),
            "allocation_json": serialize_allocations(result.allocations),
            "display": format_allocations(list(result.allocations), config.income_sources),
        }
