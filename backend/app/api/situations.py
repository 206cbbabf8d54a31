"""
Situation API routes.
Fingerprints and validates configuration snapshots sent in the request body,
and describes the supported jurisdictions.
"""

from dataclasses import asdict

from fastapi import APIRouter

from app.api.deps import http_errors
from app.core.fingerprint import compute_fingerprint, context_for_date
from app.core.situation_config import validate_config
from app.core.tax_rules.registry import describe_jurisdiction, supported_jurisdictions
from app.schemas.schemas import FingerprintRequest, FingerprintResponse, TaxConfigSchema

router = APIRouter()


@router.post("/fingerprint", response_model=FingerprintResponse)
async def fingerprint(data: FingerprintRequest):
    """Fingerprint of the situation context that applies on a date."""
    with http_errors():
        context = context_for_date(data.config.to_domain(), data.on_date)
        if context is None:
            return FingerprintResponse(on_date=data.on_date, covered=False)
        return FingerprintResponse(
            on_date=data.on_date,
            covered=True,
            situation_id=context.situation.id,
            fingerprint=compute_fingerprint(context),
        )


@router.post("/validate")
async def validate(data: TaxConfigSchema):
    """Validate a configuration snapshot. Overlaps are errors, gaps are warnings."""
    with http_errors():
        return asdict(validate_config(data.to_domain()))


@router.get("/jurisdictions")
async def list_jurisdictions():
    return {"jurisdictions": supported_jurisdictions()}


@router.get("/jurisdictions/{code}")
async def get_jurisdiction(code: str):
    """Thresholds, fixed deduction percentages and display labels for a jurisdiction."""
    with http_errors():
        return asdict(describe_jurisdiction(code))
