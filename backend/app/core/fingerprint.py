"""
Situation Fingerprint
A short hash over every classification-relevant field of the context that
applies on a date. A changed fingerprint means expenses on that date were
classified under a different configuration and should be reclassified.
"""

import hashlib
import json
from datetime import date

from app.core.situations import SituationContext, TaxConfig, build_context

FINGERPRINT_LENGTH = 16  # hex chars, 64 bits


def fingerprint_payload(context: SituationContext) -> dict:
    situation = context.situation
    return {
        "situation_id": situation.id,
        "vat_status": situation.vat_status.value,
        "has_company_vehicle": situation.has_company_vehicle,
        "vehicle_type": situation.vehicle_type.value if situation.vehicle_type else None,
        "vehicle_business_percent": situation.vehicle_business_percent,
        "telecom_business_percent": situation.telecom_business_percent,
        "internet_business_percent": situation.internet_business_percent,
        "home_office": situation.home_office.value,
        "jurisdiction": situation.jurisdiction.upper(),
        "income_source_ids": sorted(s.id for s in context.active_income_sources),
    }


def compute_fingerprint(context: SituationContext) -> str:
    canonical = json.dumps(fingerprint_payload(context), separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def context_for_date(config: TaxConfig, on_date: date | str) -> SituationContext | None:
    return build_context(config, on_date)


def fingerprint_for_date(config: TaxConfig, on_date: date | str) -> str | None:
    context = context_for_date(config, on_date)
    if context is None:
        return None
    return compute_fingerprint(context)
