"""
Situation Store
Time-bound tax configurations ("situations") and income sources, resolved
against an explicit configuration snapshot.

Intervals are half-open: a situation or income source covers every date d with
valid_from <= d < valid_to. A missing valid_to means "ongoing".

Resolution is a pure function of (snapshot, date). Overlapping situations in
the same jurisdiction are rejected when the configuration is written (see
app.core.situation_config); if a snapshot still contains an overlap, the most
recently added situation (highest id) wins and a warning is logged.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from app.core.categories import DeductibleCategory

logger = logging.getLogger(__name__)


class VatStatus(str, Enum):
    STANDARD = "standard"
    SMALL_BUSINESS_EXEMPT = "small_business_exempt"


class VehicleType(str, Enum):
    ICE = "ice"
    ELECTRIC = "electric"
    HYBRID_PLUGIN = "hybrid_plugin"
    HYBRID = "hybrid"


class HomeOfficeMode(str, Enum):
    FLAT_RATE_FULL = "flat_rate_full"
    FLAT_RATE_REDUCED = "flat_rate_reduced"
    DAILY_RATE = "daily_rate"
    ACTUAL = "actual"
    NONE = "none"


class IncomeCategory(str, Enum):
    SELF_EMPLOYMENT = "self_employment"
    TRADE_BUSINESS = "trade_business"
    EMPLOYMENT = "employment"
    RENTAL = "rental"
    AGRICULTURE_FORESTRY = "agriculture_forestry"


@dataclass
class Situation:
    id: int
    valid_from: date
    valid_to: date | None
    jurisdiction: str
    vat_status: VatStatus = VatStatus.STANDARD
    has_company_vehicle: bool = False
    vehicle_type: VehicleType | None = None
    vehicle_business_percent: int = 0
    telecom_business_percent: int = 50
    internet_business_percent: int = 50
    home_office: HomeOfficeMode = HomeOfficeMode.NONE
    vehicle_name: str | None = None
    vehicle_list_price_cents: int | None = None
    notes: str | None = None

    @property
    def is_small_business_exempt(self) -> bool:
        return self.vat_status == VatStatus.SMALL_BUSINESS_EXEMPT


@dataclass
class IncomeSource:
    id: str
    name: str
    category: IncomeCategory
    valid_from: date
    valid_to: date | None = None
    telecom_percent_override: int | None = None
    internet_percent_override: int | None = None
    vehicle_percent_override: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Allocation:
    source_id: str
    percent: int


@dataclass
class AllocationRule:
    id: str
    allocations: list[Allocation] = field(default_factory=list)
    vendor_domain: str | None = None
    vendor_pattern: str | None = None
    category: DeductibleCategory | None = None
    min_amount_cents: int | None = None

    def has_criteria(self) -> bool:
        return any((
            self.vendor_domain,
            self.vendor_pattern,
            self.category is not None,
            self.min_amount_cents is not None,
        ))


@dataclass
class TaxConfig:
    """Snapshot of the externally maintained tax configuration."""

    jurisdiction: str
    situations: list[Situation] = field(default_factory=list)
    income_sources: list[IncomeSource] = field(default_factory=list)
    allocation_rules: list[AllocationRule] = field(default_factory=list)
    category_defaults: dict[DeductibleCategory, str] = field(default_factory=dict)
    accounts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SituationContext:
    situation: Situation
    active_income_sources: tuple[IncomeSource, ...]


@dataclass(frozen=True)
class DateGap:
    valid_from: date
    valid_to: date


# ── Date helpers ──

def parse_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def is_date_in_range(on_date: date, valid_from: date, valid_to: date | None) -> bool:
    if on_date < valid_from:
        return False
    if valid_to is not None and on_date >= valid_to:
        return False
    return True


def intervals_overlap(
    a_from: date, a_to: date | None, b_from: date, b_to: date | None
) -> bool:
    a_starts_before_b_ends = b_to is None or a_from < b_to
    b_starts_before_a_ends = a_to is None or b_from < a_to
    return a_starts_before_b_ends and b_starts_before_a_ends


# ── Lookups ──

def resolve_situation(
    config: TaxConfig,
    on_date: date | str,
    jurisdiction: str | None = None,
) -> Situation | None:
    on_date = parse_date(on_date)
    candidates = [
        s for s in config.situations
        if is_date_in_range(on_date, s.valid_from, s.valid_to)
        and (jurisdiction is None or s.jurisdiction.upper() == jurisdiction.upper())
    ]
    if not candidates:
        return None
    if len(candidates) > 1:
        logger.warning(
            "Overlapping situations %s cover %s; using most recently added",
            [s.id for s in candidates],
            on_date.isoformat(),
        )
    return max(candidates, key=lambda s: s.id)


def active_income_sources(config: TaxConfig, on_date: date | str) -> list[IncomeSource]:
    on_date = parse_date(on_date)
    return [
        source for source in config.income_sources
        if is_date_in_range(on_date, source.valid_from, source.valid_to)
    ]


def get_situation(config: TaxConfig, situation_id: int) -> Situation | None:
    return next((s for s in config.situations if s.id == situation_id), None)


def get_income_source(config: TaxConfig, source_id: str) -> IncomeSource | None:
    return next((s for s in config.income_sources if s.id == source_id), None)


def build_context(config: TaxConfig, on_date: date | str) -> SituationContext | None:
    situation = resolve_situation(config, on_date)
    if situation is None:
        return None
    return SituationContext(
        situation=situation,
        active_income_sources=tuple(active_income_sources(config, on_date)),
    )


# ── Interval analysis ──

def find_situation_overlaps(situations: list[Situation]) -> list[tuple[Situation, Situation]]:
    """Pairs of situations whose intervals intersect, whatever their jurisdiction."""
    overlaps = []
    ordered = sorted(situations, key=lambda s: (s.valid_from, s.id))
    for i, current in enumerate(ordered):
        for other in ordered[i + 1:]:
            if intervals_overlap(current.valid_from, current.valid_to, other.valid_from, other.valid_to):
                overlaps.append((current, other))
    return overlaps


def find_situation_gaps(situations: list[Situation]) -> list[DateGap]:
    if not situations:
        return []

    gaps = []
    ordered = sorted(situations, key=lambda s: s.valid_from)
    covered_until = ordered[0].valid_to
    for situation in ordered[1:]:
        if covered_until is None:
            break
        if situation.valid_from > covered_until:
            gaps.append(DateGap(valid_from=covered_until, valid_to=situation.valid_from))
        if situation.valid_to is None:
            covered_until = None
        else:
            covered_until = max(covered_until, situation.valid_to)
    return gaps


# ── Effective percentages ──

def effective_telecom_percent(situation: Situation, source: IncomeSource | None = None) -> int:
    if source is not None and source.telecom_percent_override is not None:
        return source.telecom_percent_override
    return situation.telecom_business_percent


def effective_internet_percent(situation: Situation, source: IncomeSource | None = None) -> int:
    if source is not None and source.internet_percent_override is not None:
        return source.internet_percent_override
    return situation.internet_business_percent


def effective_vehicle_percent(situation: Situation, source: IncomeSource | None = None) -> int:
    if source is not None and source.vehicle_percent_override is not None:
        return source.vehicle_percent_override
    return situation.vehicle_business_percent
