"""
Pydantic schemas for API request/response validation.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from app.config import get_settings
from app.core.anomaly import VendorHistory
from app.core.categories import DeductibleCategory
from app.core.pipeline import ValidationOptions
from app.core.records import AssignmentStatus, ClassifierSuggestion, ExpenseRecord
from app.core.situations import (
    Allocation,
    AllocationRule,
    HomeOfficeMode,
    IncomeCategory,
    IncomeSource,
    Situation,
    TaxConfig,
    VatStatus,
    VehicleType,
)
from app.core.vendors import extract_domain
from app.models.history import ClassificationTrigger


# ── Configuration Snapshot ──

class SituationSchema(BaseModel):
    id: int
    valid_from: date
    valid_to: date | None = None
    jurisdiction: str
    vat_status: VatStatus = VatStatus.STANDARD
    has_company_vehicle: bool = False
    vehicle_type: VehicleType | None = None
    vehicle_business_percent: int = 0
    telecom_business_percent: int = 50
    internet_business_percent: int = 50
    home_office: HomeOfficeMode = HomeOfficeMode.NONE
    vehicle_name: str | None = None
    vehicle_list_price_cents: int | None = Field(default=None, ge=0)
    notes: str | None = None

    def to_domain(self) -> Situation:
        return Situation(**self.model_dump())


class IncomeSourceSchema(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., max_length=255)
    category: IncomeCategory
    valid_from: date
    valid_to: date | None = None
    telecom_percent_override: int | None = None
    internet_percent_override: int | None = None
    vehicle_percent_override: int | None = None
    notes: str | None = None

    def to_domain(self) -> IncomeSource:
        return IncomeSource(**self.model_dump())


class AllocationSchema(BaseModel):
    source_id: str
    percent: int


class AllocationRuleSchema(BaseModel):
    id: str
    allocations: list[AllocationSchema] = []
    vendor_domain: str | None = None
    vendor_pattern: str | None = None
    category: DeductibleCategory | None = None
    min_amount_cents: int | None = Field(default=None, ge=0)

    def to_domain(self) -> AllocationRule:
        return AllocationRule(
            id=self.id,
            allocations=[Allocation(source_id=a.source_id, percent=a.percent) for a in self.allocations],
            vendor_domain=self.vendor_domain,
            vendor_pattern=self.vendor_pattern,
            category=self.category,
            min_amount_cents=self.min_amount_cents,
        )


class TaxConfigSchema(BaseModel):
    jurisdiction: str = Field(default_factory=lambda: get_settings().DEFAULT_JURISDICTION)
    situations: list[SituationSchema] = []
    income_sources: list[IncomeSourceSchema] = []
    allocation_rules: list[AllocationRuleSchema] = []
    category_defaults: dict[DeductibleCategory, str] = {}
    accounts: list[str] = []

    def to_domain(self) -> TaxConfig:
        return TaxConfig(
            jurisdiction=self.jurisdiction,
            situations=[s.to_domain() for s in self.situations],
            income_sources=[s.to_domain() for s in self.income_sources],
            allocation_rules=[r.to_domain() for r in self.allocation_rules],
            category_defaults=dict(self.category_defaults),
            accounts=list(self.accounts),
        )


# ── Expense / Suggestion Schemas ──

class ExpenseSchema(BaseModel):
    id: str
    account: str
    sender: str | None = None
    sender_domain: str | None = None
    subject: str | None = None
    snippet: str | None = None
    invoice_date: date | None = None
    invoice_amount_cents: int | None = None
    assignment_status: AssignmentStatus | None = None
    allocation_json: str | None = None
    income_source_id: str | None = None

    def to_domain(self) -> ExpenseRecord:
        values = self.model_dump()
        if not values["sender_domain"]:
            values["sender_domain"] = extract_domain(self.sender)
        return ExpenseRecord(**values)


class SuggestionSchema(BaseModel):
    category: DeductibleCategory | None = None
    income_tax_percent: int | None = Field(default=None, ge=0, le=100)
    vat_recoverable: bool | None = None
    reason: str = ""
    vendor_product: str | None = None
    suggested_source_id: str | None = None
    is_split_candidate: bool = False

    def to_domain(self) -> ClassifierSuggestion:
        return ClassifierSuggestion(**self.model_dump())


class ValidationOptionsSchema(BaseModel):
    apply_force_overrides: bool = True
    review_on_legal_violation: bool = False
    check_anomalies: bool = True

    def to_domain(self) -> ValidationOptions:
        return ValidationOptions(**self.model_dump())


class VendorHistorySchema(BaseModel):
    invoice_count: int = Field(default=0, ge=0)
    last_category: DeductibleCategory | None = None
    total_amount_cents: int = 0
    avg_amount_cents: int = 0

    def to_domain(self) -> VendorHistory:
        return VendorHistory(**self.model_dump())


# ── Request Schemas ──

class ValidateClassificationRequest(BaseModel):
    config: TaxConfigSchema
    expense: ExpenseSchema
    suggestion: SuggestionSchema
    options: ValidationOptionsSchema | None = None
    vendor_history: VendorHistorySchema | None = None


class ClassifyExpenseRequest(BaseModel):
    config: TaxConfigSchema
    expense_id: str
    account: str
    suggestion: SuggestionSchema
    trigger: ClassificationTrigger = ClassificationTrigger.INITIAL
    options: ValidationOptionsSchema | None = None


class AllocateRequest(BaseModel):
    config: TaxConfigSchema
    expense: ExpenseSchema
    category: DeductibleCategory | None = None
    suggested_source_id: str | None = None
    is_split_candidate: bool = False


class FingerprintRequest(BaseModel):
    config: TaxConfigSchema
    on_date: date


class DetectReclassificationRequest(BaseModel):
    config: TaxConfigSchema
    account: str
    start: date | None = None
    end: date | None = None


class MarkReclassificationRequest(BaseModel):
    account: str
    expense_ids: list[str] = []
    start: date | None = None
    end: date | None = None


class AffectedExpensesRequest(BaseModel):
    account: str
    valid_from: date
    valid_to: date | None = None


# ── Response Schemas ──

class FingerprintResponse(BaseModel):
    on_date: date
    covered: bool
    situation_id: int | None = None
    fingerprint: str | None = None


class MarkReclassificationResponse(BaseModel):
    account: str
    marked: int


class HistoryEntryResponse(BaseModel):
    id: int
    expense_id: str
    account: str
    classified_at: datetime
    trigger: ClassificationTrigger
    situation_hash: str | None = None
    situation_id: int | None = None
    category: DeductibleCategory | None = None
    income_tax_percent: int | None = None
    vat_recoverable: bool | None = None
    income_source_id: str | None = None
    allocation_json: str | None = None

    class Config:
        from_attributes = True
