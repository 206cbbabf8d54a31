"""
Inputs handed to the engine by its collaborators: the expense record as
stored, and the external classifier's suggestion for it.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from app.core.categories import DeductibleCategory


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    EXTRACTED = "extracted"
    DOWNLOADED = "downloaded"
    REVIEWED = "reviewed"
    FILED = "filed"
    MANUAL = "manual"


# Statuses of expenses that went through classification
CLASSIFIED_STATUSES = (
    ExpenseStatus.EXTRACTED,
    ExpenseStatus.DOWNLOADED,
    ExpenseStatus.REVIEWED,
    ExpenseStatus.FILED,
)


class AssignmentStatus(str, Enum):
    RULE_MATCH = "rule_match"
    AI_SUGGESTED = "ai_suggested"
    CATEGORY_DEFAULT = "category_default"
    HEURISTIC = "heuristic"
    MANUAL_REVIEW = "manual_review"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class ExpenseRecord:
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


@dataclass(frozen=True)
class ClassifierSuggestion:
    category: DeductibleCategory | None
    income_tax_percent: int | None = None
    vat_recoverable: bool | None = None
    reason: str = ""
    vendor_product: str | None = None
    suggested_source_id: str | None = None
    is_split_candidate: bool = False
