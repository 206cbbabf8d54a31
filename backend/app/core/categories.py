"""
Deductibility categories and their default tax treatment.

Income tax deductibility and VAT recovery are separate questions: a business
meal can be 50% income-tax deductible while its VAT is fully recoverable.
"""

from dataclasses import dataclass
from enum import Enum


class DeductibleCategory(str, Enum):
    FULL = "full"
    VEHICLE = "vehicle"
    MEALS = "meals"
    TELECOM = "telecom"
    GIFTS = "gifts"
    PARTIAL = "partial"
    NONE = "none"
    UNCLEAR = "unclear"


@dataclass(frozen=True)
class DeductibilityType:
    income_tax_percent: int | None
    vat_recoverable: bool | None
    label: str


DEDUCTIBILITY_DEFAULTS: dict[DeductibleCategory, DeductibilityType] = {
    DeductibleCategory.FULL: DeductibilityType(100, True, "Fully Deductible"),
    DeductibleCategory.VEHICLE: DeductibilityType(100, False, "Vehicle (no VAT)"),
    DeductibleCategory.MEALS: DeductibilityType(50, True, "Meals (50% income tax)"),
    DeductibleCategory.TELECOM: DeductibilityType(50, True, "Telecom (partial)"),
    DeductibleCategory.GIFTS: DeductibilityType(100, True, "Gifts"),
    DeductibleCategory.PARTIAL: DeductibilityType(50, True, "Partial"),
    DeductibleCategory.NONE: DeductibilityType(0, False, "Not Deductible"),
    DeductibleCategory.UNCLEAR: DeductibilityType(None, None, "Needs Review"),
}


def deductibility_label(category: DeductibleCategory) -> str:
    entry = DEDUCTIBILITY_DEFAULTS.get(category)
    return entry.label if entry else "Unknown"
