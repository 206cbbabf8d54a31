"""
Cross-Validation with the Vendor Knowledge Base
Compares the classifier's category against known vendors to catch likely
mistakes. Never changes the classification; the pipeline turns
low-confidence disagreements into review reasons.
"""

import re
from dataclasses import dataclass
from enum import Enum

from app.core.categories import DeductibleCategory
from app.core.vendors import KNOWN_VENDORS, domain_matches, find_vendor


class CrossValidationMatch(str, Enum):
    AGREE = "agree"
    DISAGREE = "disagree"
    UNKNOWN_VENDOR = "unknown_vendor"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class CrossValidationResult:
    match: CrossValidationMatch
    category: DeductibleCategory
    vendor_db_category: DeductibleCategory | None
    vendor_name: str | None
    confidence: Confidence
    suggested_action: str | None = None


@dataclass(frozen=True)
class ForceOverride:
    category: DeductibleCategory
    reason: str


# Services that are never a business expense
PERSONAL_SERVICES = frozenset({
    "netflix.com",
    "spotify.com",
    "disneyplus.com",
    "hbomax.com",
    "primevideo.com",
    "tinder.com",
    "bumble.com",
    "fitinn.at",
    "mcfit.com",
    "johnreed.fitness",
})

# Services that are always a business expense
BUSINESS_SERVICES = frozenset({
    "github.com",
    "gitlab.com",
    "anthropic.com",
    "openai.com",
    "aws.amazon.com",
    "cloud.google.com",
    "azure.microsoft.com",
    "jetbrains.com",
    "figma.com",
    "1password.com",
    "notion.so",
    "linear.app",
    "slack.com",
    "zoom.us",
})

STREAMING_SUBJECT_PATTERNS = [
    re.compile(r"netflix", re.IGNORECASE),
    re.compile(r"spotify\s*(premium|family)?", re.IGNORECASE),
    re.compile(r"disney\+?", re.IGNORECASE),
    re.compile(r"hbo\s*max", re.IGNORECASE),
    re.compile(r"prime\s*video", re.IGNORECASE),
    re.compile(r"apple\s*(tv\+?|music)", re.IGNORECASE),
]

GROCERY_PATTERN = re.compile(r"\b(?:billa|spar|hofer|lidl|aldi|penny|merkur|interspar)\b", re.IGNORECASE)


def _in_service_list(domain: str, services: frozenset[str]) -> bool:
    return any(domain_matches(domain, service) for service in services)


def _crosses_personal_boundary(a: DeductibleCategory, b: DeductibleCategory) -> bool:
    def business(c):
        return c not in (DeductibleCategory.NONE, DeductibleCategory.UNCLEAR)

    return (a == DeductibleCategory.NONE and business(b)) or (b == DeductibleCategory.NONE and business(a))


def cross_validate(
    category: DeductibleCategory,
    vendor_domain: str | None,
    subject: str = "",
    body: str = "",
) -> CrossValidationResult:
    match = find_vendor(vendor_domain, subject, body)

    if match is None:
        if vendor_domain:
            domain = vendor_domain.lower()
            if _in_service_list(domain, PERSONAL_SERVICES) and category != DeductibleCategory.NONE:
                return CrossValidationResult(
                    match=CrossValidationMatch.DISAGREE,
                    category=category,
                    vendor_db_category=DeductibleCategory.NONE,
                    vendor_name=domain,
                    confidence=Confidence.LOW,
                    suggested_action=f'Personal service detected: classifier says "{category.value}", should be "none"',
                )
            if _in_service_list(domain, BUSINESS_SERVICES) and category == DeductibleCategory.NONE:
                return CrossValidationResult(
                    match=CrossValidationMatch.DISAGREE,
                    category=category,
                    vendor_db_category=DeductibleCategory.FULL,
                    vendor_name=domain,
                    confidence=Confidence.LOW,
                    suggested_action='Business service detected: classifier says "none", should be "full"',
                )
        return CrossValidationResult(
            match=CrossValidationMatch.UNKNOWN_VENDOR,
            category=category,
            vendor_db_category=None,
            vendor_name=None,
            confidence=Confidence.MEDIUM,
        )

    vendor_category = match.deductible
    if category == vendor_category:
        return CrossValidationResult(
            match=CrossValidationMatch.AGREE,
            category=category,
            vendor_db_category=vendor_category,
            vendor_name=match.name,
            confidence=Confidence.HIGH,
        )

    conflict = _crosses_personal_boundary(category, vendor_category)
    if conflict:
        action = (
            f'Personal/business conflict: classifier says "{category.value}", '
            f'vendor database says "{vendor_category.value}"'
        )
    else:
        action = (
            f'Minor disagreement: classifier says "{category.value}", '
            f'vendor database says "{vendor_category.value}"'
        )
    return CrossValidationResult(
        match=CrossValidationMatch.DISAGREE,
        category=category,
        vendor_db_category=vendor_category,
        vendor_name=match.name,
        confidence=Confidence.LOW if conflict else Confidence.MEDIUM,
        suggested_action=action,
    )


def get_force_override(vendor_domain: str | None, subject: str = "", body: str = "") -> ForceOverride | None:
    """Vendors whose category is never in doubt. Returns None when no override applies."""
    if not vendor_domain:
        return None
    domain = vendor_domain.lower()

    if _in_service_list(domain, PERSONAL_SERVICES):
        return ForceOverride(DeductibleCategory.NONE, f"Known personal service: {domain}")

    for pattern in STREAMING_SUBJECT_PATTERNS:
        if pattern.search(subject or ""):
            return ForceOverride(DeductibleCategory.NONE, "Streaming/entertainment service detected in subject")

    if GROCERY_PATTERN.search(subject or "") or GROCERY_PATTERN.search(domain):
        return ForceOverride(DeductibleCategory.NONE, "Supermarket/grocery detected")

    return None


def vendor_db_stats() -> dict:
    by_category = {category.value: 0 for category in DeductibleCategory}
    for category, vendors in KNOWN_VENDORS.items():
        by_category[category.value] = len(vendors)
    return {
        "total_vendors": sum(by_category.values()),
        "by_category": by_category,
    }
