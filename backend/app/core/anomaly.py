"""
Anomaly Detection Engine
Flags classification results that look suspicious given the amount and the
account's history with the vendor.

Features:
  - High-value personal expenses
  - First invoices from a vendor with a high business amount
  - Category changes for recurring vendors
  - Amount outliers against the vendor's average
  - VAT claimed on vendors that typically carry none
  - VAT flag inconsistent with the jurisdiction's default
  - Very high round amounts
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from app.core.categories import DeductibleCategory


class AnomalySeverity(str, Enum):
    INFO = "info"
    REVIEW_REQUIRED = "review_required"


class AnomalyType(str, Enum):
    HIGH_AMOUNT_PERSONAL = "high_amount_personal"
    NEW_VENDOR_SUSPICIOUS = "new_vendor_suspicious"
    CATEGORY_CHANGE = "category_change"
    AMOUNT_OUTLIER = "amount_outlier"
    UNUSUAL_VAT = "unusual_vat"
    VAT_INCONSISTENT = "vat_inconsistent"
    ROUND_AMOUNT_HIGH_VALUE = "round_amount_high_value"


@dataclass
class AnomalyFlag:
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    message: str
    context: dict = field(default_factory=dict)


@dataclass
class AnomalyCheckResult:
    flags: list[AnomalyFlag] = field(default_factory=list)
    requires_review: bool = False


@dataclass(frozen=True)
class AnomalyCandidate:
    category: DeductibleCategory
    amount_cents: int | None
    vendor_product: str | None
    vat_recoverable: bool | None


@dataclass(frozen=True)
class VendorHistory:
    invoice_count: int = 0
    last_category: DeductibleCategory | None = None
    total_amount_cents: int = 0
    avg_amount_cents: int = 0


HIGH_AMOUNT_PERSONAL_CENTS = 200_00
FIRST_TIME_HIGH_THRESHOLD_CENTS = 500_00
VERY_HIGH_AMOUNT_CENTS = 2_000_00
ROUND_AMOUNT_STEP_CENTS = 100_00
MIN_INVOICES_FOR_PATTERN = 2
OUTLIER_FACTOR = 3

# Vendors/products that typically carry no VAT
NO_VAT_PATTERNS = [
    re.compile(r"insurance|versicherung", re.IGNORECASE),
    re.compile(r"bank.*fee|bankgebühr|kontoführung", re.IGNORECASE),
    re.compile(r"\brent\b|miete|pacht", re.IGNORECASE),
    re.compile(r"medical|arzt|apotheke|kranken", re.IGNORECASE),
    re.compile(r"\btax\b|steuer(?!berat)", re.IGNORECASE),
    re.compile(r"membership.*(?:gym|fitness)|fitnessstudio", re.IGNORECASE),
]


def _euros(cents: int) -> str:
    return f"€{cents / 100:,.2f}"


class AnomalyDetector:
    """
    Runs every check against one classification. Checks never change the
    classification; review_required flags become review reasons downstream.
    """

    def check_high_amount_personal(self, candidate: AnomalyCandidate) -> list[AnomalyFlag]:
        amount = candidate.amount_cents
        if candidate.category != DeductibleCategory.NONE or not amount or amount <= HIGH_AMOUNT_PERSONAL_CENTS:
            return []
        return [AnomalyFlag(
            anomaly_type=AnomalyType.HIGH_AMOUNT_PERSONAL,
            severity=AnomalySeverity.REVIEW_REQUIRED,
            message=f"High-value item ({_euros(amount)}) classified as personal. Verify this is correct.",
            context={"amount_cents": amount, "vendor": candidate.vendor_product, "threshold_cents": HIGH_AMOUNT_PERSONAL_CENTS},
        )]

    def check_new_vendor(
        self, candidate: AnomalyCandidate, sender_domain: str | None, history: VendorHistory
    ) -> list[AnomalyFlag]:
        amount = candidate.amount_cents
        if (
            history.invoice_count > 0
            or candidate.category != DeductibleCategory.FULL
            or not amount
            or amount <= FIRST_TIME_HIGH_THRESHOLD_CENTS
        ):
            return []
        return [AnomalyFlag(
            anomaly_type=AnomalyType.NEW_VENDOR_SUSPICIOUS,
            severity=AnomalySeverity.INFO,
            message=f"First invoice from this vendor with high value ({_euros(amount)}). Consider verifying business purpose.",
            context={"vendor": sender_domain, "amount_cents": amount, "threshold_cents": FIRST_TIME_HIGH_THRESHOLD_CENTS},
        )]

    def check_vendor_history(self, candidate: AnomalyCandidate, history: VendorHistory) -> list[AnomalyFlag]:
        if history.invoice_count < MIN_INVOICES_FOR_PATTERN:
            return []

        flags = []
        previous = history.last_category
        if (
            previous is not None
            and previous != candidate.category
            and DeductibleCategory.UNCLEAR not in (previous, candidate.category)
        ):
            flags.append(AnomalyFlag(
                anomaly_type=AnomalyType.CATEGORY_CHANGE,
                severity=AnomalySeverity.INFO,
                message=f'Category changed from "{previous.value}" to "{candidate.category.value}" for this vendor.',
                context={
                    "previous_category": previous.value,
                    "new_category": candidate.category.value,
                    "invoice_count": history.invoice_count,
                },
            ))

        amount = candidate.amount_cents
        avg = history.avg_amount_cents
        if amount and avg > 0 and (amount > avg * OUTLIER_FACTOR or amount * OUTLIER_FACTOR < avg):
            flags.append(AnomalyFlag(
                anomaly_type=AnomalyType.AMOUNT_OUTLIER,
                severity=AnomalySeverity.INFO,
                message=f"Amount {_euros(amount)} is far outside this vendor's average of {_euros(avg)}.",
                context={"amount_cents": amount, "avg_amount_cents": avg, "invoice_count": history.invoice_count},
            ))
        return flags

    def check_vat(
        self,
        candidate: AnomalyCandidate,
        sender_domain: str | None,
        expected_vat_recoverable: bool | None,
    ) -> list[AnomalyFlag]:
        flags = []
        vendor_text = f"{sender_domain or ''} {candidate.vendor_product or ''}"
        if candidate.vat_recoverable is True:
            matched = next((p for p in NO_VAT_PATTERNS if p.search(vendor_text)), None)
            if matched is not None:
                flags.append(AnomalyFlag(
                    anomaly_type=AnomalyType.UNUSUAL_VAT,
                    severity=AnomalySeverity.REVIEW_REQUIRED,
                    message=(
                        "VAT recovery claimed for vendor/product that typically has no VAT "
                        "(insurance, rent, medical, bank fees, taxes)"
                    ),
                    context={"vendor": vendor_text.strip(), "matched_pattern": matched.pattern},
                ))

        if (
            expected_vat_recoverable is not None
            and candidate.vat_recoverable is not None
            and candidate.vat_recoverable != expected_vat_recoverable
        ):
            flags.append(AnomalyFlag(
                anomaly_type=AnomalyType.VAT_INCONSISTENT,
                severity=AnomalySeverity.INFO,
                message=(
                    f"VAT recoverable is {candidate.vat_recoverable} but category "
                    f'"{candidate.category.value}" defaults to {expected_vat_recoverable}.'
                ),
                context={
                    "category": candidate.category.value,
                    "vat_recoverable": candidate.vat_recoverable,
                    "expected": expected_vat_recoverable,
                },
            ))
        return flags

    def check_round_amount(self, candidate: AnomalyCandidate) -> list[AnomalyFlag]:
        amount = candidate.amount_cents
        if not amount or amount <= VERY_HIGH_AMOUNT_CENTS or amount % ROUND_AMOUNT_STEP_CENTS != 0:
            return []
        return [AnomalyFlag(
            anomaly_type=AnomalyType.ROUND_AMOUNT_HIGH_VALUE,
            severity=AnomalySeverity.INFO,
            message=f"Very high round amount ({_euros(amount)}). Verify invoice authenticity.",
            context={"amount_cents": amount},
        )]

    def run_all_checks(
        self,
        candidate: AnomalyCandidate,
        sender_domain: str | None,
        vendor_history: VendorHistory | None = None,
        expected_vat_recoverable: bool | None = None,
    ) -> AnomalyCheckResult:
        history = vendor_history or VendorHistory()
        flags = []
        flags.extend(self.check_high_amount_personal(candidate))
        flags.extend(self.check_new_vendor(candidate, sender_domain, history))
        flags.extend(self.check_vendor_history(candidate, history))
        flags.extend(self.check_vat(candidate, sender_domain, expected_vat_recoverable))
        flags.extend(self.check_round_amount(candidate))
        return AnomalyCheckResult(
            flags=flags,
            requires_review=any(f.severity == AnomalySeverity.REVIEW_REQUIRED for f in flags),
        )


def check_for_anomalies(
    candidate: AnomalyCandidate,
    sender_domain: str | None,
    vendor_history: VendorHistory | None = None,
    expected_vat_recoverable: bool | None = None,
) -> AnomalyCheckResult:
    return AnomalyDetector().run_all_checks(candidate, sender_domain, vendor_history, expected_vat_recoverable)


def summarize_anomalies(flags: list[AnomalyFlag]) -> dict:
    by_type = {t.value: 0 for t in AnomalyType}
    total_info = 0
    total_review_required = 0
    for flag in flags:
        by_type[flag.anomaly_type.value] += 1
        if flag.severity == AnomalySeverity.REVIEW_REQUIRED:
            total_review_required += 1
        else:
            total_info += 1
    return {
        "by_type": by_type,
        "total_info": total_info,
        "total_review_required": total_review_required,
    }
