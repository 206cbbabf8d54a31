"""
Tests for the classification pipeline: force override, legal constraints,
cross-validation and anomaly detection in one pass.
"""

from datetime import date

import pytest

from app.core.anomaly import AnomalyType, VendorHistory
from app.core.categories import DeductibleCategory
from app.core.cross_validate import Confidence, CrossValidationMatch
from app.core.pipeline import (
    ValidationOptions,
    format_validation_result,
    summarize_validation,
    validate_classification,
)
from app.core.records import ClassifierSuggestion, ExpenseRecord

ACCOUNT = "me@example.com"


def expense(sender_domain, subject="Invoice", amount_cents=30_00, snippet=""):
    return ExpenseRecord(
        id="exp-1",
        account=ACCOUNT,
        sender=f"billing@{sender_domain}",
        sender_domain=sender_domain,
        subject=subject,
        snippet=snippet,
        invoice_date=date(2024, 6, 15),
        invoice_amount_cents=amount_cents,
    )


def suggestion(category, income_tax_percent=100, vat_recoverable=True, reason="Classifier says so"):
    return ClassifierSuggestion(
        category=category,
        income_tax_percent=income_tax_percent,
        vat_recoverable=vat_recoverable,
        reason=reason,
    )


NO_FORCE = ValidationOptions(apply_force_overrides=False)


class TestForceOverride:
    def test_streaming_forced_personal(self, situation_2024):
        result = validate_classification(
            expense("netflix.com", "Your Netflix membership", 15_99),
            suggestion(DeductibleCategory.FULL),
            situation_2024,
            ACCOUNT,
        )
        assert result.category == DeductibleCategory.NONE
        assert result.income_tax_percent == 0
        assert result.vat_recoverable is False
        assert result.was_modified
        assert result.force_override is not None
        assert result.legal_violations == ()
        assert result.cross_validation.match == CrossValidationMatch.AGREE
        assert result.confidence == Confidence.HIGH
        assert not result.needs_review
        assert result.original.category == DeductibleCategory.FULL

    def test_override_can_be_disabled(self, situation_2024):
        result = validate_classification(
            expense("netflix.com", amount_cents=15_99),
            suggestion(DeductibleCategory.FULL),
            situation_2024,
            ACCOUNT,
            NO_FORCE,
        )
        assert result.category == DeductibleCategory.FULL
        assert result.force_override is None
        assert result.confidence == Confidence.LOW
        assert result.needs_review

    def test_business_subject_with_grocery_substring(self, situation_2024):
        result = validate_classification(
            expense("hetzner.com", "Transparent pricing: your invoice", 12_34),
            suggestion(DeductibleCategory.FULL),
            situation_2024,
            ACCOUNT,
        )
        assert result.category == DeductibleCategory.FULL
        assert result.income_tax_percent == 100
        assert result.vat_recoverable is True
        assert result.force_override is None

    def test_matching_override_not_recorded(self, situation_2024):
        result = validate_classification(
            expense("netflix.com", "Your Netflix membership", 15_99),
            suggestion(DeductibleCategory.NONE, 0, False),
            situation_2024,
            ACCOUNT,
        )
        assert result.category == DeductibleCategory.NONE
        assert result.force_override is None
        assert not result.was_modified
        assert summarize_validation([result]).force_overrides == 0


class TestLegalStage:
    def test_ice_vehicle_vat_corrected(self, situation_2024):
        result = validate_classification(
            expense("fuel-station.at", "Tankstelle Rechnung", 60_00),
            suggestion(DeductibleCategory.VEHICLE),
            situation_2024,
            ACCOUNT,
        )
        assert result.vat_recoverable is False
        assert result.income_tax_percent == 100
        assert result.was_modified
        assert result.reason == "Classifier says so [Corrected: ICE/hybrid vehicle: no VAT recovery]"
        assert result.cross_validation.match == CrossValidationMatch.AGREE
        assert result.confidence == Confidence.HIGH
        assert not result.needs_review

    def test_legal_violation_review_opt_in(self, situation_2024):
        result = validate_classification(
            expense("fuel-station.at", "Tankstelle Rechnung", 60_00),
            suggestion(DeductibleCategory.VEHICLE),
            situation_2024,
            ACCOUNT,
            ValidationOptions(review_on_legal_violation=True),
        )
        assert result.needs_review
        assert result.review_reasons == ("Legal: ICE/hybrid vehicle: no VAT recovery",)

    def test_legal_error_raises_low_confidence(self, situation_2024):
        result = validate_classification(
            expense("johnreed.fitness"),
            suggestion(DeductibleCategory.MEALS),
            situation_2024,
            ACCOUNT,
            NO_FORCE,
        )
        assert result.income_tax_percent == 50
        assert result.cross_validation.confidence == Confidence.LOW
        assert result.confidence == Confidence.MEDIUM
        assert result.needs_review


class TestConfidence:
    def test_known_vendor_agrees(self, situation_2024):
        history = VendorHistory(invoice_count=3, last_category=DeductibleCategory.FULL, avg_amount_cents=30_00)
        result = validate_classification(
            expense("github.com"), suggestion(DeductibleCategory.FULL), situation_2024, ACCOUNT,
            vendor_history=history,
        )
        assert result.confidence == Confidence.HIGH
        assert result.anomalies == ()
        assert not result.was_modified

    def test_unknown_vendor_is_medium(self, situation_2024):
        result = validate_classification(
            expense("example.org"), suggestion(DeductibleCategory.FULL), situation_2024, ACCOUNT,
        )
        assert result.cross_validation.match == CrossValidationMatch.UNKNOWN_VENDOR
        assert result.confidence == Confidence.MEDIUM
        assert not result.needs_review

    def test_minor_disagreement_is_medium(self, situation_2024):
        result = validate_classification(
            expense("example.org", "Restaurant Zum Hirschen"),
            suggestion(DeductibleCategory.FULL),
            situation_2024,
            ACCOUNT,
        )
        assert result.confidence == Confidence.MEDIUM
        assert not result.needs_review

    def test_info_anomaly_caps_at_medium(self, situation_2024):
        result = validate_classification(
            expense("github.com", amount_cents=3_000_00), suggestion(DeductibleCategory.FULL), situation_2024, ACCOUNT,
        )
        assert AnomalyType.ROUND_AMOUNT_HIGH_VALUE in [a.anomaly_type for a in result.anomalies]
        assert result.confidence == Confidence.MEDIUM
        assert not result.needs_review

    def test_review_anomaly_is_low(self, situation_2024):
        result = validate_classification(
            expense("example.org", "Designer chair", 450_00),
            suggestion(DeductibleCategory.NONE, 0, False),
            situation_2024,
            ACCOUNT,
        )
        assert result.confidence == Confidence.LOW
        assert result.needs_review
        assert any("personal" in reason for reason in result.review_reasons)

    def test_anomalies_can_be_disabled(self, situation_2024):
        result = validate_classification(
            expense("example.org", "Designer chair", 450_00),
            suggestion(DeductibleCategory.NONE, 0, False),
            situation_2024,
            ACCOUNT,
            ValidationOptions(check_anomalies=False),
        )
        assert result.anomalies == ()
        assert result.confidence == Confidence.MEDIUM
        assert not result.needs_review


class TestUnclear:
    @pytest.mark.parametrize("category", [None, DeductibleCategory.UNCLEAR])
    def test_unclear_needs_review(self, situation_2024, category):
        result = validate_classification(
            expense("example.org"), suggestion(category, None, None), situation_2024, ACCOUNT,
        )
        assert result.category == DeductibleCategory.UNCLEAR
        assert result.needs_review


class TestReporting:
    def test_summary(self, situation_2024):
        results = [
            validate_classification(expense("netflix.com", amount_cents=15_99), suggestion(DeductibleCategory.FULL), situation_2024, ACCOUNT),
            validate_classification(expense("example.org"), suggestion(DeductibleCategory.FULL), situation_2024, ACCOUNT),
            validate_classification(expense("example.org"), suggestion(None, None, None), situation_2024, ACCOUNT),
        ]
        summary = summarize_validation(results)
        assert summary.total == 3
        assert summary.modified == 1
        assert summary.needs_review == 1
        assert summary.force_overrides == 1
        assert summary.by_confidence["high"] == 1
        assert summary.by_confidence["medium"] == 2

    def test_format(self, situation_2024):
        result = validate_classification(
            expense("fuel-station.at", "Tankstelle Rechnung", 60_00),
            suggestion(DeductibleCategory.VEHICLE),
            situation_2024,
            ACCOUNT,
        )
        text = format_validation_result(result)
        assert text.splitlines()[0] == "Vehicle (no VAT) (high confidence)"
        assert "Legal: ICE/hybrid vehicle: no VAT recovery" in text
        assert "§12 Abs 2 Z 2 UStG" in text
