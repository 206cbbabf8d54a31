"""
Tests for configuration helpers and whole-config validation.
"""

from dataclasses import replace
from datetime import date

import pytest

from app.core.categories import DeductibleCategory
from app.core.errors import (
    ConfigurationError,
    DuplicateIncomeSourceError,
    IncomeSourceNotFoundError,
    InvalidAllocationRuleError,
    SituationNotFoundError,
    SituationOverlapError,
)
from app.core.situation_config import (
    add_allocation_rule,
    add_income_source,
    add_situation,
    remove_allocation_rule,
    remove_income_source,
    remove_situation,
    set_category_default,
    update_income_source,
    update_situation,
    validate_allocation_rule,
    validate_config,
)
from app.core.situations import (
    Allocation,
    AllocationRule,
    HomeOfficeMode,
    IncomeCategory,
    IncomeSource,
    Situation,
    TaxConfig,
)


def _codes(issues):
    return {issue.code for issue in issues}


class TestSituations:
    @pytest.fixture
    def closed_config(self, config):
        return update_situation(config, 2, valid_to=date(2030, 1, 1))

    def test_add_assigns_next_id(self, closed_config):
        new = Situation(id=0, valid_from=date(2030, 1, 1), valid_to=None, jurisdiction="DE")
        updated = add_situation(closed_config, new)
        assert [s.id for s in updated.situations] == [1, 2, 3]

    def test_add_does_not_mutate_input(self, closed_config):
        new = Situation(id=0, valid_from=date(2030, 1, 1), valid_to=None, jurisdiction="DE")
        add_situation(closed_config, new)
        assert len(closed_config.situations) == 2

    def test_first_situation_gets_id_1(self):
        empty = TaxConfig(jurisdiction="AT")
        updated = add_situation(empty, Situation(id=42, valid_from=date(2024, 1, 1), valid_to=None, jurisdiction="AT"))
        assert updated.situations[0].id == 1

    def test_overlap_rejected(self, config):
        overlapping = Situation(id=0, valid_from=date(2024, 6, 1), valid_to=date(2024, 9, 1), jurisdiction="AT")
        with pytest.raises(SituationOverlapError) as exc:
            add_situation(config, overlapping)
        assert 1 in exc.value.situation_ids

    def test_overlap_in_other_jurisdiction_rejected(self, config):
        german = Situation(id=0, valid_from=date(2024, 3, 1), valid_to=None, jurisdiction="DE")
        with pytest.raises(SituationOverlapError) as exc:
            add_situation(config, german)
        assert exc.value.situation_ids == (3, 1)

    def test_invalid_dates_rejected(self, config):
        backwards = Situation(id=0, valid_from=date(2030, 1, 1), valid_to=date(2029, 1, 1), jurisdiction="DE")
        with pytest.raises(ConfigurationError):
            add_situation(config, backwards)

    def test_update(self, config):
        updated = update_situation(config, 1, telecom_business_percent=40)
        assert updated.situations[0].telecom_business_percent == 40
        assert config.situations[0].telecom_business_percent == 60

    def test_update_rechecks_overlap(self, config):
        with pytest.raises(SituationOverlapError):
            update_situation(config, 1, valid_to=date(2025, 6, 1))

    def test_update_unknown(self, config):
        with pytest.raises(SituationNotFoundError):
            update_situation(config, 99, notes="x")

    def test_update_unknown_field(self, config):
        with pytest.raises(ConfigurationError, match="vehicle_colour"):
            update_situation(config, 1, vehicle_colour="red")

    def test_remove(self, config):
        assert [s.id for s in remove_situation(config, 1).situations] == [2]
        with pytest.raises(SituationNotFoundError):
            remove_situation(config, 99)

    def test_errors_are_value_errors(self, config):
        with pytest.raises(ValueError):
            remove_situation(config, 99)


class TestIncomeSources:
    def test_add(self, config):
        source = IncomeSource(id="consulting", name="Consulting", category=IncomeCategory.TRADE_BUSINESS, valid_from=date(2025, 1, 1))
        assert len(add_income_source(config, source).income_sources) == 3

    def test_duplicate_rejected(self, config, freelance_source):
        with pytest.raises(DuplicateIncomeSourceError):
            add_income_source(config, freelance_source)

    def test_update(self, config):
        updated = update_income_source(config, "rental", name="Flat")
        assert updated.income_sources[1].name == "Flat"

    def test_update_unknown(self, config):
        with pytest.raises(IncomeSourceNotFoundError):
            update_income_source(config, "missing", name="x")

    def test_update_unknown_field(self, config):
        with pytest.raises(ConfigurationError, match="rate"):
            update_income_source(config, "rental", rate=10)

    def test_remove_cascades(self, config):
        config = set_category_default(config, DeductibleCategory.FULL, "rental")
        config = add_allocation_rule(config, AllocationRule(
            id="only_rental",
            vendor_domain="hausverwaltung.at",
            allocations=[Allocation("rental", 100)],
        ))
        config = add_allocation_rule(config, AllocationRule(
            id="split",
            vendor_domain="a1.net",
            allocations=[Allocation("freelance", 60), Allocation("rental", 40)],
        ))

        updated = remove_income_source(config, "rental")

        assert [s.id for s in updated.income_sources] == ["freelance"]
        assert DeductibleCategory.FULL not in updated.category_defaults
        assert [r.id for r in updated.allocation_rules] == ["split"]
        assert updated.allocation_rules[0].allocations == [Allocation("freelance", 60)]
        # input snapshot untouched
        assert len(config.allocation_rules) == 2

    def test_category_default_requires_known_source(self, config):
        with pytest.raises(IncomeSourceNotFoundError):
            set_category_default(config, DeductibleCategory.FULL, "missing")

    def test_category_default_cleared(self, config):
        config = set_category_default(config, DeductibleCategory.FULL, "freelance")
        assert set_category_default(config, DeductibleCategory.FULL, None).category_defaults == {}


class TestAllocationRules:
    def test_generated_id(self, config):
        rule = AllocationRule(id="", vendor_domain="hetzner.com", allocations=[Allocation("freelance", 100)])
        updated = add_allocation_rule(config, rule)
        assert updated.allocation_rules[0].id.startswith("rule_")

    def test_rule_needs_criteria(self, config):
        rule = AllocationRule(id="r1", allocations=[Allocation("freelance", 100)])
        assert "RULE_NO_CRITERIA" in _codes(validate_allocation_rule(config, rule))
        with pytest.raises(InvalidAllocationRuleError):
            add_allocation_rule(config, rule)

    def test_invalid_pattern(self, config):
        rule = AllocationRule(id="r1", vendor_pattern="(unclosed", allocations=[Allocation("freelance", 100)])
        assert "RULE_INVALID_PATTERN" in _codes(validate_allocation_rule(config, rule))

    def test_unknown_source(self, config):
        rule = AllocationRule(id="r1", vendor_domain="x.com", allocations=[Allocation("ghost", 100)])
        assert "INVALID_SOURCE_ID" in _codes(validate_allocation_rule(config, rule))

    def test_austrian_ten_percent_rule(self, config):
        rule = AllocationRule(
            id="r1",
            vendor_domain="x.com",
            allocations=[Allocation("freelance", 95), Allocation("rental", 5)],
        )
        assert "AT_10_PERCENT_RULE" in _codes(validate_allocation_rule(config, rule))

    def test_over_allocation(self, config):
        rule = AllocationRule(
            id="r1",
            vendor_domain="x.com",
            allocations=[Allocation("freelance", 70), Allocation("rental", 40)],
        )
        assert "ALLOCATION_EXCEEDS_100" in _codes(validate_allocation_rule(config, rule))

    def test_duplicate_id(self, config):
        rule = AllocationRule(id="r1", vendor_domain="x.com", allocations=[Allocation("freelance", 100)])
        config = add_allocation_rule(config, rule)
        with pytest.raises(InvalidAllocationRuleError):
            add_allocation_rule(config, rule)

    def test_remove(self, config):
        config = add_allocation_rule(config, AllocationRule(id="r1", vendor_domain="x.com", allocations=[Allocation("freelance", 100)]))
        removed = remove_allocation_rule(config, "r1")
        assert removed.allocation_rules == []
        with pytest.raises(InvalidAllocationRuleError):
            remove_allocation_rule(removed, "r1")


class TestValidateConfig:
    def test_valid(self, config):
        result = validate_config(config)
        assert result.valid
        assert result.errors == []

    def test_unsupported_jurisdiction(self, config):
        result = validate_config(replace(config, jurisdiction="FR"))
        assert not result.valid
        assert "UNSUPPORTED_JURISDICTION" in _codes(result.errors)

    def test_no_situations_is_warning(self):
        result = validate_config(TaxConfig(jurisdiction="AT"))
        assert result.valid
        assert "NO_SITUATIONS" in _codes(result.warnings)

    def test_overlap_is_error(self, config, situation_2024):
        overlapping = replace(situation_2024, id=3, valid_from=date(2024, 6, 1), valid_to=date(2024, 7, 1))
        result = validate_config(replace(config, situations=config.situations + [overlapping]))
        assert "SITUATION_OVERLAP" in _codes(result.errors)

    def test_overlap_across_jurisdictions_is_error(self, config, situation_2025):
        german = replace(situation_2025, id=3, valid_from=date(2024, 3, 1), jurisdiction="DE")
        result = validate_config(replace(config, situations=config.situations + [german]))
        assert not result.valid
        assert "SITUATION_OVERLAP" in _codes(result.errors)

    def test_gap_is_warning(self, config, situation_2025):
        later = replace(situation_2025, valid_from=date(2025, 3, 1))
        result = validate_config(replace(config, situations=[config.situations[0], later]))
        assert result.valid
        assert "SITUATION_GAP" in _codes(result.warnings)

    def test_situation_rules_applied(self, config, situation_2024):
        bad = replace(situation_2024, telecom_business_percent=5, home_office=HomeOfficeMode.DAILY_RATE)
        result = validate_config(replace(config, situations=[bad]))
        codes = _codes(result.errors)
        assert "AT_10_PERCENT_RULE" in codes
        assert "INVALID_HOME_OFFICE_MODE" in codes

    def test_duplicate_source_ids(self, config, freelance_source):
        result = validate_config(replace(config, income_sources=[freelance_source, freelance_source]))
        assert "DUPLICATE_SOURCE_ID" in _codes(result.errors)

    def test_invalid_source_id_format(self, config, freelance_source):
        result = validate_config(replace(config, income_sources=[replace(freelance_source, id="Free-Lance")]))
        assert "INVALID_ID_FORMAT" in _codes(result.errors)

    def test_category_default_unknown_source(self, config):
        snapshot = replace(config, category_defaults={DeductibleCategory.FULL: "ghost"})
        assert "INVALID_SOURCE_ID" in _codes(validate_config(snapshot).errors)
