"""Tests for the AllocationRule lifecycle and validation."""

import pytest

from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.errors import BusinessRuleError, ValidationError
from case_allocation.domain.value_objects.enums import RuleStatus, RuleType
from case_allocation.domain.value_objects.geography_filter import GeographyFilter
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria


def _rule(status=RuleStatus.DRAFT, states=("MH",), name="Rule A") -> AllocationRule:
    return AllocationRule(
        id=1,
        name=name,
        criteria=RuleCriteria(
            rule_type=RuleType.CAPACITY_BASED,
            geography=GeographyFilter.of(states=list(states)),
        ),
        status=status,
    )


def test_draft_to_ready_to_active():
    rule = _rule()
    assert rule.mark_simulated() is True
    assert rule.status == RuleStatus.READY_FOR_APPLY
    rule.mark_applied()
    assert rule.status == RuleStatus.ACTIVE


def test_resimulation_is_noop():
    rule = _rule(status=RuleStatus.READY_FOR_APPLY)
    assert rule.mark_simulated() is False
    assert rule.status == RuleStatus.READY_FOR_APPLY


def test_apply_on_draft_rejected_and_status_kept():
    rule = _rule()
    with pytest.raises(BusinessRuleError, match="simulation required"):
        rule.mark_applied()
    assert rule.status == RuleStatus.DRAFT


def test_active_rule_cannot_go_back():
    rule = _rule(status=RuleStatus.ACTIVE)
    with pytest.raises(ValidationError):
        rule.mark_simulated()
    with pytest.raises(BusinessRuleError):
        rule.mark_applied()
    assert rule.status == RuleStatus.ACTIVE
    assert not rule.is_editable()


def test_validate_requires_geography():
    with pytest.raises(ValidationError, match="geography"):
        _rule(states=()).validate()


def test_validate_requires_name():
    with pytest.raises(ValidationError, match="name"):
        _rule(name="   ").validate()


def test_rule_type_comes_from_criteria():
    assert _rule().rule_type == RuleType.CAPACITY_BASED
