"""Tests for RuleCriteria and GeographyFilter."""

import pytest

from case_allocation.domain.errors import ValidationError
from case_allocation.domain.value_objects.enums import RuleType
from case_allocation.domain.value_objects.geography_filter import GeographyFilter
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria


def test_geography_filter_strips_and_drops_blanks():
    geo = GeographyFilter.of(states=[" MH ", "", None], cities=["  "])
    assert geo.states == frozenset({"MH"})
    assert geo.cities == frozenset()
    assert not geo.is_empty()


def test_empty_geography_filter():
    assert GeographyFilter.of().is_empty()


def test_agent_geographies_is_sorted_union():
    geo = GeographyFilter.of(states=["MH"], cities=["Pune", "Mumbai"], geographies=["MH"])
    assert geo.agent_geographies() == ["MH", "Mumbai", "Pune"]


def test_matches_ands_non_empty_dimensions():
    geo = GeographyFilter.of(states=["MH"], cities=["Pune"])
    assert geo.matches("MH", "Pune", "Kothrud")
    assert not geo.matches("MH", "Nagpur", None)
    assert not geo.matches("KA", "Pune", None)


def test_matches_legacy_geography_code():
    geo = GeographyFilter.of(geographies=["MH-Pune"])
    assert geo.matches(None, None, None, "MH-Pune")
    assert not geo.matches("MH", "Pune", None, "MH-Mumbai")


def test_from_dict_accepts_legacy_keys():
    criteria = RuleCriteria.from_dict({
        "type": "GEOGRAPHY",
        "geography": ["MH-Pune"],
        "buckets": ["B1", ""],
    })
    assert criteria.rule_type == RuleType.GEOGRAPHY
    assert criteria.geography.geographies == frozenset({"MH-Pune"})
    assert criteria.buckets == frozenset({"B1"})


def test_from_dict_rejects_unknown_type():
    with pytest.raises(ValidationError, match="Unknown allocation rule type"):
        RuleCriteria.from_dict({"ruleType": "ROUND_ROBIN", "states": ["MH"]})


def test_dict_round_trip_keeps_agents_and_percentages():
    criteria = RuleCriteria(
        rule_type=RuleType.PERCENTAGE_SPLIT,
        geography=GeographyFilter.of(states=["MH"], locations=["Kothrud"]),
        buckets=frozenset({"B2", "B1"}),
    ).with_agents([3, 1], [70, 30])

    data = criteria.to_dict()
    assert data["buckets"] == ["B1", "B2"]
    assert data["agentIds"] == [3, 1]
    assert RuleCriteria.from_dict(data) == criteria


def test_with_agents_keeps_existing_percentages():
    criteria = RuleCriteria(rule_type=RuleType.PERCENTAGE_SPLIT, percentages=(50, 50))
    assert criteria.with_agents([1, 2]).percentages == (50, 50)
