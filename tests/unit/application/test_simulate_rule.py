"""Tests for SimulateRuleUseCase with in-memory fakes."""

from __future__ import annotations

import pytest

from conftest import make_agent, make_case, make_rule
from case_allocation.domain.errors import BusinessRuleError, NotFoundError, ValidationError
from case_allocation.domain.value_objects.enums import RuleStatus, RuleType


@pytest.mark.asyncio
async def test_simulate_moves_draft_to_ready(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(*(make_case(i) for i in range(100, 110)))
    rule = await world.add_rule(make_rule())

    result = await world.simulate().execute(rule.id)

    assert result.status == RuleStatus.READY_FOR_APPLY
    assert result.case_ids == list(range(100, 110))
    assert result.agent_ids == [1, 2]
    assert result.estimated_cases == 10
    assert result.suggested_distribution == {1: 5, 2: 5}
    stored = world.rules.rules[rule.id]
    assert stored.status == RuleStatus.READY_FOR_APPLY
    assert stored.criteria.agent_ids == (1, 2)


@pytest.mark.asyncio
async def test_simulate_assigns_nothing(world):
    world.add_agents(make_agent(1))
    world.add_cases(make_case(100))
    rule = await world.add_rule(make_rule())

    await world.simulate().execute(rule.id)

    assert world.allocations.rows == {}
    assert world.history.entries == []
    assert world.cases.cases[100].allocated_to_user_id is None


@pytest.mark.asyncio
async def test_resimulation_keeps_status_and_refreshes_suggestion(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(*(make_case(i) for i in range(100, 104)))
    rule = await world.add_rule(make_rule())
    uc = world.simulate()

    first = await uc.execute(rule.id)
    world.add_cases(make_case(104))
    second = await uc.execute(rule.id)

    assert first.status == second.status == RuleStatus.READY_FOR_APPLY
    assert second.estimated_cases == 5
    assert second.suggested_distribution == {1: 3, 2: 2}


@pytest.mark.asyncio
async def test_simulate_capacity_based_uses_available_capacity(world):
    world.add_agents(make_agent(1, capacity=30), make_agent(2, capacity=10))
    world.add_cases(*(make_case(i) for i in range(100, 120)))
    rule = await world.add_rule(make_rule(rule_type=RuleType.CAPACITY_BASED))

    result = await world.simulate().execute(rule.id)

    assert result.suggested_distribution == {1: 15, 2: 5}
    assert [a.available_capacity for a in result.eligible_agents] == [30, 10]


@pytest.mark.asyncio
async def test_simulate_filters_by_geography_and_bucket(world):
    world.add_agents(make_agent(1))
    world.add_cases(
        make_case(100, bucket="B1"),
        make_case(101, bucket="B2"),
        make_case(102, state="KA", city="Bengaluru", bucket="B1"),
        make_case(103, bucket="B1", owner=1),
    )
    rule = await world.add_rule(make_rule(buckets=("B1",)))

    result = await world.simulate().execute(rule.id)

    assert result.case_ids == [100]


@pytest.mark.asyncio
async def test_simulate_pages_until_directory_reports_no_more(world):
    world.page_size = 3
    world.add_agents(make_agent(1))
    world.add_cases(*(make_case(i) for i in range(1, 8)))
    rule = await world.add_rule(make_rule())

    result = await world.simulate().execute(rule.id)

    assert result.case_ids == list(range(1, 8))
    assert world.cases.page_requests == [(0, 3), (1, 3), (2, 3)]


@pytest.mark.asyncio
async def test_simulate_only_active_agents_in_rule_geography(world):
    world.add_agents(
        make_agent(3, geographies=("MH",)),
        make_agent(1, geographies=("KA",)),
        make_agent(2, geographies=("MH", "KA"), active=False),
    )
    world.add_cases(make_case(100))
    rule = await world.add_rule(make_rule())

    result = await world.simulate().execute(rule.id)

    assert result.agent_ids == [3]


@pytest.mark.asyncio
async def test_simulate_without_eligible_agents_fails(world):
    world.add_agents(make_agent(1, geographies=("KA",)))
    rule = await world.add_rule(make_rule())

    with pytest.raises(BusinessRuleError, match="No eligible agents"):
        await world.simulate().execute(rule.id)
    assert world.rules.rules[rule.id].status == RuleStatus.DRAFT


@pytest.mark.asyncio
async def test_simulate_with_no_cases_suggests_zero(world):
    world.add_agents(make_agent(1), make_agent(2))
    rule = await world.add_rule(make_rule())

    result = await world.simulate().execute(rule.id)

    assert result.estimated_cases == 0
    assert result.suggested_distribution == {1: 0, 2: 0}


@pytest.mark.asyncio
async def test_simulate_active_rule_rejected(world):
    rule = await world.add_rule(make_rule(status=RuleStatus.ACTIVE))
    with pytest.raises(ValidationError):
        await world.simulate().execute(rule.id)


@pytest.mark.asyncio
async def test_simulate_unknown_rule(world):
    with pytest.raises(NotFoundError):
        await world.simulate().execute(999)


@pytest.mark.asyncio
async def test_simulate_writes_audit_entry(world):
    world.add_agents(make_agent(1))
    rule = await world.add_rule(make_rule())

    await world.simulate().execute(rule.id)

    assert [r[2] for r in world.audit.records] == ["SIMULATE"]
