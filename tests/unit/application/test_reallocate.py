"""Tests for reallocation by agent and by filter."""

from __future__ import annotations

import pytest

from conftest import make_agent, make_case
from case_allocation.application.ports.case_allocation_repo import AllocationFilter
from case_allocation.application.use_cases.reallocate import resolve_agent
from case_allocation.domain.errors import NotFoundError, ValidationError
from case_allocation.domain.value_objects.enums import AllocationAction, AllocationStatus


@pytest.mark.asyncio
async def test_reallocate_by_agent_moves_current_owner(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(7))
    await world.allocate(1, [7])

    result = await world.reallocate_by_agent().execute(1, 2, "agent on leave")

    assert result.cases_moved == 1
    assert result.job_id.startswith("REALLOC_JOB_")
    assert (await world.ledger().current_owner(7)).primary_agent_id == 2
    history = await world.ledger().history(7)
    assert [e.action for e in history] == [AllocationAction.REALLOCATED, AllocationAction.ALLOCATED]
    assert (history[0].allocated_from_user_id, history[0].allocated_to_user_id) == (1, 2)
    assert world.cases.cases[7].allocated_to_user_id == 2


@pytest.mark.asyncio
async def test_reallocate_by_agent_conserves_workload(world):
    world.add_agents(make_agent(1, capacity=20), make_agent(2, capacity=40, count=3))
    world.add_cases(*(make_case(i) for i in range(1, 6)))
    await world.allocate(1, [1, 2, 3, 4, 5])
    assert world.agents.agents[1].current_case_count == 5

    await world.reallocate_by_agent().execute(1, 2)

    a, b = world.agents.agents[1], world.agents.agents[2]
    assert (a.current_case_count, a.allocation_percentage) == (0, 0.0)
    assert (b.current_case_count, b.allocation_percentage) == (8, 20.0)


@pytest.mark.asyncio
async def test_reallocate_by_agent_floors_count_at_zero(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1), make_case(2))
    await world.allocate(1, [1, 2])
    world.agents.agents[1].current_case_count = 1  # drifted counter

    await world.reallocate_by_agent().execute(1, 2)

    assert world.agents.agents[1].current_case_count == 0


@pytest.mark.asyncio
async def test_reallocate_by_agent_empty_source_is_success(world):
    world.add_agents(make_agent(1), make_agent(2))

    result = await world.reallocate_by_agent().execute(1, 2)

    assert result.status == "COMPLETED"
    assert result.cases_moved == 0


@pytest.mark.asyncio
async def test_reallocate_by_agent_skips_deallocated_rows(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1), make_case(2))
    await world.allocate(1, [1, 2])
    await world.ledger().deallocate(1)

    result = await world.reallocate_by_agent().execute(1, 2)

    assert result.cases_moved == 1
    assert (await world.ledger().current_owner(1)).status == AllocationStatus.DEALLOCATED


@pytest.mark.asyncio
async def test_reallocate_to_same_agent_rejected(world):
    world.add_agents(make_agent(1))
    with pytest.raises(ValidationError):
        await world.reallocate_by_agent().execute(1, "agent1")


@pytest.mark.asyncio
async def test_reallocate_unknown_agent(world):
    world.add_agents(make_agent(1))
    with pytest.raises(NotFoundError, match="ghost"):
        await world.reallocate_by_agent().execute(1, "ghost")


@pytest.mark.asyncio
async def test_reallocate_refreshes_geography_code(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1, city="Pune"))
    await world.allocate(1, [1])
    world.cases.cases[1].geography_code = "MH-Pune-East"

    await world.reallocate_by_agent().execute(1, 2)

    assert (await world.ledger().current_owner(1)).geography_code == "MH-Pune-East"


@pytest.mark.asyncio
async def test_reallocate_audits_each_row(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1), make_case(2))
    await world.allocate(1, [1, 2])
    world.audit.records.clear()

    await world.reallocate_by_agent().execute(1, 2)

    assert [r[2] for r in world.audit.records] == ["REALLOCATE_BY_AGENT"] * 2
    _, _, _, before, after = world.audit.records[0]
    assert (before["primaryAgentId"], after["primaryAgentId"]) == (1, 2)


@pytest.mark.asyncio
async def test_reallocate_by_filter_groups_decrements_per_owner(world):
    world.add_agents(make_agent(1), make_agent(2), make_agent(3))
    world.add_cases(
        make_case(1, bucket="B3"),
        make_case(2, bucket="B3"),
        make_case(3, bucket="B3"),
        make_case(4, bucket="B1"),
    )
    await world.allocate(1, [1, 2])
    await world.allocate(2, [3, 4])
    world.agents.workload_writes.clear()

    result = await world.reallocate_by_filter().execute(
        AllocationFilter(bucket="B3", status=AllocationStatus.ALLOCATED), 3
    )

    assert result.cases_moved == 3
    assert world.agents.workload_writes == [(1, 0, 0.0), (2, 1, 1.0), (3, 3, 3.0)]
    assert (await world.ledger().current_owner(4)).primary_agent_id == 2


@pytest.mark.asyncio
async def test_reallocate_by_filter_ignores_rows_already_with_target(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1), make_case(2))
    await world.allocate(1, [1])
    await world.allocate(2, [2])

    result = await world.reallocate_by_filter().execute(AllocationFilter(), "agent2")

    assert result.cases_moved == 1
    assert world.agents.agents[2].current_case_count == 2


@pytest.mark.asyncio
async def test_reallocate_by_filter_deallocated_rows_carry_no_workload(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1), make_case(2))
    await world.allocate(1, [1, 2])
    await world.ledger().deallocate(2)
    world.agents.workload_writes.clear()

    result = await world.reallocate_by_filter().execute(AllocationFilter(), 2)

    assert result.cases_moved == 2
    assert world.agents.workload_writes == [(1, 0, 0.0), (2, 1, 1.0)]
    assert world.cases.cases[1].allocated_to_user_id == 2
    assert world.cases.cases[2].allocated_to_user_id is None


@pytest.mark.asyncio
async def test_workload_failure_does_not_undo_reallocation(world):
    world.add_agents(make_agent(1), make_agent(2))
    world.add_cases(make_case(1))
    await world.allocate(1, [1])
    world.agents.failing_ids.add(2)

    result = await world.reallocate_by_agent().execute(1, 2)

    assert result.cases_moved == 1
    assert result.workload.failed_agent_ids == [2]
    assert (await world.ledger().current_owner(1)).primary_agent_id == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("identifier", [2, "2", "Agent2", " agent2 "])
async def test_resolve_agent_by_id_or_username(world, identifier):
    world.add_agents(make_agent(2))
    assert (await resolve_agent(world.agents, identifier)).id == 2


@pytest.mark.asyncio
async def test_resolve_agent_rejects_blank(world):
    with pytest.raises(ValidationError):
        await resolve_agent(world.agents, "  ")


@pytest.mark.asyncio
async def test_resolve_agent_username_clash_picks_lowest_id(world):
    late, early = make_agent(7), make_agent(3)
    late.username, early.username = "Asha", "asha"
    world.add_agents(late, early)

    assert (await resolve_agent(world.agents, "ASHA")).id == 3
