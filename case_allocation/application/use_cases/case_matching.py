"""Shared lookups for the rule engine: matching cases, eligible agents, capacity."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.application.ports.case_allocation_repo import CaseAllocationRepository
from case_allocation.application.ports.case_directory import CaseDirectory
from case_allocation.config import settings
from case_allocation.domain.entities.agent import Agent
from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.entities.case import CaseRecord
from case_allocation.domain.errors import BusinessRuleError
from case_allocation.domain.policies.distribution import (
    AgentSlot,
    capacity_split,
    equal_split,
)
from case_allocation.domain.value_objects.enums import RuleType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentCapacity:
    """Capacity snapshot of an eligible agent."""

    agent_id: int
    username: str
    capacity: int
    allocated_count: int
    available_capacity: int

    def as_slot(self) -> AgentSlot:
        return AgentSlot(agent_id=self.agent_id, available_capacity=self.available_capacity)


class CaseMatcher:
    def __init__(
        self,
        case_directory: CaseDirectory,
        agent_directory: AgentDirectory,
        allocation_repo: CaseAllocationRepository,
        page_size: int | None = None,
    ):
        self._cases = case_directory
        self._agents = agent_directory
        self._allocations = allocation_repo
        self._page_size = page_size or settings.case_page_size

    async def unallocated_cases(self, rule: AllocationRule) -> list[CaseRecord]:
        """All unallocated cases matching the rule, fetched page by page."""
        criteria = rule.criteria
        cases: list[CaseRecord] = []
        page = 0
        while True:
            result = await self._cases.get_unallocated_page(
                criteria.geography, criteria.buckets, page, self._page_size
            )
            cases.extend(result.items)
            if not result.has_next or not result.items:
                break
            page += 1

        logger.info("Rule %s matches %d unallocated cases (%d pages)", rule.id, len(cases), page + 1)
        return cases

    async def eligible_agents(self, rule: AllocationRule) -> list[Agent]:
        """Agents whose geographies intersect the rule's filter, ordered by id."""
        geographies = rule.criteria.geography.agent_geographies()
        if not geographies:
            raise BusinessRuleError(
                f"Rule {rule.id} has no geography filter; agent detection requires geography"
            )

        agents = await self._agents.get_by_geographies(geographies)
        unique = {a.id: a for a in agents}
        return [unique[agent_id] for agent_id in sorted(unique)]

    async def capacities(self, agents: list[Agent]) -> list[AgentCapacity]:
        snapshot = []
        for agent in agents:
            allocated = await self._allocations.count_allocated_by_agent(agent.id)
            snapshot.append(
                AgentCapacity(
                    agent_id=agent.id,
                    username=agent.username,
                    capacity=agent.capacity,
                    allocated_count=allocated,
                    available_capacity=agent.available_capacity(allocated),
                )
            )
        return snapshot


def suggest_distribution(
    rule_type: RuleType, capacities: list[AgentCapacity], total: int
) -> dict[int, int]:
    """Suggested split used by simulate; nothing is assigned."""
    if rule_type == RuleType.CAPACITY_BASED:
        return capacity_split([c.as_slot() for c in capacities], total)
    # Percentage split has no percentages yet at simulate time, so it
    # suggests an even split like the geography rule.
    return equal_split([c.agent_id for c in capacities], total)
