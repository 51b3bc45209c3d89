"""Agent workload queries and ledger-based reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.application.ports.case_allocation_repo import CaseAllocationRepository
from case_allocation.application.use_cases.workload_accounting import (
    AgentWorkload,
    WorkloadUpdateSummary,
)
from case_allocation.domain.entities.agent import Agent
from case_allocation.domain.policies.workload import allocation_percentage

logger = logging.getLogger(__name__)


@dataclass
class AgentWorkloadView:
    agent_id: int
    username: str
    geographies: list[str]
    allocated: int
    capacity: int
    available_capacity: int
    utilization_percentage: float


async def _select_agents(
    agents: AgentDirectory,
    agent_ids: list[int] | None,
    geographies: list[str] | None,
) -> list[Agent]:
    """Explicit ids first, then geographies, then every active agent."""
    if agent_ids:
        selected = []
        for agent_id in agent_ids:
            agent = await agents.get_by_id(agent_id)
            if agent is None:
                logger.warning("Agent %d not found, skipping", agent_id)
                continue
            selected.append(agent)
        return selected
    if geographies:
        return await agents.get_by_geographies(geographies)
    return await agents.get_active()


class GetAgentWorkloadUseCase:
    def __init__(self, agent_directory: AgentDirectory, allocation_repo: CaseAllocationRepository):
        self._agents = agent_directory
        self._allocations = allocation_repo

    async def execute(
        self,
        agent_ids: list[int] | None = None,
        geographies: list[str] | None = None,
    ) -> list[AgentWorkloadView]:
        views = []
        for agent in await _select_agents(self._agents, agent_ids, geographies):
            allocated = await self._allocations.count_allocated_by_agent(agent.id)
            views.append(
                AgentWorkloadView(
                    agent_id=agent.id,
                    username=agent.username,
                    geographies=sorted(agent.geographies),
                    allocated=allocated,
                    capacity=agent.capacity,
                    available_capacity=agent.available_capacity(allocated),
                    utilization_percentage=allocation_percentage(allocated, agent.capacity),
                )
            )
        return views


class ReconcileWorkloadUseCase:
    """Rewrite each agent's workload fields from the ledger's ALLOCATED rows.

    Repairs counters that drifted because accounting is best-effort.
    """

    def __init__(self, agent_directory: AgentDirectory, allocation_repo: CaseAllocationRepository):
        self._agents = agent_directory
        self._allocations = allocation_repo

    async def execute(self, agent_ids: list[int] | None = None) -> WorkloadUpdateSummary:
        summary = WorkloadUpdateSummary()
        if agent_ids:
            targets = agent_ids
        else:
            targets = [a.id for a in await self._agents.get_active()]

        for agent_id in targets:
            try:
                agent = await self._agents.get_by_id(agent_id)
                if agent is None:
                    logger.warning("Agent %d not found for reconciliation", agent_id)
                    summary.failed_agent_ids.append(agent_id)
                    continue
                count = await self._allocations.count_allocated_by_agent(agent_id)
                pct = allocation_percentage(count, agent.max_case_capacity)
                await self._agents.update_workload(agent_id, count, pct)
                summary.updated.append(
                    AgentWorkload(agent_id=agent_id, current_case_count=count, allocation_percentage=pct)
                )
            except Exception:
                logger.exception("Failed to reconcile workload for agent %d", agent_id)
                summary.failed_agent_ids.append(agent_id)

        logger.info(
            "Workload reconciliation: %d updated, %d failed",
            summary.success_count, summary.failure_count,
        )
        return summary
