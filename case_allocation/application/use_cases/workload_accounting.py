"""WorkloadAccounting — keeps agent case counts in step with the ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.domain.errors import NotFoundError
from case_allocation.domain.policies.workload import (
    WorkloadDelta,
    allocation_percentage,
    next_case_count,
)

logger = logging.getLogger(__name__)


@dataclass
class AgentWorkload:
    agent_id: int
    current_case_count: int
    allocation_percentage: float


@dataclass
class WorkloadUpdateSummary:
    updated: list[AgentWorkload] = field(default_factory=list)
    failed_agent_ids: list[int] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.updated)

    @property
    def failure_count(self) -> int:
        return len(self.failed_agent_ids)


class WorkloadAccounting:
    """Applies typed per-agent deltas; one write per agent, never per case.

    Accounting is best-effort: it runs after the ledger write and a failing
    agent is logged and skipped rather than rolling anything back.
    """

    def __init__(self, agents: AgentDirectory):
        self._agents = agents

    async def apply_delta(self, change: WorkloadDelta) -> AgentWorkload:
        agent = await self._agents.get_by_id(change.agent_id)
        if agent is None:
            raise NotFoundError(f"Agent {change.agent_id} not found")

        new_count = next_case_count(agent.current_case_count, change.delta)
        pct = allocation_percentage(new_count, agent.max_case_capacity)
        await self._agents.update_workload(agent.id, new_count, pct)

        logger.info(
            "Agent %d workload %+d → currentCaseCount=%d, allocationPercentage=%.2f%%",
            agent.id, change.delta, new_count, pct,
        )
        return AgentWorkload(agent_id=agent.id, current_case_count=new_count, allocation_percentage=pct)

    async def apply_deltas(self, changes: list[WorkloadDelta]) -> WorkloadUpdateSummary:
        summary = WorkloadUpdateSummary()
        for change in changes:
            try:
                summary.updated.append(await self.apply_delta(change))
            except NotFoundError:
                logger.warning("Agent %d not found for workload update (%+d)", change.agent_id, change.delta)
                summary.failed_agent_ids.append(change.agent_id)
            except Exception:
                logger.exception("Failed to update workload for agent %d", change.agent_id)
                summary.failed_agent_ids.append(change.agent_id)
        return summary
