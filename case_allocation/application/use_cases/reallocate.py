"""Reallocation use cases — bulk transfer of case ownership."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.case_allocation_repo import (
    AllocationFilter,
    CaseAllocationRepository,
)
from case_allocation.application.ports.case_directory import CacheEvictionPort, CaseDirectory
from case_allocation.application.use_cases.assignment_ledger import AUDIT_ENTITY, AssignmentLedger
from case_allocation.application.use_cases.side_effects import (
    evict_unallocated_cache,
    record_audit,
)
from case_allocation.application.use_cases.workload_accounting import (
    WorkloadAccounting,
    WorkloadUpdateSummary,
)
from case_allocation.domain.entities.agent import Agent
from case_allocation.domain.entities.allocation_history import AllocationHistory
from case_allocation.domain.entities.case_allocation import FULL_WORKLOAD, CaseAllocation
from case_allocation.domain.errors import NotFoundError, ValidationError
from case_allocation.domain.policies.workload import WorkloadDelta
from case_allocation.domain.value_objects.enums import AllocationAction

logger = logging.getLogger(__name__)


@dataclass
class ReallocationResult:
    job_id: str
    status: str
    cases_moved: int
    workload: WorkloadUpdateSummary | None = None


async def resolve_agent(agents: AgentDirectory, identifier: int | str) -> Agent:
    """Resolve an agent from a numeric id or a username (case-insensitive)."""
    if isinstance(identifier, int):
        agent = await agents.get_by_id(identifier)
    else:
        text = str(identifier).strip()
        if not text:
            raise ValidationError("Agent identifier must not be empty")
        agent = await agents.get_by_id(int(text)) if text.isdigit() else None
        if agent is None:
            agent = await agents.get_by_username(text)
    if agent is None:
        raise NotFoundError(f"Could not resolve agent: {identifier}")
    return agent


class _ReallocationBase:
    def __init__(
        self,
        allocation_repo: CaseAllocationRepository,
        ledger: AssignmentLedger,
        case_directory: CaseDirectory,
        agent_directory: AgentDirectory,
        workload: WorkloadAccounting,
        audit: AuditSink | None = None,
        cache: CacheEvictionPort | None = None,
    ):
        self._allocations = allocation_repo
        self._ledger = ledger
        self._cases = case_directory
        self._agents = agent_directory
        self._workload = workload
        self._audit = audit
        self._cache = cache

    async def _refresh_geography(self, allocations: list[CaseAllocation]) -> None:
        try:
            records = await self._cases.get_by_ids([a.case_id for a in allocations])
        except Exception as e:
            logger.warning("Failed to refresh geography codes from case directory: %s", e)
            return
        for allocation in allocations:
            record = records.get(allocation.case_id)
            if record is not None and record.geography_code is not None:
                allocation.geography_code = record.geography_code

    async def _move(
        self,
        allocations: list[CaseAllocation],
        to_agent_id: int,
        reason: str | None,
        audit_action: str,
    ) -> Counter[int]:
        """Transfer every row to ``to_agent_id``.

        Returns how many ALLOCATED rows each previous owner lost.
        """
        before = [a.snapshot() for a in allocations]
        await self._refresh_geography(allocations)

        now = datetime.now(timezone.utc)
        removed: Counter[int] = Counter()
        entries = []
        for allocation, old in zip(allocations, before):
            if old.is_allocated():
                removed[old.primary_agent_id] += 1
            allocation.primary_agent_id = to_agent_id
            if allocation.workload_percentage is None:
                allocation.workload_percentage = FULL_WORKLOAD
            entries.append(
                AllocationHistory(
                    id=None,
                    case_id=allocation.case_id,
                    action=AllocationAction.REALLOCATED,
                    allocated_from_user_id=old.primary_agent_id,
                    allocated_to_user_id=to_agent_id,
                    reason=reason,
                    allocated_at=now,
                )
            )

        await self._ledger.record_transfers(allocations, entries, to_agent_id)

        for old, new in zip(before, allocations):
            await record_audit(
                self._audit, AUDIT_ENTITY, new.id, audit_action,
                old.to_audit_dict(), new.to_audit_dict(),
            )
        return removed

    @staticmethod
    def _new_job_id() -> str:
        return f"REALLOC_JOB_{uuid.uuid4().hex[:12]}"


class ReallocateByAgentUseCase(_ReallocationBase):
    """Move every case currently owned by one agent to another."""

    async def execute(
        self, from_agent: int | str, to_agent: int | str, reason: str | None = None
    ) -> ReallocationResult:
        source = await resolve_agent(self._agents, from_agent)
        target = await resolve_agent(self._agents, to_agent)
        if source.id == target.id:
            raise ValidationError(f"Source and target agent are the same: {source.id}")

        job_id = self._new_job_id()
        allocations = await self._allocations.get_current_by_agent(source.id)
        logger.info("Found %d ALLOCATED cases for agent %d", len(allocations), source.id)
        if not allocations:
            return ReallocationResult(job_id=job_id, status="COMPLETED", cases_moved=0)

        moved = len(allocations)
        await self._move(allocations, target.id, reason, "REALLOCATE_BY_AGENT")

        workload = await self._workload.apply_deltas([
            WorkloadDelta(agent_id=source.id, delta=-moved),
            WorkloadDelta(agent_id=target.id, delta=moved),
        ])
        await evict_unallocated_cache(self._cache)

        logger.info(
            "Reallocation %s: %d cases moved from agent %d to agent %d",
            job_id, moved, source.id, target.id,
        )
        return ReallocationResult(job_id=job_id, status="COMPLETED", cases_moved=moved, workload=workload)


class ReallocateByFilterUseCase(_ReallocationBase):
    """Move every current allocation matching a filter to one agent."""

    async def execute(
        self, criteria: AllocationFilter, to_agent: int | str, reason: str | None = None
    ) -> ReallocationResult:
        target = await resolve_agent(self._agents, to_agent)

        job_id = self._new_job_id()
        allocations = [
            a for a in await self._allocations.find_current(criteria)
            if a.primary_agent_id != target.id
        ]
        logger.info(
            "Filter bucket=%s status=%s matched %d allocations",
            criteria.bucket, criteria.status.value if criteria.status else None, len(allocations),
        )
        if not allocations:
            return ReallocationResult(job_id=job_id, status="COMPLETED", cases_moved=0)

        removed = await self._move(allocations, target.id, reason, "REALLOCATE_BY_FILTER")

        # One decrement per distinct previous owner, then one aggregate increment
        changes = [WorkloadDelta(agent_id=agent_id, delta=-count) for agent_id, count in removed.items()]
        gained = sum(removed.values())
        if gained:
            changes.append(WorkloadDelta(agent_id=target.id, delta=gained))
        workload = await self._workload.apply_deltas(changes)
        await evict_unallocated_cache(self._cache)

        logger.info("Reallocation %s: %d cases moved to agent %d", job_id, len(allocations), target.id)
        return ReallocationResult(
            job_id=job_id, status="COMPLETED", cases_moved=len(allocations), workload=workload
        )
