"""AssignmentLedger — current ownership of cases and their append-only history."""

from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone

from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.case_allocation_repo import (
    AllocationPage,
    CaseAllocationRepository,
)
from case_allocation.application.ports.case_directory import CacheEvictionPort, CaseDirectory
from case_allocation.application.ports.history_repo import AllocationHistoryRepository
from case_allocation.application.use_cases.side_effects import (
    evict_unallocated_cache,
    record_audit,
)
from case_allocation.application.use_cases.workload_accounting import WorkloadAccounting
from case_allocation.domain.entities.allocation_history import AllocationHistory
from case_allocation.domain.entities.case_allocation import CaseAllocation
from case_allocation.domain.errors import BusinessRuleError, NotFoundError, ValidationError
from case_allocation.domain.policies.workload import group_deltas
from case_allocation.domain.value_objects.enums import AllocationAction, AllocationStatus

logger = logging.getLogger(__name__)

AUDIT_ENTITY = "CASE_ALLOCATION"


@dataclass
class BulkDeallocationResult:
    job_id: str
    total_cases: int
    succeeded_case_ids: list[int] = field(default_factory=list)
    failed_case_ids: list[int] = field(default_factory=list)
    errors: dict[int, str] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.succeeded_case_ids)

    @property
    def failure_count(self) -> int:
        return len(self.failed_case_ids)


class AssignmentLedger:
    """Owns CaseAllocation and AllocationHistory.

    The current owner of a case is always the latest row by allocated_at
    (row id breaks ties); there is no "is current" flag.
    """

    def __init__(
        self,
        allocation_repo: CaseAllocationRepository,
        history_repo: AllocationHistoryRepository,
        case_directory: CaseDirectory,
        workload: WorkloadAccounting,
        audit: AuditSink | None = None,
        cache: CacheEvictionPort | None = None,
    ):
        self._allocations = allocation_repo
        self._history = history_repo
        self._cases = case_directory
        self._workload = workload
        self._audit = audit
        self._cache = cache

    # ─── Queries ─────────────────────────────────────────────────────

    async def current_owner(self, case_id: int) -> CaseAllocation:
        allocation = await self._allocations.get_current(case_id)
        if allocation is None:
            raise NotFoundError(f"Case allocation not found for case: {case_id}")
        return allocation

    async def history(self, case_id: int) -> list[AllocationHistory]:
        return await self._history.get_by_case(case_id)

    async def list_allocated(
        self,
        agent_id: int | None = None,
        geography: str | None = None,
        page: int = 0,
        size: int = 50,
    ) -> AllocationPage:
        """Currently allocated cases, optionally for one agent or one geography."""
        if page < 0:
            raise ValidationError(f"page must be non-negative, got {page}")
        if size < 1:
            raise ValidationError(f"size must be positive, got {size}")
        geography = geography.strip() if geography else None
        return await self._allocations.find_allocated(agent_id, geography or None, page, size)

    # ─── Writes used by the rule engine and reallocation ─────────────

    async def record_allocations(
        self, allocations: list[CaseAllocation], entries: list[AllocationHistory]
    ) -> list[CaseAllocation]:
        """Persist new ownership rows, their history and the case owner of record."""
        saved = await self._allocations.save_all(allocations)
        await self._history.save_all(entries)

        by_agent: dict[int, list[int]] = defaultdict(list)
        for allocation in saved:
            by_agent[allocation.primary_agent_id].append(allocation.case_id)
        for agent_id, case_ids in by_agent.items():
            await self._cases.set_owner(case_ids, agent_id)
        return saved

    async def record_transfers(
        self,
        allocations: list[CaseAllocation],
        entries: list[AllocationHistory],
        new_owner_id: int,
    ) -> None:
        await self._allocations.update_all(allocations)
        await self._history.save_all(entries)
        # Deallocated rows move with the filter but leave the case unowned
        await self._cases.set_owner([a.case_id for a in allocations if a.is_allocated()], new_owner_id)

    # ─── Deallocation ────────────────────────────────────────────────

    async def _deallocate_one(self, case_id: int, reason: str | None) -> CaseAllocation:
        allocation = await self._allocations.get_current(case_id)
        if allocation is None:
            raise NotFoundError(f"Case allocation not found for case: {case_id}")
        if not allocation.is_allocated():
            raise BusinessRuleError(f"Case {case_id} is already deallocated")

        before = allocation.to_audit_dict()
        now = datetime.now(timezone.utc)
        allocation.status = AllocationStatus.DEALLOCATED
        allocation.deallocated_at = now
        await self._allocations.update_all([allocation])

        await self._history.save_all([
            AllocationHistory(
                id=None,
                case_id=case_id,
                action=AllocationAction.DEALLOCATED,
                allocated_from_user_id=allocation.primary_agent_id,
                reason=reason,
                allocated_at=now,
            )
        ])
        await self._cases.set_owner([case_id], None)
        await record_audit(self._audit, AUDIT_ENTITY, allocation.id, "DEALLOCATE", before, None)
        return allocation

    async def deallocate(self, case_id: int, reason: str | None = None) -> CaseAllocation:
        """Mark the current ALLOCATED row of a case as DEALLOCATED."""
        logger.info("Deallocating case %d (reason: %s)", case_id, reason)
        allocation = await self._deallocate_one(case_id, reason)
        await self._workload.apply_deltas(group_deltas({allocation.primary_agent_id: 1}, sign=-1))
        await evict_unallocated_cache(self._cache)
        return allocation

    async def bulk_deallocate(self, case_ids: list[int], reason: str | None = None) -> BulkDeallocationResult:
        """Deallocate each id independently; one bad id never aborts the batch."""
        result = BulkDeallocationResult(
            job_id=f"DEALLOC_JOB_{uuid.uuid4().hex[:12]}",
            total_cases=len(case_ids),
        )
        logger.info("Bulk deallocating %d cases (job %s)", len(case_ids), result.job_id)

        removed: Counter[int] = Counter()
        for case_id in case_ids:
            try:
                allocation = await self._deallocate_one(case_id, reason)
            except Exception as e:
                logger.error("Failed to deallocate case %d: %s", case_id, e)
                result.failed_case_ids.append(case_id)
                result.errors[case_id] = str(e)
                continue
            removed[allocation.primary_agent_id] += 1
            result.succeeded_case_ids.append(case_id)

        if removed:
            await self._workload.apply_deltas(group_deltas(dict(removed), sign=-1))
        if result.success_count:
            await evict_unallocated_cache(self._cache)

        logger.info(
            "Bulk deallocation %s complete: %d succeeded, %d failed",
            result.job_id, result.success_count, result.failure_count,
        )
        return result
