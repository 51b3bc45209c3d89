"""SQLAlchemy repository implementations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from case_allocation.adapters.persistence.models import (
    AgentModel,
    AllocationHistoryModel,
    AllocationRuleModel,
    AuditLogModel,
    CaseAllocationModel,
    CaseModel,
)
from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.case_allocation_repo import (
    AllocationFilter,
    AllocationPage,
    CaseAllocationRepository,
)
from case_allocation.application.ports.case_directory import CaseDirectory, CasePage
from case_allocation.application.ports.history_repo import AllocationHistoryRepository
from case_allocation.application.ports.rule_repo import AllocationRuleRepository
from case_allocation.domain.entities.agent import Agent
from case_allocation.domain.entities.allocation_history import AllocationHistory
from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.entities.case import CaseRecord
from case_allocation.domain.entities.case_allocation import CaseAllocation
from case_allocation.domain.errors import NotFoundError
from case_allocation.domain.value_objects.enums import (
    AllocationAction,
    AllocationStatus,
    RuleStatus,
)
from case_allocation.domain.value_objects.geography_filter import GeographyFilter
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria

# ─── Mappers ─────────────────────────────────────────────────────────


def _rule_to_domain(m: AllocationRuleModel) -> AllocationRule:
    return AllocationRule(
        id=m.id,
        name=m.name,
        description=m.description,
        criteria=RuleCriteria.from_dict(m.criteria or {}),
        status=RuleStatus(m.status),
        priority=m.priority,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _allocation_to_domain(m: CaseAllocationModel) -> CaseAllocation:
    return CaseAllocation(
        id=m.id,
        case_id=m.case_id,
        primary_agent_id=m.primary_agent_id,
        secondary_agent_id=m.secondary_agent_id,
        status=AllocationStatus(m.status),
        allocation_rule_id=m.allocation_rule_id,
        workload_percentage=m.workload_percentage,
        geography_code=m.geography_code,
        allocated_at=m.allocated_at,
        deallocated_at=m.deallocated_at,
    )


def _history_to_domain(m: AllocationHistoryModel) -> AllocationHistory:
    return AllocationHistory(
        id=m.id,
        case_id=m.case_id,
        action=AllocationAction(m.action),
        allocated_to_user_id=m.allocated_to_user_id,
        allocated_from_user_id=m.allocated_from_user_id,
        reason=m.reason,
        allocated_at=m.allocated_at,
    )


def _case_to_domain(m: CaseModel) -> CaseRecord:
    return CaseRecord(
        id=m.id,
        state=m.state,
        city=m.city,
        location=m.location,
        bucket=m.bucket,
        geography_code=m.geography_code,
        allocated_to_user_id=m.allocated_to_user_id,
    )


def _agent_to_domain(m: AgentModel) -> Agent:
    full_name = " ".join(p for p in (m.first_name, m.last_name) if p) or None
    return Agent(
        id=m.id,
        username=m.username,
        full_name=full_name,
        geographies=set(m.geographies) if m.geographies else set(),
        max_case_capacity=m.max_case_capacity,
        current_case_count=m.current_case_count,
        allocation_percentage=m.allocation_percentage,
        is_active=m.is_active,
    )


def _current_rows():
    """Rows with no newer sibling for the same case, ordered by (allocated_at, id)."""
    newer = aliased(CaseAllocationModel, name="newer")
    return ~exists().where(
        newer.case_id == CaseAllocationModel.case_id,
        or_(
            newer.allocated_at > CaseAllocationModel.allocated_at,
            and_(
                newer.allocated_at == CaseAllocationModel.allocated_at,
                newer.id > CaseAllocationModel.id,
            ),
        ),
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlAllocationRuleRepository(AllocationRuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, rule: AllocationRule) -> AllocationRule:
        m = AllocationRuleModel(
            name=rule.name,
            description=rule.description,
            criteria=rule.criteria.to_dict(),
            status=rule.status.value,
            priority=rule.priority,
        )
        self._s.add(m)
        await self._s.flush()
        await self._s.refresh(m)
        rule.id = m.id
        rule.created_at = m.created_at
        rule.updated_at = m.updated_at
        return rule

    async def get_by_id(self, rule_id: int) -> AllocationRule | None:
        m = await self._s.get(AllocationRuleModel, rule_id)
        return _rule_to_domain(m) if m else None

    async def get_all(self) -> list[AllocationRule]:
        result = await self._s.execute(
            select(AllocationRuleModel).order_by(
                AllocationRuleModel.priority.desc(), AllocationRuleModel.id
            )
        )
        return [_rule_to_domain(m) for m in result.scalars()]

    async def update(self, rule: AllocationRule) -> AllocationRule:
        result = await self._s.execute(
            update(AllocationRuleModel)
            .where(AllocationRuleModel.id == rule.id)
            .values(
                name=rule.name,
                description=rule.description,
                criteria=rule.criteria.to_dict(),
                status=rule.status.value,
                priority=rule.priority,
                updated_at=func.now(),
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Allocation rule not found: {rule.id}")
        await self._s.flush()
        return rule

    async def delete(self, rule_id: int) -> None:
        await self._s.execute(delete(AllocationRuleModel).where(AllocationRuleModel.id == rule_id))
        await self._s.flush()


class SqlCaseAllocationRepository(CaseAllocationRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save_all(self, allocations: list[CaseAllocation]) -> list[CaseAllocation]:
        now = datetime.now(timezone.utc)
        models = []
        for allocation in allocations:
            allocation.allocated_at = allocation.allocated_at or now
            models.append(
                CaseAllocationModel(
                    case_id=allocation.case_id,
                    primary_agent_id=allocation.primary_agent_id,
                    secondary_agent_id=allocation.secondary_agent_id,
                    status=allocation.status.value,
                    allocation_rule_id=allocation.allocation_rule_id,
                    workload_percentage=allocation.workload_percentage,
                    geography_code=allocation.geography_code,
                    allocated_at=allocation.allocated_at,
                    deallocated_at=allocation.deallocated_at,
                )
            )
        self._s.add_all(models)
        await self._s.flush()
        for allocation, m in zip(allocations, models):
            allocation.id = m.id
        return allocations

    async def update_all(self, allocations: list[CaseAllocation]) -> None:
        for allocation in allocations:
            await self._s.execute(
                update(CaseAllocationModel)
                .where(CaseAllocationModel.id == allocation.id)
                .values(
                    primary_agent_id=allocation.primary_agent_id,
                    secondary_agent_id=allocation.secondary_agent_id,
                    status=allocation.status.value,
                    workload_percentage=allocation.workload_percentage,
                    geography_code=allocation.geography_code,
                    deallocated_at=allocation.deallocated_at,
                )
            )
        await self._s.flush()

    async def get_current(self, case_id: int) -> CaseAllocation | None:
        result = await self._s.execute(
            select(CaseAllocationModel)
            .where(CaseAllocationModel.case_id == case_id)
            .order_by(CaseAllocationModel.allocated_at.desc(), CaseAllocationModel.id.desc())
            .limit(1)
        )
        m = result.scalar_one_or_none()
        return _allocation_to_domain(m) if m else None

    async def get_current_by_agent(self, agent_id: int) -> list[CaseAllocation]:
        result = await self._s.execute(
            select(CaseAllocationModel)
            .where(
                CaseAllocationModel.primary_agent_id == agent_id,
                CaseAllocationModel.status == AllocationStatus.ALLOCATED.value,
                _current_rows(),
            )
            .order_by(CaseAllocationModel.case_id)
        )
        return [_allocation_to_domain(m) for m in result.scalars()]

    async def find_current(self, criteria: AllocationFilter) -> list[CaseAllocation]:
        stmt = select(CaseAllocationModel).where(_current_rows())
        if criteria.status is not None:
            stmt = stmt.where(CaseAllocationModel.status == criteria.status.value)
        if criteria.bucket:
            stmt = stmt.join(CaseModel, CaseModel.id == CaseAllocationModel.case_id).where(
                CaseModel.bucket == criteria.bucket
            )
        result = await self._s.execute(stmt.order_by(CaseAllocationModel.case_id))
        return [_allocation_to_domain(m) for m in result.scalars()]

    async def find_allocated(
        self,
        agent_id: int | None,
        geography: str | None,
        page: int,
        size: int,
    ) -> AllocationPage:
        stmt = select(CaseAllocationModel).where(
            CaseAllocationModel.status == AllocationStatus.ALLOCATED.value,
            _current_rows(),
        )
        if agent_id is not None:
            stmt = stmt.where(CaseAllocationModel.primary_agent_id == agent_id)
        if geography:
            stmt = stmt.outerjoin(CaseModel, CaseModel.id == CaseAllocationModel.case_id).where(
                or_(
                    CaseModel.state == geography,
                    CaseModel.city == geography,
                    CaseModel.location == geography,
                    CaseAllocationModel.geography_code == geography,
                )
            )

        result = await self._s.execute(
            stmt.order_by(CaseAllocationModel.case_id).offset(page * size).limit(size + 1)
        )
        rows = list(result.scalars())
        return AllocationPage(
            items=[_allocation_to_domain(m) for m in rows[:size]],
            has_next=len(rows) > size,
        )

    async def count_allocated_by_agent(self, agent_id: int) -> int:
        result = await self._s.execute(
            select(func.count(CaseAllocationModel.id)).where(
                CaseAllocationModel.primary_agent_id == agent_id,
                CaseAllocationModel.status == AllocationStatus.ALLOCATED.value,
                _current_rows(),
            )
        )
        return result.scalar_one()


class SqlAllocationHistoryRepository(AllocationHistoryRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save_all(self, entries: list[AllocationHistory]) -> list[AllocationHistory]:
        now = datetime.now(timezone.utc)
        models = []
        for entry in entries:
            entry.allocated_at = entry.allocated_at or now
            models.append(
                AllocationHistoryModel(
                    case_id=entry.case_id,
                    allocated_from_user_id=entry.allocated_from_user_id,
                    allocated_to_user_id=entry.allocated_to_user_id,
                    action=entry.action.value,
                    reason=entry.reason,
                    allocated_at=entry.allocated_at,
                )
            )
        self._s.add_all(models)
        await self._s.flush()
        for entry, m in zip(entries, models):
            entry.id = m.id
        return entries

    async def get_by_case(self, case_id: int) -> list[AllocationHistory]:
        result = await self._s.execute(
            select(AllocationHistoryModel)
            .where(AllocationHistoryModel.case_id == case_id)
            .order_by(AllocationHistoryModel.allocated_at.desc(), AllocationHistoryModel.id.desc())
        )
        return [_history_to_domain(m) for m in result.scalars()]


class SqlCaseDirectory(CaseDirectory):
    """Case directory backed by the shared ``cases`` table."""

    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_unallocated_page(
        self,
        geography: GeographyFilter,
        buckets: frozenset[str],
        page: int,
        size: int,
    ) -> CasePage:
        stmt = select(CaseModel).where(CaseModel.allocated_to_user_id.is_(None))
        for column, allowed in (
            (CaseModel.state, geography.states),
            (CaseModel.city, geography.cities),
            (CaseModel.location, geography.locations),
            (CaseModel.geography_code, geography.geographies),
        ):
            if allowed:
                stmt = stmt.where(column.in_(sorted(allowed)))
        if buckets:
            stmt = stmt.where(CaseModel.bucket.in_(sorted(buckets)))

        # One extra row tells us whether another page exists
        result = await self._s.execute(
            stmt.order_by(CaseModel.id).offset(page * size).limit(size + 1)
        )
        rows = list(result.scalars())
        return CasePage(
            items=[_case_to_domain(m) for m in rows[:size]],
            has_next=len(rows) > size,
        )

    async def get_by_ids(self, case_ids: list[int]) -> dict[int, CaseRecord]:
        if not case_ids:
            return {}
        result = await self._s.execute(select(CaseModel).where(CaseModel.id.in_(case_ids)))
        return {m.id: _case_to_domain(m) for m in result.scalars()}

    async def set_owner(self, case_ids: list[int], agent_id: int | None) -> None:
        if not case_ids:
            return
        await self._s.execute(
            update(CaseModel)
            .where(CaseModel.id.in_(case_ids))
            .values(allocated_to_user_id=agent_id, updated_at=func.now())
        )
        await self._s.flush()


class SqlAgentDirectory(AgentDirectory):
    """Agent directory backed by the shared ``users`` table."""

    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_by_id(self, agent_id: int) -> Agent | None:
        m = await self._s.get(AgentModel, agent_id)
        return _agent_to_domain(m) if m else None

    async def get_by_username(self, username: str) -> Agent | None:
        result = await self._s.execute(
            select(AgentModel)
            .where(func.lower(AgentModel.username) == username.lower())
            .order_by(AgentModel.id)
            .limit(1)
        )
        # Usernames are not unique ignoring case; the oldest account wins
        m = result.scalars().first()
        return _agent_to_domain(m) if m else None

    async def get_by_geographies(self, geographies: list[str]) -> list[Agent]:
        if not geographies:
            return []
        result = await self._s.execute(
            select(AgentModel)
            .where(AgentModel.is_active.is_(True), AgentModel.geographies.overlap(geographies))
            .order_by(AgentModel.id)
        )
        return [_agent_to_domain(m) for m in result.scalars()]

    async def get_active(self) -> list[Agent]:
        result = await self._s.execute(
            select(AgentModel).where(AgentModel.is_active.is_(True)).order_by(AgentModel.id)
        )
        return [_agent_to_domain(m) for m in result.scalars()]

    async def update_workload(
        self, agent_id: int, current_case_count: int, allocation_percentage: float
    ) -> None:
        result = await self._s.execute(
            update(AgentModel)
            .where(AgentModel.id == agent_id)
            .values(
                current_case_count=current_case_count,
                allocation_percentage=allocation_percentage,
                updated_at=func.now(),
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Agent not found: {agent_id}")
        await self._s.flush()


class SqlAuditSink(AuditSink):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def record(
        self,
        entity_type: str,
        entity_id: int | None,
        action: str,
        before: Any = None,
        after: Any = None,
    ) -> None:
        # SAVEPOINT: a failed audit insert must not roll back the caller's writes
        async with self._s.begin_nested():
            self._s.add(
                AuditLogModel(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action=action,
                    changed_fields={"before": before, "after": after},
                )
            )
