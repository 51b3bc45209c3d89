"""Pytest configuration and shared in-memory fakes for every port."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.case_allocation_repo import (
    AllocationFilter,
    AllocationPage,
    CaseAllocationRepository,
)
from case_allocation.application.ports.case_directory import (
    CacheEvictionPort,
    CaseDirectory,
    CasePage,
)
from case_allocation.application.ports.history_repo import AllocationHistoryRepository
from case_allocation.application.ports.rule_repo import AllocationRuleRepository
from case_allocation.application.use_cases.agent_workload import (
    GetAgentWorkloadUseCase,
    ReconcileWorkloadUseCase,
)
from case_allocation.application.use_cases.apply_rule import ApplyRuleRequest, ApplyRuleUseCase
from case_allocation.application.use_cases.assignment_ledger import AssignmentLedger
from case_allocation.application.use_cases.case_matching import CaseMatcher
from case_allocation.application.use_cases.manage_rules import ManageRulesUseCase
from case_allocation.application.use_cases.reallocate import (
    ReallocateByAgentUseCase,
    ReallocateByFilterUseCase,
)
from case_allocation.application.use_cases.simulate_rule import SimulateRuleUseCase
from case_allocation.application.use_cases.workload_accounting import WorkloadAccounting
from case_allocation.domain.entities.agent import Agent
from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.entities.case import CaseRecord
from case_allocation.domain.value_objects.enums import RuleStatus, RuleType
from case_allocation.domain.value_objects.geography_filter import GeographyFilter
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria

# ─── In-memory fakes ────────────────────────────────────────────────


class FakeRuleRepo(AllocationRuleRepository):
    """Stores copies so an aborted use case never leaks in-memory mutations."""

    def __init__(self):
        self.rules: dict[int, AllocationRule] = {}
        self._next_id = 1

    async def save(self, rule):
        rule.id = self._next_id
        self._next_id += 1
        self.rules[rule.id] = copy.deepcopy(rule)
        return rule

    async def get_by_id(self, rule_id):
        rule = self.rules.get(rule_id)
        return copy.deepcopy(rule) if rule else None

    async def get_all(self):
        ordered = sorted(self.rules.values(), key=lambda r: (-r.priority, r.id))
        return [copy.deepcopy(r) for r in ordered]

    async def update(self, rule):
        self.rules[rule.id] = copy.deepcopy(rule)
        return rule

    async def delete(self, rule_id):
        self.rules.pop(rule_id, None)


class FakeCaseDirectory(CaseDirectory):
    def __init__(self, cases: list[CaseRecord] | None = None):
        self.cases: dict[int, CaseRecord] = {c.id: c for c in cases or []}
        self.page_requests: list[tuple[int, int]] = []

    async def get_unallocated_page(self, geography, buckets, page, size):
        self.page_requests.append((page, size))
        matching = [
            c for c in sorted(self.cases.values(), key=lambda c: c.id)
            if c.is_unallocated()
            and geography.matches(c.state, c.city, c.location, c.geography_code)
            and (not buckets or c.bucket in buckets)
        ]
        start = page * size
        return CasePage(
            items=[copy.copy(c) for c in matching[start:start + size]],
            has_next=len(matching) > start + size,
        )

    async def get_by_ids(self, case_ids):
        return {cid: copy.copy(self.cases[cid]) for cid in case_ids if cid in self.cases}

    async def set_owner(self, case_ids, agent_id):
        for case_id in case_ids:
            if case_id in self.cases:
                self.cases[case_id].allocated_to_user_id = agent_id


class FakeAllocationRepo(CaseAllocationRepository):
    def __init__(self, case_directory: FakeCaseDirectory):
        self.rows: dict[int, object] = {}
        self._cases = case_directory
        self._next_id = 1

    def _current_rows(self):
        latest = {}
        for row in self.rows.values():
            best = latest.get(row.case_id)
            if best is None or (row.allocated_at, row.id) > (best.allocated_at, best.id):
                latest[row.case_id] = row
        return sorted(latest.values(), key=lambda r: r.case_id)

    async def save_all(self, allocations):
        now = datetime.now(timezone.utc)
        for allocation in allocations:
            allocation.id = self._next_id
            self._next_id += 1
            allocation.allocated_at = allocation.allocated_at or now
            self.rows[allocation.id] = copy.deepcopy(allocation)
        return allocations

    async def update_all(self, allocations):
        for allocation in allocations:
            self.rows[allocation.id] = copy.deepcopy(allocation)

    async def get_current(self, case_id):
        rows = [r for r in self._current_rows() if r.case_id == case_id]
        return copy.deepcopy(rows[0]) if rows else None

    async def get_current_by_agent(self, agent_id):
        return [
            copy.deepcopy(r) for r in self._current_rows()
            if r.primary_agent_id == agent_id and r.is_allocated()
        ]

    async def find_current(self, criteria: AllocationFilter):
        result = []
        for row in self._current_rows():
            if criteria.status is not None and row.status != criteria.status:
                continue
            if criteria.bucket:
                case = self._cases.cases.get(row.case_id)
                if case is None or case.bucket != criteria.bucket:
                    continue
            result.append(copy.deepcopy(row))
        return result

    async def find_allocated(self, agent_id, geography, page, size):
        matching = []
        for row in self._current_rows():
            if not row.is_allocated():
                continue
            if agent_id is not None and row.primary_agent_id != agent_id:
                continue
            if geography:
                case = self._cases.cases.get(row.case_id)
                places = {row.geography_code}
                if case is not None:
                    places |= {case.state, case.city, case.location}
                if geography not in places:
                    continue
            matching.append(row)
        start = page * size
        return AllocationPage(
            items=[copy.deepcopy(r) for r in matching[start:start + size]],
            has_next=len(matching) > start + size,
        )

    async def count_allocated_by_agent(self, agent_id):
        return sum(
            1 for r in self._current_rows()
            if r.primary_agent_id == agent_id and r.is_allocated()
        )


class FakeHistoryRepo(AllocationHistoryRepository):
    def __init__(self):
        self.entries = []

    async def save_all(self, entries):
        for entry in entries:
            entry.id = len(self.entries) + 1
            entry.allocated_at = entry.allocated_at or datetime.now(timezone.utc)
            self.entries.append(copy.deepcopy(entry))
        return entries

    async def get_by_case(self, case_id):
        rows = [e for e in self.entries if e.case_id == case_id]
        return sorted(rows, key=lambda e: (e.allocated_at, e.id), reverse=True)


class FakeAgentDirectory(AgentDirectory):
    def __init__(self, agents: list[Agent] | None = None):
        self.agents: dict[int, Agent] = {a.id: a for a in agents or []}
        self.failing_ids: set[int] = set()
        self.workload_writes: list[tuple[int, int, float]] = []

    async def get_by_id(self, agent_id):
        agent = self.agents.get(agent_id)
        return copy.deepcopy(agent) if agent else None

    async def get_by_username(self, username):
        return next(
            (
                copy.deepcopy(a) for a in sorted(self.agents.values(), key=lambda a: a.id)
                if a.username.lower() == username.lower()
            ),
            None,
        )

    async def get_by_geographies(self, geographies):
        wanted = set(geographies)
        return [
            copy.deepcopy(a) for a in sorted(self.agents.values(), key=lambda a: a.id)
            if a.is_active and a.geographies & wanted
        ]

    async def get_active(self):
        return [copy.deepcopy(a) for a in sorted(self.agents.values(), key=lambda a: a.id) if a.is_active]

    async def update_workload(self, agent_id, current_case_count, allocation_percentage):
        if agent_id in self.failing_ids:
            raise RuntimeError(f"agent store unavailable for {agent_id}")
        agent = self.agents[agent_id]
        agent.current_case_count = current_case_count
        agent.allocation_percentage = allocation_percentage
        self.workload_writes.append((agent_id, current_case_count, allocation_percentage))


class FakeAuditSink(AuditSink):
    def __init__(self, fail: bool = False):
        self.records = []
        self.fail = fail

    async def record(self, entity_type, entity_id, action, before=None, after=None):
        if self.fail:
            raise RuntimeError("audit store down")
        self.records.append((entity_type, entity_id, action, before, after))


class FakeCache(CacheEvictionPort):
    def __init__(self, fail: bool = False):
        self.evictions = 0
        self.fail = fail

    async def evict_unallocated_cases(self):
        self.evictions += 1
        if self.fail:
            raise RuntimeError("case directory unreachable")


# ─── Builders ───────────────────────────────────────────────────────


def make_agent(agent_id: int, geographies=("MH",), capacity=None, count=0, active=True) -> Agent:
    return Agent(
        id=agent_id,
        username=f"agent{agent_id}",
        geographies=set(geographies),
        max_case_capacity=capacity,
        current_case_count=count,
        is_active=active,
    )


def make_case(case_id: int, state="MH", city="Pune", bucket="B1", owner=None) -> CaseRecord:
    return CaseRecord(
        id=case_id,
        state=state,
        city=city,
        location=None,
        bucket=bucket,
        geography_code=f"{state}-{city}",
        allocated_to_user_id=owner,
    )


def make_rule(
    rule_type=RuleType.GEOGRAPHY,
    states=("MH",),
    buckets=(),
    status=RuleStatus.DRAFT,
    name="Maharashtra split",
) -> AllocationRule:
    return AllocationRule(
        id=None,
        name=name,
        criteria=RuleCriteria(
            rule_type=rule_type,
            geography=GeographyFilter.of(states=list(states)),
            buckets=frozenset(buckets),
        ),
        status=status,
    )


class World:
    """Every fake wired together the way the API dependencies wire the SQL adapters."""

    def __init__(self):
        self.rules = FakeRuleRepo()
        self.cases = FakeCaseDirectory()
        self.allocations = FakeAllocationRepo(self.cases)
        self.history = FakeHistoryRepo()
        self.agents = FakeAgentDirectory()
        self.audit = FakeAuditSink()
        self.cache = FakeCache()
        self.page_size = 1000

    def add_agents(self, *agents: Agent) -> None:
        for agent in agents:
            self.agents.agents[agent.id] = agent

    def add_cases(self, *cases: CaseRecord) -> None:
        for case in cases:
            self.cases.cases[case.id] = case

    async def add_rule(self, rule: AllocationRule) -> AllocationRule:
        return await self.rules.save(rule)

    async def allocate(self, agent_id: int, case_ids: list[int]) -> None:
        """Seed ownership through a real apply of a one-agent rule."""
        rule = await self.add_rule(make_rule(status=RuleStatus.READY_FOR_APPLY))
        await self.apply().execute(rule.id, ApplyRuleRequest(agent_ids=[agent_id], case_ids=case_ids))

    def workload(self) -> WorkloadAccounting:
        return WorkloadAccounting(self.agents)

    def matcher(self) -> CaseMatcher:
        return CaseMatcher(self.cases, self.agents, self.allocations, page_size=self.page_size)

    def ledger(self) -> AssignmentLedger:
        return AssignmentLedger(
            self.allocations, self.history, self.cases, self.workload(), self.audit, self.cache
        )

    def manage_rules(self) -> ManageRulesUseCase:
        return ManageRulesUseCase(self.rules, self.audit)

    def simulate(self) -> SimulateRuleUseCase:
        return SimulateRuleUseCase(self.rules, self.matcher(), self.audit)

    def apply(self) -> ApplyRuleUseCase:
        return ApplyRuleUseCase(
            self.rules, self.cases, self.agents, self.matcher(),
            self.ledger(), self.workload(), self.audit, self.cache,
        )

    def reallocate_by_agent(self) -> ReallocateByAgentUseCase:
        return ReallocateByAgentUseCase(
            self.allocations, self.ledger(), self.cases, self.agents,
            self.workload(), self.audit, self.cache,
        )

    def reallocate_by_filter(self) -> ReallocateByFilterUseCase:
        return ReallocateByFilterUseCase(
            self.allocations, self.ledger(), self.cases, self.agents,
            self.workload(), self.audit, self.cache,
        )

    def agent_workload(self) -> GetAgentWorkloadUseCase:
        return GetAgentWorkloadUseCase(self.agents, self.allocations)

    def reconcile(self) -> ReconcileWorkloadUseCase:
        return ReconcileWorkloadUseCase(self.agents, self.allocations)


@pytest.fixture
def world() -> World:
    return World()
