"""ApplyRuleUseCase — commit a simulated rule's distribution to the ledger."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from case_allocation.application.ports.agent_directory import AgentDirectory
from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.case_directory import CacheEvictionPort, CaseDirectory
from case_allocation.application.ports.rule_repo import AllocationRuleRepository
from case_allocation.application.use_cases.assignment_ledger import AssignmentLedger
from case_allocation.application.use_cases.case_matching import CaseMatcher
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
from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.entities.case import CaseRecord
from case_allocation.domain.entities.case_allocation import FULL_WORKLOAD, CaseAllocation
from case_allocation.domain.errors import BusinessRuleError, NotFoundError, ValidationError
from case_allocation.domain.policies.distribution import (
    assign_cases,
    capacity_split,
    equal_split,
    validate_percentages,
    weighted_split,
)
from case_allocation.domain.policies.workload import group_deltas
from case_allocation.domain.value_objects.enums import (
    AllocationAction,
    AllocationStatus,
    RuleStatus,
    RuleType,
)

logger = logging.getLogger(__name__)


@dataclass
class ApplyRuleRequest:
    agent_ids: list[int]
    percentages: list[int] | None = None
    case_ids: list[int] | None = None
    max_cases: int | None = None


@dataclass
class AgentAllocationResult:
    agent_id: int
    username: str
    cases_allocated: int
    percentage: int | None = None


@dataclass
class ExecutionResult:
    execution_id: str
    rule_id: int
    rule_name: str
    status: str
    total_cases_allocated: int
    allocation_results: list[AgentAllocationResult] = field(default_factory=list)
    workload: WorkloadUpdateSummary | None = None


class ApplyRuleUseCase:
    """Orchestrates apply: validate → pick cases → distribute → ledger → accounting."""

    def __init__(
        self,
        rule_repo: AllocationRuleRepository,
        case_directory: CaseDirectory,
        agent_directory: AgentDirectory,
        matcher: CaseMatcher,
        ledger: AssignmentLedger,
        workload: WorkloadAccounting,
        audit: AuditSink | None = None,
        cache: CacheEvictionPort | None = None,
    ):
        self._rules = rule_repo
        self._cases = case_directory
        self._agents = agent_directory
        self._matcher = matcher
        self._ledger = ledger
        self._workload = workload
        self._audit = audit
        self._cache = cache

    async def execute(self, rule_id: int, request: ApplyRuleRequest) -> ExecutionResult:
        """Apply a READY_FOR_APPLY rule.

        Every validation, lookup and status check happens before the first
        write, so a rejected apply leaves no partial state.

        Raises:
            NotFoundError: unknown rule, agent or case id.
            BusinessRuleError: rule not simulated, case already allocated,
                nothing left to allocate.
            ValidationError: malformed request or percentages.
        """
        rule = await self._rules.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError(f"Allocation rule not found: {rule_id}")
        if rule.status != RuleStatus.READY_FOR_APPLY:
            raise BusinessRuleError(
                f"Rule {rule_id} is {rule.status.value}: simulation required before applying"
            )

        self._validate_request(rule, request)
        agents = await self._resolve_agents(request.agent_ids)

        if request.case_ids is not None:
            cases = await self._load_requested_cases(request.case_ids)
        else:
            # Criteria may have drifted since simulate; re-resolve the same way.
            cases = await self._matcher.unallocated_cases(rule)

        limit = len(cases) if request.max_cases is None else min(request.max_cases, len(cases))
        if limit == 0:
            raise BusinessRuleError(f"No unallocated cases available for rule {rule_id}")
        cases = cases[:limit]

        distribution = await self._distribute(rule, agents, request, limit)
        assigned = assign_cases([c.id for c in cases], distribution)

        allocations, entries = self._build_rows(rule, request, cases, assigned)
        await self._ledger.record_allocations(allocations, entries)

        workload = await self._workload.apply_deltas(
            group_deltas({agent_id: len(run) for agent_id, run in assigned.items()})
        )

        rule.mark_applied()
        percentages = request.percentages if rule.rule_type == RuleType.PERCENTAGE_SPLIT else None
        rule.criteria = rule.criteria.with_agents(request.agent_ids, percentages)
        await self._rules.update(rule)

        await record_audit(
            self._audit, "ALLOCATION_RULE", rule.id, "APPLY",
            {"status": RuleStatus.READY_FOR_APPLY.value},
            {"status": rule.status.value, "casesAllocated": len(allocations)},
        )
        await evict_unallocated_cache(self._cache)

        pct_by_agent = dict(zip(request.agent_ids, percentages or []))
        results = [
            AgentAllocationResult(
                agent_id=agent.id,
                username=agent.username,
                cases_allocated=len(assigned.get(agent.id, [])),
                percentage=pct_by_agent.get(agent.id),
            )
            for agent in agents
        ]

        logger.info(
            "Applied rule %d (%s): %d cases over %d agents",
            rule.id, rule.rule_type.value, len(allocations), len(assigned),
        )
        return ExecutionResult(
            execution_id=str(uuid.uuid4()),
            rule_id=rule.id,
            rule_name=rule.name,
            status="COMPLETED",
            total_cases_allocated=len(allocations),
            allocation_results=results,
            workload=workload,
        )

    # ─── Validation ──────────────────────────────────────────────────

    @staticmethod
    def _validate_request(rule: AllocationRule, request: ApplyRuleRequest) -> None:
        if not request.agent_ids:
            raise ValidationError("At least one agent id is required")
        if len(set(request.agent_ids)) != len(request.agent_ids):
            raise ValidationError("Agent ids must be unique")
        if request.max_cases is not None and request.max_cases < 0:
            raise ValidationError(f"maxCases must be non-negative, got {request.max_cases}")
        if request.case_ids is not None and not request.case_ids:
            raise ValidationError("caseIds, when given, must not be empty")
        if rule.rule_type == RuleType.PERCENTAGE_SPLIT:
            validate_percentages(request.agent_ids, request.percentages)

    async def _resolve_agents(self, agent_ids: list[int]) -> list[Agent]:
        agents = []
        for agent_id in agent_ids:
            agent = await self._agents.get_by_id(agent_id)
            if agent is None:
                raise NotFoundError(f"Agent not found: {agent_id}")
            agents.append(agent)
        return agents

    async def _load_requested_cases(self, case_ids: list[int]) -> list[CaseRecord]:
        unique_ids = list(dict.fromkeys(case_ids))
        records = await self._cases.get_by_ids(unique_ids)
        cases = []
        for case_id in unique_ids:
            record = records.get(case_id)
            if record is None:
                raise NotFoundError(f"Case not found: {case_id}")
            if not record.is_unallocated():
                raise BusinessRuleError(
                    f"Case {case_id} is already allocated to agent {record.allocated_to_user_id}"
                )
            cases.append(record)
        return cases

    # ─── Distribution ────────────────────────────────────────────────

    async def _distribute(
        self,
        rule: AllocationRule,
        agents: list[Agent],
        request: ApplyRuleRequest,
        total: int,
    ) -> dict[int, int]:
        agent_ids = [a.id for a in agents]
        if rule.rule_type == RuleType.PERCENTAGE_SPLIT:
            return weighted_split(agent_ids, request.percentages, total)
        if rule.rule_type == RuleType.CAPACITY_BASED:
            capacities = await self._matcher.capacities(agents)
            return capacity_split([c.as_slot() for c in capacities], total)
        return equal_split(agent_ids, total)

    @staticmethod
    def _build_rows(
        rule: AllocationRule,
        request: ApplyRuleRequest,
        cases: list[CaseRecord],
        assigned: dict[int, list[int]],
    ) -> tuple[list[CaseAllocation], list[AllocationHistory]]:
        by_id = {c.id: c for c in cases}
        pct_by_agent = dict(zip(request.agent_ids, request.percentages or []))
        now = datetime.now(timezone.utc)

        allocations: list[CaseAllocation] = []
        entries: list[AllocationHistory] = []
        for agent_id, run in assigned.items():
            reason = f"Rule-based allocation: {rule.name}"
            if rule.rule_type == RuleType.PERCENTAGE_SPLIT:
                reason += f" ({pct_by_agent[agent_id]}%)"
            for case_id in run:
                allocations.append(
                    CaseAllocation(
                        id=None,
                        case_id=case_id,
                        primary_agent_id=agent_id,
                        status=AllocationStatus.ALLOCATED,
                        allocation_rule_id=rule.id,
                        workload_percentage=FULL_WORKLOAD,
                        geography_code=by_id[case_id].geography_code,
                        allocated_at=now,
                    )
                )
                entries.append(
                    AllocationHistory(
                        id=None,
                        case_id=case_id,
                        action=AllocationAction.ALLOCATED,
                        allocated_to_user_id=agent_id,
                        reason=reason,
                        allocated_at=now,
                    )
                )
        return allocations, entries
