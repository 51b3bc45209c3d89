"""SimulateRuleUseCase — dry-run a rule and move it to READY_FOR_APPLY."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from case_allocation.application.ports.audit_sink import AuditSink
from case_allocation.application.ports.rule_repo import AllocationRuleRepository
from case_allocation.application.use_cases.case_matching import (
    AgentCapacity,
    CaseMatcher,
    suggest_distribution,
)
from case_allocation.application.use_cases.side_effects import record_audit
from case_allocation.domain.errors import BusinessRuleError, NotFoundError, ValidationError
from case_allocation.domain.value_objects.enums import RuleStatus, RuleType

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    rule_id: int
    rule_type: RuleType
    status: RuleStatus
    case_ids: list[int] = field(default_factory=list)
    agent_ids: list[int] = field(default_factory=list)
    eligible_agents: list[AgentCapacity] = field(default_factory=list)
    suggested_distribution: dict[int, int] = field(default_factory=dict)

    @property
    def estimated_cases(self) -> int:
        return len(self.case_ids)


class SimulateRuleUseCase:
    """Computes eligible cases/agents and a suggested split without assigning anything."""

    def __init__(
        self,
        rule_repo: AllocationRuleRepository,
        matcher: CaseMatcher,
        audit: AuditSink | None = None,
    ):
        self._rules = rule_repo
        self._matcher = matcher
        self._audit = audit

    async def execute(self, rule_id: int) -> SimulationResult:
        rule = await self._rules.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError(f"Allocation rule not found: {rule_id}")
        if rule.status not in (RuleStatus.DRAFT, RuleStatus.READY_FOR_APPLY):
            raise ValidationError(
                f"Rule {rule_id} is {rule.status.value} and can no longer be simulated"
            )

        cases = await self._matcher.unallocated_cases(rule)
        agents = await self._matcher.eligible_agents(rule)
        if not agents:
            raise BusinessRuleError(
                f"No eligible agents found for geographies {rule.criteria.geography.agent_geographies()}"
            )
        capacities = await self._matcher.capacities(agents)
        suggestion = suggest_distribution(rule.rule_type, capacities, len(cases))

        changed = rule.mark_simulated()
        rule.criteria = rule.criteria.with_agents([a.id for a in agents])
        await self._rules.update(rule)
        await record_audit(
            self._audit, "ALLOCATION_RULE", rule.id, "SIMULATE",
            None, {"status": rule.status.value, "estimatedCases": len(cases)},
        )

        logger.info(
            "Simulated rule %d (%s): %d cases, %d agents, status %s%s",
            rule.id, rule.rule_type.value, len(cases), len(agents),
            rule.status.value, "" if changed else " (unchanged)",
        )
        return SimulationResult(
            rule_id=rule.id,
            rule_type=rule.rule_type,
            status=rule.status,
            case_ids=[c.id for c in cases],
            agent_ids=[a.id for a in agents],
            eligible_agents=capacities,
            suggested_distribution=suggestion,
        )
