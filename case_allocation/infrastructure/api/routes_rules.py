"""Allocation-rule endpoints — CRUD, simulate, apply."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from case_allocation.application.use_cases.apply_rule import (
    ApplyRuleRequest,
    ApplyRuleUseCase,
    ExecutionResult,
)
from case_allocation.application.use_cases.manage_rules import ManageRulesUseCase, RuleChanges
from case_allocation.application.use_cases.simulate_rule import (
    SimulateRuleUseCase,
    SimulationResult,
)
from case_allocation.domain.entities.allocation_rule import AllocationRule
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria
from case_allocation.infrastructure.api.dependencies import (
    get_apply_rule_uc,
    get_manage_rules_uc,
    get_simulate_rule_uc,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rules", tags=["rules"])

# ── Request schemas ─────────────────────────────────────────────────


class CriteriaPayload(BaseModel):
    rule_type: str
    states: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    geographies: list[str] = Field(default_factory=list)
    buckets: list[str] = Field(default_factory=list)

    def to_criteria(self) -> RuleCriteria:
        return RuleCriteria.from_dict({
            "ruleType": self.rule_type,
            "states": self.states,
            "cities": self.cities,
            "locations": self.locations,
            "geographies": self.geographies,
            "buckets": self.buckets,
        })


class RuleCreateRequest(CriteriaPayload):
    name: str
    description: str | None = None
    priority: int = 0


class RuleUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    priority: int | None = None
    criteria: CriteriaPayload | None = None


class ApplyPayload(BaseModel):
    agent_ids: list[int]
    percentages: list[int] | None = None
    case_ids: list[int] | None = None
    max_cases: int | None = None


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_rule(
    payload: RuleCreateRequest,
    uc: ManageRulesUseCase = Depends(get_manage_rules_uc),
):
    rule = await uc.create(
        name=payload.name,
        criteria=payload.to_criteria(),
        description=payload.description,
        priority=payload.priority,
    )
    return _serialize_rule(rule)


@router.get("")
async def list_rules(uc: ManageRulesUseCase = Depends(get_manage_rules_uc)):
    rules = await uc.list_all()
    return {"total": len(rules), "rules": [_serialize_rule(r) for r in rules]}


@router.get("/{rule_id}")
async def get_rule(rule_id: int, uc: ManageRulesUseCase = Depends(get_manage_rules_uc)):
    return _serialize_rule(await uc.get(rule_id))


@router.put("/{rule_id}")
async def update_rule(
    rule_id: int,
    payload: RuleUpdateRequest,
    uc: ManageRulesUseCase = Depends(get_manage_rules_uc),
):
    changes = RuleChanges(
        name=payload.name,
        description=payload.description,
        priority=payload.priority,
        criteria=payload.criteria.to_criteria() if payload.criteria else None,
    )
    return _serialize_rule(await uc.update(rule_id, changes))


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(rule_id: int, uc: ManageRulesUseCase = Depends(get_manage_rules_uc)):
    await uc.delete(rule_id)


@router.post("/{rule_id}/simulate")
async def simulate_rule(rule_id: int, uc: SimulateRuleUseCase = Depends(get_simulate_rule_uc)):
    """Preview matching cases, eligible agents and a suggested split."""
    return _serialize_simulation(await uc.execute(rule_id))


@router.post("/{rule_id}/apply")
async def apply_rule(
    rule_id: int,
    payload: ApplyPayload,
    uc: ApplyRuleUseCase = Depends(get_apply_rule_uc),
):
    """Allocate cases for a simulated rule and activate it."""
    request = ApplyRuleRequest(
        agent_ids=payload.agent_ids,
        percentages=payload.percentages,
        case_ids=payload.case_ids,
        max_cases=payload.max_cases,
    )
    return _serialize_execution(await uc.execute(rule_id, request))


# ── Serializers ─────────────────────────────────────────────────────


def _serialize_rule(rule: AllocationRule) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "rule_type": rule.rule_type.value,
        "status": rule.status.value,
        "priority": rule.priority,
        "criteria": rule.criteria.to_dict(),
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
        "updated_at": rule.updated_at.isoformat() if rule.updated_at else None,
    }


def _serialize_simulation(result: SimulationResult) -> dict:
    return {
        "rule_id": result.rule_id,
        "rule_type": result.rule_type.value,
        "status": result.status.value,
        "estimated_cases": result.estimated_cases,
        "case_ids": result.case_ids,
        "agent_ids": result.agent_ids,
        "eligible_agents": [
            {
                "agent_id": a.agent_id,
                "username": a.username,
                "capacity": a.capacity,
                "allocated_count": a.allocated_count,
                "available_capacity": a.available_capacity,
            }
            for a in result.eligible_agents
        ],
        "suggested_distribution": {str(k): v for k, v in result.suggested_distribution.items()},
    }


def _serialize_execution(result: ExecutionResult) -> dict:
    return {
        "execution_id": result.execution_id,
        "rule_id": result.rule_id,
        "rule_name": result.rule_name,
        "status": result.status,
        "total_cases_allocated": result.total_cases_allocated,
        "allocation_results": [
            {
                "agent_id": r.agent_id,
                "username": r.username,
                "cases_allocated": r.cases_allocated,
                "percentage": r.percentage,
            }
            for r in result.allocation_results
        ],
        "workload_failures": result.workload.failed_agent_ids if result.workload else [],
    }
