"""Allocation endpoints — allocated cases, current owner, history, deallocation, agent workload."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from case_allocation.application.use_cases.agent_workload import (
    GetAgentWorkloadUseCase,
    ReconcileWorkloadUseCase,
)
from case_allocation.application.use_cases.assignment_ledger import AssignmentLedger
from case_allocation.application.use_cases.workload_accounting import WorkloadUpdateSummary
from case_allocation.domain.entities.case_allocation import CaseAllocation
from case_allocation.infrastructure.api.dependencies import (
    get_agent_workload_uc,
    get_ledger,
    get_reconcile_workload_uc,
)

router = APIRouter(prefix="/allocations", tags=["allocations"])


class DeallocateRequest(BaseModel):
    reason: str | None = None


class BulkDeallocateRequest(BaseModel):
    case_ids: list[int]
    reason: str | None = None


class ReconcileRequest(BaseModel):
    agent_ids: list[int] | None = None


@router.get("/cases/allocated")
async def list_allocated_cases(
    agent_id: int | None = None,
    geography: str | None = None,
    page: int = 0,
    size: int = 50,
    ledger: AssignmentLedger = Depends(get_ledger),
):
    """Currently allocated cases with their agents, paged by case id."""
    result = await ledger.list_allocated(agent_id=agent_id, geography=geography, page=page, size=size)
    return {
        "page": page,
        "size": size,
        "has_next": result.has_next,
        "total": len(result.items),
        "allocations": [_serialize_allocation(a) for a in result.items],
    }


@router.get("/cases/{case_id}")
async def get_current_owner(case_id: int, ledger: AssignmentLedger = Depends(get_ledger)):
    return _serialize_allocation(await ledger.current_owner(case_id))


@router.get("/cases/{case_id}/history")
async def get_history(case_id: int, ledger: AssignmentLedger = Depends(get_ledger)):
    entries = await ledger.history(case_id)
    return {
        "case_id": case_id,
        "total": len(entries),
        "history": [
            {
                "id": e.id,
                "action": e.action.value,
                "allocated_to_user_id": e.allocated_to_user_id,
                "allocated_from_user_id": e.allocated_from_user_id,
                "reason": e.reason,
                "allocated_at": e.allocated_at.isoformat() if e.allocated_at else None,
            }
            for e in entries
        ],
    }


@router.post("/cases/{case_id}/deallocate")
async def deallocate(
    case_id: int,
    payload: DeallocateRequest | None = None,
    ledger: AssignmentLedger = Depends(get_ledger),
):
    allocation = await ledger.deallocate(case_id, payload.reason if payload else None)
    return _serialize_allocation(allocation)


@router.post("/deallocate/bulk")
async def bulk_deallocate(
    payload: BulkDeallocateRequest,
    ledger: AssignmentLedger = Depends(get_ledger),
):
    """Deallocate many cases; failures are reported per case, not raised."""
    result = await ledger.bulk_deallocate(payload.case_ids, payload.reason)
    return {
        "job_id": result.job_id,
        "total_cases": result.total_cases,
        "success_count": result.success_count,
        "failure_count": result.failure_count,
        "failed_case_ids": result.failed_case_ids,
        "errors": {str(k): v for k, v in result.errors.items()},
    }


@router.get("/agents/workload")
async def get_agent_workload(
    agent_ids: list[int] | None = Query(default=None),
    geographies: list[str] | None = Query(default=None),
    uc: GetAgentWorkloadUseCase = Depends(get_agent_workload_uc),
):
    views = await uc.execute(agent_ids=agent_ids, geographies=geographies)
    return {
        "total": len(views),
        "agents": [
            {
                "agent_id": v.agent_id,
                "username": v.username,
                "geographies": v.geographies,
                "allocated": v.allocated,
                "capacity": v.capacity,
                "available_capacity": v.available_capacity,
                "utilization_percentage": v.utilization_percentage,
            }
            for v in views
        ],
    }


@router.post("/agents/workload/reconcile")
async def reconcile_workload(
    payload: ReconcileRequest | None = None,
    uc: ReconcileWorkloadUseCase = Depends(get_reconcile_workload_uc),
):
    summary = await uc.execute(agent_ids=payload.agent_ids if payload else None)
    return _serialize_workload(summary)


def _serialize_allocation(a: CaseAllocation) -> dict:
    return {
        "id": a.id,
        "case_id": a.case_id,
        "primary_agent_id": a.primary_agent_id,
        "secondary_agent_id": a.secondary_agent_id,
        "status": a.status.value,
        "allocation_rule_id": a.allocation_rule_id,
        "workload_percentage": float(a.workload_percentage) if a.workload_percentage is not None else None,
        "geography_code": a.geography_code,
        "allocated_at": a.allocated_at.isoformat() if a.allocated_at else None,
        "deallocated_at": a.deallocated_at.isoformat() if a.deallocated_at else None,
    }


def _serialize_workload(summary: WorkloadUpdateSummary) -> dict:
    return {
        "success_count": summary.success_count,
        "failure_count": summary.failure_count,
        "failed_agent_ids": summary.failed_agent_ids,
        "updated": [
            {
                "agent_id": w.agent_id,
                "current_case_count": w.current_case_count,
                "allocation_percentage": w.allocation_percentage,
            }
            for w in summary.updated
        ],
    }
