"""Reallocation endpoints — move cases between agents."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from case_allocation.application.ports.case_allocation_repo import AllocationFilter
from case_allocation.application.use_cases.reallocate import (
    ReallocateByAgentUseCase,
    ReallocateByFilterUseCase,
    ReallocationResult,
)
from case_allocation.domain.value_objects.enums import AllocationStatus
from case_allocation.infrastructure.api.dependencies import (
    get_reallocate_by_agent_uc,
    get_reallocate_by_filter_uc,
)

router = APIRouter(prefix="/reallocations", tags=["reallocation"])


class ByAgentRequest(BaseModel):
    # Numeric id or username
    from_agent: int | str
    to_agent: int | str
    reason: str | None = None


class ByFilterRequest(BaseModel):
    to_agent: int | str
    bucket: str | None = None
    status: AllocationStatus | None = None
    reason: str | None = None


@router.post("/by-agent")
async def reallocate_by_agent(
    payload: ByAgentRequest,
    uc: ReallocateByAgentUseCase = Depends(get_reallocate_by_agent_uc),
):
    result = await uc.execute(payload.from_agent, payload.to_agent, payload.reason)
    return _serialize_result(result)


@router.post("/by-filter")
async def reallocate_by_filter(
    payload: ByFilterRequest,
    uc: ReallocateByFilterUseCase = Depends(get_reallocate_by_filter_uc),
):
    criteria = AllocationFilter(bucket=payload.bucket, status=payload.status)
    result = await uc.execute(criteria, payload.to_agent, payload.reason)
    return {**_serialize_result(result), "estimated_cases": result.cases_moved}


def _serialize_result(result: ReallocationResult) -> dict:
    return {
        "job_id": result.job_id,
        "status": result.status,
        "cases_moved": result.cases_moved,
        "workload_failures": result.workload.failed_agent_ids if result.workload else [],
    }
