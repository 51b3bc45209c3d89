"""CaseAllocation entity — who owns a case right now (latest row per case wins)."""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from case_allocation.domain.value_objects.enums import AllocationStatus

FULL_WORKLOAD = Decimal("100.00")


@dataclass
class CaseAllocation:
    id: int | None
    case_id: int
    primary_agent_id: int
    status: AllocationStatus = AllocationStatus.ALLOCATED
    secondary_agent_id: int | None = None
    allocation_rule_id: int | None = None
    workload_percentage: Decimal | None = FULL_WORKLOAD
    geography_code: str | None = None
    allocated_at: datetime | None = None
    deallocated_at: datetime | None = None

    def is_allocated(self) -> bool:
        return self.status == AllocationStatus.ALLOCATED

    def snapshot(self) -> "CaseAllocation":
        return replace(self)

    def to_audit_dict(self) -> dict:
        return {
            "id": self.id,
            "caseId": self.case_id,
            "primaryAgentId": self.primary_agent_id,
            "secondaryAgentId": self.secondary_agent_id,
            "status": self.status.value,
            "allocationRuleId": self.allocation_rule_id,
            "workloadPercentage": str(self.workload_percentage)
            if self.workload_percentage is not None else None,
            "geographyCode": self.geography_code,
        }
