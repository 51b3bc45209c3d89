"""AllocationHistory entity — append-only ownership trail of a case."""

from dataclasses import dataclass
from datetime import datetime

from case_allocation.domain.value_objects.enums import AllocationAction


@dataclass
class AllocationHistory:
    id: int | None
    case_id: int
    action: AllocationAction
    allocated_to_user_id: int | None = None
    allocated_from_user_id: int | None = None
    reason: str | None = None
    allocated_at: datetime | None = None
