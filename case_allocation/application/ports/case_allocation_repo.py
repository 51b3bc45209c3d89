"""Port interface for the case-allocation ledger (current ownership rows)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from case_allocation.domain.entities.case_allocation import CaseAllocation
from case_allocation.domain.value_objects.enums import AllocationStatus


@dataclass(frozen=True)
class AllocationFilter:
    """Predicates are ANDed; None means unconstrained."""

    bucket: str | None = None
    status: AllocationStatus | None = None


@dataclass
class AllocationPage:
    items: list[CaseAllocation] = field(default_factory=list)
    has_next: bool = False


class CaseAllocationRepository(ABC):
    @abstractmethod
    async def save_all(self, allocations: list[CaseAllocation]) -> list[CaseAllocation]:
        """Insert new rows (id and allocated_at are assigned here)."""
        ...

    @abstractmethod
    async def update_all(self, allocations: list[CaseAllocation]) -> None:
        """Write back mutated rows in one batch."""
        ...

    @abstractmethod
    async def get_current(self, case_id: int) -> CaseAllocation | None:
        """Latest row for the case by (allocated_at DESC, id DESC)."""
        ...

    @abstractmethod
    async def get_current_by_agent(self, agent_id: int) -> list[CaseAllocation]:
        """Current ALLOCATED rows whose primary agent is ``agent_id``."""
        ...

    @abstractmethod
    async def find_current(self, criteria: AllocationFilter) -> list[CaseAllocation]:
        """Current rows matching the filter (bucket is read from the case)."""
        ...

    @abstractmethod
    async def count_allocated_by_agent(self, agent_id: int) -> int:
        ...

    @abstractmethod
    async def find_allocated(
        self,
        agent_id: int | None,
        geography: str | None,
        page: int,
        size: int,
    ) -> AllocationPage:
        """One page of current ALLOCATED rows, ordered by case id.

        ``geography`` matches the case's state, city or location, or the
        row's geography code.
        """
        ...
