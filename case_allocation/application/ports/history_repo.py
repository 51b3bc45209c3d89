"""Port interface for the append-only allocation history."""

from abc import ABC, abstractmethod

from case_allocation.domain.entities.allocation_history import AllocationHistory


class AllocationHistoryRepository(ABC):
    @abstractmethod
    async def save_all(self, entries: list[AllocationHistory]) -> list[AllocationHistory]:
        ...

    @abstractmethod
    async def get_by_case(self, case_id: int) -> list[AllocationHistory]:
        """History for a case, most recent first."""
        ...
