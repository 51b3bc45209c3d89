"""Port interface for allocation-rule persistence."""

from abc import ABC, abstractmethod

from case_allocation.domain.entities.allocation_rule import AllocationRule


class AllocationRuleRepository(ABC):
    @abstractmethod
    async def save(self, rule: AllocationRule) -> AllocationRule:
        ...

    @abstractmethod
    async def get_by_id(self, rule_id: int) -> AllocationRule | None:
        ...

    @abstractmethod
    async def get_all(self) -> list[AllocationRule]:
        """All rules ordered by priority DESC, id ASC."""
        ...

    @abstractmethod
    async def update(self, rule: AllocationRule) -> AllocationRule:
        ...

    @abstractmethod
    async def delete(self, rule_id: int) -> None:
        ...
