"""Port interfaces for the external case directory."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from case_allocation.domain.entities.case import CaseRecord
from case_allocation.domain.value_objects.geography_filter import GeographyFilter


@dataclass
class CasePage:
    items: list[CaseRecord] = field(default_factory=list)
    has_next: bool = False


class CaseDirectory(ABC):
    @abstractmethod
    async def get_unallocated_page(
        self,
        geography: GeographyFilter,
        buckets: frozenset[str],
        page: int,
        size: int,
    ) -> CasePage:
        """One page of unallocated cases matching geography ∩ buckets, ordered by id."""
        ...

    @abstractmethod
    async def get_by_ids(self, case_ids: list[int]) -> dict[int, CaseRecord]:
        ...

    @abstractmethod
    async def set_owner(self, case_ids: list[int], agent_id: int | None) -> None:
        """Record (or clear, with None) the owner of record on the case rows."""
        ...


class CacheEvictionPort(ABC):
    @abstractmethod
    async def evict_unallocated_cases(self) -> None:
        """Ask the case directory to drop its unallocated-cases cache.

        May raise; callers treat failures as best-effort.
        """
        ...
