"""Port interface for the external agent directory."""

from abc import ABC, abstractmethod

from case_allocation.domain.entities.agent import Agent


class AgentDirectory(ABC):
    @abstractmethod
    async def get_by_id(self, agent_id: int) -> Agent | None:
        ...

    @abstractmethod
    async def get_by_username(self, username: str) -> Agent | None:
        """Case-insensitive username lookup; the lowest id wins when several match."""
        ...

    @abstractmethod
    async def get_by_geographies(self, geographies: list[str]) -> list[Agent]:
        """Active agents assigned to any of the geographies, ordered by id."""
        ...

    @abstractmethod
    async def get_active(self) -> list[Agent]:
        ...

    @abstractmethod
    async def update_workload(
        self, agent_id: int, current_case_count: int, allocation_percentage: float
    ) -> None:
        """Write the two workload fields; capacity and identity are untouched."""
        ...
