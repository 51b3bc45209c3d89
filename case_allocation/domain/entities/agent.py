"""Agent entity — a collection agent as seen by the allocation core."""

from dataclasses import dataclass, field

DEFAULT_CAPACITY = 100


@dataclass
class Agent:
    id: int
    username: str
    full_name: str | None = None
    geographies: set[str] = field(default_factory=set)
    max_case_capacity: int | None = None
    current_case_count: int | None = 0
    allocation_percentage: float | None = 0.0
    is_active: bool = True

    @property
    def capacity(self) -> int:
        return self.max_case_capacity if self.max_case_capacity is not None else DEFAULT_CAPACITY

    def available_capacity(self, allocated_count: int) -> int:
        return max(0, self.capacity - allocated_count)
