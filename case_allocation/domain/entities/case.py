"""Case record — read from the case directory, never owned by the allocation core."""

from dataclasses import dataclass


@dataclass
class CaseRecord:
    id: int
    state: str | None = None
    city: str | None = None
    location: str | None = None
    bucket: str | None = None
    geography_code: str | None = None
    allocated_to_user_id: int | None = None

    def is_unallocated(self) -> bool:
        return self.allocated_to_user_id is None
