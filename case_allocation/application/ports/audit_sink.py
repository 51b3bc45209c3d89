"""Port interface for the audit trail."""

from abc import ABC, abstractmethod
from typing import Any


class AuditSink(ABC):
    @abstractmethod
    async def record(
        self,
        entity_type: str,
        entity_id: int | None,
        action: str,
        before: Any = None,
        after: Any = None,
    ) -> None:
        ...
