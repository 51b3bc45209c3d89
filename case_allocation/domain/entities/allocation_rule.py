"""AllocationRule entity — a configurable distribution rule with a one-way lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from case_allocation.domain.errors import BusinessRuleError, ValidationError
from case_allocation.domain.value_objects.enums import RuleStatus, RuleType
from case_allocation.domain.value_objects.rule_criteria import RuleCriteria


@dataclass
class AllocationRule:
    id: int | None
    name: str
    criteria: RuleCriteria
    description: str | None = None
    status: RuleStatus = RuleStatus.DRAFT
    priority: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def rule_type(self) -> RuleType:
        return self.criteria.rule_type

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Rule name is required")
        if self.criteria.geography.is_empty():
            raise ValidationError(
                "At least one geography filter (states, cities, locations or geographies) is required"
            )

    def is_editable(self) -> bool:
        return self.status != RuleStatus.ACTIVE

    def mark_simulated(self) -> bool:
        """DRAFT → READY_FOR_APPLY. Returns True if the status changed.

        Re-simulating a READY_FOR_APPLY rule is a no-op.
        """
        if self.status == RuleStatus.DRAFT:
            self.status = RuleStatus.READY_FOR_APPLY
            return True
        if self.status == RuleStatus.READY_FOR_APPLY:
            return False
        raise ValidationError(
            f"Rule {self.id} cannot be simulated in status {self.status.value}"
        )

    def mark_applied(self) -> None:
        """READY_FOR_APPLY → ACTIVE; any other status is rejected."""
        if self.status != RuleStatus.READY_FOR_APPLY:
            raise BusinessRuleError(
                f"Rule {self.id} is {self.status.value}: simulation required before applying"
            )
        self.status = RuleStatus.ACTIVE
