"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class RuleType(str, Enum):
    PERCENTAGE_SPLIT = "PERCENTAGE_SPLIT"
    CAPACITY_BASED = "CAPACITY_BASED"
    GEOGRAPHY = "GEOGRAPHY"


class RuleStatus(str, Enum):
    DRAFT = "DRAFT"
    READY_FOR_APPLY = "READY_FOR_APPLY"
    ACTIVE = "ACTIVE"


class AllocationStatus(str, Enum):
    ALLOCATED = "ALLOCATED"
    DEALLOCATED = "DEALLOCATED"


class AllocationAction(str, Enum):
    ALLOCATED = "ALLOCATED"
    DEALLOCATED = "DEALLOCATED"
    REALLOCATED = "REALLOCATED"
