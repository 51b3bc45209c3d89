"""Domain error taxonomy.

Validation and not-found errors are raised before any write happens.
Business-rule errors signal a violated precondition about current state.
"""


class AllocationError(Exception):
    """Base class for every error raised by the allocation core."""


class ValidationError(AllocationError, ValueError):
    """Malformed or missing input (bad percentages, missing geography filter)."""


class BusinessRuleError(AllocationError):
    """A precondition about system state does not hold."""


class NotFoundError(AllocationError, LookupError):
    """A rule, case or agent id does not resolve."""
