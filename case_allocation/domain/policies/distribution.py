"""Distribution calculator — how many cases each agent receives.

All functions are pure and deterministic in (ordered agents, total). Callers
pass agents sorted by id ascending so results are reproducible. Every result
is an insertion-ordered ``{agent_id: count}`` mapping whose values sum to
``total``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from case_allocation.domain.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentSlot:
    """An eligible agent and how many more cases it can take."""

    agent_id: int
    available_capacity: int


def _round_half_up(numerator: int, denominator: int) -> int:
    # Integer half-up rounding of numerator / denominator (both non-negative).
    return (2 * numerator + denominator) // (2 * denominator)


def _check_inputs(agent_count: int, total: int) -> None:
    if agent_count == 0:
        raise ValidationError("At least one agent is required for distribution")
    if total < 0:
        raise ValidationError(f"Case count must be non-negative, got {total}")


def equal_split(agent_ids: Sequence[int], total: int) -> dict[int, int]:
    """Split evenly; the first ``total mod k`` agents get one extra case.

    10 cases over three agents gives 4, 3, 3.
    """
    _check_inputs(len(agent_ids), total)
    base, remainder = divmod(total, len(agent_ids))
    return {
        agent_id: base + (1 if index < remainder else 0)
        for index, agent_id in enumerate(agent_ids)
    }


def validate_percentages(agent_ids: Sequence[int], percentages: Sequence[int] | None) -> None:
    """Raise ValidationError naming the first violated constraint."""
    if percentages is None or len(percentages) == 0:
        raise ValidationError("Percentages are required for a percentage split")
    if len(percentages) != len(agent_ids):
        raise ValidationError(
            f"Percentages count ({len(percentages)}) must match agent count ({len(agent_ids)})"
        )
    for pct in percentages:
        if isinstance(pct, bool) or not isinstance(pct, int):
            raise ValidationError(f"Percentage {pct!r} must be an integer")
        if pct < 0 or pct > 100:
            raise ValidationError(f"Percentage {pct} must be between 0 and 100")
    total_pct = sum(percentages)
    if total_pct != 100:
        raise ValidationError(f"Percentages must sum to exactly 100, got {total_pct}")


def weighted_split(
    agent_ids: Sequence[int], percentages: Sequence[int], total: int
) -> dict[int, int]:
    """Split by explicit percentages; the last agent absorbs the rounding remainder.

    Args:
        agent_ids: agents in distribution order.
        percentages: integer share per agent, validated to sum to 100.
        total: number of cases to distribute.

    Raises:
        ValidationError: if the percentages are malformed.
    """
    _check_inputs(len(agent_ids), total)
    validate_percentages(agent_ids, percentages)

    result: dict[int, int] = {}
    remaining = total
    for agent_id, pct in zip(agent_ids[:-1], percentages[:-1]):
        count = min(_round_half_up(total * pct, 100), remaining)
        result[agent_id] = count
        remaining -= count
    result[agent_ids[-1]] = remaining
    return result


def capacity_split(slots: Sequence[AgentSlot], total: int) -> dict[int, int]:
    """Split proportionally to available capacity.

    Each agent but the last gets ``round(total * available / total_available)``
    clamped to its available capacity and to the cases left. The last agent
    takes whatever remains, even beyond its stated capacity. With no capacity
    anywhere the split degrades to ``equal_split``.
    """
    _check_inputs(len(slots), total)
    total_available = sum(s.available_capacity for s in slots)
    if total_available <= 0:
        logger.warning(
            "No available capacity across %d agents, falling back to equal split", len(slots)
        )
        return equal_split([s.agent_id for s in slots], total)

    result: dict[int, int] = {}
    remaining = total
    for slot in slots[:-1]:
        share = _round_half_up(total * slot.available_capacity, total_available)
        count = min(share, slot.available_capacity, remaining)
        result[slot.agent_id] = count
        remaining -= count

    last = slots[-1]
    if remaining > last.available_capacity:
        logger.warning(
            "Agent %d receives %d cases, above its available capacity of %d",
            last.agent_id, remaining, last.available_capacity,
        )
    result[last.agent_id] = remaining
    return result


def assign_cases(case_ids: Sequence[int], distribution: dict[int, int]) -> dict[int, list[int]]:
    """Consume ``case_ids`` in order, giving each agent a contiguous run.

    Stops early if the case list runs out before the distribution does.
    """
    assigned: dict[int, list[int]] = {}
    cursor = 0
    for agent_id, count in distribution.items():
        run = list(case_ids[cursor:cursor + count])
        cursor += len(run)
        if run:
            assigned[agent_id] = run
    return assigned
