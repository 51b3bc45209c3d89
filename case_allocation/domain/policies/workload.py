"""Workload maths — case counts and utilization percentages."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from case_allocation.domain.entities.agent import DEFAULT_CAPACITY


@dataclass(frozen=True)
class WorkloadDelta:
    """A signed change to one agent's case count."""

    agent_id: int
    delta: int


def allocation_percentage(case_count: int, capacity: int | None) -> float:
    """round2(case_count / capacity * 100); capacity None means 100, 0 means 0%."""
    if capacity is None:
        capacity = DEFAULT_CAPACITY
    if capacity <= 0:
        return 0.0
    pct = (Decimal(case_count) * 100 / Decimal(capacity)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )
    return float(pct)


def next_case_count(current: int | None, delta: int) -> int:
    """Apply a delta to a possibly-null count, never going below zero."""
    return max(0, (current or 0) + delta)


def group_deltas(agent_counts: dict[int, int], sign: int = 1) -> list[WorkloadDelta]:
    """Turn ``{agent_id: count}`` into one delta per agent, skipping zeros."""
    return [
        WorkloadDelta(agent_id=agent_id, delta=sign * count)
        for agent_id, count in agent_counts.items()
        if count
    ]
