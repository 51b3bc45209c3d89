"""RuleCriteria — structured allocation-rule criteria.

Stored as a JSON document; decoded once here instead of probing string keys
at every use site.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from case_allocation.domain.errors import ValidationError
from case_allocation.domain.value_objects.enums import RuleType
from case_allocation.domain.value_objects.geography_filter import GeographyFilter


@dataclass(frozen=True)
class RuleCriteria:
    rule_type: RuleType
    geography: GeographyFilter = field(default_factory=GeographyFilter)
    buckets: frozenset[str] = field(default_factory=frozenset)
    agent_ids: tuple[int, ...] = ()
    percentages: tuple[int, ...] = ()

    def with_agents(self, agent_ids, percentages=None) -> "RuleCriteria":
        return RuleCriteria(
            rule_type=self.rule_type,
            geography=self.geography,
            buckets=self.buckets,
            agent_ids=tuple(agent_ids),
            percentages=tuple(percentages) if percentages is not None else self.percentages,
        )

    def to_dict(self) -> dict:
        data = {"ruleType": self.rule_type.value, "buckets": sorted(self.buckets)}
        data.update(self.geography.to_dict())
        if self.agent_ids:
            data["agentIds"] = list(self.agent_ids)
        if self.percentages:
            data["percentages"] = list(self.percentages)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RuleCriteria":
        raw_type = data.get("ruleType") or data.get("type")
        try:
            rule_type = RuleType(raw_type)
        except ValueError:
            raise ValidationError(f"Unknown allocation rule type: {raw_type!r}") from None

        return cls(
            rule_type=rule_type,
            geography=GeographyFilter.of(
                states=data.get("states"),
                cities=data.get("cities"),
                locations=data.get("locations"),
                geographies=data.get("geographies") or data.get("geography"),
            ),
            buckets=frozenset(b for b in (data.get("buckets") or []) if b),
            agent_ids=tuple(int(a) for a in (data.get("agentIds") or [])),
            percentages=tuple(int(p) for p in (data.get("percentages") or [])),
        )
