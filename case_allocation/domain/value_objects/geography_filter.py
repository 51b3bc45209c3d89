"""GeographyFilter value object — which states / cities / locations a rule targets."""

from __future__ import annotations

from dataclasses import dataclass, field


def _clean(values) -> frozenset[str]:
    if not values:
        return frozenset()
    return frozenset(v.strip() for v in values if v and v.strip())


@dataclass(frozen=True)
class GeographyFilter:
    states: frozenset[str] = field(default_factory=frozenset)
    cities: frozenset[str] = field(default_factory=frozenset)
    locations: frozenset[str] = field(default_factory=frozenset)
    # Legacy single list kept for rules created before the split into state/city/location
    geographies: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, states=None, cities=None, locations=None, geographies=None) -> "GeographyFilter":
        return cls(
            states=_clean(states),
            cities=_clean(cities),
            locations=_clean(locations),
            geographies=_clean(geographies),
        )

    def is_empty(self) -> bool:
        return not (self.states or self.cities or self.locations or self.geographies)

    def agent_geographies(self) -> list[str]:
        """Sorted union of every geography string, used to look up eligible agents."""
        return sorted(self.states | self.cities | self.locations | self.geographies)

    def to_dict(self) -> dict:
        return {
            "states": sorted(self.states),
            "cities": sorted(self.cities),
            "locations": sorted(self.locations),
            "geographies": sorted(self.geographies),
        }

    def matches(
        self,
        state: str | None,
        city: str | None,
        location: str | None,
        geography_code: str | None = None,
    ) -> bool:
        """Every non-empty dimension must match (dimensions are ANDed).

        Mirrors the WHERE clause built by
        ``SqlCaseDirectory.get_unallocated_page`` for in-memory case stores.
        """
        checks = (
            (self.states, state),
            (self.cities, city),
            (self.locations, location),
            (self.geographies, geography_code),
        )
        return all(value in allowed for allowed, value in checks if allowed)
