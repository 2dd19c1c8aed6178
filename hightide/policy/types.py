"""Policy data types.

A PolicySet is the unit that gets published to readers. Everything below it
is frozen: property maps are read-only views and sequences are tuples, so a
reader holding an old generation can never observe it changing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

REPLICATION = "replication"
MOD_TIME_PERIOD = "modTimePeriod"


def _freeze(properties: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType(dict(properties or {}))


@dataclass(frozen=True)
class Destination:
    """One target path under a policy."""
    path: str
    properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "properties", _freeze(self.properties))

    def get_property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.properties.get(key, default)

    @property
    def replication(self) -> int:
        return int(self.properties[REPLICATION])

    def to_dict(self) -> dict:
        return {"path": self.path, "properties": dict(self.properties)}


@dataclass(frozen=True)
class Policy:
    """A named rule mapping one source path to one or more destinations.

    The policy name is its source path, so two policies with the same
    source path cannot coexist in one PolicySet.
    """
    src_path: str
    properties: Mapping[str, str] = field(default_factory=dict)
    destinations: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "properties", _freeze(self.properties))
        object.__setattr__(self, "destinations", tuple(self.destinations))

    @property
    def name(self) -> str:
        return self.src_path

    def get_property(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.properties.get(key, default)

    @property
    def replication(self) -> int:
        return int(self.properties[REPLICATION])

    @property
    def mod_time_period(self) -> int:
        """Modification-time window in milliseconds."""
        return int(self.properties[MOD_TIME_PERIOD])

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "src_path": self.src_path,
            "properties": dict(self.properties),
            "destinations": [d.to_dict() for d in self.destinations],
        }


@dataclass(frozen=True)
class PolicySet:
    """An immutable, fully validated generation of policies."""
    policies: tuple = ()
    source: str = ""
    loaded_at: float = field(default_factory=time.time)
    generation: int = 0

    def __post_init__(self):
        object.__setattr__(self, "policies", tuple(self.policies))

    @classmethod
    def empty(cls, source: str = "") -> "PolicySet":
        return cls(policies=(), source=source)

    def __iter__(self) -> Iterator[Policy]:
        return iter(self.policies)

    def __len__(self) -> int:
        return len(self.policies)

    def names(self) -> list:
        return [p.name for p in self.policies]

    def get(self, name: str) -> Optional[Policy]:
        for policy in self.policies:
            if policy.name == name:
                return policy
        return None

    def with_generation(self, generation: int) -> "PolicySet":
        return replace(self, generation=generation)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "loaded_at": self.loaded_at,
            "generation": self.generation,
            "policies": [p.to_dict() for p in self.policies],
        }
