"""
Tuning constants for the allocation heuristics.

The defaults are the values the allocator has always used; they are
heuristic weights, not invariants, so every one of them can be overridden.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping


@dataclass(frozen=True)
class AllocationSettings:
    # Local search
    max_iterations: int = 50             # full swap passes before giving up
    acceptance_threshold: float = -0.1   # a swap must score strictly below this
    below_minimum_penalty: float = 10    # source team drops under its minimum
    minimum_reached_reward: float = 10   # target team reaches its minimum
    over_limit_penalty: float = 7        # target team goes over its upper limit
    limit_resolved_reward: float = 3     # source team gets back under its upper limit

    # Soft cap: upper limit = configured minimum + margin
    upper_limit_margin: int = 1

    # Final balancing pass caps, multiplied by teams x criteria
    minimum_pass_factor: int = 3
    upper_pass_factor: int = 1

    def __post_init__(self):
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")
        if self.upper_limit_margin < 0:
            raise ValueError("upper_limit_margin must be >= 0")
        if self.minimum_pass_factor < 1 or self.upper_pass_factor < 1:
            raise ValueError("balancing pass factors must be >= 1")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'AllocationSettings':
        """
        Build settings from a mapping of (possibly string) values, such as a
        submitted form. Unknown keys and empty values are ignored.
        """
        kwargs = {}
        for f in fields(cls):
            raw = values.get(f.name)
            if raw is None or raw == '':
                continue
            kwargs[f.name] = f.type(raw)
        return cls(**kwargs)

    def with_overrides(self, **overrides) -> 'AllocationSettings':
        return replace(self, **overrides)


DEFAULT_SETTINGS = AllocationSettings()
