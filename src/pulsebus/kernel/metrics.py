"""Monotonic dispatch counters."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict


@dataclass
class BusMetrics:
    emit_count: int = 0
    wildcard_match_count: int = 0
    cache_hit_count: int = 0
    cache_miss_count: int = 0
    handler_error_count: int = 0

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hit_count + self.cache_miss_count
        if lookups <= 0:
            return 0.0
        return self.cache_hit_count / lookups

    def reset(self) -> None:
        for item in fields(self):
            setattr(self, item.name, 0)

    def as_dict(self) -> Dict[str, int]:
        return {item.name: int(getattr(self, item.name)) for item in fields(self)}
