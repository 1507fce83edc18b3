"""Event name -> matching wildcard patterns, with sliding TTL and size bounds."""

from __future__ import annotations

import math
from typing import Callable, Dict, List, Optional

from pulsebus.kernel.matcher import literal_prefix
from pulsebus.kernel.metrics import BusMetrics
from pulsebus.kernel.registry import PatternIndex
from pulsebus.kernel.types import CacheEntry, Clock, PatternEntry, now_ms

DEFAULT_CACHE_TTL_MS = 5000
DEFAULT_MAX_CACHE_SIZE = 1000
DEFAULT_EVICTION_RATIO = 0.2

DebugHook = Callable[[str], None]


class MatchCache:
    """Caches the pattern entries accepting a given event name.

    Entries are refreshed on every hit and expire ``ttl_ms`` after their
    last access. Cached lists hold live ``PatternEntry`` objects, so the
    cache only has to be invalidated when a pattern entry is created or
    dropped.
    """

    def __init__(
        self,
        index: PatternIndex,
        *,
        metrics: Optional[BusMetrics] = None,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        max_size: int = DEFAULT_MAX_CACHE_SIZE,
        eviction_ratio: float = DEFAULT_EVICTION_RATIO,
        clock: Optional[Clock] = None,
        on_debug: Optional[DebugHook] = None,
    ) -> None:
        self._index = index
        self._metrics = metrics or BusMetrics()
        self._entries: Dict[str, CacheEntry] = {}
        self._clock = clock or now_ms
        self._on_debug = on_debug
        self.ttl_ms = max(0, int(ttl_ms))
        self._max_size = max(1, int(max_size))
        self.eviction_ratio = min(1.0, max(0.0, float(eviction_ratio)))

    @property
    def max_size(self) -> int:
        return self._max_size

    @max_size.setter
    def max_size(self, value: int) -> None:
        self._max_size = max(1, int(value))
        if len(self._entries) > self._max_size:
            self._evict_oldest()

    def lookup(self, event: str) -> List[PatternEntry]:
        now = self._clock()
        cached = self._entries.get(event)
        if cached is not None and now - cached.timestamp <= self.ttl_ms:
            cached.timestamp = now
            self._metrics.cache_hit_count += 1
            return cached.matches

        self._metrics.cache_miss_count += 1
        matches: List[PatternEntry] = []
        for entry in self._index.entries():
            if not entry.matcher.may_match(event):
                continue
            if entry.matcher.matches(event):
                matches.append(entry)

        self._entries[event] = CacheEntry(matches=matches, timestamp=now)
        if len(self._entries) > self.max_size:
            self._evict_oldest()
        return matches

    def invalidate(self, pattern: str) -> int:
        prefix = literal_prefix(pattern)
        stale = [
            key
            for key in self._entries
            if key.startswith(prefix) or pattern.startswith(key)
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            self._debug("invalidated {0} cached match results for {1!r}".format(len(stale), pattern))
        return len(stale)

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.timestamp > self.ttl_ms]
        for key in expired:
            del self._entries[key]
        if expired:
            self._debug("swept {0} expired cached match results".format(len(expired)))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, event: object) -> bool:
        return event in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_oldest(self) -> None:
        # Always lands at or below the cap, even right after it was lowered.
        overflow = len(self._entries) - self.max_size
        count = max(1, overflow, int(math.floor(self.max_size * self.eviction_ratio)))
        oldest = sorted(self._entries.items(), key=lambda item: item[1].timestamp)[:count]
        for key, _ in oldest:
            del self._entries[key]
        self._debug("match cache over capacity, evicted {0} oldest results".format(len(oldest)))

    def _debug(self, message: str) -> None:
        if self._on_debug is not None:
            self._on_debug(message)
