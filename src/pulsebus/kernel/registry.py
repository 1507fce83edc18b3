"""Handler registries for exact event names and wildcard patterns."""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

from pulsebus.kernel.matcher import CompiledPattern, MatcherCache
from pulsebus.kernel.types import HandlerRecord, PatternEntry, now_ms


def insert_record(handlers: List[HandlerRecord], record: HandlerRecord) -> None:
    handlers.append(record)
    handlers.sort(key=HandlerRecord.sort_key)


def remove_records(handlers: List[HandlerRecord], handler_or_id: object = None) -> bool:
    if handler_or_id is None:
        removed = bool(handlers)
        del handlers[:]
        return removed
    kept = [record for record in handlers if not record.matches(handler_or_id)]
    removed = len(kept) < len(handlers)
    handlers[:] = kept
    return removed


def update_priority(handlers: List[HandlerRecord], handler_or_id: object, priority: int) -> bool:
    for record in handlers:
        if record.matches(handler_or_id):
            record.priority = priority
            handlers.sort(key=HandlerRecord.sort_key)
            return True
    return False


def describe_priorities(handlers: List[HandlerRecord]) -> List[Dict[str, int]]:
    return [{"id": record.id, "priority": record.priority} for record in handlers]


class Registry:
    """Exact event name -> handler list sorted by priority, then registration order."""

    def __init__(self) -> None:
        self._events: Dict[str, List[HandlerRecord]] = {}

    def add(self, event: str, record: HandlerRecord) -> None:
        insert_record(self._events.setdefault(event, []), record)

    def remove(self, event: str, handler_or_id: object = None) -> bool:
        handlers = self._events.get(event)
        if handlers is None:
            return False
        removed = remove_records(handlers, handler_or_id)
        if not handlers:
            del self._events[event]
        return removed

    def snapshot(self, event: str) -> Tuple[HandlerRecord, ...]:
        return tuple(self._events.get(event, ()))

    def set_priority(self, event: str, handler_or_id: object, priority: int) -> bool:
        handlers = self._events.get(event)
        if handlers is None:
            return False
        return update_priority(handlers, handler_or_id, priority)

    def priorities(self, event: str) -> Optional[List[Dict[str, int]]]:
        handlers = self._events.get(event)
        if handlers is None:
            return None
        return describe_priorities(handlers)

    def count(self, event: str) -> int:
        return len(self._events.get(event, ()))

    def names(self) -> List[str]:
        return list(self._events.keys())

    def clear(self) -> None:
        self._events.clear()

    def __contains__(self, event: object) -> bool:
        return event in self._events

    def __len__(self) -> int:
        return len(self._events)


class PatternIndex:
    """Wildcard pattern -> compiled matcher and handler list.

    ``add`` and ``remove`` report whether the pattern's handler set moved
    between empty and non-empty so the caller can invalidate cached match
    results. The compiled matcher is dropped together with the entry.
    """

    def __init__(self, matchers: Optional[MatcherCache] = None) -> None:
        self._matchers = matchers or MatcherCache()
        self._entries: Dict[str, PatternEntry] = {}

    @property
    def matchers(self) -> MatcherCache:
        return self._matchers

    def compile(self, pattern: str, max_wildcards: int) -> CompiledPattern:
        return self._matchers.get_or_compile(pattern, max_wildcards)

    def add(self, pattern: str, record: HandlerRecord, max_wildcards: int) -> bool:
        matcher = self.compile(pattern, max_wildcards)
        entry = self._entries.get(pattern)
        created = entry is None
        if entry is None:
            entry = PatternEntry(pattern=pattern, matcher=matcher, created_at=now_ms())
            self._entries[pattern] = entry
        insert_record(entry.handlers, record)
        return created

    def remove(self, pattern: str, handler_or_id: object = None) -> Tuple[bool, bool]:
        """Return ``(removed, emptied)`` for the pattern."""
        entry = self._entries.get(pattern)
        if entry is None:
            return False, False
        removed = remove_records(entry.handlers, handler_or_id)
        if entry.handlers:
            return removed, False
        del self._entries[pattern]
        self._matchers.discard(pattern)
        return removed, True

    def get(self, pattern: str) -> Optional[PatternEntry]:
        return self._entries.get(pattern)

    def entries(self) -> Iterator[PatternEntry]:
        return iter(list(self._entries.values()))

    def snapshot(self, pattern: str) -> Tuple[HandlerRecord, ...]:
        entry = self._entries.get(pattern)
        if entry is None:
            return ()
        return tuple(entry.handlers)

    def set_priority(self, pattern: str, handler_or_id: object, priority: int) -> bool:
        entry = self._entries.get(pattern)
        if entry is None:
            return False
        return update_priority(entry.handlers, handler_or_id, priority)

    def priorities(self, pattern: str) -> Optional[List[Dict[str, int]]]:
        entry = self._entries.get(pattern)
        if entry is None:
            return None
        return describe_priorities(entry.handlers)

    def count(self, pattern: str) -> int:
        entry = self._entries.get(pattern)
        return len(entry.handlers) if entry is not None else 0

    def names(self) -> List[str]:
        return list(self._entries.keys())

    def clear(self) -> None:
        self._entries.clear()
        self._matchers.clear()

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._entries

    def __len__(self) -> int:
        return len(self._entries)
