"""Core typed contracts shared by the registry, cache, dispatcher and debugger."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from pulsebus.kernel.matcher import CompiledPattern

WILDCARD = "*"
SEPARATOR = "."

PRIORITY_HIGHEST = 100
PRIORITY_HIGH = 75
PRIORITY_NORMAL = 50
PRIORITY_LOW = 25
PRIORITY_LOWEST = 0

Handler = Callable[..., Any]
Clock = Callable[[], int]
BreakpointCondition = Callable[..., bool]
BreakpointCallback = Callable[[str, Tuple[Any, ...]], None]


def now_ms() -> int:
    return int(time.time() * 1000)


def is_pattern(name: str) -> bool:
    return WILDCARD in name


def clamp_priority(value: float) -> int:
    return int(min(PRIORITY_HIGHEST, max(PRIORITY_LOWEST, value)))


@dataclass
class HandlerRecord:
    id: int
    callback: Handler
    priority: int
    listener: Handler

    def matches(self, handler_or_id: object) -> bool:
        if isinstance(handler_or_id, bool):
            return False
        if isinstance(handler_or_id, int):
            return self.id == handler_or_id
        if callable(handler_or_id):
            return self.callback == handler_or_id or self.listener == handler_or_id
        return False

    def sort_key(self) -> Tuple[int, int]:
        return (-self.priority, self.id)


@dataclass
class PatternEntry:
    pattern: str
    matcher: "CompiledPattern"
    handlers: List[HandlerRecord] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)

    @property
    def prefix(self) -> str:
        return self.matcher.prefix


@dataclass
class CacheEntry:
    matches: List[PatternEntry]
    timestamp: int


@dataclass
class BreakpointConfig:
    event: str
    condition: Optional[BreakpointCondition] = None
    callback: Optional[BreakpointCallback] = None


@dataclass
class LogEntry:
    level: str
    message: str
    namespace: str
    timestamp: Optional[int] = None
    data: Optional[Dict[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "namespace": self.namespace,
            "timestamp": self.timestamp,
            "data": self.data,
        }
