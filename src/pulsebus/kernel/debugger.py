"""Breakpoints, monitoring sessions and subscription inspection."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Tuple

from pulsebus.kernel.debug_log import BusLogger
from pulsebus.kernel.types import (
    BreakpointCallback,
    BreakpointCondition,
    BreakpointConfig,
    Clock,
    LogEntry,
    is_pattern,
    now_ms,
)

if TYPE_CHECKING:
    from pulsebus.kernel.bus import EventBus


@dataclass
class MonitorData:
    event_counts: Dict[str, int] = field(default_factory=dict)
    handler_counts: Dict[str, int] = field(default_factory=dict)
    timeline: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=1000))

    def snapshot(self) -> "MonitorSnapshot":
        return MonitorSnapshot(
            event_counts=dict(self.event_counts),
            handler_counts=dict(self.handler_counts),
            timeline=tuple(dict(item) for item in self.timeline),
        )


@dataclass(frozen=True)
class MonitorSnapshot:
    """Frozen copy of a monitoring session returned by ``stop_monitoring``."""

    event_counts: Dict[str, int] = field(default_factory=dict)
    handler_counts: Dict[str, int] = field(default_factory=dict)
    timeline: Tuple[Dict[str, Any], ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "event_counts": dict(self.event_counts),
            "handler_counts": dict(self.handler_counts),
            "timeline": [dict(item) for item in self.timeline],
        }


class BusDebugger:
    """Debug surface exposed as ``EventBus.debug``."""

    def __init__(self, bus: "EventBus", logger: BusLogger, clock: Optional[Clock] = None) -> None:
        self._bus = bus
        self._logger = logger
        self._clock = clock or now_ms
        self._breakpoints: Dict[str, BreakpointConfig] = {}
        self._monitoring = False
        self._timeline_size = 1000
        self._monitor = MonitorData()
        self._last_emit_ms = 0
        self._logger.monitor_hook = self._on_log

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    @property
    def monitor_data(self) -> MonitorData:
        return self._monitor

    @property
    def breakpoint_count(self) -> int:
        return len(self._breakpoints)

    def resize_timeline(self, size: int) -> None:
        self._timeline_size = max(1, int(size))
        if self._monitor.timeline.maxlen != self._timeline_size:
            self._monitor.timeline = deque(self._monitor.timeline, maxlen=self._timeline_size)

    # Logs

    def get_logs(self, level: Optional[str] = None, limit: Optional[int] = None) -> List[LogEntry]:
        return self._logger.entries(level=level, limit=limit)

    def clear_logs(self) -> None:
        self._logger.clear()
        self._logger.info("log history cleared")

    # Monitoring

    def start_monitoring(self, reset_data: bool = True) -> None:
        if reset_data:
            self._monitor = MonitorData(timeline=deque(maxlen=self._timeline_size))
        self._monitoring = True
        self._logger.info("event monitoring started")

    def stop_monitoring(self) -> MonitorSnapshot:
        self._monitoring = False
        self._logger.info("event monitoring stopped")
        return self._monitor.snapshot()

    def record_emit(self, event: str, args: Tuple[Any, ...]) -> None:
        if not self._monitoring:
            return
        options = self._bus.options
        self._monitor.event_counts[event] = self._monitor.event_counts.get(event, 0) + 1
        self._monitor.timeline.append(
            {
                "type": "emit",
                "event": event,
                "args": list(args) if options.log_event_data else None,
                "timestamp": self._clock(),
            }
        )
        visualizer = options.visualizer
        if visualizer is None:
            return
        try:
            visualizer({"type": "EVENT", "event": event, "args": args}, self._monitor)
        except Exception as exc:
            self._logger.error("visualizer failed: {0}".format(exc), {"event": event, "error": repr(exc)})

    def record_handlers(self, event: str, invoked: int) -> None:
        if not self._monitoring or invoked <= 0:
            return
        self._monitor.handler_counts[event] = self._monitor.handler_counts.get(event, 0) + invoked

    def elapsed_since_last_emit(self) -> int:
        now = self._clock()
        elapsed = now - self._last_emit_ms if self._last_emit_ms else 0
        self._last_emit_ms = now
        return elapsed

    # Breakpoints

    def set_breakpoint(
        self,
        event: str,
        condition: Optional[BreakpointCondition] = None,
        callback: Optional[BreakpointCallback] = None,
    ) -> bool:
        if not isinstance(event, str) or not event.strip():
            self._logger.error("invalid breakpoint event name")
            return False
        self._breakpoints[event] = BreakpointConfig(
            event=event,
            condition=condition if callable(condition) else None,
            callback=callback if callable(callback) else None,
        )
        self._logger.info("breakpoint set: {0}".format(event))
        return True

    def remove_breakpoint(self, event: Optional[str] = None) -> bool:
        if event is None:
            self._breakpoints.clear()
            self._logger.info("all breakpoints removed")
            return True
        removed = self._breakpoints.pop(event, None) is not None
        if removed:
            self._logger.info("breakpoint removed: {0}".format(event))
        else:
            self._logger.warn("breakpoint not found: {0}".format(event))
        return removed

    def get_breakpoints(self) -> List[str]:
        return list(self._breakpoints.keys())

    def check_breakpoint(self, event: str, args: Tuple[Any, ...]) -> bool:
        config = self._breakpoints.get(event)
        if config is None:
            return False

        hit = True
        if config.condition is not None:
            try:
                hit = bool(config.condition(event, *args))
            except Exception as exc:
                self._logger.error(
                    "breakpoint condition failed for {0}: {1}".format(event, exc),
                    {"event": event, "error": repr(exc)},
                )
                hit = False
        if not hit:
            return False

        self._logger.warn("breakpoint hit: {0}".format(event), {"args": list(args)})
        if config.callback is not None:
            try:
                config.callback(event, args)
            except Exception as exc:
                self._logger.error(
                    "breakpoint callback failed for {0}: {1}".format(event, exc),
                    {"event": event, "error": repr(exc)},
                )
        return True

    # Inspection

    def inspect_event(self, event: Optional[str] = None) -> Dict[str, Any]:
        bus = self._bus
        if event is None:
            regular = bus.registry.names()
            patterns = bus.patterns.names()
            return {
                "regular_events": regular,
                "wildcard_events": patterns,
                "event_count": len(regular),
                "wildcard_event_count": len(patterns),
            }

        if not isinstance(event, str):
            return {"event": event, "exists": False, "is_wildcard": False, "subscriber_count": 0}

        wildcard = is_pattern(event)
        result: Dict[str, Any] = {
            "event": event,
            "exists": False,
            "is_wildcard": wildcard,
            "subscriber_count": bus.count(event),
        }
        if wildcard:
            result["exists"] = event in bus.patterns
            entry = bus.patterns.get(event)
            if entry is not None:
                result["prefix"] = entry.prefix
                result["created_at"] = entry.created_at
        else:
            result["exists"] = event in bus.registry
            result["matching_wildcards"] = len(bus.match_cache.lookup(event))
        result["priorities"] = bus.get_priorities(event) or []
        result["has_breakpoint"] = event in self._breakpoints
        return result

    def _on_log(self, entry: LogEntry) -> None:
        visualizer = self._bus.options.visualizer
        if not self._monitoring or visualizer is None:
            return
        visualizer(entry, self._monitor)
