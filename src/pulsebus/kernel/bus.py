"""In-process event bus with priorities, wildcard patterns and a debug surface."""

from __future__ import annotations

import itertools
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, TextIO, Union

from pulsebus.config import BusOptions, build_options, merge_options
from pulsebus.kernel.combinator import subscribe_many
from pulsebus.kernel.debug_log import BusLogger
from pulsebus.kernel.debugger import BusDebugger
from pulsebus.kernel.dispatcher import Dispatcher
from pulsebus.kernel.errors import ValidationError
from pulsebus.kernel.match_cache import MatchCache
from pulsebus.kernel.metrics import BusMetrics
from pulsebus.kernel.registry import PatternIndex, Registry
from pulsebus.kernel.subscription import Subscription, SubscriptionGroup
from pulsebus.kernel.types import Clock, Handler, HandlerRecord, clamp_priority, is_pattern


def normalize_priority(value: object, default: int) -> int:
    """Accept a number or a mapping with a ``priority`` key; anything else means default."""
    if isinstance(value, Mapping):
        value = value.get("priority")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return clamp_priority(default)
    if value != value:  # NaN
        return clamp_priority(default)
    return clamp_priority(value)


def _validate_subscription(event: object, handler: object) -> None:
    if not isinstance(event, str):
        raise ValidationError("event name must be a string", received=type(event).__name__)
    if not event.strip():
        raise ValidationError("event name must not be empty")
    if not callable(handler):
        raise ValidationError("event handler must be callable", event=event, received=type(handler).__name__)


class EventBus:
    """Synchronous publish/subscribe engine owned by its creator.

    Exact handlers for an event run before wildcard handlers; within each
    group handlers run by priority (highest first), then registration
    order. Handler failures are logged and counted, never raised.
    """

    def __init__(
        self,
        options: Optional[BusOptions] = None,
        *,
        clock: Optional[Clock] = None,
        log_stream: Optional[TextIO] = None,
    ) -> None:
        self._options = options or BusOptions()
        self._ids = itertools.count(1)
        self.metrics = BusMetrics()
        self.logger = BusLogger(stream=log_stream)
        self.registry = Registry()
        self.patterns = PatternIndex()
        self.match_cache = MatchCache(
            self.patterns,
            metrics=self.metrics,
            clock=clock,
            on_debug=self.logger.internal,
        )
        self.debug = BusDebugger(self, self.logger, clock=clock)
        self._dispatcher = Dispatcher(
            registry=self.registry,
            match_cache=self.match_cache,
            metrics=self.metrics,
            logger=self.logger,
            debugger=self.debug,
            options=lambda: self._options,
        )
        self._apply_options()

    @property
    def options(self) -> BusOptions:
        return self._options

    # Subscription

    def on(self, event: str, handler: Handler, priority: object = None) -> Subscription:
        _validate_subscription(event, handler)
        level = normalize_priority(priority, self._options.default_priority)
        return self._register(event, handler, handler, level)

    def once(self, event: str, handler: Handler, priority: object = None) -> Subscription:
        _validate_subscription(event, handler)
        level = normalize_priority(priority, self._options.default_priority)

        subscription: Optional[Subscription] = None
        fired = False

        def once_adapter(*args: Any) -> Any:
            nonlocal fired
            if fired:
                return None
            fired = True
            try:
                return handler(*args)
            finally:
                if subscription is not None:
                    subscription()

        subscription = self._register(event, once_adapter, handler, level)
        return subscription

    def off(self, event: str, handler_or_id: object = None) -> bool:
        if not isinstance(event, str):
            return False

        if is_pattern(event):
            removed, emptied = self.patterns.remove(event, handler_or_id)
            if emptied:
                self.match_cache.invalidate(event)
        else:
            removed = self.registry.remove(event, handler_or_id)

        if removed:
            self.logger.debug("unsubscribed from {0!r}".format(event))
        return removed

    def on_many(
        self,
        events: object,
        handler: Handler,
        include_event_name: bool = True,
        once: bool = False,
    ) -> SubscriptionGroup:
        return subscribe_many(
            self,
            events,
            handler,
            include_event_name=include_event_name,
            once=once,
        )

    def once_many(self, events: object, handler: Handler, include_event_name: bool = True) -> SubscriptionGroup:
        return subscribe_many(
            self,
            events,
            handler,
            include_event_name=include_event_name,
            once=True,
        )

    # Dispatch

    def emit(self, event: str, *args: Any) -> None:
        self._dispatcher.emit(event, args)

    # Priorities

    def set_priority(self, event: str, handler_or_id: object, priority: object) -> bool:
        if not isinstance(event, str) or not event.strip():
            self.logger.error("set_priority: invalid event name")
            return False
        if handler_or_id is None:
            self.logger.error("set_priority: a handler or handler id is required")
            return False
        if isinstance(priority, bool) or not isinstance(priority, (int, float)) or priority != priority:
            self.logger.error("set_priority: priority must be a number")
            return False

        level = clamp_priority(priority)
        if is_pattern(event):
            updated = self.patterns.set_priority(event, handler_or_id, level)
        else:
            updated = self.registry.set_priority(event, handler_or_id, level)

        if updated:
            self.logger.debug("priority of a {0!r} handler set to {1}".format(event, level))
        else:
            self.logger.warn("set_priority: no matching handler for {0!r}".format(event))
        return updated

    def get_priorities(self, event: str) -> Optional[List[Dict[str, int]]]:
        if not isinstance(event, str) or not event.strip():
            return None
        if is_pattern(event):
            return self.patterns.priorities(event)
        return self.registry.priorities(event)

    # Queries

    def has(self, event: str) -> bool:
        if not isinstance(event, str):
            return False
        if event in self.registry:
            return True
        if is_pattern(event):
            return event in self.patterns
        return bool(self.match_cache.lookup(event))

    def count(self, event: str) -> int:
        if not isinstance(event, str):
            return 0
        if is_pattern(event):
            return self.patterns.count(event)
        total = self.registry.count(event)
        for entry in self.match_cache.lookup(event):
            total += len(entry.handlers)
        return total

    def get_event_names(self) -> List[str]:
        return self.registry.names() + self.patterns.names()

    def clear(self) -> None:
        self.registry.clear()
        self.patterns.clear()
        self.match_cache.clear()
        self.logger.debug("all subscriptions cleared")

    # Metrics and options

    def get_metrics(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.metrics.as_dict()
        data.update(
            {
                "cache_hit_rate": self.metrics.cache_hit_rate,
                "matcher_cache_size": len(self.patterns.matchers),
                "match_cache_size": len(self.match_cache),
                "event_count": len(self.registry),
                "wildcard_event_count": len(self.patterns),
                "log_entries": len(self.logger),
                "log_sink_errors": self.logger.sink_errors,
                "debug_state": {
                    "is_monitoring": self.debug.is_monitoring,
                    "breakpoint_count": self.debug.breakpoint_count,
                    "monitored_event_count": len(self.debug.monitor_data.event_counts),
                    "timeline_entries": len(self.debug.monitor_data.timeline),
                },
            }
        )
        return data

    def reset_metrics(self) -> None:
        self.metrics.reset()

    def set_options(self, options: Optional[Mapping[str, Any]] = None, **overrides: Any) -> BusOptions:
        self._options = merge_options(self._options, options, **overrides)
        self._apply_options()
        self.logger.info("options updated", self._options.as_dict())
        return self._options

    def _apply_options(self) -> None:
        options = self._options
        self.logger.configure(options)
        self.match_cache.ttl_ms = options.cache_ttl_ms
        self.match_cache.max_size = options.max_cache_size
        self.debug.resize_timeline(options.max_log_entries)

    def _register(self, event: str, callback: Handler, listener: Handler, priority: int) -> Subscription:
        record = HandlerRecord(
            id=next(self._ids),
            callback=callback,
            priority=priority,
            listener=listener,
        )
        if is_pattern(event):
            created = self.patterns.add(event, record, self._options.max_wildcards_per_pattern)
            if created:
                self.match_cache.invalidate(event)
        else:
            self.registry.add(event, record)

        self.logger.debug(
            "subscribed to {0!r}".format(event),
            {"handler_id": record.id, "priority": record.priority},
        )
        return Subscription(self, event, record.id)


def create_event_bus(
    options: Union[BusOptions, Mapping[str, Any], None] = None,
    *,
    clock: Optional[Clock] = None,
    log_stream: Optional[TextIO] = None,
    **overrides: Any,
) -> EventBus:
    """Build an owned bus; accepts a ``BusOptions`` value or a mapping plus keyword overrides."""
    if isinstance(options, BusOptions):
        resolved = merge_options(options, None, **overrides)
    else:
        resolved = build_options(options, **overrides)
    return EventBus(resolved, clock=clock, log_stream=log_stream)
