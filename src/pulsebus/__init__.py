"""In-process publish/subscribe event bus."""

from .config import BusOptions, build_options, load_options, merge_options
from .kernel.bus import EventBus, create_event_bus
from .kernel.debug_log import JsonlLogSink, LogLevel
from .kernel.debugger import MonitorSnapshot
from .kernel.errors import ConfigError, EventBusError, PatternError, ValidationError
from .kernel.subscription import Subscription, SubscriptionGroup
from .kernel.types import (
    PRIORITY_HIGH,
    PRIORITY_HIGHEST,
    PRIORITY_LOW,
    PRIORITY_LOWEST,
    PRIORITY_NORMAL,
    LogEntry,
)
from .scope import SubscriptionScope

__all__ = [
    "BusOptions",
    "build_options",
    "load_options",
    "merge_options",
    "EventBus",
    "create_event_bus",
    "JsonlLogSink",
    "LogLevel",
    "LogEntry",
    "MonitorSnapshot",
    "ConfigError",
    "EventBusError",
    "PatternError",
    "ValidationError",
    "Subscription",
    "SubscriptionGroup",
    "SubscriptionScope",
    "PRIORITY_HIGHEST",
    "PRIORITY_HIGH",
    "PRIORITY_NORMAL",
    "PRIORITY_LOW",
    "PRIORITY_LOWEST",
]
