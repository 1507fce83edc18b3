"""Exceptions raised synchronously by the registration and configuration APIs."""

from __future__ import annotations

from typing import Any, Dict


class EventBusError(RuntimeError):
    """Base class for errors surfaced to callers of the bus."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self._details: Dict[str, Any] = {}
        for key, value in details.items():
            if value is None:
                continue
            self._details[str(key)] = value

    @property
    def details(self) -> Dict[str, Any]:
        return dict(self._details)


class ValidationError(EventBusError, TypeError):
    """Raised when an event name, handler or event list is malformed."""


class PatternError(EventBusError, ValueError):
    """Raised when a wildcard pattern exceeds the configured marker budget."""


class ConfigError(EventBusError):
    """Raised when an options file is missing or cannot be parsed."""


def error_summary(exc: BaseException) -> str:
    detail = exc.details if isinstance(exc, EventBusError) else {}
    segments = ["{0}: {1}".format(type(exc).__name__, exc)]
    for key in sorted(detail.keys()):
        value = detail.get(key)
        if value in ("", None):
            continue
        segments.append("{0}={1}".format(key, value))
    return " | ".join(segments)
