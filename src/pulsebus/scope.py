"""Lifecycle scope that releases every subscription it handed out."""

from __future__ import annotations

from typing import Any, Callable, List

from pulsebus.kernel.bus import EventBus
from pulsebus.kernel.types import Handler

Release = Callable[[], Any]


class SubscriptionScope:
    """Collects unsubscribe capabilities for one owner and releases them on ``close``.

    Hosts with a teardown hook (a widget, a request, a plugin) create one
    scope, subscribe through it, and call ``close`` when they go away. The
    bus never calls back into the scope.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._releases: List[Release] = []
        self._closed = False

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._releases)

    def on(self, event: str, handler: Handler, priority: object = None) -> Release:
        return self._track(self._bus.on(event, handler, priority))

    def once(self, event: str, handler: Handler, priority: object = None) -> Release:
        return self._track(self._bus.once(event, handler, priority))

    def on_many(
        self,
        events: object,
        handler: Handler,
        include_event_name: bool = True,
        once: bool = False,
    ) -> Release:
        return self._track(
            self._bus.on_many(events, handler, include_event_name=include_event_name, once=once)
        )

    def once_many(self, events: object, handler: Handler, include_event_name: bool = True) -> Release:
        return self._track(self._bus.once_many(events, handler, include_event_name=include_event_name))

    def off(self, event: str, handler_or_id: object = None) -> bool:
        return self._bus.off(event, handler_or_id)

    def emit(self, event: str, *args: Any) -> None:
        self._bus.emit(event, *args)

    def close(self) -> int:
        """Release every tracked subscription; returns how many were released."""
        if self._closed:
            return 0
        self._closed = True
        releases, self._releases = self._releases, []
        released = 0
        for release in releases:
            try:
                release()
            except Exception as exc:
                # Teardown keeps going; the failure is recorded on the bus log.
                self._bus.logger.warn("scope release failed: {0}".format(exc))
                continue
            released += 1
        return released

    def __enter__(self) -> "SubscriptionScope":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def _track(self, release: Release) -> Release:
        if self._closed:
            release()
            return _noop

        def scoped_release() -> Any:
            self._forget(release)
            return release()

        self._releases.append(release)
        return scoped_release

    def _forget(self, release: Release) -> None:
        try:
            self._releases.remove(release)
        except ValueError:
            return


def _noop() -> None:
    return None
