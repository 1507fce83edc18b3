"""Unsubscribe capabilities returned by the registration APIs."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from pulsebus.kernel.bus import EventBus


class Subscription:
    """Removes exactly one handler record, identified by the id it was given.

    Calling it more than once, or after the record is already gone, is a
    no-op that returns False.
    """

    __slots__ = ("event", "handler_id", "_bus", "_active")

    def __init__(self, bus: "EventBus", event: str, handler_id: int) -> None:
        self.event = event
        self.handler_id = handler_id
        self._bus = bus
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def __call__(self) -> bool:
        if not self._active:
            return False
        self._active = False
        return self._bus.off(self.event, self.handler_id)

    def unsubscribe(self) -> bool:
        return self()

    def __repr__(self) -> str:
        return "Subscription(event={0!r}, handler_id={1}, active={2})".format(
            self.event,
            self.handler_id,
            self._active,
        )


class SubscriptionGroup:
    """Combined capability for the per-name registrations of ``on_many``."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    def add(self, subscription: Subscription) -> None:
        if self._closed:
            subscription()
            return
        self._subscriptions.append(subscription)

    def __call__(self) -> bool:
        if self._closed:
            return False
        self._closed = True
        for subscription in self._subscriptions:
            subscription()
        self._subscriptions.clear()
        return True

    def unsubscribe(self) -> bool:
        return self()

    def __len__(self) -> int:
        return len(self._subscriptions)
