"""Multi-event subscriptions built on top of ``EventBus.on``."""

from __future__ import annotations

from collections.abc import Sequence, Set
from typing import TYPE_CHECKING, Any, Callable, Iterable, List

from pulsebus.kernel.errors import EventBusError, ValidationError
from pulsebus.kernel.subscription import SubscriptionGroup
from pulsebus.kernel.types import Handler

if TYPE_CHECKING:
    from pulsebus.kernel.bus import EventBus


def _valid_names(events: Iterable[object]) -> List[str]:
    return [name for name in events if isinstance(name, str) and name.strip()]


def subscribe_many(
    bus: "EventBus",
    events: object,
    handler: Handler,
    *,
    include_event_name: bool = True,
    once: bool = False,
) -> SubscriptionGroup:
    """Subscribe ``handler`` to every name in ``events``.

    With ``once`` the first delivery on any name closes the whole group, so
    the handler runs at most once even when several names (or an exact name
    and a matching pattern) fire in the same emission. If one registration
    fails, the ones already made are rolled back before the error is
    re-raised.
    """
    if isinstance(events, (str, bytes)) or not isinstance(events, (Sequence, Set)):
        raise ValidationError(
            "event names must be a list of strings",
            received=type(events).__name__,
        )
    if not callable(handler):
        raise ValidationError("event handler must be callable", received=type(handler).__name__)

    group = SubscriptionGroup()
    names = list(events)
    if not names:
        bus.logger.internal("on_many called with an empty event list")
        return group

    valid = _valid_names(names)
    if not valid:
        bus.logger.debug("on_many received no valid event names", {"events": names})
        return group
    if len(valid) != len(names):
        bus.logger.debug(
            "on_many dropped {0} invalid event names".format(len(names) - len(valid)),
            {"events": names},
        )

    def make_adapter(name: str) -> Callable[..., Any]:
        def adapter(*args: Any) -> Any:
            if group.closed:
                return None
            if once:
                # Closed before the call so a nested emit cannot deliver again.
                group()
            if include_event_name:
                return handler(name, *args)
            return handler(*args)

        return adapter

    try:
        for name in valid:
            group.add(bus.on(name, make_adapter(name)))
    except EventBusError:
        group()
        raise
    return group
