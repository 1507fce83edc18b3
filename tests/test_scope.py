from __future__ import annotations

from pulsebus import SubscriptionScope


def test_close_releases_everything_once(bus):
    calls = []
    scope = SubscriptionScope(bus)
    scope.on("a", lambda *args: calls.append(("a", args)))
    scope.once("b", lambda *args: calls.append(("b", args)))
    scope.on_many(["c", "d"], lambda *args: calls.append(("many", args)))
    scope.on("e.*", lambda *args: calls.append(("wild", args)))

    assert len(scope) == 4
    assert scope.close() == 4
    assert scope.close() == 0
    assert scope.closed

    for name in ("a", "b", "c", "d", "e.x"):
        bus.emit(name)
    assert calls == []
    assert bus.get_event_names() == []


def test_scope_as_context_manager(bus):
    calls = []
    with SubscriptionScope(bus) as scope:
        scope.on("a", lambda: calls.append("a"))
        scope.emit("a")

    bus.emit("a")
    assert calls == ["a"]
    assert scope.closed


def test_release_through_scope_wrapper_forgets_capability(bus):
    scope = SubscriptionScope(bus)
    release = scope.on("a", lambda: None)
    scope.once_many(["b"], lambda *_args: None)

    assert release() is True
    assert len(scope) == 1
    assert scope.close() == 1


def test_subscribing_through_closed_scope_is_a_no_op(bus):
    scope = SubscriptionScope(bus)
    scope.close()

    release = scope.on("a", lambda: None)

    assert not bus.has("a")
    assert release() is None


def test_off_passes_through_to_the_bus(bus):
    scope = SubscriptionScope(bus)
    handler = lambda: None  # noqa: E731
    scope.on("a", handler)

    assert scope.off("a", handler) is True
    assert scope.bus is bus


def test_release_errors_do_not_stop_teardown(make_bus, monkeypatch):
    bus = make_bus(log_level="warn")
    scope = SubscriptionScope(bus)
    scope.on("a", lambda: None)
    scope.on("b", lambda: None)

    def broken_off(_event, _handler_or_id=None):
        raise RuntimeError("registry locked")

    monkeypatch.setattr(bus, "off", broken_off)

    assert scope.close() == 0
    assert scope.closed
    messages = [entry.message for entry in bus.debug.get_logs(level="warn")]
    assert messages == ["scope release failed: registry locked"] * 2
