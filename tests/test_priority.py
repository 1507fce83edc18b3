from __future__ import annotations

from pulsebus import PRIORITY_HIGH, PRIORITY_HIGHEST, PRIORITY_LOW, PRIORITY_LOWEST, PRIORITY_NORMAL


def test_priority_constants():
    assert (PRIORITY_HIGHEST, PRIORITY_HIGH, PRIORITY_NORMAL, PRIORITY_LOW, PRIORITY_LOWEST) == (
        100,
        75,
        50,
        25,
        0,
    )


def test_set_priority_reorders_exact_handlers(bus):
    calls = []

    def first():
        calls.append("first")

    def second():
        calls.append("second")

    bus.on("job", first)
    bus.on("job", second)

    assert bus.set_priority("job", second, 90) is True
    bus.emit("job")

    assert calls == ["second", "first"]
    assert [item["priority"] for item in bus.get_priorities("job")] == [90, 50]


def test_set_priority_by_id_and_clamps(bus):
    subscription = bus.on("job", lambda: None)

    assert bus.set_priority("job", subscription.handler_id, 500) is True
    assert bus.get_priorities("job") == [{"id": subscription.handler_id, "priority": 100}]

    assert bus.set_priority("job", subscription.handler_id, -3) is True
    assert bus.get_priorities("job")[0]["priority"] == 0


def test_set_priority_on_pattern(bus):
    calls = []

    def low(*_args):
        calls.append("low")

    def high(*_args):
        calls.append("high")

    bus.on("job.*", low)
    bus.on("job.*", high, 10)
    bus.set_priority("job.*", high, 99)

    bus.emit("job.run")

    assert calls == ["high", "low"]
    assert [item["priority"] for item in bus.get_priorities("job.*")] == [99, 50]


def test_set_priority_rejects_bad_input_and_logs(make_bus):
    bus = make_bus(log_level="warn")
    handler = lambda: None  # noqa: E731
    bus.on("job", handler)

    assert bus.set_priority("job", handler, "urgent") is False
    assert bus.set_priority("", handler, 10) is False
    assert bus.set_priority("job", None, 10) is False
    assert bus.set_priority("job", lambda: None, 10) is False

    levels = [entry.level for entry in bus.debug.get_logs()]
    assert levels == ["ERROR", "ERROR", "ERROR", "WARN"]
    assert bus.get_priorities("job")[0]["priority"] == 50


def test_get_priorities_for_unknown_or_invalid_names(bus):
    assert bus.get_priorities("missing") is None
    assert bus.get_priorities("missing.*") is None
    assert bus.get_priorities("") is None
    assert bus.get_priorities(None) is None
