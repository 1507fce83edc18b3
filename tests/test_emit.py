from __future__ import annotations

import pytest

from pulsebus import PatternError, ValidationError


def test_handlers_run_by_priority_then_registration_order(bus):
    calls = []
    bus.on("job", lambda: calls.append("low"), 25)
    bus.on("job", lambda: calls.append("normal-1"))
    bus.on("job", lambda: calls.append("high"), 75)
    bus.on("job", lambda: calls.append("normal-2"), 50)

    bus.emit("job")

    assert calls == ["high", "normal-1", "normal-2", "low"]


def test_exact_handlers_run_before_wildcard_handlers(bus):
    calls = []
    bus.on("user.*", lambda *args: calls.append(("wild", args)), 100)
    bus.on("user.login", lambda *args: calls.append(("exact", args)), 0)

    bus.emit("user.login", "alice")

    assert calls == [
        ("exact", ("alice",)),
        ("wild", ("user.login", "login", "alice")),
    ]


def test_unify_params_prepends_event_name_for_exact_handlers(make_bus):
    bus = make_bus(unify_params=True)
    seen = []
    bus.on("ping", lambda *args: seen.append(args))

    bus.emit("ping", 1, 2)

    assert seen == [("ping", 1, 2)]


def test_wildcard_does_not_match_across_separator(bus):
    seen = []
    bus.on("user.*", lambda *args: seen.append(args))

    bus.emit("user.profile.updated")
    bus.emit("user.profile")

    assert seen == [("user.profile", "profile")]
    assert bus.get_metrics()["wildcard_match_count"] == 1


def test_failing_handler_does_not_stop_siblings(make_bus):
    bus = make_bus(log_level="error")
    calls = []

    def broken(*_args):
        raise RuntimeError("boom")

    bus.on("save", broken, 90)
    bus.on("save", lambda *_args: calls.append("after"))
    bus.on("sa*", lambda *_args: calls.append("wild"))

    bus.emit("save", {"id": 1})

    assert calls == ["after", "wild"]
    assert bus.get_metrics()["handler_error_count"] == 1
    errors = bus.debug.get_logs(level="error")
    assert len(errors) == 1
    assert "boom" in errors[0].message


def test_handlers_added_or_removed_during_emit_apply_next_time(bus):
    calls = []
    late_subscription = {}

    def late(*_args):
        calls.append("late")

    def sibling(*_args):
        calls.append("sibling")

    def first(*_args):
        calls.append("first")
        if "sub" not in late_subscription:
            late_subscription["sub"] = bus.on("tick", late)
        bus.off("tick", sibling)

    bus.on("tick", first, 100)
    bus.on("tick", sibling)

    bus.emit("tick")
    assert calls == ["first", "sibling"]

    calls.clear()
    bus.emit("tick")
    assert calls == ["first", "late"]


def test_emit_ignores_non_string_event(bus):
    bus.emit(None)
    bus.emit(42, "payload")

    assert bus.get_metrics()["emit_count"] == 0


def test_emit_without_subscribers_is_counted(bus):
    bus.emit("nobody.listens")

    metrics = bus.get_metrics()
    assert metrics["emit_count"] == 1
    assert metrics["wildcard_match_count"] == 0


def test_priority_argument_forms(bus):
    handler = lambda: None  # noqa: E731
    bus.on("p", handler, {"priority": 80})
    bus.on("p", handler, 150)
    bus.on("p", handler, -5)
    bus.on("p", handler, float("nan"))
    bus.on("p", handler, True)
    bus.on("p", handler, "high")

    priorities = [item["priority"] for item in bus.get_priorities("p")]

    assert priorities == [100, 80, 50, 50, 50, 0]


def test_default_priority_option_applies_to_new_handlers(make_bus):
    bus = make_bus(default_priority=70)
    bus.on("p", lambda: None)

    assert bus.get_priorities("p")[0]["priority"] == 70


@pytest.mark.parametrize(
    "event, handler",
    [
        (123, lambda: None),
        ("", lambda: None),
        ("   ", lambda: None),
        ("ok", "not-callable"),
    ],
)
def test_invalid_subscription_raises_validation_error(bus, event, handler):
    with pytest.raises(ValidationError) as exc_info:
        bus.on(event, handler)

    assert isinstance(exc_info.value, TypeError)
    assert bus.get_event_names() == []


def test_pattern_over_limit_is_rejected_without_side_effects(make_bus):
    bus = make_bus(max_wildcards_per_pattern=2)

    with pytest.raises(PatternError):
        bus.on("*.*.*", lambda *_args: None)

    assert bus.get_event_names() == []
    assert not bus.has("*.*.*")

    bus.set_options(max_wildcards_per_pattern=3)
    bus.on("*.*.*", lambda *_args: None)
    assert bus.has("*.*.*")


def test_queries_on_exact_and_pattern_names(bus):
    bus.on("user.login", lambda *_args: None)
    bus.on("user.*", lambda *_args: None)
    bus.on("user.*", lambda *_args: None)

    assert bus.has("user.login")
    assert bus.has("user.logout")
    assert not bus.has("order.created")
    assert bus.count("user.login") == 3
    assert bus.count("user.*") == 2
    assert bus.count("user.logout") == 2
    assert bus.get_event_names() == ["user.login", "user.*"]
    assert bus.has(None) is False
    assert bus.count(None) == 0

    bus.clear()
    assert bus.get_event_names() == []
    assert not bus.has("user.logout")
