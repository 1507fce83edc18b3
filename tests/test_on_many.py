from __future__ import annotations

import pytest

from pulsebus import PatternError, SubscriptionGroup, ValidationError


def test_on_many_passes_event_name_by_default(bus):
    seen = []
    group = bus.on_many(["a", "b"], lambda *args: seen.append(args))

    bus.emit("a", 1)
    bus.emit("b", 2)

    assert isinstance(group, SubscriptionGroup)
    assert len(group) == 2
    assert seen == [("a", 1), ("b", 2)]


def test_on_many_without_event_name(bus):
    seen = []
    bus.on_many(["a", "b"], lambda *args: seen.append(args), include_event_name=False)

    bus.emit("b", 2)

    assert seen == [(2,)]


def test_on_many_accepts_sets_and_tuples(bus):
    seen = []
    bus.on_many({"a"}, lambda *args: seen.append(args))
    bus.on_many(("b",), lambda *args: seen.append(args))

    bus.emit("a")
    bus.emit("b")

    assert seen == [("a",), ("b",)]


def test_group_release_removes_every_name(bus):
    seen = []
    group = bus.on_many(["a", "b"], lambda *args: seen.append(args))

    assert group() is True
    assert group() is False
    assert group.closed

    bus.emit("a")
    bus.emit("b")
    assert seen == []
    assert bus.get_event_names() == []


def test_once_many_delivers_only_the_first_event(bus):
    seen = []
    bus.once_many(["a", "b"], lambda *args: seen.append(args))

    bus.emit("b", 1)
    bus.emit("a", 2)
    bus.emit("b", 3)

    assert seen == [("b", 1)]
    assert bus.get_event_names() == []


def test_once_many_fires_once_when_exact_and_pattern_match_together(bus):
    seen = []
    bus.once_many(["user.login", "user.*"], lambda *args: seen.append(args))

    bus.emit("user.login", "alice")

    assert seen == [("user.login", "alice")]


def test_on_many_once_flag_matches_once_many(bus):
    seen = []
    bus.on_many(["a", "b"], lambda *args: seen.append(args), once=True)

    bus.emit("a")
    bus.emit("b")

    assert seen == [("a",)]


@pytest.mark.parametrize("events", ["a", b"a", 7, None, iter(["a"])])
def test_on_many_rejects_non_list_input(bus, events):
    with pytest.raises(ValidationError):
        bus.on_many(events, lambda *_args: None)


def test_on_many_rejects_non_callable_handler(bus):
    with pytest.raises(ValidationError):
        bus.on_many(["a"], None)


def test_on_many_skips_invalid_names(bus):
    group = bus.on_many(["a", "", 3, None], lambda *_args: None)

    assert len(group) == 1
    assert bus.get_event_names() == ["a"]


def test_on_many_with_empty_list_is_a_no_op(bus):
    group = bus.on_many([], lambda *_args: None)

    assert len(group) == 0
    assert bus.get_event_names() == []


def test_on_many_rolls_back_when_a_registration_fails(make_bus):
    bus = make_bus(max_wildcards_per_pattern=1)

    with pytest.raises(PatternError):
        bus.on_many(["x", "y", "a.*.*"], lambda *_args: None)

    assert bus.get_event_names() == []


def test_once_many_handler_emitting_a_sibling_is_not_delivered_again(bus):
    calls = []

    def handler(name, *_args):
        calls.append(name)
        bus.emit("p.fail")

    bus.once_many(["p.success", "p.fail"], handler)
    bus.emit("p.success")

    assert calls == ["p.success"]
    assert bus.get_metrics()["handler_error_count"] == 0
    assert bus.get_event_names() == []


def test_once_many_failing_handler_still_releases_the_group(bus):
    calls = []

    def handler(name):
        calls.append(name)
        raise RuntimeError("boom")

    bus.once_many(["a", "b"], handler)
    bus.emit("a")
    bus.emit("b")

    assert calls == ["a"]
    assert bus.get_metrics()["handler_error_count"] == 1
    assert bus.get_event_names() == []
