from __future__ import annotations

from pulsebus.kernel.match_cache import MatchCache
from pulsebus.kernel.metrics import BusMetrics
from pulsebus.kernel.registry import PatternIndex
from pulsebus.kernel.types import HandlerRecord


def _handler(*_args):
    return None


def _index(*patterns):
    index = PatternIndex()
    for position, pattern in enumerate(patterns, start=1):
        index.add(pattern, HandlerRecord(position, _handler, 50, _handler), 5)
    return index


def test_lookup_counts_misses_then_hits(clock):
    metrics = BusMetrics()
    cache = MatchCache(_index("user.*", "order.*"), metrics=metrics, clock=clock)

    first = cache.lookup("user.login")
    second = cache.lookup("user.login")

    assert [entry.pattern for entry in first] == ["user.*"]
    assert second is first
    assert metrics.cache_miss_count == 1
    assert metrics.cache_hit_count == 1
    assert metrics.cache_hit_rate == 0.5


def test_entries_expire_after_ttl_and_hits_refresh_them(clock):
    metrics = BusMetrics()
    cache = MatchCache(_index("user.*"), metrics=metrics, ttl_ms=100, clock=clock)

    cache.lookup("user.login")
    clock.advance(60)
    cache.lookup("user.login")
    clock.advance(60)
    cache.lookup("user.login")
    assert metrics.cache_hit_count == 2

    clock.advance(101)
    cache.lookup("user.login")
    assert metrics.cache_miss_count == 2


def test_capacity_overflow_evicts_oldest_results(clock):
    cache = MatchCache(_index("e*"), max_size=5, eviction_ratio=0.2, clock=clock)

    for position in range(6):
        cache.lookup("e{0}".format(position))
        clock.advance(1)

    assert len(cache) == 5
    assert "e0" not in cache
    assert "e5" in cache


def test_sweep_drops_only_expired_results(clock):
    cache = MatchCache(_index("user.*"), ttl_ms=50, clock=clock)
    cache.lookup("user.old")
    clock.advance(40)
    cache.lookup("user.new")
    clock.advance(20)

    assert cache.sweep() == 1
    assert "user.old" not in cache
    assert "user.new" in cache


def test_invalidate_uses_literal_prefix(clock):
    cache = MatchCache(_index("user.*"), clock=clock)
    cache.lookup("user.login")
    cache.lookup("order.paid")

    assert cache.invalidate("user.*.x") == 1
    assert "order.paid" in cache

    cache.lookup("user.login")
    assert cache.invalidate("*.login") == 2
    assert len(cache) == 0


def test_bus_sweeps_expired_results_every_interval(make_bus, clock):
    bus = make_bus(cache_sweep_interval=2, cache_ttl_ms=10)

    bus.emit("a.x")
    assert "a.x" in bus.match_cache

    clock.advance(50)
    bus.emit("b")

    assert "a.x" not in bus.match_cache
    assert "b" in bus.match_cache


def test_set_options_resizes_cache(bus):
    bus.set_options(cache_ttl_ms=25, max_cache_size=3)

    assert bus.match_cache.ttl_ms == 25
    assert bus.match_cache.max_size == 3


def test_lowering_max_size_evicts_down_to_the_new_cap(clock):
    cache = MatchCache(_index("e*"), max_size=50, clock=clock)
    for position in range(50):
        cache.lookup("e{0}".format(position))
        clock.advance(1)

    cache.max_size = 5

    assert len(cache) == 5
    assert "e49" in cache
    assert "e44" not in cache

    for position in range(50, 60):
        cache.lookup("e{0}".format(position))
        clock.advance(1)
    assert len(cache) <= 5


def test_set_options_shrinking_cache_keeps_it_bounded(make_bus, clock):
    bus = make_bus(max_cache_size=100)
    for position in range(50):
        bus.emit("evt.{0}".format(position))
        clock.advance(1)
    assert len(bus.match_cache) == 50

    bus.set_options(max_cache_size=5)
    assert len(bus.match_cache) == 5

    for position in range(50, 60):
        bus.emit("evt.{0}".format(position))
        clock.advance(1)
    assert len(bus.match_cache) <= 5
