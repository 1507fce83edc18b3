from __future__ import annotations

import io

import pytest

from pulsebus import create_event_bus


class FakeClock:
    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def make_bus(clock: FakeClock, log_stream: io.StringIO):
    def factory(**options):
        options.setdefault("log_console", False)
        return create_event_bus(clock=clock, log_stream=log_stream, **options)

    return factory


@pytest.fixture
def bus(make_bus):
    return make_bus()
