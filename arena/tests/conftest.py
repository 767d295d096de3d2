"""
Pytest fixtures for arena tests.
"""

import pytest

from ..config import ArenaSettings
from ..engine_core import START, chain_event
from ..api.service import TurnService
from ..session import TurnStore


class FakeClock:
    """Server clock the tests move by hand."""

    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def build_events(steps, start_ms: int = 0, turn_token: str = "turn_test"):
    """
    Hash-linked event log from (event_type, payload, offset_ms) steps.

    A start event at start_ms is prepended; offsets are relative to it.
    """
    events = [chain_event(turn_token, None, START, {}, start_ms)]
    for event_type, payload, offset in steps:
        events.append(chain_event(turn_token, events[-1], event_type, payload, start_ms + offset))
    return events


def spaced(event_type: str, payloads, gap_ms: int = 800, first_ms: int | None = None):
    """Steps with one payload each, a fixed gap apart."""
    first = gap_ms if first_ms is None else first_ms
    return [(event_type, payload, first + i * gap_ms) for i, payload in enumerate(payloads)]


def jittered(event_type: str, payloads, mean_ms: int = 600, spread_ms: int = 250):
    """Steps whose gaps alternate around mean_ms, like a human player."""
    offsets = []
    now = 0
    for i in range(len(payloads)):
        now += mean_ms + (spread_ms if i % 2 else -spread_ms) + (i % 3) * 37
        offsets.append(now)
    return [(event_type, payload, at) for payload, at in zip(payloads, offsets)]


def memory_pairs(cards):
    """Card indices grouped by face."""
    by_face = {}
    for index, face in enumerate(cards):
        by_face.setdefault(face, []).append(index)
    return list(by_face.values())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> ArenaSettings:
    return ArenaSettings()


@pytest.fixture
def service(clock, settings) -> TurnService:
    """Service over an in-memory store driven by the fake clock."""
    return TurnService(settings=settings, store=TurnStore(max_events=settings.max_events, clock=clock))
