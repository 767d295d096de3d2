"""
Replay - The shared event fold used by every game type.

Design principles:
1. Pure: (spec, events) -> Replay, no clocks, no I/O
2. Only events after the first `start` are folded; later `start`s are ignored
3. Client input never raises out of the fold: malformed events are skipped
4. After a terminal event nothing else is applied
5. "Relevant" events are the ones a handler actually applied; the last of
   them ends the elapsed-time window
6. Acknowledgement-only events are recorded for the client and skipped here
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, TYPE_CHECKING
import logging

from .events import Event

if TYPE_CHECKING:
    from .game_module import GameModule, TurnSpec

logger = logging.getLogger(__name__)

# Errors a fold step may raise on hostile payloads; anything else is a bug.
RECOVERABLE_ERRORS = (ValueError, TypeError, KeyError, IndexError, ZeroDivisionError)


@dataclass(frozen=True)
class Replay:
    """Final state of a replayed turn plus the events that shaped it."""
    start: Event | None
    state: Any
    applied: tuple[Event, ...] = ()
    ignored: int = 0

    @property
    def started(self) -> bool:
        return self.start is not None

    @property
    def last_relevant(self) -> Event | None:
        if self.applied:
            return self.applied[-1]
        return self.start

    @property
    def elapsed_ms(self) -> int:
        if self.start is None:
            return 0
        last = self.last_relevant
        return max(0, last.server_timestamp_ms - self.start.server_timestamp_ms)


def replay_events(module: GameModule, spec: TurnSpec, events: Iterable[Event]) -> Replay:
    """Fold `events` over the module's handlers, in arrival order."""
    start: Event | None = None
    state = module.initial_state(spec)
    applied: list[Event] = []
    ignored = 0
    finished = False

    for event in events:
        if start is None:
            if event.is_start:
                start = event
                state = module.begin(spec, state, event)
            else:
                ignored += 1
            continue
        if event.event_type in module.ack_events:
            continue
        if finished or event.is_start:
            ignored += 1
            continue
        try:
            new_state = module.apply(spec, state, event)
        except RECOVERABLE_ERRORS as e:
            logger.debug(
                "Skipping malformed %s event #%d: %s",
                event.event_type, event.index, e,
            )
            new_state = None
        if new_state is None:
            ignored += 1
            continue
        state = new_state
        applied.append(event)
        if event.event_type in module.terminal_events:
            finished = True

    return Replay(start=start, state=state, applied=tuple(applied), ignored=ignored)
