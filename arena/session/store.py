"""
Turn Store - In-memory records of turns and their event logs.

LIFECYCLE:
1. create: a PENDING record holding the generated spec
2. start: the start event opens the log, status ACTIVE
3. gameplay events are appended, each hash-linked to the one before
4. complete: COMPLETING while the pipeline runs, then COMPLETED with the
   stored result
5. a PENDING turn never started within the start window becomes EXPIRED

CONCURRENCY:
- the store lock guards the record dict only
- each record carries its own lock; the service holds it for the whole
  of start, append and complete, so operations on one turn serialize
  while different turns proceed in parallel

Records are not persisted. cleanup() drops finished ones after max_age.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import logging
import secrets
import threading
import time

from ..engine_core import Event, TurnResult, TurnSpec, chain_event
from ..errors import EventLimitError, TurnNotFoundError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class TurnStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETING = "completing"
    COMPLETED = "completed"
    EXPIRED = "expired"


@dataclass
class TurnRecord:
    """One turn: its spec, its event log and, once completed, its result."""
    turn_token: str
    user_id: str
    game_type: str
    spec: TurnSpec
    created_at_ms: int

    status: TurnStatus = TurnStatus.PENDING
    started_at_ms: int | None = None
    completed_at_ms: int | None = None
    events: list[Event] = field(default_factory=list)
    result: TurnResult | None = None

    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def last_event(self) -> Event | None:
        return self.events[-1] if self.events else None

    def is_finished(self) -> bool:
        return self.status in {TurnStatus.COMPLETED, TurnStatus.EXPIRED}


class TurnStore:
    """
    Holds turn records keyed by token.

    The clock is injectable so tests can drive time explicitly.
    """

    def __init__(self, max_events: int = 500, clock: Callable[[], int] | None = None):
        self.max_events = max_events
        self.clock = clock or now_ms
        self._turns: dict[str, TurnRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)

    @staticmethod
    def new_token(created_at_ms: int) -> str:
        return f"turn_{secrets.token_hex(32)}_{created_at_ms}"

    def create(self, user_id: str, game_type: str, spec: TurnSpec, created_at_ms: int | None = None) -> TurnRecord:
        created = self.clock() if created_at_ms is None else created_at_ms
        record = TurnRecord(
            turn_token=self.new_token(created),
            user_id=user_id,
            game_type=game_type,
            spec=spec,
            created_at_ms=created,
        )
        with self._lock:
            self._turns[record.turn_token] = record
        return record

    def get(self, turn_token: str) -> TurnRecord:
        with self._lock:
            record = self._turns.get(turn_token)
        if record is None:
            raise TurnNotFoundError(turn_token)
        return record

    def append(
        self,
        record: TurnRecord,
        event_type: str,
        payload: dict[str, Any],
        server_timestamp_ms: int,
        client_timestamp_ms: int | None = None,
    ) -> Event:
        """Add the next event to a record's log. The caller holds record.lock."""
        if len(record.events) >= self.max_events:
            raise EventLimitError(
                f"Turn already has {self.max_events} events",
                {"max_events": self.max_events},
            )
        event = chain_event(
            record.turn_token,
            record.last_event,
            event_type,
            payload,
            server_timestamp_ms,
            client_timestamp_ms,
        )
        record.events.append(event)
        return event

    def expire_stale(self, now: int, start_window_ms: int) -> list[str]:
        """Mark PENDING turns older than the start window EXPIRED. Returns their tokens."""
        with self._lock:
            records = list(self._turns.values())
        expired = []
        for record in records:
            with record.lock:
                if record.status == TurnStatus.PENDING and now - record.created_at_ms > start_window_ms:
                    record.status = TurnStatus.EXPIRED
                    expired.append(record.turn_token)
        if expired:
            logger.info("Expired %d unstarted turns", len(expired))
        return expired

    def cleanup(self, max_age_seconds: int = 3600, now: int | None = None) -> int:
        """Drop finished records older than max_age. Returns how many were dropped."""
        current = self.clock() if now is None else now
        cutoff = current - max_age_seconds * 1000
        with self._lock:
            stale = [
                token for token, record in self._turns.items()
                if record.created_at_ms < cutoff and record.is_finished()
            ]
            for token in stale:
                del self._turns[token]
        return len(stale)
