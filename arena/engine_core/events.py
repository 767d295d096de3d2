"""
Events - The server-timestamped record of one turn's gameplay.

Events represent:
1. The single `start` marker appended by the start operation
2. Gameplay actions submitted by the client (rotate, flip, tap, ...)

Only server_timestamp_ms is trusted for timing and timeout decisions.
client_timestamp_ms is kept for diagnostics.

Each event carries a SHA-256 link to its predecessor so a stored log
can be checked for tampering before it is replayed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable
import hashlib
import json

START = "start"

GENESIS_HASH = "0" * 64


def canonical_json(value: Any) -> str:
    """Stable JSON text: sorted keys, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def compute_event_hash(
    turn_token: str,
    index: int,
    event_type: str,
    payload: dict[str, Any],
    server_timestamp_ms: int,
    prev_hash: str,
) -> str:
    material = canonical_json({
        "turn_token": turn_token,
        "index": index,
        "event_type": event_type,
        "payload": payload,
        "server_timestamp_ms": server_timestamp_ms,
        "prev_hash": prev_hash,
    })
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Event:
    """
    One appended event.

    payload is whatever the client sent; fold steps read it through the
    accessors in engine_core.payload and ignore anything malformed.
    """
    event_type: str
    server_timestamp_ms: int
    payload: dict[str, Any] = field(default_factory=dict)
    client_timestamp_ms: int | None = None
    index: int = 0
    prev_hash: str = GENESIS_HASH
    event_hash: str = ""

    @property
    def is_start(self) -> bool:
        return self.event_type == START

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "event_type": self.event_type,
            "payload": self.payload,
            "server_timestamp_ms": self.server_timestamp_ms,
            "client_timestamp_ms": self.client_timestamp_ms,
            "prev_hash": self.prev_hash,
            "event_hash": self.event_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        payload = data.get("payload")
        return cls(
            event_type=str(data["event_type"]),
            server_timestamp_ms=int(data["server_timestamp_ms"]),
            payload=payload if isinstance(payload, dict) else {},
            client_timestamp_ms=data.get("client_timestamp_ms"),
            index=int(data.get("index", 0)),
            prev_hash=data.get("prev_hash", GENESIS_HASH),
            event_hash=data.get("event_hash", ""),
        )


def chain_event(
    turn_token: str,
    previous: Event | None,
    event_type: str,
    payload: dict[str, Any],
    server_timestamp_ms: int,
    client_timestamp_ms: int | None = None,
) -> Event:
    """Build the next event in a turn's log, linked to `previous`."""
    index = previous.index + 1 if previous else 0
    prev_hash = previous.event_hash if previous else GENESIS_HASH
    return Event(
        event_type=event_type,
        server_timestamp_ms=server_timestamp_ms,
        payload=payload,
        client_timestamp_ms=client_timestamp_ms,
        index=index,
        prev_hash=prev_hash,
        event_hash=compute_event_hash(
            turn_token, index, event_type, payload, server_timestamp_ms, prev_hash
        ),
    )


def verify_chain(turn_token: str, events: Iterable[Event]) -> int | None:
    """
    Check the hash links of a stored log.

    Returns the index of the first broken event, or None if intact.
    """
    prev_hash = GENESIS_HASH
    for position, event in enumerate(events):
        expected = compute_event_hash(
            turn_token, event.index, event.event_type, event.payload,
            event.server_timestamp_ms, prev_hash,
        )
        if event.index != position or event.prev_hash != prev_hash or event.event_hash != expected:
            return position
        prev_hash = event.event_hash
    return None
