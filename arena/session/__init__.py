"""
Session Module - Ephemeral turn records.

A turn represents one play of one game:
- Created with a generated spec, waiting for its start event
- Collects server-stamped, hash-linked events while active
- Keeps its result once completed

Turns live in memory only.
"""

from .store import TurnRecord, TurnStatus, TurnStore, now_ms

__all__ = [
    "TurnRecord",
    "TurnStatus",
    "TurnStore",
    "now_ms",
]
