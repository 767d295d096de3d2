"""
API Models - Framework-agnostic results of the turn service.

The FastAPI layer converts these to the pydantic schemas in schemas.py;
the CLI and tests use them directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TurnCreated:
    turn_token: str
    game_type: str
    client_spec: dict[str, Any]
    expires_at_ms: int


@dataclass
class TurnStarted:
    started: bool
    server_start_time_ms: int
    time_limit_ms: int


@dataclass
class EventRecorded:
    received: bool
    event_index: int
    server_timestamp_ms: int
    # Server-side data for the client, such as a revealed card face
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class GameInfo:
    game_type: str
    time_limit_ms: int
    event_types: list[str]
