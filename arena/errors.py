"""
Errors - Exceptions raised by the turn host and the game registry.

Each error carries the stable `code` and HTTP `status_code` the API layer
reports, so routes translate them without a lookup table.
"""

from __future__ import annotations
from typing import Any


class ArenaError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class UnknownGameTypeError(ArenaError):
    code = "UNKNOWN_GAME_TYPE"
    status_code = 400

    def __init__(self, game_type: str):
        super().__init__(f"Unknown game type: {game_type}", {"game_type": game_type})
        self.game_type = game_type


class InvalidEventError(ArenaError):
    """Event rejected before it reaches the log (reserved or unknown type)."""

    code = "INVALID_EVENT"
    status_code = 400


class TurnNotFoundError(ArenaError):
    code = "TURN_NOT_FOUND"
    status_code = 404

    def __init__(self, turn_token: str):
        super().__init__("Turn not found", {"turn_token": turn_token})


class TurnStateError(ArenaError):
    """Operation not allowed in the turn's current status."""

    code = "INVALID_TURN_STATE"
    status_code = 409


class TurnNotStartedError(TurnStateError):
    code = "TURN_NOT_STARTED"


class TurnExpiredError(ArenaError):
    code = "TURN_EXPIRED"
    status_code = 410


class EventLimitError(ArenaError):
    code = "EVENT_LIMIT_EXCEEDED"
    status_code = 429


class InvalidConfigError(ArenaError):
    """Config overrides that the game cannot generate a puzzle from."""

    code = "INVALID_CONFIG"
    status_code = 400
