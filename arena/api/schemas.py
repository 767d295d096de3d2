"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between the game client and the
turn service. All responses include explicit types for OpenAPI schema
generation.

Error Codes:
- UNKNOWN_GAME_TYPE: No game module registered under that name
- INVALID_CONFIG: Config overrides rejected or unusable
- INVALID_EVENT: Event type not accepted by the turn's game
- TURN_NOT_FOUND: Turn token does not exist or was cleaned up
- INVALID_TURN_STATE: Operation not allowed in the turn's current status
- TURN_NOT_STARTED: Gameplay event sent before the start event
- TURN_EXPIRED: Start window or time limit has passed
- EVENT_LIMIT_EXCEEDED: The turn's event cap was reached
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    UNKNOWN_GAME_TYPE = "UNKNOWN_GAME_TYPE"
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_EVENT = "INVALID_EVENT"
    TURN_NOT_FOUND = "TURN_NOT_FOUND"
    INVALID_TURN_STATE = "INVALID_TURN_STATE"
    TURN_NOT_STARTED = "TURN_NOT_STARTED"
    TURN_EXPIRED = "TURN_EXPIRED"
    EVENT_LIMIT_EXCEEDED = "EVENT_LIMIT_EXCEEDED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ResultReason(str, Enum):
    """Why a turn was not valid."""
    NO_START_EVENT = "no_start_event"
    INCOMPLETE = "incomplete"
    INCORRECT_ORDER = "incorrect_order"
    LOW_COVERAGE = "low_coverage"
    LOW_ACCURACY = "low_accuracy"
    NO_ROUNDS_COMPLETED = "no_rounds_completed"
    NO_SUBMISSION = "no_submission"
    NO_DRAWING = "no_drawing"
    NO_HITS = "no_hits"
    NOT_ENOUGH_HITS = "not_enough_hits"
    NOT_ENOUGH_FOUND = "not_enough_found"
    TOO_FEW_CORRECT = "too_few_correct"
    TOO_MANY_MISTAKES = "too_many_mistakes"
    TIMEOUT = "timeout"
    IMPOSSIBLE_SPEED = "impossible_speed"
    SUSPICIOUS_TIMING = "suspicious_timing"


# =============================================================================
# Request Models
# =============================================================================

class CreateTurnRequest(BaseModel):
    """Request to create a new turn."""
    game_type: str = Field(..., description="Registered game type, e.g. memory_cards")
    user_id: str = Field("anonymous", max_length=128, description="Player identifier, mixed into the seed")
    config: Optional[dict[str, Any]] = Field(
        None, description="Per-turn config overrides (disabled in production)"
    )


class TurnEventRequest(BaseModel):
    """A gameplay event. The server stamps its own time on receipt."""
    event_type: str = Field(..., max_length=64)
    payload: dict[str, Any] = Field(default_factory=dict)
    client_timestamp_ms: Optional[int] = Field(
        None, description="Client clock, kept for review only"
    )


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class CreateTurnResponse(BaseModel):
    """A freshly generated turn; client_spec carries no answers."""
    turn_token: str
    game_type: str
    client_spec: dict[str, Any]
    expires_at_ms: int = Field(..., description="Start the turn before this server time")
    api_version: str = "v1"


class StartTurnResponse(BaseModel):
    started: bool
    server_start_time_ms: int
    time_limit_ms: int


class TurnEventResponse(BaseModel):
    received: bool
    event_index: int
    server_timestamp_ms: int
    data: dict[str, Any] = Field(default_factory=dict, description="Server-revealed data, if any")


class TurnResultResponse(BaseModel):
    """The player's view of a completed turn."""
    valid: bool
    reason: Optional[ResultReason] = None
    message: Optional[str] = Field(None, description="Player-facing text for the reason")
    score: Optional[int] = None
    flag: bool = False
    completion_time_ms: Optional[int] = None
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class GameInfoResponse(BaseModel):
    game_type: str
    time_limit_ms: int
    event_types: list[str]

    model_config = {"from_attributes": True}


class GameListResponse(BaseModel):
    games: list[GameInfoResponse]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
