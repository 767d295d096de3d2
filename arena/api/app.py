"""
FastAPI Application - REST API for the game client.

Endpoints:
    GET    /api/v1/games                     List game types
    POST   /api/v1/turns                     Create a turn
    POST   /api/v1/turns/{token}/start       Record the start event
    POST   /api/v1/turns/{token}/events      Record a gameplay event
    POST   /api/v1/turns/{token}/complete    Validate and score the turn
    GET    /api/v1/health                    Health check

Turn Flow:
    1. POST /turns generates the puzzle and returns only its public part
    2. POST /start opens the turn; the time limit runs from here
    3. POST /events for each player action, stamped with server time
    4. POST /complete replays the events and returns the result
       (calling it again returns the same result)

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Union

from .. import __version__
from ..config import ArenaSettings


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional TurnService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI
        from fastapi.exceptions import RequestValidationError
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .service import TurnService
    from .schemas import (
        # Request models
        CreateTurnRequest,
        TurnEventRequest,
        # Response models
        CreateTurnResponse,
        StartTurnResponse,
        TurnEventResponse,
        TurnResultResponse,
        GameInfoResponse,
        GameListResponse,
        ErrorResponse,
        HealthResponse,
        # Enums
        ErrorCode,
    )
    from ..engine_core import reason_message
    from ..errors import ArenaError

    api_service = service or TurnService(settings=ArenaSettings.from_env())
    settings = api_service.settings

    app = FastAPI(
        title="Arena Turn API",
        description="""
Daily mini-game arena - server-authoritative turn validation and scoring.

## Turn Flow

1. `POST /turns` returns a turn token and the player-visible puzzle
2. `POST /turns/{token}/start` within the start window
3. `POST /turns/{token}/events` for each action
4. `POST /turns/{token}/complete` for the result

A failed validation is a normal `200` result with `valid=false`.

## Error Codes

| Code | Description |
|------|-------------|
| `UNKNOWN_GAME_TYPE` | No game registered under that name |
| `INVALID_CONFIG` | Config overrides rejected |
| `INVALID_EVENT` | Event type not accepted by this game |
| `TURN_NOT_FOUND` | Turn token does not exist |
| `INVALID_TURN_STATE` | Not allowed in the turn's status |
| `TURN_NOT_STARTED` | Event sent before start |
| `TURN_EXPIRED` | Start window or time limit passed |
| `EVENT_LIMIT_EXCEEDED` | Too many events for one turn |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Helper Functions
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: dict = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def from_arena_error(e: ArenaError) -> JSONResponse:
        return make_error_response(ErrorCode(e.code), e.message, e.status_code, e.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request, exc: RequestValidationError):
        return make_error_response(
            ErrorCode.VALIDATION_ERROR,
            "Request body failed validation",
            422,
            {"errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                for err in exc.errors()
            ]},
        )

    # =========================================================================
    # Games Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/games",
        response_model=GameListResponse,
        tags=["Games"],
        summary="List game types",
    )
    async def list_games() -> GameListResponse:
        games = [GameInfoResponse.model_validate(g) for g in api_service.list_games()]
        return GameListResponse(games=games, count=len(games))

    # =========================================================================
    # Turn Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/turns",
        response_model=CreateTurnResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Turns"],
        summary="Create a turn",
    )
    async def create_turn(request: CreateTurnRequest) -> Union[CreateTurnResponse, JSONResponse]:
        """
        Generate a puzzle for the requested game.

        Only the public projection of the puzzle is returned; answers stay
        on the server.
        """
        try:
            created = api_service.create_turn(
                request.game_type,
                user_id=request.user_id,
                config=request.config,
            )
        except ArenaError as e:
            return from_arena_error(e)

        return CreateTurnResponse(
            turn_token=created.turn_token,
            game_type=created.game_type,
            client_spec=created.client_spec,
            expires_at_ms=created.expires_at_ms,
        )

    @app.post(
        "/api/v1/turns/{turn_token}/start",
        response_model=StartTurnResponse,
        responses={
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            410: {"model": ErrorResponse},
        },
        tags=["Turns"],
        summary="Start a turn",
    )
    async def start_turn(turn_token: str) -> Union[StartTurnResponse, JSONResponse]:
        try:
            started = api_service.start_turn(turn_token)
        except ArenaError as e:
            return from_arena_error(e)

        return StartTurnResponse(
            started=started.started,
            server_start_time_ms=started.server_start_time_ms,
            time_limit_ms=started.time_limit_ms,
        )

    @app.post(
        "/api/v1/turns/{turn_token}/events",
        response_model=TurnEventResponse,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            410: {"model": ErrorResponse},
            429: {"model": ErrorResponse},
        },
        tags=["Turns"],
        summary="Record a gameplay event",
    )
    async def record_event(
        turn_token: str,
        request: TurnEventRequest,
    ) -> Union[TurnEventResponse, JSONResponse]:
        """
        Append one event to the turn.

        The server timestamp is authoritative; client_timestamp_ms is kept
        for review but never used for validation.
        """
        try:
            recorded = api_service.record_event(
                turn_token,
                request.event_type,
                request.payload,
                request.client_timestamp_ms,
            )
        except ArenaError as e:
            return from_arena_error(e)

        return TurnEventResponse(
            received=recorded.received,
            event_index=recorded.event_index,
            server_timestamp_ms=recorded.server_timestamp_ms,
            data=recorded.data,
        )

    @app.post(
        "/api/v1/turns/{turn_token}/complete",
        response_model=TurnResultResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Turns"],
        summary="Complete a turn",
    )
    async def complete_turn(turn_token: str) -> Union[TurnResultResponse, JSONResponse]:
        """
        Validate and score the turn.

        Invalid turns are a normal result (valid=false with a reason).
        Reviewer-only signals are never included.
        """
        try:
            result = api_service.complete_turn(turn_token)
        except ArenaError as e:
            return from_arena_error(e)

        return _convert_result(result)

    # =========================================================================
    # Health Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/health",
        response_model=HealthResponse,
        tags=["System"],
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            service="arena-turns",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        return {
            "service": "Arena Turn API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/api/v1/health",
        }

    # =========================================================================
    # Conversion Helpers
    # =========================================================================

    def _convert_result(result) -> TurnResultResponse:
        data = result.to_dict()
        return TurnResultResponse(
            **data,
            message=reason_message(result.reason) if result.reason else None,
        )

    return app


# For running directly: uvicorn arena.api.app:app
app = None
try:
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
