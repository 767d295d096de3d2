"""
Tests for API Pydantic schemas.

Validates that:
- Request/response models serialize correctly
- Error codes are properly structured
- Result reasons match the engine's
- The OpenAPI schema lists every route with a response model
"""

import pytest
from pydantic import ValidationError


class TestPydanticSchemas:
    """Tests for Pydantic schema validation."""

    def test_create_turn_request_defaults(self):
        """CreateTurnRequest only needs a game type."""
        from arena.api.schemas import CreateTurnRequest

        request = CreateTurnRequest(game_type="memory_cards")

        assert request.user_id == "anonymous"
        assert request.config is None

    def test_create_turn_request_requires_game_type(self):
        from arena.api.schemas import CreateTurnRequest

        with pytest.raises(ValidationError):
            CreateTurnRequest(user_id="u1")

    def test_user_id_length_limit(self):
        from arena.api.schemas import CreateTurnRequest

        with pytest.raises(ValidationError):
            CreateTurnRequest(game_type="memory_cards", user_id="u" * 129)

    def test_event_request_schema(self):
        """TurnEventRequest defaults to an empty payload."""
        from arena.api.schemas import TurnEventRequest

        request = TurnEventRequest(event_type="flip")

        assert request.payload == {}
        assert request.client_timestamp_ms is None

    def test_event_request_rejects_non_object_payload(self):
        from arena.api.schemas import TurnEventRequest

        with pytest.raises(ValidationError):
            TurnEventRequest(event_type="flip", payload=[1, 2, 3])

    def test_error_response_schema(self):
        """ErrorResponse serializes its code as a plain string."""
        from arena.api.schemas import ErrorCode, ErrorResponse

        response = ErrorResponse(
            error="Turn not found",
            error_code=ErrorCode.TURN_NOT_FOUND,
            details={"turn_token": "turn_x"},
        )

        data = response.model_dump(mode="json")
        assert data == {
            "error": "Turn not found",
            "error_code": "TURN_NOT_FOUND",
            "details": {"turn_token": "turn_x"},
            "api_version": "v1",
        }

    def test_result_response_from_turn_result(self):
        """TurnResultResponse accepts TurnResult.to_dict() directly."""
        from arena.api.schemas import ResultReason, TurnResultResponse
        from arena.engine_core import Reason, TurnResult

        result = TurnResult.failure(
            Reason.SUSPICIOUS_TIMING,
            details={"mistakes": 0},
            completion_time_ms=1200,
            flag=True,
            signals={"timing_rule": "uniform_gaps"},
        )

        response = TurnResultResponse(**result.to_dict(), message="This turn could not be verified.")

        assert response.reason == ResultReason.SUSPICIOUS_TIMING
        assert response.flag is True
        assert response.score is None
        assert "signals" not in response.model_dump()

    def test_game_info_from_attributes(self):
        from arena.api.models import GameInfo
        from arena.api.schemas import GameInfoResponse

        info = GameInfo(game_type="memory_cards", time_limit_ms=60000, event_types=["flip"])

        response = GameInfoResponse.model_validate(info)
        assert response.game_type == "memory_cards"
        assert response.event_types == ["flip"]


class TestErrorCodes:
    """Tests for error code coverage."""

    def test_all_error_codes_defined(self):
        """Every ArenaError subclass has a matching ErrorCode."""
        from arena.api.schemas import ErrorCode
        from arena import errors

        error_classes = [
            errors.ArenaError,
            errors.UnknownGameTypeError,
            errors.InvalidEventError,
            errors.TurnNotFoundError,
            errors.TurnStateError,
            errors.TurnNotStartedError,
            errors.TurnExpiredError,
            errors.EventLimitError,
            errors.InvalidConfigError,
        ]

        for error_class in error_classes:
            assert hasattr(ErrorCode, error_class.code), f"Missing error code: {error_class.code}"

    def test_error_code_values_are_strings(self):
        """Error codes are string enums for JSON serialization."""
        from arena.api.schemas import ErrorCode

        for code in ErrorCode:
            assert isinstance(code.value, str)
            # Error codes should be UPPER_SNAKE_CASE
            assert code.value == code.value.upper()
            assert code.name == code.value


class TestResultReasons:
    """ResultReason mirrors the engine's Reason."""

    def test_same_values(self):
        from arena.api.schemas import ResultReason
        from arena.engine_core import Reason

        assert {r.value for r in ResultReason} == {r.value for r in Reason}


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    @pytest.fixture
    def schema(self):
        from fastapi.openapi.utils import get_openapi

        from arena.api.app import create_app

        app = create_app()
        return get_openapi(
            title=app.title,
            version=app.version,
            routes=app.routes,
        )

    def test_openapi_schema_generates(self, schema):
        """OpenAPI schema generates without errors."""
        assert "paths" in schema
        assert "components" in schema
        assert "schemas" in schema["components"]

    def test_response_models_in_schema(self, schema):
        """Response models appear in OpenAPI schema."""
        schemas = schema["components"]["schemas"]

        required_schemas = [
            "CreateTurnResponse",
            "StartTurnResponse",
            "TurnEventResponse",
            "TurnResultResponse",
            "GameListResponse",
            "ErrorResponse",
        ]

        for name in required_schemas:
            assert name in schemas, f"Missing schema: {name}"

    def test_endpoints_have_response_models(self, schema):
        """All turn endpoints specify response models."""
        paths = schema["paths"]

        # POST /api/v1/turns should return CreateTurnResponse
        assert "/api/v1/turns" in paths
        assert "200" in paths["/api/v1/turns"]["post"]["responses"]

        for action in ("start", "events", "complete"):
            path = f"/api/v1/turns/{{turn_token}}/{action}"
            assert path in paths, f"Missing path: {path}"
            assert "200" in paths[path]["post"]["responses"]
            assert "404" in paths[path]["post"]["responses"]

        assert "get" in paths["/api/v1/games"]
        assert "get" in paths["/api/v1/health"]
