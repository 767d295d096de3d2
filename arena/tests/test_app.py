"""
Tests for the HTTP routes.

Tests:
- Full turn flow over HTTP
- Error codes and status codes
- Player-facing result shape
"""

import pytest
from fastapi.testclient import TestClient

from ..api.app import create_app
from ..api.service import TurnService
from ..config import ArenaSettings
from ..session import TurnStore
from .conftest import memory_pairs


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


def create(client, game_type="memory_cards", **body):
    response = client.post("/api/v1/turns", json={"game_type": game_type, **body})
    assert response.status_code == 200, response.text
    return response.json()


class TestSystemRoutes:
    """Tests for health and catalogue."""

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "arena-turns"

    def test_root(self, client):
        data = client.get("/").json()

        assert data["docs"] == "/api/docs"

    def test_list_games(self, client):
        data = client.get("/api/v1/games").json()

        assert data["count"] == 21
        types = [g["game_type"] for g in data["games"]]
        assert types == sorted(types)
        assert "gridlock" in types


class TestTurnFlow:
    """Tests for a whole turn over HTTP."""

    def test_memory_cards_turn(self, client, service, clock):
        created = create(client, user_id="u1")
        token = created["turn_token"]
        assert created["api_version"] == "v1"
        assert "cards" not in created["client_spec"]

        start = client.post(f"/api/v1/turns/{token}/start")
        assert start.status_code == 200
        assert start.json()["server_start_time_ms"] == clock.now

        # Faces come back one flip at a time
        cards = service.store.get(token).spec.cards
        gaps = [450, 900, 520, 870]
        step = 0
        for a, b in memory_pairs(cards):
            for event in (
                {"event_type": "flip", "payload": {"card_index": a}},
                {"event_type": "flip", "payload": {"card_index": b}},
                {"event_type": "match_attempt", "payload": {"card1": a, "card2": b}},
            ):
                clock.advance(gaps[step % 4])
                step += 1
                response = client.post(f"/api/v1/turns/{token}/events", json=event)
                assert response.status_code == 200
                if event["event_type"] == "flip":
                    assert response.json()["data"]["face"] == cards[event["payload"]["card_index"]]

        result = client.post(f"/api/v1/turns/{token}/complete").json()
        assert result["valid"] is True
        assert result["score"] > 0
        assert result["reason"] is None
        assert result["message"] is None
        assert "signals" not in result

        again = client.post(f"/api/v1/turns/{token}/complete").json()
        assert again == result

    def test_invalid_turn_is_200(self, client, clock):
        """Failing validation is a normal result."""
        token = create(client)["turn_token"]
        client.post(f"/api/v1/turns/{token}/start")
        clock.advance(600)
        client.post(f"/api/v1/turns/{token}/events", json={"event_type": "flip", "payload": {"card_index": 0}})

        response = client.post(f"/api/v1/turns/{token}/complete")

        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert response.json()["reason"] == "incomplete"
        assert response.json()["message"] == "You did not finish."

    def test_hostile_payload_accepted(self, client, clock):
        """Garbage payloads are logged and ignored at completion."""
        token = create(client)["turn_token"]
        client.post(f"/api/v1/turns/{token}/start")
        clock.advance(600)

        response = client.post(
            f"/api/v1/turns/{token}/events",
            json={"event_type": "flip", "payload": {"card_index": "zero"}},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {}

    def test_reaction_signal_request(self, client, service):
        token = create(client, "reaction_time")["turn_token"]
        client.post(f"/api/v1/turns/{token}/start")

        response = client.post(
            f"/api/v1/turns/{token}/events",
            json={"event_type": "request_signal", "payload": {"round": 0}},
        )

        assert response.status_code == 200
        assert response.json()["data"]["delay_ms"] == service.store.get(token).spec.delays[0]


class TestErrorResponses:
    """Tests for error codes and HTTP statuses."""

    def test_unknown_game_type(self, client):
        response = client.post("/api/v1/turns", json={"game_type": "chess"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "UNKNOWN_GAME_TYPE"
        assert response.json()["details"] == {"game_type": "chess"}

    def test_missing_turn(self, client):
        response = client.post("/api/v1/turns/turn_nope/start")

        assert response.status_code == 404
        assert response.json()["error_code"] == "TURN_NOT_FOUND"

    def test_event_before_start(self, client):
        token = create(client)["turn_token"]

        response = client.post(f"/api/v1/turns/{token}/events", json={"event_type": "flip", "payload": {}})

        assert response.status_code == 409
        assert response.json()["error_code"] == "TURN_NOT_STARTED"

    def test_start_twice(self, client):
        token = create(client)["turn_token"]
        client.post(f"/api/v1/turns/{token}/start")

        response = client.post(f"/api/v1/turns/{token}/start")

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_TURN_STATE"

    def test_start_window_expired(self, client, clock):
        token = create(client)["turn_token"]
        clock.advance(61_000)

        response = client.post(f"/api/v1/turns/{token}/start")

        assert response.status_code == 410
        assert response.json()["error_code"] == "TURN_EXPIRED"

    def test_reserved_event_type(self, client):
        token = create(client)["turn_token"]
        client.post(f"/api/v1/turns/{token}/start")

        response = client.post(f"/api/v1/turns/{token}/events", json={"event_type": "start"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_EVENT"

    def test_malformed_body(self, client):
        response = client.post("/api/v1/turns", json={"user_id": "u1"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        assert response.json()["details"]["errors"][0]["loc"] == ["body", "game_type"]

    def test_event_limit(self, clock):
        service = TurnService(settings=ArenaSettings(max_events=2), store=TurnStore(max_events=2, clock=clock))
        client = TestClient(create_app(service))
        token = create(client)["turn_token"]
        client.post(f"/api/v1/turns/{token}/start")
        client.post(f"/api/v1/turns/{token}/events", json={"event_type": "flip", "payload": {"card_index": 0}})

        response = client.post(f"/api/v1/turns/{token}/events", json={"event_type": "flip", "payload": {"card_index": 1}})

        assert response.status_code == 429
        assert response.json()["error_code"] == "EVENT_LIMIT_EXCEEDED"

    def test_config_of_wrong_type(self, client):
        response = client.post(
            "/api/v1/turns",
            json={"game_type": "image_rotate", "config": {"time_limit_seconds": [5]}},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_CONFIG"

    def test_config_rejected_in_production(self, clock):
        service = TurnService(settings=ArenaSettings(env="production"), store=TurnStore(clock=clock))
        client = TestClient(create_app(service))

        response = client.post("/api/v1/turns", json={"game_type": "memory_cards", "config": {"num_pairs": 8}})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_CONFIG"
