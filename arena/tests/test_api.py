"""
Tests for the turn service.

Tests:
- Turn lifecycle (create, start, events, complete)
- State machine and time windows
- Hash chain checks at completion
- Config and timing overrides
- Turn store bookkeeping
"""

import re

import pytest

from ..api.service import TurnService
from ..config import ArenaSettings
from ..engine_core import Reason, canonical_json
from ..errors import (
    EventLimitError,
    InvalidConfigError,
    InvalidEventError,
    TurnExpiredError,
    TurnNotFoundError,
    TurnNotStartedError,
    TurnStateError,
    UnknownGameTypeError,
)
from ..games import get_game_module
from ..session import TurnStatus, TurnStore
from .conftest import memory_pairs


def play_memory(service, clock, turn_token, gaps=(450, 900, 520, 870)):
    """Solve a started memory_cards turn through the service."""
    spec = service.store.get(turn_token).spec
    step = 0
    for a, b in memory_pairs(spec.cards):
        for event_type, payload in (
            ("flip", {"card_index": a}),
            ("flip", {"card_index": b}),
            ("match_attempt", {"card1": a, "card2": b}),
        ):
            clock.advance(gaps[step % len(gaps)])
            step += 1
            service.record_event(turn_token, event_type, payload)


class TestTurnLifecycle:
    """Tests for the happy path."""

    def test_create_turn(self, service, clock):
        """Created turns hand out only the client projection."""
        created = service.create_turn("memory_cards", user_id="u1")

        assert re.fullmatch(r"turn_[0-9a-f]{64}_\d+", created.turn_token)
        assert created.game_type == "memory_cards"
        assert created.expires_at_ms == clock.now + 60_000
        assert "cards" not in created.client_spec
        assert "seed" not in created.client_spec
        assert created.client_spec["num_cards"] == 8

        record = service.store.get(created.turn_token)
        assert record.status == TurnStatus.PENDING
        assert record.user_id == "u1"

    def test_each_turn_gets_its_own_puzzle(self, service, clock):
        first = service.create_turn("memory_cards")
        second = service.create_turn("memory_cards")

        assert first.turn_token != second.turn_token
        assert service.store.get(first.turn_token).spec.seed != service.store.get(second.turn_token).spec.seed

    def test_start_turn(self, service, clock):
        created = service.create_turn("memory_cards")
        clock.advance(2000)

        started = service.start_turn(created.turn_token)

        assert started.started
        assert started.server_start_time_ms == clock.now
        assert started.time_limit_ms == 60_000
        record = service.store.get(created.turn_token)
        assert record.status == TurnStatus.ACTIVE
        assert record.events[0].event_type == "start"

    def test_full_turn(self, service, clock):
        """A solved turn is valid and scored."""
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        play_memory(service, clock, created.turn_token)

        result = service.complete_turn(created.turn_token)

        assert result.valid
        assert result.score > 0
        assert result.details["pairs_matched"] == 4
        assert "hash_chain_broken" not in result.signals
        assert service.store.get(created.turn_token).status == TurnStatus.COMPLETED

    def test_event_stamped_with_server_time(self, service, clock):
        """Client timestamps are kept but never used."""
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        clock.advance(700)

        recorded = service.record_event(created.turn_token, "flip", {"card_index": 0}, client_timestamp_ms=5)

        assert recorded.event_index == 1
        assert recorded.server_timestamp_ms == clock.now
        event = service.store.get(created.turn_token).events[1]
        assert event.client_timestamp_ms == 5
        assert event.server_timestamp_ms == clock.now

    def test_acknowledgement_data(self, service, clock):
        """A flip returns the card's face."""
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        spec = service.store.get(created.turn_token).spec

        recorded = service.record_event(created.turn_token, "flip", {"card_index": 3})

        assert recorded.data == {"card_index": 3, "face": spec.cards[3]}

    def test_complete_is_idempotent(self, service, clock):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        play_memory(service, clock, created.turn_token)

        first = service.complete_turn(created.turn_token)
        clock.advance(600_000)
        second = service.complete_turn(created.turn_token)

        assert second is first

    def test_unfinished_turn_is_a_result(self, service, clock):
        """An invalid turn is returned, not raised."""
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        clock.advance(800)
        service.record_event(created.turn_token, "flip", {"card_index": 0})

        result = service.complete_turn(created.turn_token)

        assert not result.valid
        assert result.reason == Reason.INCOMPLETE
        assert result.score is None

    def test_list_games(self, service):
        games = service.list_games()

        assert len(games) == 21
        by_type = {g.game_type: g for g in games}
        assert by_type["memory_cards"].event_types == ["flip", "match_attempt"]
        assert by_type["whack_a_mole"].time_limit_ms == 30_000
        assert by_type["reaction_time"].event_types == ["request_signal", "round_complete", "signal_shown"]


class TestAcknowledgedEvents:
    """Tests for secrets handed out one round at a time."""

    def test_reaction_time_turn(self, service, clock):
        """Delays are only ever learnt through request_signal."""
        created = service.create_turn("reaction_time")
        token = created.turn_token
        assert "delays" not in created.client_spec
        service.start_turn(token)
        spec = service.store.get(token).spec

        for index, round_spec in enumerate(spec.rounds):
            clock.advance(300)
            recorded = service.record_event(token, "request_signal", {"round": index})
            assert recorded.data == {"round": index, "delay_ms": spec.delays[index]}
            clock.advance(recorded.data["delay_ms"])
            service.record_event(token, "signal_shown", {"round": index})
            clock.advance(260 + 23 * index)
            service.record_event(token, "round_complete", {"round": index, "tapped": round_spec["should_tap"]})

        result = service.complete_turn(token)

        assert result.valid
        assert result.details["rounds_completed"] == spec.num_rounds
        assert result.details["mistakes"] == 0
        assert result.signals["events_ignored"] == 0

    def test_later_delay_withheld(self, service, clock):
        created = service.create_turn("reaction_time")
        service.start_turn(created.turn_token)
        clock.advance(300)

        early = service.record_event(created.turn_token, "request_signal", {"round": 3})
        current = service.record_event(created.turn_token, "request_signal", {"round": 0})

        assert early.data == {}
        assert current.data["round"] == 0

    def test_grid_recall_reveals_reached_round_only(self, service, clock):
        created = service.create_turn("grid_recall")
        token = created.turn_token
        service.start_turn(token)
        spec = service.store.get(token).spec

        clock.advance(500)
        assert service.record_event(token, "show_pattern", {"round": 2}).data == {}
        shown = service.record_event(token, "show_pattern", {"round": 0})
        assert shown.data == {"round": 0, "pattern": spec.patterns[0]}

        clock.advance(spec.rounds[0]["preview_ms"] + 1500)
        service.record_event(token, "round_submit", {"round": 0, "selected_tiles": spec.patterns[0]})
        clock.advance(500)
        assert service.record_event(token, "show_pattern", {"round": 1}).data == {
            "round": 1, "pattern": spec.patterns[1],
        }
        assert service.record_event(token, "show_pattern", {"round": 2}).data == {}


class TestStateMachine:
    """Tests for rejected operations."""

    def test_unknown_game_type(self, service):
        with pytest.raises(UnknownGameTypeError):
            service.create_turn("chess")

    def test_unknown_turn(self, service):
        with pytest.raises(TurnNotFoundError):
            service.start_turn("turn_missing")
        with pytest.raises(TurnNotFoundError):
            service.complete_turn("turn_missing")

    def test_event_before_start(self, service):
        created = service.create_turn("memory_cards")

        with pytest.raises(TurnNotStartedError) as exc:
            service.record_event(created.turn_token, "flip", {"card_index": 0})
        assert exc.value.code == "TURN_NOT_STARTED"

    def test_start_twice(self, service):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)

        with pytest.raises(TurnStateError):
            service.start_turn(created.turn_token)

    def test_start_event_type_is_reserved(self, service):
        """Clients cannot inject a second start event."""
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)

        with pytest.raises(InvalidEventError):
            service.record_event(created.turn_token, "start", {})

    def test_unknown_event_type(self, service):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)

        with pytest.raises(InvalidEventError) as exc:
            service.record_event(created.turn_token, "teleport", {})
        assert exc.value.details == {"accepted": ["flip", "match_attempt"]}

    def test_events_after_complete(self, service, clock):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        service.complete_turn(created.turn_token)

        with pytest.raises(TurnStateError):
            service.record_event(created.turn_token, "flip", {"card_index": 0})

    def test_start_window_expired(self, service, clock):
        """A turn not started in time expires and completes as never started."""
        created = service.create_turn("memory_cards")
        clock.advance(60_001)

        with pytest.raises(TurnExpiredError):
            service.start_turn(created.turn_token)

        result = service.complete_turn(created.turn_token)
        assert result.reason == Reason.NO_START_EVENT
        assert service.store.get(created.turn_token).status == TurnStatus.EXPIRED

    def test_complete_without_start(self, service):
        created = service.create_turn("memory_cards")

        result = service.complete_turn(created.turn_token)

        assert result.reason == Reason.NO_START_EVENT

    def test_event_past_time_limit(self, service, clock):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        clock.advance(60_000 + 5_001)

        with pytest.raises(TurnExpiredError):
            service.record_event(created.turn_token, "flip", {"card_index": 0})

    def test_late_completion_times_out(self, service, clock):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        play_memory(service, clock, created.turn_token)
        clock.advance(120_000)

        result = service.complete_turn(created.turn_token)

        assert result.reason == Reason.TIMEOUT

    def test_event_limit(self, clock):
        settings = ArenaSettings(max_events=5)
        service = TurnService(settings=settings, store=TurnStore(max_events=5, clock=clock))
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        for _ in range(4):
            clock.advance(300)
            service.record_event(created.turn_token, "flip", {"card_index": 0})

        with pytest.raises(EventLimitError) as exc:
            service.record_event(created.turn_token, "flip", {"card_index": 0})
        assert exc.value.status_code == 429

    def test_failed_evaluation_can_be_retried(self, service, clock, monkeypatch):
        """A crash during completion leaves the turn open, not stuck."""
        created = service.create_turn("memory_cards")
        token = created.turn_token
        service.start_turn(token)

        def broken(*args, **kwargs):
            raise RuntimeError("evaluation failed")

        monkeypatch.setattr(get_game_module("memory_cards"), "validate", broken)
        with pytest.raises(RuntimeError):
            service.complete_turn(token)

        record = service.store.get(token)
        assert record.status == TurnStatus.ACTIVE
        assert record.result is None

        monkeypatch.undo()
        play_memory(service, clock, token)
        result = service.complete_turn(token)

        assert result.valid
        assert record.status == TurnStatus.COMPLETED


class TestHashChain:
    """Tests for tamper evidence in the stored log."""

    def test_edited_event_is_reported(self, service, clock):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        play_memory(service, clock, created.turn_token)

        # Rewrite a stored payload behind the service's back
        record = service.store.get(created.turn_token)
        record.events[2].payload["card_index"] = 7

        result = service.complete_turn(created.turn_token)

        assert result.signals["hash_chain_broken"] is True
        assert result.signals["hash_chain_broken_at"] == 2
        assert "signals" not in result.to_dict()

    def test_dropped_event_is_reported(self, service, clock):
        created = service.create_turn("memory_cards")
        service.start_turn(created.turn_token)
        play_memory(service, clock, created.turn_token)

        record = service.store.get(created.turn_token)
        del record.events[3]

        result = service.complete_turn(created.turn_token)

        assert result.signals["hash_chain_broken_at"] == 3


class TestOverrides:
    """Tests for per-turn and per-deployment tuning."""

    def test_client_config(self, service):
        created = service.create_turn("memory_cards", config={"num_pairs": 6})

        assert created.client_spec["num_cards"] == 12

    def test_unknown_config_keys_ignored(self, service):
        created = service.create_turn("memory_cards", config={"colour_scheme": "dark"})

        assert created.client_spec["num_cards"] == 8

    def test_bad_config_value(self, service):
        with pytest.raises(InvalidConfigError) as exc:
            service.create_turn("memory_cards", config={"num_pairs": "lots"})
        assert exc.value.code == "INVALID_CONFIG"

    @pytest.mark.parametrize("value", [[5], {"seconds": 5}, "soon", 2.5])
    def test_config_value_of_wrong_type(self, service, value):
        with pytest.raises(InvalidConfigError) as exc:
            service.create_turn("image_rotate", config={"time_limit_seconds": value})
        assert "time_limit_seconds" in exc.value.message

    def test_numeric_string_config_coerced(self, service, clock):
        """A numeric string is read as its number, and the turn completes normally."""
        created = service.create_turn("image_rotate", config={"time_limit_seconds": "5"})
        service.start_turn(created.turn_token)
        clock.advance(800)

        result = service.complete_turn(created.turn_token)

        assert created.client_spec["time_limit_ms"] == 5000
        assert result.reason == Reason.INCOMPLETE
        assert service.store.get(created.turn_token).status == TurnStatus.COMPLETED

    def test_client_config_disabled_in_production(self, clock):
        service = TurnService(
            settings=ArenaSettings(env="production"),
            store=TurnStore(clock=clock),
        )

        with pytest.raises(InvalidConfigError):
            service.create_turn("memory_cards", config={"num_pairs": 6})

    def test_deployment_game_overrides(self, clock):
        settings = ArenaSettings(game_overrides={"memory_cards": {"num_pairs": 3, "time_limit_seconds": 45}})
        service = TurnService(settings=settings, store=TurnStore(clock=clock))

        created = service.create_turn("memory_cards")
        info = {g.game_type: g for g in service.list_games()}["memory_cards"]

        assert created.client_spec["num_cards"] == 6
        assert created.client_spec["time_limit_ms"] == 45_000
        assert info.time_limit_ms == 45_000

    def test_deployment_timing_overrides(self, clock):
        """Relaxed thresholds let a fast but clean run through."""
        fast = (60, 60, 60, 60)
        strict = TurnService(store=TurnStore(clock=clock))
        relaxed = TurnService(
            settings=ArenaSettings(timing_overrides={
                "memory_cards": {"min_mean_gap_ms": None, "min_std_dev_ms": None},
            }),
            store=TurnStore(clock=clock),
        )

        results = []
        for service in (strict, relaxed):
            created = service.create_turn("memory_cards")
            service.start_turn(created.turn_token)
            play_memory(service, clock, created.turn_token, gaps=fast)
            results.append(service.complete_turn(created.turn_token))

        assert results[0].reason == Reason.IMPOSSIBLE_SPEED
        assert results[0].flag
        assert results[1].valid


class TestTurnStore:
    """Tests for TurnStore."""

    def test_token_format(self):
        token = TurnStore.new_token(1234)

        assert token.startswith("turn_")
        assert token.endswith("_1234")
        assert len(token.split("_")[1]) == 64

    def test_expire_stale(self, service, clock):
        old = service.create_turn("memory_cards")
        clock.advance(30_000)
        fresh = service.create_turn("memory_cards")
        started = service.create_turn("memory_cards")
        service.start_turn(started.turn_token)
        clock.advance(40_000)

        expired = service.store.expire_stale(clock.now, service.settings.start_window_ms)

        assert expired == [old.turn_token]
        assert service.store.get(fresh.turn_token).status == TurnStatus.PENDING
        assert service.store.get(started.turn_token).status == TurnStatus.ACTIVE

    def test_cleanup_keeps_unfinished(self, service, clock):
        done = service.create_turn("memory_cards")
        service.complete_turn(done.turn_token)
        active = service.create_turn("memory_cards")
        service.start_turn(active.turn_token)
        clock.advance(7_200_000)

        dropped = service.store.cleanup(3600)

        assert dropped == 1
        with pytest.raises(TurnNotFoundError):
            service.store.get(done.turn_token)
        assert service.store.get(active.turn_token).status == TurnStatus.ACTIVE

    def test_sweep(self, service, clock):
        service.create_turn("memory_cards")
        clock.advance(3_700_000)

        expired, dropped = service.sweep(max_age_seconds=3600)

        assert (expired, dropped) == (1, 1)
        assert len(service.store) == 0


class TestSettings:
    """Tests for ArenaSettings.from_env."""

    def test_defaults(self, monkeypatch):
        for name in ("ARENA_ENV", "ARENA_GRACE_MS", "ARENA_GAME_OVERRIDES", "ALLOWED_ORIGINS"):
            monkeypatch.delenv(name, raising=False)

        settings = ArenaSettings.from_env()

        assert settings.env == "development"
        assert settings.grace_ms == 5000
        assert settings.allowed_origins == ["*"]
        assert settings.game_overrides == {}

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ARENA_ENV", "production")
        monkeypatch.setenv("ARENA_LOG_LEVEL", "debug")
        monkeypatch.setenv("ARENA_GRACE_MS", "2500")
        monkeypatch.setenv("ARENA_START_WINDOW_SECONDS", "30")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example,https://b.example")
        monkeypatch.setenv("ARENA_GAME_OVERRIDES", canonical_json({"memory_cards": {"num_pairs": 5}}))
        monkeypatch.setenv("ARENA_TIMING_OVERRIDES", '{"typing_speed": {"min_mean_gap_ms": 10}, "bad": 3}')

        settings = ArenaSettings.from_env()

        assert settings.env == "production"
        assert settings.log_level == "DEBUG"
        assert settings.grace_ms == 2500
        assert settings.start_window_ms == 30_000
        assert settings.allowed_origins == ["https://a.example", "https://b.example"]
        assert settings.game_overrides == {"memory_cards": {"num_pairs": 5}}
        assert settings.timing_overrides == {"typing_speed": {"min_mean_gap_ms": 10}}

    def test_malformed_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("ARENA_MAX_EVENTS", "many")
        monkeypatch.setenv("ARENA_GAME_OVERRIDES", "{not json")

        settings = ArenaSettings.from_env()

        assert settings.max_events == 500
        assert settings.game_overrides == {}


class TestGameRegistryThroughService:
    """Every game can be created and started through the service."""

    @pytest.mark.parametrize("game_type", ["reaction_time", "grid_recall", "typing_speed", "gridlock"])
    def test_create_and_start(self, service, clock, game_type):
        created = service.create_turn(game_type)
        module = get_game_module(game_type)

        assert not set(created.client_spec) & module.secret_fields
        started = service.start_turn(created.turn_token)
        assert started.time_limit_ms == created.client_spec["time_limit_ms"]
