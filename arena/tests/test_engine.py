"""
Tests for the shared engine core.

Tests:
- Seeded RNG determinism
- Event hash chain
- Tolerant payload accessors
- Timing heuristics at their boundaries
- Score shape
- Replay fold and the validation pipeline
"""

from dataclasses import dataclass, replace

import pytest

from ..engine_core import (
    GameModule,
    Reason,
    SeededRandom,
    TimingThresholds,
    TurnResult,
    TurnSpec,
    assess_timing,
    evaluate_turn,
    reason_message,
    replay_events,
    speed_factor,
    two_factor_score,
    verify_chain,
)
from ..engine_core.payload import (
    MAX_POINTS,
    payload_bool,
    payload_cells,
    payload_int,
    payload_int_list,
    payload_points,
    payload_str,
)
from ..games.image_rotate import ImageRotate, ImageRotateSpec
from .conftest import build_events, jittered, spaced


class TestSeededRandom:
    """Tests for the pinned RNG."""

    def test_same_seed_same_sequence(self):
        """Two generators with one seed draw identical values."""
        a = SeededRandom("seed-1")
        b = SeededRandom("seed-1")
        assert [a.random() for _ in range(50)] == [b.random() for _ in range(50)]

    def test_different_seeds_differ(self):
        a = SeededRandom("seed-1")
        b = SeededRandom("seed-2")
        assert [a.random() for _ in range(10)] != [b.random() for _ in range(10)]

    def test_random_in_unit_interval(self):
        rng = SeededRandom("bounds")
        for _ in range(500):
            assert 0.0 <= rng.random() < 1.0

    def test_randint_inclusive_bounds(self):
        rng = SeededRandom("dice")
        values = {rng.randint(1, 6) for _ in range(500)}
        assert values == {1, 2, 3, 4, 5, 6}

    def test_shuffle_is_permutation(self):
        rng = SeededRandom("cards")
        items = list(range(20))
        shuffled = rng.shuffle(items)
        assert sorted(shuffled) == items
        assert items == list(range(20))

    def test_sample_distinct(self):
        rng = SeededRandom("sample")
        picked = rng.sample(range(10), 4)
        assert len(set(picked)) == 4

    def test_sample_too_large(self):
        with pytest.raises(ValueError):
            SeededRandom("x").sample([1, 2], 3)

    def test_choice_empty(self):
        with pytest.raises(IndexError):
            SeededRandom("x").choice([])

    def test_randrange_needs_positive_bound(self):
        with pytest.raises(ValueError):
            SeededRandom("x").randrange(0)


class TestEventChain:
    """Tests for hash-linked event logs."""

    def test_intact_chain(self):
        events = build_events([("rotate", {"tile_index": 0}, 500)])
        assert verify_chain("turn_test", events) is None

    def test_indices_and_links(self):
        events = build_events([("rotate", {"tile_index": i}, 500 * (i + 1)) for i in range(3)])
        assert [e.index for e in events] == [0, 1, 2, 3]
        for earlier, later in zip(events, events[1:]):
            assert later.prev_hash == earlier.event_hash

    def test_edited_payload_detected(self):
        """Rewriting an event's payload breaks the chain at that event."""
        events = build_events([("rotate", {"tile_index": i}, 500 * (i + 1)) for i in range(3)])
        events[2] = replace(events[2], payload={"tile_index": 8})
        assert verify_chain("turn_test", events) == 2

    def test_dropped_event_detected(self):
        events = build_events([("rotate", {"tile_index": i}, 500 * (i + 1)) for i in range(3)])
        del events[1]
        assert verify_chain("turn_test", events) == 1

    def test_wrong_token_detected(self):
        events = build_events([("rotate", {"tile_index": 0}, 500)])
        assert verify_chain("turn_other", events) == 0


class TestPayloadAccessors:
    """Tests for client payload reads."""

    def test_int_accepts_integral_float(self):
        assert payload_int({"v": 3.0}, "v") == 3

    def test_int_rejects_fraction_bool_and_string(self):
        assert payload_int({"v": 3.5}, "v") is None
        assert payload_int({"v": True}, "v") is None
        assert payload_int({"v": "3"}, "v") is None
        assert payload_int({}, "v") is None

    def test_int_range(self):
        assert payload_int({"v": 9}, "v", 0, 8) is None
        assert payload_int({"v": -1}, "v", 0, 8) is None
        assert payload_int({"v": 8}, "v", 0, 8) == 8

    def test_int_rejects_non_finite(self):
        assert payload_int({"v": float("nan")}, "v") is None
        assert payload_int({"v": float("inf")}, "v") is None

    def test_bool_and_str(self):
        assert payload_bool({"v": 1}, "v") is None
        assert payload_bool({"v": False}, "v") is False
        assert payload_str({"v": "x" * 11}, "v", max_length=10) is None

    def test_int_list_all_or_nothing(self):
        assert payload_int_list({"v": [1, 2, 3]}, "v", 0, 5) == [1, 2, 3]
        assert payload_int_list({"v": [1, "2", 3]}, "v", 0, 5) is None

    def test_points_drop_malformed(self):
        points = payload_points({"v": [[1, 2], {"x": 3, "y": 4}, [1], "x", [None, 2]]}, "v")
        assert points == [(1.0, 2.0), (3.0, 4.0)]

    def test_points_capped(self):
        points = payload_points({"v": [[0, 0]] * (MAX_POINTS + 50)}, "v")
        assert len(points) == MAX_POINTS

    def test_cells_inside_grid(self):
        assert payload_cells({"v": [[0, 1], [2, 2]]}, "v", 3) == [(0, 1), (2, 2)]
        assert payload_cells({"v": [[0, 3]]}, "v", 3) is None


class TestTimingHeuristics:
    """Tests for assess_timing."""

    def test_uniform_ten_ms_gaps_rejected(self):
        """A scripted burst is never accepted."""
        timestamps = [i * 10 for i in range(20)]
        assessment = assess_timing(timestamps, 0, 190, TimingThresholds())
        assert assessment.suspicious
        assert assessment.reason in (Reason.IMPOSSIBLE_SPEED, Reason.SUSPICIOUS_TIMING)

    def test_jittered_human_gaps_pass(self):
        """Mean around 600 ms with a wide spread passes."""
        gaps = [450, 750, 600, 420, 810, 560, 640, 380, 790, 600]
        timestamps = [0]
        for gap in gaps:
            timestamps.append(timestamps[-1] + gap)
        assessment = assess_timing(timestamps, 0, timestamps[-1], TimingThresholds())
        assert not assessment.suspicious
        assert assessment.signals["gap_count"] == len(gaps)

    def test_floor_rule(self):
        assessment = assess_timing([0, 600, 630, 1200], 2, 1200, TimingThresholds())
        assert assessment.rule == "gap_below_floor"

    def test_low_mean_needs_zero_mistakes(self):
        timestamps = [0, 100, 220, 310, 430]
        thresholds = TimingThresholds(min_std_dev_ms=None)
        assert assess_timing(timestamps, 0, 430, thresholds).rule == "mean_gap_too_low"
        assert not assess_timing(timestamps, 1, 430, thresholds).suspicious

    def test_uniform_gaps_under_low_mean(self):
        timestamps = [i * 200 for i in range(6)]
        assessment = assess_timing(timestamps, 1, 1000, TimingThresholds())
        assert assessment.reason == Reason.SUSPICIOUS_TIMING
        assert assessment.rule == "uniform_gaps"

    def test_uniform_gaps_above_low_mean_pass(self):
        timestamps = [i * 800 for i in range(6)]
        assert not assess_timing(timestamps, 0, 4000, TimingThresholds()).suspicious

    def test_perfect_run_too_fast(self):
        thresholds = TimingThresholds(min_perfect_completion_ms=3000)
        assessment = assess_timing([], 0, 2000, thresholds)
        assert assessment.rule == "perfect_run_too_fast"
        assert not assess_timing([], 1, 2000, thresholds).suspicious

    def test_disabled_rules(self):
        thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)
        timestamps = [i * 10 for i in range(20)]
        assert not assess_timing(timestamps, 0, 190, thresholds).suspicious

    def test_merged_ignores_unknown_keys(self):
        merged = TimingThresholds().merged({"absolute_floor_ms": 80, "bogus": 1})
        assert merged.absolute_floor_ms == 80
        assert merged.min_mean_gap_ms == TimingThresholds().min_mean_gap_ms


class TestScoring:
    """Tests for the two-factor score."""

    def test_faster_scores_higher(self):
        scores = [two_factor_score(5000, elapsed, 60000, 2000) for elapsed in (3000, 10000, 30000, 60000)]
        assert scores == sorted(scores, reverse=True)

    def test_speed_factor_at_reference(self):
        assert speed_factor(60000, 60000, 2000) == pytest.approx(1.0)

    def test_clamp_bounds_instant_finishes(self):
        assert two_factor_score(5000, 10, 60000, 2000) == two_factor_score(5000, 2000, 60000, 2000)

    def test_never_negative(self):
        assert two_factor_score(-300, 5000, 60000, 2000) == 0

    def test_higher_quality_scores_higher(self):
        assert two_factor_score(6000, 9000, 60000, 2000) > two_factor_score(5000, 9000, 60000, 2000)


# =============================================================================
# Replay and pipeline
# =============================================================================

@dataclass(frozen=True)
class CounterSpec(TurnSpec):
    target: int


class Counter(GameModule):
    """Minimal game: send `add` events until the total reaches target."""

    game_type = "counter"
    spec_class = CounterSpec
    public_fields = frozenset({"target", "time_limit_ms"})
    secret_fields = frozenset({"seed"})
    terminal_events = frozenset({"done"})
    thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)

    def build(self, rng, seed, config):
        return CounterSpec(seed=seed, time_limit_ms=config.time_limit_ms, target=3)

    def initial_state(self, spec):
        return 0

    def handlers(self):
        return {"add": self._add, "done": self._done}

    def _add(self, spec, state, event):
        # Raises on malformed payloads on purpose
        return state + int(event.payload["amount"])

    def _done(self, spec, state, event):
        return state

    def check(self, spec, state):
        return None if state >= spec.target else Reason.INCOMPLETE

    def metrics(self, spec, state):
        return {"total": state, "mistakes": 0}

    def quality(self, spec, metrics):
        return 1000


class TestReplay:
    """Tests for the shared fold."""

    @pytest.fixture
    def module(self):
        return Counter()

    @pytest.fixture
    def spec(self, module):
        return module.generate("seed")

    def test_events_before_start_ignored(self, module, spec):
        events = build_events([("add", {"amount": 1}, 100)], start_ms=1000)
        early = replace(events[1], server_timestamp_ms=500)
        result = replay_events(module, spec, [early] + events)
        assert result.state == 1
        assert result.ignored == 1

    def test_second_start_ignored(self, module, spec):
        events = build_events([("add", {"amount": 1}, 100), ("start", {}, 200), ("add", {"amount": 1}, 300)])
        result = replay_events(module, spec, events)
        assert result.state == 2
        assert result.ignored == 1

    def test_malformed_payloads_skipped(self, module, spec):
        """Handlers that raise on bad input do not abort the replay."""
        events = build_events([
            ("add", {}, 100),
            ("add", {"amount": "lots"}, 200),
            ("add", {"amount": None}, 300),
            ("add", {"amount": 2}, 400),
        ])
        result = replay_events(module, spec, events)
        assert result.state == 2
        assert result.ignored == 3

    def test_terminal_event_stops_fold(self, module, spec):
        events = build_events([("add", {"amount": 1}, 100), ("done", {}, 200), ("add", {"amount": 5}, 300)])
        result = replay_events(module, spec, events)
        assert result.state == 1
        assert result.elapsed_ms == 200

    def test_elapsed_uses_last_applied_event(self, module, spec):
        events = build_events([("add", {"amount": 1}, 100), ("unknown", {}, 9000)])
        result = replay_events(module, spec, events)
        assert result.elapsed_ms == 100

    def test_replay_is_deterministic(self, module, spec):
        events = build_events(spaced("add", [{"amount": 1}] * 4))
        assert evaluate_turn(module, spec, events) == evaluate_turn(module, spec, events)


class TestPipeline:
    """Tests for evaluate_turn ordering."""

    @pytest.fixture
    def module(self):
        return ImageRotate()

    @pytest.fixture
    def spec(self):
        return ImageRotateSpec(
            seed="scenario",
            time_limit_ms=60000,
            image_url="/images/puzzles/cat1.jpg",
            grid_size=3,
            initial_rotations=[90, 0, 180, 0, 90, 0, 0, 270, 0],
        )

    def test_no_start_event(self, module, spec):
        events = build_events(spaced("rotate", [{"tile_index": 0}]))[1:]
        result = evaluate_turn(module, spec, events)
        assert not result.valid
        assert result.reason == Reason.NO_START_EVENT

    def test_rotation_scenario(self, module, spec):
        """Seven clicks at 800 ms gaps solve the board with no extra rotations."""
        clicks = [0, 2, 2, 4, 7, 7, 7]
        events = build_events(spaced("rotate", [{"tile_index": t} for t in clicks]))
        result = evaluate_turn(module, spec, events)

        assert result.valid
        assert result.details["min_rotations"] == 7
        assert result.details["extra_rotations"] == 0
        assert result.completion_time_ms == 5600
        assert result.score == two_factor_score(7000, 5600, 60000, module.score_clamp_ms)

    def test_extra_rotations_cost_quality(self, module, spec):
        clicks = [0, 0, 0, 0, 0, 2, 2, 4, 7, 7, 7]
        events = build_events(jittered("rotate", [{"tile_index": t} for t in clicks]))
        result = evaluate_turn(module, spec, events)

        assert result.valid
        assert result.details["extra_rotations"] == 4
        assert result.details["mistakes"] == 4
        expected = two_factor_score(7000 - 4 * 250, result.completion_time_ms, 60000, module.score_clamp_ms)
        assert result.score == expected

    def test_unsolved_is_incomplete_with_metrics(self, module, spec):
        events = build_events(spaced("rotate", [{"tile_index": 0}, {"tile_index": 2}]))
        result = evaluate_turn(module, spec, events)
        assert not result.valid
        assert result.reason == Reason.INCOMPLETE
        assert result.score is None
        assert result.details["tiles_solved"] == 6

    def test_timeout(self, module):
        """Last qualifying event at 36 s against a 30 s limit."""
        spec = ImageRotateSpec(
            seed="timeout", time_limit_ms=30000, image_url="x", grid_size=3,
            initial_rotations=[90, 0, 0, 0, 0, 0, 0, 0, 0],
        )
        events = build_events([("rotate", {"tile_index": 0}, 36000)])
        result = evaluate_turn(module, spec, events)
        assert not result.valid
        assert result.reason == Reason.TIMEOUT

    def test_within_grace_is_not_timeout(self, module):
        spec = ImageRotateSpec(
            seed="grace", time_limit_ms=30000, image_url="x", grid_size=3,
            initial_rotations=[90, 0, 0, 0, 0, 0, 0, 0, 0],
        )
        events = build_events([("rotate", {"tile_index": 0}, 34000)])
        assert evaluate_turn(module, spec, events).valid

    def test_scripted_burst_flagged(self, module, spec):
        clicks = [0, 2, 2, 4, 7, 7, 7]
        events = build_events(spaced("rotate", [{"tile_index": t} for t in clicks], gap_ms=10))
        result = evaluate_turn(module, spec, events)
        assert not result.valid
        assert result.flag
        assert result.reason.is_automation
        assert "timing_rule" in result.signals
        assert "signals" not in result.to_dict()

    def test_threshold_override_disables_rule(self, module, spec):
        clicks = [0, 2, 2, 4, 7, 7, 7]
        events = build_events(spaced("rotate", [{"tile_index": t} for t in clicks], gap_ms=10))
        relaxed = TimingThresholds(
            absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None,
        )
        assert evaluate_turn(module, spec, events, thresholds=relaxed).valid


class TestTurnResult:
    """Tests for result records."""

    def test_failure_has_no_score(self):
        result = TurnResult.failure(Reason.INCOMPLETE, {"mistakes": 1})
        assert result.to_dict()["score"] is None
        assert result.to_dict()["reason"] == "incomplete"

    def test_signals_only_on_request(self):
        result = TurnResult.success(100, {}, 1000).with_signals(hash_chain_broken=True)
        assert "signals" not in result.to_dict()
        assert result.to_dict(include_signals=True)["signals"] == {"hash_chain_broken": True}

    def test_messages(self):
        assert reason_message(Reason.LOW_COVERAGE) == "You did not finish."
        assert reason_message(Reason.IMPOSSIBLE_SPEED) == reason_message(Reason.SUSPICIOUS_TIMING)
        assert reason_message(Reason.TIMEOUT) == "Time's up."
