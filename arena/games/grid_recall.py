"""
Grid Recall - Memorize a flash of lit tiles, then select them again.

Patterns stay on the server until the player asks for them: the
`show_pattern` acknowledgement carries the tiles of the round the player
has reached, and nothing for any other round. Rounds
are played in order and a round can only be submitted after its pattern
was shown. Submissions past a round's input limit score zero accuracy.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import (
    GameConfig, GameModule, Reason, SeededRandom, TimingAssessment, TimingThresholds, TurnSpec, replay_events,
)
from ..engine_core.payload import payload_int, payload_int_list
from ..engine_core.scoring import two_factor_score
from .common import ratio

# (tile count, preview ms, input limit ms or None) per round
ROUND_LEVELS = [
    (4, 2000, None),
    (5, 1800, None),
    (6, 1500, None),
    (7, 1200, 4000),
    (9, 1000, 3500),
    (11, 800, 3000),
]
WRONG_TILE_PENALTY = 0.1


@dataclass(frozen=True)
class GridRecallConfig(GameConfig):
    grid_size: int = 5
    num_rounds: int = 6
    # Allowance on top of the input limit for network latency
    latency_ms: int = 750
    # Fastest plausible input, per selected tile
    min_ms_per_tile: int = 60
    play_reference_ms: int = 30000
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class GridRecallSpec(TurnSpec):
    grid_size: int
    # {"tile_count", "preview_ms", "input_time_limit_ms"} per round
    rounds: list[dict]
    patterns: list[list[int]]
    latency_ms: int
    min_ms_per_tile: int
    play_reference_ms: int


@dataclass(frozen=True)
class GridRecallState:
    round: int = 0
    shown_ms: int | None = None
    # (accuracy, input ms, selected tiles) per submitted round
    results: tuple[tuple[float, int, int], ...] = ()
    wrong_tiles: int = 0


class GridRecall(GameModule):
    game_type = "grid_recall"
    spec_class = GridRecallSpec
    config_class = GridRecallConfig
    public_fields = frozenset({"grid_size", "rounds", "time_limit_ms"})
    secret_fields = frozenset({"seed", "patterns", "latency_ms", "min_ms_per_tile", "play_reference_ms"})
    timed_events = frozenset()
    thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)

    MAX_QUALITY = 7000
    # Below this average accuracy speed earns nothing
    SPEED_BONUS_MIN_ACCURACY = 0.4

    def build(self, rng: SeededRandom, seed: str, config: GridRecallConfig) -> GridRecallSpec:
        cells = config.grid_size * config.grid_size
        rounds = []
        patterns = []
        for tiles, preview_ms, input_limit_ms in ROUND_LEVELS[:config.num_rounds]:
            rounds.append({
                "tile_count": tiles,
                "preview_ms": preview_ms,
                "input_time_limit_ms": input_limit_ms,
            })
            patterns.append(sorted(rng.sample(range(cells), tiles)))
        return GridRecallSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            grid_size=config.grid_size,
            rounds=rounds,
            patterns=patterns,
            latency_ms=config.latency_ms,
            min_ms_per_tile=config.min_ms_per_tile,
            play_reference_ms=config.play_reference_ms,
        )

    def acknowledge(self, spec: GridRecallSpec, event, history=()):
        if event.event_type != "show_pattern":
            return {}
        index = payload_int(event.payload, "round", 0, len(spec.patterns) - 1)
        # Only the round the log has reached
        if index is None or index != replay_events(self, spec, history).state.round:
            return {}
        return {"round": index, "pattern": spec.patterns[index]}

    def initial_state(self, spec):
        return GridRecallState()

    def handlers(self):
        return {"show_pattern": self._handle_show, "round_submit": self._handle_submit}

    def _handle_show(self, spec: GridRecallSpec, state: GridRecallState, event):
        if payload_int(event.payload, "round") != state.round or state.shown_ms is not None:
            return None
        return replace(state, shown_ms=event.server_timestamp_ms)

    def _handle_submit(self, spec: GridRecallSpec, state: GridRecallState, event):
        if state.shown_ms is None or payload_int(event.payload, "round") != state.round:
            return None
        cells = spec.grid_size * spec.grid_size
        selected = payload_int_list(event.payload, "selected_tiles", 0, cells - 1, max_length=cells)
        if selected is None:
            return None
        selected = set(selected)
        pattern = set(spec.patterns[state.round])
        correct = len(selected & pattern)
        wrong = len(selected - pattern)
        accuracy = min(1.0, max(0.0, correct / len(pattern) - WRONG_TILE_PENALTY * wrong))

        level = spec.rounds[state.round]
        input_ms = event.server_timestamp_ms - state.shown_ms - level["preview_ms"]
        limit = level["input_time_limit_ms"]
        if limit is not None and input_ms > limit + spec.latency_ms:
            accuracy = 0.0
        return replace(
            state,
            round=state.round + 1,
            shown_ms=None,
            results=state.results + ((accuracy, max(0, input_ms), len(selected)),),
            wrong_tiles=state.wrong_tiles + wrong,
        )

    def check(self, spec, state: GridRecallState):
        if not state.results:
            return Reason.NO_ROUNDS_COMPLETED
        return None

    def metrics(self, spec: GridRecallSpec, state: GridRecallState):
        accuracies = [accuracy for accuracy, _, _ in state.results]
        return {
            "rounds_completed": len(state.results),
            "num_rounds": len(spec.rounds),
            "round_accuracy": [round(a, 4) for a in accuracies],
            "average_accuracy": round(ratio(sum(accuracies), len(accuracies)), 4),
            "input_time_ms": sum(ms for _, ms, _ in state.results),
            "mistakes": state.wrong_tiles,
        }

    def plausibility(self, spec: GridRecallSpec, state: GridRecallState, metrics, elapsed_ms):
        for number, (_, input_ms, selected) in enumerate(state.results):
            if selected and input_ms < selected * spec.min_ms_per_tile:
                return TimingAssessment.reject(
                    Reason.IMPOSSIBLE_SPEED, "input_too_fast", {"round": number, "input_ms": input_ms},
                )
        return None

    def quality(self, spec, metrics):
        return (
            self.MAX_QUALITY
            * metrics["average_accuracy"]
            * ratio(metrics["rounds_completed"], metrics["num_rounds"])
        )

    def score(self, spec: GridRecallSpec, metrics, elapsed_ms):
        # Speed is judged on time spent selecting tiles, not on previews
        quality = self.quality(spec, metrics)
        if metrics["average_accuracy"] < self.SPEED_BONUS_MIN_ACCURACY:
            return max(0, round(quality))
        return two_factor_score(
            quality, metrics["input_time_ms"], spec.play_reference_ms, self.score_clamp_ms,
        )
