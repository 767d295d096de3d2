"""
Draw Me - Redraw three shapes of rising complexity from memory.

Each `round_complete` carries the whole drawing for that round. Rounds
drawn with too few points do not count; the score averages the rounds
that do and is scaled by the share of rounds drawn.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingAssessment, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int, payload_points
from .common import ratio, with_item
from .paths import MIN_DRAWN_POINTS, compare_paths, generate_path

# (control points, path points, closed) per round
ROUND_SHAPES = [(3, 30, False), (5, 45, False), (6, 55, True)]


@dataclass(frozen=True)
class DrawMeConfig(GameConfig):
    canvas_size: int = 300
    min_coverage: float = 0.5
    min_draw_ms: int = 500
    time_limit_seconds: int = 30


@dataclass(frozen=True)
class DrawMeSpec(TurnSpec):
    canvas_size: int
    paths: list[list[list[float]]]
    min_coverage: float
    min_draw_ms: int


@dataclass(frozen=True)
class DrawMeState:
    # Per round, (accuracy, coverage, points) once drawn
    rounds: tuple[tuple[float, float, int] | None, ...]

    @property
    def drawn(self) -> list[tuple[float, float, int]]:
        return [r for r in self.rounds if r is not None]


class DrawMe(GameModule):
    game_type = "draw_me"
    spec_class = DrawMeSpec
    config_class = DrawMeConfig
    public_fields = frozenset({"canvas_size", "paths", "time_limit_ms"})
    secret_fields = frozenset({"seed", "min_coverage", "min_draw_ms"})
    timed_events = frozenset()
    thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)

    ACCURACY_QUALITY = 4000
    COVERAGE_QUALITY = 3000
    ACCURACY_EXPONENT = 1.15

    def build(self, rng: SeededRandom, seed: str, config: DrawMeConfig) -> DrawMeSpec:
        return DrawMeSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            canvas_size=config.canvas_size,
            paths=[
                generate_path(rng, config.canvas_size, controls, points, closed)
                for controls, points, closed in ROUND_SHAPES
            ],
            min_coverage=config.min_coverage,
            min_draw_ms=config.min_draw_ms,
        )

    def initial_state(self, spec: DrawMeSpec):
        return DrawMeState(rounds=(None,) * len(spec.paths))

    def handlers(self):
        return {"round_complete": self._handle_round}

    def _handle_round(self, spec: DrawMeSpec, state: DrawMeState, event):
        index = payload_int(event.payload, "round", 0, len(spec.paths) - 1)
        points = payload_points(event.payload, "points")
        if index is None or state.rounds[index] is not None:
            return None
        if points is None or len(points) < MIN_DRAWN_POINTS:
            return None
        accuracy, coverage = compare_paths(spec.paths[index], points)
        return replace(state, rounds=with_item(state.rounds, index, (accuracy, coverage, len(points))))

    def check(self, spec: DrawMeSpec, state: DrawMeState):
        drawn = state.drawn
        if not drawn:
            return Reason.NO_DRAWING
        if ratio(sum(c for _, c, _ in drawn), len(drawn)) < spec.min_coverage:
            return Reason.LOW_COVERAGE
        return None

    def metrics(self, spec: DrawMeSpec, state: DrawMeState):
        drawn = state.drawn
        return {
            "rounds_drawn": len(drawn),
            "num_rounds": len(spec.paths),
            "accuracy": round(ratio(sum(a for a, _, _ in drawn), len(drawn)), 4),
            "coverage": round(ratio(sum(c for _, c, _ in drawn), len(drawn)), 4),
            "points_drawn": sum(p for _, _, p in drawn),
            "mistakes": 0,
        }

    def plausibility(self, spec: DrawMeSpec, state, metrics, elapsed_ms):
        if elapsed_ms < spec.min_draw_ms and metrics["points_drawn"] > 2 * MIN_DRAWN_POINTS:
            return TimingAssessment.reject(
                Reason.IMPOSSIBLE_SPEED, "drawing_too_fast", {"points_drawn": metrics["points_drawn"]},
            )
        return None

    def quality(self, spec, metrics):
        per_round = (
            self.ACCURACY_QUALITY * metrics["accuracy"] ** self.ACCURACY_EXPONENT
            + self.COVERAGE_QUALITY * metrics["coverage"]
        )
        return per_round * ratio(metrics["rounds_drawn"], metrics["num_rounds"])
