"""
Follow Me - Trace a curved path with one continuous drawing.

Points arrive in `stroke` batches and, optionally, with the terminal
`draw_complete`. All batches are concatenated into one drawing, which is
compared against the path for accuracy and coverage.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingAssessment, TimingThresholds, TurnSpec
from ..engine_core.payload import MAX_POINTS, payload_points
from .paths import MIN_DRAWN_POINTS, compare_paths, generate_path


@dataclass(frozen=True)
class FollowMeConfig(GameConfig):
    canvas_size: int = 300
    num_points: int = 50
    path_complexity: int = 3
    min_coverage: float = 0.5
    min_draw_ms: int = 500
    time_limit_seconds: int = 30


@dataclass(frozen=True)
class FollowMeSpec(TurnSpec):
    canvas_size: int
    path: list[list[float]]
    min_coverage: float
    min_draw_ms: int


@dataclass(frozen=True)
class FollowMeState:
    points: tuple[tuple[float, float], ...] = ()


class FollowMe(GameModule):
    game_type = "follow_me"
    spec_class = FollowMeSpec
    config_class = FollowMeConfig
    public_fields = frozenset({"canvas_size", "path", "time_limit_ms"})
    secret_fields = frozenset({"seed", "min_coverage", "min_draw_ms"})
    terminal_events = frozenset({"draw_complete"})
    # Stroke batches are flushed on a client timer, so their gaps say nothing
    timed_events = frozenset()
    thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)

    ACCURACY_QUALITY = 4000
    COVERAGE_QUALITY = 3000
    ACCURACY_EXPONENT = 1.15

    def build(self, rng: SeededRandom, seed: str, config: FollowMeConfig) -> FollowMeSpec:
        return FollowMeSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            canvas_size=config.canvas_size,
            path=generate_path(rng, config.canvas_size, 3 + config.path_complexity, config.num_points),
            min_coverage=config.min_coverage,
            min_draw_ms=config.min_draw_ms,
        )

    def initial_state(self, spec):
        return FollowMeState()

    def handlers(self):
        return {"stroke": self._handle_stroke, "draw_complete": self._handle_complete}

    def _handle_stroke(self, spec, state: FollowMeState, event):
        points = payload_points(event.payload, "points")
        if not points or len(state.points) >= MAX_POINTS:
            return None
        return replace(state, points=state.points + tuple(points[:MAX_POINTS - len(state.points)]))

    def _handle_complete(self, spec, state: FollowMeState, event):
        points = payload_points(event.payload, "points") or []
        return replace(state, points=state.points + tuple(points[:MAX_POINTS - len(state.points)]))

    def check(self, spec: FollowMeSpec, state: FollowMeState):
        if len(state.points) < MIN_DRAWN_POINTS:
            return Reason.NO_DRAWING
        if compare_paths(spec.path, list(state.points))[1] < spec.min_coverage:
            return Reason.LOW_COVERAGE
        return None

    def metrics(self, spec: FollowMeSpec, state: FollowMeState):
        accuracy, coverage = compare_paths(spec.path, list(state.points))
        return {
            "accuracy": round(accuracy, 4),
            "coverage": round(coverage, 4),
            "points_drawn": len(state.points),
            "mistakes": 0,
        }

    def plausibility(self, spec: FollowMeSpec, state: FollowMeState, metrics, elapsed_ms):
        if elapsed_ms < spec.min_draw_ms and len(state.points) > 2 * MIN_DRAWN_POINTS:
            return TimingAssessment.reject(
                Reason.IMPOSSIBLE_SPEED, "drawing_too_fast", {"points_drawn": len(state.points)},
            )
        return None

    def quality(self, spec, metrics):
        return (
            self.ACCURACY_QUALITY * metrics["accuracy"] ** self.ACCURACY_EXPONENT
            + self.COVERAGE_QUALITY * metrics["coverage"]
        )
