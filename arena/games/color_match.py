"""
Color Match - Mix an RGB colour as close as possible to each target.

Accuracy per round is 1 - distance / max_distance in RGB space. The
first submission for a round is final. Rounds further than `tolerance`
from their target count as mistakes.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import math

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from .common import ratio, with_item

MAX_DISTANCE = math.sqrt(3 * 255 ** 2)


def color_distance(target: dict, submitted: tuple[int, int, int]) -> float:
    return math.sqrt(sum((target[ch] - value) ** 2 for ch, value in zip("rgb", submitted)))


@dataclass(frozen=True)
class ColorMatchConfig(GameConfig):
    num_rounds: int = 3
    tolerance: int = 30
    min_accuracy: float = 0.5
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class ColorMatchSpec(TurnSpec):
    target_colors: list[dict]
    tolerance: int
    min_accuracy: float


@dataclass(frozen=True)
class ColorMatchState:
    # Distance per round; None until submitted
    distances: tuple[float | None, ...]


class ColorMatch(GameModule):
    game_type = "color_match"
    spec_class = ColorMatchSpec
    config_class = ColorMatchConfig
    public_fields = frozenset({"target_colors", "time_limit_ms"})
    secret_fields = frozenset({"seed", "tolerance", "min_accuracy"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=600, min_std_dev_ms=100, low_mean_ms=1500, variance_min_samples=2,
    )
    score_clamp_ms = 3000

    MAX_QUALITY = 7000
    ACCURACY_EXPONENT = 1.05

    def build(self, rng: SeededRandom, seed: str, config: ColorMatchConfig) -> ColorMatchSpec:
        # Channels stay away from the extremes so targets are neither black nor white
        targets = [
            {"r": rng.randint(30, 229), "g": rng.randint(30, 229), "b": rng.randint(30, 229)}
            for _ in range(config.num_rounds)
        ]
        return ColorMatchSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            target_colors=targets,
            tolerance=config.tolerance,
            min_accuracy=config.min_accuracy,
        )

    def initial_state(self, spec: ColorMatchSpec):
        return ColorMatchState(distances=(None,) * len(spec.target_colors))

    def handlers(self):
        return {"submit_color": self._handle_submit}

    def _handle_submit(self, spec: ColorMatchSpec, state: ColorMatchState, event):
        index = payload_int(event.payload, "round", 0, len(spec.target_colors) - 1)
        channels = [payload_int(event.payload, ch, 0, 255) for ch in "rgb"]
        if index is None or None in channels or state.distances[index] is not None:
            return None
        distance = color_distance(spec.target_colors[index], tuple(channels))
        return replace(state, distances=with_item(state.distances, index, distance))

    def check(self, spec: ColorMatchSpec, state: ColorMatchState):
        if None in state.distances:
            return Reason.INCOMPLETE
        accuracies = [1 - d / MAX_DISTANCE for d in state.distances]
        if ratio(sum(accuracies), len(accuracies)) < spec.min_accuracy:
            return Reason.LOW_ACCURACY
        return None

    def metrics(self, spec: ColorMatchSpec, state: ColorMatchState):
        submitted = [d for d in state.distances if d is not None]
        accuracies = [max(0.0, 1 - d / MAX_DISTANCE) for d in submitted]
        return {
            "rounds_completed": len(submitted),
            "round_accuracy": [round(a, 4) for a in accuracies],
            "average_accuracy": round(ratio(sum(accuracies), len(accuracies)), 4),
            "mistakes": sum(1 for d in submitted if d > spec.tolerance),
        }

    def quality(self, spec, metrics):
        return self.MAX_QUALITY * metrics["average_accuracy"] ** self.ACCURACY_EXPONENT
