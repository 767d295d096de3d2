"""
Reaction Bars - Stop each oscillating bar as close to its target width as you can.

Bar widths follow a sine wave in percent of full width. The first stop
reported for a bar is final.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import statistics

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingAssessment, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_float, payload_int
from .common import ratio, with_item

BAR_COLORS = ["#ef4444", "#3b82f6", "#f59e0b"]
# Cycles per second of the first bar; later bars run faster
BASE_SPEED = 0.167
SPEED_MULTIPLIERS = [1, 1.5, 2]
# Width error, in percentage points, that scores zero
ZERO_ACCURACY_ERROR = 30


@dataclass(frozen=True)
class ReactionBarsConfig(GameConfig):
    num_bars: int = 3
    time_limit_seconds: int = 30


@dataclass(frozen=True)
class ReactionBarsSpec(TurnSpec):
    # {"target_width", "color", "speed", "start_phase"} per bar
    bars: list[dict]


@dataclass(frozen=True)
class ReactionBarsState:
    # Per bar, (accuracy, server timestamp) once stopped
    stops: tuple[tuple[float, int] | None, ...]


class ReactionBars(GameModule):
    game_type = "reaction_bars"
    spec_class = ReactionBarsSpec
    config_class = ReactionBarsConfig
    public_fields = frozenset({"bars", "time_limit_ms"})
    secret_fields = frozenset({"seed"})
    timed_events = frozenset()
    thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)

    MAX_QUALITY = 7000
    ACCURACY_EXPONENT = 1.2

    def build(self, rng: SeededRandom, seed: str, config: ReactionBarsConfig) -> ReactionBarsSpec:
        bars = [
            {
                "target_width": rng.randint(25, 80),
                "color": BAR_COLORS[i % len(BAR_COLORS)],
                "speed": round(BASE_SPEED * SPEED_MULTIPLIERS[i % len(SPEED_MULTIPLIERS)], 4),
                "start_phase": round(rng.random(), 4),
            }
            for i in range(config.num_bars)
        ]
        return ReactionBarsSpec(seed=seed, time_limit_ms=config.time_limit_ms, bars=bars)

    def initial_state(self, spec: ReactionBarsSpec):
        return ReactionBarsState(stops=(None,) * len(spec.bars))

    def handlers(self):
        return {"bar_stop": self._handle_stop}

    def _handle_stop(self, spec: ReactionBarsSpec, state: ReactionBarsState, event):
        index = payload_int(event.payload, "bar_index", 0, len(spec.bars) - 1)
        width = payload_float(event.payload, "stopped_width", 0, 100)
        if index is None or width is None or state.stops[index] is not None:
            return None
        error = abs(width - spec.bars[index]["target_width"])
        accuracy = max(0.0, 1 - error / ZERO_ACCURACY_ERROR)
        return replace(state, stops=with_item(state.stops, index, (accuracy, event.server_timestamp_ms)))

    def check(self, spec, state: ReactionBarsState):
        if None in state.stops:
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: ReactionBarsSpec, state: ReactionBarsState):
        accuracies = [stop[0] for stop in state.stops if stop is not None]
        return {
            "bars_stopped": len(accuracies),
            "num_bars": len(spec.bars),
            "bar_accuracy": [round(a, 4) for a in accuracies],
            "average_accuracy": round(ratio(sum(accuracies), len(accuracies)), 4),
            "mistakes": sum(1 for a in accuracies if a == 0),
        }

    def plausibility(self, spec, state: ReactionBarsState, metrics, elapsed_ms):
        # Every bar dead on target, stopped in a quick burst
        accuracies = [stop[0] for stop in state.stops if stop is not None]
        times = sorted(stop[1] for stop in state.stops if stop is not None)
        if len(accuracies) < 2 or metrics["average_accuracy"] <= 0.99:
            return None
        if statistics.pstdev(accuracies) >= 0.005:
            return None
        if all(later - earlier < 200 for earlier, later in zip(times, times[1:])):
            return TimingAssessment.reject(
                Reason.SUSPICIOUS_TIMING, "perfect_burst", {"stop_times_ms": times},
            )
        return None

    def quality(self, spec, metrics):
        return (
            self.MAX_QUALITY
            * metrics["average_accuracy"] ** self.ACCURACY_EXPONENT
            * ratio(metrics["bars_stopped"], metrics["num_bars"])
        )
