"""
Duck Shoot - Shoot the ducks crossing the screen, spare the decoys.

Ducks get faster with every spawn. A `shoot` names the duck and how
close to its centre the shot landed; it only counts while that duck is
on screen by server clock, relative to the start event. The round runs
its full length, so elapsed time does not scale the score.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_float, payload_int
from ..engine_core.scoring import penalized
from .common import ratio


@dataclass(frozen=True)
class DuckShootConfig(GameConfig):
    canvas_width: int = 400
    canvas_height: int = 300
    duck_size: int = 50
    initial_duck_speed: float = 100.0
    speed_increase_rate: float = 1.08
    decoy_ratio: float = 0.25
    first_spawn_ms: int = 1000
    min_spawn_interval_ms: int = 800
    hit_latency_ms: int = 750
    min_hits: int = 2
    time_limit_seconds: int = 30


@dataclass(frozen=True)
class DuckShootSpec(TurnSpec):
    canvas_width: int
    canvas_height: int
    duck_size: int
    # {"spawn_time_ms", "from_left", "y", "speed", "is_decoy"}; speed in px/s
    duck_spawns: list[dict]
    hit_latency_ms: int
    min_hits: int


@dataclass(frozen=True)
class DuckShootState:
    start_ms: int = 0
    shot: frozenset[int] = frozenset()
    hits: int = 0
    decoy_hits: int = 0
    misses: int = 0
    accuracy_total: float = 0.0


def on_screen_ms(spec: DuckShootSpec, spawn: dict) -> float:
    return (spec.canvas_width + spec.duck_size) / spawn["speed"] * 1000


class DuckShoot(GameModule):
    game_type = "duck_shoot"
    spec_class = DuckShootSpec
    config_class = DuckShootConfig
    public_fields = frozenset({
        "canvas_width", "canvas_height", "duck_size", "duck_spawns", "time_limit_ms",
    })
    secret_fields = frozenset({"seed", "hit_latency_ms", "min_hits"})
    timed_events = frozenset({"shoot"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=100, min_std_dev_ms=20, low_mean_ms=800, variance_min_samples=8,
    )
    fixed_duration = True

    HIT_QUALITY = 600
    PRECISION_QUALITY = 4000
    DECOY_PENALTY = 400
    # Shots without a reported accuracy count as middling
    DEFAULT_ACCURACY = 0.5

    def build(self, rng: SeededRandom, seed: str, config: DuckShootConfig) -> DuckShootSpec:
        spawns = []
        now = float(config.first_spawn_ms)
        speed = config.initial_duck_speed
        low_y = config.duck_size + 20
        # The gun sits along the bottom of the canvas
        high_y = config.canvas_height - 100
        while now < config.time_limit_ms - 2000:
            spawns.append({
                "spawn_time_ms": round(now),
                "from_left": rng.chance(0.5),
                "y": round(rng.uniform(low_y, high_y), 1),
                "speed": round(speed, 2),
                "is_decoy": rng.chance(config.decoy_ratio),
            })
            cross_ms = config.canvas_width / speed * 1000
            now += max(config.min_spawn_interval_ms, cross_ms * rng.uniform(0.4, 0.7))
            speed *= config.speed_increase_rate
        return DuckShootSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            canvas_width=config.canvas_width,
            canvas_height=config.canvas_height,
            duck_size=config.duck_size,
            duck_spawns=spawns,
            hit_latency_ms=config.hit_latency_ms,
            min_hits=config.min_hits,
        )

    def derived_public(self, spec: DuckShootSpec):
        return {"num_ducks": sum(1 for s in spec.duck_spawns if not s["is_decoy"])}

    def initial_state(self, spec):
        return DuckShootState()

    def begin(self, spec, state, start):
        return replace(state, start_ms=start.server_timestamp_ms)

    def handlers(self):
        return {"shoot": self._handle_shoot}

    def _handle_shoot(self, spec: DuckShootSpec, state: DuckShootState, event):
        index = payload_int(event.payload, "duck_index", 0, len(spec.duck_spawns) - 1)
        if index is None:
            return replace(state, misses=state.misses + 1)
        if index in state.shot:
            return None
        spawn = spec.duck_spawns[index]
        since_start = event.server_timestamp_ms - state.start_ms
        window_end = spawn["spawn_time_ms"] + on_screen_ms(spec, spawn) + spec.hit_latency_ms
        if not spawn["spawn_time_ms"] <= since_start <= window_end:
            return replace(state, misses=state.misses + 1)
        shot = state.shot | {index}
        if spawn["is_decoy"]:
            return replace(state, shot=shot, decoy_hits=state.decoy_hits + 1)
        accuracy = payload_float(event.payload, "accuracy", 0.0, 1.0)
        return replace(
            state,
            shot=shot,
            hits=state.hits + 1,
            accuracy_total=state.accuracy_total + (self.DEFAULT_ACCURACY if accuracy is None else accuracy),
        )

    def check(self, spec: DuckShootSpec, state: DuckShootState):
        if state.hits < spec.min_hits:
            return Reason.NOT_ENOUGH_HITS
        return None

    def metrics(self, spec: DuckShootSpec, state: DuckShootState):
        return {
            "hits": state.hits,
            "decoy_hits": state.decoy_hits,
            "misses": state.misses,
            "hit_accuracy": round(ratio(state.accuracy_total, state.hits), 4),
            "mistakes": state.decoy_hits + state.misses,
        }

    def quality(self, spec, metrics):
        return penalized(
            self.HIT_QUALITY * metrics["hits"] + self.PRECISION_QUALITY * metrics["hit_accuracy"],
            self.DECOY_PENALTY * metrics["decoy_hits"],
        )
