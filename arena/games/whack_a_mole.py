"""
Whack-a-Mole - Hit moles as they pop up, avoid the bombs.

The spawn schedule is public so the client can animate it. A `hit`
only counts if it names the spawn's cell and arrives (by server clock,
relative to the start event) while that spawn is up, plus a latency
allowance. Hits on bombs are recognized here from the schedule.

The round always runs its full duration, so elapsed time does not
scale the score.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from .common import ratio

MOLE, BOMB = 0, 1


@dataclass(frozen=True)
class WhackAMoleConfig(GameConfig):
    grid_size: int = 3
    num_moles: int = 35
    num_bombs: int = 10
    mole_duration_ms: int = 1200
    spawn_interval_ms: int = 450
    spawn_jitter_ms: int = 100
    hit_latency_ms: int = 750
    time_limit_seconds: int = 30


@dataclass(frozen=True)
class WhackAMoleSpec(TurnSpec):
    grid_size: int
    num_moles: int
    num_bombs: int
    mole_duration_ms: int
    hit_latency_ms: int
    # [offset_ms, cell_index, kind] with kind 0 = mole, 1 = bomb
    spawn_sequence: list[list[int]]


@dataclass(frozen=True)
class WhackAMoleState:
    start_ms: int = 0
    struck: frozenset[int] = frozenset()
    hits: int = 0
    misses: int = 0
    bomb_hits: int = 0


class WhackAMole(GameModule):
    game_type = "whack_a_mole"
    spec_class = WhackAMoleSpec
    config_class = WhackAMoleConfig
    public_fields = frozenset({
        "grid_size", "num_moles", "num_bombs", "mole_duration_ms", "spawn_sequence", "time_limit_ms",
    })
    secret_fields = frozenset({"seed", "hit_latency_ms"})
    timed_events = frozenset({"hit"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=100, min_std_dev_ms=20, low_mean_ms=600, variance_min_samples=6,
    )
    fixed_duration = True

    HIT_QUALITY = 7000
    ACCURACY_QUALITY = 2000
    MISS_PENALTY = 30
    BOMB_PENALTY = 300

    def build(self, rng: SeededRandom, seed: str, config: WhackAMoleConfig) -> WhackAMoleSpec:
        kinds = rng.shuffle([MOLE] * config.num_moles + [BOMB] * config.num_bombs)
        cells = config.grid_size * config.grid_size
        sequence = []
        for i, kind in enumerate(kinds):
            jitter = rng.randint(-config.spawn_jitter_ms, config.spawn_jitter_ms)
            offset = max(0, i * config.spawn_interval_ms + jitter)
            sequence.append([offset, rng.randrange(cells), kind])
        return WhackAMoleSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            grid_size=config.grid_size,
            num_moles=config.num_moles,
            num_bombs=config.num_bombs,
            mole_duration_ms=config.mole_duration_ms,
            hit_latency_ms=config.hit_latency_ms,
            spawn_sequence=sequence,
        )

    def initial_state(self, spec):
        return WhackAMoleState()

    def begin(self, spec, state, start):
        return replace(state, start_ms=start.server_timestamp_ms)

    def handlers(self):
        return {"hit": self._handle_hit, "miss": self._handle_miss}

    def _handle_hit(self, spec: WhackAMoleSpec, state: WhackAMoleState, event):
        mole_id = payload_int(event.payload, "mole_id", 0, len(spec.spawn_sequence) - 1)
        cell = payload_int(event.payload, "cell_index", 0, spec.grid_size * spec.grid_size - 1)
        if mole_id is None or cell is None or mole_id in state.struck:
            return None
        offset, spawn_cell, kind = spec.spawn_sequence[mole_id]
        since_start = event.server_timestamp_ms - state.start_ms
        visible = offset <= since_start <= offset + spec.mole_duration_ms + spec.hit_latency_ms
        if cell != spawn_cell or not visible:
            return replace(state, misses=state.misses + 1)
        struck = state.struck | {mole_id}
        if kind == BOMB:
            return replace(state, struck=struck, bomb_hits=state.bomb_hits + 1)
        return replace(state, struck=struck, hits=state.hits + 1)

    def _handle_miss(self, spec: WhackAMoleSpec, state: WhackAMoleState, event):
        cell = payload_int(event.payload, "cell_index", 0, spec.grid_size * spec.grid_size - 1)
        if cell is None:
            return None
        return replace(state, misses=state.misses + 1)

    def check(self, spec, state: WhackAMoleState):
        if state.hits == 0:
            return Reason.NO_HITS
        return None

    def metrics(self, spec: WhackAMoleSpec, state: WhackAMoleState):
        attempts = state.hits + state.misses + state.bomb_hits
        return {
            "hits": state.hits,
            "misses": state.misses,
            "bomb_hits": state.bomb_hits,
            "num_moles": spec.num_moles,
            "accuracy": round(ratio(state.hits, attempts), 3),
            "mistakes": state.misses + state.bomb_hits,
        }

    def quality(self, spec, metrics):
        return (
            self.HIT_QUALITY * ratio(metrics["hits"], metrics["num_moles"])
            + self.ACCURACY_QUALITY * metrics["accuracy"]
            - self.MISS_PENALTY * metrics["misses"]
            - self.BOMB_PENALTY * metrics["bomb_hits"]
        )
