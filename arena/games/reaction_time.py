"""
Reaction Time - Tap as soon as the colour appears, unless it says not to.

Round delays are kept server-side: the client asks for each round's
delay with `request_signal` and receives it in the event ack, for the
first round it has not completed only. Reaction
times are measured between the server timestamps of `signal_shown` and
`round_complete`.

The speed factor here uses the mean reaction time against
max_reaction_ms instead of total elapsed time.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import statistics

from ..engine_core import (
    GameConfig, GameModule, Reason, SeededRandom, TimingAssessment, TimingThresholds, TurnSpec, replay_events,
)
from ..engine_core.payload import payload_bool, payload_int
from ..engine_core.scoring import penalized
from .common import SIGNAL_COLORS, ratio, with_item


@dataclass(frozen=True)
class ReactionTimeConfig(GameConfig):
    num_rounds: int = 8
    min_delay_ms: int = 800
    max_delay_ms: int = 2500
    max_reaction_ms: int = 1000
    trap_ratio: float = 0.3
    min_reaction_ms: int = 100
    min_reaction_std_dev_ms: float = 10
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class ReactionTimeSpec(TurnSpec):
    num_rounds: int
    max_reaction_ms: int
    min_reaction_ms: int
    min_reaction_std_dev_ms: float
    rounds: list[dict]
    delays: list[int]


@dataclass(frozen=True)
class RoundRecord:
    signal_ms: int | None = None
    complete_ms: int | None = None
    tapped: bool = False


@dataclass(frozen=True)
class ReactionTimeState:
    rounds: tuple[RoundRecord, ...]


class ReactionTime(GameModule):
    game_type = "reaction_time"
    spec_class = ReactionTimeSpec
    config_class = ReactionTimeConfig
    public_fields = frozenset({"num_rounds", "max_reaction_ms", "rounds", "time_limit_ms"})
    secret_fields = frozenset({"seed", "delays", "min_reaction_ms", "min_reaction_std_dev_ms"})
    # Gaps between rounds are dominated by the random delays; only reactions are checked
    timed_events = frozenset()
    ack_events = frozenset({"request_signal"})
    thresholds = TimingThresholds(absolute_floor_ms=None, min_mean_gap_ms=None, min_std_dev_ms=None)
    # Reactions this fast already earn the full speed factor
    score_clamp_ms = 150

    MAX_QUALITY = 6000
    WRONG_TAP_PENALTY = 500
    MISSED_TAP_PENALTY = 300

    def build(self, rng: SeededRandom, seed: str, config: ReactionTimeConfig) -> ReactionTimeSpec:
        trap_count = int(config.num_rounds * config.trap_ratio)
        traps = set(rng.sample(range(config.num_rounds), trap_count))
        rounds = []
        delays = []
        last_color = None
        for i in range(config.num_rounds):
            delays.append(round(rng.uniform(config.min_delay_ms, config.max_delay_ms)))
            color = rng.choice([c for c in SIGNAL_COLORS if c != last_color])
            last_color = color
            rounds.append({"color": color, "should_tap": i not in traps})
        return ReactionTimeSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            num_rounds=config.num_rounds,
            max_reaction_ms=config.max_reaction_ms,
            min_reaction_ms=config.min_reaction_ms,
            min_reaction_std_dev_ms=config.min_reaction_std_dev_ms,
            rounds=rounds,
            delays=delays,
        )

    def acknowledge(self, spec: ReactionTimeSpec, event, history=()):
        if event.event_type != "request_signal":
            return {}
        index = payload_int(event.payload, "round", 0, spec.num_rounds - 1)
        if index is None or index != self.current_round(spec, history):
            return {}
        return {"round": index, "delay_ms": spec.delays[index]}

    def current_round(self, spec: ReactionTimeSpec, history) -> int | None:
        """First round not yet completed, or None when all are."""
        state = replay_events(self, spec, history).state
        return next((i for i, r in enumerate(state.rounds) if r.complete_ms is None), None)

    def initial_state(self, spec: ReactionTimeSpec) -> ReactionTimeState:
        return ReactionTimeState(rounds=(RoundRecord(),) * spec.num_rounds)

    def handlers(self):
        return {
            "signal_shown": self._handle_signal,
            "round_complete": self._handle_round_complete,
        }

    def _handle_signal(self, spec: ReactionTimeSpec, state: ReactionTimeState, event):
        index = payload_int(event.payload, "round", 0, spec.num_rounds - 1)
        if index is None or state.rounds[index].signal_ms is not None:
            return None
        record = RoundRecord(signal_ms=event.server_timestamp_ms)
        return replace(state, rounds=with_item(state.rounds, index, record))

    def _handle_round_complete(self, spec: ReactionTimeSpec, state: ReactionTimeState, event):
        index = payload_int(event.payload, "round", 0, spec.num_rounds - 1)
        if index is None:
            return None
        record = state.rounds[index]
        if record.signal_ms is None or record.complete_ms is not None:
            return None
        tapped = payload_bool(event.payload, "tapped")
        record = replace(record, complete_ms=event.server_timestamp_ms, tapped=bool(tapped))
        return replace(state, rounds=with_item(state.rounds, index, record))

    def check(self, spec, state: ReactionTimeState):
        if any(r.complete_ms is None for r in state.rounds):
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: ReactionTimeSpec, state: ReactionTimeState):
        reactions = []
        correct_taps = correct_skips = wrong_taps = missed_taps = 0
        for round_spec, record in zip(spec.rounds, state.rounds):
            if record.complete_ms is None:
                continue
            if record.tapped and round_spec["should_tap"]:
                correct_taps += 1
                reactions.append(record.complete_ms - record.signal_ms)
            elif record.tapped:
                wrong_taps += 1
            elif round_spec["should_tap"]:
                missed_taps += 1
            else:
                correct_skips += 1
        return {
            "rounds_completed": sum(1 for r in state.rounds if r.complete_ms is not None),
            "reaction_times": reactions,
            "average_reaction_ms": round(ratio(sum(reactions), len(reactions))),
            "correct_taps": correct_taps,
            "correct_skips": correct_skips,
            "wrong_taps": wrong_taps,
            "missed_taps": missed_taps,
            "mistakes": wrong_taps + missed_taps,
        }

    def plausibility(self, spec: ReactionTimeSpec, state, metrics, elapsed_ms):
        reactions = metrics["reaction_times"]
        if not reactions:
            return None
        signals = {
            "fastest_reaction_ms": min(reactions),
            "reaction_std_dev_ms": round(statistics.pstdev(reactions), 2),
        }
        if min(reactions) < spec.min_reaction_ms:
            return TimingAssessment.reject(Reason.IMPOSSIBLE_SPEED, "reaction_below_floor", signals)
        if len(reactions) >= 3 and signals["reaction_std_dev_ms"] < spec.min_reaction_std_dev_ms:
            return TimingAssessment.reject(Reason.SUSPICIOUS_TIMING, "uniform_reactions", signals)
        return None

    def quality(self, spec: ReactionTimeSpec, metrics):
        accuracy = ratio(metrics["correct_taps"] + metrics["correct_skips"], spec.num_rounds)
        return penalized(
            self.MAX_QUALITY * accuracy,
            self.WRONG_TAP_PENALTY * metrics["wrong_taps"],
            self.MISSED_TAP_PENALTY * metrics["missed_taps"],
        )

    def speed_elapsed_ms(self, spec: ReactionTimeSpec, metrics, elapsed_ms):
        return metrics["average_reaction_ms"] or spec.max_reaction_ms

    def speed_reference_ms(self, spec: ReactionTimeSpec):
        return spec.max_reaction_ms
