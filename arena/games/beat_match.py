"""
Beat Match - Repeat two rhythms: the right tones with the right spacing.

Each round is a list of tones and the gaps between them. A tap is scored
twice: its tone against the beat at that position, and its server-clock
gap to the previous tap of the round against the expected interval.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from .common import ratio, with_item

# C4, E4, G4, B4
TONE_FREQUENCIES = [261.63, 329.63, 392.00, 493.88]
# (beats, tones used, shortest gap ms) per round
ROUND_SHAPES = [(4, 3, 500), (6, 4, 300)]
GAP_SPREAD_MS = 200
# Interval error that scores zero timing accuracy
ZERO_TIMING_ERROR_MS = 300


@dataclass(frozen=True)
class BeatMatchConfig(GameConfig):
    # Generous server limit; play itself takes about half of it
    play_reference_ms: int = 30000
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class BeatMatchSpec(TurnSpec):
    # {"beats": [...], "intervals": [...]} per round
    rounds: list[dict]
    frequencies: list[float]
    play_reference_ms: int


@dataclass(frozen=True)
class BeatMatchState:
    # Per round, (tone, server timestamp) of each tap
    taps: tuple[tuple[tuple[int, int], ...], ...]


class BeatMatch(GameModule):
    game_type = "beat_match"
    spec_class = BeatMatchSpec
    config_class = BeatMatchConfig
    public_fields = frozenset({"rounds", "frequencies", "time_limit_ms"})
    secret_fields = frozenset({"seed", "play_reference_ms"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=50, min_std_dev_ms=15, low_mean_ms=1000,
    )

    MAX_QUALITY = 7000
    SEQUENCE_WEIGHT = 0.6
    TIMING_WEIGHT = 0.4

    def build(self, rng: SeededRandom, seed: str, config: BeatMatchConfig) -> BeatMatchSpec:
        rounds = []
        for beats, tones, shortest in ROUND_SHAPES:
            rounds.append({
                "beats": [rng.randrange(tones) for _ in range(beats)],
                "intervals": [shortest + rng.randrange(GAP_SPREAD_MS) for _ in range(beats - 1)],
            })
        return BeatMatchSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            rounds=rounds,
            frequencies=list(TONE_FREQUENCIES),
            play_reference_ms=config.play_reference_ms,
        )

    def derived_public(self, spec: BeatMatchSpec):
        return {"tone_count": len(spec.frequencies)}

    def initial_state(self, spec: BeatMatchSpec):
        return BeatMatchState(taps=((),) * len(spec.rounds))

    def handlers(self):
        return {"tap": self._handle_tap}

    def _handle_tap(self, spec: BeatMatchSpec, state: BeatMatchState, event):
        index = payload_int(event.payload, "round", 0, len(spec.rounds) - 1)
        tone = payload_int(event.payload, "tone_index", 0, len(spec.frequencies) - 1)
        if index is None or tone is None:
            return None
        taps = state.taps[index]
        if len(taps) >= len(spec.rounds[index]["beats"]):
            return None
        taps = taps + ((tone, event.server_timestamp_ms),)
        return replace(state, taps=with_item(state.taps, index, taps))

    def _score_rounds(self, spec: BeatMatchSpec, state: BeatMatchState) -> tuple[int, int, list[float]]:
        correct = wrong = 0
        timing = []
        for round_spec, taps in zip(spec.rounds, state.taps):
            for (tone, _), beat in zip(taps, round_spec["beats"]):
                if tone == beat:
                    correct += 1
                else:
                    wrong += 1
            for (_, earlier), (_, later), expected in zip(taps, taps[1:], round_spec["intervals"]):
                timing.append(max(0.0, 1 - abs(later - earlier - expected) / ZERO_TIMING_ERROR_MS))
        return correct, wrong, timing

    def check(self, spec: BeatMatchSpec, state: BeatMatchState):
        correct, _, _ = self._score_rounds(spec, state)
        if correct == 0:
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: BeatMatchSpec, state: BeatMatchState):
        correct, wrong, timing = self._score_rounds(spec, state)
        return {
            "correct_beats": correct,
            "total_beats": sum(len(r["beats"]) for r in spec.rounds),
            "sequence_accuracy": round(ratio(correct, sum(len(r["beats"]) for r in spec.rounds)), 4),
            "timing_accuracy": round(ratio(sum(timing), len(timing)), 4),
            "mistakes": wrong,
        }

    def speed_reference_ms(self, spec: BeatMatchSpec):
        return spec.play_reference_ms

    def quality(self, spec, metrics):
        return self.MAX_QUALITY * (
            self.SEQUENCE_WEIGHT * metrics["sequence_accuracy"]
            + self.TIMING_WEIGHT * metrics["timing_accuracy"]
        )
