"""
Emoji Keypad - Memorize a short emoji sequence, then tap it back.

Play runs in levels: the first replays the opening symbols, the last the
whole sequence; every level starts again from the beginning of the
sequence. A wrong symbol still consumes its slot and counts as a mistake.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import math

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from ..engine_core.scoring import penalized
from .common import PLAY_EMOJI


@dataclass(frozen=True)
class EmojiKeypadConfig(GameConfig):
    sequence_length: int = 5
    keypad_size: int = 12
    first_level_length: int = 3
    max_mistakes: int = 2
    # Generous to cover the memorize phase
    time_limit_seconds: int = 90


@dataclass(frozen=True)
class EmojiKeypadSpec(TurnSpec):
    sequence: list[str]
    keypad: list[str]
    keypad_layout: list[list[int]]
    levels: list[int]
    max_mistakes: int


@dataclass(frozen=True)
class EmojiKeypadState:
    taps: int = 0
    mistakes: int = 0


def expected_symbols(spec: EmojiKeypadSpec) -> list[str]:
    """The symbol expected at each tap slot, level after level."""
    expected = []
    for level_length in spec.levels:
        expected.extend(spec.sequence[:level_length])
    return expected


class EmojiKeypad(GameModule):
    game_type = "emoji_keypad"
    spec_class = EmojiKeypadSpec
    config_class = EmojiKeypadConfig
    # The sequence is shown during the memorize phase, so it is public
    public_fields = frozenset({
        "sequence", "keypad", "keypad_layout", "levels", "max_mistakes", "time_limit_ms",
    })
    secret_fields = frozenset({"seed"})
    thresholds = TimingThresholds(
        absolute_floor_ms=30, min_mean_gap_ms=50, min_std_dev_ms=5, low_mean_ms=250,
    )

    QUALITY_PER_TAP = 875
    MISTAKE_PENALTY = 2000

    def build(self, rng: SeededRandom, seed: str, config: EmojiKeypadConfig) -> EmojiKeypadSpec:
        sequence = rng.sample(PLAY_EMOJI, config.sequence_length)
        remaining = [e for e in PLAY_EMOJI if e not in sequence]
        decoys = rng.sample(remaining, config.keypad_size - config.sequence_length)
        keypad = rng.shuffle(sequence + decoys)
        columns = max(1, math.ceil(math.sqrt(len(keypad))))
        levels = [min(config.first_level_length, config.sequence_length), config.sequence_length]
        return EmojiKeypadSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            sequence=sequence,
            keypad=keypad,
            keypad_layout=[[i // columns, i % columns] for i in range(len(keypad))],
            levels=levels,
            max_mistakes=config.max_mistakes,
        )

    def initial_state(self, spec):
        return EmojiKeypadState()

    def handlers(self):
        return {"tap": self._handle_tap}

    def _handle_tap(self, spec: EmojiKeypadSpec, state: EmojiKeypadState, event):
        index = payload_int(event.payload, "tap_index", 0, len(spec.keypad) - 1)
        expected = expected_symbols(spec)
        if index is None or state.taps >= len(expected):
            return None
        mistakes = state.mistakes + int(spec.keypad[index] != expected[state.taps])
        return replace(state, taps=state.taps + 1, mistakes=mistakes)

    def check(self, spec: EmojiKeypadSpec, state: EmojiKeypadState):
        if state.mistakes > spec.max_mistakes:
            return Reason.TOO_MANY_MISTAKES
        if state.taps < sum(spec.levels):
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: EmojiKeypadSpec, state: EmojiKeypadState):
        return {
            "taps": state.taps,
            "taps_required": sum(spec.levels),
            "mistakes": state.mistakes,
        }

    def quality(self, spec, metrics):
        return penalized(
            self.QUALITY_PER_TAP * metrics["taps_required"],
            self.MISTAKE_PENALTY * metrics["mistakes"],
        )
