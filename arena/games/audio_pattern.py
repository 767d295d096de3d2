"""
Audio Pattern - Listen to a tone sequence and repeat it.

Levels are progressive: level one replays the first three tones, each
completed level adds one more. The server tracks the position inside the
current level, so a `tap` only names the button pressed. The first wrong
tap ends play; taps after it are ignored.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int

# C4, E4, G4, C5
BUTTON_FREQUENCIES = [261.63, 329.63, 392.00, 523.25]
START_LENGTH = 3


@dataclass(frozen=True)
class AudioPatternConfig(GameConfig):
    num_tones: int = 15
    num_buttons: int = 4
    tone_duration_ms: int = 300
    time_limit_seconds: int = 30


@dataclass(frozen=True)
class AudioPatternSpec(TurnSpec):
    sequence: list[int]
    num_buttons: int
    tone_duration_ms: int
    frequencies: list[float]


@dataclass(frozen=True)
class AudioPatternState:
    levels_completed: int = 0
    position: int = 0
    correct_taps: int = 0
    failed: bool = False

    @property
    def level_length(self) -> int:
        return START_LENGTH + self.levels_completed


class AudioPattern(GameModule):
    game_type = "audio_pattern"
    spec_class = AudioPatternSpec
    config_class = AudioPatternConfig
    public_fields = frozenset({
        "sequence", "num_buttons", "tone_duration_ms", "frequencies", "time_limit_ms",
    })
    secret_fields = frozenset({"seed"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=50, min_std_dev_ms=30, low_mean_ms=400, variance_min_samples=4,
    )

    LEVEL_QUALITY = 2000
    PARTIAL_TAP_QUALITY = 400

    def build(self, rng: SeededRandom, seed: str, config: AudioPatternConfig) -> AudioPatternSpec:
        num_buttons = min(config.num_buttons, len(BUTTON_FREQUENCIES))
        return AudioPatternSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            sequence=[rng.randrange(num_buttons) for _ in range(config.num_tones)],
            num_buttons=num_buttons,
            tone_duration_ms=config.tone_duration_ms,
            frequencies=BUTTON_FREQUENCIES[:num_buttons],
        )

    def initial_state(self, spec):
        return AudioPatternState()

    def handlers(self):
        return {"tap": self._handle_tap}

    def _handle_tap(self, spec: AudioPatternSpec, state: AudioPatternState, event):
        button = payload_int(event.payload, "button_index", 0, spec.num_buttons - 1)
        if button is None or state.failed:
            return None
        if state.level_length > len(spec.sequence):
            return None
        if button != spec.sequence[state.position]:
            return replace(state, failed=True)
        position = state.position + 1
        if position == state.level_length:
            return replace(
                state,
                levels_completed=state.levels_completed + 1,
                position=0,
                correct_taps=state.correct_taps + 1,
            )
        return replace(state, position=position, correct_taps=state.correct_taps + 1)

    def check(self, spec, state: AudioPatternState):
        if state.levels_completed == 0:
            return Reason.NO_ROUNDS_COMPLETED
        return None

    def metrics(self, spec: AudioPatternSpec, state: AudioPatternState):
        return {
            "levels_completed": state.levels_completed,
            "highest_length": START_LENGTH + state.levels_completed - 1,
            "correct_taps": state.correct_taps,
            "partial_taps": state.position,
            "mistakes": int(state.failed),
        }

    def quality(self, spec, metrics):
        return (
            self.LEVEL_QUALITY * metrics["levels_completed"]
            + self.PARTIAL_TAP_QUALITY * metrics["partial_taps"]
        )
