"""
Typing Speed - Type the shown phrase as fast and accurately as possible.

Keystroke events only feed the timing heuristics; the `submit` event
carries the final text and ends the turn. Accuracy is positional:
matching characters over the longer of the two strings.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import (
    GameConfig, GameModule, Reason, SeededRandom, TimingAssessment, TimingThresholds, TurnSpec,
)
from ..engine_core.payload import payload_str

PHRASES = [
    "The morning sun cast golden light across the quiet lake",
    "She picked up the heavy book and placed it on the shelf",
    "A strong wind pushed the dark clouds over the mountain",
    "He walked down the empty street looking for an open shop",
    "The old clock on the wall stopped ticking at midnight",
    "Rain began to fall just as they reached the front door",
    "The children played in the garden until the sun went down",
    "He found a small silver key hidden under the doormat",
    "The train pulled into the station right on time today",
    "She wrote a short letter and sealed it in an envelope",
    "The dog ran across the field chasing after a red ball",
    "A bright star appeared in the clear night sky above us",
    "They sat around the table sharing stories from the trip",
    "The baker pulled fresh bread from the hot stone oven",
    "He opened the window and felt the cool breeze come in",
    "The river flowed gently through the center of the town",
    "She turned the corner and saw the market up ahead",
    "The plane landed safely despite the heavy fog outside",
    "He picked up his coffee and took a slow careful sip",
    "The team worked late to finish the project before dawn",
]


def positional_accuracy(target: str, actual: str) -> float:
    if not actual:
        return 0.0
    correct = sum(1 for a, b in zip(target, actual) if a == b)
    return correct / max(len(target), len(actual))


@dataclass(frozen=True)
class TypingSpeedConfig(GameConfig):
    min_accuracy: float = 0.8
    max_wpm: int = 250
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class TypingSpeedSpec(TurnSpec):
    phrase: str
    min_accuracy: float
    max_wpm: int


@dataclass(frozen=True)
class TypingSpeedState:
    keystrokes: int = 0
    text: str | None = None
    submitted_ms: int = 0
    start_ms: int = 0


class TypingSpeed(GameModule):
    game_type = "typing_speed"
    spec_class = TypingSpeedSpec
    config_class = TypingSpeedConfig
    public_fields = frozenset({"phrase", "min_accuracy", "time_limit_ms"})
    secret_fields = frozenset({"seed", "max_wpm"})
    terminal_events = frozenset({"submit"})
    timed_events = frozenset({"keystroke"})
    # Key rollover puts consecutive keystrokes a few ms apart, so there is no floor
    thresholds = TimingThresholds(
        absolute_floor_ms=None, min_mean_gap_ms=20, min_std_dev_ms=5, variance_min_samples=10,
    )
    score_clamp_ms = 3000

    MAX_QUALITY = 7000
    ACCURACY_EXPONENT = 1.1

    def build(self, rng: SeededRandom, seed: str, config: TypingSpeedConfig) -> TypingSpeedSpec:
        return TypingSpeedSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            phrase=rng.choice(PHRASES),
            min_accuracy=config.min_accuracy,
            max_wpm=config.max_wpm,
        )

    def initial_state(self, spec):
        return TypingSpeedState()

    def begin(self, spec, state, start):
        return replace(state, start_ms=start.server_timestamp_ms)

    def handlers(self):
        return {"keystroke": self._handle_keystroke, "submit": self._handle_submit}

    def _handle_keystroke(self, spec, state: TypingSpeedState, event):
        return replace(state, keystrokes=state.keystrokes + 1)

    def _handle_submit(self, spec: TypingSpeedSpec, state: TypingSpeedState, event):
        text = payload_str(event.payload, "text", max_length=len(spec.phrase) * 2 + 20)
        if not text:
            return None
        return replace(state, text=text, submitted_ms=event.server_timestamp_ms)

    def check(self, spec: TypingSpeedSpec, state: TypingSpeedState):
        if state.text is None:
            return Reason.NO_SUBMISSION
        if positional_accuracy(spec.phrase, state.text) < spec.min_accuracy:
            return Reason.LOW_ACCURACY
        return None

    def metrics(self, spec: TypingSpeedSpec, state: TypingSpeedState):
        text = state.text or ""
        accuracy = positional_accuracy(spec.phrase, text)
        correct = sum(1 for a, b in zip(spec.phrase, text) if a == b)
        minutes = max(state.submitted_ms - state.start_ms, 1) / 60000
        words = len(spec.phrase.split())
        return {
            "accuracy": round(accuracy, 4),
            "wpm": round(words / minutes) if state.text else 0,
            "keystrokes": state.keystrokes,
            "mistakes": max(len(spec.phrase), len(text)) - correct,
        }

    def plausibility(self, spec: TypingSpeedSpec, state, metrics, elapsed_ms):
        if metrics["wpm"] > spec.max_wpm:
            return TimingAssessment.reject(
                Reason.IMPOSSIBLE_SPEED, "wpm_above_ceiling", {"wpm": metrics["wpm"]},
            )
        return None

    def quality(self, spec, metrics):
        return self.MAX_QUALITY * metrics["accuracy"] ** self.ACCURACY_EXPONENT
