"""
Mental Math - Solve a run of quick arithmetic problems.

The answers are kept server-side. Only the first answer submitted for a
problem counts; later answers to the same problem are ignored.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from ..engine_core.scoring import penalized
from .common import ratio

OPERATIONS = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
}


@dataclass(frozen=True)
class MentalMathConfig(GameConfig):
    num_problems: int = 10
    min_number: int = 2
    max_number: int = 50
    max_factor: int = 13
    operations: tuple[str, ...] = ("+", "-", "*")
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class MentalMathSpec(TurnSpec):
    problems: list[dict]
    answers: list[int]


@dataclass(frozen=True)
class MentalMathState:
    answered: frozenset[int] = frozenset()
    correct: int = 0
    wrong: int = 0


class MentalMath(GameModule):
    game_type = "mental_math"
    spec_class = MentalMathSpec
    config_class = MentalMathConfig
    public_fields = frozenset({"problems", "time_limit_ms"})
    secret_fields = frozenset({"seed", "answers"})
    thresholds = TimingThresholds(
        absolute_floor_ms=150, min_mean_gap_ms=500, min_std_dev_ms=50, low_mean_ms=1500,
        variance_min_samples=6,
    )
    score_clamp_ms = 5000

    MAX_QUALITY = 7000
    WRONG_PENALTY = 300

    def build(self, rng: SeededRandom, seed: str, config: MentalMathConfig) -> MentalMathSpec:
        problems = []
        answers = []
        for _ in range(config.num_problems):
            operation = rng.choice(list(config.operations))
            if operation == "*":
                a = rng.randint(2, config.max_factor)
                b = rng.randint(2, config.max_factor)
            else:
                a = rng.randint(config.min_number, config.max_number)
                b = rng.randint(config.min_number, config.max_number)
                if operation == "-" and a < b:
                    a, b = b, a
            problems.append({"a": a, "b": b, "operation": operation})
            answers.append(OPERATIONS[operation](a, b))
        return MentalMathSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            problems=problems,
            answers=answers,
        )

    def initial_state(self, spec):
        return MentalMathState()

    def handlers(self):
        return {"answer": self._handle_answer}

    def _handle_answer(self, spec: MentalMathSpec, state: MentalMathState, event):
        index = payload_int(event.payload, "problem_index", 0, len(spec.problems) - 1)
        value = payload_int(event.payload, "value")
        if index is None or value is None or index in state.answered:
            return None
        answered = state.answered | {index}
        if value == spec.answers[index]:
            return replace(state, answered=answered, correct=state.correct + 1)
        return replace(state, answered=answered, wrong=state.wrong + 1)

    def check(self, spec: MentalMathSpec, state: MentalMathState):
        if not state.answered:
            return Reason.INCOMPLETE
        if state.correct * 2 < len(spec.problems):
            return Reason.TOO_FEW_CORRECT
        return None

    def metrics(self, spec: MentalMathSpec, state: MentalMathState):
        return {
            "correct": state.correct,
            "answered": len(state.answered),
            "total": len(spec.problems),
            "accuracy": round(ratio(state.correct, len(spec.problems)), 3),
            "mistakes": state.wrong,
        }

    def quality(self, spec, metrics):
        return penalized(
            self.MAX_QUALITY * ratio(metrics["correct"], metrics["total"]),
            self.WRONG_PENALTY * metrics["mistakes"],
        )
