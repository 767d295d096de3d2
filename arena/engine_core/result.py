"""
Turn results - Typed validation outcomes.

A failed validation is a normal result, never an exception:
1. Reason names why a turn is invalid
2. TurnResult is the single immutable record produced at completion
3. signals hold reviewer-only data (timing statistics, integrity checks)
   and are left out of the player-facing dict
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Reason(str, Enum):
    """Why a turn was rejected."""
    NO_START_EVENT = "no_start_event"

    # Win condition unmet ("you did not finish")
    INCOMPLETE = "incomplete"
    INCORRECT_ORDER = "incorrect_order"
    LOW_COVERAGE = "low_coverage"
    LOW_ACCURACY = "low_accuracy"
    NO_ROUNDS_COMPLETED = "no_rounds_completed"
    NO_SUBMISSION = "no_submission"
    NO_DRAWING = "no_drawing"
    NO_HITS = "no_hits"
    NOT_ENOUGH_HITS = "not_enough_hits"
    NOT_ENOUGH_FOUND = "not_enough_found"
    TOO_FEW_CORRECT = "too_few_correct"
    TOO_MANY_MISTAKES = "too_many_mistakes"

    TIMEOUT = "timeout"

    # Anti-automation
    IMPOSSIBLE_SPEED = "impossible_speed"
    SUSPICIOUS_TIMING = "suspicious_timing"

    @property
    def is_incomplete(self) -> bool:
        return self not in _NOT_INCOMPLETE

    @property
    def is_automation(self) -> bool:
        return self in (Reason.IMPOSSIBLE_SPEED, Reason.SUSPICIOUS_TIMING)


_NOT_INCOMPLETE = frozenset({
    Reason.NO_START_EVENT,
    Reason.TIMEOUT,
    Reason.IMPOSSIBLE_SPEED,
    Reason.SUSPICIOUS_TIMING,
})

# Player-facing text. Both automation reasons share one message.
REASON_MESSAGES = {
    Reason.NO_START_EVENT: "This turn was never started.",
    Reason.TIMEOUT: "Time's up.",
    Reason.IMPOSSIBLE_SPEED: "This turn could not be verified.",
    Reason.SUSPICIOUS_TIMING: "This turn could not be verified.",
}


def reason_message(reason: Reason) -> str:
    if reason.is_incomplete:
        return "You did not finish."
    return REASON_MESSAGES[reason]


@dataclass(frozen=True)
class TurnResult:
    """
    The outcome of a completed turn.

    score is only present on valid turns. flag marks the turn for
    offline review and may be set on either valid or invalid turns.
    """
    valid: bool
    reason: Reason | None = None
    score: int | None = None
    flag: bool = False
    completion_time_ms: int | None = None
    details: dict[str, Any] = field(default_factory=dict)
    signals: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        reason: Reason,
        details: dict[str, Any] | None = None,
        completion_time_ms: int | None = None,
        flag: bool = False,
        signals: dict[str, Any] | None = None,
    ) -> TurnResult:
        return cls(
            valid=False,
            reason=reason,
            flag=flag,
            completion_time_ms=completion_time_ms,
            details=details or {},
            signals=signals or {},
        )

    @classmethod
    def success(
        cls,
        score: int,
        details: dict[str, Any],
        completion_time_ms: int,
        signals: dict[str, Any] | None = None,
    ) -> TurnResult:
        return cls(
            valid=True,
            score=score,
            completion_time_ms=completion_time_ms,
            details=details,
            signals=signals or {},
        )

    def with_signals(self, **signals: Any) -> TurnResult:
        """Copy with extra reviewer signals merged in."""
        return TurnResult(
            valid=self.valid,
            reason=self.reason,
            score=self.score,
            flag=self.flag,
            completion_time_ms=self.completion_time_ms,
            details=self.details,
            signals={**self.signals, **signals},
        )

    def to_dict(self, include_signals: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "valid": self.valid,
            "reason": self.reason.value if self.reason else None,
            "score": self.score,
            "flag": self.flag,
            "completion_time_ms": self.completion_time_ms,
            "details": dict(self.details),
        }
        if include_signals:
            data["signals"] = dict(self.signals)
        return data
