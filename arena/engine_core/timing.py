"""
Anti-automation heuristics - Timing checks shared by every game.

The checks look only at server timestamps. Each one is a necessary
condition for rejection, not proof of cheating: a turn that passes is
merely "not obviously automated".

Rules, applied in order (any threshold set to None disables its rule):
1. Any inter-event gap below absolute_floor_ms          -> impossible_speed
2. Mean gap below min_mean_gap_ms with zero mistakes    -> impossible_speed
3. Std dev below min_std_dev_ms while mean < low_mean_ms -> suspicious_timing
4. Perfect run finished under min_perfect_completion_ms -> impossible_speed

The thresholds are empirical and tunable per game type.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Any, Sequence
import statistics

from .result import Reason


@dataclass(frozen=True)
class TimingThresholds:
    """Per-game tunables for assess_timing()."""
    absolute_floor_ms: float | None = 50
    min_mean_gap_ms: float | None = 150
    min_std_dev_ms: float | None = 10
    low_mean_ms: float = 250
    variance_min_samples: int = 4
    min_perfect_completion_ms: int | None = None

    def merged(self, overrides: dict[str, Any] | None) -> TimingThresholds:
        """Copy with known keys from `overrides` applied."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in known})


@dataclass(frozen=True)
class TimingAssessment:
    """Result of assess_timing(). signals are for reviewers only."""
    suspicious: bool
    reason: Reason | None = None
    rule: str | None = None
    signals: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def clear(cls, signals: dict[str, Any]) -> TimingAssessment:
        return cls(suspicious=False, signals=signals)

    @classmethod
    def reject(cls, reason: Reason, rule: str, signals: dict[str, Any]) -> TimingAssessment:
        return cls(suspicious=True, reason=reason, rule=rule, signals=signals)


def inter_event_gaps(timestamps: Sequence[int]) -> list[int]:
    return [later - earlier for earlier, later in zip(timestamps, timestamps[1:])]


def timing_signals(timestamps: Sequence[int]) -> dict[str, Any]:
    """Summary statistics of the gaps between consecutive timestamps."""
    gaps = inter_event_gaps(timestamps)
    if not gaps:
        return {"gap_count": 0}
    return {
        "gap_count": len(gaps),
        "mean_gap_ms": round(statistics.fmean(gaps), 2),
        "std_dev_ms": round(statistics.pstdev(gaps), 2),
        "min_gap_ms": min(gaps),
    }


def assess_timing(
    timestamps: Sequence[int],
    mistakes: int,
    elapsed_ms: int,
    thresholds: TimingThresholds,
) -> TimingAssessment:
    """
    Decide whether a turn's timing is humanly plausible.

    Args:
        timestamps: server timestamps of the timed gameplay events, in order
        mistakes: mistake count from the replay; rules 2 and 4 only fire on
            error-free play
        elapsed_ms: start-to-last-event duration
        thresholds: the game's tunables
    """
    signals = timing_signals(timestamps)
    signals["elapsed_ms"] = elapsed_ms
    gaps = inter_event_gaps(timestamps)

    if gaps:
        mean_gap = signals["mean_gap_ms"]
        if thresholds.absolute_floor_ms is not None and signals["min_gap_ms"] < thresholds.absolute_floor_ms:
            return TimingAssessment.reject(Reason.IMPOSSIBLE_SPEED, "gap_below_floor", signals)

        if (
            thresholds.min_mean_gap_ms is not None
            and mistakes == 0
            and mean_gap < thresholds.min_mean_gap_ms
        ):
            return TimingAssessment.reject(Reason.IMPOSSIBLE_SPEED, "mean_gap_too_low", signals)

        if (
            thresholds.min_std_dev_ms is not None
            and len(gaps) >= thresholds.variance_min_samples
            and signals["std_dev_ms"] < thresholds.min_std_dev_ms
            and mean_gap < thresholds.low_mean_ms
        ):
            return TimingAssessment.reject(Reason.SUSPICIOUS_TIMING, "uniform_gaps", signals)

    if (
        thresholds.min_perfect_completion_ms is not None
        and mistakes == 0
        and elapsed_ms < thresholds.min_perfect_completion_ms
    ):
        return TimingAssessment.reject(Reason.IMPOSSIBLE_SPEED, "perfect_run_too_fast", signals)

    return TimingAssessment.clear(signals)
