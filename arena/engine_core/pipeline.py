"""
Pipeline - validate, assess timing, score; in that order, once per turn.

1. No start event               -> no_start_event
2. Fold events (replay.py)
3. Win condition unmet          -> incomplete-family reason, partial metrics kept
4. Elapsed > limit + grace      -> timeout
5. Timing heuristics, then the game's own plausibility check
                                -> impossible_speed / suspicious_timing, flag=True
6. Score
"""

from __future__ import annotations
from typing import Iterable, TYPE_CHECKING
import logging

from .events import Event
from .replay import replay_events
from .result import Reason, TurnResult
from .timing import TimingThresholds, assess_timing

if TYPE_CHECKING:
    from .game_module import GameModule, TurnSpec

logger = logging.getLogger(__name__)

DEFAULT_GRACE_MS = 5000


def evaluate_turn(
    module: GameModule,
    spec: TurnSpec,
    events: Iterable[Event],
    grace_ms: int = DEFAULT_GRACE_MS,
    thresholds: TimingThresholds | None = None,
) -> TurnResult:
    """Produce the TurnResult for one turn. Pure and deterministic."""
    replay = replay_events(module, spec, events)
    if not replay.started:
        return TurnResult.failure(Reason.NO_START_EVENT)

    metrics = module.metrics(spec, replay.state)
    elapsed_ms = replay.elapsed_ms
    replay_signals = {"events_applied": len(replay.applied), "events_ignored": replay.ignored}

    reason = module.check(spec, replay.state)
    if reason is not None:
        return TurnResult.failure(
            reason, details=metrics, completion_time_ms=elapsed_ms, signals=replay_signals,
        )

    if elapsed_ms > spec.time_limit_ms + grace_ms:
        return TurnResult.failure(
            Reason.TIMEOUT, details=metrics, completion_time_ms=elapsed_ms, signals=replay_signals,
        )

    assessment = assess_timing(
        module.timing_timestamps(spec, replay),
        int(metrics.get("mistakes", 0)),
        elapsed_ms,
        thresholds or module.thresholds,
    )
    if not assessment.suspicious:
        specific = module.plausibility(spec, replay.state, metrics, elapsed_ms)
        if specific is not None and specific.suspicious:
            assessment = specific

    signals = {**replay_signals, "timing": assessment.signals}
    if assessment.suspicious:
        signals["timing_rule"] = assessment.rule
        logger.warning(
            "Flagged %s turn: %s (%s)", module.game_type, assessment.reason.value, assessment.rule,
        )
        return TurnResult.failure(
            assessment.reason,
            details=metrics,
            completion_time_ms=elapsed_ms,
            flag=True,
            signals=signals,
        )

    score = module.score(spec, metrics, elapsed_ms)
    return TurnResult.success(score, metrics, elapsed_ms, signals=signals)
