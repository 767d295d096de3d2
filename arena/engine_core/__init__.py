"""
Engine Core - Deterministic turn validation and scoring.

The engine is the pure runtime that:
1. Generates a puzzle instance from a seed (SeededRandom)
2. Projects the player-visible subset of it
3. Replays server-timestamped events against it
4. Runs the anti-automation timing heuristics
5. Scores the turn
"""

from .rng import ALGORITHM, SeededRandom, new_seed
from .events import START, Event, chain_event, verify_chain, canonical_json
from .result import Reason, TurnResult, reason_message
from .timing import TimingThresholds, TimingAssessment, assess_timing
from .scoring import speed_factor, two_factor_score
from .replay import Replay, replay_events
from .pipeline import DEFAULT_GRACE_MS, evaluate_turn
from .game_module import GameModule, GameConfig, TurnSpec

__all__ = [
    "ALGORITHM",
    "SeededRandom",
    "new_seed",
    "START",
    "Event",
    "chain_event",
    "verify_chain",
    "canonical_json",
    "Reason",
    "TurnResult",
    "reason_message",
    "TimingThresholds",
    "TimingAssessment",
    "assess_timing",
    "speed_factor",
    "two_factor_score",
    "Replay",
    "replay_events",
    "DEFAULT_GRACE_MS",
    "evaluate_turn",
    "GameModule",
    "GameConfig",
    "TurnSpec",
]
