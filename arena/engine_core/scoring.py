"""
Scoring - The shared two-factor score shape.

    score = round(quality(metrics) * speed_factor(elapsed))

quality starts at a per-game maximum and loses a fixed amount per
mistake, extra move or miss, floored at 0. speed_factor rewards faster
completion; the clamp bounds it for near-instant finishes that already
passed the timing checks.
"""

from __future__ import annotations
import math


def speed_factor(elapsed_ms: float, reference_ms: float, clamp_ms: float) -> float:
    """sqrt(reference / max(elapsed, clamp))."""
    return math.sqrt(reference_ms / max(elapsed_ms, clamp_ms, 1))


def two_factor_score(
    quality: float,
    elapsed_ms: float,
    reference_ms: float,
    clamp_ms: float,
) -> int:
    """Non-negative integer score."""
    return max(0, round(max(0.0, quality) * speed_factor(elapsed_ms, reference_ms, clamp_ms)))


def penalized(maximum: float, *penalties: float) -> float:
    """maximum minus the penalties, floored at 0."""
    return max(0.0, maximum - sum(penalties))
