"""Assets and small helpers shared by several game modules."""

from __future__ import annotations
from dataclasses import replace
from typing import Any

PUZZLE_IMAGES = [f"/images/puzzles/cat{n}.jpg" for n in range(1, 10)]

FRUIT_EMOJI = [
    "🍎", "🍊", "🍋", "🍇", "🍓", "🍒", "🍑", "🥝",
    "🌟", "🔥", "💎", "🎯", "🎲", "🎸", "🚀", "⚡",
    "🌈", "🎪", "🎭", "🏆",
]

PLAY_EMOJI = [
    "🎮", "🎯", "🚀", "⭐", "🔥", "💎", "🎪", "🎨",
    "🌟", "💫", "🎵", "🎶", "🎲", "🎳", "🏆", "🥇",
    "🎭", "🎧", "🎡", "🎢", "🎠", "🎰", "🃏", "🎴",
    "🔮", "🎱", "🎸", "🎹", "🥁", "🎺", "🎻", "🪘",
]

SIGNAL_COLORS = [
    "#ef4444", "#f97316", "#eab308", "#22c55e",
    "#06b6d4", "#3b82f6", "#8b5cf6", "#ec4899",
]


def with_item(items: tuple, index: int, value: Any) -> tuple:
    """Copy of a tuple with one position replaced."""
    return items[:index] + (value,) + items[index + 1:]


def bump(state, **deltas: int):
    """Copy of a frozen state with integer counters increased."""
    return replace(state, **{name: getattr(state, name) + delta for name, delta in deltas.items()})


def ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0
