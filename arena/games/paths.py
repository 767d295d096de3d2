"""Path generation and drawing comparison shared by the tracing games."""

from __future__ import annotations
import math

from ..engine_core import SeededRandom

Point = tuple[float, float]

PADDING = 30
# A target point counts as covered when a drawn point lands this close
COVERAGE_RADIUS = 20
# Mean drawn-to-path distance that scores zero accuracy
ZERO_ACCURACY_DISTANCE = 30
MIN_DRAWN_POINTS = 10


def _catmull_rom(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    t2 = t * t
    t3 = t2 * t
    return tuple(
        0.5 * (
            2 * b
            + (-a + c) * t
            + (2 * a - 5 * b + 4 * c - d) * t2
            + (-a + 3 * b - 3 * c + d) * t3
        )
        for a, b, c, d in zip(p0, p1, p2, p3)
    )


def spline(controls: list[Point], num_points: int, canvas_size: int, closed: bool = False) -> list[Point]:
    """Catmull-Rom curve through `controls`, clamped inside the padded canvas."""
    count = len(controls)
    segments = count if closed else count - 1
    per_segment = math.ceil(num_points / segments)
    low, high = PADDING, canvas_size - PADDING
    path = []
    for i in range(segments):
        if closed:
            p0, p1, p2, p3 = (controls[(i + k) % count] for k in (-1, 0, 1, 2))
        else:
            p0 = controls[max(0, i - 1)]
            p1, p2 = controls[i], controls[i + 1]
            p3 = controls[min(count - 1, i + 2)]
        for step in range(per_segment):
            x, y = _catmull_rom(p0, p1, p2, p3, step / per_segment)
            path.append((round(min(high, max(low, x)), 2), round(min(high, max(low, y)), 2)))
    path.append(path[0] if closed else controls[-1])
    return path


def generate_path(
    rng: SeededRandom,
    canvas_size: int,
    num_controls: int,
    num_points: int,
    closed: bool = False,
) -> list[list[float]]:
    """
    A left-to-right wave, or a closed loop around the canvas centre.

    Open paths spread their control points evenly along x so the curve
    never doubles back on itself.
    """
    span = canvas_size - 2 * PADDING
    if closed:
        centre = canvas_size / 2
        controls = []
        for i in range(num_controls):
            angle = 2 * math.pi * i / num_controls
            radius = span / 2 * rng.uniform(0.45, 0.95)
            controls.append((
                round(centre + radius * math.cos(angle), 2),
                round(centre + radius * math.sin(angle), 2),
            ))
    else:
        controls = [(PADDING + rng.random() * span * 0.3, PADDING + rng.random() * span)]
        for i in range(1, num_controls - 1):
            controls.append((PADDING + i / (num_controls - 1) * span, PADDING + rng.random() * span))
        controls.append((PADDING + span * 0.7 + rng.random() * span * 0.3, PADDING + rng.random() * span))
        controls = [(round(x, 2), round(y, 2)) for x, y in controls]
    return [list(p) for p in spline(controls, num_points, canvas_size, closed)]


def compare_paths(target: list[Point], drawn: list[Point]) -> tuple[float, float]:
    """
    (accuracy, coverage) of a drawing against its target path.

    accuracy falls linearly with the mean distance from each drawn point to
    the nearest target point; coverage is the share of target points that
    some drawn point came within COVERAGE_RADIUS of.
    """
    if not drawn or not target:
        return 0.0, 0.0
    nearest = [min(math.dist(p, q) for q in target) for p in drawn]
    accuracy = max(0.0, 1 - (sum(nearest) / len(nearest)) / ZERO_ACCURACY_DISTANCE)
    covered = sum(1 for q in target if any(math.dist(p, q) <= COVERAGE_RADIUS for p in drawn))
    return accuracy, covered / len(target)
