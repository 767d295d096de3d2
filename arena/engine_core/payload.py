"""
Payload accessors - Tolerant reads of client-controlled event fields.

Every accessor returns None when the field is missing, of the wrong
type or out of range. Fold steps treat None as "ignore this event".
"""

from __future__ import annotations
from typing import Any
import math

# Upper bound on points accepted from a single drawing event.
MAX_POINTS = 2000


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a client sending `true` is not a number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def payload_int(
    payload: dict[str, Any],
    key: str,
    low: int | None = None,
    high: int | None = None,
) -> int | None:
    """Integer field in [low, high]. Integral floats (3.0) are accepted."""
    value = payload.get(key)
    if not _is_number(value):
        return None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        value = int(value)
    if low is not None and value < low:
        return None
    if high is not None and value > high:
        return None
    return value


def payload_float(
    payload: dict[str, Any],
    key: str,
    low: float | None = None,
    high: float | None = None,
) -> float | None:
    value = payload.get(key)
    if not _is_number(value):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    if low is not None and value < low:
        return None
    if high is not None and value > high:
        return None
    return value


def payload_bool(payload: dict[str, Any], key: str) -> bool | None:
    value = payload.get(key)
    return value if isinstance(value, bool) else None


def payload_str(payload: dict[str, Any], key: str, max_length: int = 1000) -> str | None:
    value = payload.get(key)
    if not isinstance(value, str) or len(value) > max_length:
        return None
    return value


def payload_int_list(
    payload: dict[str, Any],
    key: str,
    low: int | None = None,
    high: int | None = None,
    max_length: int = 100,
) -> list[int] | None:
    """List of ints, each in range. One bad element rejects the whole list."""
    value = payload.get(key)
    if not isinstance(value, list) or len(value) > max_length:
        return None
    result = []
    for position in range(len(value)):
        item = payload_int({"v": value[position]}, "v", low, high)
        if item is None:
            return None
        result.append(item)
    return result


def payload_points(
    payload: dict[str, Any],
    key: str,
    max_points: int = MAX_POINTS,
) -> list[tuple[float, float]] | None:
    """
    List of 2D points, given either as [x, y] pairs or {"x":, "y":} dicts.

    Malformed points are dropped individually; the list itself must exist.
    """
    value = payload.get(key)
    if not isinstance(value, list):
        return None
    points = []
    for raw in value[:max_points]:
        if isinstance(raw, dict):
            x, y = raw.get("x"), raw.get("y")
        elif isinstance(raw, (list, tuple)) and len(raw) == 2:
            x, y = raw
        else:
            continue
        if _is_number(x) and _is_number(y) and math.isfinite(x) and math.isfinite(y):
            points.append((float(x), float(y)))
    return points


def payload_cells(
    payload: dict[str, Any],
    key: str,
    size: int,
    max_cells: int = 400,
) -> list[tuple[int, int]] | None:
    """List of [row, col] grid cells inside a size x size grid."""
    value = payload.get(key)
    if not isinstance(value, list) or len(value) > max_cells:
        return None
    cells = []
    for raw in value:
        if not isinstance(raw, (list, tuple)) or len(raw) != 2:
            return None
        row = payload_int({"v": raw[0]}, "v", 0, size - 1)
        col = payload_int({"v": raw[1]}, "v", 0, size - 1)
        if row is None or col is None:
            return None
        cells.append((row, col))
    return cells
