"""
Visual Diff - Spot the shapes that differ between two pictures.

The list of differences is the answer key. The client receives the base
shapes and the modified shapes and has to find where they differ. A
click finds the nearest unfound difference within reach of its shape;
a click near nothing is a wrong click.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import copy
import math

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_float
from ..engine_core.scoring import penalized
from .common import ratio

SHAPE_COLORS = ["#ef4444", "#f97316", "#eab308", "#22c55e", "#3b82f6", "#8b5cf6", "#ec4899"]
SHAPE_TYPES = ["circle", "square", "triangle"]


@dataclass(frozen=True)
class VisualDiffConfig(GameConfig):
    canvas_size: int = 300
    num_shapes: int = 15
    num_differences: int = 5
    click_radius: int = 30
    min_found_ratio: float = 0.6
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class VisualDiffSpec(TurnSpec):
    canvas_size: int
    base_shapes: list[dict]
    differences: list[dict]
    click_radius: int
    min_found_ratio: float


@dataclass(frozen=True)
class VisualDiffState:
    # difference index -> distance of the click that found it
    found: tuple[tuple[int, float], ...] = ()
    wrong_clicks: int = 0

    @property
    def found_indices(self) -> set[int]:
        return {index for index, _ in self.found}


def modified_shapes(spec: VisualDiffSpec) -> list[dict]:
    shapes = copy.deepcopy(spec.base_shapes)
    for diff in spec.differences:
        shapes[diff["index"]][diff["property"]] = diff["new_value"]
    return shapes


class VisualDiff(GameModule):
    game_type = "visual_diff"
    spec_class = VisualDiffSpec
    config_class = VisualDiffConfig
    public_fields = frozenset({"canvas_size", "base_shapes", "time_limit_ms"})
    secret_fields = frozenset({"seed", "differences", "click_radius", "min_found_ratio"})
    thresholds = TimingThresholds(
        absolute_floor_ms=80, min_mean_gap_ms=200, min_std_dev_ms=40, low_mean_ms=600,
        min_perfect_completion_ms=2500,
    )
    score_clamp_ms = 3000

    FOUND_QUALITY = 4800
    ACCURACY_QUALITY = 1800
    WRONG_CLICK_PENALTY = 150

    def build(self, rng: SeededRandom, seed: str, config: VisualDiffConfig) -> VisualDiffSpec:
        margin = 20
        shapes = [
            {
                "x": rng.randint(margin, config.canvas_size - margin - 1),
                "y": rng.randint(margin, config.canvas_size - margin - 1),
                "type": rng.choice(SHAPE_TYPES),
                "color": rng.choice(SHAPE_COLORS),
                "size": rng.randint(15, 34),
            }
            for _ in range(config.num_shapes)
        ]
        differences = []
        for index in rng.sample(range(config.num_shapes), min(config.num_differences, config.num_shapes)):
            shape = shapes[index]
            prop = rng.choice(["color", "size", "type"])
            if prop == "color":
                value = rng.choice([c for c in SHAPE_COLORS if c != shape["color"]])
            elif prop == "size":
                value = max(10, shape["size"] + (10 if rng.chance(0.5) else -8))
            else:
                value = rng.choice([t for t in SHAPE_TYPES if t != shape["type"]])
            differences.append({"index": index, "property": prop, "new_value": value})
        return VisualDiffSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            canvas_size=config.canvas_size,
            base_shapes=shapes,
            differences=differences,
            click_radius=config.click_radius,
            min_found_ratio=config.min_found_ratio,
        )

    def derived_public(self, spec: VisualDiffSpec):
        return {
            "modified_shapes": modified_shapes(spec),
            "num_differences": len(spec.differences),
        }

    def initial_state(self, spec):
        return VisualDiffState()

    def handlers(self):
        return {"click": self._handle_click}

    def _handle_click(self, spec: VisualDiffSpec, state: VisualDiffState, event):
        x = payload_float(event.payload, "x", 0, spec.canvas_size)
        y = payload_float(event.payload, "y", 0, spec.canvas_size)
        if x is None or y is None:
            return None
        nearest = None
        reached_found = False
        for i, diff in enumerate(spec.differences):
            shape = spec.base_shapes[diff["index"]]
            distance = math.hypot(x - shape["x"], y - shape["y"])
            if distance > spec.click_radius + shape["size"]:
                continue
            if i in state.found_indices:
                reached_found = True
            elif nearest is None or distance < nearest[1]:
                nearest = (i, distance)
        if nearest is not None:
            return replace(state, found=state.found + (nearest,))
        if reached_found:
            return None
        return replace(state, wrong_clicks=state.wrong_clicks + 1)

    def check(self, spec: VisualDiffSpec, state: VisualDiffState):
        if len(state.found) < spec.min_found_ratio * len(spec.differences):
            return Reason.NOT_ENOUGH_FOUND
        return None

    def metrics(self, spec: VisualDiffSpec, state: VisualDiffState):
        distances = [d for _, d in state.found]
        reach = spec.click_radius + 15
        average = ratio(sum(distances), len(distances)) if distances else reach
        return {
            "found": len(state.found),
            "total": len(spec.differences),
            "click_accuracy": round(max(0.0, 1 - average / reach), 4),
            "mistakes": state.wrong_clicks,
        }

    def quality(self, spec, metrics):
        return penalized(
            self.FOUND_QUALITY * ratio(metrics["found"], metrics["total"])
            + self.ACCURACY_QUALITY * metrics["click_accuracy"] ** 1.2,
            self.WRONG_CLICK_PENALTY * metrics["mistakes"],
        )
