"""
Image Rotate - Turn every tile of a scrambled picture back upright.

Each `rotate` click turns a tile back by 90 degrees, so a tile starting
at r degrees needs exactly r / 90 clicks. Clicks beyond that minimum are
extra rotations and cost quality.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from ..engine_core.scoring import penalized
from .common import PUZZLE_IMAGES, with_item

ROTATIONS = [0, 90, 180, 270]


@dataclass(frozen=True)
class ImageRotateConfig(GameConfig):
    grid_size: int = 3
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class ImageRotateSpec(TurnSpec):
    image_url: str
    grid_size: int
    initial_rotations: list[int]


@dataclass(frozen=True)
class ImageRotateState:
    rotations: tuple[int, ...]
    rotate_count: int = 0


class ImageRotate(GameModule):
    game_type = "image_rotate"
    spec_class = ImageRotateSpec
    config_class = ImageRotateConfig
    public_fields = frozenset({"image_url", "grid_size", "initial_rotations", "time_limit_ms"})
    secret_fields = frozenset({"seed"})
    thresholds = TimingThresholds(min_perfect_completion_ms=1000)

    MAX_QUALITY = 7000
    EXTRA_ROTATION_PENALTY = 250

    def build(self, rng: SeededRandom, seed: str, config: ImageRotateConfig) -> ImageRotateSpec:
        image_url = rng.choice(PUZZLE_IMAGES)
        tile_count = config.grid_size * config.grid_size
        rotations = [rng.choice(ROTATIONS) for _ in range(tile_count)]
        if not any(rotations):
            # Nothing to solve; turn a random tile
            rotations[rng.randrange(tile_count)] = rng.choice(ROTATIONS[1:])
        return ImageRotateSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            image_url=image_url,
            grid_size=config.grid_size,
            initial_rotations=rotations,
        )

    def initial_state(self, spec: ImageRotateSpec) -> ImageRotateState:
        return ImageRotateState(rotations=tuple(r % 360 for r in spec.initial_rotations))

    def handlers(self):
        return {"rotate": self._handle_rotate}

    def _handle_rotate(self, spec, state: ImageRotateState, event):
        tile = payload_int(event.payload, "tile_index", 0, len(state.rotations) - 1)
        if tile is None:
            return None
        rotated = (state.rotations[tile] - 90) % 360
        return replace(
            state,
            rotations=with_item(state.rotations, tile, rotated),
            rotate_count=state.rotate_count + 1,
        )

    def check(self, spec, state: ImageRotateState):
        if any(state.rotations):
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: ImageRotateSpec, state: ImageRotateState):
        minimum = sum((r % 360) // 90 for r in spec.initial_rotations)
        extra = max(0, state.rotate_count - minimum)
        return {
            "tiles_solved": sum(1 for r in state.rotations if r == 0),
            "tile_count": len(state.rotations),
            "total_rotations": state.rotate_count,
            "min_rotations": minimum,
            "extra_rotations": extra,
            "mistakes": extra,
        }

    def quality(self, spec, metrics):
        return penalized(self.MAX_QUALITY, self.EXTRA_ROTATION_PENALTY * metrics["extra_rotations"])
