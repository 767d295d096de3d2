"""
Image Puzzle - Drag the missing pieces of a picture into their cells.

A few cells start filled; the rest sit shuffled in a bank. Dropping a
piece on the wrong cell is a mistake; a piece already placed correctly
ignores further drops.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from ..engine_core.scoring import penalized
from .common import PUZZLE_IMAGES


@dataclass(frozen=True)
class ImagePuzzleConfig(GameConfig):
    grid_size: int = 3
    num_preplaced: int = 3
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class ImagePuzzleSpec(TurnSpec):
    image_url: str
    grid_size: int
    preplaced_indices: list[int]
    bank_pieces: list[int]
    correct_positions: dict[str, int]


@dataclass(frozen=True)
class ImagePuzzleState:
    placed: frozenset[int] = frozenset()
    mistakes: int = 0


class ImagePuzzle(GameModule):
    game_type = "image_puzzle"
    spec_class = ImagePuzzleSpec
    config_class = ImagePuzzleConfig
    public_fields = frozenset({
        "image_url", "grid_size", "preplaced_indices", "bank_pieces", "time_limit_ms",
    })
    secret_fields = frozenset({"seed", "correct_positions"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=200, min_std_dev_ms=30, low_mean_ms=200, min_perfect_completion_ms=3000,
    )
    score_clamp_ms = 3000

    MAX_QUALITY = 7000
    MISTAKE_PENALTY = 500

    def build(self, rng: SeededRandom, seed: str, config: ImagePuzzleConfig) -> ImagePuzzleSpec:
        image_url = rng.choice(PUZZLE_IMAGES)
        cells = rng.shuffle(range(config.grid_size * config.grid_size))
        preplaced = sorted(cells[:config.num_preplaced])
        bank = rng.shuffle(cells[config.num_preplaced:])
        return ImagePuzzleSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            image_url=image_url,
            grid_size=config.grid_size,
            preplaced_indices=preplaced,
            bank_pieces=bank,
            # JSON object keys are strings
            correct_positions={str(piece): piece for piece in bank},
        )

    def initial_state(self, spec):
        return ImagePuzzleState()

    def handlers(self):
        return {"place_piece": self._handle_place}

    def _handle_place(self, spec: ImagePuzzleSpec, state: ImagePuzzleState, event):
        cell_count = spec.grid_size * spec.grid_size
        piece = payload_int(event.payload, "piece_index", 0, cell_count - 1)
        target = payload_int(event.payload, "target_cell", 0, cell_count - 1)
        if piece is None or target is None or piece not in spec.bank_pieces:
            return None
        if piece in state.placed:
            return None
        if spec.correct_positions[str(piece)] == target:
            return replace(state, placed=state.placed | {piece})
        return replace(state, mistakes=state.mistakes + 1)

    def check(self, spec: ImagePuzzleSpec, state: ImagePuzzleState):
        if len(state.placed) < len(spec.bank_pieces):
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: ImagePuzzleSpec, state: ImagePuzzleState):
        return {
            "pieces_placed": len(state.placed),
            "pieces_total": len(spec.bank_pieces),
            "mistakes": state.mistakes,
        }

    def quality(self, spec, metrics):
        return penalized(self.MAX_QUALITY, self.MISTAKE_PENALTY * metrics["mistakes"])
