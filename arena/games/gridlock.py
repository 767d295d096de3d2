"""
Gridlock - Slide blocking pieces aside until the target piece can exit.

Every puzzle is verified by a breadth-first solver at generation time,
which also yields the optimal move count; when no random layout lands in
the round's difficulty band, a fixed fallback layout is used instead.

The server simulates every `move`: a move that leaves the board, goes
against the piece's orientation or passes through another piece is a
mistake and changes nothing. A round is solved once the target's right
end reaches the exit edge.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int, payload_str
from .common import with_item

PIECE_COLORS = [
    "#f97316", "#3b82f6", "#a855f7", "#ec4899",
    "#14b8a6", "#f59e0b", "#6366f1", "#06b6d4",
    "#e11d48", "#8b5cf6", "#d946ef", "#0ea5e9",
]
TARGET_COLOR = "#22c55e"

DIRECTIONS = {
    "left": (0, -1),
    "right": (0, 1),
    "up": (-1, 0),
    "down": (1, 0),
}

# (min optimal moves, max optimal moves, blockers, blockers on the exit row)
ROUND_LEVELS = [(3, 6, 4, 1), (5, 10, 7, 2), (8, 20, 10, 3)]

Position = tuple[int, int]


# =============================================================================
# Board geometry
# =============================================================================

def piece_cells(piece: dict, position: Position) -> list[Position]:
    row, col = position
    if piece["orientation"] == "h":
        return [(row, col + i) for i in range(piece["length"])]
    return [(row + i, col) for i in range(piece["length"])]


def occupied(pieces: list[dict], positions: tuple[Position, ...]) -> dict[Position, int]:
    cells = {}
    for index, (piece, position) in enumerate(zip(pieces, positions)):
        for cell in piece_cells(piece, position):
            cells[cell] = index
    return cells


def slide(
    pieces: list[dict],
    positions: tuple[Position, ...],
    index: int,
    delta: Position,
    distance: int,
    grid_size: int,
    cells: dict[Position, int] | None = None,
) -> tuple[Position, ...] | None:
    """Positions after sliding one piece, or None if the path is blocked."""
    if cells is None:
        cells = occupied(pieces, positions)
    row, col = positions[index]
    for step in range(1, distance + 1):
        moved = (row + delta[0] * step, col + delta[1] * step)
        for r, c in piece_cells(pieces[index], moved):
            if not (0 <= r < grid_size and 0 <= c < grid_size):
                return None
            if cells.get((r, c), index) != index:
                return None
    final = (row + delta[0] * distance, col + delta[1] * distance)
    return with_item(positions, index, final)


def is_solved(pieces: list[dict], positions: tuple[Position, ...], grid_size: int) -> bool:
    target = next(i for i, p in enumerate(pieces) if p["is_target"])
    return positions[target][1] + pieces[target]["length"] >= grid_size


def solve(pieces: list[dict], grid_size: int, max_moves: int = 30) -> int:
    """
    Fewest moves to free the target, or -1.

    A move slides one piece any distance in one direction, matching how
    player moves are counted.
    """
    start = tuple((p["row"], p["col"]) for p in pieces)
    if is_solved(pieces, start, grid_size):
        return 0
    seen = {start}
    queue = deque([(start, 0)])
    while queue:
        positions, moves = queue.popleft()
        if moves >= max_moves:
            continue
        cells = occupied(pieces, positions)
        for index, piece in enumerate(pieces):
            axis = ("left", "right") if piece["orientation"] == "h" else ("up", "down")
            for direction in axis:
                distance = 1
                while True:
                    moved = slide(pieces, positions, index, DIRECTIONS[direction], distance, grid_size, cells)
                    if moved is None:
                        break
                    if is_solved(pieces, moved, grid_size):
                        return moves + 1
                    if moved not in seen:
                        seen.add(moved)
                        queue.append((moved, moves + 1))
                    distance += 1
    return -1


# =============================================================================
# Generation
# =============================================================================

def _try_place(board: set[Position], piece: dict, grid_size: int, pieces: list[dict]) -> bool:
    cells = piece_cells(piece, (piece["row"], piece["col"]))
    if any(not (0 <= r < grid_size and 0 <= c < grid_size) or (r, c) in board for r, c in cells):
        return False
    board.update(cells)
    pieces.append(piece)
    return True


def _blocker(pieces: list[dict], row: int, col: int, length: int, orientation: str) -> dict:
    return {
        "id": f"b{len(pieces)}",
        "row": row,
        "col": col,
        "length": length,
        "orientation": orientation,
        "color": PIECE_COLORS[(len(pieces) - 1) % len(PIECE_COLORS)],
        "is_target": False,
    }


def _target(row: int, col: int) -> dict:
    return {
        "id": "target", "row": row, "col": col, "length": 2,
        "orientation": "h", "color": TARGET_COLOR, "is_target": True,
    }


def _random_layout(rng: SeededRandom, level: int, grid_size: int, exit_row: int) -> list[dict]:
    _, _, num_blockers, num_path_blockers = ROUND_LEVELS[level]
    board: set[Position] = set()
    pieces: list[dict] = []
    target_col = rng.randint(1, 2) if level == 0 else rng.randint(0, 1)
    _try_place(board, _target(exit_row, target_col), grid_size, pieces)

    # Vertical blockers across the exit row
    placed = 0
    for col in rng.shuffle(list(range(target_col + 2, grid_size))):
        if placed >= num_path_blockers:
            break
        length = 3 if rng.chance(0.5) else 2
        starts = range(max(0, exit_row - length + 1), min(grid_size - length, exit_row) + 1)
        for row in rng.shuffle(list(starts)):
            if _try_place(board, _blocker(pieces, row, col, length, "v"), grid_size, pieces):
                placed += 1
                break

    # Later rounds pin the vertical blockers with horizontal ones
    if level >= 1:
        for vertical in [p for p in pieces if p["orientation"] == "v"]:
            for adjacent in (vertical["row"] - 1, vertical["row"] + vertical["length"]):
                if not 0 <= adjacent < grid_size or (adjacent, vertical["col"]) in board:
                    continue
                length = 3 if rng.chance(0.5) else 2
                starts = range(max(0, vertical["col"] - length + 1), min(grid_size - length, vertical["col"]) + 1)
                for col in rng.shuffle(list(starts)):
                    if _try_place(board, _blocker(pieces, adjacent, col, length, "h"), grid_size, pieces):
                        break

    for _ in range(150):
        if len(pieces) - 1 >= num_blockers:
            break
        orientation = "h" if rng.chance(0.5) else "v"
        length = 3 if rng.chance(0.4) else 2
        row, col = rng.randrange(grid_size), rng.randrange(grid_size)
        _try_place(board, _blocker(pieces, row, col, length, orientation), grid_size, pieces)
    return pieces


def _fallback_layout(grid_size: int, exit_row: int) -> list[dict]:
    board: set[Position] = set()
    pieces: list[dict] = []
    _try_place(board, _target(exit_row, 0), grid_size, pieces)
    _try_place(board, _blocker(pieces, exit_row - 1, 3, 2, "v"), grid_size, pieces)
    _try_place(board, _blocker(pieces, exit_row - 2, 2, 3, "h"), grid_size, pieces)
    return pieces


def generate_round(rng: SeededRandom, level: int, grid_size: int, exit_row: int, attempts: int) -> dict:
    min_moves, max_moves, _, _ = ROUND_LEVELS[level]
    for _ in range(attempts):
        pieces = _random_layout(rng, level, grid_size, exit_row)
        optimal = solve(pieces, grid_size)
        if min_moves <= optimal <= max_moves:
            return {"pieces": pieces, "optimal_moves": optimal}
    pieces = _fallback_layout(grid_size, exit_row)
    return {"pieces": pieces, "optimal_moves": solve(pieces, grid_size)}


# =============================================================================
# Game module
# =============================================================================

@dataclass(frozen=True)
class GridlockConfig(GameConfig):
    grid_size: int = 6
    exit_row: int = 2
    num_rounds: int = 3
    generation_attempts: int = 40
    time_limit_seconds: int = 120


@dataclass(frozen=True)
class GridlockSpec(TurnSpec):
    grid_size: int
    exit_row: int
    rounds: list[dict]


@dataclass(frozen=True)
class GridlockState:
    round: int
    positions: tuple[Position, ...]
    # Moves used per solved round
    solved_moves: tuple[int, ...] = ()
    moves: int = 0
    invalid_moves: int = 0


def _start_positions(spec: GridlockSpec, round_index: int) -> tuple[Position, ...]:
    if round_index >= len(spec.rounds):
        return ()
    return tuple((p["row"], p["col"]) for p in spec.rounds[round_index]["pieces"])


class Gridlock(GameModule):
    game_type = "gridlock"
    spec_class = GridlockSpec
    config_class = GridlockConfig
    public_fields = frozenset({"grid_size", "exit_row", "rounds", "time_limit_ms"})
    secret_fields = frozenset({"seed"})
    timed_events = frozenset({"move"})
    thresholds = TimingThresholds(min_mean_gap_ms=100, min_std_dev_ms=20, low_mean_ms=500)
    score_clamp_ms = 3000

    ROUND_QUALITY = 3000

    def build(self, rng: SeededRandom, seed: str, config: GridlockConfig) -> GridlockSpec:
        levels = min(config.num_rounds, len(ROUND_LEVELS))
        return GridlockSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            grid_size=config.grid_size,
            exit_row=config.exit_row,
            rounds=[
                generate_round(rng, level, config.grid_size, config.exit_row, config.generation_attempts)
                for level in range(levels)
            ],
        )

    def initial_state(self, spec: GridlockSpec):
        return GridlockState(round=0, positions=_start_positions(spec, 0))

    def handlers(self):
        return {"move": self._handle_move}

    def _handle_move(self, spec: GridlockSpec, state: GridlockState, event):
        if state.round >= len(spec.rounds):
            return None
        if payload_int(event.payload, "round") != state.round:
            return None
        pieces = spec.rounds[state.round]["pieces"]
        piece_id = payload_str(event.payload, "piece_id", max_length=16)
        direction = payload_str(event.payload, "direction", max_length=8)
        distance = payload_int(event.payload, "distance", 1, spec.grid_size)
        index = next((i for i, p in enumerate(pieces) if p["id"] == piece_id), None)
        if index is None or direction not in DIRECTIONS or distance is None:
            return None
        along = ("left", "right") if pieces[index]["orientation"] == "h" else ("up", "down")
        moved = None
        if direction in along:
            moved = slide(pieces, state.positions, index, DIRECTIONS[direction], distance, spec.grid_size)
        if moved is None:
            return replace(state, invalid_moves=state.invalid_moves + 1)
        moves = state.moves + 1
        if not is_solved(pieces, moved, spec.grid_size):
            return replace(state, positions=moved, moves=moves)
        return replace(
            state,
            round=state.round + 1,
            positions=_start_positions(spec, state.round + 1),
            solved_moves=state.solved_moves + (moves,),
            moves=0,
        )

    def check(self, spec, state: GridlockState):
        if not state.solved_moves:
            return Reason.NO_ROUNDS_COMPLETED
        return None

    def metrics(self, spec: GridlockSpec, state: GridlockState):
        efficiency = [
            round(min(1.0, spec.rounds[i]["optimal_moves"] / moves), 4)
            for i, moves in enumerate(state.solved_moves)
        ]
        return {
            "rounds_completed": len(state.solved_moves),
            "num_rounds": len(spec.rounds),
            "round_moves": list(state.solved_moves),
            "round_efficiency": efficiency,
            "mistakes": state.invalid_moves,
        }

    def quality(self, spec, metrics):
        return sum(self.ROUND_QUALITY * e for e in metrics["round_efficiency"])
