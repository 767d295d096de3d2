"""
Maze Path - Walk through a series of mazes, visiting checkpoints in order.

Mazes are perfect mazes carved by a depth-first backtracker, so every
pair of cells is connected and each checkpoint is reachable. Walls are a
4-bit mask per cell: TOP=1, RIGHT=2, BOTTOM=4, LEFT=8.

Replay walks the player's position cell by cell. A step through a wall
or to a non-adjacent cell is a mistake and does not move the player.
Reaching the last checkpoint of a level moves on to the next maze.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_cells, payload_int
from ..engine_core.scoring import penalized
from .common import ratio

TOP, RIGHT, BOTTOM, LEFT = 1, 2, 4, 8

# (row delta, col delta, wall bit, opposite bit) for top, right, bottom, left
DIRECTIONS = [
    (-1, 0, TOP, BOTTOM),
    (0, 1, RIGHT, LEFT),
    (1, 0, BOTTOM, TOP),
    (0, -1, LEFT, RIGHT),
]

# Quadrant visiting order by checkpoint count: TL=0, TR=1, BL=2, BR=3
CHECKPOINT_ORDERS = {2: [0, 3], 3: [0, 1, 3], 4: [0, 1, 2, 3]}


def carve_maze(size: int, rng: SeededRandom) -> list[list[int]]:
    """Depth-first backtracker; returns the wall mask grid."""
    walls = [[TOP | RIGHT | BOTTOM | LEFT] * size for _ in range(size)]
    visited = [[False] * size for _ in range(size)]
    start = (rng.randrange(size), rng.randrange(size))
    visited[start[0]][start[1]] = True
    stack = [start]
    while stack:
        r, c = stack[-1]
        options = [
            d for d, (dr, dc, _, _) in enumerate(DIRECTIONS)
            if 0 <= r + dr < size and 0 <= c + dc < size and not visited[r + dr][c + dc]
        ]
        if not options:
            stack.pop()
            continue
        dr, dc, wall, opposite = DIRECTIONS[rng.choice(options)]
        nr, nc = r + dr, c + dc
        walls[r][c] &= ~wall
        walls[nr][nc] &= ~opposite
        visited[nr][nc] = True
        stack.append((nr, nc))
    return walls


def can_step(walls: list[list[int]], frm: tuple[int, int], to: tuple[int, int]) -> bool:
    """True if `to` is an orthogonal neighbour of `frm` with no wall between."""
    size = len(walls)
    if not (0 <= to[0] < size and 0 <= to[1] < size):
        return False
    for dr, dc, wall, _ in DIRECTIONS:
        if (frm[0] + dr, frm[1] + dc) == to:
            return not walls[frm[0]][frm[1]] & wall
    return False


def shortest_path(walls: list[list[int]], start: tuple[int, int], end: tuple[int, int]) -> list[list[int]]:
    """BFS path from start to end, inclusive, as [row, col] pairs."""
    size = len(walls)
    parent: dict[tuple[int, int], tuple[int, int] | None] = {start: None}
    queue = deque([start])
    while queue:
        cell = queue.popleft()
        if cell == end:
            path = []
            while cell is not None:
                path.append([cell[0], cell[1]])
                cell = parent[cell]
            return path[::-1]
        for dr, dc, _, _ in DIRECTIONS:
            nxt = (cell[0] + dr, cell[1] + dc)
            if nxt not in parent and can_step(walls, cell, nxt):
                parent[nxt] = cell
                queue.append(nxt)
    return []


def place_checkpoints(size: int, count: int, rng: SeededRandom) -> list[list[int]]:
    half = size // 2
    quadrants = [
        (0, half - 1, 0, half - 1),
        (0, half - 1, half, size - 1),
        (half, size - 1, 0, half - 1),
        (half, size - 1, half, size - 1),
    ]
    order = CHECKPOINT_ORDERS.get(count, CHECKPOINT_ORDERS[4])
    checkpoints = []
    for quadrant in order[:count]:
        r_min, r_max, c_min, c_max = quadrants[quadrant]
        checkpoints.append([rng.randint(r_min, r_max), rng.randint(c_min, c_max)])
    return checkpoints


@dataclass(frozen=True)
class MazePathConfig(GameConfig):
    grid_size: int = 8
    checkpoints_per_level: tuple[int, ...] = (2, 3, 4)
    time_limit_seconds: int = 90


@dataclass(frozen=True)
class MazePathSpec(TurnSpec):
    mazes: list[dict]
    solution_paths: list[list[list[list[int]]]]


@dataclass(frozen=True)
class MazePathState:
    level: int = 0
    position: tuple[int, int] | None = None
    next_checkpoint: int = 1
    steps: int = 0
    invalid_moves: int = 0
    level_steps: tuple[int, ...] = field(default_factory=tuple)

    @property
    def levels_completed(self) -> int:
        return len(self.level_steps)


class MazePath(GameModule):
    game_type = "maze_path"
    spec_class = MazePathSpec
    config_class = MazePathConfig
    public_fields = frozenset({"mazes", "time_limit_ms"})
    secret_fields = frozenset({"seed", "solution_paths"})
    timed_events = frozenset({"step"})
    # Held arrow keys repeat every ~30 ms, so the floor is lower than elsewhere
    thresholds = TimingThresholds(
        absolute_floor_ms=25, min_mean_gap_ms=60, min_std_dev_ms=3, low_mean_ms=120,
        variance_min_samples=10, min_perfect_completion_ms=4000,
    )
    score_clamp_ms = 3000

    LEVEL_QUALITY = 2500
    INVALID_MOVE_PENALTY = 100

    def build(self, rng: SeededRandom, seed: str, config: MazePathConfig) -> MazePathSpec:
        mazes = []
        solutions = []
        for count in config.checkpoints_per_level:
            walls = carve_maze(config.grid_size, rng)
            checkpoints = place_checkpoints(config.grid_size, count, rng)
            mazes.append({"walls": walls, "checkpoints": checkpoints})
            solutions.append([
                shortest_path(walls, tuple(a), tuple(b))
                for a, b in zip(checkpoints, checkpoints[1:])
            ])
        return MazePathSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            mazes=mazes,
            solution_paths=solutions,
        )

    def initial_state(self, spec: MazePathSpec) -> MazePathState:
        return MazePathState(position=tuple(spec.mazes[0]["checkpoints"][0]))

    def handlers(self):
        return {"step": self._handle_step, "path": self._handle_path}

    def _handle_step(self, spec: MazePathSpec, state: MazePathState, event):
        level = payload_int(event.payload, "level", 0, len(spec.mazes) - 1)
        size = len(spec.mazes[state.level]["walls"]) if state.level < len(spec.mazes) else 0
        row = payload_int(event.payload, "row", 0, size - 1)
        col = payload_int(event.payload, "col", 0, size - 1)
        if level is None or level != state.level or row is None or col is None:
            return None
        return self._walk(spec, state, (row, col))

    def _handle_path(self, spec: MazePathSpec, state: MazePathState, event):
        level = payload_int(event.payload, "level", 0, len(spec.mazes) - 1)
        if level is None or level != state.level:
            return None
        cells = payload_cells(event.payload, "cells", len(spec.mazes[level]["walls"]))
        if not cells:
            return None
        walked = state
        for cell in cells:
            if walked.level != level:
                break
            if cell == walked.position:
                continue
            walked = self._walk(spec, walked, cell)
        return walked if walked != state else None

    def _walk(self, spec: MazePathSpec, state: MazePathState, cell: tuple[int, int]) -> MazePathState:
        maze = spec.mazes[state.level]
        if not can_step(maze["walls"], state.position, cell):
            return replace(state, invalid_moves=state.invalid_moves + 1)

        state = replace(state, position=cell, steps=state.steps + 1)
        checkpoints = maze["checkpoints"]
        if list(cell) != checkpoints[state.next_checkpoint]:
            return state
        if state.next_checkpoint + 1 < len(checkpoints):
            return replace(state, next_checkpoint=state.next_checkpoint + 1)

        # Level finished
        done_steps = state.steps - sum(state.level_steps)
        level = state.level + 1
        position = tuple(spec.mazes[level]["checkpoints"][0]) if level < len(spec.mazes) else None
        return replace(
            state,
            level=level,
            position=position,
            next_checkpoint=1,
            level_steps=state.level_steps + (done_steps,),
        )

    def check(self, spec: MazePathSpec, state: MazePathState):
        if state.levels_completed < len(spec.mazes):
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: MazePathSpec, state: MazePathState):
        efficiencies = []
        for level, steps in enumerate(state.level_steps):
            optimal = sum(len(path) - 1 for path in spec.solution_paths[level])
            efficiencies.append(min(1.0, ratio(optimal, steps)))
        return {
            "levels_completed": state.levels_completed,
            "levels_total": len(spec.mazes),
            "steps": state.steps,
            "level_efficiency": [round(e, 3) for e in efficiencies],
            "efficiency": round(ratio(sum(efficiencies), len(efficiencies)), 3),
            "mistakes": state.invalid_moves,
        }

    def quality(self, spec, metrics):
        levels = sum(self.LEVEL_QUALITY * e for e in metrics["level_efficiency"])
        return penalized(levels, self.INVALID_MOVE_PENALTY * metrics["mistakes"])
