"""
Drag Sort - Put each round's items into ascending order.

The server keeps the arrangement of every round and applies each `swap`
to it, so a `submit_round` carries no order of its own: the server scores
the arrangement it has been tracking. Items are never presented already
sorted.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import string

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from .common import ratio, with_item

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def _sorted_items(rng: SeededRandom, kind: str, count: int) -> list[str]:
    if kind == "numbers":
        return [str(n) for n in sorted(rng.sample(range(1, 101), count))]
    if kind == "numbers_large":
        return [str(n) for n in sorted(rng.sample(range(100, 1000), count))]
    if kind == "alphabet":
        return sorted(rng.sample(list(string.ascii_uppercase), count))
    if kind == "months":
        first = rng.randrange(len(MONTHS) - count + 1)
        return MONTHS[first:first + count]
    raise ValueError(f"Unknown sort kind: {kind}")


@dataclass(frozen=True)
class DragSortConfig(GameConfig):
    num_items: int = 5
    round_kinds: tuple[str, ...] = ("numbers", "numbers_large")
    min_correct_ratio: float = 0.8
    time_limit_seconds: int = 60


@dataclass(frozen=True)
class DragSortSpec(TurnSpec):
    # [{"items": [...], "sort_type": ...}] in presented order
    rounds: list[dict]
    # Per round, presented indices in sorted order
    correct_order: list[list[int]]
    min_correct_ratio: float


@dataclass(frozen=True)
class DragSortState:
    # Per round, the presented index currently at each position
    arrangements: tuple[tuple[int, ...], ...]
    # Per round, correct positions at submission; None until submitted
    submitted: tuple[int | None, ...]
    swaps: int = 0


class DragSort(GameModule):
    game_type = "drag_sort"
    spec_class = DragSortSpec
    config_class = DragSortConfig
    public_fields = frozenset({"rounds", "time_limit_ms"})
    secret_fields = frozenset({"seed", "correct_order", "min_correct_ratio"})
    thresholds = TimingThresholds(min_mean_gap_ms=100, min_std_dev_ms=20, low_mean_ms=400)
    score_clamp_ms = 3000

    MAX_QUALITY = 7000

    def build(self, rng: SeededRandom, seed: str, config: DragSortConfig) -> DragSortSpec:
        rounds = []
        orders = []
        for kind in config.round_kinds:
            ordered = _sorted_items(rng, kind, config.num_items)
            presented = rng.shuffle(list(range(len(ordered))))
            if presented == sorted(presented):
                presented[0], presented[1] = presented[1], presented[0]
            rounds.append({
                "items": [ordered[i] for i in presented],
                # Both number ranges look the same to the player
                "sort_type": "numbers" if kind.startswith("numbers") else kind,
            })
            orders.append([presented.index(rank) for rank in range(len(ordered))])
        return DragSortSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            rounds=rounds,
            correct_order=orders,
            min_correct_ratio=config.min_correct_ratio,
        )

    def derived_public(self, spec: DragSortSpec):
        return {"num_rounds": len(spec.rounds)}

    def initial_state(self, spec: DragSortSpec):
        return DragSortState(
            arrangements=tuple(tuple(range(len(r["items"]))) for r in spec.rounds),
            submitted=(None,) * len(spec.rounds),
        )

    def handlers(self):
        return {"swap": self._handle_swap, "submit_round": self._handle_submit}

    def _open_round(self, spec: DragSortSpec, state: DragSortState, event) -> int | None:
        index = payload_int(event.payload, "round", 0, len(spec.rounds) - 1)
        if index is None or state.submitted[index] is not None:
            return None
        return index

    def _handle_swap(self, spec: DragSortSpec, state: DragSortState, event):
        index = self._open_round(spec, state, event)
        if index is None:
            return None
        size = len(state.arrangements[index])
        a = payload_int(event.payload, "from_index", 0, size - 1)
        b = payload_int(event.payload, "to_index", 0, size - 1)
        if a is None or b is None or a == b:
            return None
        arrangement = list(state.arrangements[index])
        arrangement[a], arrangement[b] = arrangement[b], arrangement[a]
        return replace(
            state,
            arrangements=with_item(state.arrangements, index, tuple(arrangement)),
            swaps=state.swaps + 1,
        )

    def _handle_submit(self, spec: DragSortSpec, state: DragSortState, event):
        index = self._open_round(spec, state, event)
        if index is None:
            return None
        correct = sum(
            1 for have, want in zip(state.arrangements[index], spec.correct_order[index]) if have == want
        )
        return replace(state, submitted=with_item(state.submitted, index, correct))

    def check(self, spec: DragSortSpec, state: DragSortState):
        if None in state.submitted:
            return Reason.INCOMPLETE
        total = sum(len(r["items"]) for r in spec.rounds)
        if sum(state.submitted) < spec.min_correct_ratio * total:
            return Reason.INCORRECT_ORDER
        return None

    def metrics(self, spec: DragSortSpec, state: DragSortState):
        done = [i for i, correct in enumerate(state.submitted) if correct is not None]
        correct = sum(state.submitted[i] for i in done)
        placed = sum(len(spec.rounds[i]["items"]) for i in done)
        return {
            "rounds_completed": len(done),
            "correct_positions": correct,
            "total": sum(len(r["items"]) for r in spec.rounds),
            "swaps": state.swaps,
            "mistakes": placed - correct,
        }

    def quality(self, spec, metrics):
        return self.MAX_QUALITY * ratio(metrics["correct_positions"], metrics["total"])
