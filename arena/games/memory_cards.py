"""
Memory Cards - Find all matching pairs in a face-down grid.

The card faces are the answer key, so the client spec carries only the
card count. A `flip` is acknowledged with that card's face. Whether a
`match_attempt` matched is decided here from the layout, never taken
from the client.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from ..engine_core.scoring import penalized
from .common import FRUIT_EMOJI


@dataclass(frozen=True)
class MemoryCardsConfig(GameConfig):
    num_pairs: int = 4
    time_limit_seconds: int = 60
    flip_back_delay_ms: int = 800


@dataclass(frozen=True)
class MemoryCardsSpec(TurnSpec):
    num_cards: int
    flip_back_delay_ms: int
    cards: list[str]


@dataclass(frozen=True)
class MemoryCardsState:
    matched: frozenset[int] = frozenset()
    flips: int = 0
    attempts: int = 0
    mismatches: int = 0


class MemoryCards(GameModule):
    game_type = "memory_cards"
    spec_class = MemoryCardsSpec
    config_class = MemoryCardsConfig
    public_fields = frozenset({"num_cards", "flip_back_delay_ms", "time_limit_ms"})
    secret_fields = frozenset({"seed", "cards"})
    timed_events = frozenset({"flip"})
    thresholds = TimingThresholds(min_mean_gap_ms=200, min_std_dev_ms=30, low_mean_ms=400)
    score_clamp_ms = 1000

    MAX_QUALITY = 6000
    MISMATCH_PENALTY = 400

    def build(self, rng: SeededRandom, seed: str, config: MemoryCardsConfig) -> MemoryCardsSpec:
        faces = rng.sample(FRUIT_EMOJI, config.num_pairs)
        cards = rng.shuffle(faces + faces)
        return MemoryCardsSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            num_cards=len(cards),
            flip_back_delay_ms=config.flip_back_delay_ms,
            cards=cards,
        )

    def acknowledge(self, spec: MemoryCardsSpec, event, history=()):
        if event.event_type != "flip":
            return {}
        index = payload_int(event.payload, "card_index", 0, spec.num_cards - 1)
        if index is None:
            return {}
        return {"card_index": index, "face": spec.cards[index]}

    def initial_state(self, spec):
        return MemoryCardsState()

    def handlers(self):
        return {
            "flip": self._handle_flip,
            "match_attempt": self._handle_match_attempt,
        }

    def _handle_flip(self, spec: MemoryCardsSpec, state: MemoryCardsState, event):
        index = payload_int(event.payload, "card_index", 0, spec.num_cards - 1)
        if index is None or index in state.matched:
            return None
        return replace(state, flips=state.flips + 1)

    def _handle_match_attempt(self, spec: MemoryCardsSpec, state: MemoryCardsState, event):
        first = payload_int(event.payload, "card1", 0, spec.num_cards - 1)
        second = payload_int(event.payload, "card2", 0, spec.num_cards - 1)
        if first is None or second is None or first == second:
            return None
        if first in state.matched or second in state.matched:
            return None
        if spec.cards[first] == spec.cards[second]:
            return replace(
                state,
                matched=state.matched | {first, second},
                attempts=state.attempts + 1,
            )
        return replace(state, attempts=state.attempts + 1, mismatches=state.mismatches + 1)

    def check(self, spec: MemoryCardsSpec, state: MemoryCardsState):
        if len(state.matched) < spec.num_cards:
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: MemoryCardsSpec, state: MemoryCardsState):
        return {
            "pairs_matched": len(state.matched) // 2,
            "pairs_total": spec.num_cards // 2,
            "match_attempts": state.attempts,
            "flips": state.flips,
            "mistakes": state.mismatches,
        }

    def quality(self, spec, metrics):
        return penalized(self.MAX_QUALITY, self.MISMATCH_PENALTY * metrics["mistakes"])
