"""
Number Chain - Tap a run of consecutive numbers hidden in a shuffled grid.

One round counts up from its start number, the other counts down; which
comes first is random. The server knows the expected next number, so a
`tap` only names the number pressed and wrong taps are detected here.
"""

from __future__ import annotations
from dataclasses import dataclass, replace

from ..engine_core import GameConfig, GameModule, Reason, SeededRandom, TimingThresholds, TurnSpec
from ..engine_core.payload import payload_int
from .common import ratio

FORWARD, BACKWARD = "forward", "backward"


@dataclass(frozen=True)
class NumberChainConfig(GameConfig):
    grid_size: int = 16
    chain_length: int = 10
    time_limit_seconds: int = 45


@dataclass(frozen=True)
class NumberChainSpec(TurnSpec):
    # {"grid", "chain_start", "chain_length", "direction"} per round
    rounds: list[dict]
    sequences: list[list[int]]


@dataclass(frozen=True)
class NumberChainState:
    round: int = 0
    position: int = 0
    correct_taps: int = 0
    wrong_taps: int = 0


class NumberChain(GameModule):
    game_type = "number_chain"
    spec_class = NumberChainSpec
    config_class = NumberChainConfig
    public_fields = frozenset({"rounds", "time_limit_ms"})
    secret_fields = frozenset({"seed", "sequences"})
    thresholds = TimingThresholds(
        min_mean_gap_ms=100, min_std_dev_ms=20, low_mean_ms=600,
    )
    score_clamp_ms = 1000

    MAX_QUALITY = 5000

    def build(self, rng: SeededRandom, seed: str, config: NumberChainConfig) -> NumberChainSpec:
        directions = [FORWARD, BACKWARD] if rng.chance(0.5) else [BACKWARD, FORWARD]
        rounds = []
        sequences = []
        for direction in directions:
            base = rng.randint(10, 84)
            offset = rng.randint(0, config.grid_size - config.chain_length)
            if direction == FORWARD:
                first = base + offset
                sequence = [first + i for i in range(config.chain_length)]
            else:
                first = base + config.grid_size - 1 - offset
                sequence = [first - i for i in range(config.chain_length)]
            rounds.append({
                "grid": rng.shuffle([base + i for i in range(config.grid_size)]),
                "chain_start": first,
                "chain_length": config.chain_length,
                "direction": direction,
            })
            sequences.append(sequence)
        return NumberChainSpec(
            seed=seed,
            time_limit_ms=config.time_limit_ms,
            rounds=rounds,
            sequences=sequences,
        )

    def initial_state(self, spec):
        return NumberChainState()

    def handlers(self):
        return {"tap": self._handle_tap}

    def _handle_tap(self, spec: NumberChainSpec, state: NumberChainState, event):
        if state.round >= len(spec.sequences):
            return None
        number = payload_int(event.payload, "number")
        if number is None or number not in spec.rounds[state.round]["grid"]:
            return None
        sequence = spec.sequences[state.round]
        if number != sequence[state.position]:
            return replace(state, wrong_taps=state.wrong_taps + 1)
        if state.position + 1 == len(sequence):
            return replace(state, round=state.round + 1, position=0, correct_taps=state.correct_taps + 1)
        return replace(state, position=state.position + 1, correct_taps=state.correct_taps + 1)

    def check(self, spec: NumberChainSpec, state: NumberChainState):
        if state.round < len(spec.sequences):
            return Reason.INCOMPLETE
        return None

    def metrics(self, spec: NumberChainSpec, state: NumberChainState):
        return {
            "rounds_completed": state.round,
            "correct_taps": state.correct_taps,
            "chain_total": sum(len(s) for s in spec.sequences),
            "mistakes": state.wrong_taps,
        }

    def quality(self, spec, metrics):
        total = metrics["chain_total"]
        return self.MAX_QUALITY * ratio(total, total + metrics["mistakes"])
