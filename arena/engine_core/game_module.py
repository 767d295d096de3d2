"""
Game Module - The capability set every game type implements.

A GameModule bundles, for one game type:
1. generate: (seed, config) -> TurnSpec, drawing only from SeededRandom
2. project: TurnSpec -> client dict, an allowlist kept next to secret_fields
3. initial_state / handlers: the fold step, one pure handler per event type
4. check: the win condition, returning an incomplete-family Reason or None
5. metrics / quality / score: the inputs and shape of the final score

The replay loop, timing heuristics and score shape are shared (see
replay.py, timing.py, scoring.py); modules only supply game rules.

Handler contract:
- handler(spec, state, event) -> new state, or None to ignore the event
- state objects are frozen dataclasses; handlers return copies
- payload fields are read with engine_core.payload accessors
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from functools import lru_cache
from typing import Any, Callable, ClassVar, Sequence, TYPE_CHECKING
import logging

from pydantic import TypeAdapter, ValidationError

from .events import Event, canonical_json
from .pipeline import DEFAULT_GRACE_MS, evaluate_turn
from .result import Reason, TurnResult
from .rng import SeededRandom
from .scoring import two_factor_score
from .timing import TimingAssessment, TimingThresholds

if TYPE_CHECKING:
    from .replay import Replay

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Any, Event], Any]


@lru_cache(maxsize=None)
def _config_adapter(config_class: type) -> TypeAdapter:
    return TypeAdapter(config_class)


@dataclass(frozen=True)
class TurnSpec:
    """
    Base for every game's puzzle instance.

    Subclasses add JSON-friendly fields only (ints, floats, strings,
    lists, dicts) so that to_json() is byte-stable.
    """
    seed: str
    time_limit_ms: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class GameConfig:
    """Base for per-game tunables."""
    time_limit_seconds: int = 60

    @property
    def time_limit_ms(self) -> int:
        return self.time_limit_seconds * 1000


class GameModule(ABC):
    """Abstract base class for game types."""

    game_type: ClassVar[str]
    spec_class: ClassVar[type[TurnSpec]]
    config_class: ClassVar[type[GameConfig]] = GameConfig

    public_fields: ClassVar[frozenset[str]]
    secret_fields: ClassVar[frozenset[str]]

    # Event types after which nothing else is applied
    terminal_events: ClassVar[frozenset[str]] = frozenset()
    # Event types whose gaps feed the timing heuristics; None means all handled types
    timed_events: ClassVar[frozenset[str] | None] = None
    # Event types the client may record only to get an acknowledgement; never folded
    ack_events: ClassVar[frozenset[str]] = frozenset()
    thresholds: ClassVar[TimingThresholds] = TimingThresholds()

    # Speed factor clamp; fixed-duration games ignore elapsed time entirely
    score_clamp_ms: ClassVar[int] = 2000
    fixed_duration: ClassVar[bool] = False

    # =========================================================================
    # Generation
    # =========================================================================

    def make_config(self, overrides: dict[str, Any] | None = None) -> GameConfig:
        """
        Default config with known override keys applied.

        Override values are validated against the config field types;
        numeric strings are coerced. Raises ValueError on a value that
        does not fit its field.
        """
        config = self.config_class()
        if not overrides:
            return config
        known = {f.name for f in fields(config)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            logger.warning("Ignoring unknown %s config keys: %s", self.game_type, unknown)
        values = {**asdict(config), **{k: v for k, v in overrides.items() if k in known}}
        try:
            return _config_adapter(self.config_class).validate_python(values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ValueError(f"invalid {self.game_type} config: {problems}") from e

    def generate(self, seed: str, config: GameConfig | None = None) -> TurnSpec:
        """Build the puzzle instance for `seed`. Pure and deterministic."""
        return self.build(SeededRandom(seed), seed, config or self.config_class())

    @abstractmethod
    def build(self, rng: SeededRandom, seed: str, config: GameConfig) -> TurnSpec:
        """Game-specific generation."""

    def spec_from_dict(self, data: dict[str, Any]) -> TurnSpec:
        return self.spec_class.from_dict(data)

    # =========================================================================
    # Projection
    # =========================================================================

    def project(self, spec: TurnSpec) -> dict[str, Any]:
        """The player-visible subset of `spec`."""
        data = spec.to_dict()
        client = {name: data[name] for name in sorted(self.public_fields) if name in data}
        client.update(self.derived_public(spec))
        client["game_type"] = self.game_type
        return client

    def derived_public(self, spec: TurnSpec) -> dict[str, Any]:
        """Public fields computed from secret ones (never the secrets themselves)."""
        return {}

    # =========================================================================
    # Replay
    # =========================================================================

    @abstractmethod
    def initial_state(self, spec: TurnSpec) -> Any:
        """State before any gameplay event."""

    @abstractmethod
    def handlers(self) -> dict[str, Handler]:
        """Map of event type to fold step."""

    @property
    def event_types(self) -> frozenset[str]:
        return frozenset(self.handlers())

    @property
    def accepted_events(self) -> frozenset[str]:
        """Every event type a client may record."""
        return self.event_types | self.ack_events

    def begin(self, spec: TurnSpec, state: Any, start: Event) -> Any:
        """Hook run on the start event; games that time against the start keep it here."""
        return state

    def _get_handler(self, event_type: str) -> Handler | None:
        return self.handlers().get(event_type)

    def apply(self, spec: TurnSpec, state: Any, event: Event) -> Any | None:
        """Run one fold step. Returns None when the event is ignored."""
        handler = self._get_handler(event.event_type)
        if handler is None:
            return None
        return handler(spec, state, event)

    def timing_timestamps(self, spec: TurnSpec, replay: Replay) -> list[int]:
        timed = self.timed_events if self.timed_events is not None else self.event_types
        return [e.server_timestamp_ms for e in replay.applied if e.event_type in timed]

    @abstractmethod
    def check(self, spec: TurnSpec, state: Any) -> Reason | None:
        """Win condition. None means the turn was finished."""

    def plausibility(
        self,
        spec: TurnSpec,
        state: Any,
        metrics: dict[str, Any],
        elapsed_ms: int,
    ) -> TimingAssessment | None:
        """Game-specific anti-automation check, run after the shared one."""
        return None

    def acknowledge(self, spec: TurnSpec, event: Event, history: Sequence[Event] = ()) -> dict[str, Any]:
        """
        Extra data returned to the client when `event` is recorded.

        `history` is the turn's log so far, `event` included, for games
        that only reveal what the player has reached.
        """
        return {}

    # =========================================================================
    # Scoring
    # =========================================================================

    @abstractmethod
    def metrics(self, spec: TurnSpec, state: Any) -> dict[str, Any]:
        """Detail fields of the result. Must include `mistakes`."""

    @abstractmethod
    def quality(self, spec: TurnSpec, metrics: dict[str, Any]) -> float:
        """Score before the speed factor."""

    def speed_elapsed_ms(self, spec: TurnSpec, metrics: dict[str, Any], elapsed_ms: int) -> float:
        return elapsed_ms

    def speed_reference_ms(self, spec: TurnSpec) -> float:
        """Elapsed time that earns a speed factor of 1."""
        return spec.time_limit_ms

    def score(self, spec: TurnSpec, metrics: dict[str, Any], elapsed_ms: int) -> int:
        quality = self.quality(spec, metrics)
        if self.fixed_duration:
            return max(0, round(max(0.0, quality)))
        return two_factor_score(
            quality,
            self.speed_elapsed_ms(spec, metrics, elapsed_ms),
            self.speed_reference_ms(spec),
            self.score_clamp_ms,
        )

    def validate(
        self,
        spec: TurnSpec,
        events: list[Event],
        grace_ms: int | None = None,
        thresholds: TimingThresholds | None = None,
    ) -> TurnResult:
        """Replay, heuristics and score in one call."""
        return evaluate_turn(
            self,
            spec,
            events,
            grace_ms=DEFAULT_GRACE_MS if grace_ms is None else grace_ms,
            thresholds=thresholds,
        )
