"""
API Service - Turn lifecycle between the HTTP layer and the engine.

The service:
1. Generates a turn's spec and hands out only its projection
2. Stamps every event with server time and appends it to the hash chain
3. Enforces the turn state machine and its time windows
4. Runs the validation pipeline once, at completion, and keeps the result

This layer is framework-agnostic (used by FastAPI, the CLI and tests).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import logging

from .models import EventRecorded, GameInfo, TurnCreated, TurnStarted
from ..config import ArenaSettings
from ..engine_core import START, Reason, TurnResult, new_seed, verify_chain
from ..engine_core.replay import RECOVERABLE_ERRORS
from ..errors import (
    InvalidConfigError,
    InvalidEventError,
    TurnExpiredError,
    TurnNotStartedError,
    TurnStateError,
)
from ..games import GAME_MODULES, get_game_module
from ..session import TurnRecord, TurnStatus, TurnStore

logger = logging.getLogger(__name__)


def _short(turn_token: str) -> str:
    return turn_token[:13]


@dataclass
class TurnService:
    """
    Main service for the game client.

    Usage:
        service = TurnService()
        created = service.create_turn("memory_cards", user_id="u1")
        service.start_turn(created.turn_token)
        service.record_event(created.turn_token, "flip", {"card_index": 0})
        result = service.complete_turn(created.turn_token)
    """
    settings: ArenaSettings = field(default_factory=ArenaSettings)
    store: TurnStore | None = None

    def __post_init__(self):
        if self.store is None:
            self.store = TurnStore(max_events=self.settings.max_events)

    # =========================================================================
    # Catalogue
    # =========================================================================

    def list_games(self) -> list[GameInfo]:
        games = []
        for game_type, module in sorted(GAME_MODULES.items()):
            config = module.make_config(self.settings.game_overrides.get(game_type))
            games.append(GameInfo(
                game_type=game_type,
                time_limit_ms=config.time_limit_ms,
                event_types=sorted(module.accepted_events),
            ))
        return games

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_turn(
        self,
        game_type: str,
        user_id: str = "anonymous",
        config: dict[str, Any] | None = None,
    ) -> TurnCreated:
        """Generate a new turn and return its client projection."""
        module = get_game_module(game_type)
        if config and self.settings.env == "production":
            raise InvalidConfigError("Config overrides are disabled", {"game_type": game_type})

        overrides = {**self.settings.game_overrides.get(game_type, {}), **(config or {})}
        now = self.store.clock()
        seed = new_seed(user_id, now)
        try:
            spec = module.generate(seed, module.make_config(overrides))
        except RECOVERABLE_ERRORS as e:
            raise InvalidConfigError(f"Cannot generate {game_type}: {e}", {"game_type": game_type}) from e

        record = self.store.create(user_id, game_type, spec, now)
        logger.info("Created %s turn %s", game_type, _short(record.turn_token))
        return TurnCreated(
            turn_token=record.turn_token,
            game_type=game_type,
            client_spec=module.project(spec),
            expires_at_ms=now + self.settings.start_window_ms,
        )

    def start_turn(self, turn_token: str) -> TurnStarted:
        """Record the start event. Allowed once, within the start window."""
        record = self.store.get(turn_token)
        with record.lock:
            now = self.store.clock()
            if record.status != TurnStatus.PENDING:
                raise TurnStateError(f"Turn is {record.status.value}", {"status": record.status.value})
            if now - record.created_at_ms > self.settings.start_window_ms:
                record.status = TurnStatus.EXPIRED
                raise TurnExpiredError("Turn was not started in time")
            self.store.append(record, START, {}, now)
            record.status = TurnStatus.ACTIVE
            record.started_at_ms = now

        logger.info("Started %s turn %s", record.game_type, _short(turn_token))
        return TurnStarted(
            started=True,
            server_start_time_ms=now,
            time_limit_ms=record.spec.time_limit_ms,
        )

    def record_event(
        self,
        turn_token: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
        client_timestamp_ms: int | None = None,
    ) -> EventRecorded:
        """Append a gameplay event, stamped with server time."""
        record = self.store.get(turn_token)
        module = get_game_module(record.game_type)
        if event_type == START or event_type not in module.accepted_events:
            raise InvalidEventError(
                f"Event type not accepted: {event_type}",
                {"accepted": sorted(module.accepted_events)},
            )

        with record.lock:
            now = self.store.clock()
            if record.status == TurnStatus.PENDING:
                raise TurnNotStartedError("Turn has not been started")
            if record.status != TurnStatus.ACTIVE:
                raise TurnStateError(f"Turn is {record.status.value}", {"status": record.status.value})
            if now - record.started_at_ms > record.spec.time_limit_ms + self.settings.grace_ms:
                raise TurnExpiredError("Time limit exceeded")
            event = self.store.append(record, event_type, payload or {}, now, client_timestamp_ms)
            data = module.acknowledge(record.spec, event, record.events)

        return EventRecorded(
            received=True,
            event_index=event.index,
            server_timestamp_ms=event.server_timestamp_ms,
            data=data,
        )

    def complete_turn(self, turn_token: str) -> TurnResult:
        """
        Validate and score the turn.

        Idempotent: once a result is stored it is returned unchanged.
        If evaluation raises, the turn goes back to ACTIVE with no result
        so that completion can be retried.
        """
        record = self.store.get(turn_token)
        with record.lock:
            if record.result is not None:
                return record.result
            now = self.store.clock()
            if record.status in {TurnStatus.PENDING, TurnStatus.EXPIRED}:
                result = TurnResult.failure(Reason.NO_START_EVENT)
            else:
                record.status = TurnStatus.COMPLETING
                try:
                    result = self._evaluate(record, now)
                except Exception:
                    logger.exception("Evaluation failed for turn %s", _short(turn_token))
                    record.status = TurnStatus.ACTIVE
                    raise
            record.result = result
            record.completed_at_ms = now
            if record.status != TurnStatus.EXPIRED:
                record.status = TurnStatus.COMPLETED

        logger.info(
            "Completed %s turn %s: valid=%s reason=%s score=%s",
            record.game_type,
            _short(turn_token),
            result.valid,
            result.reason.value if result.reason else None,
            result.score,
        )
        return result

    def _evaluate(self, record: TurnRecord, now: int) -> TurnResult:
        module = get_game_module(record.game_type)
        elapsed = now - record.started_at_ms
        if elapsed > record.spec.time_limit_ms + self.settings.completion_grace_ms:
            result = TurnResult.failure(Reason.TIMEOUT, completion_time_ms=elapsed)
        else:
            thresholds = module.thresholds.merged(self.settings.timing_overrides.get(record.game_type))
            result = module.validate(
                record.spec,
                list(record.events),
                grace_ms=self.settings.grace_ms,
                thresholds=thresholds,
            )

        broken_at = verify_chain(record.turn_token, record.events)
        if broken_at is not None:
            logger.warning("Hash chain broken at event %d of turn %s", broken_at, _short(record.turn_token))
            result = result.with_signals(hash_chain_broken=True, hash_chain_broken_at=broken_at)
        return result

    def sweep(self, max_age_seconds: int = 3600) -> tuple[int, int]:
        """Expire unstarted turns and drop old finished ones. Returns (expired, dropped)."""
        now = self.store.clock()
        expired = self.store.expire_stale(now, self.settings.start_window_ms)
        dropped = self.store.cleanup(max_age_seconds, now)
        return len(expired), dropped
