"""
Settings - Host configuration read from the environment.

    ARENA_ENV                    deployment name (default: development)
    ARENA_LOG_LEVEL              logging level for the CLI and server
    ARENA_GRACE_MS               latency allowance on the time limit
    ARENA_COMPLETION_GRACE_MS    allowance before complete() reports timeout
    ARENA_MAX_EVENTS             per-turn event cap
    ARENA_START_WINDOW_SECONDS   how long a created turn may wait for start
    ARENA_GAME_OVERRIDES         JSON: {game_type: {config_key: value}}
    ARENA_TIMING_OVERRIDES       JSON: {game_type: {threshold: value}}
    ALLOWED_ORIGINS              comma-separated CORS origins
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import json
import logging
import os

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_json(name: str) -> dict[str, dict[str, Any]]:
    raw = os.getenv(name)
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed JSON in %s", name)
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring %s: expected a JSON object", name)
        return {}
    return {k: v for k, v in value.items() if isinstance(v, dict)}


@dataclass(frozen=True)
class ArenaSettings:
    env: str = "development"
    log_level: str = "INFO"
    grace_ms: int = 5000
    completion_grace_ms: int = 10000
    max_events: int = 500
    start_window_seconds: int = 60
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    game_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    timing_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def start_window_ms(self) -> int:
        return self.start_window_seconds * 1000

    @classmethod
    def from_env(cls) -> ArenaSettings:
        return cls(
            env=os.getenv("ARENA_ENV", "development"),
            log_level=os.getenv("ARENA_LOG_LEVEL", "INFO").upper(),
            grace_ms=_env_int("ARENA_GRACE_MS", 5000),
            completion_grace_ms=_env_int("ARENA_COMPLETION_GRACE_MS", 10000),
            max_events=_env_int("ARENA_MAX_EVENTS", 500),
            start_window_seconds=_env_int("ARENA_START_WINDOW_SECONDS", 60),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
            game_overrides=_env_json("ARENA_GAME_OVERRIDES"),
            timing_overrides=_env_json("ARENA_TIMING_OVERRIDES"),
        )
