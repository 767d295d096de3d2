"""
API Module - Game client interface.

Exposes the turn engine via REST API.
The game client:
1. Lists the available games
2. Creates a turn and receives the public puzzle
3. Starts the turn and sends each gameplay event
4. Completes the turn and receives its validated score

All state is turn-scoped and held in memory.
"""

from .models import (
    TurnCreated,
    TurnStarted,
    EventRecorded,
    GameInfo,
)
from .service import TurnService
from .app import create_app

__all__ = [
    # Results
    "TurnCreated",
    "TurnStarted",
    "EventRecorded",
    "GameInfo",
    # Service
    "TurnService",
    "create_app",
]
