"""
Games module - One GameModule per game type.

Each module supplies generation, projection, the event fold, the win
condition and the score inputs; the shared engine does the rest.
"""

from __future__ import annotations

from ..engine_core import GameModule
from ..errors import UnknownGameTypeError
from .audio_pattern import AudioPattern
from .beat_match import BeatMatch
from .color_match import ColorMatch
from .drag_sort import DragSort
from .draw_me import DrawMe
from .duck_shoot import DuckShoot
from .emoji_keypad import EmojiKeypad
from .follow_me import FollowMe
from .grid_recall import GridRecall
from .gridlock import Gridlock
from .image_puzzle import ImagePuzzle
from .image_rotate import ImageRotate
from .maze_path import MazePath
from .memory_cards import MemoryCards
from .mental_math import MentalMath
from .number_chain import NumberChain
from .reaction_bars import ReactionBars
from .reaction_time import ReactionTime
from .typing_speed import TypingSpeed
from .visual_diff import VisualDiff
from .whack_a_mole import WhackAMole

GAME_MODULES: dict[str, GameModule] = {
    module.game_type: module
    for module in (
        ImageRotate(),
        ImagePuzzle(),
        MemoryCards(),
        MazePath(),
        EmojiKeypad(),
        ReactionTime(),
        WhackAMole(),
        TypingSpeed(),
        MentalMath(),
        ColorMatch(),
        VisualDiff(),
        AudioPattern(),
        DragSort(),
        FollowMe(),
        DrawMe(),
        DuckShoot(),
        NumberChain(),
        Gridlock(),
        ReactionBars(),
        BeatMatch(),
        GridRecall(),
    )
}


def get_game_module(game_type: str) -> GameModule:
    """Look up the module for `game_type`."""
    try:
        return GAME_MODULES[game_type]
    except KeyError:
        raise UnknownGameTypeError(game_type) from None


__all__ = ["GAME_MODULES", "get_game_module"]
