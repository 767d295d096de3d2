"""
Arena - Turn Validation & Scoring Engine

A server-authoritative engine for the daily mini-game arena.
For each turn the engine:
- Generates a deterministic puzzle from a seed
- Records server-timestamped, hash-linked gameplay events
- Replays them to decide whether the turn was finished
- Rejects implausibly fast or regular input
- Scores valid turns on quality and speed
"""

__version__ = "0.1.0"
