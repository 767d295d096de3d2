"""
Seeded RNG - Pinned, versioned pseudo-random sequence for generators.

Every generator draws from SeededRandom and nothing else, so a TurnSpec
is a pure function of (seed, config).

Algorithm "sha256-ctr/1":
1. Block n = SHA-256(b"arena-rng/1:" + seed + b":" + str(n)), n = 0, 1, 2, ...
2. Each 32-byte block is split into four big-endian 64-bit words
3. random() = (word >> 11) / 2**53, a float in [0, 1)
4. Derived helpers (randint, choice, shuffle, ...) are defined only in
   terms of random() and are part of the pinned algorithm

Changing any of these steps changes every generated puzzle. Bump
ALGORITHM instead of editing in place.
"""

from __future__ import annotations
import hashlib
import time
import uuid
from typing import Sequence, TypeVar

ALGORITHM = "sha256-ctr/1"

_DOMAIN = b"arena-rng/1:"
_WORDS_PER_BLOCK = 4
_TWO_53 = float(1 << 53)

T = TypeVar("T")


def new_seed(user_id: str, now_ms: int | None = None) -> str:
    """
    Derive a fresh turn seed.

    Mixes the user identity, a random uuid and the current time so that
    seeds never repeat across turns. The result is a 64-char hex string.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    material = f"{user_id}_{uuid.uuid4()}_{now_ms}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class SeededRandom:
    """
    Deterministic random source keyed by a seed string.

    Not thread-safe; create one per generation call.
    """

    def __init__(self, seed: str):
        self.seed = seed
        self._seed_bytes = seed.encode("utf-8")
        self._counter = 0
        self._words: list[int] = []

    def _next_word(self) -> int:
        if not self._words:
            block = hashlib.sha256(
                _DOMAIN + self._seed_bytes + b":" + str(self._counter).encode("ascii")
            ).digest()
            self._counter += 1
            self._words = [
                int.from_bytes(block[i * 8:(i + 1) * 8], "big")
                for i in range(_WORDS_PER_BLOCK)
            ]
        return self._words.pop(0)

    def random(self) -> float:
        """Float in [0, 1)."""
        return (self._next_word() >> 11) / _TWO_53

    def randrange(self, n: int) -> int:
        """Integer in [0, n)."""
        if n <= 0:
            raise ValueError("randrange() needs a positive bound")
        return int(self.random() * n)

    def randint(self, low: int, high: int) -> int:
        """Integer in [low, high], both inclusive."""
        return low + self.randrange(high - low + 1)

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.random()

    def chance(self, probability: float) -> bool:
        return self.random() < probability

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("cannot choose from an empty sequence")
        return items[self.randrange(len(items))]

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Return a shuffled copy (Fisher-Yates, walking down from the end)."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.randrange(i + 1)
            result[i], result[j] = result[j], result[i]
        return result

    def sample(self, items: Sequence[T], k: int) -> list[T]:
        """k distinct items, in draw order."""
        if k > len(items):
            raise ValueError("sample larger than population")
        return self.shuffle(items)[:k]
