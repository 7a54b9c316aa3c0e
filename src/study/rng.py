"""
Deterministic random source for session generation.

Mulberry32 with exact 32-bit arithmetic, seeded from the leading four bytes
of a SHA-256 digest. The hash only derives a seed; it protects nothing.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from typing import TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


def hash_seed(text: str) -> int:
    """Derive a 32-bit seed from the SHA-256 of ``text``."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def serialize_weights(weights: Mapping[str, float]) -> str:
    """
    Compact JSON of a weight map, insertion-ordered.

    Integral values render without a fractional part so 1.0 and 1 hash alike.
    """
    normalized = {
        key: int(value) if float(value).is_integer() else value
        for key, value in weights.items()
    }
    return json.dumps(normalized, separators=(",", ":"), ensure_ascii=False)


class Mulberry32:
    """Small, fast, seedable PRNG producing floats in [0, 1)."""

    def __init__(self, seed: int):
        self._state = seed & _MASK32

    @classmethod
    def from_parts(cls, parts: Sequence[str]) -> Mulberry32:
        return cls(hash_seed("|".join(parts)))

    def random(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        t = self._state
        r = _imul(t ^ (t >> 15), t | 1)
        r ^= (r + _imul(r ^ (r >> 7), r | 61)) & _MASK32
        return ((r ^ (r >> 14)) & _MASK32) / 4294967296

    def randbelow(self, n: int) -> int:
        return int(self.random() * n)

    def choice(self, items: Sequence[T]) -> T:
        return items[self.randbelow(len(items))]

    def shuffled(self, items: Sequence[T]) -> list[T]:
        """Fisher-Yates shuffle into a new list."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.randbelow(i + 1)
            result[i], result[j] = result[j], result[i]
        return result
