"""
Time budget table by difficulty level.

One immutable table is built from configuration and injected into the
statistics, calibration and session components.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

DEFAULT_SECONDS_BY_DIFFICULTY: Mapping[int, int] = MappingProxyType(
    {1: 60, 2: 90, 3: 120, 4: 180, 5: 240}
)


@dataclass(frozen=True)
class TimeBudgetTable:
    """Seconds allowed per question, keyed by difficulty level."""

    seconds_by_difficulty: Mapping[int, int] = field(
        default_factory=lambda: DEFAULT_SECONDS_BY_DIFFICULTY
    )
    default_seconds: int = 120

    def __post_init__(self):
        # Freeze whatever mapping we were handed
        object.__setattr__(
            self,
            "seconds_by_difficulty",
            MappingProxyType(dict(self.seconds_by_difficulty)),
        )

    def seconds_for(self, difficulty: int | None, fallback: int | None = None) -> int:
        """
        Look up the budget for a difficulty level.

        Args:
            difficulty: Difficulty level, or None if unknown
            fallback: Level to try when ``difficulty`` has no entry

        Returns:
            Budget in seconds
        """
        if difficulty is not None and difficulty in self.seconds_by_difficulty:
            return self.seconds_by_difficulty[difficulty]
        if fallback is not None and fallback in self.seconds_by_difficulty:
            return self.seconds_by_difficulty[fallback]
        return self.default_seconds

    def millis_for(self, difficulty: int | None, fallback: int | None = None) -> int:
        return self.seconds_for(difficulty, fallback) * 1000

    def is_overtime(self, duration_ms: int, difficulty: int | None) -> bool:
        """True if the duration exceeded the budget for this difficulty."""
        return duration_ms > self.millis_for(difficulty)


DEFAULT_TIME_BUDGETS = TimeBudgetTable()
