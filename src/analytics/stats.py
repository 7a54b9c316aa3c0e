"""
Attempt statistics grouped by pattern, difficulty or tag.

Timing figures (median, p75) only use attempts that were both correct and
within budget, so give-ups and guesses do not skew them.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

from loguru import logger

from src.core.models import UNSPECIFIED_PATTERN, Attempt, QuestionIndexEntry, StatsGroupBy, utcnow
from src.core.time_budget import DEFAULT_TIME_BUDGETS, TimeBudgetTable

_DIGITS = frozenset("0123456789")


class QuestionIndex(Protocol):
    def get_question_index(self, question_id: str) -> QuestionIndexEntry | None: ...


def percentile(values: Iterable[float], p: float) -> float | None:
    """
    Nearest-rank percentile.

    Sort ascending and take index ceil(p * n) - 1, clamped to [0, n - 1].
    Returns None for an empty input.
    """
    ordered = sorted(values)
    if not ordered:
        return None
    index = math.ceil(p * len(ordered)) - 1
    return ordered[max(0, min(index, len(ordered) - 1))]


def median(values: Iterable[int]) -> int | None:
    """Median; an even count averages the middle pair, rounding half up."""
    ordered = sorted(values)
    if not ordered:
        return None
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return math.floor((ordered[mid - 1] + ordered[mid]) / 2 + 0.5)
    return ordered[mid]


def count_sign_errors(attempt: Attempt) -> tuple[int, int]:
    """
    Count blanks where '-' was confused with a digit in either direction.

    Returns:
        Tuple of (sign_errors, blanks_inspected)
    """
    sign_errors = 0
    blanks = 0
    for entry in attempt.per_blank.values():
        blanks += 1
        expected, actual = entry.expected, entry.actual
        if expected == "-" and actual in _DIGITS:
            sign_errors += 1
        elif expected in _DIGITS and actual == "-":
            sign_errors += 1
    return sign_errors, blanks


@dataclass
class GroupStats:
    """Accumulated statistics for one group."""

    attempts: int = 0
    correct: int = 0
    overtime: int = 0
    sign_errors: int = 0
    sign_blanks: int = 0
    durations: list[int] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempts if self.attempts else 0.0

    @property
    def overtime_rate(self) -> float:
        return self.overtime / self.attempts if self.attempts else 0.0

    @property
    def sign_error_rate(self) -> float:
        return self.sign_errors / self.sign_blanks if self.sign_blanks else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "accuracy": round(self.accuracy, 4),
            "median_duration": median(self.durations),
            "p75_duration": percentile(self.durations, 0.75),
            "overtime_rate": round(self.overtime_rate, 4),
            "sign_error_rate": round(self.sign_error_rate, 4),
        }


def group_keys(attempt: Attempt, group_by: StatsGroupBy) -> list[str]:
    """Keys an attempt contributes to; tag grouping is multi-valued."""
    if group_by is StatsGroupBy.PATTERN:
        return [attempt.pattern_id or UNSPECIFIED_PATTERN]
    if group_by is StatsGroupBy.DIFFICULTY:
        return [str(attempt.difficulty) if attempt.difficulty is not None else "unknown"]
    return [tag for tag in attempt.tags if tag]


def resolve_overtime(
    attempt: Attempt,
    catalog: QuestionIndex | None,
    time_budgets: TimeBudgetTable,
) -> bool:
    """Use the recorded flag, or derive it from the question's budget."""
    if attempt.overtime is not None:
        return attempt.overtime
    entry = catalog.get_question_index(attempt.question_id) if catalog else None
    difficulty = entry.difficulty if entry and entry.difficulty else attempt.difficulty
    return time_budgets.is_overtime(attempt.duration_ms, difficulty)


def filter_window(
    attempts: Iterable[Attempt],
    window_days: float | None,
    now: datetime | None = None,
) -> list[Attempt]:
    """Keep attempts created within ``window_days`` of ``now``."""
    if not window_days:
        return list(attempts)
    now = now or utcnow()
    horizon = timedelta(days=window_days)
    return [a for a in attempts if now - a.created_at <= horizon]


def compute_stats(
    attempts: Sequence[Attempt],
    group_by: StatsGroupBy | str,
    catalog: QuestionIndex | None = None,
    window_days: float | None = None,
    now: datetime | None = None,
    time_budgets: TimeBudgetTable = DEFAULT_TIME_BUDGETS,
) -> dict[str, dict[str, Any]]:
    """
    Compute grouped statistics over an attempt list.

    Args:
        attempts: Attempts to aggregate
        group_by: pattern, difficulty or tag
        catalog: Question index used to derive missing overtime flags
        window_days: Optional age window in days
        now: Reference time for the window (defaults to current UTC time)
        time_budgets: Budget table for overtime derivation

    Returns:
        Mapping of group key -> statistics dict; empty groups are omitted
    """
    group_by = StatsGroupBy(group_by)
    filtered = filter_window(attempts, window_days, now)

    groups: dict[str, GroupStats] = {}
    for attempt in filtered:
        overtime = resolve_overtime(attempt, catalog, time_budgets)
        sign_errors, sign_blanks = count_sign_errors(attempt)
        for key in group_keys(attempt, group_by):
            entry = groups.setdefault(key, GroupStats())
            entry.attempts += 1
            if attempt.is_correct:
                entry.correct += 1
            if overtime:
                entry.overtime += 1
            if attempt.is_correct and not overtime:
                entry.durations.append(attempt.duration_ms)
            entry.sign_errors += sign_errors
            entry.sign_blanks += sign_blanks

    logger.debug(
        f"Computed {group_by.value} stats: {len(filtered)}/{len(attempts)} attempts "
        f"in window, {len(groups)} groups"
    )
    return {key: entry.to_dict() for key, entry in groups.items()}


def compute_totals(attempts: Sequence[Attempt]) -> dict[str, Any]:
    """Corpus-wide headline figures."""
    total = len(attempts)
    correct = sum(1 for a in attempts if a.is_correct)
    overtime = sum(1 for a in attempts if a.overtime)
    return {
        "attempts": total,
        "accuracy": round(correct / total, 4) if total else 0,
        "overtime_rate": round(overtime / total, 4) if total else 0,
        "active_users": len({a.user_id for a in attempts}),
    }
