"""
Mastery Tracker for question patterns.

Classifies a learner's competency on one pattern from their most recent
attempts in that pattern:

- promote: accurate, fast, and on a correct streak
- demote: inaccurate or chronically over time
- accurate_but_slow: accurate but often over time
- steady: everything else

The record is recomputed wholesale after each new attempt in the pattern.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from loguru import logger

from src.core.models import Attempt, MasteryRecord, MasteryStatus, utcnow


class MasteryTracker:
    """
    Rolling-window competency classifier.

    Thresholds (evaluated in order, first match wins):
    - Promote: accuracy >= 0.8 AND overtime <= 0.2 AND streak >= 3
    - Demote: accuracy <= 0.5 OR overtime >= 0.6
    - Accurate but slow: accuracy >= 0.8 AND overtime > 0.2
    """

    def __init__(
        self,
        window_size: int = 10,
        promote_min_accuracy: float = 0.8,
        promote_max_overtime: float = 0.2,
        promote_min_streak: int = 3,
        demote_max_accuracy: float = 0.5,
        demote_min_overtime: float = 0.6,
    ):
        """
        Initialize tracker with configurable thresholds.

        Args:
            window_size: Number of trailing attempts considered (default 10)
            promote_min_accuracy: Accuracy needed for promotion (default 80%)
            promote_max_overtime: Highest overtime rate allowing promotion (default 20%)
            promote_min_streak: Consecutive correct answers needed (default 3)
            demote_max_accuracy: Accuracy at or below this demotes (default 50%)
            demote_min_overtime: Overtime rate at or above this demotes (default 60%)
        """
        self.window_size = window_size
        self.promote_min_accuracy = promote_min_accuracy
        self.promote_max_overtime = promote_max_overtime
        self.promote_min_streak = promote_min_streak
        self.demote_max_accuracy = demote_max_accuracy
        self.demote_min_overtime = demote_min_overtime

    def recent_window(self, attempts: Sequence[Attempt], pattern_id: str) -> list[Attempt]:
        """Trailing attempts for one pattern, oldest first, at most ``window_size``."""
        relevant = [a for a in attempts if a.pattern_id == pattern_id]
        return relevant[-self.window_size:] if self.window_size > 0 else []

    @staticmethod
    def consecutive_correct(window: Sequence[Attempt]) -> int:
        """Count correct attempts from the most recent backward."""
        streak = 0
        for attempt in reversed(window):
            if not attempt.is_correct:
                break
            streak += 1
        return streak

    def classify(
        self,
        accuracy: float,
        overtime_rate: float,
        consecutive_correct: int,
    ) -> MasteryStatus:
        if (
            accuracy >= self.promote_min_accuracy
            and overtime_rate <= self.promote_max_overtime
            and consecutive_correct >= self.promote_min_streak
        ):
            return MasteryStatus.PROMOTE
        if accuracy <= self.demote_max_accuracy or overtime_rate >= self.demote_min_overtime:
            return MasteryStatus.DEMOTE
        if accuracy >= self.promote_min_accuracy and overtime_rate > self.promote_max_overtime:
            return MasteryStatus.ACCURATE_BUT_SLOW
        return MasteryStatus.STEADY

    def compute(
        self,
        attempts: Sequence[Attempt],
        pattern_id: str,
        user_id: str,
        now: datetime | None = None,
    ) -> MasteryRecord | None:
        """
        Compute the mastery record for one (user, pattern).

        Args:
            attempts: The user's attempt history, oldest first
            pattern_id: Pattern to evaluate
            user_id: Owner of the history
            now: Timestamp for ``updated_at`` (defaults to current UTC time)

        Returns:
            MasteryRecord, or None if the user has no attempts in the pattern
        """
        window = self.recent_window(attempts, pattern_id)
        if not window:
            return None

        correct = sum(1 for a in window if a.is_correct)
        overtime = sum(1 for a in window if a.overtime)
        accuracy = correct / len(window)
        overtime_rate = overtime / len(window)
        streak = self.consecutive_correct(window)
        status = self.classify(accuracy, overtime_rate, streak)

        logger.debug(
            f"Mastery {user_id}/{pattern_id}: window={len(window)} "
            f"accuracy={accuracy:.2f} overtime={overtime_rate:.2f} streak={streak} -> {status.value}"
        )

        return MasteryRecord(
            user_id=user_id,
            pattern_id=pattern_id,
            accuracy=round(accuracy, 4),
            overtime_rate=round(overtime_rate, 4),
            consecutive_correct=streak,
            status=status,
            updated_at=now or utcnow(),
        )
