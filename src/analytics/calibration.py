"""
Calibration analysis over the whole attempt corpus.

Flags three kinds of content problems:
- Difficulty adjustment: questions that are much harder or easier than labelled
- Pattern split: patterns bundling questions of very different real difficulty
- Time budget adjustment: questions whose p75 solve time exceeds the budget

The analysis is gated on corpus size so sparse signal is never acted on.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from loguru import logger

from src.analytics.stats import QuestionIndex, percentile
from src.core.models import Attempt
from src.core.time_budget import DEFAULT_TIME_BUDGETS, TimeBudgetTable


@dataclass
class CalibrationConfig:
    """Thresholds for the calibration analysis."""

    min_eligible_attempts: int = 100
    min_users: int = 30
    # Difficulty adjustment
    difficulty_min_attempts: int = 20
    upgrade_max_accuracy: float = 0.5
    upgrade_min_overtime: float = 0.4
    downgrade_min_accuracy: float = 0.9
    downgrade_max_overtime: float = 0.1
    # Pattern split
    pattern_min_attempts: int = 50
    pattern_min_questions: int = 2
    pattern_max_variance: float = 0.2
    # Time budget
    time_min_durations: int = 10
    time_budget_tolerance: float = 1.1
    default_difficulty: int = 3


@dataclass
class DifficultyAdjustment:
    question_id: str
    action: str  # 'upgrade' or 'downgrade'
    accuracy: float
    overtime_rate: float


@dataclass
class PatternSplit:
    pattern_id: str
    variance: float


@dataclass
class TimeBudgetAdjustment:
    question_id: str
    p75_duration: int
    time_budget: int  # seconds


@dataclass
class CalibrationReport:
    """Result of one calibration run."""

    eligible_attempts: int
    eligible_users: int
    difficulty_adjustment_candidates: list[DifficultyAdjustment] = field(default_factory=list)
    pattern_split_candidates: list[PatternSplit] = field(default_factory=list)
    time_budget_adjustment_candidates: list[TimeBudgetAdjustment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _QuestionTally:
    total: int = 0
    correct: int = 0
    overtime: int = 0
    durations: list[int] = field(default_factory=list)


@dataclass
class _PatternTally:
    total: int = 0
    questions: dict[str, _QuestionTally] = field(default_factory=dict)


class CalibrationAnalyzer:
    """Batch, read-only calibration over all users' attempts."""

    def __init__(
        self,
        config: CalibrationConfig | None = None,
        time_budgets: TimeBudgetTable = DEFAULT_TIME_BUDGETS,
    ):
        self.config = config or CalibrationConfig()
        self.time_budgets = time_budgets

    @staticmethod
    def _tally_questions(attempts: Sequence[Attempt]) -> dict[str, _QuestionTally]:
        tallies: dict[str, _QuestionTally] = {}
        for attempt in attempts:
            entry = tallies.setdefault(attempt.question_id, _QuestionTally())
            entry.total += 1
            if attempt.is_correct:
                entry.correct += 1
            if attempt.overtime:
                entry.overtime += 1
            if attempt.is_correct and not attempt.overtime:
                entry.durations.append(attempt.duration_ms)
        return tallies

    @staticmethod
    def _tally_patterns(attempts: Sequence[Attempt]) -> dict[str, _PatternTally]:
        tallies: dict[str, _PatternTally] = {}
        for attempt in attempts:
            entry = tallies.setdefault(attempt.pattern_key, _PatternTally())
            entry.total += 1
            question = entry.questions.setdefault(attempt.question_id, _QuestionTally())
            question.total += 1
            if attempt.is_correct:
                question.correct += 1
        return tallies

    def difficulty_candidates(
        self, questions: dict[str, _QuestionTally]
    ) -> list[DifficultyAdjustment]:
        cfg = self.config
        candidates = []
        for question_id, stats in questions.items():
            if stats.total < cfg.difficulty_min_attempts:
                continue
            accuracy = stats.correct / stats.total
            overtime_rate = stats.overtime / stats.total
            if accuracy < cfg.upgrade_max_accuracy and overtime_rate > cfg.upgrade_min_overtime:
                action = "upgrade"
            elif accuracy > cfg.downgrade_min_accuracy and overtime_rate < cfg.downgrade_max_overtime:
                action = "downgrade"
            else:
                continue
            candidates.append(DifficultyAdjustment(question_id, action, accuracy, overtime_rate))
        return candidates

    def pattern_split_candidates(self, patterns: dict[str, _PatternTally]) -> list[PatternSplit]:
        cfg = self.config
        candidates = []
        for pattern_id, stats in patterns.items():
            if stats.total < cfg.pattern_min_attempts:
                continue
            rates = [q.correct / q.total for q in stats.questions.values() if q.total > 0]
            if len(rates) < cfg.pattern_min_questions:
                continue
            mean = sum(rates) / len(rates)
            variance = sum((r - mean) ** 2 for r in rates) / len(rates)
            if variance > cfg.pattern_max_variance:
                candidates.append(PatternSplit(pattern_id, round(variance, 4)))
        return candidates

    def time_budget_candidates(
        self,
        questions: dict[str, _QuestionTally],
        catalog: QuestionIndex | None,
    ) -> list[TimeBudgetAdjustment]:
        cfg = self.config
        candidates = []
        for question_id, stats in questions.items():
            if len(stats.durations) < cfg.time_min_durations:
                continue
            entry = catalog.get_question_index(question_id) if catalog else None
            difficulty = (entry.difficulty if entry else None) or cfg.default_difficulty
            budget = self.time_budgets.seconds_for(difficulty)
            p75 = percentile(stats.durations, 0.75)
            if p75 and p75 > budget * 1000 * cfg.time_budget_tolerance:
                candidates.append(TimeBudgetAdjustment(question_id, int(p75), budget))
        return candidates

    def analyze(
        self,
        attempts: Sequence[Attempt],
        catalog: QuestionIndex | None = None,
    ) -> CalibrationReport:
        """
        Run the calibration analysis.

        Args:
            attempts: Every user's attempts (an eventually-consistent snapshot)
            catalog: Question index for difficulty lookups

        Returns:
            CalibrationReport; candidate lists stay empty below the gate
        """
        cfg = self.config
        users = {a.user_id for a in attempts}
        eligible = sum(1 for a in attempts if a.is_correct and not a.overtime)
        report = CalibrationReport(eligible_attempts=eligible, eligible_users=len(users))

        if eligible < cfg.min_eligible_attempts or len(users) < cfg.min_users:
            logger.info(
                f"Calibration gated: {eligible} eligible attempts, {len(users)} users "
                f"(need {cfg.min_eligible_attempts}/{cfg.min_users})"
            )
            return report

        questions = self._tally_questions(attempts)
        patterns = self._tally_patterns(attempts)
        report.difficulty_adjustment_candidates = self.difficulty_candidates(questions)
        report.pattern_split_candidates = self.pattern_split_candidates(patterns)
        report.time_budget_adjustment_candidates = self.time_budget_candidates(questions, catalog)

        logger.info(
            f"Calibration flagged {len(report.difficulty_adjustment_candidates)} difficulty, "
            f"{len(report.pattern_split_candidates)} pattern-split and "
            f"{len(report.time_budget_adjustment_candidates)} time-budget candidates"
        )
        return report
