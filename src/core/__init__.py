"""
Core Module - Shared domain models and interfaces.

Components:
- models: Question index entries, attempts, mastery records, sessions
- answers: Tagged answer values and the single extraction function
- errors: PracticeError taxonomy with stable codes
- time_budget: Immutable seconds-per-difficulty table

Design Principle:
Engines (grading, learning, analytics, study) import from src/core/ rather
than defining their own record types.
"""

from src.core.errors import (
    DataIntegrityError,
    GenerationError,
    NotFoundError,
    PracticeError,
    ValidationError,
)
from src.core.models import (
    UNSPECIFIED_PATTERN,
    AnswerGroup,
    Attempt,
    BlankResult,
    MasteryRecord,
    MasteryStatus,
    QuestionIndexEntry,
    Session,
    SessionMode,
    SessionQuestion,
    StatsGroupBy,
)
from src.core.time_budget import DEFAULT_TIME_BUDGETS, TimeBudgetTable

__all__ = [
    "UNSPECIFIED_PATTERN",
    "DEFAULT_TIME_BUDGETS",
    "AnswerGroup",
    "Attempt",
    "BlankResult",
    "DataIntegrityError",
    "GenerationError",
    "MasteryRecord",
    "MasteryStatus",
    "NotFoundError",
    "PracticeError",
    "QuestionIndexEntry",
    "Session",
    "SessionMode",
    "SessionQuestion",
    "StatsGroupBy",
    "TimeBudgetTable",
    "ValidationError",
]
