"""
Core domain models for the practice engine.

Design:
- QuestionIndexEntry: read-only catalog metadata for one question
- BlankResult: graded outcome for a single blank
- Attempt: immutable record of one graded submission
- MasteryRecord: rolling competency state per (user, pattern)
- Session: an ordered practice set produced by the session generator
- SessionQuestion: per-question answering detail for a stored session
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

UNSPECIFIED_PATTERN = "__UNSPECIFIED__"

DEFAULT_ALLOWED_CHARS: frozenset[str] = frozenset("-0123456789")


class SessionMode(str, Enum):
    """How the candidate pool for a session is built."""

    TAG = "tag"
    REVIEW = "review"
    DAILY = "daily"


class MasteryStatus(str, Enum):
    """Competency classification for one (user, pattern)."""

    STEADY = "steady"
    PROMOTE = "promote"
    DEMOTE = "demote"
    ACCURATE_BUT_SLOW = "accurate_but_slow"


class StatsGroupBy(str, Enum):
    """Grouping dimension for attempt statistics."""

    PATTERN = "pattern"
    DIFFICULTY = "difficulty"
    TAG = "tag"


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class QuestionIndexEntry:
    """Catalog metadata for a question."""

    question_id: str
    pattern_id: str | None = None
    difficulty: int | None = None
    tags: tuple[str, ...] = ()
    allowed_chars: frozenset[str] | None = None

    @property
    def pattern_key(self) -> str:
        return self.pattern_id or UNSPECIFIED_PATTERN


@dataclass(frozen=True)
class BlankResult:
    """Graded outcome for a single blank."""

    expected: str | None
    actual: str | None
    is_correct: bool

    def to_dict(self) -> dict[str, Any]:
        return {"expected": self.expected, "actual": self.actual, "is_correct": self.is_correct}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BlankResult:
        return cls(
            expected=data.get("expected"),
            actual=data.get("actual"),
            is_correct=bool(data.get("is_correct")),
        )


@dataclass(frozen=True)
class Attempt:
    """
    A graded submission.

    ``overtime`` may be None for records imported without the flag; the
    statistics aggregator derives it from the time budget table.
    """

    user_id: str
    question_id: str
    is_correct: bool
    duration_ms: int
    per_blank: dict[str, BlankResult] = field(default_factory=dict)
    difficulty: int | None = None
    tags: tuple[str, ...] = ()
    pattern_id: str | None = None
    overtime: bool | None = False
    created_at: datetime = field(default_factory=utcnow)
    answers_user: dict[str, Any] = field(default_factory=dict)
    answers_correct: dict[str, str] = field(default_factory=dict)
    id: int | None = None

    @property
    def pattern_key(self) -> str:
        return self.pattern_id or UNSPECIFIED_PATTERN

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.id,
            "user_id": self.user_id,
            "question_id": self.question_id,
            "answers_user": self.answers_user,
            "answers_correct": self.answers_correct,
            "is_correct": self.is_correct,
            "per_blank": {blank: r.to_dict() for blank, r in self.per_blank.items()},
            "duration_ms": self.duration_ms,
            "difficulty": self.difficulty,
            "tags": list(self.tags),
            "pattern_id": self.pattern_id,
            "overtime": self.overtime,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class MasteryRecord:
    """Rolling competency state for one user on one pattern."""

    user_id: str
    pattern_id: str
    accuracy: float
    overtime_rate: float
    consecutive_correct: int
    status: MasteryStatus
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "pattern_id": self.pattern_id,
            "accuracy": self.accuracy,
            "overtime_rate": self.overtime_rate,
            "consecutive_correct": self.consecutive_correct,
            "status": self.status.value,
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Session:
    """A generated practice session."""

    session_id: str
    user_id: str
    mode: SessionMode
    question_ids: tuple[str, ...]
    recommended_difficulty: int
    time_budget: int  # seconds
    tags: tuple[str, ...] = ()
    target_difficulty: int | None = None
    size: int = 0
    explain: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "question_ids": list(self.question_ids),
            "recommended_difficulty": self.recommended_difficulty,
            "time_budget": self.time_budget,
            "explain": self.explain,
        }


@dataclass(frozen=True)
class AnswerGroup:
    """One answer group and the blanks it covers, e.g. "AB" -> A, B."""

    group_id: str
    blanks: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"group_id": self.group_id, "blanks": list(self.blanks)}


@dataclass(frozen=True)
class SessionQuestion:
    """What a client needs to present and answer one session question."""

    question_id: str
    groups: tuple[AnswerGroup, ...]
    allowed_chars: tuple[str, ...]
    pattern_id: str | None
    difficulty: int
    time_budget_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "groups": [group.to_dict() for group in self.groups],
            "allowed_chars": list(self.allowed_chars),
            "pattern_id": self.pattern_id,
            "difficulty": self.difficulty,
            "time_budget_ms": self.time_budget_ms,
        }
