"""
Practice Engine Models.

SQLAlchemy models for the persisted state:
- Attempts (append-only)
- Mastery state per learner per pattern
- Generated sessions
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.core.models import utcnow


class Base(DeclarativeBase):
    pass


class AttemptRow(Base):
    """One graded submission. Never updated after insert."""

    __tablename__ = "attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    question_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # Answers as submitted and as normalized canonical strings
    answers_user: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    answers_correct: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    per_blank: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[int | None] = mapped_column(Integer)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    pattern_id: Mapped[str | None] = mapped_column(Text)
    overtime: Mapped[bool | None] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_attempts_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<AttemptRow {self.id} {self.user_id}/{self.question_id} correct={self.is_correct}>"


class MasteryRow(Base):
    """Current mastery classification per learner per pattern."""

    __tablename__ = "mastery"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    pattern_id: Mapped[str] = mapped_column(Text, nullable=False)

    # Ratios over the rolling window (0-1 scale)
    accuracy: Mapped[float] = mapped_column(Float, default=0)
    overtime_rate: Mapped[float] = mapped_column(Float, default=0)
    consecutive_correct: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False)  # steady, promote, demote, accurate_but_slow

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint("user_id", "pattern_id", name="uq_mastery_user_pattern"),)


class SessionRow(Base):
    """A generated practice session."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    mode: Mapped[str] = mapped_column(Text, nullable=False)  # tag, review, daily
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    target_difficulty: Mapped[int | None] = mapped_column(Integer)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    question_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    recommended_difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    time_budget: Mapped[int] = mapped_column(Integer, nullable=False)  # seconds
    explain: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<SessionRow {self.session_id} {self.mode} n={len(self.question_ids or [])}>"
