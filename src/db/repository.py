"""
Attempt Repository.

Persistence contract for attempts, mastery records and sessions, plus the
SQLAlchemy implementation. Rows are converted to the frozen domain
dataclasses at this boundary; nothing above it sees ORM objects.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session as OrmSession
from sqlalchemy.orm import sessionmaker

from src.core.models import Attempt, BlankResult, MasteryRecord, MasteryStatus, Session, SessionMode
from src.db.database import session_scope
from src.db.models import AttemptRow, MasteryRow, SessionRow


class AttemptRepository(Protocol):
    def list_attempts_by_user(self, user_id: str) -> list[Attempt]: ...

    def list_attempts_all(self) -> list[Attempt]: ...

    def insert_attempt(self, attempt: Attempt) -> int: ...

    def upsert_mastery(self, record: MasteryRecord) -> None: ...

    def list_mastery_by_user(self, user_id: str) -> list[MasteryRecord]: ...

    def insert_session(self, session: Session) -> Session: ...

    def get_session(self, session_id: str) -> Session | None: ...


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def attempt_from_row(row: AttemptRow) -> Attempt:
    return Attempt(
        id=row.id,
        user_id=row.user_id,
        question_id=row.question_id,
        answers_user=dict(row.answers_user or {}),
        answers_correct=dict(row.answers_correct or {}),
        per_blank={blank: BlankResult.from_dict(r) for blank, r in (row.per_blank or {}).items()},
        is_correct=row.is_correct,
        duration_ms=row.duration_ms,
        difficulty=row.difficulty,
        tags=tuple(row.tags or ()),
        pattern_id=row.pattern_id,
        overtime=row.overtime,
        created_at=_aware(row.created_at),
    )


def attempt_to_row(attempt: Attempt) -> AttemptRow:
    return AttemptRow(
        user_id=attempt.user_id,
        question_id=attempt.question_id,
        answers_user=dict(attempt.answers_user),
        answers_correct=dict(attempt.answers_correct),
        per_blank={blank: r.to_dict() for blank, r in attempt.per_blank.items()},
        is_correct=attempt.is_correct,
        duration_ms=attempt.duration_ms,
        difficulty=attempt.difficulty,
        tags=list(attempt.tags),
        pattern_id=attempt.pattern_id,
        overtime=attempt.overtime,
        created_at=attempt.created_at,
    )


def mastery_from_row(row: MasteryRow) -> MasteryRecord:
    return MasteryRecord(
        user_id=row.user_id,
        pattern_id=row.pattern_id,
        accuracy=row.accuracy,
        overtime_rate=row.overtime_rate,
        consecutive_correct=row.consecutive_correct,
        status=MasteryStatus(row.status),
        updated_at=_aware(row.updated_at),
    )


def session_from_row(row: SessionRow) -> Session:
    return Session(
        session_id=row.session_id,
        user_id=row.user_id,
        mode=SessionMode(row.mode),
        tags=tuple(row.tags or ()),
        target_difficulty=row.target_difficulty,
        size=row.size,
        question_ids=tuple(row.question_ids or ()),
        recommended_difficulty=row.recommended_difficulty,
        time_budget=row.time_budget,
        explain=dict(row.explain or {}),
        created_at=_aware(row.created_at),
    )


class SqlAttemptRepository:
    """AttemptRepository backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[OrmSession] | None = None):
        self.session_factory = session_factory

    def list_attempts_by_user(self, user_id: str) -> list[Attempt]:
        """The user's attempts, oldest first."""
        with session_scope(self.session_factory) as db:
            rows = db.scalars(
                select(AttemptRow).where(AttemptRow.user_id == user_id).order_by(AttemptRow.id)
            ).all()
            return [attempt_from_row(row) for row in rows]

    def list_attempts_all(self) -> list[Attempt]:
        with session_scope(self.session_factory) as db:
            rows = db.scalars(select(AttemptRow).order_by(AttemptRow.id)).all()
            return [attempt_from_row(row) for row in rows]

    def insert_attempt(self, attempt: Attempt) -> int:
        with session_scope(self.session_factory) as db:
            row = attempt_to_row(attempt)
            db.add(row)
            db.flush()
            logger.debug(f"Inserted attempt {row.id} for {attempt.user_id}/{attempt.question_id}")
            return row.id

    def upsert_mastery(self, record: MasteryRecord) -> None:
        """Insert or overwrite the record for (user_id, pattern_id); last write wins."""
        with session_scope(self.session_factory) as db:
            row = db.scalars(
                select(MasteryRow).where(
                    MasteryRow.user_id == record.user_id,
                    MasteryRow.pattern_id == record.pattern_id,
                )
            ).first()
            if row is None:
                row = MasteryRow(user_id=record.user_id, pattern_id=record.pattern_id)
                db.add(row)
            row.accuracy = record.accuracy
            row.overtime_rate = record.overtime_rate
            row.consecutive_correct = record.consecutive_correct
            row.status = record.status.value
            row.updated_at = record.updated_at

    def list_mastery_by_user(self, user_id: str) -> list[MasteryRecord]:
        with session_scope(self.session_factory) as db:
            rows = db.scalars(
                select(MasteryRow).where(MasteryRow.user_id == user_id).order_by(MasteryRow.pattern_id)
            ).all()
            return [mastery_from_row(row) for row in rows]

    def insert_session(self, session: Session) -> Session:
        with session_scope(self.session_factory) as db:
            row = SessionRow(
                session_id=session.session_id,
                user_id=session.user_id,
                mode=session.mode.value,
                tags=list(session.tags),
                target_difficulty=session.target_difficulty,
                size=session.size,
                question_ids=list(session.question_ids),
                recommended_difficulty=session.recommended_difficulty,
                time_budget=session.time_budget,
                explain=dict(session.explain),
                created_at=session.created_at,
            )
            db.add(row)
            db.flush()
            return session_from_row(row)

    def get_session(self, session_id: str) -> Session | None:
        with session_scope(self.session_factory) as db:
            row = db.get(SessionRow, session_id)
            return session_from_row(row) if row else None
