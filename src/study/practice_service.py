"""
Practice Service.

Request-layer boundary over the catalog, the attempt repository and the
engines:
- Submit and grade an attempt, then refresh mastery for its pattern
- Generate, persist and fetch practice sessions
- Per-user statistics and mastery
- Corpus calibration and overview figures

Requests are validated with pydantic; every failure surfaces as a
PracticeError carrying a stable code.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from src.analytics.calibration import CalibrationAnalyzer, CalibrationReport
from src.analytics.stats import compute_stats, compute_totals
from src.content.catalog import ContentCatalog
from src.core.errors import DataIntegrityError, NotFoundError, ValidationError
from src.core.models import (
    DEFAULT_ALLOWED_CHARS,
    AnswerGroup,
    Attempt,
    MasteryRecord,
    Session,
    SessionMode,
    SessionQuestion,
    StatsGroupBy,
    utcnow,
)
from src.core.time_budget import DEFAULT_TIME_BUDGETS, TimeBudgetTable
from src.db.repository import AttemptRepository
from src.grading.grader import grade_attempt, normalize_answers
from src.learning.mastery_tracker import MasteryTracker
from src.study.session_generator import SessionConfig, SessionGenerator


# ========================================
# Request models
# ========================================


class SubmitAttemptRequest(BaseModel):
    question_id: StrictStr = Field(..., min_length=1, description="Question being answered")
    answers_user: Any = Field(None, description="Group key -> submitted string")
    duration_ms: StrictInt = Field(..., ge=0, description="Time spent in milliseconds")


class GenerateSessionRequest(BaseModel):
    mode: SessionMode
    size: StrictInt = Field(..., gt=0)
    tags: list[StrictStr] | None = Field(None, validate_default=True)
    target_difficulty: StrictInt | None = Field(None, ge=1, le=5)

    @field_validator("tags")
    @classmethod
    def _tags_for_tag_mode(cls, value: list[str] | None, info: ValidationInfo) -> list[str]:
        if info.data.get("mode") is SessionMode.TAG and not value:
            raise ValueError("tag mode requires at least one tag")
        return value or []


class StatsRequest(BaseModel):
    group_by: StatsGroupBy
    window_days: float | None = Field(None, gt=0, allow_inf_nan=False)


_FIELD_CODES = {
    "question_id": "QUESTION_ID_REQUIRED",
    "duration_ms": "DURATION_MS_INVALID",
    "mode": "INVALID_MODE",
    "size": "INVALID_SIZE",
    "tags": "TAGS_REQUIRED",
    "target_difficulty": "INVALID_TARGET_DIFFICULTY",
    "group_by": "INVALID_GROUP_BY",
    "window_days": "INVALID_WINDOW_DAYS",
}


def parse_request(model: type[BaseModel], **data: Any) -> Any:
    """
    Validate request data, mapping the first failing field to its error code.

    Raises:
        ValidationError: With the field's code (e.g. INVALID_SIZE)
    """
    try:
        return model(**data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = first["loc"][0] if first["loc"] else None
        code = _FIELD_CODES.get(str(field), "INVALID_REQUEST")
        raise ValidationError(f"{field}: {first['msg']}", code=code) from e


# ========================================
# Service
# ========================================


class PracticeService:
    """High-level practice operations for the CLI and other front ends."""

    def __init__(
        self,
        catalog: ContentCatalog,
        repository: AttemptRepository,
        time_budgets: TimeBudgetTable = DEFAULT_TIME_BUDGETS,
        session_config: SessionConfig | None = None,
        mastery_tracker: MasteryTracker | None = None,
        calibration: CalibrationAnalyzer | None = None,
        clock: Callable[[], datetime] = utcnow,
        default_size: int = 10,
    ):
        self.catalog = catalog
        self.repository = repository
        self.time_budgets = time_budgets
        self.session_config = session_config or SessionConfig()
        self.mastery_tracker = mastery_tracker or MasteryTracker()
        self.calibration = calibration or CalibrationAnalyzer(time_budgets=time_budgets)
        self.generator = SessionGenerator(catalog, time_budgets, self.session_config)
        self.clock = clock
        self.default_size = default_size

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def submit_attempt(
        self,
        user_id: str,
        question_id: Any,
        answers_user: Any,
        duration_ms: Any,
    ) -> Attempt:
        """
        Grade and persist one attempt.

        Args:
            user_id: Submitting learner
            question_id: Question being answered
            answers_user: Group key -> submitted string
            duration_ms: Non-negative integer milliseconds

        Returns:
            The stored Attempt, with its id assigned

        Raises:
            ValidationError: Bad request shape, or INVALID_ANSWER with grading issues
            NotFoundError: QUESTION_NOT_FOUND
            DataIntegrityError: ANSWER_NOT_AVAILABLE
        """
        request = parse_request(
            SubmitAttemptRequest,
            question_id=question_id,
            answers_user=answers_user,
            duration_ms=duration_ms,
        )

        entry = self.catalog.get_question_index(request.question_id)
        if entry is None:
            raise NotFoundError(f"Unknown question {request.question_id}", code="QUESTION_NOT_FOUND")

        canonical = self.catalog.get_answer_groups(request.question_id)
        if canonical is None:
            logger.warning(f"No canonical answers for {request.question_id}")
            raise DataIntegrityError(f"No canonical answers for {request.question_id}")

        grade = grade_attempt(canonical, request.answers_user, entry.allowed_chars)
        if not grade.ok:
            logger.warning(
                f"Rejected submission from {user_id} for {request.question_id}: "
                f"{', '.join(issue.code for issue in grade.errors)}"
            )
            raise ValidationError(
                "Submitted answers failed validation",
                details=[issue.to_dict() for issue in grade.errors],
            )

        budget_ms = self.time_budgets.millis_for(entry.difficulty, fallback=self.session_config.default_difficulty)
        now = self.clock()
        attempt = Attempt(
            user_id=user_id,
            question_id=request.question_id,
            answers_user=dict(request.answers_user),
            answers_correct=normalize_answers(canonical),
            is_correct=grade.is_correct,
            per_blank=grade.per_blank,
            duration_ms=request.duration_ms,
            difficulty=entry.difficulty,
            tags=entry.tags,
            pattern_id=entry.pattern_id,
            overtime=request.duration_ms > budget_ms,
            created_at=now,
        )
        attempt = replace(attempt, id=self.repository.insert_attempt(attempt))
        logger.info(
            f"Attempt {attempt.id}: {user_id} {request.question_id} "
            f"correct={attempt.is_correct} overtime={attempt.overtime}"
        )

        if entry.pattern_id:
            history = self.repository.list_attempts_by_user(user_id)
            record = self.mastery_tracker.compute(history, entry.pattern_id, user_id, now=now)
            if record is not None:
                self.repository.upsert_mastery(record)

        return attempt

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def generate_session(
        self,
        user_id: str,
        mode: Any,
        tags: Any = None,
        target_difficulty: Any = None,
        size: Any = None,
    ) -> Session:
        """
        Generate and persist a session.

        ``size`` defaults to the configured session size when omitted.

        Raises:
            ValidationError: INVALID_MODE, INVALID_SIZE, TAGS_REQUIRED or
                INVALID_TARGET_DIFFICULTY
            GenerationError: NO_CANDIDATES
        """
        request = parse_request(
            GenerateSessionRequest,
            mode=mode,
            size=self.default_size if size is None else size,
            tags=tags,
            target_difficulty=target_difficulty,
        )
        now = self.clock()
        history = self.repository.list_attempts_by_user(user_id)
        generated = self.generator.generate(
            mode=request.mode,
            tags=request.tags,
            target_difficulty=request.target_difficulty,
            size=request.size,
            user_id=user_id,
            attempts=history,
            today=now.date(),
        )
        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            mode=generated.mode,
            tags=tuple(request.tags),
            target_difficulty=request.target_difficulty,
            size=request.size,
            question_ids=tuple(generated.question_ids),
            recommended_difficulty=generated.recommended_difficulty,
            time_budget=generated.time_budget,
            explain=generated.explain,
            created_at=now,
        )
        return self.repository.insert_session(session)

    def get_session(self, user_id: str, session_id: str) -> Session:
        """Fetch a session owned by ``user_id``; other users' sessions are not found."""
        session = self.repository.get_session(session_id)
        if session is None or session.user_id != user_id:
            raise NotFoundError(f"Session {session_id} not found", code="SESSION_NOT_FOUND")
        return session

    def get_session_questions(self, session: Session) -> list[SessionQuestion]:
        """
        Answering detail for each question of a session, in session order.

        Questions no longer in the catalog are skipped. Unknown difficulty
        falls back to the session's recommended difficulty.
        """
        questions = []
        for question_id in session.question_ids:
            entry = self.catalog.get_question_index(question_id)
            if entry is None:
                continue
            groups = self.catalog.get_answer_groups(question_id) or {}
            difficulty = entry.difficulty or session.recommended_difficulty
            questions.append(
                SessionQuestion(
                    question_id=question_id,
                    groups=tuple(AnswerGroup(key, tuple(key)) for key in groups),
                    allowed_chars=tuple(sorted(entry.allowed_chars or DEFAULT_ALLOWED_CHARS)),
                    pattern_id=entry.pattern_id,
                    difficulty=difficulty,
                    time_budget_ms=self.time_budgets.millis_for(
                        difficulty, fallback=session.recommended_difficulty
                    ),
                )
            )
        return questions

    def get_session_detail(self, user_id: str, session_id: str) -> dict[str, Any]:
        """Stored session plus per-question answering detail."""
        session = self.get_session(user_id, session_id)
        return {
            **session.to_dict(),
            "mode": session.mode.value,
            "questions": [question.to_dict() for question in self.get_session_questions(session)],
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_stats(self, user_id: str, group_by: Any, window_days: Any = None) -> dict[str, Any]:
        request = parse_request(StatsRequest, group_by=group_by, window_days=window_days)
        attempts = self.repository.list_attempts_by_user(user_id)
        stats = compute_stats(
            attempts,
            request.group_by,
            catalog=self.catalog,
            window_days=request.window_days,
            now=self.clock(),
            time_budgets=self.time_budgets,
        )
        return {
            "group_by": request.group_by.value,
            "window_days": request.window_days,
            "stats": stats,
        }

    def get_mastery(self, user_id: str) -> list[MasteryRecord]:
        return self.repository.list_mastery_by_user(user_id)

    def run_calibration(self) -> CalibrationReport:
        return self.calibration.analyze(self.repository.list_attempts_all(), self.catalog)

    def get_overview(self) -> dict[str, Any]:
        """Corpus totals plus statistics by pattern, tag and difficulty."""
        attempts = self.repository.list_attempts_all()

        def grouped(group_by: StatsGroupBy) -> dict[str, Any]:
            return compute_stats(attempts, group_by, catalog=self.catalog, time_budgets=self.time_budgets)

        return {
            "totals": compute_totals(attempts),
            "patterns": grouped(StatsGroupBy.PATTERN),
            "tags": grouped(StatsGroupBy.TAG),
            "difficulty": grouped(StatsGroupBy.DIFFICULTY),
        }

    def list_tags(self) -> list[str]:
        return self.catalog.list_tags()
