"""
Error taxonomy for the practice engine.

Every error carries a stable, machine-readable code so a caller can tell
"fix your input" from "content is broken" from "nothing to generate":

- ValidationError: malformed request or submitted answers
- NotFoundError: unknown question or session id
- DataIntegrityError: canonical answers missing for a question
- GenerationError: the sampling pool is empty

None of these are retried internally.
"""

from __future__ import annotations

from typing import Any


class PracticeError(Exception):
    """Base class for all practice engine errors."""

    code: str = "PRACTICE_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: list[dict[str, Any]] | None = None,
    ):
        if code is not None:
            self.code = code
        self.message = message or self.code
        self.details = details or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a response payload."""
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = list(self.details)
        return payload


class ValidationError(PracticeError):
    """Raised when a request or submitted answer is malformed."""

    code = "INVALID_ANSWER"


class NotFoundError(PracticeError):
    """Raised for an unknown question or session id."""

    code = "NOT_FOUND"


class DataIntegrityError(PracticeError):
    """Raised when canonical answers are absent or unresolvable."""

    code = "ANSWER_NOT_AVAILABLE"


class GenerationError(PracticeError):
    """Raised when no candidate questions are available for a session."""

    code = "NO_CANDIDATES"
