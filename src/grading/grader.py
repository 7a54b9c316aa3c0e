"""
Answer grading for fill-in-the-blank questions.

A question's answers are grouped: the group key "AB" names blanks A and B,
and the group's value "12" answers A with '1' and B with '2'. Canonical and
submitted groups are expanded into per-blank maps and compared blank by blank.

Validation problems are collected rather than short-circuited so a client
sees every issue with a submission at once. Any issue fails the grade.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from src.core.answers import AnswerValue, answer_chars
from src.core.models import DEFAULT_ALLOWED_CHARS, BlankResult

# Issue codes
USER_ANSWER_MISSING = "USER_ANSWER_MISSING"
USER_ANSWER_INVALID = "USER_ANSWER_INVALID"
USER_ANSWER_LENGTH_MISMATCH = "USER_ANSWER_LENGTH_MISMATCH"
USER_ANSWER_CHAR_INVALID = "USER_ANSWER_CHAR_INVALID"
USER_ANSWER_EXTRA = "USER_ANSWER_EXTRA"
ANSWER_LENGTH_MISMATCH = "ANSWER_LENGTH_MISMATCH"
ANSWER_VALUE_INVALID = "ANSWER_VALUE_INVALID"


@dataclass(frozen=True)
class GradingIssue:
    """One validation problem found while grading."""

    code: str
    message: str
    group: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = {"code": self.code, "message": self.message}
        if self.group is not None:
            payload["group"] = self.group
        return payload


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading one attempt."""

    errors: tuple[GradingIssue, ...] = ()
    per_blank: dict[str, BlankResult] = field(default_factory=dict)
    is_correct: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


def _expand(group_key: str, chars: str) -> dict[str, str]:
    return {blank: chars[i] for i, blank in enumerate(group_key)}


def _expand_canonical(
    canonical_groups: Mapping[str, AnswerValue | None],
    errors: list[GradingIssue],
) -> dict[str, str]:
    expected: dict[str, str] = {}
    for group_key, value in canonical_groups.items():
        chars = answer_chars(value)
        if not chars:
            errors.append(GradingIssue(ANSWER_VALUE_INVALID, "Answer value is empty", group_key))
            continue
        if len(chars) != len(group_key):
            errors.append(
                GradingIssue(
                    ANSWER_LENGTH_MISMATCH,
                    f"Answer length {len(chars)} does not match group length {len(group_key)}",
                    group_key,
                )
            )
            continue
        expected.update(_expand(group_key, chars))
    return expected


def _expand_submitted(
    user_groups: Mapping[str, Any],
    allowed: frozenset[str],
    errors: list[GradingIssue],
) -> dict[str, str]:
    submitted: dict[str, str] = {}
    for group_key, value in user_groups.items():
        if not isinstance(value, str):
            errors.append(
                GradingIssue(USER_ANSWER_INVALID, f"Answer for {group_key} must be a string", group_key)
            )
            continue

        usable = True
        if len(value) != len(group_key):
            errors.append(
                GradingIssue(
                    USER_ANSWER_LENGTH_MISMATCH,
                    f"Answer length {len(value)} does not match group length {len(group_key)}",
                    group_key,
                )
            )
            usable = False

        bad_char = next((ch for ch in value if ch not in allowed), None)
        if bad_char is not None:
            errors.append(
                GradingIssue(
                    USER_ANSWER_CHAR_INVALID,
                    f"Invalid character '{bad_char}' in {group_key}",
                    group_key,
                )
            )

        if usable:
            submitted.update(_expand(group_key, value))
    return submitted


def grade_attempt(
    canonical_groups: Mapping[str, AnswerValue | None],
    user_groups: Mapping[str, Any] | None,
    allowed_chars: Iterable[str] | None = None,
) -> GradeResult:
    """
    Grade a submission against canonical answer groups.

    Args:
        canonical_groups: Group key -> canonical answer value
        user_groups: Group key -> submitted string (None if missing)
        allowed_chars: Per-question alphabet override (digits and '-' by default)

    Returns:
        GradeResult with either the issue list or the per-blank outcome
    """
    if user_groups is None or not isinstance(user_groups, Mapping):
        return GradeResult(errors=(GradingIssue(USER_ANSWER_MISSING, "answers_user is required"),))

    allowed = frozenset(allowed_chars) if allowed_chars is not None else DEFAULT_ALLOWED_CHARS
    errors: list[GradingIssue] = []

    submitted = _expand_submitted(user_groups, allowed, errors)
    expected = _expand_canonical(canonical_groups, errors)

    # Blanks of a broken canonical group are still known, not extra
    known_blanks = {blank for group_key in canonical_groups for blank in group_key}
    for blank in submitted:
        if blank not in known_blanks:
            errors.append(GradingIssue(USER_ANSWER_EXTRA, f"Unexpected blank '{blank}' in user answers"))

    if errors:
        return GradeResult(errors=tuple(errors))

    per_blank: dict[str, BlankResult] = {}
    for blank, expected_char in expected.items():
        actual = submitted.get(blank)
        per_blank[blank] = BlankResult(
            expected=expected_char,
            actual=actual,
            is_correct=actual == expected_char,
        )

    is_correct = all(result.is_correct for result in per_blank.values())
    return GradeResult(per_blank=per_blank, is_correct=is_correct)


def normalize_answers(groups: Mapping[str, AnswerValue | None]) -> dict[str, str]:
    """Render canonical groups as plain strings for storage."""
    return {group_key: answer_chars(value) for group_key, value in groups.items()}
