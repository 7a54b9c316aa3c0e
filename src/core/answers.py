"""
Canonical answer encodings.

Answer sources store a group's value as a plain number, a plain string, or an
object carrying either a character list or a raw string. Each encoding is an
explicit variant here; ``parse_answer_value`` converts decoded JSON once at the
catalog boundary and ``answer_chars`` is the single extraction function.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class NumberAnswer:
    value: int | float


@dataclass(frozen=True)
class TextAnswer:
    text: str


@dataclass(frozen=True)
class CharListAnswer:
    chars: tuple[str, ...]


@dataclass(frozen=True)
class RawAnswer:
    raw: str


AnswerValue = Union[NumberAnswer, TextAnswer, CharListAnswer, RawAnswer]


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def answer_chars(value: AnswerValue | None) -> str:
    """
    Extract the answer string for a group.

    Args:
        value: Parsed answer value, or None if absent

    Returns:
        The characters of the answer ("" when absent)
    """
    if value is None:
        return ""
    if isinstance(value, NumberAnswer):
        return _format_number(value.value)
    if isinstance(value, TextAnswer):
        return value.text
    if isinstance(value, CharListAnswer):
        return "".join(value.chars)
    if isinstance(value, RawAnswer):
        return value.raw
    raise TypeError(f"Unsupported answer value: {value!r}")


def parse_answer_value(obj: Any) -> AnswerValue | None:
    """
    Convert a decoded JSON value into an AnswerValue.

    Returns None for encodings that carry no answer (null, unknown shapes).
    """
    if obj is None or isinstance(obj, bool):
        return None
    if isinstance(obj, (int, float)):
        return NumberAnswer(obj)
    if isinstance(obj, str):
        return TextAnswer(obj)
    if isinstance(obj, dict):
        chars = obj.get("chars")
        if isinstance(chars, list):
            return CharListAnswer(tuple(str(c) for c in chars))
        raw = obj.get("raw")
        if isinstance(raw, str):
            return RawAnswer(raw)
    return None


def parse_answer_groups(groups: dict[str, Any]) -> dict[str, AnswerValue | None]:
    """Parse every group of a decoded answer mapping."""
    return {key: parse_answer_value(value) for key, value in groups.items()}
