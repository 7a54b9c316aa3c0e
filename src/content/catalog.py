"""
Content Catalog: read-only question metadata, tag index and answer groups.

The catalog is built by an external indexing pipeline. This module only
loads its output:

    <content_dir>/index/questions.json   list of question index entries
    <content_dir>/index/tags.json        {"tags": {tag: {pattern_id: [question_id]}}} (optional)
    <content_dir>/answers/normalized.json {"answers": {question_id: {group_key: value}}}

When no tag index is present one is derived from the entries' own tags.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from src.core.answers import AnswerValue, parse_answer_groups
from src.core.models import QuestionIndexEntry

TagIndex = dict[str, dict[str, list[str]]]


def build_tag_index(entries: Iterable[QuestionIndexEntry]) -> TagIndex:
    """Derive tag -> pattern -> [question_id] from index entries."""
    index: TagIndex = {}
    for entry in entries:
        for tag in entry.tags:
            index.setdefault(tag, {}).setdefault(entry.pattern_key, []).append(entry.question_id)
    return index


def normalize_tags(raw: Any) -> tuple[str, ...]:
    """
    Clean a question's tags.

    A list keeps its non-blank strings, stripped. A mapping of category to
    values becomes "category:value" tags, e.g. {"topic": ["fractions"]} ->
    ("topic:fractions",). Anything else yields no tags.
    """
    if isinstance(raw, list):
        return tuple(tag.strip() for tag in raw if isinstance(tag, str) and tag.strip())
    if isinstance(raw, dict):
        tags = []
        for category, values in raw.items():
            if not isinstance(values, list):
                continue
            tags.extend(
                f"{category}:{value.strip()}" for value in values if isinstance(value, str) and value.strip()
            )
        return tuple(tags)
    return ()


def _entry_from_json(raw: dict[str, Any]) -> QuestionIndexEntry:
    difficulty = raw.get("difficulty_level", raw.get("difficulty"))
    allowed = raw.get("allowed_chars")
    if allowed is None and isinstance(raw.get("blank_rules"), dict):
        allowed = raw["blank_rules"].get("allowed_chars")
    return QuestionIndexEntry(
        question_id=str(raw["question_id"]),
        pattern_id=raw.get("pattern_id") or None,
        # bool is an int subclass; reject it
        difficulty=difficulty if isinstance(difficulty, int) and not isinstance(difficulty, bool) else None,
        tags=normalize_tags(raw.get("tags")),
        allowed_chars=frozenset(allowed) if isinstance(allowed, list) else None,
    )


class ContentCatalog:
    """In-memory catalog over question index entries and answer groups."""

    def __init__(
        self,
        entries: Iterable[QuestionIndexEntry],
        answers: Mapping[str, Mapping[str, AnswerValue | None]] | None = None,
        tag_index: TagIndex | None = None,
    ):
        self._entries: dict[str, QuestionIndexEntry] = {}
        for entry in entries:
            self._entries[entry.question_id] = entry
        self._answers = {qid: dict(groups) for qid, groups in (answers or {}).items()}
        self._tag_index = tag_index if tag_index is not None else build_tag_index(self._entries.values())

    @classmethod
    def from_directory(cls, content_dir: str | Path) -> ContentCatalog:
        """
        Load a catalog from the indexer's JSON output.

        Args:
            content_dir: Root of the content tree

        Returns:
            ContentCatalog

        Raises:
            FileNotFoundError: If the question index is missing
        """
        root = Path(content_dir)
        questions_path = root / "index" / "questions.json"
        if not questions_path.exists():
            raise FileNotFoundError(f"Question index not found: {questions_path}")

        raw_questions = json.loads(questions_path.read_text(encoding="utf-8"))
        if isinstance(raw_questions, dict):
            raw_questions = raw_questions.get("questions", [])
        entries = [_entry_from_json(raw) for raw in raw_questions]

        tag_index = None
        tags_path = root / "index" / "tags.json"
        if tags_path.exists():
            tag_index = json.loads(tags_path.read_text(encoding="utf-8")).get("tags") or {}

        answers: dict[str, dict[str, AnswerValue | None]] = {}
        answers_path = root / "answers" / "normalized.json"
        if answers_path.exists():
            payload = json.loads(answers_path.read_text(encoding="utf-8"))
            for question_id, groups in (payload.get("answers") or {}).items():
                if isinstance(groups, dict):
                    answers[question_id] = parse_answer_groups(groups)

        logger.info(
            f"Loaded content catalog: {len(entries)} questions, "
            f"{len(answers)} answer sets from {root}"
        )
        return cls(entries, answers=answers, tag_index=tag_index)

    def get_question_index(self, question_id: str) -> QuestionIndexEntry | None:
        return self._entries.get(question_id)

    def get_all_question_ids(self) -> list[str]:
        return list(self._entries)

    def get_tag_index(self) -> TagIndex:
        return self._tag_index

    def get_answer_groups(self, question_id: str) -> dict[str, AnswerValue | None] | None:
        groups = self._answers.get(question_id)
        if not groups:
            return None
        return dict(groups)

    def list_tags(self) -> list[str]:
        return sorted(self._tag_index)

    def question_ids_for_tags(self, tags: Iterable[str]) -> list[str]:
        """Union of question ids carrying any of the tags, in index order."""
        seen: dict[str, None] = {}
        for tag in tags:
            for question_ids in self._tag_index.get(tag, {}).values():
                for question_id in question_ids:
                    seen.setdefault(question_id, None)
        return list(seen)
