"""
Unit tests for the content catalog and answer encodings.

Run: pytest tests/unit/test_catalog.py -v
"""

import json

import pytest

from src.content.catalog import ContentCatalog, normalize_tags
from src.core.answers import (
    CharListAnswer,
    NumberAnswer,
    RawAnswer,
    TextAnswer,
    answer_chars,
    parse_answer_value,
)


@pytest.fixture
def content_dir(tmp_path):
    (tmp_path / "index").mkdir()
    (tmp_path / "answers").mkdir()
    questions = [
        {"question_id": "q1", "pattern_id": "p1", "difficulty_level": 2, "tags": ["b", "a"]},
        {"question_id": "q2", "pattern_id": None, "difficulty": 4, "tags": ["a"]},
        {"question_id": "q3", "difficulty_level": True, "blank_rules": {"allowed_chars": ["x", "y"]}},
    ]
    (tmp_path / "index" / "questions.json").write_text(json.dumps({"questions": questions}), encoding="utf-8")
    answers = {"answers": {"q1": {"AB": 12, "C": {"chars": ["-"]}}, "q2": {}}}
    (tmp_path / "answers" / "normalized.json").write_text(json.dumps(answers), encoding="utf-8")
    return tmp_path


class TestAnswerValues:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (12, NumberAnswer(12)),
            ("-3", TextAnswer("-3")),
            ({"chars": ["1", "2"]}, CharListAnswer(("1", "2"))),
            ({"raw": "07"}, RawAnswer("07")),
            (None, None),
            (True, None),
            ({"other": 1}, None),
        ],
    )
    def test_parse(self, raw, expected):
        assert parse_answer_value(raw) == expected

    def test_integral_float_has_no_fraction(self):
        assert answer_chars(NumberAnswer(12.0)) == "12"
        assert answer_chars(NumberAnswer(1.5)) == "1.5"

    def test_absent_is_empty(self):
        assert answer_chars(None) == ""

    def test_unknown_value_rejected(self):
        with pytest.raises(TypeError):
            answer_chars("12")


class TestContentCatalog:
    def test_from_directory(self, content_dir):
        catalog = ContentCatalog.from_directory(content_dir)
        assert catalog.get_all_question_ids() == ["q1", "q2", "q3"]
        assert catalog.get_question_index("q1").difficulty == 2
        assert catalog.get_question_index("q2").difficulty == 4
        assert catalog.get_question_index("q2").pattern_key == "__UNSPECIFIED__"

    def test_bool_difficulty_rejected(self, content_dir):
        assert ContentCatalog.from_directory(content_dir).get_question_index("q3").difficulty is None

    def test_allowed_chars_from_blank_rules(self, content_dir):
        entry = ContentCatalog.from_directory(content_dir).get_question_index("q3")
        assert entry.allowed_chars == frozenset("xy")

    def test_answer_groups(self, content_dir):
        catalog = ContentCatalog.from_directory(content_dir)
        assert catalog.get_answer_groups("q1") == {"AB": NumberAnswer(12), "C": CharListAnswer(("-",))}
        assert catalog.get_answer_groups("q2") is None
        assert catalog.get_answer_groups("missing") is None

    def test_derived_tag_index(self, content_dir):
        catalog = ContentCatalog.from_directory(content_dir)
        assert catalog.list_tags() == ["a", "b"]
        assert catalog.get_tag_index()["a"] == {"p1": ["q1"], "__UNSPECIFIED__": ["q2"]}
        assert catalog.question_ids_for_tags(["b", "a"]) == ["q1", "q2"]

    def test_explicit_tag_index(self, content_dir):
        tags = {"tags": {"z": {"p9": ["q3"]}}}
        (content_dir / "index" / "tags.json").write_text(json.dumps(tags), encoding="utf-8")
        catalog = ContentCatalog.from_directory(content_dir)
        assert catalog.list_tags() == ["z"]
        assert catalog.question_ids_for_tags(["z"]) == ["q3"]

    def test_missing_index(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ContentCatalog.from_directory(tmp_path)


class TestNormalizeTags:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ([" algebra ", "", "  ", "signs"], ("algebra", "signs")),
            (["a", 3, None], ("a",)),
            ({"topic": ["fractions", " signs "], "level": "basic"}, ("topic:fractions", "topic:signs")),
            ({"topic": ["", 1]}, ()),
            (None, ()),
            ("algebra", ()),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_tags(raw) == expected

    def test_loaded_entries_use_clean_tags(self, tmp_path):
        (tmp_path / "index").mkdir()
        questions = [
            {"question_id": "q1", "pattern_id": "p1", "tags": {"topic": ["fractions", " signs "]}},
            {"question_id": "q2", "pattern_id": "p1", "tags": [" algebra ", ""]},
        ]
        (tmp_path / "index" / "questions.json").write_text(json.dumps(questions), encoding="utf-8")
        catalog = ContentCatalog.from_directory(tmp_path)

        assert catalog.get_question_index("q1").tags == ("topic:fractions", "topic:signs")
        assert catalog.get_question_index("q2").tags == ("algebra",)
        assert catalog.list_tags() == ["algebra", "topic:fractions", "topic:signs"]
        assert catalog.question_ids_for_tags(["topic:signs"]) == ["q1"]
