"""
Unit tests for grouped attempt statistics.

Run: pytest tests/unit/test_stats.py -v
"""

from datetime import timedelta

import pytest

from src.analytics.stats import compute_stats, compute_totals, count_sign_errors, median, percentile
from src.core.models import UNSPECIFIED_PATTERN, BlankResult, QuestionIndexEntry
from src.content.catalog import ContentCatalog
from conftest import FIXED_NOW, make_attempt


class TestPercentileAndMedian:
    def test_nearest_rank(self):
        assert percentile([10, 20, 30, 40], 0.75) == 30
        assert percentile([40, 10, 30, 20], 0.5) == 20

    def test_single_value(self):
        assert percentile([7], 0.75) == 7

    def test_empty(self):
        assert percentile([], 0.75) is None
        assert median([]) is None

    def test_median_odd(self):
        assert median([3, 1, 2]) == 2

    def test_median_even_rounds_half_up(self):
        assert median([1, 2]) == 2
        assert median([10, 20]) == 15


class TestSignErrors:
    def test_minus_confused_with_digit(self):
        attempt = make_attempt(
            per_blank={
                "A": BlankResult("-", "5", False),
                "B": BlankResult("3", "-", False),
                "C": BlankResult("4", "4", True),
                "D": BlankResult("2", None, False),
            }
        )
        assert count_sign_errors(attempt) == (2, 4)


class TestComputeStats:
    def test_difficulty_example(self):
        attempts = [
            make_attempt(question_id="a", duration_ms=1000),
            make_attempt(question_id="b", duration_ms=2000),
            make_attempt(question_id="c", duration_ms=3000),
            make_attempt(question_id="d", duration_ms=90_000, is_correct=False),
        ]
        stats = compute_stats(attempts, "difficulty")
        assert stats["3"]["attempts"] == 4
        assert stats["3"]["accuracy"] == 0.75
        assert stats["3"]["median_duration"] == 2000
        assert stats["3"]["p75_duration"] == 3000

    def test_overtime_excluded_from_durations(self):
        attempts = [
            make_attempt(duration_ms=1000),
            make_attempt(duration_ms=500_000, overtime=True),
        ]
        stats = compute_stats(attempts, "pattern")["p1"]
        assert stats["overtime_rate"] == 0.5
        assert stats["median_duration"] == 1000

    def test_missing_pattern_and_difficulty_keys(self):
        attempts = [make_attempt(pattern_id=None, difficulty=None)]
        assert list(compute_stats(attempts, "pattern")) == [UNSPECIFIED_PATTERN]
        assert list(compute_stats(attempts, "difficulty")) == ["unknown"]

    def test_tag_grouping_is_multi_valued(self):
        attempts = [make_attempt(tags=("a", "b")), make_attempt(tags=("b",), is_correct=False)]
        stats = compute_stats(attempts, "tag")
        assert stats["a"]["attempts"] == 1
        assert stats["b"]["attempts"] == 2
        assert stats["b"]["accuracy"] == 0.5

    def test_empty_groups_omitted(self):
        assert compute_stats([], "tag") == {}

    def test_window_filters_old_attempts(self):
        attempts = [
            make_attempt(created_at=FIXED_NOW - timedelta(days=10)),
            make_attempt(created_at=FIXED_NOW - timedelta(days=1), is_correct=False),
        ]
        stats = compute_stats(attempts, "pattern", window_days=7, now=FIXED_NOW)
        assert stats["p1"]["attempts"] == 1
        assert stats["p1"]["accuracy"] == 0.0

    def test_missing_overtime_derived_from_catalog(self):
        catalog = ContentCatalog([QuestionIndexEntry("q1", pattern_id="p1", difficulty=1)])
        # 61s is over the 60s budget for difficulty 1 but under 120s for difficulty 3
        attempt = make_attempt(question_id="q1", duration_ms=61_000, difficulty=3, overtime=None)
        assert compute_stats([attempt], "pattern", catalog=catalog)["p1"]["overtime_rate"] == 1.0
        assert compute_stats([attempt], "pattern")["p1"]["overtime_rate"] == 0.0

    def test_invalid_group_by(self):
        with pytest.raises(ValueError):
            compute_stats([], "user")


class TestTotals:
    def test_totals(self):
        attempts = [
            make_attempt(user_id="u1"),
            make_attempt(user_id="u2", is_correct=False, overtime=True),
        ]
        assert compute_totals(attempts) == {
            "attempts": 2,
            "accuracy": 0.5,
            "overtime_rate": 0.5,
            "active_users": 2,
        }

    def test_empty(self):
        assert compute_totals([])["accuracy"] == 0
