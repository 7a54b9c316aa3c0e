"""
Unit tests for the time budget table.

Run: pytest tests/unit/test_time_budget.py -v
"""

import pytest

from src.core.time_budget import DEFAULT_TIME_BUDGETS, TimeBudgetTable


class TestTimeBudgetTable:
    @pytest.mark.parametrize("difficulty,seconds", [(1, 60), (2, 90), (3, 120), (4, 180), (5, 240)])
    def test_defaults(self, difficulty, seconds):
        assert DEFAULT_TIME_BUDGETS.seconds_for(difficulty) == seconds

    def test_unknown_difficulty(self):
        assert DEFAULT_TIME_BUDGETS.seconds_for(None) == 120
        assert DEFAULT_TIME_BUDGETS.seconds_for(9) == 120

    def test_fallback_level(self):
        assert DEFAULT_TIME_BUDGETS.seconds_for(None, fallback=5) == 240

    def test_overtime_is_strictly_greater(self):
        assert not DEFAULT_TIME_BUDGETS.is_overtime(60_000, 1)
        assert DEFAULT_TIME_BUDGETS.is_overtime(60_001, 1)

    def test_table_is_immutable(self):
        source = {1: 10}
        table = TimeBudgetTable(source, default_seconds=30)
        source[1] = 999
        assert table.seconds_for(1) == 10
        with pytest.raises(TypeError):
            table.seconds_by_difficulty[1] = 5
