"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.content.catalog import ContentCatalog  # noqa: E402
from src.core.answers import NumberAnswer, TextAnswer  # noqa: E402
from src.core.models import Attempt, QuestionIndexEntry  # noqa: E402

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    return FIXED_NOW


def make_attempt(
    question_id="q1",
    is_correct=True,
    duration_ms=30_000,
    user_id="u1",
    pattern_id="p1",
    difficulty=3,
    tags=("t1",),
    overtime=False,
    created_at=None,
    per_blank=None,
):
    """Build an Attempt with sensible defaults."""
    return Attempt(
        user_id=user_id,
        question_id=question_id,
        is_correct=is_correct,
        duration_ms=duration_ms,
        per_blank=per_blank or {},
        difficulty=difficulty,
        tags=tuple(tags),
        pattern_id=pattern_id,
        overtime=overtime,
        created_at=created_at or FIXED_NOW - timedelta(hours=1),
    )


@pytest.fixture
def attempt_factory():
    """Provide the make_attempt builder."""
    return make_attempt


@pytest.fixture
def sample_catalog():
    """
    Three patterns over two tags, twelve questions, difficulties 2-4.

    Every question has a two-blank group "AB" with a two-digit answer.
    """
    entries = []
    answers = {}
    layout = [
        ("p-add", ("arithmetic",), [2, 3, 3, 4]),
        ("p-sub", ("arithmetic", "signs"), [2, 3, 3, 4]),
        ("p-neg", ("signs",), [2, 3, 3, 4]),
    ]
    for pattern_id, tags, difficulties in layout:
        for i, difficulty in enumerate(difficulties):
            question_id = f"{pattern_id}-{i}"
            entries.append(
                QuestionIndexEntry(
                    question_id=question_id,
                    pattern_id=pattern_id,
                    difficulty=difficulty,
                    tags=tags,
                )
            )
            answers[question_id] = {"AB": NumberAnswer(10 + i)}
    entries.append(QuestionIndexEntry(question_id="signed", pattern_id="p-neg", difficulty=3, tags=("signs",)))
    answers["signed"] = {"AB": TextAnswer("-5"), "C": NumberAnswer(7)}
    return ContentCatalog(entries, answers)
