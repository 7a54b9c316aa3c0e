"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(command: list[str], env: dict | None = None, timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: Arguments after 'python -m src.cli.main'
        env: Extra environment variables
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "src.cli.main", *command],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        env={**os.environ, "COLUMNS": "200", **(env or {})},
    )
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def cli_env(tmp_path):
    """Point the CLI at a throwaway database and a two-question catalog."""
    content = tmp_path / "content"
    (content / "index").mkdir(parents=True)
    (content / "answers").mkdir()
    questions = [
        {"question_id": "q1", "pattern_id": "p1", "difficulty_level": 2, "tags": ["basics"]},
        {"question_id": "q2", "pattern_id": "p2", "difficulty_level": 3, "tags": ["basics"]},
    ]
    (content / "index" / "questions.json").write_text(json.dumps(questions), encoding="utf-8")
    answers = {"answers": {"q1": {"AB": 12}, "q2": {"A": "-"}}}
    (content / "answers" / "normalized.json").write_text(json.dumps(answers), encoding="utf-8")
    return {
        "DATABASE_URL": f"sqlite:///{tmp_path / 'practice.db'}",
        "CONTENT_DIR": str(content),
        "LOG_LEVEL": "WARNING",
    }


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should list the commands."""
        code, stdout, stderr = run_cli_command(["--help"])

        assert code == 0, f"Help failed: {stderr}"
        assert "Commands" in stdout
        for name in ("submit", "session", "stats", "mastery", "calibrate", "overview", "tags"):
            assert name in stdout

    def test_session_help(self):
        code, stdout, stderr = run_cli_command(["session", "--help"])

        assert code == 0, f"Help failed: {stderr}"
        assert "generate" in stdout
        assert "show" in stdout


class TestCLIFlow:
    """Run commands against a temporary database."""

    def test_init_db(self, cli_env):
        code, stdout, stderr = run_cli_command(["init-db"], env=cli_env)
        assert code == 0, stderr
        assert "initialized" in stdout

    def test_submit_and_stats(self, cli_env):
        code, stdout, stderr = run_cli_command(
            ["submit", "q1", "--user", "alice", "--answer", "AB=12", "--duration-ms", "4000", "--json"],
            env=cli_env,
        )
        assert code == 0, stderr
        assert '"is_correct": true' in stdout

        code, stdout, stderr = run_cli_command(["stats", "--user", "alice", "--group-by", "pattern"], env=cli_env)
        assert code == 0, stderr
        assert "p1" in stdout

    def test_invalid_answer_exits_with_code(self, cli_env):
        code, stdout, _ = run_cli_command(
            ["submit", "q1", "--user", "alice", "--answer", "AB=1", "--duration-ms", "4000"],
            env=cli_env,
        )
        assert code == 1
        assert "INVALID_ANSWER" in stdout

    def test_generate_session(self, cli_env):
        code, stdout, stderr = run_cli_command(
            ["session", "generate", "--user", "alice", "--mode", "tag", "--tag", "basics", "--size", "2"],
            env=cli_env,
        )
        assert code == 0, stderr
        assert "2 questions" in stdout

    def test_tag_mode_requires_tags(self, cli_env):
        code, stdout, _ = run_cli_command(["session", "generate", "--user", "alice", "--mode", "tag"], env=cli_env)
        assert code == 1
        assert "TAGS_REQUIRED" in stdout

    def test_tags(self, cli_env):
        code, stdout, stderr = run_cli_command(["tags"], env=cli_env)
        assert code == 0, stderr
        assert "basics" in stdout

    def test_session_show_includes_questions(self, cli_env):
        code, stdout, stderr = run_cli_command(
            ["session", "generate", "--user", "alice", "--mode", "tag", "--tag", "basics", "--size", "1"],
            env=cli_env,
        )
        assert code == 0, stderr
        session_id = stdout.split("Session", 1)[1].split()[0]

        code, stdout, stderr = run_cli_command(["session", "show", session_id, "--user", "alice"], env=cli_env)
        assert code == 0, stderr
        assert '"questions"' in stdout
        assert '"time_budget_ms"' in stdout
