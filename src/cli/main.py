"""
Typer CLI for the practice engine.

Commands:
    drill init-db                - Initialize database tables
    drill submit                 - Grade and record an attempt
    drill session generate       - Generate a practice session
    drill session show           - Show a stored session
    drill stats                  - Per-user statistics by pattern/difficulty/tag
    drill mastery                - Per-user mastery records
    drill calibrate              - Corpus calibration candidates
    drill overview               - Corpus totals and grouped statistics
    drill tags                   - List catalog tags

Usage:
    drill --help
    drill submit q-001 --user alice --answer AB=12 --duration-ms 45000
    drill session generate --user alice --mode tag --tag fractions --size 10
    drill stats --user alice --group-by pattern --window-days 7
"""

from __future__ import annotations

import json
import sys
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from config import get_settings
from src.core.errors import PracticeError

console = Console()

app = typer.Typer(
    name="drill",
    help="Adaptive fill-in-the-blank practice: grading, mastery, sessions and calibration",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    """Configure logging before any command runs."""
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else settings.log_level)


def _service():
    from src.content.catalog import ContentCatalog
    from src.db.database import init_db
    from src.db.repository import SqlAttemptRepository
    from src.learning.mastery_tracker import MasteryTracker
    from src.study.practice_service import PracticeService
    from src.study.session_generator import SessionConfig

    settings = get_settings()
    init_db()
    return PracticeService(
        catalog=ContentCatalog.from_directory(settings.content_dir),
        repository=SqlAttemptRepository(),
        time_budgets=settings.get_time_budget_table(),
        session_config=SessionConfig(history_window=settings.session_history_window),
        mastery_tracker=MasteryTracker(window_size=settings.mastery_window),
        default_size=settings.session_default_size,
    )


@contextmanager
def _handle_errors() -> Generator[None, None, None]:
    try:
        yield
    except PracticeError as e:
        rprint(f"[red]Error:[/red] {e.code} - {escape(e.message)}")
        for detail in e.details:
            rprint(f"  [dim]{detail.get('code', '')}[/dim] {escape(detail.get('message', ''))}")
        raise typer.Exit(code=1)
    except FileNotFoundError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)


def _print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _parse_answers(pairs: list[str]) -> dict[str, str]:
    answers: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            rprint(f"[red]Error:[/red] answer must look like GROUP=VALUE, got '{pair}'")
            raise typer.Exit(code=1)
        answers[key] = value
    return answers


# ========================================
# DATABASE
# ========================================


@app.command("init-db")
def init_db_command() -> None:
    """
    Initialize database tables.

    Safe to run multiple times (idempotent).
    """
    from src.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# ATTEMPTS
# ========================================


@app.command()
def submit(
    question_id: str = typer.Argument(..., help="Question to answer"),
    user: str = typer.Option(..., "--user", "-u", help="Learner id"),
    answer: list[str] = typer.Option([], "--answer", "-a", help="GROUP=VALUE, repeatable"),
    duration_ms: int = typer.Option(..., "--duration-ms", "-d", help="Time spent in milliseconds"),
    as_json: bool = typer.Option(False, "--json", help="Print the stored attempt as JSON"),
) -> None:
    """Grade and record one attempt."""
    answers = _parse_answers(answer)
    with _handle_errors():
        attempt = _service().submit_attempt(user, question_id, answers, duration_ms)

    if as_json:
        _print_json(attempt.to_dict())
        return

    verdict = "[green]correct[/green]" if attempt.is_correct else "[red]incorrect[/red]"
    rprint(f"Attempt {attempt.id}: {verdict}" + (" [yellow](overtime)[/yellow]" if attempt.overtime else ""))

    table = Table(show_header=True)
    table.add_column("Blank", style="cyan")
    table.add_column("Expected")
    table.add_column("Actual")
    table.add_column("", justify="center")
    for blank, result in attempt.per_blank.items():
        mark = "[green]✓[/green]" if result.is_correct else "[red]✗[/red]"
        table.add_row(blank, result.expected or "", result.actual or "-", mark)
    console.print(table)


# ========================================
# SESSIONS
# ========================================

session_app = typer.Typer(help="Practice sessions (generate, show)")
app.add_typer(session_app, name="session")


@session_app.command("generate")
def session_generate(
    user: str = typer.Option(..., "--user", "-u", help="Learner id"),
    mode: str = typer.Option("daily", "--mode", "-m", help="tag, review or daily"),
    tag: list[str] = typer.Option([], "--tag", "-t", help="Tag filter, repeatable"),
    difficulty: int | None = typer.Option(None, "--difficulty", help="Target difficulty 1-5"),
    size: int | None = typer.Option(None, "--size", "-n", help="Number of questions"),
    explain: bool = typer.Option(False, "--explain", help="Show weights and quota used"),
) -> None:
    """Generate and store a practice session."""
    with _handle_errors():
        session = _service().generate_session(user, mode, tag or None, difficulty, size)

    rprint(f"[bold]Session[/bold] {session.session_id}")
    rprint(
        f"  {len(session.question_ids)} questions, difficulty {session.recommended_difficulty}, "
        f"budget {session.time_budget}s"
    )
    for position, question_id in enumerate(session.question_ids, start=1):
        rprint(f"  {position:>3}. {question_id}")
    if explain:
        _print_json(session.explain)


@session_app.command("show")
def session_show(
    session_id: str = typer.Argument(..., help="Session id"),
    user: str = typer.Option(..., "--user", "-u", help="Learner id"),
) -> None:
    """Show a stored session."""
    with _handle_errors():
        detail = _service().get_session_detail(user, session_id)
    _print_json(detail)


# ========================================
# REPORTING
# ========================================


@app.command()
def stats(
    user: str = typer.Option(..., "--user", "-u", help="Learner id"),
    group_by: str = typer.Option("pattern", "--group-by", "-g", help="pattern, difficulty or tag"),
    window_days: float | None = typer.Option(None, "--window-days", "-w", help="Only the last N days"),
) -> None:
    """Show accuracy and timing statistics."""
    with _handle_errors():
        result = _service().get_stats(user, group_by, window_days)

    table = Table(title=f"Stats by {result['group_by']}", show_header=True)
    table.add_column(result["group_by"].title(), style="cyan")
    table.add_column("Attempts", justify="right")
    table.add_column("Accuracy", justify="right", style="green")
    table.add_column("Median ms", justify="right")
    table.add_column("p75 ms", justify="right")
    table.add_column("Overtime", justify="right", style="yellow")
    table.add_column("Sign err", justify="right", style="red")
    for key, row in result["stats"].items():
        table.add_row(
            key,
            str(row["attempts"]),
            f"{row['accuracy']:.0%}",
            str(row["median_duration"] if row["median_duration"] is not None else "-"),
            str(row["p75_duration"] if row["p75_duration"] is not None else "-"),
            f"{row['overtime_rate']:.0%}",
            f"{row['sign_error_rate']:.0%}",
        )
    console.print(table)


@app.command()
def mastery(user: str = typer.Option(..., "--user", "-u", help="Learner id")) -> None:
    """Show mastery status per pattern."""
    with _handle_errors():
        records = _service().get_mastery(user)

    if not records:
        rprint("[dim]No mastery records yet.[/dim]")
        return

    styles = {"promote": "green", "demote": "red", "accurate_but_slow": "yellow"}
    table = Table(title=f"Mastery for {user}", show_header=True)
    table.add_column("Pattern", style="cyan")
    table.add_column("Accuracy", justify="right")
    table.add_column("Overtime", justify="right")
    table.add_column("Streak", justify="right")
    table.add_column("Status")
    for record in records:
        style = styles.get(record.status.value, "white")
        table.add_row(
            record.pattern_id,
            f"{record.accuracy:.0%}",
            f"{record.overtime_rate:.0%}",
            str(record.consecutive_correct),
            f"[{style}]{record.status.value}[/{style}]",
        )
    console.print(table)


@app.command()
def calibrate() -> None:
    """Flag miscalibrated difficulty, pattern and time budget content."""
    with _handle_errors():
        report = _service().run_calibration()
    _print_json(report.to_dict())


@app.command()
def overview() -> None:
    """Corpus totals and statistics by pattern, tag and difficulty."""
    with _handle_errors():
        result = _service().get_overview()
    totals = result["totals"]
    rprint(
        f"[bold]{totals['attempts']}[/bold] attempts from [bold]{totals['active_users']}[/bold] users, "
        f"accuracy {totals['accuracy']:.0%}, overtime {totals['overtime_rate']:.0%}"
    )
    _print_json({key: value for key, value in result.items() if key != "totals"})


@app.command()
def tags() -> None:
    """List catalog tags."""
    with _handle_errors():
        names = _service().list_tags()
    for name in names:
        rprint(f"  • {name}")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
