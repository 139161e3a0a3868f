"""
Learning Analytics CLI.

Commands:
    learning-analytics mastery SCORE     - Score one attempt
    learning-analytics retention FILE    - Retention summary and review priorities
    learning-analytics curve             - Forgetting curve for a stability
    learning-analytics schedule          - Projected review schedule
    learning-analytics streak FILE       - Streak status and this week's grid
    learning-analytics recommend FILE    - Recommendations for a learner

FILE is a learning analytics JSON document (camelCase keys, ISO-8601
timestamps, durations in milliseconds).
"""

import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from learning_analytics.adaptive.analytics_data import LearningAnalyticsData
from learning_analytics.adaptive.recommendation_engine import (
    RecommendationEngine,
    RecommendationPriority,
)
from learning_analytics.config import get_settings
from learning_analytics.core.dates import parse_datetime
from learning_analytics.core.mastery import MasteryEngine, TimedAttempt
from learning_analytics.study.retention_engine import CRITICAL_RETENTION, RetentionEngine
from learning_analytics.study.streak_engine import StreakEngine

console = Console()

app = typer.Typer(
    name="learning-analytics",
    help="Mastery, retention, streak and recommendation analytics",
    no_args_is_help=True,
)

PRIORITY_STYLES = {
    RecommendationPriority.CRITICAL: "bold red",
    RecommendationPriority.HIGH: "red",
    RecommendationPriority.MEDIUM: "yellow",
    RecommendationPriority.LOW: "dim",
}


# =============================================================================
# Helpers
# =============================================================================


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{message}</level>")


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def _load_analytics(path: Path) -> LearningAnalyticsData:
    """Read a learning analytics JSON document."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise _fail(f"Cannot read {path}: {e}")
    except ValueError as e:
        raise _fail(f"Invalid JSON in {path}: {e}")

    if not isinstance(data, dict):
        raise _fail(f"Expected a JSON object in {path}")

    try:
        return LearningAnalyticsData.from_dict(data)
    except KeyError as e:
        raise _fail(f"Missing required field {e} in {path}")
    except (TypeError, ValueError) as e:
        raise _fail(f"Invalid value in {path}: {e}")


def _parse_now(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        raise _fail(f"Invalid timestamp: {value}")


def _format_percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def _format_delta(delta: timedelta) -> str:
    hours, remainder = divmod(int(delta.total_seconds()), 3600)
    return f"{hours}h {remainder // 60:02d}m"


def _retention_style(value: float) -> str:
    if value < CRITICAL_RETENTION:
        return "red"
    if value < 0.9:
        return "yellow"
    return "green"


# =============================================================================
# Commands
# =============================================================================


@app.command("mastery")
def mastery_command(
    score: Annotated[float, typer.Argument(help="Current mastery score (0-1)")],
    correct: Annotated[
        bool, typer.Option("--correct/--incorrect", help="Outcome of the attempt")
    ] = True,
    attempts: Annotated[
        int, typer.Option("--attempts", "-n", help="Total attempts including this one")
    ] = 1,
    time_taken: Annotated[
        float | None, typer.Option("--time-taken", help="Seconds spent on the attempt")
    ] = None,
    expected_time: Annotated[
        float | None, typer.Option("--expected-time", help="Expected seconds for the attempt")
    ] = None,
) -> None:
    """
    Score a single attempt.

    Uses a simple average for the first few attempts and an exponential
    moving average afterwards.
    """
    engine = MasteryEngine.from_settings()

    if (time_taken is None) != (expected_time is None):
        raise _fail("--time-taken and --expected-time must be given together")

    timing = None
    if time_taken is not None and expected_time is not None:
        timing = TimedAttempt(
            time_taken=timedelta(seconds=time_taken),
            expected_time=timedelta(seconds=expected_time),
        )

    new_score = engine.score_after_attempt(score, correct, attempts, timing)
    level = engine.level_for_score(new_score)

    table = Table(title="Mastery Update")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Previous score", f"{score:.4f}")
    table.add_row("New score", f"[bold]{new_score:.4f}[/bold]")
    table.add_row("Level", level.display_name)
    table.add_row("Progress in level", _format_percent(engine.progress_to_next_level(new_score)))
    if level.next_level is not None:
        table.add_row(
            f"Correct answers to {level.next_level.display_name}",
            str(engine.estimate_attempts_to_target(new_score, level.next_level.min_threshold)),
        )
    console.print(table)


@app.command("retention")
def retention_command(
    file: Annotated[Path, typer.Argument(help="Learning analytics JSON file")],
    limit: Annotated[int, typer.Option("--limit", "-l", help="Items to list")] = 10,
    now: Annotated[
        str | None, typer.Option("--now", help="Reference time (ISO-8601)")
    ] = None,
) -> None:
    """Show a retention summary and the items most in need of review."""
    data = _load_analytics(file)
    moment = _parse_now(now)
    engine = RetentionEngine.from_settings()

    summary = engine.bulk_summary(data.retention_items, now=moment)

    table = Table(title="Retention Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Items", str(summary.total_items))
    table.add_row("Average retention", _format_percent(summary.average_retention))
    table.add_row("Average stability", f"{summary.average_stability:.1f} days")
    table.add_row("Due", f"{summary.items_due} ({summary.percentage_due:.0f}%)")
    table.add_row(
        "Critical", f"[red]{summary.items_critical}[/red] ({summary.percentage_critical:.0f}%)"
    )
    console.print(table)

    if not data.retention_items:
        console.print("[yellow]No retention items found.[/yellow]")
        return

    priority = Table(title="Review Priority")
    priority.add_column("Item", style="cyan")
    priority.add_column("Retention", justify="right")
    priority.add_column("Stability", justify="right")
    priority.add_column("Reviews", justify="right")
    priority.add_column("Next review")

    for item in engine.prioritize_for_review(data.retention_items, max_items=limit, now=moment):
        retention = item.current_retrievability(moment)
        style = _retention_style(retention)
        priority.add_row(
            item.item_id,
            f"[{style}]{_format_percent(retention)}[/{style}]",
            f"{item.stability:.1f}d",
            str(item.review_count),
            item.optimal_review_time(engine.target_retention).strftime("%Y-%m-%d %H:%M"),
        )
    console.print(priority)


@app.command("curve")
def curve_command(
    stability: Annotated[float, typer.Option("--stability", "-s", help="Stability in days")] = 1.0,
    days: Annotated[int, typer.Option("--days", "-d", help="Days to project")] = 30,
    points_per_day: Annotated[
        int, typer.Option("--points-per-day", help="Samples per day")
    ] = 1,
) -> None:
    """Show the forgetting curve for a stability."""
    if stability <= 0:
        raise _fail("Stability must be positive")
    if points_per_day < 1:
        raise _fail("Points per day must be at least 1")

    engine = RetentionEngine.from_settings()
    points = engine.forgetting_curve(stability, days=days, points_per_day=points_per_day)

    table = Table(title=f"Forgetting Curve (S = {stability:g} days)")
    table.add_column("Day", justify="right")
    table.add_column("Retention", justify="right")
    table.add_column("Above target", justify="center")
    for point in points:
        style = _retention_style(point.retention)
        table.add_row(
            f"{point.day:g}",
            f"[{style}]{_format_percent(point.retention)}[/{style}]",
            "[green]yes[/green]" if point.is_above_threshold else "[dim]no[/dim]",
        )
    console.print(table)


@app.command("schedule")
def schedule_command(
    stability: Annotated[
        float | None, typer.Option("--stability", "-s", help="Starting stability in days")
    ] = None,
    reviews: Annotated[int, typer.Option("--reviews", "-n", help="Reviews to project")] = 5,
    target: Annotated[
        float | None, typer.Option("--target", "-t", help="Target retention (0-1)")
    ] = None,
    start: Annotated[
        str | None, typer.Option("--start", help="Schedule start (ISO-8601)")
    ] = None,
) -> None:
    """Project a review schedule assuming every review is rated good."""
    engine = RetentionEngine.from_settings()
    begin = _parse_now(start)

    try:
        schedule = engine.review_schedule(
            initial_stability=stability,
            number_of_reviews=reviews,
            target_retention=target,
            start=begin,
        )
    except ValueError as e:
        raise _fail(str(e))

    table = Table(title="Review Schedule")
    table.add_column("#", justify="right")
    table.add_column("Date")
    table.add_column("Interval", justify="right")
    table.add_column("Stability", justify="right")
    for review in schedule:
        table.add_row(
            str(review.review_number),
            review.scheduled_date.strftime("%Y-%m-%d %H:%M"),
            f"{review.interval_days:.2f}d",
            f"{review.stability_at_review:.2f}d",
        )
    console.print(table)


@app.command("streak")
def streak_command(
    file: Annotated[Path, typer.Argument(help="Learning analytics JSON file")],
    now: Annotated[
        str | None, typer.Option("--now", help="Reference time (ISO-8601)")
    ] = None,
) -> None:
    """Show streak status and the current week's activity."""
    data = _load_analytics(file)
    moment = _parse_now(now) or datetime.now()
    engine = StreakEngine.from_settings()

    active_days = [day for day, count in data.activity_map.items() if count > 0]
    streak = data.streak

    table = Table(title="Learning Streak")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    if streak is not None:
        active_days.append(streak.last_activity_date.date())
        table.add_row("Current streak", f"[bold]{streak.current_streak}[/bold] days")
        table.add_row("Longest streak", f"{streak.longest_streak} days")
        table.add_row("Active days", str(streak.total_active_days))
        table.add_row("Last activity", streak.last_activity_date.strftime("%Y-%m-%d %H:%M"))
        table.add_row("Active today", "yes" if streak.has_activity_today(moment) else "no")

        remaining = engine.time_until_streak_breaks(streak.last_activity_date, moment)
        if remaining is None:
            table.add_row("Status", "[red]broken[/red]")
        else:
            table.add_row("Breaks in", _format_delta(remaining))
    elif active_days:
        table.add_row(
            "Current streak", f"[bold]{engine.calculate_current_streak(active_days, moment)}[/bold] days"
        )
        table.add_row("Longest streak", f"{engine.calculate_longest_streak(active_days)} days")
    else:
        console.print("[yellow]No streak data found.[/yellow]")
        return

    console.print(table)

    grid = engine.week_grid(active_days, now=moment)
    week = Table(title="This Week")
    for day in grid:
        week.add_column(day.short_day_name, justify="center")
    week.add_row(
        *(
            "[dim].[/dim]" if day.is_future else ("[green]#[/green]" if day.has_activity else "-")
            for day in grid
        )
    )
    console.print(week)


@app.command("recommend")
def recommend_command(
    file: Annotated[Path, typer.Argument(help="Learning analytics JSON file")],
    now: Annotated[
        str | None, typer.Option("--now", help="Reference time (ISO-8601)")
    ] = None,
) -> None:
    """Generate recommendations for a learner."""
    data = _load_analytics(file)
    moment = _parse_now(now)
    engine = RecommendationEngine.from_settings()

    recommendations = data.recommend(engine, now=moment)
    if not recommendations:
        console.print("[green]No recommendations - keep it up![/green]")
        return

    table = Table(title="Recommendations")
    table.add_column("Priority")
    table.add_column("Type", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Details")
    for rec in recommendations:
        style = PRIORITY_STYLES[rec.priority]
        table.add_row(
            f"[{style}]{rec.priority.value}[/{style}]",
            rec.type.value,
            rec.title,
            rec.description,
        )
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """
    Learning analytics from the command line.

    \b
    Quick Start:
      learning-analytics mastery 0.6 --correct --attempts 5
      learning-analytics curve --stability 2.5 --days 14
      learning-analytics recommend analytics.json
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        raise _fail(f"Invalid configuration:\n{e}")

    _configure_logging("DEBUG" if verbose else settings.log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
