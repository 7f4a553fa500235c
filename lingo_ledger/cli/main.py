"""
CLI interface for Lingo Ledger.

Administrative access to the analytics ledger: model selection, usage
and cost reports, feedback and engagement summaries.
"""

import logging
import sqlite3
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from lingo_ledger.config.loader import (
    AppConfig,
    default_app_config,
    load_app_config,
    resolve_config_path,
)
from lingo_ledger.core.curriculum import LessonNotFoundError, get_language, get_lessons_by_language
from lingo_ledger.core.gamification import GamificationService
from lingo_ledger.core.learning import LearningService
from lingo_ledger.core.pricing import PRICING_TABLE
from lingo_ledger.core.recorder import UsageRecorder
from lingo_ledger.core.registry import ModelNotRegisteredError, ModelRegistry
from lingo_ledger.core.service import AnalyticsService
from lingo_ledger.sdk.gemini_client import UpstreamError
from lingo_ledger.storage.filters import EngagementFilters, FeedbackFilters, UsageFilters
from lingo_ledger.storage.repository import (
    SQLiteRepository,
    get_repository,
    initialize_schema,
)

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True
    )


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj if isinstance(ctx.obj, AppConfig) else default_app_config()


def _repository(config: AppConfig) -> SQLiteRepository:
    """Repository for the configured database, which must already exist."""
    if not Path(config.database.path).exists():
        raise sqlite3.OperationalError("no such table: database not initialized")
    return get_repository(config.database.path)


def _registry(config: AppConfig, repository: SQLiteRepository) -> ModelRegistry:
    return ModelRegistry(repository, default_model_id=config.models.default)


def _learning(config: AppConfig, repository: SQLiteRepository) -> LearningService:
    return LearningService(
        _registry(config, repository),
        UsageRecorder(repository),
        gamification=GamificationService(repository)
    )


def _analytics(config: AppConfig) -> AnalyticsService:
    return AnalyticsService(
        _repository(config),
        idle_cutoff_seconds=config.analytics.idle_cutoff_seconds,
        max_comment_length=config.feedback.max_comment_length
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _handle_storage_error(e: sqlite3.OperationalError) -> None:
    if "no such table" in str(e).lower():
        console.print("\n[bold yellow]Database not initialized[/]")
        console.print("Run `lingo-ledger init` to create it, then try again.\n")
        sys.exit(EXIT_CODE_FAIL)
    raise e


def _format_cost(amount: float, currency: str = "USD") -> str:
    """Format a cost with enough precision for per-call amounts."""
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{amount:,.6f}"


def _format_rate(value: float) -> str:
    return f"{value:,.2f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config (defaults to $LINGO_LEDGER_CONFIG)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging"
    )
):
    """Lingo Ledger CLI."""
    _configure_logging(verbose)

    path = resolve_config_path(config)
    try:
        ctx.obj = load_app_config(path) if path else default_app_config()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(f"Invalid configuration: {e}")

    if ctx.invoked_subcommand is None:
        console.print("Lingo Ledger - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the Lingo Ledger database."""
    config = _config(ctx)
    try:
        initialize_schema(config.database.path)
        console.print(f"[green]✓[/] Database initialized at {config.database.path}")
        sys.exit(EXIT_CODE_PASS)
    except sqlite3.Error as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show database location and the active model."""
    config = _config(ctx)
    try:
        repository = _repository(config)
        registry = _registry(config, repository)
        active = registry.get_model_info(registry.get_active_model_id())
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    console.print("[green]✓[/] Lingo Ledger is initialized")
    console.print(f"Database: {config.database.path}")
    console.print(f"Active model: {active.label} ({active.id})")


@app.command()
def models(ctx: typer.Context):
    """List the available models and their pricing."""
    config = _config(ctx)
    try:
        repository = _repository(config)
        listings = _registry(config, repository).list_models()
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    table = Table(title="AI Models")
    table.add_column("", width=1)
    table.add_column("Model")
    table.add_column("Label")
    table.add_column("Tier")
    table.add_column("Input / 1M", justify="right")
    table.add_column("Output / 1M", justify="right")

    for listing in listings:
        info = listing.info
        pricing = PRICING_TABLE.get_pricing(info.id)
        table.add_row(
            "[green]●[/]" if listing.is_active else "",
            info.id,
            info.label,
            info.tier.value,
            f"${pricing.input_per_million}" if pricing else "-",
            f"${pricing.output_per_million}" if pricing else "-"
        )
    console.print(table)


@app.command("select-model")
def select_model(
    ctx: typer.Context,
    model_id: str = typer.Argument(..., help="Model to use for every request")
):
    """Set the active model."""
    config = _config(ctx)
    try:
        repository = _repository(config)
        _registry(config, repository).set_active_model(model_id)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)
    except ModelNotRegisteredError as e:
        _fail(str(e))

    console.print(f"[green]✓[/] Active model set to {model_id}")


@app.command()
def translate(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Text to translate"),
    source_lang: str = typer.Option("English", "--from", help="Source language"),
    target_lang: str = typer.Option("Kannada", "--to", help="Target language"),
    language_id: Optional[str] = typer.Option(None, "--language", "-l", help="Language id to record"),
    model_id: Optional[str] = typer.Option(None, "--model", "-m", help="Override the active model"),
    user_id: str = typer.Option("user-1", "--user", "-u", help="User to record the call for")
):
    """Translate text with the active model and record the usage."""
    config = _config(ctx)
    try:
        repository = _repository(config)
        interaction = _learning(config, repository).translate_text(
            text,
            source_lang,
            target_lang,
            language_id=language_id,
            model_id=model_id,
            user_id=user_id
        )
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)
    except (ModelNotRegisteredError, UpstreamError) as e:
        _fail(str(e))

    result = interaction.data
    record = interaction.usage_record
    console.print(f"\n[bold]{result.translation}[/bold]")
    if result.transliteration:
        console.print(f"[dim]{result.transliteration}[/]")
    console.print(
        f"\n{record.model_id}: {record.total_tokens} tokens, "
        f"{_format_cost(record.total_cost, record.currency)} (usage {record.id})"
    )


@app.command()
def usage(
    ctx: typer.Context,
    user_id: Optional[str] = typer.Option(None, "--user", "-u"),
    language_id: Optional[str] = typer.Option(None, "--language", "-l"),
    model_id: Optional[str] = typer.Option(None, "--model", "-m"),
    feature: Optional[str] = typer.Option(None, "--feature", "-f"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 lower bound"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 upper bound"),
    limit: int = typer.Option(20, "--limit", "-n", min=0)
):
    """List recent usage records, newest first."""
    filters = UsageFilters(
        user_id=user_id,
        language_id=language_id,
        model_id=model_id,
        feature=feature,
        start=start,
        end=end,
        limit=limit
    )
    try:
        records = _analytics(_config(ctx)).list_usage(filters)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    if not records:
        console.print("[dim]No usage records found.[/]")
        return

    table = Table(title="Usage")
    table.add_column("Time")
    table.add_column("User")
    table.add_column("Model")
    table.add_column("Feature")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    for record in records:
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.user_id,
            record.model_id,
            record.feature,
            str(record.total_tokens),
            _format_cost(record.total_cost, record.currency)
        )
    console.print(table)


@app.command()
def daily(
    ctx: typer.Context,
    user_id: Optional[str] = typer.Option(None, "--user", "-u"),
    language_id: Optional[str] = typer.Option(None, "--language", "-l"),
    model_id: Optional[str] = typer.Option(None, "--model", "-m"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 lower bound"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 upper bound"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=0)
):
    """Daily token and cost totals per user and model."""
    filters = UsageFilters(
        user_id=user_id,
        language_id=language_id,
        model_id=model_id,
        start=start,
        end=end,
        limit=limit
    )
    try:
        summaries = _analytics(_config(ctx)).daily_usage_summary(filters)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    if not summaries:
        console.print("[dim]No usage records found.[/]")
        return

    table = Table(title="Daily Usage")
    table.add_column("Date")
    table.add_column("User")
    table.add_column("Model")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Cost", justify="right")
    for summary in summaries:
        table.add_row(
            summary.date,
            summary.user_id,
            summary.model_id,
            str(summary.input_tokens),
            str(summary.output_tokens),
            str(summary.total_tokens),
            _format_cost(summary.total_cost, summary.currency)
        )
    console.print(table)


@app.command("feedback-summary")
def feedback_summary(
    ctx: typer.Context,
    user_id: Optional[str] = typer.Option(None, "--user", "-u"),
    language_id: Optional[str] = typer.Option(None, "--language", "-l"),
    model_id: Optional[str] = typer.Option(None, "--model", "-m"),
    feature: Optional[str] = typer.Option(None, "--feature", "-f"),
    signal: Optional[str] = typer.Option(None, "--signal", "-s", help="positive, negative or neutral"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 lower bound"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 upper bound"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=0)
):
    """Feedback counts by day, user, language, model and feature."""
    filters = FeedbackFilters(
        user_id=user_id,
        language_id=language_id,
        model_id=model_id,
        feature=feature,
        signal=signal,
        start=start,
        end=end,
        limit=limit
    )
    try:
        buckets = _analytics(_config(ctx)).feedback_summary(filters)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    if not buckets:
        console.print("[dim]No feedback found.[/]")
        return

    table = Table(title="Feedback")
    table.add_column("Date")
    table.add_column("User")
    table.add_column("Language")
    table.add_column("Model")
    table.add_column("Feature")
    table.add_column("Total", justify="right")
    table.add_column("[green]+[/]", justify="right")
    table.add_column("[red]-[/]", justify="right")
    table.add_column("=", justify="right")
    for bucket in buckets:
        table.add_row(
            bucket.date,
            bucket.user_id,
            bucket.language_id or "-",
            bucket.model_id,
            bucket.feature,
            str(bucket.total),
            str(bucket.positive),
            str(bucket.negative),
            str(bucket.neutral)
        )
    console.print(table)


@app.command("engagement-summary")
def engagement_summary(
    ctx: typer.Context,
    user_id: Optional[str] = typer.Option(None, "--user", "-u"),
    language_id: Optional[str] = typer.Option(None, "--language", "-l"),
    model_id: Optional[str] = typer.Option(None, "--model", "-m"),
    feature: Optional[str] = typer.Option(None, "--feature", "-f"),
    action: Optional[str] = typer.Option(None, "--action", "-a"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 lower bound"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 upper bound"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=0)
):
    """Actions and XP per active minute."""
    filters = EngagementFilters(
        user_id=user_id,
        language_id=language_id,
        model_id=model_id,
        feature=feature,
        action=action,
        start=start,
        end=end,
        limit=limit
    )
    try:
        buckets = _analytics(_config(ctx)).engagement_summary(filters)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    if not buckets:
        console.print("[dim]No engagement events found.[/]")
        return

    table = Table(title="Engagement")
    table.add_column("Date")
    table.add_column("User")
    table.add_column("Language")
    table.add_column("Model")
    table.add_column("Feature")
    table.add_column("Actions", justify="right")
    table.add_column("XP", justify="right")
    table.add_column("Active min", justify="right")
    table.add_column("Actions/min", justify="right")
    table.add_column("XP/min", justify="right")
    for bucket in buckets:
        table.add_row(
            bucket.date,
            bucket.user_id,
            bucket.language_id or "-",
            bucket.model_id,
            bucket.feature,
            str(bucket.action_count),
            str(bucket.xp_total),
            _format_rate(bucket.active_minutes),
            _format_rate(bucket.actions_per_active_minute),
            _format_rate(bucket.xp_per_active_minute)
        )
    console.print(table)


@app.command()
def languages(
    ctx: typer.Context,
    user_id: str = typer.Option("user-1", "--user", "-u", help="Learner to show progress for")
):
    """List the languages on offer with a learner's progress."""
    try:
        repository = _repository(_config(ctx))
        entries = GamificationService(repository).get_languages_with_progress(user_id)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    table = Table(title="Languages")
    table.add_column("Id")
    table.add_column("Language")
    table.add_column("Region")
    table.add_column("Lessons", justify="right")
    table.add_column("Progress", justify="right")
    for entry in entries:
        language = entry.language
        table.add_row(
            language.id,
            f"{language.name} ({language.native_name})",
            language.region,
            str(entry.lessons_completed),
            f"{entry.progress}%" if entry.is_started else "[dim]not started[/]"
        )
    console.print(table)


@app.command()
def lessons(
    language_id: str = typer.Argument(..., help="Language id, e.g. lang-kannada"),
    level: Optional[str] = typer.Option(None, "--level", help="basic, intermediate or advanced"),
    mode: Optional[str] = typer.Option(None, "--mode", help="listen, guide or speak")
):
    """List the lessons of a language in teaching order."""
    if get_language(language_id) is None:
        _fail(f"Language {language_id} not found")

    found = get_lessons_by_language(language_id, level=level, mode=mode)
    if not found:
        console.print("[dim]No lessons found.[/]")
        return

    table = Table(title="Lessons")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("Level")
    table.add_column("Mode")
    table.add_column("Items", justify="right")
    table.add_column("XP", justify="right")
    for lesson in found:
        table.add_row(
            lesson.id,
            lesson.title,
            lesson.level,
            lesson.mode,
            str(len(lesson.content)),
            str(lesson.xp_reward)
        )
    console.print(table)


@app.command("check-answer")
def check_answer(
    ctx: typer.Context,
    lesson_id: str = typer.Argument(..., help="Lesson the item belongs to"),
    content_index: int = typer.Argument(..., help="Position of the item in the lesson"),
    answer: str = typer.Argument(..., help="The learner's answer"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Defaults to the lesson's mode"),
    model_id: Optional[str] = typer.Option(None, "--model", "-m", help="Override the active model"),
    user_id: str = typer.Option("user-1", "--user", "-u", help="Learner answering")
):
    """Grade an answer to a lesson item and credit any XP earned."""
    config = _config(ctx)
    try:
        repository = _repository(config)
        interaction = _learning(config, repository).check_lesson_answer(
            lesson_id,
            content_index,
            answer,
            mode=mode,
            model_id=model_id,
            user_id=user_id
        )
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)
    except (LessonNotFoundError, ModelNotRegisteredError, UpstreamError, ValueError) as e:
        _fail(str(e))

    result = interaction.data
    if result.is_correct:
        console.print(f"[green]✓ Correct[/] (+{interaction.xp_awarded} XP)")
    else:
        console.print("[yellow]✗ Not quite[/]")
    console.print(result.feedback)
    for unlocked in interaction.unlocked:
        console.print(f"[bold]Achievement unlocked:[/] {unlocked.achievement_id}")


@app.command("complete-lesson")
def complete_lesson(
    ctx: typer.Context,
    lesson_id: str = typer.Argument(..., help="Lesson that was finished"),
    user_id: str = typer.Option("user-1", "--user", "-u", help="Learner who finished it")
):
    """Mark a lesson finished and pay out its XP."""
    try:
        repository = _repository(_config(ctx))
        outcome = GamificationService(repository).finish_lesson(user_id, lesson_id)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)
    except LessonNotFoundError as e:
        _fail(str(e))

    profile = outcome.profile
    console.print(f"[green]✓[/] Lesson {lesson_id} completed")
    console.print(f"Level {profile.level} ({profile.xp} XP), streak {profile.streak} day(s)")
    for unlocked in outcome.unlocked:
        console.print(f"[bold]Achievement unlocked:[/] {unlocked.achievement_id}")


@app.command()
def stats(
    ctx: typer.Context,
    user_id: str = typer.Argument("user-1", help="Learner to show")
):
    """Show a learner's XP, level, streak and achievements."""
    try:
        repository = _repository(_config(ctx))
        user_stats = GamificationService(repository).get_user_stats(user_id)
    except sqlite3.OperationalError as e:
        _handle_storage_error(e)

    console.print(f"\n[bold]{user_stats.user_id}[/bold]")
    console.print(f"Level {user_stats.level} ({user_stats.xp} XP)")
    console.print(f"Streak: {user_stats.streak} day(s)")
    console.print(f"Lessons completed: {user_stats.lessons_completed}")
    if user_stats.achievements:
        console.print("Achievements: " + ", ".join(
            unlocked.achievement_id for unlocked in user_stats.achievements
        ))


if __name__ == "__main__":
    app()
