"""
Typer CLI for bitlearn.

Commands:
    bitlearn generate TITLE     - Generate (or reuse) a bite-sized topic
    bitlearn store FILE         - Verify and store externally written content
    bitlearn backfill           - Re-score topics with missing judge scores
    bitlearn topics list        - List a learner's topics
    bitlearn topics hide ID     - Force a topic private
    bitlearn topics show ID     - Remove a privacy override
    bitlearn db init            - Initialize database tables
    bitlearn info               - Show configuration

Usage:
    bitlearn generate "Neural Networks" --category "Machine Learning" --owner 1
    bitlearn store content.json --category Biology --owner 1
    bitlearn backfill --limit 20
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bitlearn import __version__
from bitlearn.config import get_settings
from bitlearn.llm.client import LLMNotConfiguredError
from bitlearn.pipeline.backfill import BackfillReport, BackfillService
from bitlearn.pipeline.orchestrator import GenerationOutcome, StoreOutcome, TopicOrchestrator
from bitlearn.verification.models import Dimension, VerificationResult
from bitlearn.verification.publication import effective_visibility

app = typer.Typer(
    help="bitlearn CLI: generate, verify and publish bite-sized learning topics",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Configure logging sinks before any command runs."""
    settings = get_settings()
    level = "DEBUG" if verbose else settings.log_level

    logger.remove()
    logger.add(sys.stderr, level=level)
    if settings.log_file:
        logger.add(settings.log_file, level=level, rotation="10 MB", retention=5)


def _require_ai() -> None:
    if not get_settings().has_ai_configured():
        rprint("[red]✗[/red] OPENROUTER_API_KEY is not set")
        raise typer.Exit(code=1)


def _score_text(result: VerificationResult | None, dimension: Dimension) -> str:
    if result is None:
        return "-"
    score = result.score_for(dimension).score
    return f"{score}/10" if score is not None else "[dim]n/a[/dim]"


def _verification_table(result: VerificationResult | None) -> Table:
    table = Table(title="Verification")
    table.add_column("Judge", style="cyan")
    table.add_column("Score", style="green")
    for dimension in Dimension:
        table.add_row(dimension.value.replace("_", " ").title(), _score_text(result, dimension))
    overall = result.overall_quality if result else None
    table.add_row("[bold]Overall[/bold]", f"{overall}/10" if overall is not None else "[dim]n/a[/dim]")
    return table


# ========================================
# GENERATION COMMANDS
# ========================================


async def _run_generate(owner: int, category: str, title: str) -> GenerationOutcome:
    from bitlearn.db.database import dispose_engines
    from bitlearn.db.repository import TopicRepository

    settings = get_settings()
    repository = TopicRepository(quality_threshold=settings.min_overall_quality)
    orchestrator = TopicOrchestrator.from_settings(repository, settings)
    try:
        return await orchestrator.generate(owner, category, title)
    finally:
        await orchestrator.close()
        await dispose_engines()


@app.command("generate")
def generate(
    title: str = typer.Argument(..., help="Topic title"),
    category: str = typer.Option(..., "--category", "-c", help="Topic category"),
    owner: int = typer.Option(..., "--owner", "-o", help="Owner (learner) id"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
) -> None:
    """
    Generate a topic, or return the stored one for an exact title match.

    Similar titles produce a new version ("(v2)", "(v3)", ...).
    An exact match is returned without an API key.
    """
    try:
        outcome = asyncio.run(_run_generate(owner, category, title))
    except LLMNotConfiguredError:
        rprint("[red]✗[/red] OPENROUTER_API_KEY is not set")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception(f"Generation failed: {e}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(outcome.to_dict()))
        return

    status = "reused" if outcome.reused else ("fallback" if outcome.is_fallback else "generated")
    visibility = "[green]public[/green]" if outcome.is_public else "[yellow]private[/yellow]"
    console.print(
        Panel(
            outcome.summary,
            title=f"{outcome.title} [dim]({status}, {visibility})[/dim]",
            border_style="cyan",
        )
    )
    for point in outcome.key_points:
        rprint(f"  • {point}")

    quiz = outcome.quiz
    rprint(f"\n[bold]Quiz:[/bold] {quiz.question}")
    for letter, option in zip("ABCD", quiz.options):
        marker = "[green]✓[/green]" if option == quiz.correct_answer else " "
        rprint(f"  {marker} {letter}. {option}")

    if outcome.verification is not None:
        console.print(_verification_table(outcome.verification))
    if outcome.topic_id is not None:
        rprint(f"\n[green]✓[/green] Topic id: {outcome.topic_id}")


async def _run_store(
    owner: int,
    category: str,
    title: str,
    payload: dict,
) -> StoreOutcome:
    from bitlearn.db.database import dispose_engines
    from bitlearn.db.repository import TopicRepository

    settings = get_settings()
    repository = TopicRepository(quality_threshold=settings.min_overall_quality)
    orchestrator = TopicOrchestrator.from_settings(repository, settings)
    try:
        return await orchestrator.store_topic(
            owner,
            category,
            title,
            summary=payload.get("summary", ""),
            quiz=payload.get("quiz"),
            key_points=payload.get("keyPoints") or payload.get("key_points"),
        )
    finally:
        await orchestrator.close()
        await dispose_engines()


@app.command("store")
def store(
    file: Path = typer.Argument(..., help="JSON file with summary, quiz and keyPoints"),
    category: str = typer.Option(..., "--category", "-c", help="Topic category"),
    owner: int = typer.Option(..., "--owner", "-o", help="Owner (learner) id"),
    title: str | None = typer.Option(None, "--title", "-t", help="Title (defaults to 'topic' in file)"),
) -> None:
    """Verify, gate and store a topic whose content was written elsewhere."""
    if not file.exists():
        rprint(f"[red]✗[/red] File not found: {file}")
        raise typer.Exit(code=1)

    try:
        payload = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]✗[/red] Invalid JSON in {file}: {e}")
        raise typer.Exit(code=1)

    title = title or payload.get("topic")
    if not title:
        rprint("[red]✗[/red] No title given (use --title or a 'topic' field)")
        raise typer.Exit(code=1)

    _require_ai()

    try:
        outcome = asyncio.run(_run_store(owner, category, title, payload))
    except ValueError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception(f"Store failed: {e}")
        raise typer.Exit(code=1)

    console.print(_verification_table(outcome.verification))
    visibility = "public" if outcome.is_public else "private"
    rprint(f"[green]✓[/green] Stored topic {outcome.topic_id} ({visibility})")


# ========================================
# BACKFILL COMMANDS
# ========================================


async def _run_backfill(limit: int | None) -> BackfillReport:
    from bitlearn.db.database import dispose_engines
    from bitlearn.db.repository import TopicRepository

    settings = get_settings()
    repository = TopicRepository(quality_threshold=settings.min_overall_quality)
    orchestrator = TopicOrchestrator.from_settings(repository, settings)
    service = BackfillService(
        orchestrator.verifier,
        repository,
        delay_seconds=settings.backfill_delay_seconds,
        thresholds=orchestrator.thresholds,
    )
    try:
        return await service.run(limit)
    finally:
        await orchestrator.close()
        await dispose_engines()


@app.command("backfill")
def backfill(
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max topics to process"),
) -> None:
    """Re-run failed judges for topics with missing scores."""
    _require_ai()

    try:
        report = asyncio.run(_run_backfill(limit))
    except Exception as e:
        logger.exception(f"Backfill failed: {e}")
        raise typer.Exit(code=1)

    if not report.items:
        rprint("[green]✓[/green] Nothing to backfill")
        return

    table = Table(title=f"Backfill ({report.completed}/{report.processed} complete)")
    table.add_column("ID", style="dim")
    table.add_column("Topic", style="cyan")
    table.add_column("Overall", style="green")
    table.add_column("Public")
    table.add_column("Status")
    for item in report.items:
        overall = f"{item.overall_quality}/10" if item.overall_quality is not None else "n/a"
        if item.error:
            status = f"[red]error: {item.error}[/red]"
        elif item.complete:
            status = "[green]complete[/green]"
        else:
            status = "[yellow]partial[/yellow]"
        table.add_row(str(item.topic_id), item.title, overall, "yes" if item.is_public else "no", status)
    console.print(table)


# ========================================
# TOPIC COMMANDS
# ========================================

topics_app = typer.Typer(help="Browse topics and manage visibility")
app.add_typer(topics_app, name="topics")


async def _list_topics(owner: int, category: str | None) -> list[tuple]:
    from bitlearn.db.database import dispose_engines
    from bitlearn.db.repository import TopicRepository

    repository = TopicRepository(quality_threshold=get_settings().min_overall_quality)
    try:
        rows = []
        for topic in await repository.list_topics(owner, category):
            verification = await repository.get_verification(topic.id)
            override = await repository.get_privacy_override(topic.id)
            rows.append((topic, verification, effective_visibility(topic.is_public, override)))
        return rows
    finally:
        await dispose_engines()


@topics_app.command("list")
def topics_list(
    owner: int = typer.Option(..., "--owner", "-o", help="Owner (learner) id"),
    category: str | None = typer.Option(None, "--category", "-c", help="Filter by category"),
) -> None:
    """List topics, most recent first."""
    rows = asyncio.run(_list_topics(owner, category))

    if not rows:
        rprint("[yellow]⚠[/yellow] No topics found")
        return

    table = Table(title=f"Topics for owner {owner}")
    table.add_column("ID", style="dim")
    table.add_column("Category", style="cyan")
    table.add_column("Title")
    table.add_column("Overall", style="green")
    table.add_column("Public")
    table.add_column("Created", style="dim")
    for topic, verification, visible in rows:
        overall = verification.overall_quality if verification else None
        table.add_row(
            str(topic.id),
            topic.category,
            topic.title,
            f"{overall}/10" if overall is not None else "n/a",
            "yes" if visible else "no",
            topic.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


async def _set_override(topic_id: int, hide: bool, reason: str) -> bool:
    from bitlearn.db.database import dispose_engines
    from bitlearn.db.repository import TopicRepository

    repository = TopicRepository()
    try:
        if await repository.get_topic(topic_id) is None:
            return False
        if hide:
            await repository.set_privacy_override(topic_id, force_private=True, reason=reason)
        else:
            await repository.clear_privacy_override(topic_id)
        return True
    finally:
        await dispose_engines()


@topics_app.command("hide")
def topics_hide(
    topic_id: int = typer.Argument(..., help="Topic id"),
    reason: str = typer.Option("", "--reason", "-r", help="Why the topic is kept private"),
) -> None:
    """Force a topic private regardless of its scores."""
    if not asyncio.run(_set_override(topic_id, hide=True, reason=reason)):
        rprint(f"[red]✗[/red] Topic {topic_id} not found")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] Topic {topic_id} is now private")


@topics_app.command("show")
def topics_show(topic_id: int = typer.Argument(..., help="Topic id")) -> None:
    """Remove a privacy override; the computed visibility applies again."""
    if not asyncio.run(_set_override(topic_id, hide=False, reason="")):
        rprint(f"[red]✗[/red] Topic {topic_id} not found")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] Privacy override removed for topic {topic_id}")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from bitlearn.db.database import init_db

    logger.info("Initializing database tables...")
    try:
        init_db()
    except Exception as e:
        logger.exception(f"Database init failed: {e}")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# INFO COMMANDS
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title=f"bitlearn v{__version__} Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("LLM Base URL", settings.llm_base_url)
    table.add_row("API Key", "***" if settings.openrouter_api_key else "Not set")
    table.add_row("Generator Model", settings.generator_model)
    table.add_row("Factual Judge", settings.factual_judge_model)
    table.add_row("Educational Judge", settings.educational_judge_model)
    table.add_row("Clarity Judge", settings.clarity_judge_model)
    table.add_row("Parallel Judges", str(settings.parallel_judges))
    table.add_row("Retries", f"{settings.llm_max_retries} (base delay {settings.llm_retry_base_delay}s)")
    table.add_row("Quality Threshold", f"{settings.min_overall_quality}/10")
    table.add_row("Factual Override", f"{settings.min_factual_accuracy_override}/10")
    table.add_row("Log Level", settings.log_level)

    console.print(table)


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
