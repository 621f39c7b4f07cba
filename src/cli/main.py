"""
Typer CLI for the statistics tutor backend.

Commands:
    stats-tutor serve               - Run the API server
    stats-tutor db init             - Initialize database tables
    stats-tutor concepts            - List canonical concepts
    stats-tutor normalize TEXT      - Show which concept a label maps to
    stats-tutor recommend USER_ID   - Show the next practice recommendation
    stats-tutor progress USER_ID    - Show a user's practice progress
    stats-tutor config              - Show current configuration
    stats-tutor version             - Show version information

Usage:
    stats-tutor --help
    stats-tutor serve --port 3000
    stats-tutor recommend user-123
    stats-tutor normalize "one sample t test"
"""

from __future__ import annotations

import asyncio

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.core.concepts import CANONICAL_CONCEPTS, normalize_concept
from src.core.exceptions import TutorError
from src.core.log_config import configure_logging

app = typer.Typer(
    help="stats-tutor CLI: adaptive statistics practice backend",
    no_args_is_help=True,
)
db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Statistics tutor backend CLI."""
    configure_logging(get_settings(), console_level="DEBUG" if verbose else "WARNING")


# ========================================
# Server and Database
# ========================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default: from config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (default: from config)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables.

    Safe to run multiple times (idempotent).
    """
    from sqlalchemy.exc import SQLAlchemyError

    from src.db.database import init_db

    logger.info("Initializing database tables...")
    try:
        init_db()
    except SQLAlchemyError as e:
        rprint(f"[red]✗[/red] Database initialization failed: {e}")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Concepts
# ========================================


@app.command("concepts")
def list_concepts() -> None:
    """List the canonical statistics concepts."""
    table = Table(title=f"Concepts ({len(CANONICAL_CONCEPTS)})", show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Concept", style="cyan")
    table.add_column("中文", style="green")

    for i, concept in enumerate(CANONICAL_CONCEPTS, start=1):
        table.add_row(str(i), concept.value, concept.label_zh or "")

    console.print(table)


@app.command("normalize")
def normalize(label: str = typer.Argument(..., help="Concept label in English or Chinese")) -> None:
    """Show which canonical concept a free-text label maps to."""
    concept = normalize_concept(label)
    if concept.is_known:
        rprint(f"[green]✓[/green] {label!r} -> [bold]{concept.value}[/bold] ({concept.label_zh})")
    else:
        rprint(f"[yellow]⚠[/yellow] {label!r} does not map to a known concept")
        raise typer.Exit(code=1)


# ========================================
# Recommendations and Progress
# ========================================


@app.command("recommend")
def recommend(user_id: str = typer.Argument(..., help="User identifier")) -> None:
    """Show the next practice recommendation for a user."""
    from src.api.dependencies import close_clients, get_practice_service

    async def _run():
        try:
            return await get_practice_service().recommend(user_id)
        finally:
            await close_clients()

    try:
        rec = asyncio.run(_run())
    except TutorError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Recommendation for {user_id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Category", rec.category.value)
    table.add_row("Concept", rec.concept.value if rec.concept else "(any)")
    table.add_row("Difficulty", str(rec.difficulty))
    table.add_row("Question type", rec.question_type.value if rec.question_type else "-")
    table.add_row("Weak", ", ".join(c.value for c in rec.weak_concepts) or "-")
    table.add_row("Strong", ", ".join(c.value for c in rec.strong_concepts) or "-")
    if rec.explored:
        table.add_row("Exploration", "yes")
    console.print(table)
    rprint(f"\n[dim]{rec.rationale}[/dim]")


@app.command("progress")
def progress(user_id: str = typer.Argument(..., help="User identifier")) -> None:
    """Show per-concept accuracy and mastery for a user."""
    from src.api.dependencies import close_clients, get_practice_service

    async def _run():
        try:
            return await get_practice_service().user_progress(user_id)
        finally:
            await close_clients()

    try:
        report = asyncio.run(_run())
    except TutorError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    stats = report.stats
    rprint(
        f"[bold]{stats['totalQuestions']}[/bold] answered, "
        f"[bold]{stats['correctCount']}[/bold] correct ({stats['accuracy']}%), "
        f"average time {stats['averageTime']}s"
    )

    mastery = {p.concept.value: p for p in report.progress}
    table = Table(title="By Concept", show_header=True)
    table.add_column("Concept", style="cyan")
    table.add_column("Answered", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Mastery", justify="right", style="green")

    for concept in CANONICAL_CONCEPTS:
        concept_stats = stats["conceptStats"].get(concept.value)
        row = mastery.get(concept.value)
        if concept_stats is None and row is None:
            continue
        table.add_row(
            concept.value,
            str(concept_stats["total"]) if concept_stats else "0",
            f"{concept_stats['accuracy']}%" if concept_stats else "-",
            f"{row.mastery_level:.0%}" if row else "-",
        )
    console.print(table)


# ========================================
# Info
# ========================================


@app.command("config")
def show_config() -> None:
    """Show current configuration (non-sensitive)."""
    settings = get_settings()
    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Database", settings.database_url.split("@")[-1])
    llm = settings.get_llm_config()
    table.add_row("AI service", llm["base_url"] if llm["configured"] else "[yellow]not configured[/yellow]")
    table.add_row("AI model", llm["model"] or "-")
    table.add_row("AI timeout", f"{llm['timeout_seconds']}s")
    table.add_row("Recommendation seed", str(settings.recommendation_seed))
    table.add_row("Log level", settings.log_level)
    table.add_row("API", f"{settings.api_host}:{settings.api_port}")
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]stats-tutor-backend[/bold] v0.1.0")
    rprint("  Adaptive statistics practice and grading")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
