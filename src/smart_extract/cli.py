"""Typer CLI entry point for smart-extract."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from smart_extract import __version__
from smart_extract.analyzer import TaskAnalyzer
from smart_extract.config import Settings, format_validation_error
from smart_extract.exceptions import ConfigurationError, LLMAuthError
from smart_extract.llm import LLMClient, mask_api_key, validate_api_key
from smart_extract.logging import configure_logging
from smart_extract.orchestrator import ExtractionOrchestrator
from smart_extract.tasks import load_tasks

if TYPE_CHECKING:
    from smart_extract.models import (
        BatchSummary,
        ExtractedTask,
        ExtractionResult,
        TaskOutcome,
    )

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="smart-extract",
    help="Extract tasks from notes, enrich their links and analyze them with an LLM.",
    no_args_is_help=True,
)

_PREVIEW_CHARS = 500


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    try:
        return Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc
    except ConfigurationError as exc:
        err_console.print(Panel(str(exc), title="Configuration Error", border_style="red"))
        raise typer.Exit(code=1) from exc


def _setup(config: Path | None, verbose: bool) -> Settings:
    overrides: dict[str, Any] = {}
    if verbose:
        overrides["logging"] = {"level": "DEBUG"}
    settings = _load_settings(config, **overrides)
    configure_logging(settings.logging)
    return settings


def _read_tasks(path: Path, *, hashtags_only: bool) -> list[ExtractedTask]:
    if not path.is_file():
        err_console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(code=1)
    return load_tasks(path, hashtags_only=hashtags_only)


def _display_outcome(index: int, outcome: TaskOutcome) -> None:
    """Render one analyzed task as a Rich panel."""
    analysis = outcome.analysis
    if analysis is None:
        return

    lines = [
        f"[bold]{escape(analysis.context)}[/bold]",
        "",
        escape(analysis.description),
    ]
    if analysis.next_steps:
        lines.append("")
        lines.append("[cyan]Next steps[/cyan]")
        for i, step in enumerate(analysis.next_steps, start=1):
            lines.append(f"  {i}. {escape(step)}")
    if outcome.links:
        lines.append("")
        lines.append("[cyan]Research links[/cyan]")
        for link in outcome.links:
            lines.append(f"  • {escape(link.title)} [dim]{escape(link.url)}[/dim]")

    tags = " ".join(outcome.task.tags)
    console.print(
        Panel(
            "\n".join(lines),
            title=escape(f"[{index}] {outcome.task.clean_text}"),
            subtitle=tags or None,
            border_style="blue",
        )
    )


def _display_summary(summary: BatchSummary) -> None:
    failed = [o for o in summary.outcomes if o.error]
    if failed:
        table = Table(title="Errors", show_lines=True)
        table.add_column("Line", style="cyan", justify="right", width=6)
        table.add_column("Task", style="white")
        table.add_column("Error", style="red")
        for outcome in failed:
            table.add_row(
                str(outcome.task.line_number),
                escape(outcome.task.clean_text),
                escape(outcome.error or ""),
            )
        console.print(table)

    console.print(
        f"\n[green]{summary.succeeded}[/green]/{summary.total_tasks} tasks analyzed. "
        f"[dim]Estimated cost: ${summary.estimated_cost_usd:.4f}[/dim]"
    )


def _display_extraction(url: str, result: ExtractionResult) -> None:
    style = "green" if result.found else "yellow"
    body = [
        f"Strategy: [bold]{result.strategy or '-'}[/bold]",
        f"Status: [{style}]{result.status.value}[/{style}]",
    ]
    if result.reason:
        body.append(f"Reason: {escape(result.reason)}")
    if result.content is not None:
        if result.content.title:
            body.append(f"Title: {escape(result.content.title)}")
        body.append(f"Characters: {len(result.content.text)}")
    console.print(Panel("\n".join(body), title=escape(url), border_style=style))

    if result.content is not None:
        preview = result.content.text[:_PREVIEW_CHARS]
        if len(result.content.text) > _PREVIEW_CHARS:
            preview += "..."
        console.print(preview, markup=False)


# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]smart-extract[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """smart-extract global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def parse(
    file: Annotated[Path, typer.Argument(help="Markdown note to parse.")],
    all_tasks: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include tasks without hashtags."),
    ] = False,
) -> None:
    """List the tasks found in a markdown note."""
    tasks = _read_tasks(file, hashtags_only=not all_tasks)
    if not tasks:
        console.print("[yellow]No tasks found.[/yellow]")
        return

    table = Table(title=f"Tasks in {file.name}", show_lines=True)
    table.add_column("Line", style="cyan", justify="right", width=6)
    table.add_column("Task", style="white")
    table.add_column("Tags", style="magenta")
    table.add_column("Links", style="dim")
    for task in tasks:
        table.add_row(
            str(task.line_number),
            escape(task.clean_text),
            " ".join(task.tags),
            "\n".join(ref.url for ref in task.urls),
        )
    console.print(table)


@app.command()
def fetch(
    url: Annotated[str, typer.Argument(help="URL to run through the extraction cascade.")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Extract content from a URL without calling the LLM."""
    settings = _setup(config, verbose)

    async def _run() -> ExtractionResult:
        async with ExtractionOrchestrator(settings, LLMClient(settings.llm)) as orchestrator:
            return await orchestrator.extract(url)

    result = asyncio.run(_run())
    _display_extraction(url, result)
    if not result.found:
        raise typer.Exit(code=1)


@app.command()
def analyze(
    file: Annotated[Path, typer.Argument(help="Markdown note with tasks.")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Analyze at most N tasks."),
    ] = None,
    all_tasks: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include tasks without hashtags."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the batch result as JSON."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyze the tasks in a markdown note."""
    settings = _setup(config, verbose)
    tasks = _read_tasks(file, hashtags_only=False)

    async def _run() -> BatchSummary:
        async with TaskAnalyzer(settings) as analyzer:
            return await analyzer.analyze_batch(
                tasks, hashtags_only=not all_tasks, limit=limit
            )

    try:
        summary = asyncio.run(_run())
    except LLMAuthError as exc:
        err_console.print(
            Panel(exc.message, title="Authentication Error", border_style="red")
        )
        raise typer.Exit(code=1) from exc

    if as_json:
        console.print_json(summary.model_dump_json())
        return

    if not summary.outcomes:
        console.print("[yellow]No tasks to analyze.[/yellow]")
        return

    for index, outcome in enumerate(summary.outcomes, start=1):
        _display_outcome(index, outcome)
    _display_summary(summary)


@app.command()
def check(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    ping: Annotated[
        bool,
        typer.Option("--ping", help="Send a test request to the provider."),
    ] = False,
) -> None:
    """Validate configuration and the LLM API key."""
    settings = _load_settings(config)
    api_key = settings.llm.resolved_api_key()

    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Provider", settings.llm.provider)
    table.add_row("Model", settings.llm.model)
    table.add_row("API key", mask_api_key(api_key) if api_key else "[red]not set[/red]")
    table.add_row(
        "Cache",
        f"{'enabled' if settings.cache.enabled else 'disabled'}, "
        f"{settings.cache.ttl_hours:g}h TTL",
    )
    console.print(table)

    try:
        validate_api_key(settings.llm.provider, api_key)
    except LLMAuthError as exc:
        err_console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1) from exc

    if ping:
        ok = asyncio.run(LLMClient(settings.llm).test_connection())
        if not ok:
            err_console.print("[red]Connection test failed.[/red]")
            raise typer.Exit(code=1)
        console.print("[green]Connection test passed.[/green]")
    else:
        console.print("[green]Configuration OK.[/green]")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
