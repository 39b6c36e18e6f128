"""
Command-line interface for the weekly reflection generator.

Uses Typer for commands and rich for progress and summaries. Loads a
.env file so API tokens can live outside the shell environment.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta, timezone
import logging
from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import AppConfig, load_config, masked_config, validate_config
from .core.errors import ConfigInvalidError, DataCollectionFailedError, ReflectionError
from .core.types import DateRange, ProgressCallback, ProgressEvent, ReflectionResult
from .llm.tracing import flush, setup_langfuse
from .notify import FailureNotification, send_failure_notification
from .runner import run_reflection
from .utils.logging import log_event, setup_logging

app = typer.Typer(add_completion=False, help="Generate a weekly reflection from GitHub and Toggl activity.")
console = Console()

STAGE_LABELS = {
    "config": "Loading configuration",
    "data-collection": "Collecting GitHub and Toggl data",
    "analysis": "Analyzing activity",
    "publish": "Publishing reflection",
}


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def build_date_range(
    start: str | None,
    end: str | None,
    default_period_days: int,
    now: datetime | None = None,
) -> DateRange:
    """Build the reporting period from CLI dates, interpreted in UTC.

    The end date covers its whole day. Without an end the period ends
    now; without a start it begins default_period_days before the end
    date at midnight.
    """
    if end:
        end_at = datetime.combine(parse_date(end), time.max, tzinfo=timezone.utc)
    else:
        end_at = now or datetime.now(timezone.utc)

    if start:
        start_at = datetime.combine(parse_date(start), time.min, tzinfo=timezone.utc)
    else:
        start_day = end_at.astimezone(timezone.utc).date() - timedelta(days=default_period_days)
        start_at = datetime.combine(start_day, time.min, tzinfo=timezone.utc)

    if start_at > end_at:
        raise typer.BadParameter(f"Start date {start_at.date()} is after end date {end_at.date()}")
    return DateRange(start=start_at, end=end_at)


def make_progress_callback(status, verbose: bool) -> ProgressCallback:
    def _on_progress(event: ProgressEvent) -> None:
        label = STAGE_LABELS.get(event.stage, event.stage)
        if event.status == "start":
            status.update(f"{label}...")
        if not verbose:
            return
        if event.status == "error":
            suffix = f": {escape(event.message)}" if event.message else ""
            console.print(f"[red]error[/red] {label}{suffix}")
        elif event.status == "complete":
            console.print(f"[green]done[/green]  {label}")

    return _on_progress


def render_result(result: ReflectionResult) -> None:
    summary = result.summary
    table = Table(title="Weekly reflection", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Period", f"{summary.date_range.start_key} - {summary.date_range.end_key}")
    table.add_row("Pull requests", str(summary.record_count))
    table.add_row("Time entries", str(summary.time_entry_count))
    table.add_row("Work hours", f"{summary.total_work_hours:.1f}h")
    table.add_row("AI summary", "enabled" if summary.ai_enabled else "disabled")
    table.add_row("Output", summary.output_type)
    if result.remote_url:
        table.add_row("Notion page", result.remote_url)
    if result.local_path:
        table.add_row("Local file", result.local_path)
    console.print(table)

    if result.preview:
        console.rule("Preview")
        console.print(result.preview, markup=False, highlight=False)

    for warning in result.warnings:
        console.print(f"[yellow]! {escape(warning)}[/yellow]", highlight=False)


def render_error(error: ReflectionError) -> None:
    if isinstance(error, ConfigInvalidError):
        console.print("[red]Configuration is incomplete. Check these fields:[/red]")
        for name in error.missing_fields:
            console.print(f"  - {name}")
    elif isinstance(error, DataCollectionFailedError):
        console.print(f"[red]Data collection failed ({error.source}):[/red] {escape(error.message)}", highlight=False)
    else:
        console.print(f"[red]{escape(str(error))}[/red]")


def _notify_failure(cfg: AppConfig, kind: str, message: str, logger: logging.Logger) -> None:
    if not cfg.notify.webhook_url:
        return
    send_failure_notification(
        cfg.notify.webhook_url,
        FailureNotification(error_kind=kind, message=message),
        timeout=cfg.notify.timeout_seconds,
        logger=logger,
    )


@app.command()
def run(
    start: str | None = typer.Option(None, "--start", "-s", help="Start date (YYYY-MM-DD, UTC)."),
    end: str | None = typer.Option(None, "--end", "-e", help="End date (YYYY-MM-DD, UTC)."),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Preview without creating a Notion page."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every pipeline stage."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    previous_try: list[str] | None = typer.Option(
        None,
        "--previous-try",
        help="Try item from last week's reflection (repeatable).",
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Generate the weekly reflection for a period.

    Args:
        start: First day of the period
        end: Last day of the period
        dry_run: Render a Markdown preview instead of publishing
        verbose: Print each stage as it completes
        config: Optional path to YAML config file
        previous_try: Try items carried over from last week
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level

    logger = setup_logging(cfg.logging)
    setup_langfuse(cfg.langfuse, logger)
    date_range = build_date_range(start, end, cfg.reflection.default_period_days)

    try:
        with console.status("Starting...") as status:
            result = asyncio.run(
                run_reflection(
                    cfg,
                    date_range,
                    dry_run=dry_run,
                    on_progress=make_progress_callback(status, verbose),
                    previous_try_items=list(previous_try) if previous_try else None,
                    logger=logger,
                )
            )
    except ReflectionError as exc:
        render_error(exc)
        _notify_failure(cfg, exc.kind, str(exc), logger)
        raise typer.Exit(code=1) from exc
    except Exception as exc:  # noqa: BLE001
        log_event(
            logger,
            "Unexpected error",
            event="unexpected_error",
            error=f"{type(exc).__name__}: {exc}",
            level=logging.ERROR,
        )
        console.print(f"[red]Unexpected error:[/red] {escape(str(exc))}", highlight=False)
        _notify_failure(cfg, "unexpected_error", str(exc), logger)
        raise typer.Exit(code=1) from exc
    finally:
        flush()

    render_result(result)


@app.command("check-config")
def check_config(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
):
    """Show the effective configuration with secrets masked."""
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    console.print_json(data=masked_config(cfg))

    missing = validate_config(cfg)
    if missing:
        console.print("[red]Missing required fields:[/red]")
        for name in missing:
            console.print(f"  - {name}")
        raise typer.Exit(code=1)
    console.print("[green]Configuration is complete.[/green]")


if __name__ == "__main__":
    app()
