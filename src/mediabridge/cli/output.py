"""
CLI output helpers.

JSON envelopes for ``--json`` mode and rich tables for the console.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from mediabridge.core.models import (
    AggregatedMediaDetails,
    Chapter,
    EpisodePagination,
    ProviderMatch,
)
from mediabridge.shared.conversion import RecordConverter
from mediabridge.shared.constants import CLIDefaults
from mediabridge.shared.errors import ErrorCode, MediaBridgeError

logger = logging.getLogger(__name__)

console = Console()
error_console = Console(stderr=True)


def format_json_output(
    command: str,
    *,
    success: bool,
    errors: list[str] | None = None,
    data: Any = None,
) -> bytes:
    """Wrap a command result in the standard JSON envelope."""
    output: dict[str, Any] = {"success": success, "command": command}
    if errors:
        output["errors"] = errors
    if data is not None:
        output["data"] = data
    return RecordConverter.to_json_bytes(output)


def print_json(command: str, data: Any) -> None:
    typer.echo(format_json_output(command, success=True, data=data).decode("utf-8"))


def handle_cli_error(error: Exception, command: str, *, json_output: bool = False) -> int:
    """Report a failed command and return its exit code.

    MediaBridge errors are shown with their code; anything else is logged
    with a traceback and reported as an unexpected error.
    """
    if isinstance(error, MediaBridgeError):
        code = error.code
        message = error.message
        logger.error("Command %s failed: %s", command, error)
    else:
        code = ErrorCode.CLI_UNEXPECTED_ERROR
        message = str(error) or type(error).__name__
        logger.exception("Unexpected error in command %s", command)

    if json_output:
        payload = format_json_output(
            command, success=False, errors=[f"{code.value}: {message}"]
        )
        typer.echo(payload.decode("utf-8"))
    else:
        error_console.print(f"[red]{command} failed ({code.value}): {message}[/red]")
    return 1


def matches_to_data(matches: Mapping[str, ProviderMatch]) -> list[dict[str, Any]]:
    return [RecordConverter.to_dict(match) for match in matches.values()]


def render_matches(title: str, matches: Mapping[str, ProviderMatch]) -> None:
    if not matches:
        console.print(f"[yellow]No acceptable matches for '{title}'.[/yellow]")
        return

    table = Table(title=f"Matches for '{title}'")
    table.add_column("Provider", style="cyan")
    table.add_column("Media ID")
    table.add_column("Matched Title", style="green")
    table.add_column("Confidence", justify="right")
    for match in matches.values():
        table.add_row(
            match.provider_id,
            match.matched_media_id,
            match.matched_title,
            f"{match.confidence:.3f}",
        )
    console.print(table)


def render_details(details: AggregatedMediaDetails) -> None:
    table = Table(title=details.title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="magenta")

    rows: list[tuple[str, Any]] = [
        ("media_type", details.media_type.value),
        ("english_title", details.english_title),
        ("status", details.status),
        ("start_date", details.start_date),
        ("episodes", details.episodes),
        ("chapters", details.chapters),
        ("rating", details.rating),
        ("average_score", details.average_score),
        ("genres", ", ".join(details.genres)),
        ("tags", ", ".join(details.tags)),
        ("characters", len(details.characters)),
        ("cover_image", details.cover_image),
        ("description", _shorten(details.description)),
    ]
    for field_name, value in rows:
        if value in (None, "", 0):
            continue
        source = details.data_source_attribution.get(field_name, details.source_id or "")
        table.add_row(field_name, str(value), source)
    console.print(table)

    providers = ", ".join(
        f"{provider_id} ({details.match_confidences[provider_id]:.2f})"
        if provider_id in details.match_confidences
        else provider_id
        for provider_id in details.contributing_providers
    )
    console.print(f"Contributing providers: {providers}")


def render_episodes(pagination: EpisodePagination) -> None:
    console.print(
        f"{pagination.total_episodes} episodes, grouped by {pagination.mode.value}"
    )
    shown = 0
    for page in pagination.pages:
        table = Table(title=page.label)
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Air Date")
        table.add_column("Extra Sources", style="magenta")
        for episode in page.episodes:
            if shown >= CLIDefaults.MAX_TABLE_EPISODES:
                break
            table.add_row(
                str(episode.number),
                episode.title or "",
                episode.air_date or "",
                ", ".join(episode.alternative_data),
            )
            shown += 1
        console.print(table)
        if shown >= CLIDefaults.MAX_TABLE_EPISODES:
            console.print("[dim]...[/dim]")
            break


def render_chapters(chapters: Sequence[Chapter]) -> None:
    table = Table(title=f"{len(chapters)} chapters")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Released")
    table.add_column("Pages", justify="right")
    for chapter in chapters[: CLIDefaults.MAX_TABLE_EPISODES]:
        table.add_row(
            "" if chapter.number is None else f"{chapter.number:g}",
            chapter.title or "",
            chapter.release_date or "",
            "" if chapter.page_count is None else str(chapter.page_count),
        )
    console.print(table)


def render_summary(title: str, summary: Mapping[str, Any]) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in summary.items():
        table.add_row(key, str(value))
    console.print(table)


def _shorten(text: str | None, limit: int = 80) -> str | None:
    if not text or len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
