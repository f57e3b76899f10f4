"""
MediaBridge Typer CLI Application

Drives cross-provider matching and aggregation against file-backed
provider catalogs, and maintains the persistent match cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Optional, TypeVar

import typer

from mediabridge import __version__
from mediabridge.cli.output import (
    console,
    handle_cli_error,
    matches_to_data,
    print_json,
    render_chapters,
    render_details,
    render_episodes,
    render_matches,
    render_summary,
)
from mediabridge.config import Settings, load_settings
from mediabridge.core.aggregation import DataAggregator
from mediabridge.core.cache import ProviderCache
from mediabridge.core.matching import CrossProviderMatcher
from mediabridge.core.models import MediaDetails, MediaIdentity, MediaType
from mediabridge.core.registry import ProviderRegistry
from mediabridge.core.statistics import StatisticsCollector
from mediabridge.providers import build_registry, load_catalog
from mediabridge.shared.constants import CLIDefaults
from mediabridge.shared.conversion import RecordConverter
from mediabridge.shared.errors import ApplicationError, ErrorCode, ErrorContext
from mediabridge.shared.logging import setup_structured_logger

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CliState:
    """Per-invocation state shared by every command."""

    settings: Settings
    statistics: StatisticsCollector

    def open_cache(self, cache_file: Path | None) -> ProviderCache | None:
        if not self.settings.cache.enabled:
            return None
        return ProviderCache.from_settings(
            self.settings.cache, statistics=self.statistics, path=cache_file
        )


app = typer.Typer(
    name=CLIDefaults.APP_NAME,
    help="Cross-provider media matching and metadata aggregation.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
cache_app = typer.Typer(help="Inspect and maintain the match cache.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")

CatalogArgument = Annotated[
    Path,
    typer.Argument(
        help="JSON catalog describing the providers and their media.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
]
CacheFileOption = Annotated[
    Optional[Path],
    typer.Option("--cache-file", help="Match cache file (overrides cache.path)."),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Emit JSON instead of tables.")]


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{CLIDefaults.APP_NAME} {__version__}")
        raise typer.Exit


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="TOML configuration file."),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Override the configured log level."),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Load settings and configure logging before any command runs."""
    try:
        settings = load_settings(config)
        if log_level:
            settings.logging = settings.logging.model_validate(
                {**settings.logging.model_dump(), "level": log_level}
            )
    except Exception as e:
        raise typer.Exit(handle_cli_error(e, "main-callback")) from e

    setup_structured_logger(
        CLIDefaults.APP_NAME,
        level=settings.logging.level,
        log_file=settings.logging.file,
        console_output=settings.logging.console_output,
        use_rich_console=settings.logging.rich_console,
    )
    ctx.obj = CliState(settings=settings, statistics=StatisticsCollector())


def _state(ctx: typer.Context) -> CliState:
    if ctx.obj is None:
        ctx.obj = CliState(settings=Settings(), statistics=StatisticsCollector())
    return ctx.obj


def _run(
    command: str,
    action: Callable[[], Awaitable[T]],
    *,
    json_output: bool,
) -> T:
    try:
        return asyncio.run(action())
    except Exception as e:
        raise typer.Exit(handle_cli_error(e, command, json_output=json_output)) from e


def _open_registry(catalog: Path) -> ProviderRegistry:
    return build_registry(load_catalog(catalog))


@app.command("match")
def match_command(
    ctx: typer.Context,
    catalog: CatalogArgument,
    title: Annotated[str, typer.Option("--title", "-t", help="Primary title.")],
    media_type: Annotated[
        MediaType, typer.Option("--type", help="Media type of the primary record.")
    ],
    primary: Annotated[
        str, typer.Option("--primary", "-p", help="Provider the record came from.")
    ],
    english: Annotated[Optional[str], typer.Option("--english")] = None,
    romaji: Annotated[Optional[str], typer.Option("--romaji")] = None,
    native: Annotated[Optional[str], typer.Option("--native")] = None,
    year: Annotated[Optional[int], typer.Option("--year", "-y")] = None,
    cache_file: CacheFileOption = None,
    json_output: JsonOption = False,
) -> None:
    """Find the best match for a title on every other catalog provider."""
    state = _state(ctx)

    async def action() -> dict[str, Any]:
        registry = _open_registry(catalog)
        identity = MediaIdentity(
            title=title,
            media_type=media_type,
            primary_provider_id=primary,
            english_title=english,
            romaji_title=romaji,
            native_title=native,
            release_year=year,
        )
        matcher = CrossProviderMatcher.from_settings(
            state.settings, registry=registry, statistics=state.statistics
        )
        return await matcher.find_matches(
            identity, registry.search_function(), state.open_cache(cache_file)
        )

    matches = _run("match", action, json_output=json_output)
    if json_output:
        print_json("match", {"title": title, "matches": matches_to_data(matches)})
    else:
        render_matches(title, matches)


@app.command("aggregate")
def aggregate_command(
    ctx: typer.Context,
    catalog: CatalogArgument,
    provider: Annotated[
        str, typer.Option("--provider", "-p", help="Primary provider id.")
    ],
    media_id: Annotated[
        str, typer.Option("--id", help="Media id on the primary provider.")
    ],
    cache_file: CacheFileOption = None,
    show_stats: Annotated[
        bool, typer.Option("--stats", help="Print call statistics afterwards.")
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Match a primary record and merge every matched provider's data."""
    state = _state(ctx)
    provider_id = provider.strip().lower()

    async def action() -> dict[str, Any]:
        registry = _open_registry(catalog)
        if provider_id not in registry:
            raise ApplicationError(
                ErrorCode.CLI_INVALID_ARGUMENTS,
                f"Provider '{provider_id}' is not in the catalog "
                f"(available: {', '.join(registry.provider_ids)})",
                ErrorContext(operation="aggregate", provider_id=provider_id),
            )

        raw_details = await registry.provider(provider_id).get_details(media_id)
        primary = RecordConverter.to_record(raw_details, MediaDetails)
        identity = MediaIdentity.from_details(primary, provider_id)

        matcher = CrossProviderMatcher.from_settings(
            state.settings, registry=registry, statistics=state.statistics
        )
        matches = await matcher.find_matches(
            identity, registry.search_function(), state.open_cache(cache_file)
        )

        aggregator = DataAggregator.from_settings(state.settings, state.statistics)
        details = await aggregator.aggregate_media_details(
            primary,
            matches,
            registry.details_fetcher(),
            primary_provider_id=provider_id,
        )
        result: dict[str, Any] = {"details": details, "matches": matches}
        if primary.media_type.is_reading:
            result["chapters"] = await aggregator.aggregate_chapters(
                primary,
                matches,
                registry.chapter_fetcher(),
                primary_provider_id=provider_id,
            )
        else:
            episodes = await aggregator.aggregate_episodes(
                primary,
                matches,
                registry.episode_fetcher(),
                primary_provider_id=provider_id,
            )
            result["pagination"] = aggregator.paginate(episodes)
        return result

    result = _run("aggregate", action, json_output=json_output)

    if json_output:
        data: dict[str, Any] = {
            "details": RecordConverter.to_dict(result["details"], exclude_none=True),
            "matches": matches_to_data(result["matches"]),
        }
        if "chapters" in result:
            data["chapters"] = [RecordConverter.to_dict(c) for c in result["chapters"]]
        else:
            pagination = result["pagination"]
            data["pagination"] = pagination.summary()
            data["episodes"] = [
                RecordConverter.to_dict(episode, exclude_none=True)
                for page in pagination.pages
                for episode in page.episodes
            ]
        if show_stats:
            data["statistics"] = state.statistics.get_summary()
        print_json("aggregate", data)
        return

    render_details(result["details"])
    if "chapters" in result:
        render_chapters(result["chapters"])
    else:
        render_episodes(result["pagination"])
    if show_stats:
        summary = state.statistics.get_summary()
        render_summary("Cache", summary["cache"])
        render_summary("Matching", summary["matching"])
        for pid, provider_summary in summary["providers"].items():
            render_summary(f"Provider {pid}", provider_summary)


def _require_cache(state: CliState, cache_file: Path | None) -> ProviderCache:
    path = cache_file or state.settings.cache.path
    if path is None:
        raise ApplicationError(
            ErrorCode.CLI_INVALID_ARGUMENTS,
            "No cache file given; pass --cache-file or set cache.path",
            ErrorContext(operation="cache"),
        )
    return ProviderCache.from_settings(
        state.settings.cache, statistics=state.statistics, path=path
    )


@cache_app.command("stats")
def cache_stats_command(
    ctx: typer.Context,
    cache_file: CacheFileOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show entry count and size of the match cache."""
    try:
        cache = _require_cache(_state(ctx), cache_file)
    except Exception as e:
        raise typer.Exit(handle_cli_error(e, "cache stats", json_output=json_output)) from e

    summary = {
        "path": str(cache.path),
        "entries": cache.get_entry_count(),
        "size_bytes": cache.get_cache_size(),
        "max_size_bytes": cache.max_size_bytes,
        "ttl_seconds": cache.ttl_seconds,
    }
    if json_output:
        print_json("cache stats", summary)
    else:
        render_summary("Match cache", summary)


@cache_app.command("clear")
def cache_clear_command(
    ctx: typer.Context,
    cache_file: CacheFileOption = None,
    json_output: JsonOption = False,
) -> None:
    """Remove every cached match set."""
    try:
        cache = _require_cache(_state(ctx), cache_file)
        removed = cache.get_entry_count()
        cache.clear_all()
    except Exception as e:
        raise typer.Exit(handle_cli_error(e, "cache clear", json_output=json_output)) from e

    if json_output:
        print_json("cache clear", {"removed": removed})
    else:
        console.print(f"[green]Removed {removed} cache entries.[/green]")


@cache_app.command("purge")
def cache_purge_command(
    ctx: typer.Context,
    cache_file: CacheFileOption = None,
    json_output: JsonOption = False,
) -> None:
    """Remove expired cache entries and rewrite the cache file."""
    try:
        cache = _require_cache(_state(ctx), cache_file)
        removed = cache.clear_expired()
        cache.save()
    except Exception as e:
        raise typer.Exit(handle_cli_error(e, "cache purge", json_output=json_output)) from e

    if json_output:
        print_json("cache purge", {"removed": removed, "remaining": cache.get_entry_count()})
    else:
        console.print(
            f"[green]Removed {removed} expired entries; "
            f"{cache.get_entry_count()} remain.[/green]"
        )


if __name__ == "__main__":
    app()
