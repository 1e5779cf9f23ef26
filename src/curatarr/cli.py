"""Command-line interface for curatarr."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path  # noqa: TC003 - needed at runtime for typer
from typing import TYPE_CHECKING, Annotated, NoReturn

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from curatarr.clients import (
    BraveSearchClient,
    RadarrClient,
    RateLimiter,
    SonarrClient,
    TmdbClient,
    TvdbClient,
)
from curatarr.config import Config, ConfigurationError
from curatarr.library import LibraryIndex
from curatarr.logging_config import DEFAULT_LOG_LEVEL, configure_logging, parse_log_level
from curatarr.models import FeedItem, MediaKind, ReleaseStatus
from curatarr.parser import parse_release, parse_tv_title
from curatarr.resolver import IdentityResolver, ResolutionRequest
from curatarr.scoring import is_admissible, score
from curatarr.state_machine import build_identity_key, identity_keys, record_name
from curatarr.store import ReleaseStore, StoreError
from curatarr.sync import SyncOrchestrator

if TYPE_CHECKING:
    from curatarr.models import CatalogIdentity, ReleaseRecord
    from curatarr.sync import ItemOutcome, SyncReport

app = typer.Typer(
    name="curatarr",
    help="Identify, score and triage scene releases against your Radarr/Sonarr library.",
    no_args_is_help=True,
)
releases_app = typer.Typer(help="Inspect and curate stored release records.")
app.add_typer(releases_app, name="releases")

ignore_app = typer.Typer(help="Manage the ignore list.")
app.add_typer(ignore_app, name="ignore")

console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format options."""

    JSON = "json"
    TABLE = "table"
    SIMPLE = "simple"


_STATUS_STYLES = {
    ReleaseStatus.NEW: "green",
    ReleaseStatus.NEW_SHOW: "green",
    ReleaseStatus.NEW_SEASON: "cyan",
    ReleaseStatus.UPGRADE_CANDIDATE: "yellow",
    ReleaseStatus.IGNORED: "dim",
    ReleaseStatus.ADDED: "blue",
}


# =============================================================================
# Shared helpers
# =============================================================================


def load_config() -> Config:
    """Load configuration, exiting with code 2 when it is invalid."""
    try:
        return Config.load()
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2) from e


def get_store(config: Config) -> ReleaseStore:
    """Get a ReleaseStore for the configured state path."""
    return ReleaseStore(config.state.path)


def _require_record(store: ReleaseStore, guid: str) -> ReleaseRecord:
    record = store.get(guid)
    if record is None:
        error_console.print(f"[red]No release record for guid:[/red] {guid}")
        raise typer.Exit(1)
    return record


def _fail_on_store_error(e: StoreError) -> NoReturn:
    error_console.print(f"[red]Could not write state file:[/red] {e}")
    raise typer.Exit(1) from e


@dataclass
class Runtime:
    """Clients and snapshots wired together for one command."""

    resolver: IdentityResolver
    library: LibraryIndex


@asynccontextmanager
async def open_runtime(config: Config) -> AsyncIterator[Runtime]:
    """Open every configured client and build the resolver and library snapshot.

    Catalog and library clients share one rate limiter so successive calls are
    spaced by ``sync.request_delay``; web search gets its own slower limiter.
    """
    limiter = RateLimiter(config.sync.request_delay)
    common = {
        "timeout": config.timeout,
        "rate_limiter": limiter,
        "max_rate_limit_wait": config.sync.max_rate_limit_wait,
    }

    async with AsyncExitStack() as stack:
        tvdb = tmdb = brave = None
        if config.tvdb:
            tvdb = await stack.enter_async_context(
                TvdbClient(config.tvdb.api_key, pin=config.tvdb.pin, **common)
            )
        if config.tmdb:
            tmdb = await stack.enter_async_context(TmdbClient(config.tmdb.api_key, **common))
        if config.brave:
            brave = await stack.enter_async_context(
                BraveSearchClient(
                    config.brave.api_key,
                    timeout=config.timeout,
                    rate_limiter=RateLimiter(config.sync.web_search_delay),
                    max_rate_limit_wait=config.sync.max_rate_limit_wait,
                )
            )

        library = LibraryIndex()
        if config.radarr:
            async with RadarrClient(config.radarr.url, config.radarr.api_key, **common) as c:
                for item in await c.get_library_items():
                    library.add(item)
        if config.sonarr:
            async with SonarrClient(config.sonarr.url, config.sonarr.api_key, **common) as c:
                for item in await c.get_library_items():
                    library.add(item)

        resolver = IdentityResolver(primary=tvdb, secondary=tmdb, tertiary=brave, library=library)
        yield Runtime(resolver=resolver, library=library)


def read_feed_file(path: Path) -> list[FeedItem]:
    """Read feed items from a JSON file holding a list of objects.

    Raises:
        typer.Exit: If the file is unreadable or malformed
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        error_console.print(f"[red]Could not read feed file {path}:[/red] {e}")
        raise typer.Exit(1) from e

    if not isinstance(data, list):
        error_console.print("[red]Feed file must contain a JSON list of items[/red]")
        raise typer.Exit(1)

    try:
        return [FeedItem.model_validate(entry) for entry in data]
    except ValidationError as e:
        error_console.print(f"[red]Invalid feed item:[/red] {e}")
        raise typer.Exit(1) from e


# =============================================================================
# Formatting
# =============================================================================


def format_record_table(record: ReleaseRecord) -> Table:
    """Format one release record as a rich table."""
    table = Table(title=f"Release: {record.display_name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    style = _STATUS_STYLES.get(record.status, "white")
    table.add_row("Status", f"[{style}]{record.status.value}[/{style}]")
    table.add_row("GUID", record.guid)
    table.add_row("Title", record.title)
    table.add_row("Kind", record.kind.value)
    if record.show_name:
        table.add_row("Show", record.show_name)
    if record.season_number is not None:
        table.add_row("Season", str(record.season_number))
    table.add_row("Year", str(record.year) if record.year else "-")
    table.add_row("Quality", f"{record.resolution.value} {record.codec.value} {record.source_tag}")
    table.add_row("Audio", record.audio)
    if record.audio_languages:
        table.add_row("Languages", ", ".join(record.audio_languages))
    table.add_row("Size (MB)", f"{record.size_mb:.0f}" if record.size_mb else "-")
    table.add_row("Score", f"{record.quality_score:g}")
    if record.existing_quality_score is not None:
        table.add_row("Existing Score", f"{record.existing_quality_score:g}")
    table.add_row("Confidence", record.confidence.value)
    for id_field in ("tvdb_id", "tmdb_id", "imdb_id"):
        value = getattr(record, id_field)
        manual = " (manual)" if getattr(record, f"{id_field}_manual") else ""
        table.add_row(id_field.replace("_id", "").upper(), f"{value or '-'}{manual}")
    if record.canonical_title:
        table.add_row("Canonical Title", record.canonical_title)
    if record.library_item_title:
        preserved = " (kept from previous run)" if record.linkage_preserved else ""
        table.add_row("Library Item", f"{record.library_item_title}{preserved}")
    if record.manually_ignored:
        table.add_row("Ignored", "Yes")
    table.add_row("Last Checked", record.last_checked_at.isoformat(timespec="seconds"))
    return table


def format_records_table(records: list[ReleaseRecord], title: str) -> Table:
    """Format a list of release records as a rich table."""
    table = Table(title=title)
    table.add_column("Status")
    table.add_column("Name", style="cyan")
    table.add_column("Quality")
    table.add_column("Score", justify="right")
    table.add_column("Confidence")
    table.add_column("GUID", style="dim")
    for record in records:
        style = _STATUS_STYLES.get(record.status, "white")
        name = record.display_name
        if record.season_number is not None:
            name = f"{name} S{record.season_number:02d}"
        table.add_row(
            f"[{style}]{record.status.value}[/{style}]",
            name,
            f"{record.resolution.value} {record.codec.value}",
            f"{record.quality_score:g}",
            record.confidence.value,
            record.guid,
        )
    return table


def format_report_table(report: SyncReport) -> Table:
    """Format a run report's counts as a rich table."""
    title = f"Sync {report.batch_id}" + (" (resumed)" if report.resumed else "")
    table = Table(title=title)
    table.add_column("Outcome", style="cyan")
    table.add_column("Items", justify="right")
    for key, count in report.counts.items():
        style = "red" if key == "errored" and count else "green" if count else "dim"
        table.add_row(key, f"[{style}]{count}[/{style}]")
    return table


def format_report_simple(report: SyncReport) -> str:
    """Format a run report as one line per outcome bucket."""
    parts = [f"{key}={count}" for key, count in report.counts.items() if count]
    return f"{report.batch_id}: " + (", ".join(parts) if parts else "nothing processed")


def print_json(data: object) -> None:
    """Print data as JSON without markup or line wrapping."""
    console.print(json.dumps(data, indent=2), soft_wrap=True, markup=False, highlight=False)


def print_report(report: SyncReport, format: OutputFormat) -> None:
    """Print a run report in the requested format."""
    if format == OutputFormat.JSON:
        print_json(report.to_dict())
        return
    if format == OutputFormat.SIMPLE:
        console.print(format_report_simple(report))
    else:
        console.print(format_report_table(report))
    for error in report.errors:
        error_console.print(f"[red]Error:[/red] {error}")


def _identity_dict(identity: CatalogIdentity) -> dict[str, object]:
    return identity.model_dump(mode="json")


# =============================================================================
# Global options
# =============================================================================


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Logging level (debug, info, warning, error). "
            "Overrides CURATARR_LOG_LEVEL and the config file.",
        ),
    ] = None,
) -> None:
    """Identify, score and triage scene releases."""
    level = log_level or os.environ.get("CURATARR_LOG_LEVEL")
    if not level:
        try:
            level = Config.load().logging.level
        except ConfigurationError:
            level = None
    level = level or DEFAULT_LOG_LEVEL

    try:
        parse_log_level(level)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    configure_logging(level.lower())


# =============================================================================
# Sync
# =============================================================================


@app.command()
def sync(
    feed_file: Annotated[
        Path,
        typer.Argument(help="JSON file with a list of feed items (guid, title, kind, ...)."),
    ],
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
    resume: Annotated[
        bool,
        typer.Option(
            "--resume/--no-resume",
            help="Continue an interrupted run, skipping items it already finished.",
        ),
    ] = True,
    batch_id: Annotated[
        str | None,
        typer.Option("--batch-id", help="Identifier for this run (generated if omitted)."),
    ] = None,
) -> None:
    """Run feed items through parsing, identity resolution, scoring and triage.

    Exits 0 when every item was processed, 1 when any item failed and 2 on
    configuration errors.

    Example:
        curatarr sync feed.json
        curatarr sync feed.json --format json --no-resume
    """
    config = load_config()
    items = read_feed_file(feed_file)
    if not items:
        error_console.print("[yellow]No feed items to process[/yellow]")
        raise typer.Exit(0)

    store = get_store(config)
    if not resume and store.get_batch_progress() is not None:
        error_console.print("[dim]Discarding progress of the interrupted run[/dim]")

    async def run() -> SyncReport:
        async with open_runtime(config) as runtime:
            error_console.print(f"[dim]Library snapshot: {len(runtime.library)} items[/dim]")
            orchestrator = SyncOrchestrator(
                store,
                policy=config.quality,
                resolver=runtime.resolver,
                library=runtime.library,
                chunk_size=config.sync.chunk_size,
            )
            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeRemainingColumn(),
                console=console,
                disable=len(items) < 3 or format == OutputFormat.JSON,
            ) as progress:
                task = progress.add_task("Processing releases...", total=len(items))

                def advance(_outcome: ItemOutcome) -> None:
                    progress.advance(task)

                return await orchestrator.run(
                    items, batch_id=batch_id, resume=resume, on_item=advance
                )

    try:
        report = asyncio.run(run())
    except StoreError as e:
        _fail_on_store_error(e)
    except httpx.HTTPError as e:
        error_console.print(f"[red]Could not load the library snapshot:[/red] {e}")
        raise typer.Exit(1) from e

    print_report(report, format)
    raise typer.Exit(1 if report.has_errors else 0)


# =============================================================================
# Debugging commands
# =============================================================================


@app.command()
def parse(
    title: Annotated[str, typer.Argument(help="Release title to parse.")],
    kind: Annotated[
        MediaKind,
        typer.Option("--kind", "-k", help="Treat the title as a movie or a TV release."),
    ] = MediaKind.MOVIE,
    description: Annotated[
        str | None,
        typer.Option("--description", "-d", help="Feed description (size, embedded ids)."),
    ] = None,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
) -> None:
    """Show what the parser and the quality policy make of a release title.

    Example:
        curatarr parse "Movie.Name.2019.1080p.WEB-DL.DDP5.1.x264"
        curatarr parse "Show.Name.S02E01.1080p" --kind tv
    """
    config = load_config()
    parsed = parse_release(title, description)
    admissible = is_admissible(parsed, config.quality)
    quality = score(parsed, config.quality)

    data: dict[str, object] = parsed.model_dump(mode="json")
    data["admissible"] = admissible
    data["score"] = quality
    if kind is MediaKind.TV:
        tv = parse_tv_title(title)
        data["show_name"] = tv.show_name
        data["season"] = tv.season
        data["show_year"] = tv.year

    if format == OutputFormat.JSON:
        print_json(data)
        return
    if format == OutputFormat.SIMPLE:
        name = data.get("show_name") or parsed.clean_title
        verdict = "admissible" if admissible else "not admissible"
        console.print(
            f"{name}: {parsed.resolution.value} {parsed.codec.value} {parsed.source_tag} "
            f"{parsed.audio} - score {quality:g}, {verdict}"
        )
        return

    table = Table(title=f"Parsed: {title}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in data.items():
        if value in (None, [], ""):
            continue
        table.add_row(key, ", ".join(value) if isinstance(value, list) else str(value))
    console.print(table)


@app.command()
def resolve(
    name: Annotated[str, typer.Argument(help="Show or movie name to resolve.")],
    kind: Annotated[
        MediaKind,
        typer.Option("--kind", "-k", help="Resolve a movie or a TV show."),
    ] = MediaKind.TV,
    year: Annotated[int | None, typer.Option("--year", "-y", help="Release year.")] = None,
    season: Annotated[
        int | None, typer.Option("--season", "-s", help="Season number (TV).")
    ] = None,
    language: Annotated[
        str | None,
        typer.Option("--language", help="Expected original language (two-letter code)."),
    ] = None,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
) -> None:
    """Resolve a name to catalog ids and show the decision trail.

    Example:
        curatarr resolve "Kurukshetra" --kind tv --language hi
    """
    config = load_config()
    try:
        config.require_catalog()
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2) from e

    request = ResolutionRequest(
        name=name, kind=kind, season=season, year=year, expected_language=language
    )

    async def run() -> CatalogIdentity:
        async with open_runtime(config) as runtime:
            return await runtime.resolver.resolve(request)

    try:
        identity = asyncio.run(run())
    except httpx.HTTPError as e:
        error_console.print(f"[red]Could not load the library snapshot:[/red] {e}")
        raise typer.Exit(1) from e

    if format == OutputFormat.JSON:
        print_json(_identity_dict(identity))
        raise typer.Exit(0 if identity.is_resolved else 1)
    if format == OutputFormat.SIMPLE:
        console.print(
            f"{name}: tvdb={identity.tvdb_id} tmdb={identity.tmdb_id} "
            f"imdb={identity.imdb_id} ({identity.confidence.value})"
        )
        raise typer.Exit(0 if identity.is_resolved else 1)

    table = Table(title=f"Identity: {identity.canonical_title or name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green" if identity.is_resolved else "red")
    table.add_row("Confidence", identity.confidence.value)
    table.add_row("TVDB", str(identity.tvdb_id or "-"))
    table.add_row("TMDB", str(identity.tmdb_id or "-"))
    table.add_row("IMDb", identity.imdb_id or "-")
    table.add_row("Original Language", identity.original_language or "-")
    if identity.library_item_id is not None:
        table.add_row("Library Item", str(identity.library_item_id))
    console.print(table)

    trail = Table(title="Decision Trail")
    trail.add_column("Strategy", style="cyan")
    trail.add_column("Outcome")
    trail.add_column("Detail")
    trail.add_column("Id", justify="right")
    trail.add_column("Similarity", justify="right")
    for step in identity.trail:
        trail.add_row(
            step.strategy,
            step.outcome,
            step.detail,
            str(step.catalog_id) if step.catalog_id is not None else "",
            f"{step.similarity:.2f}" if step.similarity is not None else "",
        )
    console.print(trail)
    raise typer.Exit(0 if identity.is_resolved else 1)


# =============================================================================
# Release record commands
# =============================================================================


@releases_app.command("list")
def list_releases(
    status: Annotated[
        ReleaseStatus | None,
        typer.Option("--status", "-s", help="Only show records with this status."),
    ] = None,
    kind: Annotated[
        MediaKind | None,
        typer.Option("--kind", "-k", help="Only show movies or TV releases."),
    ] = None,
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
) -> None:
    """List stored release records.

    Example:
        curatarr releases list --status NEW
        curatarr releases list --kind tv --format json
    """
    config = load_config()
    store = get_store(config)
    records = store.get_by_status(status, kind) if status else store.get_all(kind)
    records.sort(key=lambda r: r.last_checked_at, reverse=True)

    if format == OutputFormat.JSON:
        print_json([r.model_dump(mode="json") for r in records])
    elif format == OutputFormat.SIMPLE:
        for record in records:
            console.print(f"{record.status.value}\t{record.display_name}\t{record.guid}")
    else:
        title = f"Releases ({status.value})" if status else "Releases"
        console.print(format_records_table(records, title))


@releases_app.command("show")
def show_release(
    guid: Annotated[str, typer.Argument(help="Feed guid of the release.")],
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
) -> None:
    """Show one stored release record."""
    config = load_config()
    record = _require_record(get_store(config), guid)
    if format == OutputFormat.JSON:
        print_json(record.model_dump(mode="json"))
    elif format == OutputFormat.SIMPLE:
        console.print(f"{record.status.value}\t{record.display_name}\t{record.guid}")
    else:
        console.print(format_record_table(record))


@releases_app.command("set-id")
def set_id(
    guid: Annotated[str, typer.Argument(help="Feed guid of the release.")],
    tvdb: Annotated[int | None, typer.Option("--tvdb", help="TVDB id to pin.")] = None,
    tmdb: Annotated[int | None, typer.Option("--tmdb", help="TMDB id to pin.")] = None,
    imdb: Annotated[str | None, typer.Option("--imdb", help="IMDb id (tt...) to pin.")] = None,
) -> None:
    """Pin catalog ids on a release; later runs never overwrite them.

    Example:
        curatarr releases set-id <guid> --tvdb 468042
    """
    if tvdb is None and tmdb is None and imdb is None:
        error_console.print("[red]Error:[/red] Provide at least one of --tvdb, --tmdb, --imdb")
        raise typer.Exit(1)
    if imdb is not None and not imdb.startswith("tt"):
        error_console.print(f"[red]Error:[/red] Invalid IMDb id: {imdb}")
        raise typer.Exit(1)

    config = load_config()
    store = get_store(config)
    _require_record(store, guid)
    try:
        if tvdb is not None:
            store.set_manual_id(guid, "tvdb_id", tvdb)
        if tmdb is not None:
            store.set_manual_id(guid, "tmdb_id", tmdb)
        if imdb is not None:
            store.set_manual_id(guid, "imdb_id", imdb)
    except StoreError as e:
        _fail_on_store_error(e)
    console.print(f"[green]Pinned ids on[/green] {guid}")


@releases_app.command("mark-added")
def mark_added(guid: Annotated[str, typer.Argument(help="Feed guid of the release.")]) -> None:
    """Mark a release as added; it keeps ADDED on every later run."""
    _set_status(guid, ReleaseStatus.ADDED)


@releases_app.command("unmark-added")
def unmark_added(guid: Annotated[str, typer.Argument(help="Feed guid of the release.")]) -> None:
    """Undo mark-added; the next sync re-evaluates the release."""
    config = load_config()
    store = get_store(config)
    record = _require_record(store, guid)
    if record.status is not ReleaseStatus.ADDED:
        error_console.print(f"[yellow]{guid} is not marked as added[/yellow]")
        raise typer.Exit(1)
    _set_status(guid, ReleaseStatus.NEW, store=store)


def _set_status(guid: str, status: ReleaseStatus, *, store: ReleaseStore | None = None) -> None:
    if store is None:
        store = get_store(load_config())
        _require_record(store, guid)
    try:
        store.set_status(guid, status)
    except StoreError as e:
        _fail_on_store_error(e)
    console.print(f"[green]{guid}[/green] -> {status.value}")


@releases_app.command("ignore")
def ignore_release(guid: Annotated[str, typer.Argument(help="Feed guid of the release.")]) -> None:
    """Ignore a single release record."""
    _set_ignored(guid, ignored=True)


@releases_app.command("unignore")
def unignore_release(
    guid: Annotated[str, typer.Argument(help="Feed guid of the release.")],
) -> None:
    """Stop ignoring a single release record.

    Ignore-list entries matching the release still apply; remove them with
    ``curatarr ignore remove``.
    """
    _set_ignored(guid, ignored=False)


def _set_ignored(guid: str, *, ignored: bool) -> None:
    config = load_config()
    store = get_store(config)
    record = _require_record(store, guid)
    try:
        updated = store.set_manually_ignored(guid, ignored)
    except StoreError as e:
        _fail_on_store_error(e)
    console.print(f"[green]{guid}[/green] -> {updated.status.value}")

    if not ignored:
        listed = [key for key in identity_keys(record) if key in store.ignored_keys()]
        if listed:
            console.print(
                f"[yellow]Still matched by ignore list:[/yellow] {', '.join(listed)}"
            )


# =============================================================================
# Ignore list commands
# =============================================================================


@ignore_app.command("add")
def ignore_add(
    tvdb: Annotated[int | None, typer.Option("--tvdb", help="TVDB id to ignore.")] = None,
    tmdb: Annotated[int | None, typer.Option("--tmdb", help="TMDB id to ignore.")] = None,
    name: Annotated[str | None, typer.Option("--name", help="Show or movie name.")] = None,
    guid: Annotated[
        str | None,
        typer.Option("--guid", help="Ignore the identity of a stored release."),
    ] = None,
    label: Annotated[str | None, typer.Option("--label", help="Note shown in listings.")] = None,
) -> None:
    """Add an identity to the ignore list; matching releases become IGNORED.

    Example:
        curatarr ignore add --tvdb 378181 --label "wrong show"
        curatarr ignore add --name "Some Show"
    """
    config = load_config()
    store = get_store(config)

    if guid is not None:
        record = _require_record(store, guid)
        key = build_identity_key(record.tvdb_id, record.tmdb_id, record_name(record))
        label = label or record.display_name
    else:
        key = build_identity_key(tvdb, tmdb, name)
        label = label or name

    if not key:
        error_console.print("[red]Error:[/red] Provide one of --tvdb, --tmdb, --name, --guid")
        raise typer.Exit(1)

    try:
        store.add_ignored(key, label)
    except StoreError as e:
        _fail_on_store_error(e)
    console.print(f"[green]Ignoring[/green] {key}")


@ignore_app.command("remove")
def ignore_remove(
    key: Annotated[str, typer.Argument(help="Ignore-list key, e.g. tvdb:378181.")],
) -> None:
    """Remove a key from the ignore list."""
    config = load_config()
    store = get_store(config)
    try:
        removed = store.remove_ignored(key)
    except StoreError as e:
        _fail_on_store_error(e)
    if not removed:
        error_console.print(f"[yellow]Not on the ignore list:[/yellow] {key}")
        raise typer.Exit(1)
    console.print(f"[green]Removed[/green] {key}")


@ignore_app.command("list")
def ignore_list(
    format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = OutputFormat.TABLE,
) -> None:
    """List the ignore list."""
    config = load_config()
    entries = get_store(config).ignored_entries()

    if format == OutputFormat.JSON:
        print_json([e.model_dump(mode="json") for e in entries])
        return
    if format == OutputFormat.SIMPLE:
        for entry in entries:
            console.print(entry.key)
        return

    table = Table(title="Ignore List")
    table.add_column("Key", style="cyan")
    table.add_column("Label")
    table.add_column("Added", style="dim")
    for entry in entries:
        table.add_row(entry.key, entry.label or "", entry.added_at.isoformat(timespec="seconds"))
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from curatarr import __version__

    console.print(f"curatarr version {__version__}")


if __name__ == "__main__":
    app()
