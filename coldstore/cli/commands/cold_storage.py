"""
Cold storage migration commands.

All run behavior comes from environment variables (see Settings); the only
flag selects the migration profile.
"""
from __future__ import annotations

import asyncio

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from coldstore.core.config import Settings, get_settings
from coldstore.core.exceptions import ConfigurationError
from coldstore.core.http_client import close_http_client
from coldstore.core.logging_config import log_error, log_info, setup_logging
from coldstore.schemas.migration import MigrationReport, RunMode
from coldstore.services.pipeline import ColdStoragePipeline, resolve_mode
from coldstore.services.profiles import PROFILES, MigrationProfile, get_profile
from coldstore.services.report import print_summary

app = typer.Typer(help="Cold storage migration commands")
console = Console()

EXIT_CONFIG_ERROR = 1
EXIT_FATAL = 2


async def _run_pipeline(settings: Settings, profile: MigrationProfile) -> MigrationReport:
    pipeline = ColdStoragePipeline(settings, profile)
    try:
        return await pipeline.run()
    finally:
        await close_http_client()


def _print_header(settings: Settings, profile: MigrationProfile) -> None:
    mode = resolve_mode(settings)
    header = Table(title="Cold Storage Migration")
    header.add_column("Setting", style="cyan")
    header.add_column("Value", style="white")
    header.add_row("Profile", profile.name)
    header.add_row("Bucket", settings.cosmic_bucket_slug or "")
    header.add_row("Mode", mode.value.replace("_", " ").upper())
    header.add_row("Hot storage limit", str(profile.hot_limit(settings)))
    header.add_row("Batch size", str(settings.batch_size))
    if settings.max_migrations_per_run:
        header.add_row("Max migrations per run", str(settings.max_migrations_per_run))
    header.add_row(
        "Delete originals",
        "yes" if mode == RunMode.DELETE_ONLY or (mode == RunMode.LIVE and settings.delete_media) else "no",
    )
    header.add_row("State file", profile.state_file(settings))
    header.add_row("Report file", profile.report_file(settings))
    console.print(header)


@app.command("run")
def run_migration(
    profile: str = typer.Option("media", "--profile", "-p", help="Migration profile to run"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Migrate cold media to blob storage.

    This command:
    - Lists every candidate newest-first and keeps the newest N in hot storage
    - Finds every object that references a cold item
    - Uploads cold items to blob storage and writes the blob URL to each reference
    - Optionally deletes the originals (DELETE_MEDIA / DELETE_ONLY)

    DRY_RUN defaults to true; set DRY_RUN=false to make changes.
    """
    try:
        migration_profile = get_profile(profile)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--profile")

    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    setup_logging(settings.log_level, settings.log_dir, verbose=verbose)

    try:
        settings.ensure_complete()
    except ConfigurationError as e:
        log_error(str(e))
        console.print(f"[red]{e}[/red]")
        for name in e.missing:
            console.print(f"  - {name}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    _print_header(settings, migration_profile)
    log_info("Starting cold storage command", profile=migration_profile.name)

    try:
        report = asyncio.run(_run_pipeline(settings, migration_profile))
    except Exception as e:
        console.print(f"[red]Migration aborted: {e}[/red]")
        console.print(f"See {migration_profile.state_file(settings)} for the last recorded phase")
        raise typer.Exit(code=EXIT_FATAL)

    print_summary(report, console)


@app.command("profiles")
def list_profiles():
    """List available migration profiles."""
    table = Table(title="Migration Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Hot limit", style="white")
    table.add_column("Description", style="white")
    for name, migration_profile in PROFILES.items():
        table.add_row(name, str(migration_profile.default_hot_limit), migration_profile.description)
    console.print(table)
