"""
Final run report: JSON file and console summary.
"""
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table

from coldstore.core.logging_config import log_info, log_warning
from coldstore.core.time_utils import elapsed_seconds
from coldstore.schemas.media import TierAssignment
from coldstore.schemas.migration import (
    MigrationReport,
    MigrationResults,
    RunMode,
    RunStats,
)

DELETION_COUNTERS = {"media_deleted", "deletion_failures"}


def format_bytes(bytes_size: int) -> str:
    """Format bytes into human-readable string."""
    size = float(bytes_size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} PB"


def stats_from_tiers(
    total_media: int,
    tiers: Optional[TierAssignment],
    pending: int = 0,
    processed: int = 0,
    references_found: int = 0,
) -> RunStats:
    """Inventory numbers; ``pending`` is how many cold items were eligible this run."""
    if tiers is None:
        return RunStats(total_media=total_media)
    return RunStats(
        total_media=total_media,
        hot_count=len(tiers.hot),
        cold_count=len(tiers.cold),
        hot_bytes=tiers.hot_bytes,
        cold_bytes=tiers.cold_bytes,
        processed_this_run=processed,
        remaining_to_migrate=max(pending - processed, 0),
        references_found=references_found,
    )


def build_report(
    *,
    profile: str,
    mode: RunMode,
    hot_storage_limit: int,
    stats: RunStats,
    results: MigrationResults,
    started_at: datetime,
    bucket: Optional[str] = None,
    delete_media: bool = False,
    message: Optional[str] = None,
) -> MigrationReport:
    """Assemble the report; dry runs never carry a migrated count."""
    if mode == RunMode.DRY_RUN and results.migrated:
        results = results.model_copy(update={"migrated": 0})
    return MigrationReport(
        profile=profile,
        mode=mode,
        bucket=bucket,
        hot_storage_limit=hot_storage_limit,
        delete_media=delete_media,
        message=message,
        stats=stats,
        results=results,
        elapsed_seconds=elapsed_seconds(started_at),
    )


def deletion_enabled(report: MigrationReport) -> bool:
    return report.mode == RunMode.DELETE_ONLY or (report.delete_media and report.mode == RunMode.LIVE)


def report_payload(report: MigrationReport) -> Dict[str, Any]:
    """JSON-ready report; deletion counters only appear when deletion was enabled."""
    payload = report.model_dump(mode="json")
    payload["dry_run"] = report.dry_run
    if not deletion_enabled(report):
        for key in DELETION_COUNTERS:
            payload["results"].pop(key, None)
    return payload


def write_report(report: MigrationReport, path: str | Path) -> Optional[Path]:
    """Write the report as JSON; returns the path, or None if it could not be written."""
    report_path = Path(path)
    try:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, "w") as f:
            json.dump(report_payload(report), f, indent=2)
    except OSError as e:
        log_warning(f"Failed to save migration report: {e}")
        return None

    log_info(f"Migration report saved: {report_path}")
    return report_path


def print_summary(report: MigrationReport, console: Optional[Console] = None) -> None:
    """Print the run summary table."""
    console = console or Console()
    stats = report.stats
    results = report.results

    mode_label = {
        RunMode.DRY_RUN: "DRY RUN",
        RunMode.LIVE: "LIVE",
        RunMode.DELETE_ONLY: "DELETE ONLY",
    }[report.mode]

    table = Table(title=f"Cold Storage Migration ({report.profile})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Mode", mode_label)
    table.add_row("Total media", str(stats.total_media))
    table.add_row("Hot (kept)", f"{stats.hot_count} ({format_bytes(stats.hot_bytes)})")
    table.add_row("Cold (to migrate)", f"{stats.cold_count} ({format_bytes(stats.cold_bytes)})")

    if report.mode == RunMode.DELETE_ONLY:
        table.add_row("Deleted", str(results.media_deleted))
        table.add_row("Failed", str(results.failed))
    else:
        if stats.remaining_to_migrate:
            table.add_row("Processed this run", str(stats.processed_this_run))
            table.add_row("Remaining", str(stats.remaining_to_migrate))
        table.add_row("References found", str(stats.references_found))
        if report.dry_run:
            table.add_row("Would migrate", str(results.would_migrate))
        else:
            table.add_row("Migrated", str(results.migrated))
            table.add_row("Already in blob", str(results.already_in_blob))
            table.add_row("Uploaded", format_bytes(results.bytes_uploaded))
            table.add_row("Objects updated", str(results.objects_updated))
            if results.object_update_failures:
                table.add_row("Object update failures", str(results.object_update_failures))
        table.add_row("Skipped", str(results.skipped))
        table.add_row("Failed", str(results.failed))
        if deletion_enabled(report):
            table.add_row("Originals deleted", str(results.media_deleted))
            if results.deletion_failures:
                table.add_row("Deletion failures", str(results.deletion_failures))

    table.add_row("Elapsed", f"{report.elapsed_seconds:.1f}s")
    console.print(table)

    if report.message:
        console.print(f"[green]{report.message}[/green]")

    if results.errors:
        console.print(f"[red]{len(results.errors)} items failed:[/red]")
        for failed in results.errors[:20]:
            console.print(f"  - {failed.name or failed.media_id}: {failed.error}")
        if len(results.errors) > 20:
            console.print(f"  ... and {len(results.errors) - 20} more (see report file)")
    elif report.dry_run:
        console.print("[yellow]DRY RUN - no changes were made. Set DRY_RUN=false to migrate.[/yellow]")
