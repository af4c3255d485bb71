"""
Cold storage pipeline orchestration.

Phases: starting -> media_fetched -> split_identified -> references_mapped
-> migrating -> complete. Delete-only runs branch off after the split.
Every phase transition is written to the state file, and a report is written
at the end of every run, including aborted ones.
"""
from typing import List, Optional

from coldstore.core.config import Settings
from coldstore.core.logging_config import log_error, log_info, log_warning
from coldstore.core.time_utils import utc_now
from coldstore.integrations.blob import BlobClient
from coldstore.integrations.cosmic import CosmicClient
from coldstore.schemas.media import MediaItem, ReferenceIndex, TierAssignment
from coldstore.schemas.migration import (
    MigrationReport,
    MigrationResults,
    RunMode,
    RunPhase,
)
from coldstore.services.matching import MediaLookup
from coldstore.services.migration_executor import MigrationExecutor
from coldstore.services.profiles import MEDIA_PROFILE, MigrationProfile
from coldstore.services.reference_scanner import scan_references
from coldstore.services.report import build_report, format_bytes, stats_from_tiers, write_report
from coldstore.services.state_recorder import StateRecorder
from coldstore.services.tiering import split_tiers


def resolve_mode(settings: Settings) -> RunMode:
    if settings.delete_only:
        return RunMode.DELETE_ONLY
    if settings.dry_run:
        return RunMode.DRY_RUN
    return RunMode.LIVE


class ColdStoragePipeline:
    """Runs one profile end to end against the configured stores."""

    def __init__(
        self,
        settings: Settings,
        profile: MigrationProfile = MEDIA_PROFILE,
        cosmic: Optional[CosmicClient] = None,
        blob: Optional[BlobClient] = None,
        recorder: Optional[StateRecorder] = None,
        executor: Optional[MigrationExecutor] = None,
    ):
        self.settings = settings
        self.profile = profile
        self.cosmic = cosmic or CosmicClient.from_settings(settings)
        self.blob = blob or BlobClient.from_settings(settings)
        self.recorder = recorder or StateRecorder(profile.state_file(settings))
        self.executor = executor or MigrationExecutor.from_settings(
            settings, self.cosmic, self.blob, profile.path_for
        )
        self.mode = resolve_mode(settings)
        self.hot_limit = profile.hot_limit(settings)

        self.results = MigrationResults()
        self.total_media = 0
        self.tiers: Optional[TierAssignment] = None
        self.pending = 0
        self.processed = 0
        self.references_found = 0

    @property
    def deletes_originals(self) -> bool:
        return self.mode == RunMode.DELETE_ONLY or (
            self.mode == RunMode.LIVE and self.settings.delete_media
        )

    def _stats(self):
        return stats_from_tiers(
            self.total_media,
            self.tiers,
            pending=self.pending,
            processed=self.processed,
            references_found=self.references_found,
        )

    def _on_progress(self, processed: int, results: MigrationResults) -> None:
        self.processed = processed
        self.recorder.record(
            RunPhase.MIGRATING,
            processed=processed,
            total=self.pending,
            **results.counters(),
        )

    def _finish(self, started_at, message: Optional[str] = None) -> MigrationReport:
        report = build_report(
            profile=self.profile.name,
            mode=self.mode,
            bucket=self.settings.cosmic_bucket_slug,
            hot_storage_limit=self.hot_limit,
            delete_media=self.deletes_originals,
            message=message,
            stats=self._stats(),
            results=self.results,
            started_at=started_at,
        )
        write_report(report, self.profile.report_file(self.settings))
        return report

    def _select_batch(self, cold: List[MediaItem]) -> List[MediaItem]:
        """Drop ineligible cold items (counted as skipped) and apply the per-run cap."""
        eligible = [item for item in cold if self.profile.is_eligible(item)]
        dropped = len(cold) - len(eligible)
        if dropped:
            self.results.skipped += dropped
            log_info(f"{dropped} cold items have nothing to migrate, skipping")

        self.pending = len(eligible)
        cap = self.settings.max_migrations_per_run
        if cap and len(eligible) > cap:
            log_info(f"Processing {cap} of {len(eligible)} cold items this run")
            return eligible[:cap]
        return eligible

    async def run(self) -> MigrationReport:
        """
        Execute the pipeline.

        Raises:
            Exception: Anything unexpected, after an ``error`` state record
                and a report have been written
        """
        started_at = utc_now()
        settings = self.settings

        log_info("=" * 80)
        log_info(
            f"Starting cold storage migration (profile={self.profile.name}, mode={self.mode.value})"
        )
        log_info(f"Hot storage limit: {self.hot_limit}")
        if self.deletes_originals:
            log_warning("Originals will be DELETED from the content store")
        log_info("=" * 80)

        self.recorder.record(RunPhase.STARTING, profile=self.profile.name, mode=self.mode.value)

        try:
            candidates = await self.profile.load_candidates(self.cosmic, settings)
            self.total_media = len(candidates)
            self.recorder.record(RunPhase.MEDIA_FETCHED, total_media=self.total_media)
            log_info(f"Found {self.total_media} candidates")

            if not candidates:
                self.recorder.record(RunPhase.COMPLETE, **self.results.counters())
                return self._finish(started_at, message="No media found, nothing to do")

            self.tiers = split_tiers(candidates, self.hot_limit)
            self.recorder.record(
                RunPhase.SPLIT_IDENTIFIED,
                total_media=self.total_media,
                hot_count=len(self.tiers.hot),
                cold_count=len(self.tiers.cold),
                hot_bytes=self.tiers.hot_bytes,
                cold_bytes=self.tiers.cold_bytes,
            )
            log_info(f"Hot storage: {len(self.tiers.hot)} items ({format_bytes(self.tiers.hot_bytes)})")
            log_info(f"Cold storage: {len(self.tiers.cold)} items ({format_bytes(self.tiers.cold_bytes)})")

            batch = self._select_batch(self.tiers.cold)
            if not batch:
                self.recorder.record(RunPhase.COMPLETE, **self.results.counters())
                if self.tiers.cold:
                    message = "No cold items need migrating"
                else:
                    message = "All media within hot storage limit, nothing to migrate"
                return self._finish(started_at, message=message)

            if self.mode == RunMode.DELETE_ONLY:
                return await self._run_delete_only(batch, started_at)

            if self.profile.scan_references:
                lookup = MediaLookup(
                    batch,
                    fuzzy_threshold=settings.fuzzy_title_threshold if settings.fuzzy_title_match else None,
                )
                index = await scan_references(
                    self.cosmic,
                    batch,
                    settings.object_types_with_images,
                    lookup=lookup,
                    page_size=settings.batch_size,
                    image_field=settings.image_field,
                )
            else:
                index = ReferenceIndex.from_owners(batch)
            self.references_found = index.total_references
            self.recorder.record(
                RunPhase.REFERENCES_MAPPED,
                media_with_references=sum(1 for item in batch if index.get(item.id)),
                total_references=self.references_found,
            )

            if self.deletes_originals and self.profile.resolve_sources is not None:
                await self.profile.resolve_sources(self.cosmic, batch, settings)

            self.recorder.record(RunPhase.MIGRATING, processed=0, total=self.pending, **self.results.counters())
            await self.executor.run(batch, index, self.results, on_progress=self._on_progress)
            self.processed = len(batch)

            self.recorder.record(RunPhase.COMPLETE, **self.results.counters())
            return self._finish(started_at)

        except Exception as e:
            log_error(e, context="pipeline", profile=self.profile.name)
            self.recorder.record(RunPhase.ERROR, error=str(e), **self.results.counters())
            self._finish(started_at, message=f"Aborted: {e}")
            raise

    async def _run_delete_only(self, batch: List[MediaItem], started_at) -> MigrationReport:
        log_warning(f"DELETE ONLY: removing {len(batch)} originals without migrating")

        if self.profile.resolve_sources is not None:
            await self.profile.resolve_sources(self.cosmic, batch, self.settings)

        self.recorder.record(RunPhase.MIGRATING, processed=0, total=self.pending, **self.results.counters())
        await self.executor.delete_only(batch, self.results, on_progress=self._on_progress)
        self.processed = len(batch)

        self.recorder.record(RunPhase.COMPLETE, **self.results.counters())
        return self._finish(started_at)
