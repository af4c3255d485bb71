"""
Moves cold media items to blob storage one at a time.

Per item: compute the destination path, reuse an existing blob or download
and upload, point every referencing object at the blob URL, then optionally
delete the original. Items are processed strictly in order with fixed pauses
between network calls.
"""
import asyncio
from typing import Callable, List, Optional, Sequence

from coldstore.core.config import Settings
from coldstore.core.exceptions import (
    BlobStoreError,
    ColdStoreError,
    ContentStoreError,
    DownloadError,
)
from coldstore.core.logging_config import log_debug, log_error, log_info, log_warning
from coldstore.integrations.blob import BlobClient, is_blob_url
from coldstore.integrations.cosmic import CosmicClient, DownloadedMedia
from coldstore.schemas.media import MediaItem, ObjectReference, ReferenceIndex
from coldstore.schemas.migration import (
    FailedItem,
    ItemOutcome,
    MigrationResults,
    OutcomeStatus,
)

PathFunction = Callable[[MediaItem], str]
ProgressCallback = Callable[[int, MigrationResults], None]


class MigrationExecutor:
    """Sequential per-item migration with fixed rate limiting."""

    def __init__(
        self,
        cosmic: CosmicClient,
        blob: BlobClient,
        path_for: PathFunction,
        *,
        dry_run: bool = True,
        delete_media: bool = False,
        external_url_field: str = "external_image_url",
        download_delay: float = 0.1,
        upload_delay: float = 0.05,
        write_delay: float = 0.2,
        delete_delay: float = 0.05,
        progress_interval: int = 50,
    ):
        self.cosmic = cosmic
        self.blob = blob
        self.path_for = path_for
        self.dry_run = dry_run
        self.delete_media = delete_media
        self.external_url_field = external_url_field
        self.download_delay = download_delay
        self.upload_delay = upload_delay
        self.write_delay = write_delay
        self.delete_delay = delete_delay
        self.progress_interval = progress_interval

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cosmic: CosmicClient,
        blob: BlobClient,
        path_for: PathFunction,
    ) -> "MigrationExecutor":
        return cls(
            cosmic,
            blob,
            path_for,
            dry_run=settings.dry_run,
            delete_media=settings.delete_media,
            external_url_field=settings.external_url_field,
            download_delay=settings.download_delay,
            upload_delay=settings.upload_delay,
            write_delay=settings.write_delay,
            delete_delay=settings.delete_delay,
            progress_interval=settings.progress_interval,
        )

    @staticmethod
    async def _pause(seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def _download(self, item: MediaItem) -> DownloadedMedia:
        """Download from the primary URL, falling back to the alternate URL."""
        urls: List[str] = []
        for url in (item.primary_url, item.alternate_url):
            if url and url not in urls:
                urls.append(url)

        if not urls:
            raise DownloadError(item.label, "Media item has no URL")

        last_error: Optional[DownloadError] = None
        for url in urls:
            try:
                return await self.cosmic.download(url)
            except DownloadError as e:
                last_error = e
                log_warning("Download failed", media_id=item.id, url=url, error=e.detail)
        raise last_error

    async def _update_references(self, references: Sequence[ObjectReference], blob_url: str, outcome: ItemOutcome) -> None:
        for ref in references:
            try:
                await self.cosmic.update_object_metadata(ref.id, {self.external_url_field: blob_url})
                outcome.objects_updated += 1
                log_debug(f"Updated {ref.label}", media_id=outcome.media_id)
            except ContentStoreError as e:
                outcome.object_update_failures += 1
                log_warning(
                    f"Failed to update {ref.label}",
                    media_id=outcome.media_id,
                    error=str(e),
                )
            await self._pause(self.write_delay)

    async def _delete_original(self, item: MediaItem) -> bool:
        try:
            await self.cosmic.delete_media(item.source_id)
            return True
        except ContentStoreError as e:
            log_warning(
                "Migrated but original could not be deleted, clean up manually",
                media_id=item.source_id,
                error=str(e),
            )
            return False
        finally:
            await self._pause(self.delete_delay)

    async def migrate_item(self, item: MediaItem, references: Sequence[ObjectReference] = ()) -> ItemOutcome:
        """
        Migrate one item.

        Failures while resolving, downloading or uploading the binary mark the
        item failed. Reference update and deletion failures are counted on the
        outcome but never change its status.
        """
        outcome = ItemOutcome(
            media_id=item.id,
            name=item.display_name,
            status=OutcomeStatus.FAILED,
            references=len(references),
        )

        blob_url = next((url for url in (item.primary_url, item.alternate_url) if is_blob_url(url)), None)
        if blob_url:
            outcome.status = OutcomeStatus.SKIPPED
            outcome.blob_url = blob_url
            log_debug("Already served from blob storage", media_id=item.id)
            return outcome

        try:
            outcome.blob_path = self.path_for(item)

            if self.dry_run:
                outcome.status = OutcomeStatus.WOULD_MIGRATE
                log_debug(
                    f"[DRY RUN] Would migrate {item.label} -> {outcome.blob_path}",
                    references=len(references),
                )
                return outcome

            blob_url = await self.blob.head(outcome.blob_path)
            if blob_url:
                outcome.already_in_blob = True
                log_debug("Already in blob storage", media_id=item.id, path=outcome.blob_path)
            else:
                downloaded = await self._download(item)
                await self._pause(self.download_delay)
                blob_url = await self.blob.put(outcome.blob_path, downloaded.content, downloaded.content_type)
                outcome.bytes_uploaded = downloaded.size
                await self._pause(self.upload_delay)
        except (DownloadError, BlobStoreError, ValueError) as e:
            outcome.error = str(e)
            log_warning("Migration failed", media_id=item.id, name=item.display_name, error=str(e))
            return outcome

        outcome.blob_url = blob_url
        outcome.status = OutcomeStatus.MIGRATED

        await self._update_references(references, blob_url, outcome)

        if self.delete_media and item.source_id:
            outcome.deleted = await self._delete_original(item)
            outcome.deletion_failed = not outcome.deleted

        return outcome

    async def run(
        self,
        items: Sequence[MediaItem],
        index: ReferenceIndex,
        results: Optional[MigrationResults] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MigrationResults:
        """
        Process ``items`` in order, folding outcomes into ``results``.

        A failing item never stops the batch.
        """
        results = results if results is not None else MigrationResults()
        total = len(items)

        for idx, item in enumerate(items, 1):
            try:
                outcome = await self.migrate_item(item, index.get(item.id))
            except Exception as e:
                log_error(e, media_id=item.id, context="migrate_item")
                outcome = ItemOutcome(
                    media_id=item.id,
                    name=item.display_name,
                    status=OutcomeStatus.FAILED,
                    error=str(e),
                )
            results.record(outcome)

            if idx % self.progress_interval == 0 or idx == total:
                log_info(
                    f"Processed {idx}/{total}",
                    migrated=results.migrated,
                    would_migrate=results.would_migrate,
                    failed=results.failed,
                )
                if on_progress is not None:
                    on_progress(idx, results)

        return results

    async def delete_only(
        self,
        items: Sequence[MediaItem],
        results: Optional[MigrationResults] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MigrationResults:
        """
        Delete the content store originals of ``items`` without migrating.

        No download, upload or reference scan happens. Items with no known
        content store id are skipped; failed deletions are reported as failed.
        """
        results = results if results is not None else MigrationResults()
        total = len(items)

        for idx, item in enumerate(items, 1):
            if not item.source_id:
                results.skipped += 1
                continue

            try:
                await self.cosmic.delete_media(item.source_id)
                results.media_deleted += 1
            except ColdStoreError as e:
                results.deletion_failures += 1
                results.failed += 1
                results.errors.append(FailedItem(media_id=item.id, name=item.display_name, error=str(e)))
                log_warning("Delete failed", media_id=item.source_id, error=str(e))
            await self._pause(self.delete_delay)

            if idx % self.progress_interval == 0 or idx == total:
                log_info(f"Deleted {results.media_deleted}/{total}", failed=results.deletion_failures)
                if on_progress is not None:
                    on_progress(idx, results)

        return results
