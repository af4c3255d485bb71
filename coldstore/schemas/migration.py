"""
Run state, per-item outcome and report schemas.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from coldstore.core.time_utils import utc_now


class RunPhase(str, Enum):
    """Phases recorded in the state file."""
    STARTING = "starting"
    MEDIA_FETCHED = "media_fetched"
    SPLIT_IDENTIFIED = "split_identified"
    REFERENCES_MAPPED = "references_mapped"
    MIGRATING = "migrating"
    COMPLETE = "complete"
    ERROR = "error"


class RunMode(str, Enum):
    DRY_RUN = "dry_run"
    LIVE = "live"
    DELETE_ONLY = "delete_only"


class OutcomeStatus(str, Enum):
    MIGRATED = "migrated"
    WOULD_MIGRATE = "would_migrate"
    SKIPPED = "skipped"
    FAILED = "failed"


class ItemOutcome(BaseModel):
    """Result of processing a single cold media item."""
    media_id: str
    name: Optional[str] = None
    status: OutcomeStatus
    blob_path: Optional[str] = None
    blob_url: Optional[str] = None
    already_in_blob: bool = False
    bytes_uploaded: int = 0
    references: int = 0
    objects_updated: int = 0
    object_update_failures: int = 0
    deleted: bool = False
    deletion_failed: bool = False
    error: Optional[str] = None


class FailedItem(BaseModel):
    """Entry in the report's error list."""
    media_id: str
    name: Optional[str] = None
    error: str


class MigrationResults(BaseModel):
    """Running totals for a run."""
    migrated: int = 0
    already_in_blob: int = 0
    would_migrate: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_uploaded: int = 0
    objects_updated: int = 0
    object_update_failures: int = 0
    media_deleted: int = 0
    deletion_failures: int = 0
    errors: List[FailedItem] = Field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> None:
        """Fold one item outcome into the totals."""
        if outcome.status == OutcomeStatus.MIGRATED:
            self.migrated += 1
            if outcome.already_in_blob:
                self.already_in_blob += 1
        elif outcome.status == OutcomeStatus.WOULD_MIGRATE:
            self.would_migrate += 1
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(
                FailedItem(
                    media_id=outcome.media_id,
                    name=outcome.name,
                    error=outcome.error or "Unknown error",
                )
            )

        self.bytes_uploaded += outcome.bytes_uploaded
        self.objects_updated += outcome.objects_updated
        self.object_update_failures += outcome.object_update_failures
        if outcome.deleted:
            self.media_deleted += 1
        if outcome.deletion_failed:
            self.deletion_failures += 1

    def counters(self) -> dict:
        """Counters for the state file (errors list excluded)."""
        return self.model_dump(exclude={"errors"})


class RunStats(BaseModel):
    """Inventory numbers for a run."""
    total_media: int = 0
    hot_count: int = 0
    cold_count: int = 0
    hot_bytes: int = 0
    cold_bytes: int = 0
    processed_this_run: int = 0
    remaining_to_migrate: int = 0
    references_found: int = 0


class MigrationReport(BaseModel):
    """Final structured summary written at the end of every run."""
    timestamp: datetime = Field(default_factory=utc_now)
    profile: str
    mode: RunMode
    bucket: Optional[str] = None
    hot_storage_limit: int
    delete_media: bool = False
    message: Optional[str] = None
    stats: RunStats = Field(default_factory=RunStats)
    results: MigrationResults = Field(default_factory=MigrationResults)
    elapsed_seconds: float = 0.0

    @property
    def dry_run(self) -> bool:
        return self.mode == RunMode.DRY_RUN
