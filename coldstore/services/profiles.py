"""
Migration profiles.

A profile supplies everything that differs between asset classes: how the
candidates are loaded (already newest-first), where each one lands in blob
storage, whether references are scanned or come from the owning object, and
default limits and file names.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from coldstore.core.config import Settings
from coldstore.core.exceptions import ContentStoreError, ContentStoreNotFoundError
from coldstore.core.logging_config import log_info, log_warning
from coldstore.integrations.cosmic import CosmicClient, is_content_store_url
from coldstore.schemas.media import ImageRef, MediaItem
from coldstore.services.matching import MediaLookup, extract_filename
from coldstore.services.migration_executor import PathFunction

CandidateLoader = Callable[[CosmicClient, Settings], Awaitable[List[MediaItem]]]
SourceResolver = Callable[[CosmicClient, List[MediaItem], Settings], Awaitable[int]]

MEDIA_ARCHIVE_PREFIX = "cosmic-archive"
EPISODE_PREFIX = "episodes"
EPISODE_TYPE = "episode"


@dataclass(frozen=True)
class MigrationProfile:
    name: str
    description: str
    load_candidates: CandidateLoader
    path_for: PathFunction
    default_hot_limit: int
    default_state_file: str
    default_report_file: str
    # False: each candidate's only reference is its owner
    scan_references: bool = True
    is_eligible: Callable[[MediaItem], bool] = lambda item: True
    # Fills in source_id when deletion needs it
    resolve_sources: Optional[SourceResolver] = None

    def hot_limit(self, settings: Settings) -> int:
        if settings.hot_storage_limit is not None:
            return settings.hot_storage_limit
        return self.default_hot_limit

    def state_file(self, settings: Settings) -> str:
        return settings.state_file or self.default_state_file

    def report_file(self, settings: Settings) -> str:
        return settings.report_file or self.default_report_file


# Media profile

async def load_all_media(client: CosmicClient, settings: Settings) -> List[MediaItem]:
    return await client.fetch_all_media(settings.batch_size, sort="-created_at")


def media_archive_path(item: MediaItem) -> str:
    """
    ``cosmic-archive/<id>/<name>``.

    Media names are not unique; the id keeps same-named items apart.
    """
    name = item.display_name or extract_filename(item.primary_url) or item.id
    return f"{MEDIA_ARCHIVE_PREFIX}/{item.id}/{name.replace('/', '-')}"


# Episode image profile

async def load_episode_images(client: CosmicClient, settings: Settings) -> List[MediaItem]:
    """
    One candidate per episode, newest broadcast first.

    Episodes without a content store image are kept so tiering counts
    positions the same way as the episode list; they are filtered out of
    the cold set.
    """
    field = settings.image_field
    props = f"id,slug,title,type,metadata.{field},metadata.broadcast_date"
    items: List[MediaItem] = []

    try:
        async for page in client.iter_objects(
            EPISODE_TYPE,
            settings.batch_size,
            props=props,
            sort="-metadata.broadcast_date",
            image_field=field,
        ):
            for episode in page:
                ref = episode.metadata_image_ref or ImageRef()
                items.append(
                    MediaItem(
                        id=episode.id,
                        display_name=ref.name,
                        primary_url=ref.url,
                        alternate_url=ref.imgix_url,
                        owner=episode.reference(),
                    )
                )
    except ContentStoreNotFoundError:
        log_warning("No episodes found")
    except ContentStoreError as e:
        log_warning(f"Stopped episode listing at {len(items)} episodes", error=str(e))

    log_info(f"Total episodes: {len(items)}")
    return items


def is_on_content_store(item: MediaItem) -> bool:
    """Only images still served by the content store are migrated."""
    return is_content_store_url(item.primary_url or item.alternate_url)


def episode_image_path(item: MediaItem) -> str:
    """``episodes/<slug>.<ext>``, extension from the image name (default jpg)."""
    slug = (item.owner.slug if item.owner else None) or item.id
    filename = item.display_name or extract_filename(item.primary_url or item.alternate_url) or "image.jpg"
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
    return f"{EPISODE_PREFIX}/{slug}.{ext or 'jpg'}"


async def resolve_episode_sources(client: CosmicClient, items: List[MediaItem], settings: Settings) -> int:
    """
    Find the content store media behind each episode image.

    The media list is fetched once and indexed with a MediaLookup; returns
    how many items were resolved.
    """
    if not items:
        return 0

    all_media = await client.fetch_all_media(settings.batch_size)
    lookup = MediaLookup(all_media)
    resolved = 0
    for item in items:
        media = lookup.resolve(
            ImageRef(name=item.display_name, url=item.primary_url, imgix_url=item.alternate_url)
        )
        if media is not None:
            item.source_id = media.id
            resolved += 1

    log_info(f"Resolved {resolved}/{len(items)} episode images to media records")
    return resolved


MEDIA_PROFILE = MigrationProfile(
    name="media",
    description="All media beyond the newest N, with references scanned across object types",
    load_candidates=load_all_media,
    path_for=media_archive_path,
    default_hot_limit=500,
    default_state_file="./media-migration-state.json",
    default_report_file="./media-migration-report.json",
)

EPISODE_IMAGES_PROFILE = MigrationProfile(
    name="episode-images",
    description="Episode images beyond the newest N episodes by broadcast date",
    load_candidates=load_episode_images,
    path_for=episode_image_path,
    default_hot_limit=1000,
    default_state_file="./blob-migration-state.json",
    default_report_file="./blob-migration-report.json",
    scan_references=False,
    is_eligible=is_on_content_store,
    resolve_sources=resolve_episode_sources,
)

PROFILES: Dict[str, MigrationProfile] = {
    profile.name: profile for profile in (MEDIA_PROFILE, EPISODE_IMAGES_PROFILE)
}


def get_profile(name: str) -> MigrationProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown profile '{name}'. Available: {', '.join(sorted(PROFILES))}"
        ) from None
