"""
Reverse reference index: media id -> content objects that embed it.

Scans every configured content type page by page and resolves each object's
image reference against the candidate set with a prebuilt MediaLookup.
Read-only; nothing is written to the content store.
"""
from typing import List, Optional, Sequence

from coldstore.core.exceptions import ContentStoreError, ContentStoreNotFoundError
from coldstore.core.logging_config import log_debug, log_info, log_warning
from coldstore.integrations.cosmic import CosmicClient
from coldstore.schemas.media import ContentObject, MediaItem, ReferenceIndex
from coldstore.services.matching import MediaLookup

DEFAULT_PAGE_SIZE = 100


def index_objects(
    objects: Sequence[ContentObject],
    lookup: MediaLookup,
    index: ReferenceIndex,
) -> int:
    """
    Resolve a page of objects into ``index``.

    Returns:
        Number of new references added
    """
    added = 0
    for obj in objects:
        match = lookup.resolve_with_strategy(obj.metadata_image_ref)
        if match is None:
            continue
        media, strategy = match
        if index.add(media.id, obj.reference()):
            added += 1
            log_debug(
                "Resolved image reference",
                object_id=obj.id,
                media_id=media.id,
                strategy=strategy,
            )
    return added


async def scan_references(
    client: CosmicClient,
    candidates: List[MediaItem],
    object_types: Sequence[str],
    lookup: Optional[MediaLookup] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    image_field: str = "image",
) -> ReferenceIndex:
    """
    Build the reference index for ``candidates``.

    Args:
        client: Content store client
        candidates: Media items to resolve references for (usually the cold set)
        object_types: Content type names that may embed an image
        lookup: Prebuilt lookup over ``candidates``; built here when omitted
        page_size: Objects per page
        image_field: Metadata field holding the image reference

    Returns:
        ReferenceIndex with an entry (possibly empty) for every candidate
    """
    index = ReferenceIndex()
    for item in candidates:
        index.ensure(item.id)

    if not candidates:
        return index

    if lookup is None:
        lookup = MediaLookup(candidates)

    props = f"id,slug,title,type,metadata.{image_field}"

    for object_type in object_types:
        scanned = 0
        found = 0
        try:
            async for page in client.iter_objects(
                object_type, page_size, props=props, image_field=image_field
            ):
                scanned += len(page)
                found += index_objects(page, lookup, index)
        except ContentStoreNotFoundError:
            log_warning(f"No objects of type '{object_type}', skipping")
            continue
        except ContentStoreError as e:
            log_warning(
                f"Stopped scanning '{object_type}' after {scanned} objects",
                error=str(e),
            )
            continue

        if found:
            log_info(f"{object_type}: {found} references in {scanned} objects")
        else:
            log_debug(f"{object_type}: no references in {scanned} objects")

    referenced = sum(1 for item in candidates if index.get(item.id))
    log_info(
        "Reference scan complete",
        media_with_references=referenced,
        total_references=index.total_references,
    )
    return index
