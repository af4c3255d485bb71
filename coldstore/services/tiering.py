"""
Hot/cold tiering policy.
"""
from datetime import datetime, timezone
from typing import List, Sequence

from coldstore.schemas.media import MediaItem, TierAssignment

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def sort_newest_first(items: Sequence[MediaItem]) -> List[MediaItem]:
    """Order by upload time descending; ties and undated items keep input order."""
    return sorted(items, key=lambda item: item.uploaded_at or _EPOCH, reverse=True)


def split_tiers(items: Sequence[MediaItem], hot_limit: int) -> TierAssignment:
    """
    Split newest-first ``items`` into the newest ``hot_limit`` and the rest.

    The caller is responsible for the ordering; nothing is re-sorted here.
    """
    if hot_limit < 0:
        raise ValueError("hot_limit must be zero or positive")
    items = list(items)
    return TierAssignment(hot=items[:hot_limit], cold=items[hot_limit:])
