"""
Strategies for resolving an embedded image reference to a media item.

The content store is inconsistent about what an object stores for its image:
sometimes the media name, sometimes the original URL, sometimes the
CDN-rewritten URL. Each strategy compares one representation and is applied
in priority order; the first strategy that matches wins.
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from thefuzz import fuzz

from coldstore.core.logging_config import log_debug
from coldstore.schemas.media import ImageRef, MediaItem


def extract_filename(url: Optional[str]) -> Optional[str]:
    """Last path segment of a URL without its query string."""
    if not url:
        return None
    try:
        path = urlparse(url).path or url
    except ValueError:
        path = url
    filename = path.split("/")[-1].split("?")[0]
    return filename or None


def normalize_title(text: Optional[str]) -> str:
    """Lowercase, drop the file extension and collapse punctuation to spaces."""
    if not text:
        return ""
    text = re.sub(r"\.[a-z0-9]{2,5}$", "", text.strip().lower())
    text = re.sub(r"[^a-z0-9]+", " ", text)
    return " ".join(text.split())


def _present(values: Iterable[Optional[str]]) -> List[str]:
    return [value for value in values if value]


@dataclass(frozen=True)
class MatchStrategy:
    """
    An exact-equality strategy.

    ``media_keys`` and ``ref_keys`` extract the comparable representation
    from each side; a match is any shared key.
    """
    name: str
    media_keys: Callable[[MediaItem], List[str]]
    ref_keys: Callable[[ImageRef], List[str]]

    def matches(self, candidate: MediaItem, ref: ImageRef) -> bool:
        return bool(set(self.media_keys(candidate)) & set(self.ref_keys(ref)))


DISPLAY_NAME = MatchStrategy(
    name="display_name",
    media_keys=lambda item: _present([item.display_name]),
    ref_keys=lambda ref: _present([ref.name]),
)

PRIMARY_URL = MatchStrategy(
    name="primary_url",
    media_keys=lambda item: _present([item.primary_url]),
    ref_keys=lambda ref: _present([ref.url, ref.imgix_url]),
)

ALTERNATE_URL = MatchStrategy(
    name="alternate_url",
    media_keys=lambda item: _present([item.alternate_url]),
    ref_keys=lambda ref: _present([ref.url, ref.imgix_url]),
)

FILENAME_SUFFIX = MatchStrategy(
    name="filename_suffix",
    media_keys=lambda item: _present([
        item.display_name,
        extract_filename(item.primary_url),
        extract_filename(item.alternate_url),
    ]),
    ref_keys=lambda ref: _present([extract_filename(ref.url), extract_filename(ref.imgix_url)]),
)

EXACT_STRATEGIES = (DISPLAY_NAME, PRIMARY_URL, ALTERNATE_URL, FILENAME_SUFFIX)

match_display_name = DISPLAY_NAME.matches
match_primary_url = PRIMARY_URL.matches
match_alternate_url = ALTERNATE_URL.matches
match_filename_suffix = FILENAME_SUFFIX.matches


def title_similarity(candidate: MediaItem, ref: ImageRef) -> int:
    """Similarity (0-100) between the media name and the referenced name."""
    target = normalize_title(candidate.display_name or extract_filename(candidate.primary_url))
    source = normalize_title(ref.name or extract_filename(ref.any_url))
    if not target or not source:
        return 0
    return fuzz.ratio(target, source)


def match_title_similarity(candidate: MediaItem, ref: ImageRef, threshold: int = 90) -> bool:
    return title_similarity(candidate, ref) >= threshold


class MediaLookup:
    """
    Resolves image references against a fixed candidate set.

    Key maps are built once per strategy so resolving an object is a few
    dictionary lookups. When two candidates share a key, the first one in
    candidate order keeps it.
    """

    def __init__(
        self,
        candidates: List[MediaItem],
        strategies=EXACT_STRATEGIES,
        fuzzy_threshold: Optional[int] = None,
    ):
        self.candidates = list(candidates)
        self.strategies = tuple(strategies)
        self.fuzzy_threshold = fuzzy_threshold
        self._by_id: Dict[str, MediaItem] = {item.id: item for item in self.candidates}
        self._maps: Dict[str, Dict[str, str]] = {}

        for strategy in self.strategies:
            key_map: Dict[str, str] = {}
            for item in self.candidates:
                for key in strategy.media_keys(item):
                    if key in key_map and key_map[key] != item.id:
                        log_debug(
                            "Ambiguous media key, keeping first candidate",
                            strategy=strategy.name,
                            key=key,
                        )
                        continue
                    key_map[key] = item.id
            self._maps[strategy.name] = key_map

    def __len__(self) -> int:
        return len(self.candidates)

    def resolve(self, ref: Optional[ImageRef]) -> Optional[MediaItem]:
        """Return the first candidate matched by the highest-priority strategy."""
        match = self.resolve_with_strategy(ref)
        return match[0] if match else None

    def resolve_with_strategy(self, ref: Optional[ImageRef]):
        """Like resolve(), also returning the name of the winning strategy."""
        if ref is None or ref.is_empty:
            return None

        for strategy in self.strategies:
            key_map = self._maps[strategy.name]
            for key in strategy.ref_keys(ref):
                media_id = key_map.get(key)
                if media_id is not None:
                    return self._by_id[media_id], strategy.name

        if self.fuzzy_threshold is not None:
            best: Optional[MediaItem] = None
            best_score = 0
            for item in self.candidates:
                score = title_similarity(item, ref)
                if score > best_score:
                    best, best_score = item, score
            if best is not None and best_score >= self.fuzzy_threshold:
                return best, "title_similarity"

        return None
