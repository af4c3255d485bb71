"""
Media and content object schemas.

Field names are pipeline-neutral; ``from_cosmic`` constructors translate the
content store's JSON (``name``, ``url``, ``imgix_url``, ``created_at``).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from coldstore.core.time_utils import ensure_utc


class ObjectReference(BaseModel):
    """A content object that points at a media item."""
    id: str
    slug: Optional[str] = None
    title: Optional[str] = None
    type: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.type or 'object'}/{self.slug or self.id}"


class MediaItem(BaseModel):
    """A binary asset known to the content store."""
    id: str
    display_name: Optional[str] = None
    primary_url: Optional[str] = None
    alternate_url: Optional[str] = None
    size_bytes: int = 0
    uploaded_at: Optional[datetime] = None
    # Content store media id to delete once migrated (None = unknown)
    source_id: Optional[str] = None
    # Set when the item was derived from a single content object
    owner: Optional[ObjectReference] = None

    @field_validator("size_bytes", mode="before")
    @classmethod
    def default_size(cls, v):
        return v or 0

    @field_validator("uploaded_at")
    @classmethod
    def normalize_uploaded_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def label(self) -> str:
        return self.display_name or self.id

    @classmethod
    def from_cosmic(cls, data: Dict[str, Any]) -> "MediaItem":
        """Build from a content store media record."""
        return cls(
            id=str(data["id"]),
            display_name=data.get("name") or data.get("original_name"),
            primary_url=data.get("url"),
            alternate_url=data.get("imgix_url"),
            size_bytes=data.get("size") or 0,
            uploaded_at=data.get("created_at"),
            source_id=str(data["id"]),
        )


class ImageRef(BaseModel):
    """The image reference embedded in a content object's metadata."""
    name: Optional[str] = None
    url: Optional[str] = None
    imgix_url: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.url or self.imgix_url)

    @property
    def any_url(self) -> Optional[str]:
        return self.url or self.imgix_url

    @classmethod
    def from_metadata(cls, value: Any) -> Optional["ImageRef"]:
        """
        Parse a metadata image field.

        The store returns either an object (``{name, url, imgix_url}``) or,
        for older records, a bare URL or media name string.
        """
        if not value:
            return None
        if isinstance(value, str):
            if "://" in value:
                ref = cls(url=value)
            else:
                ref = cls(name=value)
        elif isinstance(value, dict):
            ref = cls(
                name=value.get("name"),
                url=value.get("url"),
                imgix_url=value.get("imgix_url"),
            )
        else:
            return None
        return None if ref.is_empty else ref


class ContentObject(BaseModel):
    """A typed content record that may reference a media item."""
    id: str
    type: Optional[str] = None
    slug: Optional[str] = None
    title: Optional[str] = None
    metadata_image_ref: Optional[ImageRef] = None

    def reference(self) -> ObjectReference:
        return ObjectReference(id=self.id, slug=self.slug, title=self.title, type=self.type)

    @classmethod
    def from_cosmic(cls, data: Dict[str, Any], image_field: str = "image") -> "ContentObject":
        """Build from a content store object record."""
        metadata = data.get("metadata") or {}
        return cls(
            id=str(data["id"]),
            type=data.get("type"),
            slug=data.get("slug"),
            title=data.get("title"),
            metadata_image_ref=ImageRef.from_metadata(metadata.get(image_field)),
        )


@dataclass
class ReferenceIndex:
    """
    Media id -> content objects referencing it.

    Each object appears at most once per media item; insertion order is kept.
    """
    references: Dict[str, List[ObjectReference]] = field(default_factory=dict)

    def ensure(self, media_id: str) -> None:
        self.references.setdefault(media_id, [])

    def add(self, media_id: str, ref: ObjectReference) -> bool:
        """Add a reference; returns False if the object was already recorded."""
        refs = self.references.setdefault(media_id, [])
        if any(existing.id == ref.id for existing in refs):
            return False
        refs.append(ref)
        return True

    def get(self, media_id: str) -> List[ObjectReference]:
        return list(self.references.get(media_id, []))

    def __contains__(self, media_id: str) -> bool:
        return media_id in self.references

    def __len__(self) -> int:
        return len(self.references)

    @property
    def total_references(self) -> int:
        return sum(len(refs) for refs in self.references.values())

    @classmethod
    def from_owners(cls, items: List[MediaItem]) -> "ReferenceIndex":
        """Index for items that already know their single referencing object."""
        index = cls()
        for item in items:
            index.ensure(item.id)
            if item.owner is not None:
                index.add(item.id, item.owner)
        return index


class TierAssignment(BaseModel):
    """Partition of media into hot (kept) and cold (to migrate)."""
    hot: List[MediaItem] = Field(default_factory=list)
    cold: List[MediaItem] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.hot) + len(self.cold)

    @property
    def hot_bytes(self) -> int:
        return sum(item.size_bytes for item in self.hot)

    @property
    def cold_bytes(self) -> int:
        return sum(item.size_bytes for item in self.cold)
