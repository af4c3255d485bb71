"""
Pipeline configuration using pydantic-settings.
"""
import logging
from typing import Annotated, List, Optional

from pydantic import AliasChoices, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from coldstore.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_COSMIC_API_URL = "https://api.cosmicjs.com/v3"
DEFAULT_BLOB_API_URL = "https://blob.vercel-storage.com"

# Object types that can carry an image in metadata.image
DEFAULT_OBJECT_TYPES_WITH_IMAGES = [
    "episode",
    "regular-hosts",
    "takeovers",
    "posts",
    "videos",
    "events",
    "genres",
    "locations",
    "about",
    "post-categories",
    "video-categories",
]


class Settings(BaseSettings):
    """Cold storage migration settings."""

    # Content store (Cosmic bucket)
    cosmic_bucket_slug: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("COSMIC_BUCKET_SLUG", "NEXT_PUBLIC_COSMIC_BUCKET_SLUG"),
    )
    cosmic_read_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("COSMIC_READ_KEY", "NEXT_PUBLIC_COSMIC_READ_KEY"),
    )
    cosmic_write_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("COSMIC_WRITE_KEY"),
    )
    cosmic_api_url: str = DEFAULT_COSMIC_API_URL

    # Blob store
    blob_read_write_token: Optional[str] = None
    blob_api_url: str = DEFAULT_BLOB_API_URL

    # Modes
    dry_run: bool = True
    delete_media: bool = False
    delete_only: bool = False

    # Tiering and pagination
    hot_storage_limit: Optional[int] = None  # None = profile default
    batch_size: int = 100
    max_migrations_per_run: int = 0  # 0 = no cap
    progress_interval: int = 50

    # Rate limiting (milliseconds)
    download_delay_ms: int = 100
    upload_delay_ms: int = 50
    write_delay_ms: int = 200
    delete_delay_ms: int = 50

    # Listing retries
    fetch_max_retries: int = 3
    fetch_retry_delay_ms: int = 1000

    # Reference scanning
    object_types_with_images: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_OBJECT_TYPES_WITH_IMAGES)
    )
    image_field: str = "image"
    external_url_field: str = "external_image_url"
    fuzzy_title_match: bool = False
    fuzzy_title_threshold: int = 90

    # Output files (None = profile default)
    state_file: Optional[str] = None
    report_file: Optional[str] = None

    # HTTP
    http_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def download_delay(self) -> float:
        return self.download_delay_ms / 1000

    @property
    def upload_delay(self) -> float:
        return self.upload_delay_ms / 1000

    @property
    def write_delay(self) -> float:
        return self.write_delay_ms / 1000

    @property
    def delete_delay(self) -> float:
        return self.delete_delay_ms / 1000

    @property
    def fetch_retry_delay(self) -> float:
        return self.fetch_retry_delay_ms / 1000

    def missing_required(self) -> List[str]:
        """
        List environment variables that must be set for this run but are not.

        Content store credentials are always required. The blob token is only
        required for a live migration; delete-only runs never touch blob storage.
        """
        missing = []
        if not self.cosmic_bucket_slug:
            missing.append("COSMIC_BUCKET_SLUG")
        if not self.cosmic_read_key:
            missing.append("COSMIC_READ_KEY")
        if not self.cosmic_write_key:
            missing.append("COSMIC_WRITE_KEY")
        if not self.dry_run and not self.delete_only and not self.blob_read_write_token:
            missing.append("BLOB_READ_WRITE_TOKEN")
        return missing

    def ensure_complete(self) -> None:
        """Raise ConfigurationError listing every missing variable."""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(missing)

    @field_validator("object_types_with_images", mode="before")
    @classmethod
    def parse_object_types(cls, v):
        """Parse object types from a comma-separated string or list."""
        if v is None:
            return list(DEFAULT_OBJECT_TYPES_WITH_IMAGES)

        if isinstance(v, str):
            if not v.strip():
                return list(DEFAULT_OBJECT_TYPES_WITH_IMAGES)
            return [item.strip() for item in v.split(",") if item.strip()]

        if isinstance(v, (list, tuple)):
            return [str(item).strip() for item in v if str(item).strip()]

        return list(DEFAULT_OBJECT_TYPES_WITH_IMAGES)

    @field_validator("cosmic_api_url", "blob_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Validate API base URLs and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("API URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("hot_storage_limit")
    @classmethod
    def validate_hot_storage_limit(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("HOT_STORAGE_LIMIT must be zero or positive")
        return v

    @field_validator("batch_size", "progress_interval", "fetch_max_retries")
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be a positive integer")
        return v

    @field_validator(
        "max_migrations_per_run",
        "download_delay_ms",
        "upload_delay_ms",
        "write_delay_ms",
        "delete_delay_ms",
        "fetch_retry_delay_ms",
    )
    @classmethod
    def validate_non_negative(cls, v: int, info: ValidationInfo) -> int:
        if v < 0:
            raise ValueError(f"{info.field_name.upper()} cannot be negative")
        return v

    @field_validator("fuzzy_title_threshold")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if not 0 < v <= 100:
            raise ValueError("FUZZY_TITLE_THRESHOLD must be between 1 and 100")
        return v

    @model_validator(mode="after")
    def warn_on_conflicting_modes(self) -> "Settings":
        """DELETE_ONLY overrides the normal migration flow."""
        if self.delete_only and self.delete_media:
            logger.info("DELETE_ONLY=true: DELETE_MEDIA is implied")
        if self.delete_media and self.dry_run and not self.delete_only:
            logger.warning("DELETE_MEDIA=true has no effect while DRY_RUN=true")
        return self


def get_settings() -> Settings:
    """Load settings from the environment (and .env if present)."""
    return Settings()
