"""
Exception classes for the cold storage pipeline.

Provides structured exceptions for configuration problems and for
communication with the content store and the blob store.
"""
from typing import List, Optional


class ColdStoreError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(ColdStoreError):
    """
    Raised when required configuration is missing.

    Fatal: the pipeline exits before making any network call.
    """

    def __init__(self, missing: List[str]):
        super().__init__(
            "Missing required environment variables: " + ", ".join(missing)
        )
        self.missing = missing


class ContentStoreError(ColdStoreError):
    """
    Raised when the content store returns a non-OK response or cannot be reached.

    Includes status_code (None for network failures) so callers can branch
    on specific errors.
    """

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.status_code = status_code


class ContentStoreNotFoundError(ContentStoreError):
    """
    Raised when the content store reports that nothing matched.

    For listings this means "zero results", not a failure: an unknown
    object type or an empty page.
    """

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail, status_code=404)


class BlobStoreError(ColdStoreError):
    """Raised when a blob store operation fails."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.status_code = status_code


class DownloadError(ColdStoreError):
    """Raised when a media binary cannot be downloaded."""

    def __init__(self, url: str, detail: str, status_code: Optional[int] = None):
        super().__init__(f"Failed to download {url}: {detail}")
        self.url = url
        self.detail = detail
        self.status_code = status_code
