"""Shared helpers for the coldstore test suites."""

from .fakes import (
    BLOB_BASE_URL,
    CDN_BASE_URL,
    IMGIX_BASE_URL,
    FakeBlob,
    FakeCosmic,
    make_media,
    make_media_list,
    make_object,
)

__all__ = [
    "BLOB_BASE_URL",
    "CDN_BASE_URL",
    "IMGIX_BASE_URL",
    "FakeBlob",
    "FakeCosmic",
    "make_media",
    "make_media_list",
    "make_object",
]
