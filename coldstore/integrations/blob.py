"""
Blob store (Vercel Blob) client.

Objects are addressed by pathname; uploads are public and never get a
random suffix, so the same pathname always maps to the same public URL.

API Documentation: https://vercel.com/docs/storage/vercel-blob
"""
from typing import Optional
from urllib.parse import quote

import httpx

from coldstore.core.config import Settings, DEFAULT_BLOB_API_URL
from coldstore.core.exceptions import BlobStoreError
from coldstore.core.http_client import get_http_client, DEFAULT_TIMEOUT
from coldstore.core.logging_config import log_debug

BLOB_API_VERSION = "7"

BLOB_HOST_MARKERS = (
    ".public.blob.vercel-storage.com",
    ".blob.vercel-storage.com",
)


def is_blob_url(url: Optional[str]) -> bool:
    """Check if a URL already points at blob storage (already migrated)."""
    if not url:
        return False
    return any(marker in url for marker in BLOB_HOST_MARKERS)


class BlobClient:
    """Existence check, upload and public URL lookup by pathname."""

    def __init__(
        self,
        token: Optional[str],
        api_url: str = DEFAULT_BLOB_API_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "BlobClient":
        return cls(
            token=settings.blob_read_write_token,
            api_url=settings.blob_api_url,
            http_client=http_client,
            timeout=settings.http_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.token)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http is not None:
            return self._http
        return await get_http_client(self.timeout)

    def _headers(self) -> dict:
        if not self.token:
            raise BlobStoreError("BLOB_READ_WRITE_TOKEN is not configured")
        return {
            "Authorization": f"Bearer {self.token}",
            "x-api-version": BLOB_API_VERSION,
        }

    async def head(self, pathname: str) -> Optional[str]:
        """
        Look up a blob by pathname.

        Returns:
            The public URL if the blob exists, None if it does not.
            Without a token nothing can exist, so None is returned.

        Raises:
            BlobStoreError: If the lookup fails for any other reason
        """
        if not self.configured:
            return None

        client = await self._get_client()
        try:
            response = await client.get(
                self.api_url,
                params={"url": pathname},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Blob lookup failed for {pathname}: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise BlobStoreError(
                f"Blob lookup failed for {pathname}: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            url = response.json().get("url")
        except ValueError:
            url = None
        if not url:
            raise BlobStoreError(f"Blob lookup for {pathname} returned no URL")
        return url

    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        """
        Upload ``data`` publicly at exactly ``pathname``.

        Returns:
            The public URL of the stored blob

        Raises:
            BlobStoreError: If the upload fails
        """
        headers = self._headers()
        headers.update({
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
            "x-allow-overwrite": "1",
            "access": "public",
        })

        client = await self._get_client()
        try:
            response = await client.put(
                f"{self.api_url}/{quote(pathname)}",
                content=data,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Blob upload failed for {pathname}: {e}") from e

        if response.status_code >= 400:
            raise BlobStoreError(
                f"Blob upload failed for {pathname}: HTTP {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        try:
            url = response.json().get("url")
        except ValueError:
            url = None
        if not url:
            raise BlobStoreError(f"Blob upload for {pathname} returned no URL")

        log_debug("Uploaded blob", pathname=pathname, bytes=len(data))
        return url
