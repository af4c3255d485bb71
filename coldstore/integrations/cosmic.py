"""
Content store (Cosmic bucket) client.

Read access uses the bucket read key as a query parameter; writes use the
write key as a bearer token. Listing reads are retried with exponential
backoff; writes are never retried.

API Documentation: https://www.cosmicjs.com/docs/api
"""
import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from coldstore.core.config import Settings, DEFAULT_COSMIC_API_URL
from coldstore.core.exceptions import ContentStoreError, ContentStoreNotFoundError, DownloadError
from coldstore.core.http_client import get_http_client, DEFAULT_TIMEOUT
from coldstore.core.logging_config import log_debug, log_warning
from coldstore.schemas.media import ContentObject, MediaItem

MEDIA_PROPS = "id,name,original_name,url,imgix_url,size,created_at,type"

# The store reports empty listings as "No objects found" / "No media found"
NOT_FOUND_PATTERN = re.compile(r"not found|no \w+ found", re.IGNORECASE)

CONTENT_STORE_HOST_MARKERS = (
    "imgix.cosmicjs.com",
    "cdn.cosmicjs.com",
    "cosmic-s3.imgix.net",
)


def is_content_store_url(url: Optional[str]) -> bool:
    """Check if a URL is served by the content store (still needs migration)."""
    if not url:
        return False
    return any(marker in url for marker in CONTENT_STORE_HOST_MARKERS)


@dataclass
class DownloadedMedia:
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


class CosmicClient:
    """
    Paginated read/write access to media and objects of one bucket.

    Handles:
    - Media listing sorted by upload date
    - Object listing per type (drafts included)
    - Metadata updates and media deletion
    - "Not found" responses mapped to ContentStoreNotFoundError
    """

    def __init__(
        self,
        bucket_slug: str,
        read_key: str,
        write_key: Optional[str] = None,
        api_url: str = DEFAULT_COSMIC_API_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.bucket_slug = bucket_slug
        self.read_key = read_key
        self.write_key = write_key
        self.base_url = f"{api_url.rstrip('/')}/buckets/{bucket_slug}"
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "CosmicClient":
        return cls(
            bucket_slug=settings.cosmic_bucket_slug,
            read_key=settings.cosmic_read_key,
            write_key=settings.cosmic_write_key,
            api_url=settings.cosmic_api_url,
            http_client=http_client,
            timeout=settings.http_timeout,
            max_retries=settings.fetch_max_retries,
            retry_delay=settings.fetch_retry_delay,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http is not None:
            return self._http
        return await get_http_client(self.timeout)

    @staticmethod
    def _safe_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        write: bool = False,
    ) -> Dict[str, Any]:
        """
        Make a request against the bucket API.

        Raises:
            ContentStoreNotFoundError: On 404 / "not found" responses
            ContentStoreError: On other non-OK responses or network failures
        """
        headers = {}
        query = dict(params or {})
        if write:
            if not self.write_key:
                raise ContentStoreError("Write key is not configured")
            headers["Authorization"] = f"Bearer {self.write_key}"
        else:
            query["read_key"] = self.read_key

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                f"{self.base_url}{path}",
                params=query,
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ContentStoreError(f"{method} {path} failed: {e}") from e

        data = self._safe_json(response)
        message = data.get("message") or response.text or "Unknown error"

        if response.status_code == 404:
            raise ContentStoreNotFoundError(message)
        if response.status_code >= 400:
            if NOT_FOUND_PATTERN.search(str(message)):
                raise ContentStoreNotFoundError(message)
            raise ContentStoreError(
                f"{method} {path} failed: HTTP {response.status_code} - {message}",
                status_code=response.status_code,
            )
        return data

    async def _with_retry(self, fn: Callable[[], Awaitable[Dict[str, Any]]], context: str) -> Dict[str, Any]:
        """Retry a read with exponential backoff; "not found" is never retried."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return await fn()
            except ContentStoreNotFoundError:
                raise
            except ContentStoreError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2 ** (attempt - 1))
                    log_warning(
                        f"Attempt {attempt}/{self.max_retries} failed for {context}, retrying in {delay:.1f}s",
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        raise ContentStoreError(
            f"Failed after {self.max_retries} attempts for {context}: {last_error}",
            status_code=getattr(last_error, "status_code", None),
        )

    async def list_media_page(
        self, limit: int, skip: int, sort: str = "-created_at"
    ) -> Tuple[List[MediaItem], int]:
        """Fetch one page of media; returns (items, total reported by the store)."""
        params = {"limit": limit, "skip": skip, "sort": sort, "props": MEDIA_PROPS}
        data = await self._with_retry(
            lambda: self._request("GET", "/media", params=params),
            f"media at skip={skip}",
        )
        items = [MediaItem.from_cosmic(raw) for raw in data.get("media") or []]
        return items, int(data.get("total") or 0)

    async def list_objects_page(
        self,
        object_type: str,
        limit: int,
        skip: int,
        props: str = "id,slug,title,type,metadata",
        sort: Optional[str] = None,
        image_field: str = "image",
    ) -> List[ContentObject]:
        """Fetch one page of objects of a type, drafts included."""
        params = {
            "query": json.dumps({"type": object_type}),
            "limit": limit,
            "skip": skip,
            "props": props,
            "status": "any",
        }
        if sort:
            params["sort"] = sort
        data = await self._with_retry(
            lambda: self._request("GET", "/objects", params=params),
            f"{object_type} at skip={skip}",
        )
        return [
            ContentObject.from_cosmic(raw, image_field=image_field)
            for raw in data.get("objects") or []
        ]

    async def iter_media(self, batch_size: int, sort: str = "-created_at") -> AsyncIterator[List[MediaItem]]:
        """
        Yield media pages until a short page is returned.

        A "not found" on the first page propagates; on a later page it means
        the previous page was the last one.
        """
        skip = 0
        while True:
            try:
                page, _ = await self.list_media_page(batch_size, skip, sort=sort)
            except ContentStoreNotFoundError:
                if skip == 0:
                    raise
                return
            if page:
                yield page
            if len(page) < batch_size:
                return
            skip += batch_size

    async def iter_objects(
        self,
        object_type: str,
        batch_size: int,
        props: str = "id,slug,title,type,metadata",
        sort: Optional[str] = None,
        image_field: str = "image",
    ) -> AsyncIterator[List[ContentObject]]:
        """Yield object pages of one type; same "not found" rules as iter_media."""
        skip = 0
        while True:
            try:
                page = await self.list_objects_page(
                    object_type, batch_size, skip, props=props, sort=sort, image_field=image_field
                )
            except ContentStoreNotFoundError:
                if skip == 0:
                    raise
                return
            if page:
                yield page
            if len(page) < batch_size:
                return
            skip += batch_size

    async def fetch_all_media(self, batch_size: int, sort: str = "-created_at") -> List[MediaItem]:
        """
        Fetch every media item in ``sort`` order.

        A page that still fails after retries ends the enumeration with a
        warning; the items collected so far are returned.
        """
        all_media: List[MediaItem] = []
        try:
            async for page in self.iter_media(batch_size, sort=sort):
                all_media.extend(page)
                if len(all_media) % 500 < batch_size:
                    log_debug(f"... {len(all_media)} media items fetched")
        except ContentStoreNotFoundError:
            log_debug("Content store reports no media")
        except ContentStoreError as e:
            log_warning(
                f"Stopped media listing at {len(all_media)} items",
                error=str(e),
            )
        return all_media

    async def update_object_metadata(self, object_id: str, metadata: Dict[str, Any]) -> None:
        """Merge ``metadata`` into an object's metadata."""
        await self._request("PATCH", f"/objects/{object_id}", body={"metadata": metadata}, write=True)

    async def delete_media(self, media_id: str) -> None:
        await self._request("DELETE", f"/media/{media_id}", write=True)

    async def download(self, url: str) -> DownloadedMedia:
        """
        Download a media binary from its public URL.

        Raises:
            DownloadError: On network failure or a non-2xx response
        """
        client = await self._get_client()
        try:
            response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise DownloadError(url, str(e)) from e

        if not response.is_success:
            raise DownloadError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        content_type = response.headers.get("content-type") or "application/octet-stream"
        return DownloadedMedia(content=response.content, content_type=content_type)
