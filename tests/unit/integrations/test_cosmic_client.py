import json

import httpx
import pytest

from coldstore.core.exceptions import ContentStoreError, ContentStoreNotFoundError, DownloadError
from coldstore.integrations.cosmic import CosmicClient, is_content_store_url

API_URL = "https://api.cosmic.test/v3"


def _media_json(index: int) -> dict:
    return {
        "id": f"media-{index}",
        "name": f"m{index}.jpg",
        "url": f"https://cdn.cosmicjs.com/m{index}.jpg",
        "imgix_url": f"https://imgix.cosmicjs.com/m{index}.jpg",
        "size": 2048,
        "created_at": "2024-05-01T10:00:00.000Z",
    }


def _make_client(handler, **kwargs) -> CosmicClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CosmicClient(
        bucket_slug="radio",
        read_key="read-key",
        write_key=kwargs.pop("write_key", "write-key"),
        api_url=API_URL,
        http_client=http,
        retry_delay=0,
        **kwargs,
    )


class TestListing:
    @pytest.mark.asyncio
    async def test_list_media_page_sends_read_key_and_sort(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"media": [_media_json(1)], "total": 7})

        client = _make_client(handler)
        items, total = await client.list_media_page(limit=10, skip=20)

        assert total == 7
        assert items[0].id == "media-1"
        assert items[0].display_name == "m1.jpg"
        assert items[0].alternate_url == "https://imgix.cosmicjs.com/m1.jpg"
        assert items[0].source_id == "media-1"
        assert items[0].uploaded_at.tzinfo is not None

        params = requests[0].url.params
        assert requests[0].url.path == "/v3/buckets/radio/media"
        assert params["read_key"] == "read-key"
        assert params["sort"] == "-created_at"
        assert params["limit"] == "10"
        assert params["skip"] == "20"

    @pytest.mark.asyncio
    async def test_list_objects_page_filters_by_type_including_drafts(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"objects": [
                {
                    "id": "obj-1",
                    "type": "posts",
                    "slug": "hello",
                    "title": "Hello",
                    "metadata": {"image": {"name": "m1.jpg", "url": "https://cdn.cosmicjs.com/m1.jpg"}},
                },
                {"id": "obj-2", "type": "posts", "slug": "no-image", "title": "No image", "metadata": None},
            ]})

        client = _make_client(handler)
        objects = await client.list_objects_page("posts", limit=100, skip=0)

        params = requests[0].url.params
        assert json.loads(params["query"]) == {"type": "posts"}
        assert params["status"] == "any"
        assert objects[0].metadata_image_ref.name == "m1.jpg"
        assert objects[0].reference().label == "posts/hello"
        assert objects[1].metadata_image_ref is None
        assert "metadata" not in objects[0].model_dump()

    @pytest.mark.asyncio
    async def test_iter_media_stops_on_short_page(self):
        skips = []

        def handler(request: httpx.Request) -> httpx.Response:
            skip = int(request.url.params["skip"])
            skips.append(skip)
            count = 2 if skip < 4 else 1
            return httpx.Response(200, json={"media": [_media_json(skip + i) for i in range(count)]})

        client = _make_client(handler)
        pages = [page async for page in client.iter_media(batch_size=2)]

        assert [len(page) for page in pages] == [2, 2, 1]
        assert skips == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_not_found_after_first_page_ends_listing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["skip"] == "0":
                return httpx.Response(200, json={"media": [_media_json(0), _media_json(1)]})
            return httpx.Response(404, json={"message": "No media found"})

        client = _make_client(handler)
        media = await client.fetch_all_media(batch_size=2)
        assert [item.id for item in media] == ["media-0", "media-1"]

    @pytest.mark.asyncio
    async def test_fetch_all_media_empty_bucket(self):
        client = _make_client(lambda request: httpx.Response(404, json={"message": "No media found"}))
        assert await client.fetch_all_media(batch_size=100) == []

    @pytest.mark.asyncio
    async def test_fetch_all_media_empty_bucket_on_bad_request(self):
        client = _make_client(lambda request: httpx.Response(400, json={"message": "No media found"}))
        assert await client.fetch_all_media(batch_size=100) == []

    @pytest.mark.asyncio
    async def test_fetch_all_media_keeps_pages_before_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["skip"] == "0":
                return httpx.Response(200, json={"media": [_media_json(0), _media_json(1)]})
            return httpx.Response(502, text="Bad gateway")

        client = _make_client(handler, max_retries=2)
        media = await client.fetch_all_media(batch_size=2)
        assert len(media) == 2


class TestRetries:
    @pytest.mark.asyncio
    async def test_server_errors_retried_then_raised(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, json={"message": "Internal error"})

        client = _make_client(handler, max_retries=3)
        with pytest.raises(ContentStoreError) as exc_info:
            await client.list_media_page(limit=10, skip=0)

        assert len(calls) == 3
        assert exc_info.value.status_code == 500
        assert "Failed after 3 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503, text="Unavailable")
            return httpx.Response(200, json={"media": [_media_json(1)]})

        client = _make_client(handler)
        items, _ = await client.list_media_page(limit=10, skip=0)
        assert len(items) == 1
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={"message": "No objects found"})

        client = _make_client(handler)
        with pytest.raises(ContentStoreNotFoundError):
            await client.list_objects_page("takeovers", limit=100, skip=0)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_not_found_message_on_other_status(self):
        client = _make_client(lambda request: httpx.Response(400, json={"message": "No objects found for query"}))
        with pytest.raises(ContentStoreNotFoundError):
            await client.list_objects_page("genres", limit=100, skip=0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["No media found", "No objects found", "Object not found"])
    async def test_empty_listing_messages_not_retried(self, message):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"message": message})

        client = _make_client(handler)
        with pytest.raises(ContentStoreNotFoundError):
            await client.list_media_page(limit=10, skip=0)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_empty_type_raises_not_found_on_first_page(self):
        client = _make_client(lambda request: httpx.Response(400, json={"message": "No objects found"}))
        with pytest.raises(ContentStoreNotFoundError):
            async for _ in client.iter_objects("takeovers", 100):
                pass

    @pytest.mark.asyncio
    async def test_other_client_errors_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"message": "Invalid query"})

        client = _make_client(handler)
        with pytest.raises(ContentStoreError) as exc_info:
            await client.list_objects_page("genres", limit=100, skip=0)
        assert not isinstance(exc_info.value, ContentStoreNotFoundError)
        assert len(calls) == 3


class TestWrites:
    @pytest.mark.asyncio
    async def test_update_object_metadata_uses_write_key(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"object": {"id": "obj-1"}})

        client = _make_client(handler)
        await client.update_object_metadata("obj-1", {"external_image_url": "https://blob/x.jpg"})

        request = requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/v3/buckets/radio/objects/obj-1"
        assert request.headers["Authorization"] == "Bearer write-key"
        assert "read_key" not in request.url.params
        assert json.loads(request.content) == {"metadata": {"external_image_url": "https://blob/x.jpg"}}

    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, json={"message": "Internal error"})

        client = _make_client(handler)
        with pytest.raises(ContentStoreError):
            await client.delete_media("media-1")
        assert len(calls) == 1
        assert calls[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_write_without_key_fails_before_request(self):
        calls = []
        client = _make_client(lambda request: calls.append(request), write_key=None)
        with pytest.raises(ContentStoreError):
            await client.delete_media("media-1")
        assert calls == []


class TestDownload:
    @pytest.mark.asyncio
    async def test_download_returns_content_and_type(self):
        client = _make_client(
            lambda request: httpx.Response(200, content=b"jpegdata", headers={"content-type": "image/jpeg"})
        )
        downloaded = await client.download("https://cdn.cosmicjs.com/m1.jpg")
        assert downloaded.content == b"jpegdata"
        assert downloaded.content_type == "image/jpeg"
        assert downloaded.size == 8

    @pytest.mark.asyncio
    async def test_download_defaults_content_type(self):
        client = _make_client(lambda request: httpx.Response(200, content=b"abc"))
        downloaded = await client.download("https://cdn.cosmicjs.com/m1.bin")
        assert downloaded.content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_download_error_status(self):
        client = _make_client(lambda request: httpx.Response(403))
        with pytest.raises(DownloadError) as exc_info:
            await client.download("https://cdn.cosmicjs.com/m1.jpg")
        assert exc_info.value.status_code == 403


def test_is_content_store_url():
    assert is_content_store_url("https://imgix.cosmicjs.com/abc.jpg")
    assert is_content_store_url("https://cdn.cosmicjs.com/abc.jpg")
    assert not is_content_store_url("https://store.public.blob.vercel-storage.com/abc.jpg")
    assert not is_content_store_url(None)
