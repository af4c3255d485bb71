import pytest

from coldstore.core.config import Settings
from coldstore.schemas.media import MediaItem, ObjectReference
from coldstore.services.profiles import (
    EPISODE_IMAGES_PROFILE,
    MEDIA_PROFILE,
    episode_image_path,
    get_profile,
    is_on_content_store,
    load_episode_images,
    media_archive_path,
    resolve_episode_sources,
)
from tests.lib import BLOB_BASE_URL, CDN_BASE_URL, FakeCosmic, make_media_list, make_object


def make_settings(**kwargs):
    return Settings(_env_file=None, **kwargs)


class TestMediaProfile:
    def test_archive_path_uses_media_name(self):
        item = MediaItem(id="m1", display_name="abc-photo.jpg")
        assert media_archive_path(item) == "cosmic-archive/m1/abc-photo.jpg"

    def test_archive_path_falls_back_to_url_then_id(self):
        assert media_archive_path(MediaItem(id="m1", primary_url=f"{CDN_BASE_URL}/x.png?w=2")) == "cosmic-archive/m1/x.png"
        assert media_archive_path(MediaItem(id="m1")) == "cosmic-archive/m1/m1"

    def test_same_named_items_get_distinct_paths(self):
        first = MediaItem(id="m1", display_name="cover.jpg")
        second = MediaItem(id="m2", display_name="cover.jpg")
        assert media_archive_path(first) != media_archive_path(second)

    def test_defaults(self):
        settings = make_settings()
        assert MEDIA_PROFILE.hot_limit(settings) == 500
        assert MEDIA_PROFILE.state_file(settings) == "./media-migration-state.json"
        assert MEDIA_PROFILE.report_file(settings) == "./media-migration-report.json"
        assert MEDIA_PROFILE.scan_references is True

    def test_settings_override_defaults(self):
        settings = make_settings(hot_storage_limit=20, state_file="/tmp/s.json", report_file="/tmp/r.json")
        assert MEDIA_PROFILE.hot_limit(settings) == 20
        assert MEDIA_PROFILE.state_file(settings) == "/tmp/s.json"
        assert MEDIA_PROFILE.report_file(settings) == "/tmp/r.json"


class TestEpisodeImagesProfile:
    def test_defaults(self):
        settings = make_settings()
        assert EPISODE_IMAGES_PROFILE.hot_limit(settings) == 1000
        assert EPISODE_IMAGES_PROFILE.state_file(settings) == "./blob-migration-state.json"
        assert EPISODE_IMAGES_PROFILE.scan_references is False

    def test_path_from_slug_and_extension(self):
        owner = ObjectReference(id="ep1", slug="late-night-jazz", type="episode")
        item = MediaItem(id="ep1", display_name="abc-Cover.PNG", owner=owner)
        assert episode_image_path(item) == "episodes/late-night-jazz.png"

    def test_path_defaults_to_jpg(self):
        owner = ObjectReference(id="ep1", slug="show", type="episode")
        assert episode_image_path(MediaItem(id="ep1", owner=owner)) == "episodes/show.jpg"

    @pytest.mark.asyncio
    async def test_load_keeps_order_and_owners(self):
        episodes = [
            make_object("ep1", "episode", slug="newest", image={"name": "a.jpg", "url": f"{CDN_BASE_URL}/a.jpg"}),
            make_object("ep2", "episode", slug="no-image"),
            make_object("ep3", "episode", slug="oldest", image={"imgix_url": "https://imgix.cosmicjs.com/c.jpg"}),
        ]
        cosmic = FakeCosmic(objects={"episode": episodes})

        items = await load_episode_images(cosmic, make_settings(batch_size=2))

        assert [item.id for item in items] == ["ep1", "ep2", "ep3"]
        assert items[0].owner.slug == "newest"
        assert items[0].primary_url == f"{CDN_BASE_URL}/a.jpg"
        assert items[0].source_id is None
        assert [is_on_content_store(item) for item in items] == [True, False, True]
        assert cosmic.object_listings[0]["sort"] == "-metadata.broadcast_date"

    def test_only_content_store_images_are_eligible(self):
        assert is_on_content_store(MediaItem(id="e1", primary_url=f"{CDN_BASE_URL}/a.jpg"))
        assert is_on_content_store(MediaItem(id="e2", alternate_url="https://imgix.cosmicjs.com/b.jpg"))
        assert not is_on_content_store(MediaItem(id="e3", primary_url="https://i.ytimg.com/vi/abc/hq.jpg"))
        assert not is_on_content_store(MediaItem(id="e4", primary_url=f"{BLOB_BASE_URL}/episodes/x.jpg"))
        assert not is_on_content_store(MediaItem(id="e5"))

    @pytest.mark.asyncio
    async def test_load_without_episodes(self):
        cosmic = FakeCosmic()
        cosmic.missing_types.add("episode")
        assert await load_episode_images(cosmic, make_settings()) == []

    @pytest.mark.asyncio
    async def test_resolve_sources_uses_media_lookup(self):
        media = make_media_list(3)
        cosmic = FakeCosmic(media=media)
        items = [
            MediaItem(id="ep1", display_name=media[1].display_name),
            MediaItem(id="ep2", primary_url=f"https://legacy.example.com/{media[2].display_name}"),
            MediaItem(id="ep3", display_name="gone.jpg"),
        ]

        resolved = await resolve_episode_sources(cosmic, items, make_settings())

        assert resolved == 2
        assert [item.source_id for item in items] == [media[1].id, media[2].id, None]
        assert cosmic.media_listings == 1


def test_get_profile():
    assert get_profile("media") is MEDIA_PROFILE
    assert get_profile("episode-images") is EPISODE_IMAGES_PROFILE
    with pytest.raises(ValueError, match="Unknown profile"):
        get_profile("videos")
