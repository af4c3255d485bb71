import pytest

from coldstore.services.matching import MediaLookup
from coldstore.services.reference_scanner import index_objects, scan_references
from coldstore.schemas.media import ReferenceIndex
from tests.lib import FakeCosmic, make_media_list, make_object


@pytest.fixture
def media():
    return make_media_list(3)


class TestScanReferences:
    @pytest.mark.asyncio
    async def test_every_candidate_has_an_entry(self, media):
        cosmic = FakeCosmic(objects={})
        index = await scan_references(cosmic, media, ["posts"])
        assert len(index) == 3
        assert all(index.get(item.id) == [] for item in media)

    @pytest.mark.asyncio
    async def test_resolves_each_representation(self, media):
        objects = {
            "posts": [
                make_object("by-name", image={"name": media[0].display_name}),
                make_object("by-url", image={"url": media[1].primary_url}),
            ],
            "videos": [
                make_object("by-imgix", "videos", image={"imgix_url": media[2].alternate_url}),
                make_object("by-bare-url", "videos", image=f"https://legacy.example.com/{media[2].display_name}?w=1"),
                make_object("unrelated", "videos", image={"name": "nothing.jpg"}),
                make_object("no-image", "videos"),
            ],
        }
        cosmic = FakeCosmic(objects=objects)
        index = await scan_references(cosmic, media, ["posts", "videos"], page_size=2)

        assert [ref.id for ref in index.get(media[0].id)] == ["by-name"]
        assert [ref.id for ref in index.get(media[1].id)] == ["by-url"]
        assert [ref.id for ref in index.get(media[2].id)] == ["by-imgix", "by-bare-url"]
        assert index.total_references == 4

    @pytest.mark.asyncio
    async def test_object_matching_two_ways_counted_once(self, media):
        item = media[0]
        obj = make_object("double", image={"url": item.primary_url, "imgix_url": item.alternate_url})
        # The same object returned again on a later page
        cosmic = FakeCosmic(objects={"posts": [obj, make_object("filler"), obj]})

        index = await scan_references(cosmic, media, ["posts"], page_size=2)

        assert [ref.id for ref in index.get(item.id)] == ["double"]

    @pytest.mark.asyncio
    async def test_missing_type_is_skipped(self, media):
        cosmic = FakeCosmic(objects={"posts": [make_object("p1", image={"name": media[0].display_name})]})
        cosmic.missing_types.add("takeovers")

        index = await scan_references(cosmic, media, ["takeovers", "posts"])

        assert [ref.id for ref in index.get(media[0].id)] == ["p1"]
        assert [listing["type"] for listing in cosmic.object_listings] == ["takeovers", "posts"]

    @pytest.mark.asyncio
    async def test_failing_type_keeps_partial_results_and_continues(self, media):
        cosmic = FakeCosmic(objects={
            "events": [
                make_object("e1", "events", image={"name": media[0].display_name}),
                make_object("e2", "events", image={"name": media[1].display_name}),
                make_object("e3", "events", image={"name": media[2].display_name}),
            ],
            "genres": [make_object("g1", "genres", image={"name": media[2].display_name})],
        })
        cosmic.broken_types.add("events")

        index = await scan_references(cosmic, media, ["events", "genres"], page_size=2)

        assert [ref.id for ref in index.get(media[0].id)] == ["e1"]
        assert [ref.id for ref in index.get(media[1].id)] == ["e2"]
        assert [ref.id for ref in index.get(media[2].id)] == ["g1"]

    @pytest.mark.asyncio
    async def test_requests_only_the_image_field(self, media):
        cosmic = FakeCosmic(objects={})
        await scan_references(cosmic, media, ["posts"], image_field="cover")
        assert cosmic.object_listings[0]["props"] == "id,slug,title,type,metadata.cover"

    @pytest.mark.asyncio
    async def test_no_candidates_skips_scan(self):
        cosmic = FakeCosmic(objects={"posts": [make_object("p1")]})
        index = await scan_references(cosmic, [], ["posts"])
        assert len(index) == 0
        assert cosmic.object_listings == []


def test_index_objects_with_prebuilt_lookup(media):
    lookup = MediaLookup(media)
    index = ReferenceIndex()
    objects = [
        make_object("a", image={"name": media[1].display_name}),
        make_object("a", image={"name": media[1].display_name}),
    ]
    assert index_objects(objects, lookup, index) == 1
    assert [ref.id for ref in index.get(media[1].id)] == ["a"]
