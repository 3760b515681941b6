"""
Tests for the Facebook import pipeline

The Graph client is replaced with AsyncMock; the database and media store
are real.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from fellis.constants import ERASABLE_POST_SOURCES, AuditAction, ConsentPurpose, Provenance
from fellis.exceptions import ExternalServiceError
from fellis.models.friendship import Friendship
from fellis.models.post import Post
from fellis.models.user import User
from fellis.services import consent_service, erasure_service
from fellis.services.import_runner import ImportTaskRunner
from fellis.services.import_service import FacebookImportPipeline, first_image_source, parse_graph_time


def fake_graph(friends=None, posts=None, photos=None, images=None):
    """Graph client double. images maps URL -> (bytes, content_type) or an exception."""
    graph = MagicMock()
    graph.fetch_friends = AsyncMock(return_value=friends or [])
    graph.fetch_posts = AsyncMock(return_value=posts or [])
    graph.fetch_photos = AsyncMock(return_value=photos or [])
    images = images or {}

    async def fetch_image(url):
        outcome = images.get(url, ExternalServiceError("not found", service="media", status_code=404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    graph.fetch_image = AsyncMock(side_effect=fetch_image)
    return graph


@pytest.fixture
async def import_consent(facebook_user, test_db, audit):
    await consent_service.grant_consent(
        facebook_user.id, ConsentPurpose.EXTERNAL_IMPORT.value, None, None, test_db, audit
    )


@pytest.fixture
def pipeline_for(session_factory, media_store, audit, import_consent):
    def _build(graph) -> FacebookImportPipeline:
        return FacebookImportPipeline(session_factory, graph, media_store, audit)

    return _build


async def _posts(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(select(Post).where(Post.author_id == user_id).order_by(Post.id))
        return list(result.scalars().all())


async def _edges(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(Friendship.user_id, Friendship.friend_id, Friendship.source))
        return sorted(tuple(row) for row in result.all())


async def _user(session_factory, user_id):
    async with session_factory() as session:
        return await session.get(User, user_id)


class TestHelpers:
    def test_parse_graph_time(self):
        parsed = parse_graph_time("2024-01-05T12:34:56+0200")
        assert parsed.isoformat() == "2024-01-05T10:34:56"

    def test_parse_graph_time_falls_back_to_now(self):
        assert parse_graph_time("yesterday") is not None
        assert parse_graph_time(None) is not None

    def test_first_image_source(self):
        assert first_image_source({"images": [{"source": "a"}, {"source": "b"}]}) == "a"
        assert first_image_source({"images": []}) is None
        assert first_image_source({}) is None


class TestImportPosts:
    async def test_posts_with_failing_image_are_kept_without_media(
        self, pipeline_for, facebook_user, session_factory, media_store
    ):
        posts = [{"id": str(i), "message": f"Post {i}", "full_picture": f"https://cdn.test/{i}.jpg"} for i in range(5)]
        images = {
            "https://cdn.test/0.jpg": (b"jpeg-0", "image/jpeg"),
            "https://cdn.test/2.jpg": (b"png-2", "image/png"),
            "https://cdn.test/4.jpg": (b"gif-4", "image/gif"),
        }
        pipeline = pipeline_for(fake_graph(posts=posts, images=images))

        assert await pipeline.import_posts(facebook_user.id, "tok") == 5

        stored = await _posts(session_factory, facebook_user.id)
        assert [p.text for p in stored] == [f"Post {i}" for i in range(5)]
        assert all(p.source == Provenance.POST.value for p in stored)
        assert [p.media is None for p in stored] == [False, True, False, True, False]

        suffixes = [p.media[0]["url"].rsplit(".", 1)[1] for p in stored if p.media]
        assert suffixes == ["jpg", "png", "gif"]
        for post in stored:
            if post.media:
                assert post.media[0]["url"].startswith("/uploads/")
                assert post.media[0]["type"] == "image"
                assert await media_store.exists(post.media[0]["url"])

    async def test_empty_messages_are_skipped(self, pipeline_for, facebook_user, session_factory):
        posts = [{"id": "1", "message": ""}, {"id": "2", "message": "   "}, {"id": "3"}, {"id": "4", "message": "Hi"}]
        pipeline = pipeline_for(fake_graph(posts=posts))

        assert await pipeline.import_posts(facebook_user.id, "tok") == 1
        assert [p.text for p in await _posts(session_factory, facebook_user.id)] == ["Hi"]

    async def test_created_time_is_preserved(self, pipeline_for, facebook_user, session_factory):
        posts = [{"id": "1", "message": "Old", "created_time": "2019-06-01T08:00:00+0000"}]
        await pipeline_for(fake_graph(posts=posts)).import_posts(facebook_user.id, "tok")

        (post,) = await _posts(session_factory, facebook_user.id)
        assert post.created_at.isoformat() == "2019-06-01T08:00:00"

    async def test_fetch_failure_returns_zero(self, pipeline_for, facebook_user):
        graph = fake_graph()
        graph.fetch_posts.side_effect = ExternalServiceError("HTTP 400", status_code=400)

        assert await pipeline_for(graph).import_posts(facebook_user.id, "tok") == 0


class TestImportPhotos:
    async def test_only_downloaded_photos_are_imported(self, pipeline_for, facebook_user, session_factory):
        photos = [
            {"id": "p1", "name": "Beach", "images": [{"source": "https://cdn.test/p1.jpg"}]},
            {"id": "p2", "images": [{"source": "https://cdn.test/p2.jpg"}]},
            {"id": "p3", "name": "No images"},
        ]
        images = {"https://cdn.test/p1.jpg": (b"jpeg", "image/jpeg")}
        pipeline = pipeline_for(fake_graph(photos=photos, images=images))

        assert await pipeline.import_photos(facebook_user.id, "tok") == 1

        (photo,) = await _posts(session_factory, facebook_user.id)
        assert photo.source == Provenance.PHOTO.value
        assert photo.text == "Beach"
        assert photo.media[0]["mime"] == "image/jpeg"
        assert (await _user(session_factory, facebook_user.id)).photo_count == 1

    async def test_photo_without_caption_has_empty_text(self, pipeline_for, facebook_user, session_factory):
        photos = [{"id": "p1", "images": [{"source": "https://cdn.test/p1.png"}]}]
        images = {"https://cdn.test/p1.png": (b"png", "image/png")}
        await pipeline_for(fake_graph(photos=photos, images=images)).import_photos(facebook_user.id, "tok")

        (photo,) = await _posts(session_factory, facebook_user.id)
        assert photo.text == ""
        assert photo.media[0]["url"].endswith(".png")


class TestImportFriends:
    async def test_links_only_existing_users_symmetrically(
        self, pipeline_for, facebook_user, make_user, session_factory
    ):
        alice = await make_user("Alice", facebook_id="fb-alice")
        bob = await make_user("Bob", facebook_id="fb-bob")
        friends = [{"id": "fb-alice"}, {"id": "fb-bob"}, {"id": "fb-stranger", "name": "Stranger"}]

        assert await pipeline_for(fake_graph(friends=friends)).import_friends(facebook_user.id, "tok") == 2

        tag = Provenance.FRIEND.value
        assert await _edges(session_factory) == sorted(
            [
                (facebook_user.id, alice.id, tag),
                (alice.id, facebook_user.id, tag),
                (facebook_user.id, bob.id, tag),
                (bob.id, facebook_user.id, tag),
            ]
        )
        assert (await _user(session_factory, facebook_user.id)).friend_count == 2

        # No account is created for the stranger
        async with session_factory() as session:
            result = await session.execute(select(User).where(User.facebook_id == "fb-stranger"))
            assert result.scalars().first() is None

    async def test_unmatched_friends_create_nothing(self, pipeline_for, facebook_user, session_factory):
        friends = [{"id": "fb-x", "name": "X"}, {"id": "fb-y", "name": "Y"}]

        summary = await pipeline_for(fake_graph(friends=friends)).import_all(facebook_user.id, "tok")

        assert summary.friends_imported == 0
        assert await _edges(session_factory) == []
        assert (await _user(session_factory, facebook_user.id)).friend_count == 0

    async def test_reimport_adds_no_duplicates(self, pipeline_for, facebook_user, make_user, session_factory):
        await make_user("Alice", facebook_id="fb-alice")
        pipeline = pipeline_for(fake_graph(friends=[{"id": "fb-alice"}]))

        await pipeline.import_friends(facebook_user.id, "tok")
        await pipeline.import_friends(facebook_user.id, "tok")

        assert len(await _edges(session_factory)) == 2

    async def test_existing_one_way_edge_is_completed(
        self, pipeline_for, facebook_user, make_user, session_factory
    ):
        alice = await make_user("Alice", facebook_id="fb-alice")
        async with session_factory() as session:
            session.add(Friendship(user_id=alice.id, friend_id=facebook_user.id, source=None))
            await session.commit()

        await pipeline_for(fake_graph(friends=[{"id": "fb-alice"}])).import_friends(facebook_user.id, "tok")

        assert await _edges(session_factory) == sorted(
            [(alice.id, facebook_user.id, None), (facebook_user.id, alice.id, Provenance.FRIEND.value)]
        )

    async def test_self_is_never_linked(self, pipeline_for, facebook_user, session_factory):
        friends = [{"id": facebook_user.facebook_id}]
        assert await pipeline_for(fake_graph(friends=friends)).import_friends(facebook_user.id, "tok") == 0
        assert await _edges(session_factory) == []


class TestImportAll:
    async def test_summary_and_audit(self, pipeline_for, facebook_user, make_user, session_factory, audit_entries):
        await make_user("Alice", facebook_id="fb-alice")
        graph = fake_graph(
            friends=[{"id": "fb-alice"}],
            posts=[{"id": "1", "message": "Hello"}],
            photos=[{"id": "p", "images": [{"source": "https://cdn.test/p.jpg"}]}],
            images={"https://cdn.test/p.jpg": (b"jpeg", "image/jpeg")},
        )

        summary = await pipeline_for(graph).import_all(facebook_user.id, "tok")

        assert summary.model_dump() == {"friends_imported": 1, "posts_imported": 1, "photos_imported": 1}
        assert (await _user(session_factory, facebook_user.id)).last_import_at is not None

        (entry,) = await audit_entries(AuditAction.FACEBOOK_IMPORT_COMPLETED)
        assert entry.user_id == facebook_user.id
        assert entry.details == summary.model_dump()

    async def test_one_failing_category_does_not_stop_others(self, pipeline_for, facebook_user):
        graph = fake_graph(posts=[{"id": "1", "message": "Still here"}])
        graph.fetch_friends.side_effect = ExternalServiceError("boom")
        graph.fetch_photos.side_effect = ExternalServiceError("boom")

        summary = await pipeline_for(graph).import_all(facebook_user.id, "tok")

        assert summary.friends_imported == 0
        assert summary.posts_imported == 1
        assert summary.photos_imported == 0


class TestConsentWithdrawnDuringImport:
    async def test_erasure_while_fetching_leaves_no_imported_rows(
        self, pipeline_for, facebook_user, session_factory, test_db, media_store, audit, audit_entries
    ):
        fetching = asyncio.Event()
        release = asyncio.Event()

        async def blocked_fetch_posts(token):
            fetching.set()
            await release.wait()
            return [{"id": "1", "message": "from facebook"}]

        graph = fake_graph()
        graph.fetch_posts = AsyncMock(side_effect=blocked_fetch_posts)
        runner = ImportTaskRunner(pipeline_for(graph), audit)

        runner.submit(facebook_user.id, "tok")
        await fetching.wait()
        await erasure_service.erase_source_data(
            facebook_user.id, list(ERASABLE_POST_SOURCES), test_db, media_store, audit
        )
        release.set()
        await runner.wait_idle()

        assert await _posts(session_factory, facebook_user.id) == []
        assert (await _user(session_factory, facebook_user.id)).last_import_at is None
        assert await audit_entries(AuditAction.FACEBOOK_IMPORT_COMPLETED) == []
        (aborted,) = await audit_entries(AuditAction.FACEBOOK_IMPORT_ABORTED)
        assert aborted.details["posts_imported"] == 0

    async def test_import_without_consent_fetches_nothing(self, facebook_user, session_factory, media_store, audit):
        graph = fake_graph(posts=[{"id": "1", "message": "Hello"}])
        pipeline = FacebookImportPipeline(session_factory, graph, media_store, audit)

        summary = await pipeline.import_all(facebook_user.id, "tok")

        assert summary.model_dump() == {"friends_imported": 0, "posts_imported": 0, "photos_imported": 0}
        graph.fetch_posts.assert_not_awaited()
        assert await _posts(session_factory, facebook_user.id) == []
