"""
Facebook import pipeline.

Copies a user's friends, posts and photos from the Graph API into fellis.
The pipeline re-reads external_import consent after fetching friends and
before storing each post or photo. When consent has been withdrawn in the
meantime (which also erases the imported rows) it stops writing, skips
`last_import_at` and records the run as aborted.

Friends, posts and photos are imported independently. A failure fetching one
category, or processing one item, is logged and skipped; it never aborts the
other items or categories. Third parties without a fellis account are never
materialized: only friends who already map to a local user are linked.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError

from fellis.constants import AuditAction, ConsentPurpose, Provenance
from fellis.models.friendship import Friendship
from fellis.models.post import Post
from fellis.models.user import User
from fellis.schemas.privacy import ImportSummary
from fellis.services import consent_service
from fellis.services.graph_client import GraphClient
from fellis.services.media_store import LocalMediaStore, extension_for_content_type
from fellis.utils.audit_log import AuditLog
from fellis.utils.clock import utcnow

logger = logging.getLogger(__name__)


def parse_graph_time(value: str | None) -> datetime:
    """Parse a Graph timestamp ("2024-01-05T12:34:56+0000") into naive UTC."""
    if value:
        try:
            parsed = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S%z")
            return parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except ValueError:
            logger.debug(f"Unparseable Graph timestamp {value!r}")
    return utcnow()


def first_image_source(photo: dict) -> str | None:
    images = photo.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        return images[0].get("source")
    return None


class FacebookImportPipeline:
    """Materializes a user's Facebook data as provenance-tagged fellis rows."""

    def __init__(
        self,
        session_factory,
        graph: GraphClient,
        media_store: LocalMediaStore,
        audit: AuditLog,
    ):
        self._session_factory = session_factory
        self.graph = graph
        self.media_store = media_store
        self.audit = audit

    async def consent_current(self, user_id: int) -> bool:
        async with self._session_factory() as db:
            return await consent_service.has_active_consent(user_id, ConsentPurpose.EXTERNAL_IMPORT.value, db)

    async def import_all(self, user_id: int, token: str) -> ImportSummary:
        summary = ImportSummary()
        if await self.consent_current(user_id):
            summary.friends_imported = await self.import_friends(user_id, token)
            summary.posts_imported = await self.import_posts(user_id, token)
            summary.photos_imported = await self.import_photos(user_id, token)

        if not await self.consent_current(user_id):
            logger.warning(f"Facebook import for user {user_id} stopped: external_import consent not current")
            await self.audit.record(user_id, AuditAction.FACEBOOK_IMPORT_ABORTED, summary.model_dump())
            return summary

        async with self._session_factory() as db:
            await db.execute(update(User).where(User.id == user_id).values(last_import_at=utcnow()))
            await db.commit()

        logger.info(
            "Facebook import finished: user=%d friends=%d posts=%d photos=%d",
            user_id,
            summary.friends_imported,
            summary.posts_imported,
            summary.photos_imported,
        )
        await self.audit.record(user_id, AuditAction.FACEBOOK_IMPORT_COMPLETED, summary.model_dump())
        return summary

    # ── Friends ──

    async def import_friends(self, user_id: int, token: str) -> int:
        try:
            friends = await self.graph.fetch_friends(token)
        except Exception as e:
            logger.error(f"Facebook friends fetch failed for user {user_id}: {e}")
            return 0
        if not await self.consent_current(user_id):
            return 0

        matched = 0
        async with self._session_factory() as db:
            for friend in friends:
                external_id = friend.get("id")
                if not external_id:
                    continue
                try:
                    result = await db.execute(
                        select(User.id).where(User.facebook_id == str(external_id), User.id != user_id)
                    )
                    local_id = result.scalar_one_or_none()
                    if local_id is None:
                        continue
                    await self._link_friends(db, user_id, local_id)
                    matched += 1
                except Exception as e:
                    await db.rollback()
                    logger.warning(f"Skipping Facebook friend {external_id} for user {user_id}: {e}")

            # Overwrites any earlier count, including native friendships
            await db.execute(update(User).where(User.id == user_id).values(friend_count=matched))
            await db.commit()
        return matched

    async def _link_friends(self, db, user_id: int, friend_id: int) -> None:
        """Create both directions of a friendship in one commit; existing edges are kept."""
        result = await db.execute(
            select(Friendship.user_id, Friendship.friend_id).where(
                or_(
                    and_(Friendship.user_id == user_id, Friendship.friend_id == friend_id),
                    and_(Friendship.user_id == friend_id, Friendship.friend_id == user_id),
                )
            )
        )
        existing = {tuple(row) for row in result.all()}
        for a, b in ((user_id, friend_id), (friend_id, user_id)):
            if (a, b) not in existing:
                db.add(Friendship(user_id=a, friend_id=b, mutual_count=0, source=Provenance.FRIEND.value))
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with another import creating the same pair
            await db.rollback()

    # ── Posts ──

    async def import_posts(self, user_id: int, token: str) -> int:
        try:
            posts = await self.graph.fetch_posts(token)
        except Exception as e:
            logger.error(f"Facebook posts fetch failed for user {user_id}: {e}")
            return 0

        imported = 0
        async with self._session_factory() as db:
            for item in posts:
                message = item.get("message")
                if not isinstance(message, str) or not message.strip():
                    continue
                media = await self._download_media(item.get("full_picture"))
                if not await self.consent_current(user_id):
                    await self._discard_media(media)
                    break
                try:
                    db.add(
                        Post(
                            author_id=user_id,
                            text=message,
                            media=media,
                            source=Provenance.POST.value,
                            created_at=parse_graph_time(item.get("created_time")),
                        )
                    )
                    await db.commit()
                    imported += 1
                except Exception as e:
                    await db.rollback()
                    await self._discard_media(media)
                    logger.warning(f"Skipping Facebook post {item.get('id')} for user {user_id}: {e}")
        return imported

    # ── Photos ──

    async def import_photos(self, user_id: int, token: str) -> int:
        try:
            photos = await self.graph.fetch_photos(token)
        except Exception as e:
            logger.error(f"Facebook photos fetch failed for user {user_id}: {e}")
            return 0

        imported = 0
        async with self._session_factory() as db:
            for item in photos:
                media = await self._download_media(first_image_source(item))
                if not media:
                    continue
                if not await self.consent_current(user_id):
                    await self._discard_media(media)
                    break
                try:
                    db.add(
                        Post(
                            author_id=user_id,
                            text=item.get("name") or "",
                            media=media,
                            source=Provenance.PHOTO.value,
                            created_at=parse_graph_time(item.get("created_time")),
                        )
                    )
                    # counter moves with the row so erasure can subtract it
                    await db.execute(
                        update(User).where(User.id == user_id).values(photo_count=User.photo_count + 1)
                    )
                    await db.commit()
                    imported += 1
                except Exception as e:
                    await db.rollback()
                    await self._discard_media(media)
                    logger.warning(f"Skipping Facebook photo {item.get('id')} for user {user_id}: {e}")
        return imported

    # ── Media ──

    async def _download_media(self, url: str | None) -> list[dict] | None:
        """Fetch and store one image. Returns single-element media metadata, or None on any failure."""
        if not url:
            return None
        try:
            data, content_type = await self.graph.fetch_image(url)
            filename = self.media_store.generate_filename(extension_for_content_type(content_type))
            stored_url = await self.media_store.save(data, filename)
        except Exception as e:
            logger.warning(f"Image import failed for {url}: {e}")
            return None
        return [{"url": stored_url, "type": "image", "mime": content_type}]

    async def _discard_media(self, media: list[dict] | None) -> None:
        for entry in media or []:
            try:
                await self.media_store.delete(entry["url"])
            except OSError as e:
                logger.warning(f"Could not remove orphaned media {entry['url']}: {e}")
