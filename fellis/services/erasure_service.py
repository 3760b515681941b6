"""
Erasure Engine (GDPR Article 17)

Two irreversible operations:

- erase_source_data: remove only rows imported from an external network
  (identified by their provenance tag), the stored token, and the
  external_import consent.
- erase_account: delete the user row; the database cascades every dependent
  row (posts, comments, likes, messages, friendships, sessions, consent
  records) and nulls the user reference on audit entries. Friend counts of
  former friends and like counts of posts the user liked are recomputed
  afterwards.

Neither operation runs in a single transaction. Each step commits on its own,
in an order where re-running after a partial failure only finds less work:
media files first, then rows, then the token, then consent.
"""

import logging

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.constants import AuditAction, ConsentPurpose, Provenance
from fellis.exceptions import UserNotFoundError, ValidationError
from fellis.models.friendship import Friendship
from fellis.models.post import Post, PostLike
from fellis.models.user import User
from fellis.services import consent_service
from fellis.services.media_store import LocalMediaStore
from fellis.utils.audit_log import AuditLog

logger = logging.getLogger(__name__)

KNOWN_SOURCES = {tag.value for tag in Provenance}


def validate_sources(source_tags: list[str] | None) -> list[str]:
    tags = [getattr(tag, "value", tag) for tag in (source_tags or [])]
    if not tags:
        raise ValidationError("At least one data source must be selected", field="sources")
    unknown = sorted(set(tags) - KNOWN_SOURCES)
    if unknown:
        raise ValidationError(
            "Unknown data source",
            field="sources",
            details={"unknown_sources": unknown, "allowed_sources": sorted(KNOWN_SOURCES)},
        )
    return sorted(set(tags))


async def _delete_media_files(media_lists, media_store: LocalMediaStore) -> int:
    """Best-effort removal of every file referenced by the given media lists."""
    removed = 0
    for media in media_lists:
        for entry in media or []:
            url = entry.get("url") if isinstance(entry, dict) else None
            if not url:
                continue
            try:
                if await media_store.delete(url):
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not delete media file {url}: {e}")
    return removed


async def _recount_friends(user_ids: set[int], db: AsyncSession) -> None:
    for uid in user_ids:
        count = await db.scalar(select(func.count()).select_from(Friendship).where(Friendship.user_id == uid))
        user = await db.get(User, uid)
        if user is not None:
            user.friend_count = count or 0


async def _recount_likes(post_ids: set[int], db: AsyncSession) -> None:
    for post_id in post_ids:
        count = await db.scalar(select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id))
        await db.execute(update(Post).where(Post.id == post_id).values(likes=count or 0))


async def erase_source_data(
    user_id: int,
    source_tags: list[str],
    db: AsyncSession,
    media_store: LocalMediaStore,
    audit: AuditLog,
    ip_address: str | None = None,
) -> dict[str, int]:
    """
    Delete the user's externally sourced data.

    Returns {"posts_deleted": n}. A user without any imported data gets a
    zero count, not an error.
    """
    tags = validate_sources(source_tags)
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    # 1. Media files of the tagged posts
    result = await db.execute(
        select(Post.media, Post.source).where(Post.author_id == user_id, Post.source.in_(tags))
    )
    rows = result.all()
    files_removed = await _delete_media_files((row.media for row in rows), media_store)
    photos_in_scope = sum(1 for row in rows if row.source == Provenance.PHOTO.value)

    # 2. Tagged posts; comments and likes cascade
    result = await db.execute(delete(Post).where(Post.author_id == user_id, Post.source.in_(tags)))
    posts_deleted = result.rowcount or 0
    if photos_in_scope:
        user.photo_count = max((user.photo_count or 0) - photos_in_scope, 0)
    await db.commit()

    # 3. Imported friendship edges, both directions
    edge_filter = (
        Friendship.source == Provenance.FRIEND.value,
        or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
    )
    result = await db.execute(select(Friendship.user_id, Friendship.friend_id).where(*edge_filter))
    affected = {user_id}
    for a, b in result.all():
        affected.update((a, b))
    result = await db.execute(delete(Friendship).where(*edge_filter))
    friendships_deleted = result.rowcount or 0
    await _recount_friends(affected, db)
    await db.commit()

    # 4. Token and link metadata
    user.fb_access_token = None
    user.fb_token_expires_at = None
    user.facebook_id = None
    user.last_import_at = None
    await db.commit()

    # 5. Consent
    await consent_service.withdraw_consent(
        user_id, ConsentPurpose.EXTERNAL_IMPORT.value, ip_address, db, audit
    )

    logger.info(
        "Source data erased: user=%d sources=%s posts=%d friendships=%d files=%d",
        user_id,
        ",".join(tags),
        posts_deleted,
        friendships_deleted,
        files_removed,
    )
    await audit.record(
        user_id,
        AuditAction.SOURCE_DATA_ERASED,
        {
            "sources": tags,
            "posts_deleted": posts_deleted,
            "friendships_deleted": friendships_deleted,
            "files_deleted": files_removed,
        },
        ip_address,
    )
    return {"posts_deleted": posts_deleted}


async def erase_account(
    user_id: int,
    db: AsyncSession,
    media_store: LocalMediaStore,
    audit: AuditLog,
    ip_address: str | None = None,
    reason: str | None = None,
) -> bool:
    """
    Permanently delete the account and everything that references it.

    Returns False when the user no longer exists (nothing left to do).
    """
    user = await db.get(User, user_id)
    if user is None:
        logger.info(f"Account erasure for user {user_id}: already deleted")
        return False

    await audit.record(
        user_id,
        AuditAction.ACCOUNT_DELETION_STARTED,
        {"reason": reason} if reason else None,
        ip_address,
    )

    result = await db.execute(select(Post.media).where(Post.author_id == user_id))
    files_removed = await _delete_media_files(result.scalars().all(), media_store)
    if media_store.is_local(user.avatar_url):
        files_removed += await _delete_media_files([[{"url": user.avatar_url}]], media_store)

    # counters on other users' rows that the cascade is about to invalidate
    result = await db.execute(
        select(Friendship.friend_id).where(Friendship.user_id == user_id).union(
            select(Friendship.user_id).where(Friendship.friend_id == user_id)
        )
    )
    former_friends = set(result.scalars().all()) - {user_id}
    result = await db.execute(
        select(PostLike.post_id).join(Post, Post.id == PostLike.post_id).where(
            PostLike.user_id == user_id, Post.author_id != user_id
        )
    )
    liked_posts = set(result.scalars().all())

    await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    db.expunge(user)

    await _recount_friends(former_friends, db)
    await _recount_likes(liked_posts, db)
    await db.commit()

    logger.warning(f"Account deleted: user={user_id} files={files_removed}")
    await audit.record(None, AuditAction.ACCOUNT_DELETED, {"former_user_id": user_id}, ip_address)
    return True
