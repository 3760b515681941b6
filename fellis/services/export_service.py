"""
Personal data export (GDPR Article 20).

Read-only aggregation of every row that belongs to a user. Token ciphertext
and password hashes are never included.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.models.audit_log import AuditEntry
from fellis.models.consent_record import ConsentRecord
from fellis.models.friendship import Friendship
from fellis.models.message import Message
from fellis.models.post import Comment, Post
from fellis.models.user import User
from fellis.utils.clock import utcnow

EXPORT_FORMAT_VERSION = "1.0"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


async def generate_user_export(db: AsyncSession, user: User) -> dict[str, Any]:
    """Generate a complete export of user data."""
    export_data: dict[str, Any] = {
        "export_info": {
            "user_id": user.id,
            "generated_at": utcnow().isoformat(),
            "format_version": EXPORT_FORMAT_VERSION,
        },
        "profile": {
            "id": user.id,
            "name": user.name,
            "handle": user.handle,
            "email": user.email,
            "bio": user.bio,
            "location": user.location,
            "avatar_url": user.avatar_url,
            "join_date": user.join_date,
            "facebook_linked": user.facebook_id is not None,
            "facebook_token_expires_at": _iso(user.fb_token_expires_at),
            "last_import_at": _iso(user.last_import_at),
            "created_at": _iso(user.created_at),
        },
    }

    result = await db.execute(select(Post).where(Post.author_id == user.id).order_by(Post.created_at.desc()))
    export_data["posts"] = [
        {
            "id": p.id,
            "text": p.text,
            "media": p.media,
            "source": p.source,
            "likes": p.likes,
            "created_at": _iso(p.created_at),
        }
        for p in result.scalars().all()
    ]

    result = await db.execute(select(Comment).where(Comment.author_id == user.id).order_by(Comment.created_at, Comment.id))
    export_data["comments"] = [
        {"id": c.id, "post_id": c.post_id, "text": c.text, "created_at": _iso(c.created_at)}
        for c in result.scalars().all()
    ]

    result = await db.execute(
        select(Friendship, User.name)
        .join(User, User.id == Friendship.friend_id)
        .where(Friendship.user_id == user.id)
        .order_by(User.name)
    )
    export_data["friends"] = [
        {"friend_id": f.friend_id, "name": name, "source": f.source, "since": _iso(f.created_at)}
        for f, name in result.all()
    ]

    result = await db.execute(
        select(Message)
        .where(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
        .order_by(Message.created_at, Message.id)
    )
    export_data["messages"] = [
        {
            "id": m.id,
            "direction": "sent" if m.sender_id == user.id else "received",
            "partner_id": m.receiver_id if m.sender_id == user.id else m.sender_id,
            "text": m.text,
            "created_at": _iso(m.created_at),
        }
        for m in result.scalars().all()
    ]

    result = await db.execute(
        select(ConsentRecord).where(ConsentRecord.user_id == user.id).order_by(ConsentRecord.granted_at)
    )
    export_data["consent_records"] = [
        {
            "purpose": r.purpose,
            "granted": r.granted,
            "granted_at": _iso(r.granted_at),
            "withdrawn_at": _iso(r.withdrawn_at),
        }
        for r in result.scalars().all()
    ]

    result = await db.execute(
        select(AuditEntry).where(AuditEntry.user_id == user.id).order_by(AuditEntry.created_at).limit(1000)
    )
    export_data["audit_log"] = [
        {"action": a.action, "details": a.details, "created_at": _iso(a.created_at)}
        for a in result.scalars().all()
    ]

    return export_data
