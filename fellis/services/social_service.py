"""
Profiles and friend lists.

Friend and post counts on a profile are counted from the rows rather than
read from the stored counters.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.exceptions import UserNotFoundError
from fellis.models.friendship import Friendship
from fellis.models.post import Post
from fellis.models.user import User
from fellis.schemas.social import FriendResponse, ProfileResponse


class SocialService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: int) -> ProfileResponse:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        friend_count = await self.db.scalar(
            select(func.count()).select_from(Friendship).where(Friendship.user_id == user_id)
        )
        post_count = await self.db.scalar(select(func.count()).select_from(Post).where(Post.author_id == user_id))
        return ProfileResponse(
            id=user.id,
            name=user.name,
            handle=user.handle,
            initials=user.initials,
            bio=user.bio or "",
            location=user.location,
            join_date=user.join_date,
            avatar_url=user.avatar_url,
            friend_count=friend_count or 0,
            post_count=post_count or 0,
            photo_count=user.photo_count or 0,
        )

    async def list_friends(self, user_id: int) -> list[FriendResponse]:
        """The user's outgoing friendship edges, ordered by friend name."""
        result = await self.db.execute(
            select(Friendship, User.name, User.avatar_url)
            .join(User, User.id == Friendship.friend_id)
            .where(Friendship.user_id == user_id)
            .order_by(User.name, User.id)
        )
        return [
            FriendResponse(
                id=edge.friend_id,
                name=name,
                avatar_url=avatar_url,
                mutual=edge.mutual_count,
                online=edge.is_online,
                source=edge.source,
            )
            for edge, name, avatar_url in result.all()
        ]
