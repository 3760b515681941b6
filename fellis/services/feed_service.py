"""
Feed Service

The shared timeline: listing posts newest first with their comments, creating
text posts, toggling likes and commenting. Imported Facebook posts appear in
the feed like any other post; their provenance tag is passed through.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.exceptions import ResourceNotFoundError, ValidationError
from fellis.models.post import Comment, Post, PostLike
from fellis.models.user import User
from fellis.schemas.social import CommentResponse, PostResponse

logger = logging.getLogger(__name__)


def _required_text(text: str | None, what: str) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError(f"{what} text required", field="text")
    return text


class FeedService:
    """Service for the post feed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_post(self, post_id: int) -> Post:
        post = await self.db.get(Post, post_id)
        if post is None:
            raise ResourceNotFoundError("Post", post_id)
        return post

    async def count_posts(self) -> int:
        return await self.db.scalar(select(func.count()).select_from(Post)) or 0

    async def get_feed(self, viewer_id: int, skip: int = 0, limit: int = 20) -> list[PostResponse]:
        """
        One page of the feed, newest first.

        Args:
            viewer_id: the user reading the feed, for the ``liked`` flag
            skip: number of posts to skip
            limit: maximum number of posts to return
        """
        result = await self.db.execute(
            select(Post, User.name)
            .join(User, User.id == Post.author_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(skip)
            .limit(limit)
        )
        rows = result.all()
        post_ids = [post.id for post, _ in rows]
        if not post_ids:
            return []

        result = await self.db.execute(
            select(Comment, User.name)
            .join(User, User.id == Comment.author_id)
            .where(Comment.post_id.in_(post_ids))
            .order_by(Comment.created_at, Comment.id)
        )
        comments: dict[int, list[CommentResponse]] = {}
        for comment, author in result.all():
            comments.setdefault(comment.post_id, []).append(self._comment_response(comment, author))

        result = await self.db.execute(
            select(PostLike.post_id).where(PostLike.user_id == viewer_id, PostLike.post_id.in_(post_ids))
        )
        liked = set(result.scalars().all())

        return [
            PostResponse(
                id=post.id,
                author_id=post.author_id,
                author=author,
                text=post.text,
                media=post.media,
                source=post.source,
                likes=post.likes,
                liked=post.id in liked,
                created_at=post.created_at,
                comments=comments.get(post.id, []),
            )
            for post, author in rows
        ]

    async def create_post(self, author: User, text: str) -> PostResponse:
        post = Post(author_id=author.id, text=_required_text(text, "Post"))
        self.db.add(post)
        await self.db.commit()
        await self.db.refresh(post)

        logger.info(f"Post created: id={post.id}, author={author.id}")
        return PostResponse(
            id=post.id,
            author_id=author.id,
            author=author.name,
            text=post.text,
            likes=0,
            created_at=post.created_at,
        )

    async def toggle_like(self, post_id: int, user_id: int) -> tuple[bool, int]:
        """Like the post, or remove the like if it exists. Returns (liked, like count)."""
        post = await self._get_post(post_id)
        existing = await self.db.scalar(
            select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
        )
        if existing is not None:
            await self.db.delete(existing)
        else:
            self.db.add(PostLike(post_id=post_id, user_id=user_id))
        await self.db.flush()

        # the counter always equals the number of like rows
        likes = await self.db.scalar(select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id))
        await self.db.execute(update(Post).where(Post.id == post.id).values(likes=likes))
        await self.db.commit()
        return existing is None, likes

    async def add_comment(self, post_id: int, author: User, text: str) -> CommentResponse:
        await self._get_post(post_id)
        comment = Comment(post_id=post_id, author_id=author.id, text=_required_text(text, "Comment"))
        self.db.add(comment)
        await self.db.commit()
        await self.db.refresh(comment)

        logger.info(f"Comment created: id={comment.id}, post={post_id}, author={author.id}")
        return self._comment_response(comment, author.name)

    @staticmethod
    def _comment_response(comment: Comment, author: str) -> CommentResponse:
        return CommentResponse(
            id=comment.id,
            author_id=comment.author_id,
            author=author,
            text=comment.text,
            created_at=comment.created_at,
        )
