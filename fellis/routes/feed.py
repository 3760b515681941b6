"""
Feed Routes

Timeline, text posts, likes and comments. Media upload is not handled here;
posts created through the API carry text only.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.auth import get_current_user
from fellis.database import get_db
from fellis.models.user import User
from fellis.schemas.social import CommentCreate, CommentResponse, FeedResponse, LikeResponse, PostCreate, PostResponse
from fellis.services.feed_service import FeedService

router = APIRouter(tags=["Feed"])


@router.get("", response_model=FeedResponse)
async def get_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FeedResponse:
    """All posts, newest first, with comments and the caller's like state."""
    service = FeedService(db)
    posts = await service.get_feed(current_user.id, skip=(page - 1) * limit, limit=limit)
    return FeedResponse(posts=posts, total=await service.count_posts(), page=page, limit=limit)


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    data: PostCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    return await FeedService(db).create_post(current_user, data.text)


@router.post("/{post_id}/like", response_model=LikeResponse)
async def toggle_like(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeResponse:
    liked, likes = await FeedService(db).toggle_like(post_id, current_user.id)
    return LikeResponse(liked=liked, likes=likes)


@router.post("/{post_id}/comment", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CommentResponse:
    return await FeedService(db).add_comment(post_id, current_user, data.text)
