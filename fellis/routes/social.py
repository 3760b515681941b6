from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.auth import get_current_user
from fellis.database import get_db
from fellis.models.user import User
from fellis.schemas.social import FriendResponse, ProfileResponse
from fellis.services.social_service import SocialService

router = APIRouter(tags=["Social"])


@router.get("/profile", response_model=ProfileResponse)
async def my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    return await SocialService(db).get_profile(current_user.id)


@router.get("/profile/{user_id}", response_model=ProfileResponse)
async def user_profile(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    return await SocialService(db).get_profile(user_id)


@router.get("/friends", response_model=list[FriendResponse])
async def list_friends(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[FriendResponse]:
    """The caller's friends, ordered by name."""
    return await SocialService(db).list_friends(current_user.id)
