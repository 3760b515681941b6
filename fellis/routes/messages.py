from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.auth import get_current_user
from fellis.database import get_db
from fellis.models.user import User
from fellis.schemas.social import MessageCreate, MessageResponse, ThreadResponse
from fellis.services.message_service import MessageService

router = APIRouter(tags=["Messages"])


@router.get("", response_model=list[ThreadResponse])
async def list_threads(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ThreadResponse]:
    """One thread per conversation partner, most recent conversation first."""
    return await MessageService(db).list_threads(current_user.id)


@router.post("/{friend_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    friend_id: int,
    data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    return await MessageService(db).send_message(current_user, friend_id, data.text)


@router.post("/{friend_id}/read")
async def mark_thread_read(
    friend_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, int]:
    marked = await MessageService(db).mark_thread_read(current_user.id, friend_id)
    return {"marked_read": marked}
