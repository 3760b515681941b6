import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.auth import create_session, delete_session, get_current_session, get_current_user
from fellis.database import get_db
from fellis.models.user import User
from fellis.models.user_session import UserSession
from fellis.schemas.user import SessionInfo, SessionResponse, UserCreate, UserLogin, UserResponse
from fellis.services.auth_service import authenticate_user, register_user

router = APIRouter(tags=["Auth"])

logger = logging.getLogger(__name__)


@router.post("/register", response_model=SessionResponse)
async def register(data: UserCreate, db: AsyncSession = Depends(get_db)) -> SessionResponse:
    """Create an account and open a session for it."""
    user = await register_user(data.name, data.email, data.password, db)
    session_id = await create_session(user.id, data.lang, db)
    return SessionResponse(session_id=session_id, user_id=user.id)


@router.post("/login", response_model=SessionResponse)
async def login(data: UserLogin, request: Request, db: AsyncSession = Depends(get_db)) -> SessionResponse:
    user = await authenticate_user(data.email, data.password, db)
    session_id = await create_session(user.id, data.lang, db)
    logger.info(f"User {user.id} logged in")
    return SessionResponse(session_id=session_id, user_id=user.id)


@router.post("/logout")
async def logout(
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    await delete_session(session.id, db)
    return {"ok": True}


@router.get("/session", response_model=SessionInfo)
async def session_info(
    session: UserSession = Depends(get_current_session),
    current_user: User = Depends(get_current_user),
) -> SessionInfo:
    return SessionInfo(user=UserResponse.model_validate(current_user), lang=session.lang)
