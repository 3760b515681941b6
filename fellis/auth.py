from datetime import timedelta
import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, Request
from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.config import settings
from fellis.database import get_db
from fellis.exceptions import AuthenticationError, SessionExpiredError
from fellis.models.user import User
from fellis.models.user_session import UserSession
from fellis.utils.clock import utcnow

# Initialize logging
logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SESSION_HEADER = "X-Session-Id"


# Function to hash a password
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Function to verify a password
def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def client_ip(request: Request) -> Optional[str]:
    """Client address, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def create_session(user_id: int, lang: str, db: AsyncSession, ttl_days: Optional[int] = None) -> str:
    session_id = secrets.token_urlsafe(32)
    db.add(
        UserSession(
            id=session_id,
            user_id=user_id,
            lang=lang or "da",
            expires_at=utcnow() + timedelta(days=ttl_days or settings.session_ttl_days),
        )
    )
    await db.commit()
    return session_id


async def delete_session(session_id: str, db: AsyncSession) -> None:
    await db.execute(delete(UserSession).where(UserSession.id == session_id))
    await db.commit()


async def get_current_session(
    x_session_id: Optional[str] = Header(None, alias=SESSION_HEADER),
    db: AsyncSession = Depends(get_db),
) -> UserSession:
    if not x_session_id:
        raise AuthenticationError()
    result = await db.execute(
        select(UserSession).where(UserSession.id == x_session_id, UserSession.expires_at > utcnow())
    )
    session = result.scalars().first()
    if session is None:
        raise SessionExpiredError()
    return session


async def get_current_user(
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, session.user_id)
    if user is None:
        logger.warning(f"Session {session.id[:8]}... points to a missing user")
        raise SessionExpiredError()
    request.state.user = user
    return user
