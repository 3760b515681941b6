import logging
import re
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from fellis.auth import hash_password, verify_password
from fellis.exceptions import DuplicateResourceError, InvalidCredentialsError
from fellis.models.user import User
from fellis.services.token_vault import TokenVault
from fellis.utils.clock import utcnow

logger = logging.getLogger(__name__)


def make_handle(name: str) -> str:
    return "@" + re.sub(r"\s+", ".", (name or "user").strip().lower())


def make_initials(name: str) -> str:
    return "".join(part[0] for part in (name or "U").split() if part).upper()[:10]


async def _unique_handle(name: str, db: AsyncSession) -> str:
    base = make_handle(name)
    handle = base
    suffix = 1
    while (await db.execute(select(User.id).where(User.handle == handle))).first() is not None:
        suffix += 1
        handle = f"{base}{suffix}"
    return handle


async def authenticate_user(email: str, password: str, db: AsyncSession) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user and verify_password(password, user.password_hash):
        return user
    raise InvalidCredentialsError()


async def register_user(name: str, email: str, password: str, db: AsyncSession) -> User:
    result = await db.execute(select(User).where(User.email == email))
    if result.scalars().first():
        raise DuplicateResourceError("User", "email", email)

    new_user = User(
        name=name,
        handle=await _unique_handle(name, db),
        initials=make_initials(name),
        email=email,
        password_hash=hash_password(password),
        join_date=str(utcnow().year),
    )
    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)
    logger.info(f"Registered user {new_user.id}")
    return new_user


async def link_facebook_account(
    profile: dict,
    access_token: str,
    expires_in: int | None,
    default_ttl_days: int,
    vault: TokenVault,
    db: AsyncSession,
) -> User:
    """
    Attach a Facebook profile and its token to a fellis user.

    Matches an existing user by facebook_id or email, otherwise creates one.
    The token is stored encrypted together with its plaintext expiry.
    """
    facebook_id = str(profile["id"])
    email = profile.get("email")

    query = select(User).where(User.facebook_id == facebook_id)
    user = (await db.execute(query)).scalars().first()
    if user is None and email:
        user = (await db.execute(select(User).where(User.email == email))).scalars().first()

    if user is None:
        name = profile.get("name") or "User"
        picture = (profile.get("picture") or {}).get("data") or {}
        user = User(
            name=name,
            handle=await _unique_handle(name, db),
            initials=make_initials(name),
            email=email,
            avatar_url=picture.get("url"),
            join_date=str(utcnow().year),
        )
        db.add(user)

    ttl = timedelta(seconds=expires_in) if expires_in else timedelta(days=default_ttl_days)
    user.facebook_id = facebook_id
    user.fb_access_token = vault.encrypt(access_token)
    user.fb_token_expires_at = utcnow() + ttl
    await db.commit()
    await db.refresh(user)
    return user
