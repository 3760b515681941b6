from sqlalchemy import Column, DateTime, Integer, String, Text

from fellis.database import Base
from fellis.utils.clock import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    handle = Column(String(255), unique=True, nullable=False)
    initials = Column(String(10), nullable=True)
    email = Column(String(255), unique=True, nullable=True)
    # Facebook-only accounts have no local password
    password_hash = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    avatar_url = Column(String(512), nullable=True)
    join_date = Column(String(10), nullable=True)
    friend_count = Column(Integer, default=0, nullable=False)
    photo_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Facebook link. The token is stored as vault ciphertext; the expiry is
    # kept in clear so the retention sweep can query it without decrypting.
    facebook_id = Column(String(64), unique=True, nullable=True, index=True)
    fb_access_token = Column(Text, nullable=True)
    fb_token_expires_at = Column(DateTime, nullable=True, index=True)
    last_import_at = Column(DateTime, nullable=True)
