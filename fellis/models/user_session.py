"""User session tracking for the SPA's X-Session-Id header."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from fellis.database import Base
from fellis.utils.clock import utcnow


class UserSession(Base):
    """Opaque server-side session; removed on logout, expiry or account deletion."""

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lang = Column(String(5), default="da", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
