from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from fellis.database import Base
from fellis.utils.clock import utcnow


class Friendship(Base):
    """
    One direction of a friendship edge.

    A friendship between A and B is always stored as the pair (A, B) and
    (B, A); services create and remove both rows together.
    """

    __tablename__ = "friendships"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    friend_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mutual_count = Column(Integer, default=0, nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    source = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "friend_id", name="uq_friendship_pair"),)
