from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String

from fellis.database import Base
from fellis.utils.clock import utcnow


class AuditEntry(Base):
    """
    Append-only record of a privacy-relevant action.

    Entries outlive the account they describe: deleting a user nulls
    user_id instead of removing the row.
    """

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(64), nullable=False)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_audit_user_action_created", "user_id", "action", "created_at"),)
