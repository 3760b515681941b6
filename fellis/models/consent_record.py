"""
ConsentRecord model for GDPR consent tracking (Article 7).

Records each consent decision by a user, providing a complete timestamped
history per purpose. Rows are never deleted while the account exists; a
withdrawal stamps the active grant's withdrawn_at and appends a new row.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from fellis.database import Base
from fellis.utils.clock import utcnow


class ConsentRecord(Base):
    """
    One consent decision for a (user, purpose) pair.

    The current state of a purpose is the most recent row by granted_at:
    granted when that row has granted=True and no withdrawn_at.
    """

    __tablename__ = "consent_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Valid values: see fellis.constants.ConsentPurpose
    purpose = Column(String(50), nullable=False)
    granted = Column(Boolean, nullable=False)
    granted_at = Column(DateTime, nullable=False, default=utcnow)
    withdrawn_at = Column(DateTime, nullable=True)
    # IPv6 addresses can be up to 39 chars; 45 allows for mapped IPv4 addresses
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)

    __table_args__ = (Index("idx_consent_user_purpose", "user_id", "purpose", "granted_at"),)
