import json
import logging
from typing import Any, Dict, Optional

from fellis.models.audit_log import AuditEntry
from fellis.utils.clock import utcnow

logger = logging.getLogger(__name__)


def normalize_details(details: Optional[Dict]) -> Optional[Dict]:
    """
    Make details JSON-serializable.

    Values that json cannot encode (datetimes, enums) are converted with str()
    rather than rejected: an audit write must not fail on its payload.
    """
    if not details:
        return None
    return json.loads(json.dumps(details, default=str))


class AuditLog:
    """
    Append-only audit trail of privacy-relevant actions.

    Each entry is written in its own session so that it commits independently
    of the caller's unit of work. record() never raises: a failed write is
    reported on the logger and the observed operation carries on.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def record(
        self,
        user_id: Optional[int],
        action: str,
        details: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
    ) -> None:
        action = getattr(action, "value", action)
        try:
            async with self._session_factory() as session:
                session.add(
                    AuditEntry(
                        user_id=user_id,
                        action=action,
                        details=normalize_details(details),
                        ip_address=ip,
                        created_at=utcnow(),
                    )
                )
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write audit entry action={action} user={user_id}: {str(e)}")
