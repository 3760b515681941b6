"""
Consent Ledger (GDPR Article 7)

Per-user, per-purpose consent with full history. All functions are async and
accept an injected AsyncSession plus the AuditLog collaborator.

The ledger only does bookkeeping: starting a Facebook import after an
external_import grant is the caller's job.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.constants import AuditAction, consent_purposes
from fellis.exceptions import InvalidConsentPurposeError
from fellis.models.consent_record import ConsentRecord
from fellis.utils.audit_log import AuditLog
from fellis.utils.clock import utcnow

logger = logging.getLogger(__name__)


def validate_purpose(purpose: str) -> str:
    """Return the purpose string, or raise InvalidConsentPurposeError."""
    purpose = getattr(purpose, "value", purpose)
    allowed = consent_purposes()
    if purpose not in allowed:
        raise InvalidConsentPurposeError(purpose, allowed)
    return purpose


async def _latest_record(user_id: int, purpose: str, db: AsyncSession) -> ConsentRecord | None:
    result = await db.execute(
        select(ConsentRecord)
        .where(ConsentRecord.user_id == user_id, ConsentRecord.purpose == purpose)
        .order_by(ConsentRecord.granted_at.desc(), ConsentRecord.id.desc())
        .limit(1)
    )
    return result.scalars().first()


def _is_active(record: ConsentRecord | None) -> bool:
    return record is not None and record.granted and record.withdrawn_at is None


async def grant_consent(
    user_id: int,
    purpose: str,
    ip_address: str | None,
    user_agent: str | None,
    db: AsyncSession,
    audit: AuditLog,
) -> ConsentRecord:
    """
    Append a granted record for the purpose.

    Every grant is recorded, even when the purpose is already granted; the
    duplicate is part of the audit trail.
    """
    purpose = validate_purpose(purpose)
    record = ConsentRecord(
        user_id=user_id,
        purpose=purpose,
        granted=True,
        granted_at=utcnow(),
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    logger.info("Consent granted: user=%d purpose=%s", user_id, purpose)

    await audit.record(user_id, AuditAction.CONSENT_GRANTED, {"purpose": purpose}, ip_address)
    return record


async def withdraw_consent(
    user_id: int,
    purpose: str,
    ip_address: str | None,
    db: AsyncSession,
    audit: AuditLog,
) -> bool:
    """
    Withdraw the current grant for the purpose.

    Stamps withdrawn_at on the active grant and appends a granted=False record.
    Returns False (and writes nothing) when the purpose is not currently granted.
    """
    purpose = validate_purpose(purpose)
    latest = await _latest_record(user_id, purpose, db)
    if not _is_active(latest):
        logger.debug("Consent withdraw no-op: user=%d purpose=%s not granted", user_id, purpose)
        return False

    now = utcnow()
    latest.withdrawn_at = now
    db.add(
        ConsentRecord(
            user_id=user_id,
            purpose=purpose,
            granted=False,
            granted_at=now,
            withdrawn_at=now,
            ip_address=ip_address,
        )
    )
    await db.commit()
    logger.info("Consent withdrawn: user=%d purpose=%s", user_id, purpose)

    await audit.record(user_id, AuditAction.CONSENT_WITHDRAWN, {"purpose": purpose}, ip_address)
    return True


async def has_active_consent(user_id: int, purpose: str, db: AsyncSession) -> bool:
    purpose = validate_purpose(purpose)
    return _is_active(await _latest_record(user_id, purpose, db))


async def get_consent_status(user_id: int, db: AsyncSession) -> dict[str, dict[str, Any]]:
    """
    Return the current state of every recognized purpose.

    {purpose: {"granted": bool, "granted_at": datetime | None, "withdrawn_at": datetime | None}}
    """
    status: dict[str, dict[str, Any]] = {}
    for purpose in consent_purposes():
        latest = await _latest_record(user_id, purpose, db)
        if latest is None:
            status[purpose] = {"granted": False, "granted_at": None, "withdrawn_at": None}
            continue
        status[purpose] = {
            "granted": _is_active(latest),
            "granted_at": latest.granted_at,
            "withdrawn_at": latest.withdrawn_at,
        }
    return status


async def get_consent_history(
    user_id: int,
    db: AsyncSession,
    purpose: str | None = None,
) -> list[ConsentRecord]:
    """Return consent records for the user, newest first."""
    query = select(ConsentRecord).where(ConsentRecord.user_id == user_id)
    if purpose is not None:
        query = query.where(ConsentRecord.purpose == validate_purpose(purpose))
    result = await db.execute(query.order_by(ConsentRecord.granted_at.desc(), ConsentRecord.id.desc()))
    return list(result.scalars().all())
