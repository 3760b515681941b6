"""
Token and Session Retention Policy

Purges Facebook access tokens whose validity window has passed and deletes
expired sessions. Runs as a recurring APScheduler job, once at startup and
then every few hours.

A failed sweep is logged and retried on the next tick; it never takes the
process down.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import delete, select, update

from fellis.constants import AuditAction
from fellis.models.user import User
from fellis.models.user_session import UserSession
from fellis.utils.audit_log import AuditLog
from fellis.utils.clock import utcnow

logger = logging.getLogger(__name__)

JOB_ID = "token_retention"


@dataclass
class SweepResult:
    tokens_purged: int = 0
    sessions_deleted: int = 0


async def sweep_expired_tokens(session_factory, audit: AuditLog) -> SweepResult:
    """
    Null every token whose stored expiry has passed and drop expired sessions.

    Writes one audit entry per user whose token was purged.
    """
    now = utcnow()
    async with session_factory() as db:
        result = await db.execute(
            select(User.id, User.fb_token_expires_at).where(
                User.fb_access_token.is_not(None),
                User.fb_token_expires_at.is_not(None),
                User.fb_token_expires_at < now,
            )
        )
        expired = result.all()
        if expired:
            # a user who re-linked since the select keeps the fresh token
            result = await db.execute(
                update(User)
                .where(User.id.in_([row.id for row in expired]), User.fb_token_expires_at < now)
                .values(fb_access_token=None, fb_token_expires_at=None)
                .returning(User.id)
            )
            purged_ids = set(result.scalars().all())
            await db.commit()
            expired = [row for row in expired if row.id in purged_ids]

        for row in expired:
            await audit.record(row.id, AuditAction.TOKEN_EXPIRED, {"expired_at": row.fb_token_expires_at})

        result = await db.execute(delete(UserSession).where(UserSession.expires_at < now))
        sessions_deleted = result.rowcount or 0
        await db.commit()

    logger.info(
        "token_retention: purged %d expired tokens, deleted %d expired sessions",
        len(expired),
        sessions_deleted,
    )
    return SweepResult(tokens_purged=len(expired), sessions_deleted=sessions_deleted)


async def run_retention_sweep(session_factory=None, audit: AuditLog | None = None) -> SweepResult:
    """
    Scheduler entry point. Returns an empty result on failure (graceful degradation).
    """
    # Deferred import keeps the scheduler module free of app wiring at import time
    from fellis.dependencies import get_audit_log, get_session_factory

    session_factory = session_factory or get_session_factory()
    audit = audit or get_audit_log()
    try:
        return await sweep_expired_tokens(session_factory, audit)
    except Exception as exc:
        logger.warning("token_retention: sweep failed: %s", exc)
        return SweepResult()


def install_retention_sweeper(scheduler, interval_hours: int = 6) -> None:
    """
    Register the retention job with the shared APScheduler instance.

    The job fires as soon as the scheduler starts and then every interval_hours.

    Args:
        scheduler: The application's AsyncIOScheduler (from fellis.scheduler).
        interval_hours: How often to run (default: every 6 hours).
    """
    scheduler.add_job(
        run_retention_sweep,
        trigger=IntervalTrigger(hours=interval_hours),
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    logger.info("token_retention: installed (interval=%dh)", interval_hours)
