"""
Background runner for Facebook imports.

A request that starts an import hands it to the runner and returns at once;
the import's outcome is written only to the audit log. The runner holds at
most one task per user, keyed by user id, so erasure and consent withdrawal
can cancel that user's import and wait for it to stop before deleting.
"""

import asyncio
import logging

from fellis.constants import AuditAction
from fellis.services.import_service import FacebookImportPipeline
from fellis.utils.audit_log import AuditLog

logger = logging.getLogger(__name__)


class ImportTaskRunner:
    """Runs FacebookImportPipeline.import_all as fire-and-forget asyncio tasks."""

    def __init__(self, pipeline: FacebookImportPipeline, audit: AuditLog):
        self.pipeline = pipeline
        self.audit = audit
        self._tasks: dict[int, asyncio.Task] = {}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def is_running(self, user_id: int) -> bool:
        return user_id in self._tasks

    def submit(self, user_id: int, token: str | None) -> bool:
        """
        Schedule an import on the running event loop.

        Returns True if an import was scheduled. Returns False when there is
        no token, or when an import for this user is already running.
        """
        if not token:
            return False
        if user_id in self._tasks:
            logger.info(f"Facebook import for user {user_id} already running")
            return False
        task = asyncio.get_running_loop().create_task(self._run(user_id, token), name=f"fb-import-{user_id}")
        self._tasks[user_id] = task
        task.add_done_callback(lambda done: self._forget(user_id, done))
        logger.info(f"Facebook import scheduled for user {user_id}")
        return True

    def _forget(self, user_id: int, task: asyncio.Task) -> None:
        if self._tasks.get(user_id) is task:
            del self._tasks[user_id]

    async def cancel(self, user_id: int) -> bool:
        """
        Cancel the user's running import and wait until it has stopped.

        Returns False when no import was running for the user.
        """
        task = self._tasks.get(user_id)
        if task is None:
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._forget(user_id, task)
        return True

    async def _run(self, user_id: int, token: str) -> None:
        try:
            await self.pipeline.import_all(user_id, token)
        except asyncio.CancelledError:
            logger.warning(f"Facebook import for user {user_id} cancelled")
            raise
        except Exception as e:
            logger.error(f"Facebook import for user {user_id} failed: {e}", exc_info=True)
            await self.audit.record(user_id, AuditAction.FACEBOOK_IMPORT_FAILED, {"error": str(e)})

    async def wait_idle(self) -> None:
        """Wait until every scheduled import has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding imports."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
