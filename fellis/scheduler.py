from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging

from fellis.config import settings
from fellis.utils.retention import install_retention_sweeper

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)


def start_scheduler() -> None:
    install_retention_sweeper(scheduler, interval_hours=settings.retention_sweep_interval_hours)
    scheduler.start()
    logger.info("[Scheduler] started")


def stop_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[Scheduler] stopped")
