"""APScheduler setup for sync housekeeping jobs."""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from recordsync.core.config import get_settings
from recordsync.core.database import async_session_maker
from recordsync.services.tracking import SyncProgressTracker

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def run_session_cleanup(session_maker=async_session_maker) -> int:
    """Delete finished sync sessions past the retention window."""
    settings = get_settings()
    logger.info("Starting scheduled sync session cleanup")

    async with session_maker() as session:
        try:
            tracker = SyncProgressTracker(session)
            removed = await tracker.cleanup_old_sessions(settings.sync_history_retention_days)
        except Exception as e:
            logger.error(f"Sync session cleanup failed: {e}")
            await session.rollback()
            return 0

    logger.info(f"Scheduled cleanup removed {removed} sync sessions")
    return removed


def start_scheduler():
    """Start the APScheduler."""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already started")
        return

    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone=settings.tz)

    scheduler.add_job(
        run_session_cleanup,
        CronTrigger(hour=settings.cleanup_hour, minute=0, timezone=settings.tz),
        id="sync_session_cleanup",
        name="Daily sync session cleanup",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"Scheduler started - session cleanup at {settings.cleanup_hour}:00")


def stop_scheduler():
    """Stop the APScheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")
