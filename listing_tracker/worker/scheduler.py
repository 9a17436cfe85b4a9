"""APScheduler job definitions."""

import logging
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from listing_tracker.config import settings
from listing_tracker.errors import TrackerError
from listing_tracker.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)


async def daily_check_job(task_runner: TaskRunner):
    """Scheduled daily check; failures are already recorded in run state."""
    try:
        await task_runner.run_daily_check()
    except TrackerError as e:
        logger.warning(f"Scheduled daily check did not complete: {e}")
    except Exception:
        logger.exception("Scheduled daily check crashed")


def setup_scheduler(task_runner: TaskRunner) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    The daily check runs at ``daily_check_hour:daily_check_minute`` in the
    tracking timezone, so the run and the daily gate agree on what "today" is.

    Returns:
        Configured scheduler instance
    """
    tz = ZoneInfo(settings.timezone)
    scheduler = AsyncIOScheduler(timezone=tz)

    scheduler.add_job(
        daily_check_job,
        CronTrigger(hour=settings.daily_check_hour, minute=settings.daily_check_minute, timezone=tz),
        args=[task_runner],
        id="daily_check",
        name="Check all tracked businesses",
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
        misfire_grace_time=3600,
        replace_existing=True,
    )

    logger.info(
        "Scheduler configured: daily check at %02d:%02d %s",
        settings.daily_check_hour,
        settings.daily_check_minute,
        settings.timezone,
    )

    return scheduler
