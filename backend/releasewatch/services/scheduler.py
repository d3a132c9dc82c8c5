"""Background scheduler service for release registry refreshes."""

import asyncio
import logging
import os
from datetime import datetime
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from releasewatch.services.release_tracker import ReleaseTracker, release_tracker

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "release_refresh"
DEFAULT_REFRESH_MINUTES = 5


def _refresh_minutes() -> int:
    raw = os.getenv("RELEASEWATCH_REFRESH_MINUTES", str(DEFAULT_REFRESH_MINUTES))
    try:
        minutes = int(raw)
    except ValueError:
        logger.warning(f"Invalid RELEASEWATCH_REFRESH_MINUTES={raw!r}, using {DEFAULT_REFRESH_MINUTES}")
        return DEFAULT_REFRESH_MINUTES
    return max(minutes, 1)


class SchedulerService:
    """Service for managing the release refresh timer."""

    def __init__(self, tracker: ReleaseTracker = release_tracker) -> None:
        self.tracker = tracker
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.interval_minutes = _refresh_minutes()

    async def start(self) -> None:
        """Run one blocking refresh, then start the periodic timer.

        A failed initial refresh is reported by the tracker and does not
        prevent startup; update checks answer "retry" until a refresh succeeds.
        """
        if await self.tracker.refresh_safely():
            logger.info("Initial release refresh completed")
        else:
            logger.warning("Initial release refresh failed, update checks will ask clients to retry")

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.tracker.refresh_safely,
            IntervalTrigger(minutes=self.interval_minutes),
            id=REFRESH_JOB_ID,
            name="Release Registry Refresh",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
        )
        self.scheduler.start()
        logger.info(f"Background scheduler started, refreshing every {self.interval_minutes} minutes")

    async def stop(self) -> None:
        """Stop the background scheduler."""
        if self.scheduler:
            try:
                self.scheduler.shutdown(wait=False)
                # Give event loop a chance to process shutdown
                await asyncio.sleep(0)
                logger.info("Background scheduler stopped")
            except RuntimeError as e:
                logger.error(f"Scheduler shutdown error: {e}")
            finally:
                self.scheduler = None

    def get_next_run_time(self) -> Optional[datetime]:
        """Get the next scheduled refresh, or None if the scheduler is not running."""
        if not self.scheduler:
            return None

        try:
            job = self.scheduler.get_job(REFRESH_JOB_ID)
        except JobLookupError as e:
            logger.warning(f"Failed to get job: {e}")
            return None

        return job.next_run_time if job else None

    def get_status(self) -> dict:
        """Get scheduler status information."""
        running = bool(self.scheduler and self.scheduler.running)
        next_run = self.get_next_run_time() if running else None
        return {
            "running": running,
            "interval_minutes": self.interval_minutes,
            "next_run": next_run.isoformat() if next_run else None,
        }


# Global scheduler instance
scheduler_service = SchedulerService()
