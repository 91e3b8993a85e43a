"""
Scheduler for nightly availability cache population.

Runs the population job over a rolling window so patient searches read
populated keys instead of populating on demand.
"""

import asyncio
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore

from core.config import POPULATION_CRON_HOUR, POPULATION_WINDOW_DAYS
from services.availability_population_service import AvailabilityPopulationJob, PopulationSummary
from utils.datetime_utils import PRACTICE_TZ, practice_now

logger = logging.getLogger(__name__)

# Global singleton instance
_population_scheduler: Optional['AvailabilityPopulationScheduler'] = None


class AvailabilityPopulationScheduler:
    """
    Scheduler for the availability population job.

    Runs daily at POPULATION_CRON_HOUR practice time over the next
    POPULATION_WINDOW_DAYS days.
    """

    def __init__(self, job: Optional[AvailabilityPopulationJob] = None):
        self.scheduler = AsyncIOScheduler(timezone=PRACTICE_TZ)
        self.job = job or AvailabilityPopulationJob()
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Availability population scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_population,
            CronTrigger(hour=POPULATION_CRON_HOUR, minute=0),
            id="availability_population",
            name="Availability cache population",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=3600,  # Allow 1 hour grace time if server was down
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Availability population scheduler started (runs daily at {POPULATION_CRON_HOUR}:00)")

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler, cancelling a run in progress.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.job.cancel()
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Availability population scheduler stopped")

    async def _run_population(self) -> None:
        """
        Run one population pass.

        Offloads the blocking job to a worker thread so the event loop stays free.
        """
        logger.info("Starting scheduled availability population...")
        try:
            summary = await asyncio.to_thread(self.execute_population)
            logger.info(f"Scheduled availability population completed: {summary}")
        except Exception as e:
            logger.exception(f"Error during scheduled availability population: {e}")
            # Don't re-raise - allow scheduler to continue

    def execute_population(self) -> PopulationSummary:
        """Populate the rolling window starting today (synchronous)."""
        return self.job.run(practice_now().date(), POPULATION_WINDOW_DAYS)


def get_population_scheduler() -> AvailabilityPopulationScheduler:
    """
    Get the global population scheduler instance.

    Returns:
        AvailabilityPopulationScheduler: The global scheduler instance
    """
    global _population_scheduler
    if _population_scheduler is None:
        _population_scheduler = AvailabilityPopulationScheduler()
    return _population_scheduler


async def start_population_scheduler() -> None:
    """Start the global population scheduler."""
    scheduler = get_population_scheduler()
    await scheduler.start_scheduler()


async def stop_population_scheduler() -> None:
    """Stop the global population scheduler."""
    global _population_scheduler
    if _population_scheduler:
        await _population_scheduler.stop_scheduler()
