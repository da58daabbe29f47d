import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tuner_guide.services.guide_service import GuideService
from tuner_guide.utils.logging_helpers import log_section_end, log_section_start


logger = logging.getLogger(__name__)

RELOAD_JOB_ID = "guide_reload"


class GuideScheduler:
    """Scheduler for periodic service list reloads"""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None
        self._guide: GuideService | None = None

    async def _reload_job(self) -> None:
        """Background job that reloads the guide"""
        if self._guide is None:
            return
        log_section_start(logger, "scheduled guide reload")
        try:
            outcome = await self._guide.reload()
            if not outcome.ok:
                logger.error(f"Scheduled reload failed: {outcome.error}")
                return
        except Exception as e:
            logger.error(f"Exception in scheduled reload: {e}", exc_info=True)
            return
        log_section_end(logger, "scheduled guide reload")

    def start(self, guide: GuideService, cron: str) -> None:
        """Start the scheduler with the guide reload job"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        try:
            trigger = CronTrigger.from_crontab(cron)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", cron, exc)
            raise

        self._guide = guide
        self.scheduler = AsyncIOScheduler(timezone='UTC')
        self.scheduler.add_job(
            self._reload_job,
            trigger=trigger,
            id=RELOAD_JOB_ID,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next reload: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self.scheduler = None
        self._guide = None

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled reload time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(RELOAD_JOB_ID)
        return job.next_run_time if job else None


guide_scheduler = GuideScheduler()
