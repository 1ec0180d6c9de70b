"""
SLA Scheduler
=============

APScheduler wrapper running the periodic SLA jobs (breach scan and
grace-period close) on the application's event loop.
"""

from typing import Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[None]]


class SLAScheduler:
    """Owns the scheduler lifecycle and its interval jobs."""

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, jobs: Dict[str, Job]) -> None:
        """Start one interval job per entry of `jobs` (job id -> coroutine function)."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        for job_id, job_func in jobs.items():
            self._scheduler.add_job(
                job_func,
                "interval",
                seconds=self.interval_seconds,
                id=job_id,
                name=job_id.replace("_", " ").title(),
                misfire_grace_time=self.interval_seconds,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True
        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds, "jobs": sorted(jobs)}
        )

    async def stop(self) -> None:
        if not self._running:
            return
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
