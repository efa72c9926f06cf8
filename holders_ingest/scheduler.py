"""
Scheduler: APScheduler-based periodic refresh of the holder snapshot.

One interval job (default every 6 hours) fires the ingestion engine in the
background. At startup the age of the loaded snapshot decides whether the
first run happens immediately or one interval from now. Overlap is not
handled here: the engine's single-flight check rejects a tick that lands
while a run is active.
"""
from datetime import datetime, timedelta
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from holders_ingest.config import Settings, get_settings
from holders_ingest.ingestion.engine import IngestionEngine
from holders_ingest.models import Snapshot, utc_now
from holders_ingest.store import SnapshotStore

logger = structlog.get_logger()

REFRESH_JOB_ID = "refresh_holders"


def needs_immediate_refresh(
    snapshot: Snapshot,
    interval_seconds: float,
    now: Optional[datetime] = None,
) -> bool:
    """True if the snapshot is absent, empty or older than one interval."""
    if snapshot.is_empty or snapshot.taken_at is None:
        return True
    return snapshot.age_seconds(now) >= interval_seconds


class HolderRefreshScheduler:
    """
    Manages the periodic refresh job.

    Schedule:
    - Refresh: every `refresh_interval_hours`, first run immediately if
      the snapshot is stale or absent
    """

    def __init__(
        self,
        engine: IngestionEngine,
        store: SnapshotStore,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.engine = engine
        self.store = store
        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "misfire_grace_time": 300,
            },
        )
        self._running = False

    def _setup_jobs(self) -> None:
        interval = timedelta(seconds=self.settings.refresh_interval_seconds)
        now = utc_now()
        snapshot = self.store.read()

        if needs_immediate_refresh(snapshot, interval.total_seconds(), now):
            first_run = now
            logger.info(
                "Snapshot stale or absent, refreshing immediately",
                holders=snapshot.total,
                age_seconds=snapshot.age_seconds(now),
            )
        else:
            first_run = now + interval
            logger.info(
                "Snapshot fresh, skipping immediate refresh",
                holders=snapshot.total,
                age_seconds=round(snapshot.age_seconds(now)),
            )

        self.scheduler.add_job(
            self._run_refresh_job,
            trigger=IntervalTrigger(seconds=interval.total_seconds(), timezone="UTC"),
            id=REFRESH_JOB_ID,
            name="Refresh token holders",
            next_run_time=first_run,
            replace_existing=True,
        )
        logger.info(
            "Scheduled refresh job",
            interval_hours=self.settings.refresh_interval_hours,
            first_run=first_run.isoformat(),
        )

    async def _run_refresh_job(self) -> None:
        """Fire the engine in the background; never blocks the scheduler."""
        logger.info("Running scheduled update")
        if self.engine.trigger():
            logger.info("Scheduled refresh started")
        else:
            logger.info("Scheduled refresh skipped, already fetching")

    # =========================================================================
    # JOB MANAGEMENT
    # =========================================================================

    def trigger_now(self) -> bool:
        """On-demand refresh. False if a run is already active."""
        return self.engine.trigger()

    @property
    def next_run_time(self) -> Optional[datetime]:
        if not self._running:
            return None
        job = self.scheduler.get_job(REFRESH_JOB_ID)
        return job.next_run_time if job else None

    def get_job_status(self) -> list[dict]:
        """Get status of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            })
        return jobs

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start the scheduler. Needs a running event loop."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._setup_jobs()
        self.scheduler.start()
        self._running = True
        logger.info("Scheduler started", jobs=self.get_job_status())

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
