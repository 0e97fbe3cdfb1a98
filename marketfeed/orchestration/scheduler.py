"""
Multi-cadence job scheduler.

Three jobs run as background asyncio tasks:

- ``ingestion``: every ``ingestion_interval_minutes``, guarded so that at
  most one ingestion pass (scheduled or manual) is in flight. A tick that
  finds a pass already running is skipped, not queued.
- ``statistics``: every ``statistics_interval_minutes``, refreshes the
  cached 24h rollup.
- ``maintenance``: daily at ``maintenance_hour_utc``, cleanup then report.

Interval jobs fire on wall-clock multiples of their interval (UTC), so a
15 minute job runs at :00, :15, :30 and :45.

``stop()`` lets a job that is already running finish before its loop exits.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from marketfeed.analysis.statistics import StatisticsAggregator
from marketfeed.crawler.ingestion import BatchResult, IngestionPipeline
from marketfeed.orchestration.maintenance import Maintenance
from marketfeed.utils.config import Settings, get_settings
from marketfeed.utils.logger import get_logger

logger = get_logger(__name__)

INGESTION_JOB = "ingestion"
STATISTICS_JOB = "statistics"
MAINTENANCE_JOB = "maintenance"

STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_ERROR = "error"


class AlreadyRunningError(Exception):
    """An ingestion pass is already in flight."""


class SingleFlightGuard:
    """Admits at most one holder at a time.

    ``try_acquire`` tests and sets the flag without awaiting in between,
    so on a single event loop no two coroutines can both acquire it.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def is_running(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


@dataclass
class JobStatus:
    name: str
    last_run: datetime | None = None
    next_run: datetime | None = None
    status: str = STATUS_IDLE
    last_duration: float | None = None
    last_error: str | None = None
    run_count: int = 0
    skip_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("last_run", "next_run"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


def seconds_until_next_interval(now: datetime, minutes: int) -> float:
    """Seconds from ``now`` to the next wall-clock multiple of ``minutes``."""
    period = minutes * 60
    return period - (now.timestamp() % period)


def seconds_until_hour(now: datetime, hour: int) -> float:
    """Seconds from ``now`` to the next ``hour``:00 UTC (tomorrow if already past)."""
    target = now.astimezone(timezone.utc).replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class FeedScheduler:
    """Runs ingestion, statistics and maintenance on their own cadences."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        statistics: StatisticsAggregator,
        maintenance: Maintenance,
        settings: Settings | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._statistics = statistics
        self._maintenance = maintenance
        self._settings = settings or get_settings()
        self._guard = SingleFlightGuard()
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._executing: set[str] = set()
        self._stopping = False
        self._jobs: dict[str, JobStatus] = {
            name: JobStatus(name=name)
            for name in (INGESTION_JOB, STATISTICS_JOB, MAINTENANCE_JOB)
        }
        self._actions: dict[str, Callable[[], Awaitable[Any]]] = {
            INGESTION_JOB: self._ingestion_tick,
            STATISTICS_JOB: lambda: self._execute(STATISTICS_JOB, self._statistics.refresh),
            MAINTENANCE_JOB: lambda: self._execute(MAINTENANCE_JOB, self._maintenance.run_daily),
        }

    @property
    def is_running(self) -> bool:
        """True while an ingestion pass is in flight."""
        return self._guard.is_running

    def job_status(self, name: str) -> JobStatus:
        return self._jobs[name]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all job loops. Does nothing if they are already running."""
        if self._tasks:
            logger.debug("FeedScheduler already started - ignoring duplicate start")
            return

        s = self._settings
        self._tasks = {
            INGESTION_JOB: asyncio.create_task(
                self._interval_loop(INGESTION_JOB, s.ingestion_interval_minutes),
                name="marketfeed_ingestion",
            ),
            STATISTICS_JOB: asyncio.create_task(
                self._interval_loop(STATISTICS_JOB, s.statistics_interval_minutes),
                name="marketfeed_statistics",
            ),
            MAINTENANCE_JOB: asyncio.create_task(
                self._daily_loop(MAINTENANCE_JOB, s.maintenance_hour_utc),
                name="marketfeed_maintenance",
            ),
        }
        logger.info("Scheduler started")
        logger.info("- Every %d minutes: feed ingestion", s.ingestion_interval_minutes)
        logger.info("- Every %d minutes: asset statistics update", s.statistics_interval_minutes)
        logger.info("- Daily at %02d:00 UTC: maintenance and cleanup", s.maintenance_hour_utc)

    async def stop(self) -> None:
        """Stop all job loops. Safe to call when not started.

        Idle loops are cancelled. A loop that is running its job is left to
        finish that run and then exits.
        """
        if not self._tasks:
            return

        self._stopping = True
        tasks = list(self._tasks.items())
        self._tasks = {}
        for name, task in tasks:
            if name in self._executing:
                logger.info("Waiting for job %s to finish before stopping", name)
            elif not task.done():
                task.cancel()
        try:
            for _, task in tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            self._stopping = False

        for status in self._jobs.values():
            status.next_run = None
        logger.info("Scheduler stopped")

    async def _interval_loop(self, name: str, minutes: int) -> None:
        await self._job_loop(
            name, lambda now: seconds_until_next_interval(now, minutes)
        )

    async def _daily_loop(self, name: str, hour: int) -> None:
        await self._job_loop(name, lambda now: seconds_until_hour(now, hour))

    async def _job_loop(self, name: str, delay_for: Callable[[datetime], float]) -> None:
        status = self._jobs[name]
        while not self._stopping:
            now = datetime.now(tz=timezone.utc)
            delay = delay_for(now)
            status.next_run = now + timedelta(seconds=delay)
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                logger.debug("Job loop %s cancelled", name)
                raise
            status.next_run = None
            self._executing.add(name)
            try:
                await self.run_job(name)
            finally:
                self._executing.discard(name)

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def run_job(self, name: str) -> Any:
        """Run job ``name`` once now, as a scheduled tick would.

        Raises:
            KeyError: Unknown job name.
        """
        return await self._actions[name]()

    async def _ingestion_tick(self) -> BatchResult | None:
        if not self._guard.try_acquire():
            self._jobs[INGESTION_JOB].skip_count += 1
            logger.warning("Feed ingestion already running, skipping this cycle")
            return None
        try:
            return await self._execute(INGESTION_JOB, self._pipeline.process_active_feeds)
        finally:
            self._guard.release()

    async def _execute(self, name: str, func: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``func`` and record the outcome on the job's status.

        Exceptions are logged and recorded, and ``None`` is returned.
        """
        status = self._jobs[name]
        status.status = STATUS_RUNNING
        status.last_run = datetime.now(tz=timezone.utc)
        started = time.monotonic()
        logger.info("Job %s started", name)
        try:
            result = await func()
        except asyncio.CancelledError:
            status.status = STATUS_ERROR
            status.last_error = "cancelled"
            logger.warning("Job %s cancelled while running", name)
            raise
        except Exception as e:
            status.status = STATUS_ERROR
            status.last_error = str(e) or type(e).__name__
            logger.error("Job %s failed: %s", name, e, exc_info=True)
            return None
        finally:
            status.last_duration = time.monotonic() - started
            status.run_count += 1

        status.status = STATUS_IDLE
        status.last_error = None
        logger.info("Job %s completed in %.1fs", name, status.last_duration)
        return result

    async def trigger_manual_processing(self) -> dict[str, int]:
        """Run one ingestion pass now.

        Returns:
            ``{"processed": feeds ok, "errors": feeds or runs that failed}``

        Raises:
            AlreadyRunningError: An ingestion pass is already in flight.
        """
        if not self._guard.try_acquire():
            raise AlreadyRunningError("Feed ingestion is already running")

        logger.info("Manual feed ingestion triggered")
        try:
            batch = await self._execute(INGESTION_JOB, self._pipeline.process_active_feeds)
        finally:
            self._guard.release()

        if batch is None:
            return {"processed": 0, "errors": 1}
        return {"processed": batch.feeds_ok, "errors": batch.errors}

    def get_status(self) -> dict[str, Any]:
        active = [name for name, task in self._tasks.items() if not task.done()]
        return {
            "is_running": self._guard.is_running,
            "active_jobs": len(active),
            "next_runs": [
                {"job": name, "next_run": self._jobs[name].next_run.isoformat()}
                for name in active
                if self._jobs[name].next_run is not None
            ],
            "jobs": [status.to_dict() for status in self._jobs.values()],
        }
