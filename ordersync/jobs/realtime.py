"""Realtime sync job: resume the listings feed from the last stored cursor."""
import logging
import time
from enum import Enum
from typing import Optional

from ordersync.config import config
from ordersync.jobs.fetcher import FeedSync
from ordersync.jobs.metrics_exporter import MetricsExporter
from ordersync.jobs.queue import DelayedJobQueue, Job
from ordersync.parse.redact import redact_string
from ordersync.store.state import StateDB

logger = logging.getLogger(__name__)

REALTIME_QUEUE_NAME = "realtime-seaport-sync"


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"


class RealtimeCursorScheduler:
    """Runs one page of the listings feed per invocation and re-arms via the queue.

    Each run reads the stored cursor, syncs from it, and stores the new
    cursor. Failures are logged and swallowed: the next run starts again from
    the unchanged cursor. The coordination lock is released after every run.
    """

    def __init__(
        self,
        feed_sync: FeedSync,
        state_db: StateDB,
        cursor_key: Optional[str] = None,
        lock_name: Optional[str] = None,
        exporter: Optional[MetricsExporter] = None,
    ):
        self.feed_sync = feed_sync
        self.state_db = state_db
        self.cursor_key = cursor_key or config.REALTIME_CURSOR_KEY
        self.lock_name = lock_name or config.REALTIME_LOCK_NAME
        self.exporter = exporter
        self.queue: Optional[DelayedJobQueue] = None
        self.state = SchedulerState.IDLE

    def attach(self, queue: DelayedJobQueue) -> None:
        """Use ``queue`` for re-arming; its jobs invoke :meth:`run`."""
        self.queue = queue

    def create_queue(self) -> DelayedJobQueue:
        queue = DelayedJobQueue(REALTIME_QUEUE_NAME, self.run)
        self.attach(queue)
        return queue

    async def trigger(self, delay: Optional[float] = None) -> bool:
        """Take the coordination lock and schedule a run; False if it is held."""
        if not await self.state_db.acquire_lock(self.lock_name, config.REALTIME_LOCK_TTL):
            logger.debug(f"{REALTIME_QUEUE_NAME}: lock {self.lock_name} held, skipping trigger")
            return False
        await self.enqueue_next(config.REALTIME_DELAY if delay is None else delay)
        return True

    async def enqueue_next(self, delay: float = 0.0) -> None:
        """Schedule the next run after ``delay`` seconds."""
        if self.queue is None:
            raise RuntimeError("Realtime scheduler has no queue attached")
        await self.queue.add(delay=delay)
        if self.state == SchedulerState.IDLE:
            self.state = SchedulerState.SCHEDULED

    async def run(self, job: Optional[Job] = None) -> None:
        """One realtime sync. Never raises."""
        attempts = job.attempts_made if job else 0
        self.state = SchedulerState.RUNNING
        start_time = time.time()
        cursor_moved = False
        error: Optional[str] = None

        try:
            cursor = await self.state_db.get(self.cursor_key)
            if cursor is None:
                cursor = ""

            logger.info(f"{REALTIME_QUEUE_NAME}: Start Seaport sync from cursor={cursor}")
            new_cursor = await self.feed_sync.fetch_page(cursor, side="sell")

            if (new_cursor or "") == cursor:
                logger.warning(
                    f"{REALTIME_QUEUE_NAME}: Seaport cursor didn't change "
                    f"cursor={cursor}, newCursor={new_cursor}"
                )
            else:
                cursor_moved = True

            if new_cursor:
                await self.state_db.set(self.cursor_key, new_cursor)
        except Exception as e:
            error = redact_string(str(e))
            logger.error(
                f"{REALTIME_QUEUE_NAME}: Seaport sync failed attempts={attempts}, error={error}",
                extra={"attempts": attempts, "sync_source": "Seaport"},
                exc_info=True,
            )
        finally:
            await self._complete(attempts)

        if self.exporter is not None:
            try:
                await self.exporter.export_run(
                    success=error is None,
                    cursor_moved=cursor_moved,
                    duration=time.time() - start_time,
                    attempts=attempts,
                    error=error,
                )
            except OSError as e:
                logger.warning(f"{REALTIME_QUEUE_NAME}: metrics export failed: {e}")

    async def _complete(self, attempts: int) -> None:
        # Release the lock to allow the next sync
        try:
            await self.state_db.release_lock(self.lock_name, suppress_reacquire=False)
        except Exception as e:
            logger.error(f"{REALTIME_QUEUE_NAME}: failed to release lock {self.lock_name}: {e}")

        if attempts > 0:
            logger.info(f"{REALTIME_QUEUE_NAME}: Sync recover attempts={attempts}")

        pending = self.queue.pending if self.queue is not None else 0
        self.state = SchedulerState.SCHEDULED if pending else SchedulerState.IDLE
