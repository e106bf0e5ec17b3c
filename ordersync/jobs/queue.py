"""In-process delayed job queue with an explicit start/stop lifecycle."""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """One queued invocation."""

    name: str
    data: dict[str, Any] = field(default_factory=dict)
    delay: float = 0.0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attempts_made: int = 0


Processor = Callable[[Job], Awaitable[None]]
Listener = Callable[[Job], Awaitable[None]]


class DelayedJobQueue:
    """Runs jobs after their delay, one at a time by default.

    A job whose processor raises counts as failed; ``attempts_made`` is
    bumped and the failed listeners are called. Otherwise the completed
    listeners are called.
    """

    def __init__(self, name: str, processor: Processor, concurrency: int = 1):
        self.name = name
        self.processor = processor
        self.concurrency = concurrency
        self._ready: asyncio.Queue[Job] = asyncio.Queue()
        self._timers: set[asyncio.TimerHandle] = set()
        self._workers: list[asyncio.Task] = []
        self._completed: list[Listener] = []
        self._failed: list[Listener] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Jobs waiting on their delay or on a free worker."""
        return len(self._timers) + self._ready.qsize()

    def on_completed(self, listener: Listener) -> None:
        self._completed.append(listener)

    def on_failed(self, listener: Listener) -> None:
        self._failed.append(listener)

    async def start(self) -> None:
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._work(), name=f"{self.name}-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(f"Queue {self.name} started (concurrency={self.concurrency})")

    async def stop(self) -> None:
        """Drop pending timers and stop the workers."""
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(f"Queue {self.name} stopped")

    async def add(self, data: Optional[dict[str, Any]] = None, delay: float = 0.0) -> Job:
        """Queue a job to run after ``delay`` seconds."""
        if not self.running:
            raise RuntimeError(f"Queue {self.name} is not started")

        job = Job(name=self.name, data=data or {}, delay=delay)
        if delay <= 0:
            self._ready.put_nowait(job)
            return job

        loop = asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def release() -> None:
            self._timers.discard(handle)
            self._ready.put_nowait(job)

        handle = loop.call_later(delay, release)
        self._timers.add(handle)
        return job

    async def join(self) -> None:
        """Wait until every job that is ready has been processed."""
        await self._ready.join()

    async def _work(self) -> None:
        while True:
            job = await self._ready.get()
            try:
                await self.processor(job)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                job.attempts_made += 1
                logger.error(f"Queue {self.name} job {job.id} failed: {e}", exc_info=True)
                await self._notify(self._failed, job)
            else:
                await self._notify(self._completed, job)
            finally:
                self._ready.task_done()

    async def _notify(self, listeners: list[Listener], job: Job) -> None:
        for listener in listeners:
            try:
                await listener(job)
            except Exception as e:
                logger.error(f"Queue {self.name} listener failed for job {job.id}: {e}")
