import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Optional, Tuple
from uuid import uuid4

from jikan_client.domain.clock import SystemClock
from jikan_client.domain.errors import QueueLimitExceeded, TransientUpstreamError, UpstreamUnavailable
from jikan_client.domain.events import DebugEvents
from jikan_client.domain.models import QueuedJob
from jikan_client.domain.protocols import Clock, JobExecutor

logger = logging.getLogger(__name__)


class RequestQueue:
    """Bounded FIFO queue that dispatches at most one job per rate-limit interval.

    A single background task pops the head of the queue and hands it to the
    executor, waiting ``rate_limit_ms`` between the start of two dispatches.
    Each attempt runs in its own task so a slow request does not hold up the
    cadence. Jobs that fail transiently are put back at the front of the queue
    until their retry budget is spent.

    Depth counts pending and in-flight jobs. Enqueueing beyond
    ``queue_limit`` raises QueueLimitExceeded straight away.
    """

    def __init__(
        self,
        executor: JobExecutor,
        rate_limit_ms: int,
        queue_limit: int,
        max_retries: int,
        events: DebugEvents,
        clock: Optional[Clock] = None,
    ):
        self.executor = executor
        self.rate_limit_seconds = rate_limit_ms / 1000
        self.queue_limit = queue_limit
        self.max_retries = max_retries
        self.events = events
        self.clock = clock or SystemClock()

        self._pending: Deque[QueuedJob] = deque()
        self._in_flight: Dict[str, Tuple[QueuedJob, asyncio.Task]] = {}
        self._ready = asyncio.Event()
        self._last_dispatch: Optional[float] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    def size(self) -> int:
        """Number of queued jobs, including the ones currently in flight."""
        return len(self._pending) + len(self._in_flight)

    def enqueue(self, url: str, cache_key: str) -> asyncio.Future:
        """Queue a request and return the future that resolves with its payload."""
        depth = self.size()
        if depth >= self.queue_limit:
            self.events.emit("Queue", f"Rejected {cache_key}: queue is full ({depth}/{self.queue_limit})")
            raise QueueLimitExceeded(
                f"Request queue limit of {self.queue_limit} reached, rejected {cache_key}"
            )

        loop = asyncio.get_running_loop()
        job = QueuedJob(
            id=uuid4().hex[:12],
            url=url,
            cache_key=cache_key,
            enqueued_at=self.clock.time(),
            completion=loop.create_future(),
        )
        self._pending.append(job)
        self._ready.set()
        self.events.emit("Queue", f"Enqueued {job.id} for {cache_key} (depth {self.size()})")

        if not self._running:
            self.start()
        return job.completion

    def start(self) -> None:
        """Start the dispatch loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._dispatch_loop())
        logger.info("Request queue dispatch loop started")

    async def stop(self) -> None:
        """Stop dispatching and cancel every job still queued or in flight."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        in_flight = list(self._in_flight.values())
        for _, task in in_flight:
            task.cancel()
        if in_flight:
            await asyncio.gather(*(task for _, task in in_flight), return_exceptions=True)
        for job, _ in in_flight:
            if not job.completion.done():
                job.completion.cancel()
        self._in_flight.clear()

        while self._pending:
            job = self._pending.popleft()
            if not job.completion.done():
                job.completion.cancel()

        logger.info("Request queue dispatch loop stopped")

    def is_running(self) -> bool:
        """Check if the dispatch loop is running."""
        return self._running

    async def _wait_for_slot(self) -> None:
        if self._last_dispatch is None:
            return
        delay = self._last_dispatch + self.rate_limit_seconds - self.clock.time()
        if delay > 0:
            await self.clock.sleep(delay)

    async def _dispatch_loop(self) -> None:
        """Main loop releasing the head of the queue at the rate-limit cadence."""
        try:
            while self._running:
                if not self._pending:
                    self._ready.clear()
                    await self._ready.wait()
                    continue

                await self._wait_for_slot()
                if not self._pending:
                    continue

                job = self._pending.popleft()
                if job.completion.done():
                    # Caller went away before dispatch
                    continue

                now = self.clock.time()
                self._last_dispatch = now
                job.dispatched_at = now
                self.events.emit(
                    "Queue",
                    f"Dispatching {job.id} for {job.cache_key} (attempt {job.attempts_made + 1}, depth {self.size() + 1})",
                )
                task = asyncio.create_task(self._run(job))
                self._in_flight[job.id] = (job, task)

        except asyncio.CancelledError:
            logger.debug("Request queue dispatch loop cancelled")
        finally:
            self._running = False

    async def _run(self, job: QueuedJob) -> None:
        try:
            payload = await self.executor.execute(job.url)
        except TransientUpstreamError as e:
            self._retry_or_fail(job, e)
        except Exception as e:
            self.events.emit("Queue", f"Job {job.id} for {job.cache_key} failed: {e}")
            if not job.completion.done():
                job.completion.set_exception(e)
        else:
            self.events.emit("Queue", f"Job {job.id} for {job.cache_key} completed")
            if not job.completion.done():
                job.completion.set_result(payload)
        finally:
            self._in_flight.pop(job.id, None)

    def _retry_or_fail(self, job: QueuedJob, error: TransientUpstreamError) -> None:
        if job.attempts_made >= self.max_retries:
            logger.warning(f"Giving up on {job.url} after {job.attempts_made} retries: {error}")
            self.events.emit(
                "Queue", f"Job {job.id} for {job.cache_key} failed after {job.attempts_made} retries: {error}"
            )
            failure = UpstreamUnavailable(f"Upstream unavailable for {job.url} after {job.attempts_made} retries")
            failure.__cause__ = error
            if not job.completion.done():
                job.completion.set_exception(failure)
            return

        if job.completion.done():
            return

        job.attempts_made += 1
        self._pending.appendleft(job)
        self._ready.set()
        self.events.emit(
            "Queue", f"Retrying {job.id} for {job.cache_key} ({job.attempts_made}/{self.max_retries}): {error}"
        )
