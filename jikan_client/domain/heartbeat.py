import asyncio
import logging
from typing import Any, Callable, List, Optional

from jikan_client.domain.clock import SystemClock
from jikan_client.domain.events import DebugEvents
from jikan_client.domain.models import HeartBeatStatus
from jikan_client.domain.protocols import Clock, HttpClient

logger = logging.getLogger(__name__)

HeartBeatListener = Callable[[HeartBeatStatus], None]


def is_reported_down(data: Any) -> bool:
    """Read the ``myanimelist_heartbeat.down`` flag from the API root document."""
    if not isinstance(data, dict):
        return False
    heartbeat = data.get("myanimelist_heartbeat")
    if not isinstance(heartbeat, dict):
        return False
    return bool(heartbeat.get("down", False))


class HeartBeatMonitor:
    """Background service that periodically checks whether upstream is up.

    Probes go straight to the HTTP client and never through the request
    queue, so availability is still tracked while the queue is saturated.
    """

    def __init__(
        self,
        url: str,
        http_client: HttpClient,
        events: DebugEvents,
        check_interval_seconds: float = 30.0,
        timeout_seconds: float = 15.0,
        clock: Optional[Clock] = None,
    ):
        self.url = url
        self.http_client = http_client
        self.events = events
        self.check_interval_seconds = check_interval_seconds
        self.timeout_seconds = timeout_seconds
        self.clock = clock or SystemClock()
        self._status = HeartBeatStatus(down=False)
        self._listeners: List[HeartBeatListener] = []
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def status(self) -> HeartBeatStatus:
        """Last known status, without making HTTP calls."""
        return self._status

    def subscribe(self, listener: HeartBeatListener) -> Callable[[], None]:
        """Get notified on every up/down transition."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self):
        """Start the background health monitoring."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._monitor_health())

    async def stop(self):
        """Stop the background health monitoring."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def is_running(self) -> bool:
        return self._running

    async def check(self) -> HeartBeatStatus:
        """Probe upstream now and record the result."""
        down = await self._probe()
        status = HeartBeatStatus(down=down, last_checked=self.clock.time())
        previous = self._status
        self._status = status

        if previous.down != status.down:
            self._notify(status)
        return status

    async def _probe(self) -> bool:
        try:
            response = await asyncio.wait_for(self.http_client.get(self.url), timeout=self.timeout_seconds)
            if not 200 <= response.status_code < 300:
                logger.warning(f"Heartbeat probe to {self.url} returned {response.status_code}")
                return True
            data = response.json()
        except Exception as e:
            # An unreachable upstream is a down upstream
            logger.warning(f"Heartbeat probe to {self.url} failed: {e}")
            return True
        return is_reported_down(data)

    def _notify(self, status: HeartBeatStatus) -> None:
        state = "down" if status.down else "up"
        logger.info(f"Upstream is {state}")
        self.events.emit("HeartBeat", f"Upstream is {state}")
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error(f"Heartbeat listener {listener!r} failed: {e}")

    async def _monitor_health(self):
        """Background task that periodically checks upstream health."""
        while self._running:
            try:
                await self.check()
                await self.clock.sleep(self.check_interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in heartbeat loop: {e}")
                await self.clock.sleep(self.check_interval_seconds)
