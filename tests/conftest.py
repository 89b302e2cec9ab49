import asyncio
from typing import Any, Callable, List, Optional, Tuple

import pytest

from jikan_client.config.options import ClientOptions
from jikan_client.domain.events import DebugEvents


class FakeClock:
    """Clock whose sleeps advance simulated time instead of waiting."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        # Let already scheduled tasks run at the current time first
        await asyncio.sleep(0)
        self.now += seconds


class MockResponse:
    INVALID_JSON = object()

    def __init__(self, status_code: int, json_data: Any = None):
        self.status_code = status_code
        self._json_data = json_data

    def json(self):
        if self._json_data is MockResponse.INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json_data


class MockHttpClient:
    """Records every GET and answers through a handler function.

    When ``gate`` is set, each call blocks until the event is set.
    """

    def __init__(
        self,
        handler: Optional[Callable[[str], MockResponse]] = None,
        clock: Optional[FakeClock] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.handler = handler or (lambda url: MockResponse(200, {"data": {"url": url}}))
        self.clock = clock
        self.gate = gate
        self.calls: List[Tuple[str, Optional[float]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def urls(self) -> List[str]:
        return [url for url, _ in self.calls]

    async def get(self, url: str):
        self.calls.append((url, self.clock.time() if self.clock else None))
        if self.gate is not None:
            await self.gate.wait()
        return self.handler(url)


class RecordingListener:
    def __init__(self):
        self.events: List[Tuple[str, str]] = []

    def __call__(self, scope: str, message: str) -> None:
        self.events.append((scope, message))

    def messages(self, scope: str) -> List[str]:
        return [message for s, message in self.events if s == scope]


@pytest.fixture
def clock():
    """Create a fake clock for deterministic timing"""
    return FakeClock()


@pytest.fixture
def recorder():
    return RecordingListener()


@pytest.fixture
def events(recorder):
    """Create a debug event channel with a recording listener attached"""
    channel = DebugEvents()
    channel.subscribe(recorder)
    return channel


@pytest.fixture
def options_factory():
    """Fixture that returns a ClientOptions factory with test-friendly defaults"""
    def create_options(**overrides) -> ClientOptions:
        values = {
            "data_rate_limit": 1200,
            "data_expiry": 60_000,
            "data_pagination_max_size": 25,
            "request_timeout": 1000,
            "request_queue_limit": 10,
            "max_api_error_retry": 3,
            "cache_backend": "memory",
        }
        values.update(overrides)
        return ClientOptions(**values)

    return create_options
