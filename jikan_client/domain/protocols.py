from typing import Any, Callable, Optional, Protocol


class HttpResponse(Protocol):
    status_code: int

    def json(self) -> Any:
        """Parse the response as JSON."""
        ...


class HttpClient(Protocol):
    async def get(self, url: str) -> HttpResponse:
        """Make an HTTP GET request."""
        ...


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        """Get a fresh cached payload, or None on a miss."""
        ...

    async def set(self, key: str, payload: Any) -> None:
        """Store a payload, overwriting any previous value."""
        ...

    async def clear(self, key: str) -> None:
        """Remove a cached payload."""
        ...


class Clock(Protocol):
    def time(self) -> float:
        """Current time in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend for the given number of seconds."""
        ...


class JobExecutor(Protocol):
    async def execute(self, url: str) -> Any:
        """Perform a single upstream attempt for a URL."""
        ...


DebugListener = Callable[[str, str], None]
