# Custom exceptions
class JikanError(Exception):
    """Base class for every error raised by the request pipeline."""
    pass


class CacheMiss(JikanError):
    """Raised internally when a cache entry is absent, stale or unreadable."""
    pass


class QueueLimitExceeded(JikanError):
    """Raised when the request queue is already at capacity."""
    pass


class ClientError(JikanError):
    """Raised when upstream answers with a 4xx status. Never retried."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"Upstream returned HTTP {status_code} for {url}")
        self.status_code = status_code
        self.url = url


class NotFoundError(ClientError):
    """Raised when upstream answers with 404."""
    pass


class TransientUpstreamError(JikanError):
    """Raised for 5xx responses, timeouts and network failures."""
    pass


class UpstreamUnavailable(JikanError):
    """Raised when a request exhausted its retry budget."""
    pass


class UpstreamDown(JikanError):
    """Raised when the heartbeat monitor reports upstream as down."""
    pass
