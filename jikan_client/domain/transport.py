import asyncio
import logging
from typing import Any

import httpx

from jikan_client.domain.errors import ClientError, NotFoundError, TransientUpstreamError
from jikan_client.domain.events import DebugEvents
from jikan_client.domain.protocols import HttpClient

logger = logging.getLogger(__name__)


class RetryingTransport:
    """Performs one upstream attempt and classifies the outcome.

    Transient failures (5xx, timeouts, network errors) raise
    TransientUpstreamError so the request queue can decide whether to retry.
    4xx responses raise ClientError and are never retried.
    """

    def __init__(self, http_client: HttpClient, request_timeout_ms: int, events: DebugEvents):
        self.http_client = http_client
        self.timeout_seconds = request_timeout_ms / 1000
        self.events = events

    async def execute(self, url: str) -> Any:
        self.events.emit("Transport", f"GET {url}")
        try:
            response = await asyncio.wait_for(self.http_client.get(url), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self.events.emit("Transport", f"Timed out after {self.timeout_seconds}s: {url}")
            raise TransientUpstreamError(f"Request timed out: {url}") from e
        except (httpx.RequestError, OSError) as e:
            # OSError covers ConnectionError and socket failures from non-httpx clients
            self.events.emit("Transport", f"Network error for {url}: {e}")
            raise TransientUpstreamError(f"Network error for {url}: {e}") from e

        status = response.status_code
        if status >= 500:
            logger.warning(f"Upstream server error {status} for {url}")
            self.events.emit("Transport", f"HTTP {status} (transient): {url}")
            raise TransientUpstreamError(f"Upstream server error {status}: {url}")

        if status == 404:
            self.events.emit("Transport", f"HTTP 404 (not found): {url}")
            raise NotFoundError(status, url)

        if status >= 400:
            self.events.emit("Transport", f"HTTP {status} (client error): {url}")
            raise ClientError(status, url)

        if status < 200 or status >= 300:
            # Redirects are followed by the adapter, anything else here is unexpected
            self.events.emit("Transport", f"HTTP {status} (unexpected): {url}")
            raise TransientUpstreamError(f"Unexpected status {status}: {url}")

        try:
            payload = response.json()
        except ValueError as e:
            self.events.emit("Transport", f"Undecodable body: {url}")
            raise TransientUpstreamError(f"Invalid JSON from {url}") from e

        self.events.emit("Transport", f"HTTP {status}: {url}")
        return payload
