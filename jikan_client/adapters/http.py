import logging

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "jikan-client (+https://github.com/jikan-me/jikan)"


class HttpxHttpClient:
    """HTTP client adapter for httpx with connection pooling."""

    def __init__(self, timeout_seconds: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        self.client = httpx.AsyncClient(
            timeout=timeout_seconds,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
            follow_redirects=True,
        )

    async def get(self, url: str) -> httpx.Response:
        """Make an HTTP GET request."""
        try:
            logger.debug(f"Making GET request to {url}")
            response = await self.client.get(url)
            logger.debug(f"GET request to {url} completed with status {response.status_code}")
            return response
        except httpx.TimeoutException as e:
            logger.error(f"Timeout for GET request to {url}: {e}")
            raise
        except httpx.RequestError as e:
            logger.error(f"Request error for GET request to {url}: {e}")
            raise

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
