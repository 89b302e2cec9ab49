import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from jikan_client.config.options import ClientOptions
from jikan_client.domain.clock import SystemClock
from jikan_client.domain.events import DebugEvents
from jikan_client.domain.heartbeat import HeartBeatMonitor
from jikan_client.domain.pipeline import RequestPipeline
from jikan_client.domain.protocols import CacheStore, Clock, DebugListener, HttpClient
from jikan_client.domain.request_queue import RequestQueue
from jikan_client.domain.transport import RetryingTransport

logger = logging.getLogger(__name__)


def encode_query(query: Optional[Dict[str, Any]]) -> str:
    """Stable query string: None values dropped, keys sorted, booleans lowercased."""
    if not query:
        return ""
    params = []
    for key in sorted(query):
        value = query[key]
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params.append((key, value))
    return urlencode(params)


class JikanClient:
    """Entry point wiring the request pipeline for one set of options.

    Every collaborator is passed in explicitly; use
    ``jikan_client.factories.create_client`` for production wiring.
    """

    def __init__(
        self,
        options: ClientOptions,
        http_client: HttpClient,
        cache: CacheStore,
        clock: Optional[Clock] = None,
    ):
        self.options = options
        self.http_client = http_client
        self.cache = cache
        self.clock = clock or SystemClock()
        self.events = DebugEvents()

        self.transport = RetryingTransport(
            http_client=http_client,
            request_timeout_ms=options.request_timeout,
            events=self.events,
        )
        self.queue = RequestQueue(
            executor=self.transport,
            rate_limit_ms=options.data_rate_limit,
            queue_limit=options.request_queue_limit,
            max_retries=options.max_api_error_retry,
            events=self.events,
            clock=self.clock,
        )
        self.heartbeat = HeartBeatMonitor(
            url=options.base_url,
            http_client=http_client,
            events=self.events,
            check_interval_seconds=options.heartbeat_interval / 1000,
            timeout_seconds=options.request_timeout / 1000,
            clock=self.clock,
        )
        self.pipeline = RequestPipeline(
            cache=cache,
            queue=self.queue,
            options=options,
            events=self.events,
            heartbeat=self.heartbeat,
        )

    def on(self, listener: DebugListener) -> "JikanClient":
        """Listen to debug events, e.g. ``client.on(print)``."""
        self.events.subscribe(listener)
        return self

    def once(self, listener: DebugListener) -> "JikanClient":
        """Listen to the next debug event only."""
        self.events.once(listener)
        return self

    def cache_key(self, path: str, query: Optional[Dict[str, Any]] = None) -> str:
        key = path.strip("/")
        query_string = encode_query(query)
        return f"{key}?{query_string}" if query_string else key

    def build_url(self, path: str, query: Optional[Dict[str, Any]] = None) -> str:
        url = f"{self.options.base_url}/{path.strip('/')}"
        query_string = encode_query(query)
        return f"{url}?{query_string}" if query_string else url

    async def request(self, path: str, query: Optional[Dict[str, Any]] = None) -> Any:
        """GET a resource path such as ``anime/5`` through the pipeline."""
        return await self.pipeline.fetch(self.cache_key(path, query), self.build_url(path, query))

    async def request_paginated(
        self,
        path: str,
        offset: int = 0,
        max_count: Optional[int] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> List[Any]:
        """GET ``max_count`` items starting at ``offset`` of a paginated listing."""
        page_query = dict(query or {})
        page_query["limit"] = self.options.data_pagination_max_size
        url = self.build_url(path, page_query)
        # Braces would be escaped by urlencode, so the placeholder goes on last
        url_template = url.replace("{", "{{").replace("}", "}}") + "&page={page}"
        return await self.pipeline.fetch_paginated(
            self.cache_key(path, page_query), url_template, offset, max_count
        )

    async def start(self) -> None:
        """Start heartbeat polling and the dispatch loop."""
        await self.heartbeat.start()
        self.queue.start()
        logger.info(f"Jikan client started for {self.options.base_url}")

    async def close(self) -> None:
        await self.heartbeat.stop()
        await self.queue.stop()
        for resource in (self.http_client, self.cache):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        logger.info("Jikan client closed")

    async def __aenter__(self) -> "JikanClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
