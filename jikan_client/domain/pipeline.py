import asyncio
import logging
from typing import Any, List, Optional

from jikan_client.config.options import ClientOptions
from jikan_client.domain.errors import QueueLimitExceeded, UpstreamDown
from jikan_client.domain.events import DebugEvents
from jikan_client.domain.heartbeat import HeartBeatMonitor
from jikan_client.domain.protocols import CacheStore
from jikan_client.domain.request_queue import RequestQueue

logger = logging.getLogger(__name__)


def page_items(payload: Any) -> List[Any]:
    """Items of one upstream page, either ``{"data": [...]}`` or a bare list."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    if isinstance(payload, list):
        return payload
    raise ValueError(f"Unexpected page payload of type {type(payload).__name__}")


def page_range(offset: int, max_count: int, page_size: int) -> range:
    """1-based upstream page numbers covering ``[offset, offset + max_count)``."""
    first_page = offset // page_size + 1
    last_page = (offset + max_count - 1) // page_size + 1
    return range(first_page, last_page + 1)


class RequestPipeline:
    def __init__(
        self,
        cache: CacheStore,
        queue: RequestQueue,
        options: ClientOptions,
        events: DebugEvents,
        heartbeat: Optional[HeartBeatMonitor] = None,
    ):
        self.cache = cache
        self.queue = queue
        self.options = options
        self.events = events
        self.heartbeat = heartbeat

    async def _cached(self, cache_key: str) -> Optional[Any]:
        if self.options.disable_caching:
            return None
        cached = await self.cache.get(cache_key)
        self.events.emit("Cache", f"{'Hit' if cached is not None else 'Miss'}: {cache_key}")
        return cached

    def _submit(self, cache_key: str, url: str) -> asyncio.Future:
        """Queue an upstream request unless the heartbeat reports upstream down."""
        if self.heartbeat is not None and self.heartbeat.status.down:
            self.events.emit("Pipeline", f"Upstream is down, not queueing {cache_key}")
            raise UpstreamDown(f"Upstream is down, refusing to request {url}")
        return self.queue.enqueue(url, cache_key)

    async def _complete(self, cache_key: str, completion: asyncio.Future) -> Any:
        payload = await completion
        if not self.options.disable_caching:
            await self.cache.set(cache_key, payload)
        return payload

    async def fetch(self, cache_key: str, url: str) -> Any:
        """
        Return the payload for a cache key, from cache when fresh, otherwise
        through the rate-limited queue. Fresh payloads are written to the
        cache before returning.
        """
        cached = await self._cached(cache_key)
        if cached is not None:
            return cached
        return await self._complete(cache_key, self._submit(cache_key, url))

    async def fetch_paginated(
        self,
        cache_key_prefix: str,
        url_template: str,
        offset: int = 0,
        max_count: Optional[int] = None,
    ) -> List[Any]:
        """Fetch the items ``[offset, offset + max_count)`` of a paginated resource.

        ``url_template`` must contain a ``{page}`` placeholder. Pages are
        cached one by one under ``<cache_key_prefix>:page=<n>``. Missing pages
        are queued together, and only when the queue has room for all of them;
        otherwise QueueLimitExceeded is raised before anything is queued.
        """
        page_size = self.options.data_pagination_max_size
        if max_count is None:
            max_count = page_size
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        if max_count <= 0:
            return []

        pages = page_range(offset, max_count, page_size)
        logger.debug(f"Fetching pages {pages.start}..{pages.stop - 1} for {cache_key_prefix}")

        keys = {page: f"{cache_key_prefix}:page={page}" for page in pages}
        payloads = {}
        for page in pages:
            cached = await self._cached(keys[page])
            if cached is not None:
                payloads[page] = cached
        missing = [page for page in pages if page not in payloads]

        free = self.queue.queue_limit - self.queue.size()
        if len(missing) > free:
            self.events.emit(
                "Pipeline", f"Rejected {cache_key_prefix}: {len(missing)} pages needed, {free} queue slots free"
            )
            raise QueueLimitExceeded(
                f"{len(missing)} pages of {cache_key_prefix} do not fit in the request queue ({free} slots free)"
            )

        # No await between the capacity check and the last enqueue
        completions = {page: self._submit(keys[page], url_template.format(page=page)) for page in missing}

        # gather keeps argument order, whatever order the pages complete in
        fetched = await asyncio.gather(*(self._complete(keys[page], completions[page]) for page in missing))
        payloads.update(zip(missing, fetched))

        items: List[Any] = []
        for page in pages:
            items.extend(page_items(payloads[page]))

        start = offset - (pages.start - 1) * page_size
        return items[start:start + max_count]
