from typing import Optional

from jikan_client.adapters.cache import FileCacheStore, InMemoryCacheStore, RedisCacheStore
from jikan_client.adapters.http import HttpxHttpClient
from jikan_client.client import JikanClient
from jikan_client.config.options import ClientOptions
from jikan_client.domain.clock import SystemClock
from jikan_client.domain.protocols import CacheStore, Clock


def create_cache_store(options: ClientOptions, clock: Optional[Clock] = None) -> CacheStore:
    """Create the cache backend selected by ``options.cache_backend``."""
    clock = clock or SystemClock()

    if options.cache_backend == "redis":
        return RedisCacheStore(expiry_ms=options.data_expiry, redis_url=options.redis_url, clock=clock)
    if options.cache_backend == "memory":
        return InMemoryCacheStore(expiry_ms=options.data_expiry, clock=clock)
    return FileCacheStore(data_path=options.data_path, expiry_ms=options.data_expiry, clock=clock)


def create_http_client(options: ClientOptions) -> HttpxHttpClient:
    """Create an httpx-backed client honouring the request timeout."""
    return HttpxHttpClient(timeout_seconds=options.request_timeout / 1000)


def create_client(options: Optional[ClientOptions] = None, clock: Optional[Clock] = None) -> JikanClient:
    """Create a JikanClient with real implementations for production use."""
    options = options or ClientOptions.from_env()
    clock = clock or SystemClock()

    return JikanClient(
        options=options,
        http_client=create_http_client(options),
        cache=create_cache_store(options, clock),
        clock=clock,
    )
