import pytest

from jikan_client.adapters.cache import FileCacheStore, InMemoryCacheStore, RedisCacheStore
from jikan_client.adapters.http import HttpxHttpClient
from jikan_client.client import JikanClient
from jikan_client.config.options import ClientOptions
from jikan_client.factories import create_cache_store, create_client


def test_default_cache_backend_is_file(tmp_path):
    store = create_cache_store(ClientOptions(data_path=str(tmp_path)))

    assert isinstance(store, FileCacheStore)
    assert store.expiry_seconds == 86_400


def test_memory_cache_backend():
    assert isinstance(create_cache_store(ClientOptions(cache_backend="memory")), InMemoryCacheStore)


def test_redis_cache_backend():
    store = create_cache_store(ClientOptions(cache_backend="redis", redis_url="redis://cache:6379/2"))

    assert isinstance(store, RedisCacheStore)


@pytest.mark.asyncio
async def test_create_client_wires_production_adapters(tmp_path):
    client = create_client(ClientOptions(data_path=str(tmp_path), request_timeout=5000))

    assert isinstance(client, JikanClient)
    assert isinstance(client.http_client, HttpxHttpClient)
    assert client.transport.timeout_seconds == 5.0
    assert client.heartbeat.url == "https://api.jikan.moe/v4"

    await client.close()
