import httpx
import pytest

from jikan_client.adapters.http import HttpxHttpClient
from jikan_client.domain.errors import NotFoundError, TransientUpstreamError
from jikan_client.domain.events import DebugEvents
from jikan_client.domain.transport import RetryingTransport


def jikan_like_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/v4/anime/5":
        return httpx.Response(200, json={"data": {"mal_id": 5}})
    if request.url.path == "/v4/broken":
        return httpx.Response(500, json={"error": "Internal"})
    if request.url.path == "/v4/offline":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404, json={"error": "Not Found"})


@pytest.fixture
def http_client():
    return HttpxHttpClient(transport=httpx.MockTransport(jikan_like_handler))


@pytest.mark.asyncio
async def test_get_returns_httpx_response(http_client):
    response = await http_client.get("https://api.jikan.moe/v4/anime/5")

    assert response.status_code == 200
    assert response.json() == {"data": {"mal_id": 5}}
    assert response.request.headers["Accept"] == "application/json"
    await http_client.close()


@pytest.mark.asyncio
async def test_transport_classifies_real_httpx_responses(http_client):
    transport = RetryingTransport(http_client, request_timeout_ms=1000, events=DebugEvents())

    assert await transport.execute("https://api.jikan.moe/v4/anime/5") == {"data": {"mal_id": 5}}
    with pytest.raises(TransientUpstreamError):
        await transport.execute("https://api.jikan.moe/v4/broken")
    with pytest.raises(TransientUpstreamError):
        await transport.execute("https://api.jikan.moe/v4/offline")
    with pytest.raises(NotFoundError):
        await transport.execute("https://api.jikan.moe/v4/anime/0")

    await http_client.close()
