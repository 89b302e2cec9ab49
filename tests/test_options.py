import pytest
from pydantic import ValidationError

from jikan_client.config.options import ClientOptions


def test_defaults_match_upstream_client():
    options = ClientOptions()

    assert options.base_url == "https://api.jikan.moe/v4"
    assert options.data_rate_limit == 1200
    assert options.data_expiry == 86_400_000
    assert options.data_pagination_max_size == 25
    assert options.request_timeout == 15000
    assert options.request_queue_limit == 100
    assert options.max_api_error_retry == 5
    assert options.disable_caching is False


def test_options_are_immutable():
    options = ClientOptions()

    with pytest.raises(ValidationError):
        options.data_rate_limit = 0


def test_insecure_base_url():
    assert ClientOptions(secure=False, host="localhost", base_uri="/v4/").base_url == "http://localhost/v4"


@pytest.mark.parametrize("field", ["request_queue_limit", "data_pagination_max_size", "request_timeout"])
def test_rejects_non_positive_limits(field):
    with pytest.raises(ValidationError) as exc_info:
        ClientOptions(**{field: 0})

    assert field in str(exc_info.value)


def test_from_env_reads_jikan_variables(monkeypatch):
    monkeypatch.setenv("JIKAN_HOST", "jikan.local")
    monkeypatch.setenv("JIKAN_SECURE", "false")
    monkeypatch.setenv("JIKAN_DATA_RATE_LIMIT", "500")
    monkeypatch.setenv("JIKAN_DISABLE_CACHING", "true")
    monkeypatch.setenv("JIKAN_CACHE_BACKEND", "redis")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")

    options = ClientOptions.from_env(request_queue_limit=7)

    assert options.base_url == "http://jikan.local/v4"
    assert options.data_rate_limit == 500
    assert options.disable_caching is True
    assert options.cache_backend == "redis"
    assert options.redis_url == "redis://cache:6379/1"
    assert options.request_queue_limit == 7
