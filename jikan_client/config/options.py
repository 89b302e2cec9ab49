import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ClientOptions(BaseModel):
    """Immutable configuration snapshot shared by every pipeline component.

    Durations are in milliseconds, matching the upstream client's options.
    """
    model_config = ConfigDict(frozen=True)

    host: str = "api.jikan.moe"
    base_uri: str = "v4"
    secure: bool = True

    data_rate_limit: int = Field(default=1200, ge=0)  # 50 requests a minute
    data_expiry: int = Field(default=1000 * 60 * 60 * 24, ge=0)  # 1 day
    data_pagination_max_size: int = Field(default=25, gt=0)

    request_timeout: int = Field(default=15000, gt=0)
    request_queue_limit: int = Field(default=100, gt=0)
    max_api_error_retry: int = Field(default=5, ge=0)

    disable_caching: bool = False
    data_path: str = ".jikan"

    heartbeat_interval: int = Field(default=30000, gt=0)
    cache_backend: Literal["file", "redis", "memory"] = "file"
    redis_url: str = "redis://localhost:6379/0"

    @property
    def base_url(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}/{self.base_uri.strip('/')}"

    @classmethod
    def from_env(cls, **overrides) -> "ClientOptions":
        """Build options from JIKAN_* environment variables."""
        env = {
            "host": os.environ.get("JIKAN_HOST"),
            "base_uri": os.environ.get("JIKAN_BASE_URI"),
            "secure": os.environ.get("JIKAN_SECURE"),
            "data_rate_limit": os.environ.get("JIKAN_DATA_RATE_LIMIT"),
            "data_expiry": os.environ.get("JIKAN_DATA_EXPIRY"),
            "data_pagination_max_size": os.environ.get("JIKAN_DATA_PAGINATION_MAX_SIZE"),
            "request_timeout": os.environ.get("JIKAN_REQUEST_TIMEOUT"),
            "request_queue_limit": os.environ.get("JIKAN_REQUEST_QUEUE_LIMIT"),
            "max_api_error_retry": os.environ.get("JIKAN_MAX_API_ERROR_RETRY"),
            "disable_caching": os.environ.get("JIKAN_DISABLE_CACHING"),
            "data_path": os.environ.get("JIKAN_DATA_PATH"),
            "heartbeat_interval": os.environ.get("JIKAN_HEARTBEAT_INTERVAL"),
            "cache_backend": os.environ.get("JIKAN_CACHE_BACKEND"),
            "redis_url": os.environ.get("REDIS_URL"),
        }
        values = {k: v for k, v in env.items() if v is not None}
        values.update(overrides)
        # pydantic coerces "true"/"1200" style strings in lax mode
        return cls.model_validate(values)
