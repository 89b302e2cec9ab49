import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class CacheEntry(BaseModel):
    """A cached upstream payload - what gets persisted by a cache store"""
    model_config = ConfigDict(frozen=True)

    key: str
    payload: Any
    stored_at: float

    def is_stale(self, now: float, expiry_seconds: float) -> bool:
        return now - self.stored_at > expiry_seconds


class HeartBeatStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    down: bool
    last_checked: Optional[float] = None


@dataclass
class QueuedJob:
    """One logical fetch waiting in (or dispatched from) the request queue."""

    id: str
    url: str
    cache_key: str
    enqueued_at: float
    completion: asyncio.Future
    attempts_made: int = 0
    dispatched_at: Optional[float] = field(default=None)
