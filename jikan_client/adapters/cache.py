import asyncio
import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from jikan_client.domain.clock import SystemClock
from jikan_client.domain.errors import CacheMiss
from jikan_client.domain.models import CacheEntry
from jikan_client.domain.protocols import Clock

logger = logging.getLogger(__name__)


class FileCacheStore:
    """Disk cache keeping one JSON file per key under ``data_path``.

    Expiry is checked lazily on read. Files that cannot be read or parsed
    are reported as misses and overwritten by the next ``set``.
    """

    def __init__(self, data_path: str, expiry_ms: int, clock: Optional[Clock] = None):
        self.data_path = Path(data_path)
        self.expiry_seconds = expiry_ms / 1000
        self.clock = clock or SystemClock()

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.data_path / f"{digest}.json"

    def _read_entry(self, key: str) -> CacheEntry:
        path = self._path_for(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise CacheMiss(key) from e
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unreadable cache file {path} for {key}: {e}")
            raise CacheMiss(key) from e

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Corrupted cache file {path} for {key}: {e}")
            raise CacheMiss(key) from e

        if entry.key != key:
            # Hash collision or a file copied from elsewhere
            raise CacheMiss(key)
        if entry.is_stale(self.clock.time(), self.expiry_seconds):
            raise CacheMiss(key)
        return entry

    async def get(self, key: str) -> Optional[Any]:
        """Get a fresh cached payload, or None when absent, stale or unreadable."""
        try:
            entry = await asyncio.to_thread(self._read_entry, key)
        except CacheMiss:
            return None
        return entry.payload

    def _write_entry(self, entry: CacheEntry, path: Path) -> None:
        self.data_path.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_path, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(entry.model_dump_json())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def set(self, key: str, payload: Any) -> None:
        """Write the payload atomically, replacing any previous entry."""
        entry = CacheEntry(key=key, payload=payload, stored_at=self.clock.time())
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write_entry, entry, path)
            logger.debug(f"Cached {key} at {path}")
        except OSError as e:
            logger.error(f"Failed to write cache file {path} for {key}: {e}")

    async def clear(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove cache file {path} for {key}: {e}")


class RedisCacheStore:
    """Redis cache for upstream payloads."""

    def __init__(
        self,
        expiry_ms: int,
        redis_url: str = "redis://localhost:6379/0",
        clock: Optional[Clock] = None,
        redis_client=None,
        prefix: str = "jikan:cache:",
    ):
        self.redis = redis_client or redis.from_url(redis_url, decode_responses=True)
        self.expiry_ms = expiry_ms
        self.clock = clock or SystemClock()
        self.prefix = prefix

    async def get(self, key: str) -> Optional[Any]:
        """Get cached payload, treating stale or broken entries as a miss."""
        try:
            data = await self.redis.get(self.prefix + key)
            if data is None:
                return None
            entry = CacheEntry.model_validate_json(data)
        except ValidationError as e:
            logger.warning(f"Corrupted redis cache entry for {key}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Redis cache read failed for {key}: {e}")
            return None

        if entry.is_stale(self.clock.time(), self.expiry_ms / 1000):
            return None
        return entry.payload

    async def set(self, key: str, payload: Any) -> None:
        """Set payload in redis. The PX expiry only sweeps; reads check age themselves."""
        entry = CacheEntry(key=key, payload=payload, stored_at=self.clock.time())
        try:
            if self.expiry_ms > 0:
                await self.redis.set(self.prefix + key, entry.model_dump_json(), px=self.expiry_ms)
            else:
                await self.redis.set(self.prefix + key, entry.model_dump_json())
        except Exception as e:
            logger.error(f"Redis cache write failed for {key}: {e}")

    async def clear(self, key: str) -> None:
        try:
            await self.redis.delete(self.prefix + key)
        except Exception as e:
            logger.error(f"Redis cache delete failed for {key}: {e}")

    async def close(self):
        """Close the redis connection."""
        await self.redis.aclose()


class InMemoryCacheStore:
    """In-memory cache for payloads. Not persistent across restarts."""

    def __init__(self, expiry_ms: int, clock: Optional[Clock] = None):
        self.expiry_seconds = expiry_ms / 1000
        self.clock = clock or SystemClock()
        self.entries: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self.entries.get(key)
        if entry is None or entry.is_stale(self.clock.time(), self.expiry_seconds):
            return None
        return entry.payload

    async def set(self, key: str, payload: Any) -> None:
        self.entries[key] = CacheEntry(key=key, payload=payload, stored_at=self.clock.time())

    async def clear(self, key: str) -> None:
        self.entries.pop(key, None)
