# ABOUTME: Cache store interface with a process-local (cachetools) and a Redis implementation
# ABOUTME: Values are plain JSON-compatible data so both backends behave identically

import json
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import redis
from cachetools import TLRUCache


class CacheStore(ABC):
    """Read/write cache with a per-entry TTL; a miss reads as None"""

    name = 'cache'

    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired"""

    @abstractmethod
    def write(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` for ``ttl`` seconds"""

    def get_store_info(self) -> dict[str, Any]:
        return {'name': self.name, 'description': self.__doc__ or self.name}


def _expires_at(_key: str, entry: tuple[Any, float], now: float) -> float:
    return now + entry[1]


class MemoryCacheStore(CacheStore):
    """Process-local cache for tests, offline use and single-process deployments"""

    name = 'memory'

    def __init__(
        self, maxsize: int = 1024, timer: Callable[[], float] = time.monotonic
    ) -> None:
        self._cache: TLRUCache[str, tuple[Any, float]] = TLRUCache(
            maxsize=maxsize, ttu=_expires_at, timer=timer
        )
        # cachetools caches are not thread-safe
        self._lock = threading.Lock()

    def read(self, key: str) -> Any | None:
        with self._lock:
            entry = self._cache.get(key)
        return entry[0] if entry is not None else None

    def write(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._cache[key] = (value, ttl)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_store_info(self) -> dict[str, Any]:
        return {
            **super().get_store_info(),
            'size': len(self),
            'max_size': self._cache.maxsize,
        }


class RedisCacheStore(CacheStore):
    """Shared cache in Redis; values are stored as JSON with SETEX"""

    name = 'redis'

    def __init__(self, client: Any) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> 'RedisCacheStore':
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def read(self, key: str) -> Any | None:
        try:
            raw = self.client.get(key)
        except redis.exceptions.RedisError as e:
            print(f'⚠️  Redis read failed for {key}, treating as a miss: {e}')
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            print(f'⚠️  Discarding undecodable cache entry {key}')
            self._discard(key)
            return None

    def write(self, key: str, value: Any, ttl: float) -> None:
        try:
            self.client.setex(key, max(1, int(ttl)), json.dumps(value))
        except redis.exceptions.RedisError as e:
            print(f'⚠️  Redis write failed for {key}, entry dropped: {e}')

    def _discard(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.exceptions.RedisError as e:
            print(f'⚠️  Redis delete failed for {key}: {e}')


def create_cache_store(redis_url: str | None = None) -> CacheStore:
    """Redis when a URL is configured, otherwise the in-process store"""
    if redis_url:
        print('🗄️  REDIS_URL found - using shared Redis cache')
        return RedisCacheStore.from_url(redis_url)
    print('🗄️  No REDIS_URL - using in-process cache')
    return MemoryCacheStore()
