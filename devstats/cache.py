"""
Stats cache.
- MemoryBackend: process-local TTL store (default)
- RedisBackend: shared store for multi-worker deployments
- StatsCache: fail-safe wrapper; any backend or serialization failure is a miss
"""
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

logger = logging.getLogger(__name__)

KEY_PATTERN = "*:stats:*"


def stats_key(platform: str, username: str) -> str:
    return f"{platform}:stats:{username}"


class CacheBackend(Protocol):
    name: str

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: int) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


# ---------------------------------------------------
# BACKENDS
# ---------------------------------------------------

class MemoryBackend:
    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            rec = self._data.get(key)
            if not rec:
                return None
            val, exp = rec
            if self._clock() >= exp:
                del self._data[key]
                return None
            return val

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            now = self._clock()
            for stale in [k for k, (_, exp) in self._data.items() if now >= exp]:
                del self._data[stale]
            self._data[key] = (value, now + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class RedisBackend:
    name = "redis"

    def __init__(self, client: "redis.Redis"):
        self._client = client

    @classmethod
    def from_url(cls, url: str, timeout: float = 1.0) -> "RedisBackend":
        return cls(redis.Redis.from_url(url, socket_timeout=timeout, socket_connect_timeout=timeout))

    def get(self, key: str) -> Optional[str]:
        data = self._client.get(key)
        if data is None:
            return None
        return data.decode("utf-8") if isinstance(data, bytes) else data

    def set(self, key: str, value: str, ttl: int) -> None:
        self._client.setex(key, ttl, value)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def clear(self) -> None:
        keys = list(self._client.scan_iter(match=KEY_PATTERN))
        if keys:
            self._client.delete(*keys)


# ---------------------------------------------------
# FAIL-SAFE WRAPPER
# ---------------------------------------------------

class StatsCache:
    """JSON record cache that never raises into the request path."""

    def __init__(self, backend: Optional[CacheBackend], ttl: int = 300):
        self.backend = backend
        self.ttl = ttl

    @property
    def name(self) -> str:
        return self.backend.name if self.backend is not None else "disabled"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        if self.backend is None:
            return None
        try:
            raw = self.backend.get(key)
        except (redis.RedisError, OSError, UnicodeDecodeError) as exc:
            logger.warning("Cache get failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        if self.backend is None:
            return False
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.warning("Cache set skipped for %s, value not serializable: %s", key, exc)
            return False
        try:
            self.backend.set(key, payload, ttl if ttl is not None else self.ttl)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Cache set failed for %s: %s", key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        if self.backend is None:
            return False
        try:
            self.backend.delete(key)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Cache delete failed for %s: %s", key, exc)
            return False
        return True

    def clear(self) -> bool:
        if self.backend is None:
            return False
        try:
            self.backend.clear()
        except (redis.RedisError, OSError) as exc:
            logger.warning("Cache clear failed: %s", exc)
            return False
        return True


def build_cache(settings) -> StatsCache:
    if settings.cache_backend == "none":
        logger.info("Stats cache disabled")
        return StatsCache(None, settings.cache_ttl)
    if settings.cache_backend == "redis":
        try:
            backend = RedisBackend.from_url(settings.redis_url)
        except (redis.RedisError, ValueError) as exc:
            logger.warning("Redis not available (%s), running without cache", exc)
            return StatsCache(None, settings.cache_ttl)
        return StatsCache(backend, settings.cache_ttl)
    return StatsCache(MemoryBackend(), settings.cache_ttl)
