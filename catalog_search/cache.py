"""Key/value cache for slow-changing lookups (exchange rates, brand options).

Redis is preferred; when it cannot be reached an in-process TTL store is used.
Filter results are never cached: every pipeline pass is recomputed.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "catalog:"


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: int) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass
class RedisCache:
    client: redis.Redis
    prefix: str = KEY_PREFIX

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self.client.get(self.prefix + key)
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis get failed for %s: %s", key, exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable cache entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            self.client.setex(self.prefix + key, ttl, json.dumps(value))
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis set failed for %s: %s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self.prefix + key)
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis delete failed for %s: %s", key, exc)


class InMemoryCache:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._store: Dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._store.get(key)
            if not value:
                return None
            expires_at, payload = value
            if expires_at < self._clock():
                self._store.pop(key, None)
                return None
            return payload

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._store[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _cache
    if _cache is not None:
        return _cache
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", settings.redis_host, settings.redis_port)
        _cache = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        _cache = InMemoryCache()
    return _cache


def set_cache(backend: CacheBackend | None) -> None:
    """Swap the process-wide backend; ``None`` forces re-detection."""
    global _cache
    _cache = backend
