"""Cache stores used by the repository cache wrapper.

Provides an abstract store and two implementations:
- MemoryCacheStore: in-process dict, for development and tests
- RedisCacheStore: shared cache through redis-py

Stores keep "no entry" apart from "cached None": ``remember`` only calls the
producer on a miss, and a cached ``None`` is a hit.
"""

import logging
import pickle
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

_MISSING = object()


class CacheStore(ABC):
    """Key/value store with per-entry TTL in seconds.

    A ``ttl`` of None keeps the entry until it is forgotten or flushed; a
    ``ttl`` of zero or less does not store it at all.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def has(self, key: str) -> bool:
        pass

    @abstractmethod
    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        pass

    @abstractmethod
    def forget(self, key: str) -> bool:
        """Remove one entry; returns whether it existed."""
        pass

    @abstractmethod
    def flush(self) -> None:
        """Remove every entry owned by this store."""
        pass

    def remember(self, key: str, ttl: Optional[int], producer: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            logger.debug(f"Cache hit: {key}")
            return value
        logger.debug(f"Cache miss: {key}")
        value = producer()
        self.put(key, value, ttl)
        return value


class MemoryCacheStore(CacheStore):
    """In-process cache. Expired entries are dropped when read.

    Values are pickled on write and unpickled on read, as in
    ``RedisCacheStore``: callers get a copy, so mutating a cached record
    does not change the stored entry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        payload, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return _MISSING
        return payload

    def get(self, key: str, default: Any = None) -> Any:
        payload = self._lookup(key)
        return default if payload is _MISSING else pickle.loads(payload)

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if ttl is not None and ttl <= 0:
            return
        expires_at = None if ttl is None else self._clock() + ttl
        self._entries[key] = (pickle.dumps(value), expires_at)

    def forget(self, key: str) -> bool:
        found = self.has(key)
        self._entries.pop(key, None)
        return found

    def flush(self) -> None:
        self._entries.clear()


class RedisCacheStore(CacheStore):
    """Redis-backed cache. Values are pickled.

    Keys are stored as given. With a ``prefix``, ``flush`` only deletes keys
    starting with ``"{prefix}:"``; without one it flushes the whole database.
    """

    def __init__(self, client: "redis.Redis", prefix: Optional[str] = None) -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: Optional[str] = None) -> "RedisCacheStore":
        return cls(redis.Redis.from_url(url), prefix=prefix)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.client.get(key)
        if raw is None:
            return default
        return pickle.loads(raw)

    def has(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if ttl is not None and ttl <= 0:
            return
        payload = pickle.dumps(value)
        if ttl is None:
            self.client.set(key, payload)
        else:
            self.client.set(key, payload, ex=ttl)

    def forget(self, key: str) -> bool:
        return bool(self.client.delete(key))

    def flush(self) -> None:
        if not self.prefix:
            self.client.flushdb()
            return
        batch = []
        for key in self.client.scan_iter(match=f"{self.prefix}:*"):
            batch.append(key)
            if len(batch) >= 500:
                self.client.delete(*batch)
                batch = []
        if batch:
            self.client.delete(*batch)


class CacheManager:
    """Named cache stores with a default.

    Usage:
        manager = CacheManager({"memory": MemoryCacheStore()}, default="memory")
        store = manager.store()          # default store
        redis_store = manager.store("redis")
    """

    def __init__(self, stores: Optional[Dict[str, CacheStore]] = None, default: str = "memory") -> None:
        self._stores: Dict[str, CacheStore] = dict(stores or {})
        self.default = default

    def add(self, name: str, store: CacheStore) -> None:
        self._stores[name] = store

    def store(self, name: Optional[str] = None) -> CacheStore:
        """Resolve a store by name, or the default store.

        Raises:
            ValueError: If no store is registered under the name
        """
        name = name or self.default
        try:
            return self._stores[name]
        except KeyError:
            raise ValueError(f"Cache store '{name}' is not configured") from None

    def names(self) -> Tuple[str, ...]:
        return tuple(self._stores)


def build_cache_manager(settings: Optional[Settings] = None) -> CacheManager:
    """Create a cache manager from settings: memory always, redis when configured."""
    settings = settings or get_settings()
    manager = CacheManager({"memory": MemoryCacheStore()}, default=settings.cache_store)
    if settings.redis_url:
        manager.add(
            "redis",
            RedisCacheStore.from_url(settings.redis_url, prefix=settings.repository_cache_prefix),
        )
    return manager


# Process-wide manager, built on first use
_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get the cache manager singleton."""
    global _cache_manager
    if _cache_manager is None:
        _cache_manager = build_cache_manager()
    return _cache_manager


def reset_cache_manager() -> None:
    """Drop the singleton so the next call rebuilds it from settings."""
    global _cache_manager
    _cache_manager = None
