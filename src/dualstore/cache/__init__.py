"""Repository caching: cache stores and the read-through wrapper."""

from .stores import (
    CacheManager,
    CacheStore,
    MemoryCacheStore,
    RedisCacheStore,
    build_cache_manager,
    get_cache_manager,
    reset_cache_manager,
)
from .wrapper import DEFAULT_OPERATIONS, CacheableRepositoryMixin, CacheWrapper, canonical, digest

__all__ = [
    "CacheManager",
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "build_cache_manager",
    "get_cache_manager",
    "reset_cache_manager",
    "DEFAULT_OPERATIONS",
    "CacheableRepositoryMixin",
    "CacheWrapper",
    "canonical",
    "digest",
]
