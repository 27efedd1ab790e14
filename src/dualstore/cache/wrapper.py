"""Read-through caching for repositories.

``CacheWrapper`` proxies the read operations of any repository through a
cache store. The table of cacheable operations is built once, at
construction; asking for anything else raises ``NoSuchOperationError``
instead of silently bypassing the cache.

Cache keys have the form::

    {prefix}:{backend}:{RepositoryType}:{model}:{operation}:{digest}

where ``model`` is the repository's record type (its ``model_name``) and
the digest is the MD5 of the operation name and the call arguments,
bound to the operation's signature with defaults applied. Positional and
keyword call sites with the same values therefore share a key.
"""

import hashlib
import inspect
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from ..config import Settings, get_settings
from ..exceptions import NoSuchOperationError
from .stores import CacheManager, CacheStore, get_cache_manager

logger = logging.getLogger(__name__)

# The repository read contract
DEFAULT_OPERATIONS: Tuple[str, ...] = (
    "paginate",
    "get_one",
    "find_one",
    "find_all",
    "count_by_params",
)


def canonical(value: Any) -> Any:
    """Reduce a call argument to JSON-serializable data.

    Mapping and sequence order is kept (ordering specs depend on it); sets
    are sorted. Mapping keys go through ``repr`` so ``1`` and ``"1"`` stay
    apart; other objects without a natural form are represented by ``repr``.
    """
    if isinstance(value, Enum):
        return canonical(value.value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Mapping):
        return {repr(key): canonical(inner) for key, inner in value.items()}
    if isinstance(value, (list, tuple)):
        return [canonical(inner) for inner in value]
    if isinstance(value, (set, frozenset)):
        return sorted((canonical(inner) for inner in value), key=repr)
    return repr(value)


def digest(operation: str, arguments: Mapping[str, Any]) -> str:
    """Stable hash of an operation call."""
    payload = json.dumps(canonical(arguments), separators=(",", ":"))
    return hashlib.md5(f"{operation}:{payload}".encode("utf-8")).hexdigest()


class CacheWrapper:
    """
    Caching proxy around a repository.

    Usage:
        cached = CacheWrapper(user_repository)
        page = cached.paginate({"active": True}, order_by={"name": "asc"})
        cached.clear_cache("paginate", {"active": True}, order_by={"name": "asc"})

    Args:
        repository: Any object exposing the repository read operations
        driver: Name of the cache store to use; the configured default when None
        cache: Cache manager resolving store names; the process-wide one when None
        settings: Settings override
        operations: Operation names to proxy; the repository read contract by default
    """

    def __init__(
        self,
        repository: Any,
        driver: Optional[str] = None,
        cache: Optional[CacheManager] = None,
        settings: Optional[Settings] = None,
        operations: Optional[Iterable[str]] = None,
    ) -> None:
        self.repository = repository
        self.driver = driver
        self._cache = cache
        self._settings = settings
        self._operations: Dict[str, Callable[..., Any]] = {}
        self._signatures: Dict[str, inspect.Signature] = {}

        explicit = operations is not None
        for name in (operations if explicit else DEFAULT_OPERATIONS):
            method = getattr(repository, name, None)
            if not callable(method):
                if explicit:
                    raise NoSuchOperationError(name, self.target)
                continue
            self._operations[name] = method
            self._signatures[name] = inspect.signature(method)

    @property
    def target(self) -> str:
        return type(self.repository).__name__

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def store(self) -> CacheStore:
        return (self._cache or get_cache_manager()).store(self.driver)

    @property
    def operations(self) -> Tuple[str, ...]:
        return tuple(self._operations)

    def _operation(self, name: str) -> Callable[..., Any]:
        try:
            return self._operations[name]
        except KeyError:
            raise NoSuchOperationError(name, self.target) from None

    def _bind(self, name: str, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> inspect.BoundArguments:
        bound = self._signatures[name].bind(*args, **kwargs)
        bound.apply_defaults()
        return bound

    def _key(self, name: str, bound: inspect.BoundArguments) -> str:
        backend = getattr(self.repository, "backend", "default")
        # Repositories of one class can serve different models or tables
        model = getattr(self.repository, "model_name", self.target)
        return ":".join(
            [
                self.settings.repository_cache_prefix,
                str(backend),
                self.target,
                str(model),
                name,
                digest(name, bound.arguments),
            ]
        )

    def cache_key(self, name: str, *args: Any, **kwargs: Any) -> str:
        """Key under which ``name(*args, **kwargs)`` is cached."""
        self._operation(name)
        return self._key(name, self._bind(name, args, kwargs))

    def invoke(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """
        Call a repository operation through the cache.

        Raises:
            NoSuchOperationError: If ``name`` is not a cacheable operation
        """
        method = self._operation(name)
        settings = self.settings
        if not settings.repository_cache_enabled:
            return method(*args, **kwargs)

        bound = self._bind(name, args, kwargs)
        key = self._key(name, bound)
        return self.store.remember(
            key,
            settings.repository_cache_ttl,
            lambda: method(*bound.args, **bound.kwargs),
        )

    def clear_cache(self, name: str, *args: Any, **kwargs: Any) -> bool:
        """Forget the cached result of one call; returns whether it was cached."""
        return self.store.forget(self.cache_key(name, *args, **kwargs))

    def clear_all_cache(self) -> None:
        """Flush the whole store this wrapper uses. Affects other wrappers sharing it."""
        logger.info(f"Flushing cache store used by {self.target}")
        self.store.flush()

    def paginate(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke("paginate", *args, **kwargs)

    def get_one(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke("get_one", *args, **kwargs)

    def find_one(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke("find_one", *args, **kwargs)

    def find_all(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke("find_all", *args, **kwargs)

    def count_by_params(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke("count_by_params", *args, **kwargs)


class CacheableRepositoryMixin:
    """Adds ``cache()`` to a repository class.

        class UserRepository(CacheableRepositoryMixin, RelationalRepository[User]):
            model = User

        users.cache().find_one({"email": "a@example.com"})
    """

    def cache(self, driver: Optional[str] = None) -> CacheWrapper:
        return CacheWrapper(self, driver=driver)
