"""Process-wide caches for parsed templates and materialization plans.

Components:
- CacheKey: Immutable, hash-once cache key
- CacheStats: Hit/miss counters
- SingleFlightCache: Thread-safe cache that runs the factory at most once per key
- TemplateCache: Parsed :class:`SQLInfo` per (template text, placeholder style)
- PlanCache: Materialization plan per target shape, replaced when the column signature changes
"""

import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Callable, Final, Generic, Optional

from mypy_extensions import mypyc_attr
from typing_extensions import TypeVar

from sqlbind.core.parameters import ParameterStyle, TemplateParser
from sqlbind.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlbind.core.mapping import MaterializationPlan
    from sqlbind.core.parameters import SQLInfo

__all__ = (
    "CacheKey",
    "CacheStats",
    "PlanCache",
    "SingleFlightCache",
    "TemplateCache",
    "get_plan_cache",
    "get_template_cache",
    "reset_caches",
)

CacheValueT = TypeVar("CacheValueT")

CACHE_KEY_SLOTS: Final = ("_hash", "_key_data")
CACHE_STATS_SLOTS: Final = ("hits", "misses", "invalidations")

logger = get_logger("core.cache")


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheKey:
    """Immutable cache key.

    Args:
        key_data: Tuple of hashable values that uniquely identify the cached item
    """

    __slots__ = CACHE_KEY_SLOTS

    def __init__(self, key_data: "tuple[Any, ...]") -> None:
        self._key_data = key_data
        self._hash = hash(key_data)

    @property
    def key_data(self) -> "tuple[Any, ...]":
        """Get the key data tuple."""
        return self._key_data

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if type(other) is not CacheKey:
            return False
        if self._hash != other._hash:
            return False
        return self._key_data == other._key_data

    def __repr__(self) -> str:
        return f"CacheKey({self._key_data!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheStats:
    """Cache statistics tracking."""

    __slots__ = CACHE_STATS_SLOTS

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.invalidations = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_invalidation(self) -> None:
        self.invalidations += 1

    def reset(self) -> None:
        """Reset all statistics."""
        self.hits = 0
        self.misses = 0
        self.invalidations = 0

    def __repr__(self) -> str:
        return f"CacheStats(hit_rate={self.hit_rate:.1f}%, hits={self.hits}, misses={self.misses})"


class SingleFlightCache(Generic[CacheValueT]):
    """Thread-safe cache that computes each entry at most once.

    The first caller for a missing key installs a pending future and runs the
    factory outside the lock; concurrent callers for the same key wait on that
    future and receive the same value. When the factory fails the pending entry
    is dropped, so a later call retries, and every waiter sees the exception.

    Entries never expire. Use :meth:`invalidate` or :meth:`clear` to drop them.
    """

    __slots__ = ("_entries", "_lock", "_stats", "name")

    def __init__(self, name: str = "cache") -> None:
        self.name = name
        self._entries: dict[CacheKey, Future[CacheValueT]] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def get_or_create(
        self,
        key: CacheKey,
        factory: "Callable[[], CacheValueT]",
        accept: "Optional[Callable[[CacheValueT], bool]]" = None,
    ) -> CacheValueT:
        """Return the cached value for ``key``, creating it with ``factory`` on a miss.

        Args:
            key: The cache key.
            factory: Zero-argument callable that builds the value.
            accept: Optional predicate; a cached value it rejects is rebuilt and replaced.

        Returns:
            The cached or newly built value.
        """
        while True:
            future, owner = self._claim(key, accept)

            if owner:
                logger.debug("%s cache miss: %r", self.name, key)
                try:
                    value = factory()
                except BaseException as exc:
                    with self._lock:
                        if self._entries.get(key) is future:
                            del self._entries[key]
                    future.set_exception(exc)
                    raise
                future.set_result(value)
                return value

            value = future.result()
            if accept is None or accept(value):
                with self._lock:
                    self._stats.record_hit()
                return value

    def _claim(
        self, key: CacheKey, accept: "Optional[Callable[[CacheValueT], bool]]"
    ) -> "tuple[Future[CacheValueT], bool]":
        """Return the entry for ``key`` and whether the caller must build its value.

        A missing entry, or a completed one ``accept`` rejects, is replaced by a
        pending future owned by the caller.
        """
        with self._lock:
            current = self._entries.get(key)
            if current is not None and not (current.done() and accept is not None and not accept(current.result())):
                return current, False
            if current is not None:
                self._stats.record_invalidation()
            pending: Future[CacheValueT] = Future()
            self._entries[key] = pending
            self._stats.record_miss()
            return pending, True

    def get(self, key: CacheKey) -> "Optional[CacheValueT]":
        """Return a completed entry without creating one."""
        with self._lock:
            future = self._entries.get(key)
        if future is None or not future.done() or future.exception() is not None:
            return None
        return future.result()

    def invalidate(self, key: CacheKey) -> bool:
        """Drop one entry.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            if removed:
                self._stats.record_invalidation()
            return removed

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._stats.reset()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


@mypyc_attr(allow_interpreted_subclasses=False)
class TemplateCache:
    """Parsed templates keyed by template text and placeholder style.

    Repeated lookups of the same text return the identical :class:`SQLInfo` instance.
    """

    __slots__ = ("_cache",)

    def __init__(self) -> None:
        self._cache: SingleFlightCache[SQLInfo] = SingleFlightCache("template")

    def get(self, text: str, style: ParameterStyle = ParameterStyle.QMARK) -> "SQLInfo":
        """Return the parsed template, parsing it on first use."""
        return self._cache.get_or_create(CacheKey((text, style)), lambda: TemplateParser(style).parse(text))

    def invalidate(self, text: str, style: ParameterStyle = ParameterStyle.QMARK) -> bool:
        return self._cache.invalidate(CacheKey((text, style)))

    def clear(self) -> None:
        self._cache.clear()

    @property
    def stats(self) -> CacheStats:
        return self._cache.stats

    def __len__(self) -> int:
        return len(self._cache)


@mypyc_attr(allow_interpreted_subclasses=False)
class PlanCache:
    """Materialization plans keyed by target shape.

    Only one plan is kept per shape. A lookup with a different column signature
    builds a new plan and replaces the old one.
    """

    __slots__ = ("_cache",)

    def __init__(self) -> None:
        self._cache: SingleFlightCache[MaterializationPlan] = SingleFlightCache("plan")

    def get(
        self, shape: "tuple[Any, ...]", signature: "tuple[str, ...]", factory: "Callable[[], MaterializationPlan]"
    ) -> "MaterializationPlan":
        """Return the plan for ``shape`` built from ``signature``.

        Args:
            shape: Hashable description of the target (type, name mapper, strictness).
            signature: The column labels of the cursor.
            factory: Builds a plan for this signature on a miss.

        Returns:
            The cached or newly built plan.
        """
        return self._cache.get_or_create(CacheKey(shape), factory, lambda plan: plan.signature == signature)

    def invalidate(self, shape: "tuple[Any, ...]") -> bool:
        return self._cache.invalidate(CacheKey(shape))

    def clear(self) -> None:
        self._cache.clear()

    @property
    def stats(self) -> CacheStats:
        return self._cache.stats

    def __len__(self) -> int:
        return len(self._cache)


_cache_lock = threading.Lock()
_template_cache: Optional[TemplateCache] = None
_plan_cache: Optional[PlanCache] = None


def get_template_cache() -> TemplateCache:
    """Get the process-wide template cache.

    Returns:
        Singleton template cache instance
    """
    global _template_cache
    if _template_cache is None:
        with _cache_lock:
            if _template_cache is None:
                _template_cache = TemplateCache()
    return _template_cache


def get_plan_cache() -> PlanCache:
    """Get the process-wide materialization plan cache.

    Returns:
        Singleton plan cache instance
    """
    global _plan_cache
    if _plan_cache is None:
        with _cache_lock:
            if _plan_cache is None:
                _plan_cache = PlanCache()
    return _plan_cache


def reset_caches() -> None:
    """Clear both process-wide caches."""
    get_template_cache().clear()
    get_plan_cache().clear()
