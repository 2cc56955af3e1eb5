"""In-process query result cache with TTL, LRU eviction and pattern invalidation."""

import functools
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

from .observability import metrics_collector

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass
class CacheEntry:
    """A cached value and its bookkeeping timestamps (monotonic seconds)."""

    value: Any
    created_at: float
    last_accessed: float
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class QueryCache:
    """
    Process-wide key/value store for expensive reads.

    Entries carry an optional absolute expiry. When the store is full, a set
    of a new key evicts the single least recently accessed entry. All
    operations take an internal lock so the cache can be shared between the
    event loop and threadpool workers.

    The cache never reads on its own; values arrive through ``set`` or
    through functions wrapped with ``with_cache``.
    """

    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._destroyed = False

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for ``key`` or ``default`` on a miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._record_miss()
                return default

            now = self._clock()
            if entry.is_expired(now):
                del self._entries[key]
                self._record_miss()
                return default

            entry.last_accessed = now
            self._entries.move_to_end(key)
            self._hits += 1
            metrics_collector.record_cache_hit()
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store ``value`` under ``key``.

        Args:
            key: Cache key
            value: Value to store (any object, including None)
            ttl: Time-to-live in milliseconds. None means the entry never
                expires; zero or negative expires it immediately.
        """
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_lru()

            now = self._clock()
            expires_at = None if ttl is None else now + ttl / 1000.0
            self._entries[key] = CacheEntry(
                value=value,
                created_at=now,
                last_accessed=now,
                expires_at=expires_at,
            )
            self._entries.move_to_end(key)
            metrics_collector.set_cache_size(len(self._entries))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        """Check presence without refreshing recency. Expired entries are evicted."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            metrics_collector.set_cache_size(0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Remove every entry whose key contains ``pattern`` as a substring.

        Returns:
            Number of entries removed
        """
        with self._lock:
            doomed = [key for key in self._entries if pattern in key]
            for key in doomed:
                del self._entries[key]

        if doomed:
            logger.info(
                "Cache pattern invalidated",
                extra={"pattern": pattern, "count": len(doomed)}
            )
        return len(doomed)

    def sweep(self) -> int:
        """Evict all expired entries regardless of access. Returns the count removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)

        metrics_collector.set_cache_size(remaining)
        if expired:
            logger.info(
                "Cache cleanup completed",
                extra={"removed_entries": len(expired), "remaining_entries": remaining}
            )
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_entries,
                "hit_count": self._hits,
                "miss_count": self._misses,
                "hit_rate": (self._hits / total) * 100 if total else 0.0,
            }

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Release all entries at shutdown. The sweep worker stops sweeping a destroyed cache."""
        with self._lock:
            self._destroyed = True
        self.clear()
        logger.info("Query cache destroyed")

    def with_cache(
        self,
        fn: Callable[..., Awaitable[T]],
        key_fn: Callable[..., str],
        ttl: Optional[float] = None,
    ) -> Callable[..., Awaitable[T]]:
        """
        Wrap an async read so its result is cached under ``key_fn(*args, **kwargs)``.

        On a hit the cached value is returned without calling ``fn``.
        """

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            key = key_fn(*args, **kwargs)
            cached = self.get(key, _MISSING)
            if cached is not _MISSING:
                logger.debug("Cache hit", extra={"key": key})
                return cached

            logger.debug("Cache miss, executing function", extra={"key": key})
            result = await fn(*args, **kwargs)
            self.set(key, result, ttl)
            return result

        return wrapper

    def _evict_lru(self) -> None:
        key, _ = self._entries.popitem(last=False)
        metrics_collector.record_cache_eviction()
        logger.debug("Evicted LRU cache entry", extra={"key": key})

    def _record_miss(self) -> None:
        self._misses += 1
        metrics_collector.record_cache_miss()


def _filter_fragment(filters: Optional[Mapping[str, Any]]) -> str:
    if not filters:
        return ""
    return "|".join(
        f"{key}:{value}"
        for key, value in sorted(filters.items())
        if value is not None
    )


class CacheKeys:
    """
    Cache key builders.

    Related keys share a literal prefix so that substring invalidation can
    target them, e.g. every equipment list key contains ``equipment:list:``.
    """

    @staticmethod
    def equipment(equipment_id: str) -> str:
        return f"equipment:{equipment_id}"

    @staticmethod
    def equipment_list(filters: Optional[Mapping[str, Any]] = None) -> str:
        return f"equipment:list:{_filter_fragment(filters)}"

    @staticmethod
    def brokerage(brokerage_id: str) -> str:
        return f"brokerage:{brokerage_id}"

    @staticmethod
    def brokerage_list(filters: Optional[Mapping[str, Any]] = None) -> str:
        return f"brokerage:list:{_filter_fragment(filters)}"

    @staticmethod
    def listing(kind: str, listing_id: str) -> str:
        return f"{kind.lower()}:{listing_id}"

    @staticmethod
    def listing_list(kind: str, filters: Optional[Mapping[str, Any]] = None) -> str:
        return f"{kind.lower()}:list:{_filter_fragment(filters)}"

    @staticmethod
    def categories(category_type: Optional[str] = None) -> str:
        return f"categories:{category_type}" if category_type else "categories:all"

    @staticmethod
    def booking(booking_id: str) -> str:
        return f"booking:{booking_id}"

    @staticmethod
    def bookings_list(filters: Optional[Mapping[str, Any]] = None) -> str:
        return f"bookings:list:{_filter_fragment(filters)}"

    @staticmethod
    def user_bookings(user_id: str, filters: Optional[Mapping[str, Any]] = None) -> str:
        return f"user:{user_id}:bookings:{_filter_fragment(filters)}"

    @staticmethod
    def dashboard_stats(period: str = "month") -> str:
        return f"stats:dashboard:{period}"

    @staticmethod
    def listing_stats(kind: str, listing_id: str) -> str:
        return f"stats:{kind.lower()}:{listing_id}"


class CacheInvalidator:
    """Invalidation helpers run after mutations."""

    def __init__(self, cache: QueryCache):
        self.cache = cache

    def listing(self, kind: str, listing_id: Optional[str] = None) -> None:
        prefix = kind.lower()
        if listing_id:
            self.cache.invalidate_pattern(f"{prefix}:{listing_id}")
            self.cache.invalidate_pattern(f"{prefix}:list:")
            self.cache.invalidate_pattern(CacheKeys.listing_stats(kind, listing_id))
        else:
            self.cache.invalidate_pattern(f"{prefix}:")

    def categories(self) -> None:
        self.cache.invalidate_pattern("categories:")

    def bookings(self, user_id: Optional[str] = None, booking_id: Optional[str] = None) -> None:
        self.cache.invalidate_pattern("bookings:list:")
        if booking_id:
            self.cache.delete(CacheKeys.booking(booking_id))
        if user_id:
            self.cache.invalidate_pattern(f"user:{user_id}:bookings")

    def stats(self) -> None:
        self.cache.invalidate_pattern("stats:")

    def after_booking_change(self, kind: str, listing_id: str, user_id: str, booking_id: Optional[str] = None) -> None:
        """Purge list and aggregate entries affected by a booking write."""
        self.bookings(user_id=user_id, booking_id=booking_id)
        self.cache.invalidate_pattern(CacheKeys.listing_stats(kind, listing_id))
        self.stats()

    def all(self) -> None:
        self.cache.clear()
