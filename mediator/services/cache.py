"""Bounded, time-aware in-memory cache for remote lookup results.

Values are stored under their own identifier (see :class:`Cacheable`). The
cache holds at most ``capacity`` entries and evicts the least recently
accessed one when full. Independently, an entry that has not been written or
touched for more than ``timeout`` seconds expires. Expiry is lazy: it runs at
the start of every public operation rather than on a timer.

All operations are serialized by a single re-entrant lock and never perform
I/O, so they can be called from request threads and from the event loop.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 32
DEFAULT_TIMEOUT_SECONDS = 3600


class CacheError(Exception):
    """Base class for cache errors."""


class InvalidConfiguration(CacheError, ValueError):
    """Raised when a cache is constructed with a negative capacity or timeout."""


class NotFound(CacheError, KeyError):
    """Raised by :meth:`Cache.get` when no live entry has the identifier."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No cached value with id {self.key!r}"


@runtime_checkable
class Cacheable(Protocol):
    """Anything with a stable string identifier can be cached."""

    def id(self) -> str:
        ...


T = TypeVar("T", bound=Cacheable)


class CacheEntry(Generic[T]):
    """A cached value plus its freshness and recency timestamps.

    Timestamps are seconds relative to the owning cache's creation instant.
    Two entries are equal when their values share an identifier, whatever
    the rest of their content.
    """

    __slots__ = ("value", "last_updated", "last_accessed")

    def __init__(self, value: T, now: float):
        self.value = value
        self.last_updated = now
        self.last_accessed = now

    @property
    def key(self) -> str:
        return self.value.id()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CacheEntry):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return (
            f"CacheEntry(key={self.key!r}, last_updated={self.last_updated:.3f}, "
            f"last_accessed={self.last_accessed:.3f})"
        )


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters for a cache."""
    capacity: int
    timeout: int
    size: int
    hits: int
    misses: int
    evictions: int
    expirations: int


class Cache(Generic[T]):
    """Thread-safe LRU cache with per-entry freshness timeout."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 0 or timeout < 0:
            raise InvalidConfiguration(
                f"Negative capacity or timeout (capacity={capacity}, timeout={timeout})"
            )

        self._capacity = int(capacity)
        self._timeout = int(timeout)
        self._clock = clock
        self._created_at = clock()
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def timeout(self) -> int:
        return self._timeout

    def put(self, value: T) -> bool:
        """Store ``value`` under its identifier.

        An identifier that is already cached is refreshed through
        :meth:`update` instead, which keeps its recency. When the cache is
        full the least recently accessed entry is evicted first.

        Returns False only when nothing could be stored (capacity 0);
        refreshing an entry that was live when the call started always
        succeeds, even if its timeout lapses while the call runs.
        """
        key = value.id()
        with self._lock:
            self._expire()
            if key in self._entries:
                return self._replace(key, value)

            if len(self._entries) >= self._capacity:
                self._remove_least_recently_requested()
                if self._capacity == 0:
                    return False

            self._entries[key] = CacheEntry(value, self._now())
            return True

    def get(self, key: str) -> T:
        """Return the value cached under ``key`` and mark it as accessed.

        Raises NotFound if the key is absent or has just expired.
        """
        with self._lock:
            self._expire()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                raise NotFound(key)

            entry.last_accessed = max(entry.last_accessed, self._now())
            self._hits += 1
            return entry.value

    def touch(self, key: str) -> bool:
        """Reset the freshness window of ``key`` without reading it."""
        with self._lock:
            self._expire()
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.last_updated = max(entry.last_updated, self._now())
            return True

    def update(self, value: T) -> bool:
        """Replace the cached content for ``value.id()``.

        An update is not an access: the entry keeps its last access time.
        Never inserts.
        """
        key = value.id()
        with self._lock:
            self._expire()
            return self._replace(key, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            self._expire()
            return CacheStats(
                capacity=self._capacity,
                timeout=self._timeout,
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    def __len__(self) -> int:
        with self._lock:
            self._expire()
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            self._expire()
            return key in self._entries

    def _now(self) -> float:
        # Never negative; callers also keep per-entry stamps from going backwards.
        return max(0.0, self._clock() - self._created_at)

    def _replace(self, key: str, value: T) -> bool:
        with self._lock:
            current = self._entries.get(key)
            if current is None:
                return False

            replacement = CacheEntry(value, max(current.last_updated, self._now()))
            replacement.last_accessed = current.last_accessed
            self._entries[key] = replacement
            return True

    def _expire(self) -> None:
        with self._lock:
            now = self._now()
            stale = [
                key for key, entry in list(self._entries.items())
                if entry.last_updated + self._timeout < now
            ]
            for key in stale:
                del self._entries[key]
            if stale:
                self._expirations += len(stale)
                logger.debug(f"Expired {len(stale)} cache entries")

    def _remove_least_recently_requested(self) -> None:
        with self._lock:
            if not self._entries:
                return

            # min() keeps the first minimum in insertion order on ties.
            least = min(self._entries.values(), key=lambda entry: entry.last_accessed)
            del self._entries[least.key]
            self._evictions += 1
            logger.debug(f"Evicted least recently requested entry {least.key!r}")
