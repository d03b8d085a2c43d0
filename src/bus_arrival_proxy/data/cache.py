"""TTL-based caches for DataMall reference and arrival data.

Staleness is checked lazily on read; nothing is ever swept or evicted.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was fetched."""

    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_stale(self, ttl: float, now: float) -> bool:
        """Stale once ``now - fetched_at >= ttl``."""
        return self.age(now) >= ttl


class SnapshotCache(Generic[T]):
    """Single-value TTL cache for one wholesale snapshot.

    Uses an async lock so only one caller rebuilds the snapshot at a time.
    """

    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        """Initialize the cache.

        Args:
            ttl: Time-to-live in seconds for the snapshot.
            clock: Monotonic clock, injectable for tests.
        """
        self._ttl = ttl
        self._clock = clock
        self._entry: CacheEntry[T] | None = None
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def entry(self) -> CacheEntry[T] | None:
        """The stored entry, stale or not."""
        return self._entry

    def get(self) -> T | None:
        """Get the snapshot if present and fresh.

        Returns:
            The cached value if valid, None if stale or never set.
        """
        if self._entry is not None and not self._entry.is_stale(self._ttl, self._clock()):
            return self._entry.value
        return None

    def is_stale(self) -> bool:
        return self._entry is None or self._entry.is_stale(self._ttl, self._clock())

    def set(self, value: T, fetched_at: float | None = None) -> CacheEntry[T]:
        """Replace the snapshot wholesale, stamping it with the current time."""
        if fetched_at is None:
            fetched_at = self._clock()
        self._entry = CacheEntry(value=value, fetched_at=fetched_at)
        return self._entry

    def clear(self) -> None:
        self._entry = None

    def now(self) -> float:
        return self._clock()

    @property
    def lock(self) -> asyncio.Lock:
        """Get the async lock for coordinating rebuilds."""
        return self._lock


class KeyedCache(Generic[T]):
    """Per-key TTL cache with single-flight loading.

    Entries persist until overwritten. A failed load leaves any previous
    entry untouched and caches nothing.
    """

    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._in_flight: dict[Hashable, asyncio.Future[CacheEntry[T]]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get_entry(self, key: str) -> CacheEntry[T] | None:
        """The stored entry for ``key``, stale or not."""
        return self._entries.get(key)

    def get(self, key: str) -> T | None:
        """Get the value for ``key`` if present and fresh."""
        entry = self._entries.get(key)
        if entry is not None and not entry.is_stale(self._ttl, self._clock()):
            return entry.value
        return None

    def set(self, key: str, value: T, fetched_at: float | None = None) -> CacheEntry[T]:
        if fetched_at is None:
            fetched_at = self._clock()
        entry = CacheEntry(value=value, fetched_at=fetched_at)
        self._entries[key] = entry
        return entry

    def now(self) -> float:
        return self._clock()

    def in_flight(self, flight_key: Hashable) -> bool:
        return flight_key in self._in_flight

    async def load(
        self,
        key: str,
        loader: Callable[[], Awaitable[CacheEntry[T]]],
        flight_key: Hashable | None = None,
    ) -> tuple[CacheEntry[T], bool]:
        """Load ``key`` through ``loader``, sharing one call among concurrent misses.

        The first caller for a ``flight_key`` (default: ``key``) runs ``loader``
        and registers a future; callers arriving with the same ``flight_key``
        while it is pending await that future instead. ``loader`` returns the
        entry to store, stamped with the time its value was obtained.

        Returns:
            (entry, started) where ``started`` is False for callers that
            joined another caller's load.

        Raises:
            Whatever ``loader`` raises, delivered to every waiter.
        """
        if flight_key is None:
            flight_key = key
        pending = self._in_flight.get(flight_key)
        if pending is not None:
            return await asyncio.shield(pending), False

        future: asyncio.Future[CacheEntry[T]] = asyncio.get_running_loop().create_future()
        self._in_flight[flight_key] = future
        try:
            loaded = await loader()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # retrieved here so an unobserved failure is not logged by asyncio
            future.exception()
            raise
        else:
            entry = self.set(key, loaded.value, fetched_at=loaded.fetched_at)
            future.set_result(entry)
            return entry, True
        finally:
            del self._in_flight[flight_key]

    def clear(self) -> None:
        self._entries.clear()
