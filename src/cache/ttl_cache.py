"""In-memory key/value cache with per-entry time-to-live.

Expiry is enforced twice: lazily on every read, and eagerly by a background
sweep thread so entries nobody reads again are still reclaimed.

Architecture:
    TTLCache (main interface, thread-safe)
    ├── CacheEntry (value + creation time + ttl)
    ├── CacheStats (hits/misses/sets/deletes/expirations)
    └── sweep thread (daemon, stopped by destroy())

Example:
    ```python
    cache = TTLCache(cleanup_interval=60.0)
    cache.set("task:abc", record, ttl=300)
    record = cache.get("task:abc")
    ...
    cache.destroy()
    ```
"""
from __future__ import annotations

import inspect
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

_MISSING = object()

Clock = Callable[[], float]
Producer = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass
class CacheEntry:
    """A stored value with its expiry metadata.

    Attributes:
        value: Cached value
        created_at: Clock reading when the value was stored
        ttl: Lifetime in seconds; 0 means the entry never expires
    """

    value: Any
    created_at: float
    ttl: float = 0

    def is_expired(self, now: float) -> bool:
        if self.ttl == 0:
            return False
        return now - self.created_at > self.ttl

    def remaining(self, now: float) -> Optional[float]:
        """Seconds until expiry, or None for entries that never expire."""
        if self.ttl == 0:
            return None
        return max(0.0, self.ttl - (now - self.created_at))


@dataclass
class CacheStats:
    """Cache operation counters."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit percentage over all lookups (0.0 when nothing was looked up)."""
        total = self.hits + self.misses
        return (self.hits / total) * 100 if total > 0 else 0.0

    def to_dict(self, size: int = 0) -> Dict[str, Any]:
        """Convert to dictionary, including the current entry count."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "expirations": self.expirations,
            "size": size,
            "hit_rate": round(self.hit_rate, 2),
        }


class TTLCache:
    """Thread-safe TTL cache shared by all callers of one process.

    Statistics semantics: a lookup of a key that was never stored is a miss;
    a lookup that finds an expired entry removes it and counts as an
    expiration only. Removals by the sweep also count as expirations.
    """

    def __init__(
        self,
        default_ttl: float = 0,
        cleanup_interval: Optional[float] = 60.0,
        clock: Clock = time.monotonic,
        name: str = "cache",
    ):
        """Initialize the cache.

        Args:
            default_ttl: TTL applied when ``set`` is called without one
            cleanup_interval: Seconds between background sweeps; None disables the sweep
            clock: Monotonic time source in seconds
            name: Label used in log messages and the sweep thread name
        """
        if default_ttl < 0:
            raise ValueError("default_ttl must be non-negative")
        if cleanup_interval is not None and cleanup_interval <= 0:
            raise ValueError("cleanup_interval must be positive or None")

        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self.name = name
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._stats = CacheStats()
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        self._destroyed = False

        if cleanup_interval is not None:
            self._sweeper = threading.Thread(
                target=self._sweep_loop, name=f"{name}-sweeper", daemon=True
            )
            self._sweeper.start()

        logger.debug(f"TTL cache '{name}' initialized (cleanup_interval={cleanup_interval})")

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store a value.

        Args:
            key: Cache key
            value: Value to store
            ttl: Lifetime in seconds (0 = never expires, None = default_ttl)

        Returns:
            True if stored, False if the value could not be stored
        """
        try:
            effective_ttl = self.default_ttl if ttl is None else float(ttl)
            if effective_ttl < 0:
                raise ValueError(f"ttl must be non-negative, got {ttl}")
            with self._lock:
                self._store[key] = CacheEntry(value=value, created_at=self._clock(), ttl=effective_ttl)
                self._stats.sets += 1
            logger.debug(f"Cache set: {key} (ttl={effective_ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Failed to set cache entry {key}: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` if absent or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._stats.misses += 1
                logger.debug(f"Cache miss: {key}")
                return default

            if entry.is_expired(self._clock()):
                del self._store[key]
                self._stats.expirations += 1
                logger.debug(f"Cache entry expired: {key}")
                return default

            self._stats.hits += 1
            logger.debug(f"Cache hit: {key}")
            return entry.value

    def has(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters.

        An expired entry found here is removed and counted as an expiration.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._store[key]
                self._stats.expirations += 1
                return False
            return True

    def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if something was removed."""
        with self._lock:
            if self._store.pop(key, None) is None:
                return False
            self._stats.deletes += 1
        logger.debug(f"Cache entry deleted: {key}")
        return True

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info(f"Cleared cache '{self.name}' ({count} entries)")
        return count

    def cleanup(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired:
                del self._store[key]
            self._stats.expirations += len(expired)

        if expired:
            logger.info(f"Cache sweep removed {len(expired)} expired entries from '{self.name}'")
        return len(expired)

    async def get_or_set(self, key: str, producer: Producer, ttl: Optional[float] = None) -> Any:
        """Return the cached value, or produce, store and return a new one.

        Args:
            key: Cache key
            producer: Zero-argument callable returning the value or an awaitable of it
            ttl: Lifetime for a newly produced value

        Returns:
            Cached or newly produced value

        Raises:
            Exception: Whatever the producer raises; nothing is cached in that case
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        try:
            value = producer()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.error(f"get_or_set producer failed for {key}: {e}")
            raise

        self.set(key, value, ttl)
        return value

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of the counters plus current size and hit rate."""
        with self._lock:
            return self._stats.to_dict(size=len(self._store))

    def destroy(self) -> None:
        """Stop the background sweep and drop all entries. Safe to call repeatedly."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True

        self._stop_event.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=5.0)
        self._sweeper = None
        self.clear()
        logger.info(f"TTL cache '{self.name}' destroyed")

    @property
    def is_running(self) -> bool:
        """Whether the background sweep thread is alive."""
        return self._sweeper is not None and self._sweeper.is_alive()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.cleanup_interval):
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"Cache sweep failed for '{self.name}': {e}")
