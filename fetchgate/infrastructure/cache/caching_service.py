"""Concrete implementation of the in-memory expiring cache.

Entries carry their own TTL and are dropped lazily when read after expiry.
A background sweeper can additionally prune expired entries for memory
hygiene, and an optional item limit evicts least recently used entries.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

# Domain Layer Imports
from fetchgate.domain.interfaces.cache import CacheService
from fetchgate.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

# Default Configuration Constants
DEFAULT_TTL_SECONDS = 300
DEFAULT_SWEEP_INTERVAL_SECONDS = 60

@dataclass
class CacheEntry:
    """Internal representation of a cache entry."""
    key: CacheKey
    value: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now >= self.stored_at + self.ttl

class ExpiringCache(CacheService):
    """Thread-safe key/value store with per-entry time-to-live."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_items: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the cache.

        Args:
            default_ttl: TTL in seconds applied when ``set`` gets no ttl.
            max_items: Optional bound; least recently used entries are evicted
                once it is exceeded. None or 0 means unbounded.
            clock: Monotonic time source, injectable for tests.
        """
        self.default_ttl = default_ttl
        self.max_items = max_items or None
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None
        logger.info(f"ExpiringCache initialized (ttl={default_ttl}s, max_items={self.max_items or 'unbounded'})")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # --- CacheService Interface Implementation ---

    def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the live value for ``key`` or None, evicting it if expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache miss for key: {key}")
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug(f"Cache entry expired for key: {key}")
                return None
            self._entries.move_to_end(key)
            logger.debug(f"Cache hit for key: {key}")
            return entry.value

    def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores ``value`` under ``key``; an existing entry is replaced."""
        effective_ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=effective_ttl)
            self._entries.move_to_end(key)
            self._evict_over_limit()
        logger.debug(f"Stored item in cache: key={key}, ttl={effective_ttl}s")

    def delete(self, key: CacheKey) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                logger.debug(f"Deleted item from cache: key={key}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Cleared in-memory cache.")

    # --- Expiry housekeeping ---

    def sweep(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        with self._lock:
            now = self._clock()
            expired_keys = [k for k, v in self._entries.items() if v.is_expired(now)]
            for k in expired_keys:
                del self._entries[k]
        if expired_keys:
            logger.debug(f"Swept {len(expired_keys)} expired cache entries")
        return len(expired_keys)

    def _evict_over_limit(self) -> None:
        # Caller holds the lock. Front of the OrderedDict is least recently used.
        if not self.max_items:
            return
        while len(self._entries) > self.max_items:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted least recently used cache entry: {evicted_key}")

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Starts the periodic sweep task on the running event loop."""
        if interval <= 0:
            logger.info("Cache sweeper disabled (interval <= 0)")
            return
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(interval))
        logger.info(f"Cache sweeper started (every {interval}s)")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Cache sweeper stopped")

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()
