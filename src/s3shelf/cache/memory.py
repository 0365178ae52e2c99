"""In-process key-value cache with per-entry TTL and eviction priority."""

import logging
import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class CachePriority(IntEnum):
    """Eviction priority; lower values are evicted first."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    NEVER_REMOVE = 3


@dataclass
class CacheEntry:
    """A cached value.

    Attributes:
        key: Cache key
        value: Cached value
        inserted_at: Clock reading at insertion
        ttl: Lifetime in seconds
        priority: Eviction priority
    """

    key: str
    value: Any
    inserted_at: float
    ttl: float
    priority: CachePriority = CachePriority.NORMAL

    def expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


class MemoryCache:
    """Thread-safe in-memory cache.

    Expired entries are dropped lazily on access. When ``max_entries`` is
    set and a new key would exceed it, expired entries are purged first,
    then the oldest entry of the lowest priority is evicted.
    ``NEVER_REMOVE`` entries only leave through TTL or ``remove``.
    """

    def __init__(self, max_entries: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: float,
        priority: CachePriority = CachePriority.NORMAL,
    ) -> None:
        """Store *value* under *key* for *ttl* seconds."""
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            now = self._clock()
            if key not in self._entries:
                self._make_room(now)
            self._entries[key] = CacheEntry(key, value, now, ttl, priority)

    def remove(self, key: str) -> bool:
        """Remove *key*; returns True if an entry was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def remove_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with *prefix*."""
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def keys(self) -> List[str]:
        """Return the keys of live entries."""
        with self._lock:
            now = self._clock()
            return [key for key, entry in self._entries.items() if not entry.expired(now)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def _make_room(self, now: float) -> None:
        # Caller holds the lock
        if self.max_entries is None or len(self._entries) < self.max_entries:
            return

        for key in [k for k, e in self._entries.items() if e.expired(now)]:
            del self._entries[key]

        while len(self._entries) >= self.max_entries:
            candidates = [e for e in self._entries.values() if e.priority < CachePriority.NEVER_REMOVE]
            if not candidates:
                break
            victim = min(candidates, key=lambda e: (e.priority, e.inserted_at))
            del self._entries[victim.key]
            logger.debug(f"Evicted cache entry {victim.key}")
