"""Read-through cache for "most recent N records of a type".

A CacheGate serves pages from the cache when it can. On a miss, exactly
one listing-and-download sequence runs at a time per gate, and callers
queued behind it receive the page it produced instead of re-listing.
Empty results are never cached.

Ranking requires listing the whole directory and sorting it on every cold
fetch, so cost grows with the number of stored objects, not with the
page size.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Generic, List, Optional, Set, Type, TypeVar

from ..errors import InvalidArgument
from ..storage.backend import ObjectRef
from ..storage.object_store import ObjectStore
from .memory import CachePriority, MemoryCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 600.0
DEFAULT_RETRY_DELAY = 1.0


def _recency(ref: ObjectRef) -> float:
    # Objects without a timestamp rank as the oldest
    if ref.last_modified is None:
        return float("-inf")
    return ref.last_modified.timestamp()


def most_recent(refs: List[ObjectRef], count: int) -> List[ObjectRef]:
    """Return the *count* newest refs, newest first.

    The relative order of refs with equal (or missing) timestamps is
    unspecified.
    """
    return sorted(refs, key=_recency, reverse=True)[:count]


@dataclass
class _Fetch:
    seq: int
    page_size: int
    directory: str
    records: list


class CacheGate(Generic[T]):
    """Single-flight, read-through cache of recent records for one type.

    Construct one gate per (backend, record type) pairing and always query
    it with the same directory. Every page size requested from the gate
    shares its lock.

    Returned lists hold deep copies, so callers may modify the records
    without affecting the cached page.

    Attributes:
        store: Object store to list and download from
        record_type: Type records decode to
        cache: Shared key-value cache
        ttl: Lifetime of cached pages in seconds
        retry_delay: Pause before the second listing attempt
        priority: Eviction priority of cached pages
    """

    def __init__(
        self,
        store: ObjectStore,
        record_type: Type[T],
        cache: MemoryCache,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        priority: CachePriority = CachePriority.HIGH,
    ):
        self.store = store
        self.record_type = record_type
        self.cache = cache
        self.ttl = ttl
        self.retry_delay = retry_delay
        self.priority = priority
        self._gate = asyncio.Semaphore(1)
        self._fetch_seq = 0
        # Only the latest fetch is kept, for callers queued behind it
        self._last_fetch: Optional[_Fetch] = None
        self._cached_sizes: Set[int] = set()

    @property
    def type_name(self) -> str:
        return self.record_type.__name__.lower()

    def cache_key(self, page_size: int) -> str:
        return f"recent:{self.type_name}:{page_size}"

    async def get_recent(self, page_size: int = 100, directory: str = "") -> List[T]:
        """Return up to *page_size* records, newest first.

        The cache slot is keyed by type and page size only, so a gate
        should always be queried with the same *directory*.

        Raises:
            InvalidArgument: If *page_size* is not positive
        """
        if page_size <= 0:
            raise InvalidArgument("page_size must be greater than zero")

        cached = self.cache.get(self.cache_key(page_size))
        if cached:
            return copy.deepcopy(cached)

        arrived_at = self._fetch_seq
        async with self._gate:
            cached = self.cache.get(self.cache_key(page_size))
            if cached:
                return copy.deepcopy(cached)

            last = self._last_fetch
            if (
                last is not None
                and last.seq > arrived_at
                and (last.page_size, last.directory) == (page_size, directory)
            ):
                # An uncached (empty) fetch finished while we were queued
                return copy.deepcopy(last.records)

            records = await self._attempt(page_size, directory)
            if not records:
                logger.warning(
                    f"No {self.type_name} records under '{directory}'; "
                    f"retrying in {self.retry_delay}s"
                )
                await asyncio.sleep(self.retry_delay)
                records = await self._attempt(page_size, directory)

            self._fetch_seq += 1
            self._last_fetch = _Fetch(self._fetch_seq, page_size, directory, records)

            if records:
                self.cache.set(self.cache_key(page_size), records, self.ttl, self.priority)
                self._track_size(page_size)
                logger.info(f"Cached {len(records)} {self.type_name} records at {self.cache_key(page_size)}")

            return copy.deepcopy(records)

    async def _attempt(self, page_size: int, directory: str) -> list:
        refs = await self.store.list_keys(directory)
        records = []
        for ref in most_recent(refs, page_size):
            record = await self.store.download_optional(ref.key, self.record_type)
            if record is not None:
                records.append(record)
        return records

    def _track_size(self, page_size: int) -> None:
        # Forget sizes whose pages have expired or been evicted
        self._cached_sizes = {size for size in self._cached_sizes if self.cache_key(size) in self.cache}
        self._cached_sizes.add(page_size)

    def invalidate(self) -> int:
        """Drop every cached page of this type.

        Returns:
            Number of cache entries removed
        """
        sizes = list(self._cached_sizes)
        self._cached_sizes.clear()
        self._last_fetch = None

        removed = sum(1 for size in sizes if self.cache.remove(self.cache_key(size)))
        logger.info(f"Invalidated {removed} cached {self.type_name} pages")
        return removed

    def cached_page(self, page_size: int) -> Optional[List[T]]:
        """Return the cached page for *page_size* without fetching."""
        return self.cache.get(self.cache_key(page_size))
