"""In-process blob backend.

Behaves like a single S3 bucket held in a dict: sorted, paginated
listings with optional delimiter grouping, and atomic create-only puts.
Used for local development and tests.
"""

import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import AlreadyExists, NotFound
from .backend import CONTENT_TYPE_OCTET_STREAM, ListPage, ObjectRef, S3_MAX_DELETE_BATCH


@dataclass
class StoredBlob:
    """A payload held by :class:`MemoryBackend`."""

    data: bytes
    content_type: str
    last_modified: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryBackend:
    """Dict-backed blob backend.

    Args:
        page_size: Maximum entries per listing page
        clock: Callable returning the ``last_modified`` for new writes
        latency: Seconds every operation sleeps before running
        bucket_exists: Whether ``head_bucket`` succeeds
    """

    max_delete_batch = S3_MAX_DELETE_BATCH

    def __init__(
        self,
        page_size: int = 1000,
        clock: Optional[Callable[[], datetime]] = None,
        latency: float = 0.0,
        bucket_exists: bool = True,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self.latency = latency
        self.bucket_exists = bucket_exists
        self._clock = clock or _utcnow
        self._objects: Dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    async def _pause(self) -> None:
        # Always yield so concurrent callers interleave as they would over a network
        await asyncio.sleep(self.latency)

    def keys(self) -> List[str]:
        """Return all stored keys, sorted."""
        with self._lock:
            return sorted(self._objects)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._objects

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    async def head_bucket(self) -> None:
        await self._pause()
        if not self.bucket_exists:
            raise NotFound("Bucket not found")

    async def head_object(self, key: str) -> ObjectRef:
        await self._pause()
        with self._lock:
            blob = self._objects.get(key)
        if blob is None:
            raise NotFound(f"Object not found: {key}", key)
        return ObjectRef(key, blob.last_modified, len(blob.data))

    async def list_objects_page(
        self,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> ListPage:
        await self._pause()
        prefix = prefix or ""

        with self._lock:
            matching = sorted(
                (key, blob) for key, blob in self._objects.items() if key.startswith(prefix)
            )

        # Entries and grouped prefixes share one ordering, as in S3
        items: List[Tuple[str, Optional[StoredBlob]]] = []
        seen_prefixes = set()
        for key, blob in matching:
            if delimiter:
                idx = key.find(delimiter, len(prefix))
                if idx != -1:
                    group = key[: idx + len(delimiter)]
                    if group not in seen_prefixes:
                        seen_prefixes.add(group)
                        items.append((group, None))
                    continue
            items.append((key, blob))

        start = int(cursor) if cursor else 0
        end = start + self.page_size
        page = ListPage(next_cursor=str(end) if end < len(items) else None)
        for name, blob in items[start:end]:
            if blob is None:
                page.common_prefixes.append(name)
            else:
                page.entries.append(ObjectRef(name, blob.last_modified, len(blob.data)))
        return page

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = CONTENT_TYPE_OCTET_STREAM,
        if_none_match: bool = False,
    ) -> None:
        await self._pause()
        with self._lock:
            if if_none_match and key in self._objects:
                raise AlreadyExists(f"Object already exists: {key}", key)
            self._objects[key] = StoredBlob(bytes(data), content_type, self._clock())

    async def get_object(self, key: str) -> bytes:
        await self._pause()
        with self._lock:
            blob = self._objects.get(key)
        if blob is None:
            raise NotFound(f"Object not found: {key}", key)
        return blob.data

    async def copy_object(self, source: str, dest: str, if_none_match: bool = False) -> None:
        await self._pause()
        with self._lock:
            blob = self._objects.get(source)
            if blob is None:
                raise NotFound(f"Object not found: {source}", source)
            if if_none_match and dest in self._objects:
                raise AlreadyExists(f"Object already exists: {dest}", dest)
            self._objects[dest] = StoredBlob(blob.data, blob.content_type, self._clock())

    async def delete_object(self, key: str) -> None:
        await self._pause()
        with self._lock:
            self._objects.pop(key, None)

    async def delete_objects(self, keys: Iterable[str]) -> int:
        await self._pause()
        deleted = 0
        with self._lock:
            for key in keys:
                if self._objects.pop(key, None) is not None:
                    deleted += 1
        return deleted
