"""Generic object-store operations over a blob backend.

ObjectStore adds key normalization, pagination, typed JSON records,
prefix deletion and rename on top of a :class:`BlobBackend`. Every
operation is a coroutine; cancellation is ordinary asyncio task
cancellation.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, BinaryIO, List, Optional, Set, Type, TypeVar

from ..errors import InvalidArgument, NotFound
from .backend import CONTENT_TYPE_JSON, CONTENT_TYPE_OCTET_STREAM, BlobBackend, ObjectRef
from .codec import codec_for
from .keys import DELIMITER, IdExtractor, compose_key, normalize_key, render_identifier, synthesize_name

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _require_key(key: Optional[str], name: str = "key") -> str:
    if key is None or not key.strip():
        raise InvalidArgument(f"{name} is required")
    return normalize_key(key)


class ObjectStore:
    """Typed record storage on top of a blob backend.

    Attributes:
        backend: Blob backend performing the I/O
        delete_batch_size: Keys per batch delete, capped by the backend limit
    """

    def __init__(self, backend: BlobBackend, delete_batch_size: Optional[int] = None):
        """Initialize the store.

        Args:
            backend: Blob backend
            delete_batch_size: Keys per batch delete (default: backend maximum)
        """
        self.backend = backend
        limit = getattr(backend, "max_delete_batch", 1000)
        if delete_batch_size is None or delete_batch_size <= 0:
            delete_batch_size = limit
        self.delete_batch_size = min(delete_batch_size, limit)

    async def bucket_exists(self) -> bool:
        """Check whether the backing bucket exists."""
        try:
            await self.backend.head_bucket()
            return True
        except NotFound:
            return False

    async def object_exists(self, key: str) -> bool:
        """Check whether an object exists at *key*."""
        key = _require_key(key)
        try:
            await self.backend.head_object(key)
            return True
        except NotFound:
            return False

    async def list_objects(self, prefix: Optional[str] = None) -> AsyncIterator[ObjectRef]:
        """Yield every object under *prefix*, following continuation cursors.

        Directory markers (keys ending in ``/``) are skipped. The listing is
        lazy; callers decide whether to materialize it.
        """
        cursor = None
        while True:
            page = await self.backend.list_objects_page(prefix=prefix or None, cursor=cursor)
            for entry in page.entries:
                if not entry.key.endswith(DELIMITER):
                    yield entry
            cursor = page.next_cursor
            if cursor is None:
                break

    async def list_keys(self, prefix: Optional[str] = None) -> List[ObjectRef]:
        """Materialize :meth:`list_objects` into a list."""
        return [entry async for entry in self.list_objects(prefix)]

    async def list_directories(self, prefix: Optional[str] = None) -> Set[str]:
        """Return the "folders" directly below *prefix*.

        Uses delimiter grouping and returns the common prefixes verbatim
        (including the trailing ``/``).
        """
        results: Set[str] = set()
        cursor = None
        while True:
            page = await self.backend.list_objects_page(
                prefix=prefix or None, delimiter=DELIMITER, cursor=cursor
            )
            results.update(page.common_prefixes)
            cursor = page.next_cursor
            if cursor is None:
                break
        return results

    async def upload_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str = CONTENT_TYPE_OCTET_STREAM,
        overwrite: bool = False,
    ) -> str:
        """Upload raw bytes.

        Args:
            key: Object key (normalized before use)
            data: Payload
            content_type: MIME type stored with the object
            overwrite: When False the write fails if *key* is occupied

        Returns:
            The normalized key

        Raises:
            InvalidArgument: If *key* is blank
            AlreadyExists: If *overwrite* is False and the key is occupied
        """
        key = _require_key(key)
        await self.backend.put_object(key, data, content_type, if_none_match=not overwrite)
        logger.debug(f"Uploaded {len(data)} bytes to {key} (overwrite={overwrite})")
        return key

    async def upload_typed(
        self,
        key: str,
        value: Any,
        content_type: str = CONTENT_TYPE_JSON,
        overwrite: bool = False,
    ) -> str:
        """Encode *value* as JSON and upload it. See :meth:`upload_bytes`."""
        data = codec_for(type(value)).encode(value)
        return await self.upload_bytes(key, data, content_type, overwrite)

    async def put_structure(
        self,
        value: Any,
        key: Optional[str] = None,
        prefix: str = "",
        content_type: str = CONTENT_TYPE_JSON,
        overwrite: bool = True,
        id_extractor: Optional[IdExtractor] = None,
    ) -> str:
        """Store a record, naming it after the record when no key is given.

        Without a *key* the object is named ``{type}-{id}.json`` where the
        id comes from *id_extractor*, or is a fresh random token when the
        extractor is absent or finds nothing.

        Returns:
            The final normalized key

        Raises:
            InvalidArgument: If *value* is None
        """
        if value is None:
            raise InvalidArgument("value is required")

        if key is None or not key.strip():
            identifier = render_identifier(id_extractor(value)) if id_extractor is not None else None
            key = synthesize_name(type(value).__name__, identifier)

        full_key = compose_key(prefix, key)
        return await self.upload_typed(full_key, value, content_type, overwrite)

    async def download_bytes(self, key: str) -> bytes:
        """Download an object's payload.

        Raises:
            InvalidArgument: If *key* is blank
            NotFound: If the object does not exist
        """
        key = _require_key(key)
        return await self.backend.get_object(key)

    async def download_typed(self, key: str, record_type: Type[T]) -> T:
        """Download and decode an object.

        Raises:
            DecodeError: If the payload is empty, ``null`` or invalid
        """
        data = await self.download_bytes(key)
        return codec_for(record_type).decode(data, key)

    async def download_optional(self, key: str, record_type: Type[T]) -> Optional[T]:
        """Like :meth:`download_typed` but returns None for empty/``null`` payloads."""
        data = await self.download_bytes(key)
        return codec_for(record_type).decode_optional(data, key)

    async def download_to(self, key: str, target: BinaryIO) -> int:
        """Write an object's payload into a binary file-like object.

        Returns:
            Number of bytes written
        """
        data = await self.download_bytes(key)
        target.write(data)
        return len(data)

    async def list_typed(self, prefix: str, suffix: str, record_type: Type[T]) -> List[T]:
        """Download every record under *prefix* whose key ends with *suffix*.

        Suffix matching ignores case. Downloads run concurrently; records
        with an empty or ``null`` payload are skipped.
        """
        suffix = suffix.lower()
        keys = [entry.key async for entry in self.list_objects(prefix) if entry.key.lower().endswith(suffix)]
        values = await asyncio.gather(*(self.download_optional(key, record_type) for key in keys))
        return [value for value in values if value is not None]

    async def delete_object(self, key: str) -> bool:
        """Delete one object.

        Returns:
            True if the object was deleted, False if it did not exist
        """
        key = _require_key(key)
        try:
            await self.backend.head_object(key)
        except NotFound:
            return False
        await self.backend.delete_object(key)
        logger.debug(f"Deleted {key}")
        return True

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every object under *prefix* in backend-sized batches.

        Returns:
            Number of objects the backend reports as deleted (0 if none matched)
        """
        keys = [entry.key for entry in await self.list_keys(prefix)]
        deleted = 0
        for start in range(0, len(keys), self.delete_batch_size):
            deleted += await self.backend.delete_objects(keys[start : start + self.delete_batch_size])

        if keys:
            logger.info(f"Deleted {deleted}/{len(keys)} objects under '{prefix}'")
        return deleted

    async def rename_object(self, source: str, dest: str, overwrite: bool = False) -> None:
        """Move an object by copying it to *dest* and deleting *source*.

        This is NOT atomic. If the delete fails after a successful copy,
        both keys stay populated and nothing is rolled back; the delete
        error propagates to the caller.

        Raises:
            InvalidArgument: If either key is blank
            NotFound: If *source* does not exist
            AlreadyExists: If *overwrite* is False and *dest* is occupied
        """
        source = _require_key(source, "source")
        dest = _require_key(dest, "dest")

        try:
            await self.backend.head_object(source)
        except NotFound:
            raise NotFound(f"Source object not found: {source}", source) from None

        await self.backend.copy_object(source, dest, if_none_match=not overwrite)
        try:
            await self.backend.delete_object(source)
        except Exception:
            logger.warning(f"Copied {source} to {dest} but failed to delete the source")
            raise
        logger.debug(f"Renamed {source} to {dest}")
