"""Blob backend capability and the S3-compatible implementation."""

import asyncio
import functools
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Protocol

import boto3
from botocore.exceptions import ClientError

from ..errors import AlreadyExists, NotFound

logger = logging.getLogger(__name__)

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_OCTET_STREAM = "application/octet-stream"

# S3 accepts at most 1000 keys per DeleteObjects request
S3_MAX_DELETE_BATCH = 1000

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}
_CONFLICT_CODES = {"409", "412", "PreconditionFailed", "ConditionalRequestConflict"}


@dataclass(frozen=True)
class ObjectRef:
    """A listing entry: key plus advisory metadata."""

    key: str
    last_modified: Optional[datetime] = None
    size: Optional[int] = None


@dataclass
class ListPage:
    """One page of a listing call."""

    entries: List[ObjectRef] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)
    next_cursor: Optional[str] = None


class BlobBackend(Protocol):
    """Async operations a blob store must provide."""

    max_delete_batch: int

    async def head_bucket(self) -> None: ...

    async def head_object(self, key: str) -> ObjectRef: ...

    async def list_objects_page(
        self,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> ListPage: ...

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = CONTENT_TYPE_OCTET_STREAM,
        if_none_match: bool = False,
    ) -> None: ...

    async def get_object(self, key: str) -> bytes: ...

    async def copy_object(self, source: str, dest: str, if_none_match: bool = False) -> None: ...

    async def delete_object(self, key: str) -> None: ...

    async def delete_objects(self, keys: Iterable[str]) -> int: ...


def error_code(error: ClientError) -> str:
    """Return the S3 error code (or HTTP status) carried by *error*."""
    code = error.response.get("Error", {}).get("Code")
    if code:
        return str(code)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return str(status) if status else ""


def translate_error(error: ClientError, key: str = "") -> Exception:
    """Map a boto error onto the storage taxonomy.

    Returns the original error when it has no counterpart.
    """
    code = error_code(error)
    if code in _NOT_FOUND_CODES:
        return NotFound(f"Object not found: {key}" if key else "Bucket not found", key)
    if code in _CONFLICT_CODES:
        return AlreadyExists(f"Object already exists: {key}", key)
    return error


class S3Backend:
    """Blob backend for S3 and S3-compatible stores (R2, MinIO).

    Credentials default to the SHELF_S3_ACCESS_KEY_ID /
    SHELF_S3_SECRET_ACCESS_KEY environment variables. boto3 is blocking,
    so every call runs in the event loop's default executor.

    Attributes:
        bucket: Bucket name
        endpoint_url: Endpoint URL, None for AWS
        region: Region name
    """

    max_delete_batch = S3_MAX_DELETE_BATCH

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region: str = "us-east-2",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        """Initialize the S3 backend.

        Args:
            bucket: Bucket name
            endpoint_url: S3-compatible endpoint URL (None for AWS)
            region: Region name
            access_key_id: Access key, defaults to SHELF_S3_ACCESS_KEY_ID
            secret_access_key: Secret key, defaults to SHELF_S3_SECRET_ACCESS_KEY

        Raises:
            ValueError: If the bucket or either credential is missing
        """
        if not bucket:
            raise ValueError("S3 bucket name is required (SHELF_S3_BUCKET)")

        access_key = access_key_id or os.environ.get("SHELF_S3_ACCESS_KEY_ID")
        secret_key = secret_access_key or os.environ.get("SHELF_S3_SECRET_ACCESS_KEY")

        if not access_key or not secret_key:
            raise ValueError(
                "S3 credentials not set. "
                "Set SHELF_S3_ACCESS_KEY_ID and SHELF_S3_SECRET_ACCESS_KEY environment variables."
            )

        self.bucket = bucket
        self.endpoint_url = endpoint_url or None
        self.region = region

        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    async def _call(self, operation: str, key: str = "", **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        method = getattr(self._client, operation)
        try:
            return await loop.run_in_executor(
                None, functools.partial(method, Bucket=self.bucket, **kwargs)
            )
        except ClientError as e:
            translated = translate_error(e, key)
            if translated is e:
                raise
            raise translated from e

    async def head_bucket(self) -> None:
        await self._call("head_bucket")

    async def head_object(self, key: str) -> ObjectRef:
        resp = await self._call("head_object", key, Key=key)
        return ObjectRef(
            key=key,
            last_modified=resp.get("LastModified"),
            size=resp.get("ContentLength"),
        )

    async def list_objects_page(
        self,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> ListPage:
        kwargs: dict = {}
        if prefix:
            kwargs["Prefix"] = prefix
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if cursor:
            kwargs["ContinuationToken"] = cursor

        resp = await self._call("list_objects_v2", **kwargs)

        entries = [
            ObjectRef(
                key=obj["Key"],
                last_modified=obj.get("LastModified"),
                size=obj.get("Size"),
            )
            for obj in resp.get("Contents", [])
        ]
        common_prefixes = [p["Prefix"] for p in resp.get("CommonPrefixes", [])]
        next_cursor = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None

        logger.debug(
            f"Listed {len(entries)} objects, {len(common_prefixes)} prefixes "
            f"under '{prefix or ''}' (more={next_cursor is not None})"
        )
        return ListPage(entries, common_prefixes, next_cursor)

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = CONTENT_TYPE_OCTET_STREAM,
        if_none_match: bool = False,
    ) -> None:
        kwargs: dict = {"Key": key, "Body": data, "ContentType": content_type}
        if if_none_match:
            kwargs["IfNoneMatch"] = "*"
        await self._call("put_object", key, **kwargs)

    async def get_object(self, key: str) -> bytes:
        def read() -> bytes:
            resp = self._client.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, read)
        except ClientError as e:
            translated = translate_error(e, key)
            if translated is e:
                raise
            raise translated from e

    async def copy_object(self, source: str, dest: str, if_none_match: bool = False) -> None:
        if if_none_match:
            # CopyObject has no create-only precondition; probe the destination
            try:
                await self.head_object(dest)
            except NotFound:
                pass
            else:
                raise AlreadyExists(f"Object already exists: {dest}", dest)

        await self._call(
            "copy_object",
            source,
            Key=dest,
            CopySource={"Bucket": self.bucket, "Key": source},
        )

    async def delete_object(self, key: str) -> None:
        await self._call("delete_object", key, Key=key)

    async def delete_objects(self, keys: Iterable[str]) -> int:
        objects = [{"Key": key} for key in keys]
        if not objects:
            return 0

        resp = await self._call(
            "delete_objects",
            Delete={"Objects": objects, "Quiet": False},
        )
        for err in resp.get("Errors", []):
            logger.warning(
                f"Failed to delete {err.get('Key')}: {err.get('Code')} {err.get('Message')}"
            )
        return len(resp.get("Deleted", []))
