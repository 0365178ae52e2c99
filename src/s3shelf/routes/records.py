"""Collection endpoints for one record type."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Type

from fastapi import APIRouter, Body, HTTPException, Query, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..cache.gate import CacheGate
from ..config import settings
from ..errors import AlreadyExists
from ..storage.backend import CONTENT_TYPE_JSON
from ..storage.keys import IdExtractor
from ..storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

# Tells any cache in front of this service not to store the response
NO_STORE = {"Cache-Control": "no-store"}


@dataclass
class RecordBinding:
    """Wires a record type to an HTTP path and a storage directory.

    Attributes:
        record_type: Pydantic model stored under this path
        path: Route path, e.g. ``/notes``
        directory: Key prefix the records live under
        id_extractor: Names new objects after a record field
        default_page_size: Records returned by GET without ``limit``
    """

    record_type: Type
    path: str
    directory: str = ""
    id_extractor: Optional[IdExtractor] = None
    default_page_size: int = settings.SHELF_DEFAULT_PAGE_SIZE


def build_record_router(binding: RecordBinding, store: ObjectStore, gate: CacheGate) -> APIRouter:
    """Create GET/POST routes for *binding*.

    Args:
        binding: Record type and path configuration
        store: Object store used for writes
        gate: Cache gate serving reads for the same record type

    Returns:
        Router to include in the application
    """
    record_type = binding.record_type
    type_name = record_type.__name__.lower()
    router = APIRouter(tags=[record_type.__name__])

    @router.get(binding.path, response_model=List[record_type], response_model_exclude_none=True)
    async def list_recent(
        response: Response,
        limit: Optional[int] = Query(
            None, ge=1, le=settings.SHELF_MAX_PAGE_SIZE, description="Number of records to return"
        ),
    ):
        """Return the most recently written records, newest first."""
        records = await gate.get_recent(limit or binding.default_page_size, binding.directory)
        if not records:
            # Never let an empty page be cached above this layer
            response.headers.update(NO_STORE)
        return records

    @router.post(binding.path, status_code=201)
    async def create_record(
        item: Optional[record_type] = Body(None),
        name: Optional[str] = Query(None, description="Object name; generated when omitted"),
        prefix: Optional[str] = Query(None, description="Key prefix; defaults to the collection directory"),
        content_type: str = Query(CONTENT_TYPE_JSON),
        overwrite: bool = Query(True),
    ) -> JSONResponse:
        """Store a record and invalidate the cached pages for its type."""
        if item is None:
            raise HTTPException(400, "Body cannot be null.", headers=NO_STORE)

        try:
            key = await store.put_structure(
                item,
                key=name,
                prefix=binding.directory if prefix is None else prefix,
                content_type=content_type,
                overwrite=overwrite,
                id_extractor=binding.id_extractor,
            )
        except AlreadyExists as e:
            raise HTTPException(409, str(e), headers=NO_STORE)
        gate.invalidate()
        logger.info(f"Created {type_name} at {key}")

        return JSONResponse(
            status_code=201,
            content={"key": key, "item": jsonable_encoder(item, exclude_none=True)},
            headers={"Location": f"/{type_name}/{key}", **NO_STORE},
        )

    return router
