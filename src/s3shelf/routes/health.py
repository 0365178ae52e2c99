"""Health check endpoint."""

import logging

from fastapi import APIRouter, Request

from .. import __version__
from ..config import settings
from ..storage.object_store import ObjectStore

logger = logging.getLogger(__name__)
router = APIRouter()


def check_s3_configuration() -> dict:
    """Check if S3 is configured.

    Returns:
        Status dictionary
    """
    if settings.SHELF_BACKEND == "memory":
        return {"status": "in_memory"}
    if not settings.SHELF_S3_BUCKET:
        return {"status": "not_configured"}
    if not settings.SHELF_S3_ACCESS_KEY_ID or not settings.SHELF_S3_SECRET_ACCESS_KEY:
        return {"status": "missing_credentials"}
    return {
        "status": "configured",
        "bucket": settings.SHELF_S3_BUCKET,
        "endpoint": settings.SHELF_S3_ENDPOINT_URL or None,
    }


async def check_bucket(store: ObjectStore) -> dict:
    """Probe the bucket behind *store*.

    Returns:
        Status dictionary
    """
    try:
        exists = await store.bucket_exists()
    except Exception as e:
        logger.warning(f"Bucket health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy" if exists else "missing"}


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns:
        Service health status
    """
    state = request.app.state
    return {
        "status": "healthy",
        "version": __version__,
        "services": {
            "s3": check_s3_configuration(),
            "bucket": await check_bucket(state.store),
            "cache": {"status": "healthy", "entries": len(state.cache)},
        },
    }
