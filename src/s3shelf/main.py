"""FastAPI application factory."""

import importlib
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Sequence

from fastapi import FastAPI

from . import __version__
from .cache.gate import CacheGate
from .cache.memory import MemoryCache
from .config import Settings, settings
from .logging_config import setup_logging
from .routes import health
from .routes.records import RecordBinding, build_record_router
from .storage.backend import BlobBackend, S3Backend
from .storage.memory import MemoryBackend
from .storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


def build_backend(config: Settings = settings) -> BlobBackend:
    """Create the blob backend selected by SHELF_BACKEND.

    Raises:
        ValueError: For an unknown backend or missing S3 configuration
    """
    if config.SHELF_BACKEND == "memory":
        return MemoryBackend()
    if config.SHELF_BACKEND != "s3":
        raise ValueError(f"Unknown SHELF_BACKEND: {config.SHELF_BACKEND}")
    return S3Backend(
        bucket=config.SHELF_S3_BUCKET,
        endpoint_url=config.SHELF_S3_ENDPOINT_URL or None,
        region=config.SHELF_S3_REGION,
        access_key_id=config.SHELF_S3_ACCESS_KEY_ID or None,
        secret_access_key=config.SHELF_S3_SECRET_ACCESS_KEY or None,
    )


def build_store(config: Settings = settings) -> ObjectStore:
    """Create an ObjectStore from configuration."""
    return ObjectStore(build_backend(config), delete_batch_size=config.SHELF_DELETE_BATCH_SIZE)


def load_bindings(path: str) -> List[RecordBinding]:
    """Import record bindings from a ``module:attribute`` path.

    The attribute may be a sequence of bindings or a callable returning one.
    A blank path yields no bindings.

    Args:
        path: Import path such as ``myapp.records:BINDINGS``

    Returns:
        List of bindings

    Raises:
        ValueError: If the path is malformed or does not name bindings
    """
    if not path or not path.strip():
        return []

    module_name, sep, attribute = path.strip().partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Bindings path must look like 'module:attribute', got '{path}'")

    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Cannot load bindings from '{path}': {e}") from e

    if callable(target):
        target = target()

    bindings = list(target)
    for binding in bindings:
        if not isinstance(binding, RecordBinding):
            raise ValueError(f"'{path}' contains {binding!r}, which is not a RecordBinding")
    return bindings


def create_app(
    bindings: Optional[Sequence[RecordBinding]] = None,
    store: Optional[ObjectStore] = None,
    cache: Optional[MemoryCache] = None,
) -> FastAPI:
    """Build the HTTP application.

    Args:
        bindings: Record types to expose, one collection route each
            (default: loaded from SHELF_BINDINGS)
        store: Object store (default: built from settings)
        cache: Shared cache (default: bounded MemoryCache)

    Returns:
        FastAPI application

    Raises:
        ValueError: If a record type is bound more than once
    """
    if bindings is None:
        bindings = load_bindings(settings.SHELF_BINDINGS)
    if store is None:
        store = build_store()
    if cache is None:
        cache = MemoryCache(max_entries=settings.SHELF_CACHE_MAX_ENTRIES)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Log startup state and warn when the bucket is missing."""
        logger.info(f"s3shelf {__version__} starting with {len(bindings)} record type(s)")
        bucket = await health.check_bucket(store)
        if bucket["status"] != "healthy":
            logger.warning(f"Bucket check at startup: {bucket}")
        yield
        cache.clear()

    app = FastAPI(
        title="s3shelf",
        version=__version__,
        lifespan=lifespan,
    )

    gates: Dict[type, CacheGate] = {}
    for binding in bindings:
        if binding.record_type in gates:
            # Gates for one type would share the same cache slots
            raise ValueError(
                f"{binding.record_type.__name__} is already bound; "
                f"each record type can be exposed at one path only"
            )
        gate = CacheGate(
            store,
            binding.record_type,
            cache,
            ttl=settings.SHELF_CACHE_TTL_SECONDS,
            retry_delay=settings.SHELF_EMPTY_RETRY_DELAY,
        )
        gates[binding.record_type] = gate
        app.include_router(build_record_router(binding, store, gate), prefix="/api/v1")

    app.state.store = store
    app.state.cache = cache
    app.state.gates = gates

    app.include_router(health.router, prefix="/api/v1")

    @app.get("/")
    async def root() -> dict:
        """Root endpoint.

        Returns:
            Service info
        """
        return {
            "message": "s3shelf",
            "version": __version__,
            "collections": [binding.path for binding in bindings],
        }

    return app


def main(host: str = "0.0.0.0", port: int = 8000, bindings: Optional[str] = None) -> None:
    """Entry point for running the service directly.

    Args:
        host: Interface to bind
        port: Port to listen on
        bindings: ``module:attribute`` path of the record bindings to serve
            (default: SHELF_BINDINGS)
    """
    import uvicorn

    if bindings is not None:
        settings.SHELF_BINDINGS = bindings

    setup_logging(settings.SHELF_LOG_LEVEL, settings.SHELF_LOG_DIR)
    uvicorn.run(
        "s3shelf.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
