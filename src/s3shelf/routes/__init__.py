"""HTTP routes."""

from .records import NO_STORE, RecordBinding, build_record_router

__all__ = ["NO_STORE", "RecordBinding", "build_record_router"]
