"""Storage layer: keys, JSON codec, blob backends and the object store."""

from .backend import BlobBackend, ListPage, ObjectRef, S3Backend
from .codec import JsonCodec, Record, codec_for
from .keys import compose_key, id_from_fields, normalize_key, render_identifier, synthesize_name
from .memory import MemoryBackend
from .object_store import ObjectStore

__all__ = [
    "BlobBackend",
    "JsonCodec",
    "ListPage",
    "MemoryBackend",
    "ObjectRef",
    "ObjectStore",
    "Record",
    "S3Backend",
    "codec_for",
    "compose_key",
    "id_from_fields",
    "normalize_key",
    "render_identifier",
    "synthesize_name",
]
