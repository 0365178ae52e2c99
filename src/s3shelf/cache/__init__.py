"""Recent-records cache: key-value store and single-flight gate."""

from .gate import CacheGate, most_recent
from .memory import CacheEntry, CachePriority, MemoryCache

__all__ = ["CacheEntry", "CacheGate", "CachePriority", "MemoryCache", "most_recent"]
