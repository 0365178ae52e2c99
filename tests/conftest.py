"""Shared fixtures for s3shelf tests."""

from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from s3shelf.cache.memory import MemoryCache
from s3shelf.storage.memory import MemoryBackend
from s3shelf.storage.object_store import ObjectStore


class TickingClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class CountingBackend(MemoryBackend):
    """MemoryBackend that counts calls per operation."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = Counter()

    async def list_objects_page(self, prefix=None, delimiter=None, cursor=None):
        self.calls["list_objects_page"] += 1
        return await super().list_objects_page(prefix, delimiter, cursor)

    async def get_object(self, key):
        self.calls["get_object"] += 1
        return await super().get_object(key)

    async def delete_objects(self, keys):
        keys = list(keys)
        self.calls["delete_objects"] += 1
        return await super().delete_objects(keys)


@pytest.fixture
def clock():
    """Strictly increasing clock for deterministic last_modified values."""
    return TickingClock()


@pytest.fixture
def backend(clock):
    """In-memory backend with a small page size so listings paginate."""
    return CountingBackend(page_size=7, clock=clock)


@pytest.fixture
def store(backend):
    """ObjectStore over the counting in-memory backend."""
    return ObjectStore(backend)


@pytest.fixture
def cache():
    """Empty in-memory cache."""
    return MemoryCache()


@pytest.fixture
def make_backend():
    """Factory for counting backends with custom latency or page size."""

    def factory(**kwargs):
        kwargs.setdefault("clock", TickingClock())
        return CountingBackend(**kwargs)

    return factory
