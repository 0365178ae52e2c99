"""Tests for the in-process blob backend."""

import pytest

from s3shelf.errors import AlreadyExists, NotFound
from s3shelf.storage.memory import MemoryBackend


@pytest.fixture
def memory(clock):
    return MemoryBackend(page_size=2, clock=clock)


class TestListing:
    @pytest.mark.asyncio
    async def test_pages_are_sorted_and_cursored(self, memory):
        for key in ["c", "a", "d", "b", "e"]:
            await memory.put_object(key, b"x")

        first = await memory.list_objects_page()
        second = await memory.list_objects_page(cursor=first.next_cursor)
        third = await memory.list_objects_page(cursor=second.next_cursor)

        assert [e.key for e in first.entries] == ["a", "b"]
        assert [e.key for e in second.entries] == ["c", "d"]
        assert [e.key for e in third.entries] == ["e"]
        assert third.next_cursor is None

    @pytest.mark.asyncio
    async def test_delimiter_groups_prefixes(self):
        memory = MemoryBackend()
        for key in ["docs/a", "docs/b/c", "docs/b/d", "docs/e/f", "other"]:
            await memory.put_object(key, b"x")

        page = await memory.list_objects_page(prefix="docs/", delimiter="/")

        assert [e.key for e in page.entries] == ["docs/a"]
        assert page.common_prefixes == ["docs/b/", "docs/e/"]
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_grouped_prefixes_count_toward_page_size(self, memory):
        for key in ["a/1", "a/2", "b/1", "c"]:
            await memory.put_object(key, b"x")

        first = await memory.list_objects_page(delimiter="/")
        second = await memory.list_objects_page(delimiter="/", cursor=first.next_cursor)

        assert first.common_prefixes == ["a/", "b/"]
        assert first.entries == []
        assert [e.key for e in second.entries] == ["c"]

    @pytest.mark.asyncio
    async def test_entries_carry_metadata(self, memory, clock):
        await memory.put_object("a", b"abc")

        (entry,) = (await memory.list_objects_page()).entries

        assert entry.size == 3
        assert entry.last_modified == clock.now

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            MemoryBackend(page_size=0)


class TestWrites:
    @pytest.mark.asyncio
    async def test_conditional_put(self, memory):
        await memory.put_object("a", b"1", if_none_match=True)

        with pytest.raises(AlreadyExists) as exc_info:
            await memory.put_object("a", b"2", if_none_match=True)

        assert exc_info.value.key == "a"
        assert await memory.get_object("a") == b"1"

    @pytest.mark.asyncio
    async def test_get_missing(self, memory):
        with pytest.raises(NotFound):
            await memory.get_object("nope")

    @pytest.mark.asyncio
    async def test_head_object(self, memory):
        await memory.put_object("a", b"12345")

        ref = await memory.head_object("a")

        assert ref.key == "a"
        assert ref.size == 5

    @pytest.mark.asyncio
    async def test_copy_missing_source(self, memory):
        with pytest.raises(NotFound):
            await memory.copy_object("nope", "dest")

    @pytest.mark.asyncio
    async def test_copy_onto_existing_when_conditional(self, memory):
        await memory.put_object("src", b"1")
        await memory.put_object("dest", b"2")

        with pytest.raises(AlreadyExists):
            await memory.copy_object("src", "dest", if_none_match=True)

        await memory.copy_object("src", "dest")
        assert await memory.get_object("dest") == b"1"

    @pytest.mark.asyncio
    async def test_delete_objects_counts_existing_only(self, memory):
        await memory.put_object("a", b"x")
        await memory.put_object("b", b"x")

        assert await memory.delete_objects(["a", "b", "missing"]) == 2
        assert len(memory) == 0

    @pytest.mark.asyncio
    async def test_head_bucket(self):
        await MemoryBackend().head_bucket()

        with pytest.raises(NotFound):
            await MemoryBackend(bucket_exists=False).head_bucket()
