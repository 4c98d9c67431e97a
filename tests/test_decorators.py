"""
Tests for the @invalidates_tags decorator.
"""

from __future__ import annotations

import pytest

from querycache.decorators import invalidates_tags
from querycache.stores import MemoryStore, NullStore, StoreManager
from querycache.testing import RecordingStore


class UserRepository:

    def __init__(self, cache_manager):
        self.cache_manager = cache_manager
        self.renamed = []

    @invalidates_tags("users", "profiles")
    async def rename(self, user_id, name):
        self.renamed.append((user_id, name))
        return name

    @invalidates_tags("users")
    async def fail(self):
        raise RuntimeError("write failed")

    @invalidates_tags("users")
    def sync_write(self):
        return "done"


class TestInvalidatesTags:

    @pytest.mark.asyncio
    async def test_flushes_after_success(self, manager, recording_store):
        repo = UserRepository(manager)
        assert await repo.rename(1, "alice") == "alice"
        assert recording_store.flushed_tags == ["users", "profiles"]

    @pytest.mark.asyncio
    async def test_evicts_cached_entries(self):
        store = MemoryStore()
        repo = UserRepository(StoreManager({"memory": store}))
        await store.put("k", 1, tags=("users",))

        await repo.rename(1, "alice")
        assert await store.has("k") is False

    @pytest.mark.asyncio
    async def test_no_flush_on_error(self, manager, recording_store):
        repo = UserRepository(manager)
        with pytest.raises(RuntimeError):
            await repo.fail()
        assert recording_store.calls == []

    @pytest.mark.asyncio
    async def test_sync_function(self, manager, recording_store):
        assert await UserRepository(manager).sync_write() == "done"
        assert recording_store.flushed_tags == ["users"]

    @pytest.mark.asyncio
    async def test_explicit_manager_and_store(self):
        tagged = RecordingStore()
        manager = StoreManager({"null": NullStore(), "tagged": tagged})

        @invalidates_tags("posts", manager=manager, store="tagged")
        async def publish():
            return True

        assert await publish() is True
        assert tagged.flushed_tags == ["posts"]

    @pytest.mark.asyncio
    async def test_store_without_tags_is_skipped(self, untagged_store):
        repo = UserRepository(StoreManager({"recording": untagged_store}))
        await repo.rename(1, "bob")
        assert untagged_store.calls == []

    @pytest.mark.asyncio
    async def test_failing_tag_does_not_stop_others(self):
        store = RecordingStore(fail_tags={"users"})
        repo = UserRepository(StoreManager({"recording": store}))
        await repo.rename(1, "carol")
        assert store.flushed_tags == ["profiles"]

    @pytest.mark.asyncio
    async def test_no_manager_available(self):
        @invalidates_tags("users")
        async def orphan():
            return 1

        assert await orphan() == 1

    def test_metadata(self):
        assert UserRepository.rename.__invalidates_tags__ == ("users", "profiles")
        assert UserRepository.rename.__name__ == "rename"
