"""
QueryCache — Store contracts.

``CacheStore`` is the storage contract the orchestrator consumes.
Stores own expiry, eviction and the compute-once guarantee of
``remember``. Tag support is an explicit capability: stores that can
group entries under tags subclass ``TaggableStore`` and report
``supports_tags = True``; everything else reports False and
``flush_tag`` returns False instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from ..core import CacheEntry, CacheStats, Duration, ttl_seconds
from ..faults import UnsupportedOperationFault

logger = logging.getLogger("querycache.stores")

Thunk = Callable[[], Awaitable[Any]]


class CacheStore(ABC):
    """
    Abstract cache store.

    Subclasses implement entry CRUD; ``remember`` and
    ``remember_forever`` are built on top with per-key singleflight so
    concurrent misses for the same key run the thunk once.
    """

    def __init__(self) -> None:
        self._stats = CacheStats(store=self.name)
        self._inflight_locks: Dict[str, asyncio.Lock] = {}
        self._inflight_waiters: Dict[str, int] = {}
        self._inflight_owners: Dict[str, Optional[asyncio.Task]] = {}

    # ── Identity & capabilities ──────────────────────────────────────

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name for diagnostics."""
        ...

    @property
    def supports_tags(self) -> bool:
        return False

    def with_tags(self, tags: Iterable[str]) -> "TaggedCache":
        raise UnsupportedOperationFault(self.name, "with_tags")

    async def flush_tag(self, tag: str) -> bool:
        """Tag flushing is unsupported on plain stores."""
        return False

    # ── Lifecycle ────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Acquire store resources (connections, sweepers)."""

    async def shutdown(self) -> None:
        """Release store resources."""

    # ── Entry operations ─────────────────────────────────────────────

    @abstractmethod
    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key`` or None."""
        ...

    @abstractmethod
    async def put(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        tags: Tuple[str, ...] = (),
    ) -> None:
        """Store ``value``. ``ttl`` is seconds from now; None means no expiry."""
        ...

    @abstractmethod
    async def forget(self, key: str) -> bool:
        ...

    @abstractmethod
    async def flush(self) -> int:
        """Remove every entry. Returns the number removed."""
        ...

    async def stats(self) -> CacheStats:
        return self._stats

    async def get(self, key: str, default: Any = None) -> Any:
        entry = await self.get_entry(key)
        if entry is None:
            return default
        return entry.value

    async def has(self, key: str) -> bool:
        return await self.get_entry(key) is not None

    # ── Compute-once ─────────────────────────────────────────────────

    async def remember(self, key: str, duration: Duration, thunk: Thunk) -> Any:
        """
        Return the value under ``key``, computing and storing it on a miss.

        ``duration`` is seconds, a timedelta or an absolute datetime. A
        duration that is already over runs the thunk without storing.
        """
        return await self.remember_tagged(key, ttl_seconds(duration), thunk, ())

    async def remember_forever(self, key: str, thunk: Thunk) -> Any:
        return await self.remember_tagged(key, None, thunk, ())

    async def remember_tagged(
        self,
        key: str,
        ttl: Optional[float],
        thunk: Thunk,
        tags: Tuple[str, ...],
    ) -> Any:
        async with self._singleflight(key):
            entry = await self.get_entry(key)
            if entry is not None:
                return entry.value

            value = await thunk()

            if ttl is not None and ttl <= 0:
                logger.debug(f"Duration for key '{key}' already elapsed, not storing")
                return value

            await self.put(key, value, ttl=ttl, tags=tags)
            return value

    @asynccontextmanager
    async def _singleflight(self, key: str) -> AsyncIterator[None]:
        """
        Serialize compute-once sections per key.

        A task that already holds the key (its thunk reached the same
        key again) passes straight through. Tasks spawned by a thunk do
        not inherit the hold and must not wait on the same key.
        """
        task = asyncio.current_task()
        if task is not None and self._inflight_owners.get(key) is task:
            logger.debug(f"Re-entrant compute for key '{key}', skipping singleflight")
            yield
            return

        lock = self._inflight_locks.get(key)
        if lock is None:
            lock = self._inflight_locks[key] = asyncio.Lock()
        elif lock.locked():
            self._stats.singleflight_joins += 1

        self._inflight_waiters[key] = self._inflight_waiters.get(key, 0) + 1
        try:
            async with lock:
                self._inflight_owners[key] = task
                try:
                    yield
                finally:
                    del self._inflight_owners[key]
        finally:
            self._inflight_waiters[key] -= 1
            if self._inflight_waiters[key] == 0:
                del self._inflight_waiters[key]
                del self._inflight_locks[key]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} tags={self.supports_tags}>"


class TaggableStore(CacheStore):
    """A store that can group entries under tags and flush them together."""

    @property
    def supports_tags(self) -> bool:
        return True

    def with_tags(self, tags: Iterable[str]) -> "TaggedCache":
        return TaggedCache(self, tags)

    @abstractmethod
    async def flush_tag(self, tag: str) -> bool:
        """Remove every entry carrying ``tag``."""
        ...


class TaggedCache:
    """
    Tag-scoped view over a ``TaggableStore``.

    Entries written through the view are registered under every tag of
    the view. Views hold no resources and need no release.
    """

    __slots__ = ("_store", "_tags")

    def __init__(self, store: TaggableStore, tags: Iterable[str]):
        self._store = store
        self._tags: FrozenSet[str] = frozenset(tags)

    @property
    def tags(self) -> FrozenSet[str]:
        return self._tags

    @property
    def store(self) -> TaggableStore:
        return self._store

    @property
    def supports_tags(self) -> bool:
        return True

    @property
    def name(self) -> str:
        return self._store.name

    def _tag_tuple(self) -> Tuple[str, ...]:
        return tuple(sorted(self._tags))

    async def get(self, key: str, default: Any = None) -> Any:
        return await self._store.get(key, default)

    async def put(self, key: str, value: Any, duration: Optional[Duration] = None) -> None:
        ttl = ttl_seconds(duration) if duration is not None else None
        await self._store.put(key, value, ttl=ttl, tags=self._tag_tuple())

    async def remember(self, key: str, duration: Duration, thunk: Thunk) -> Any:
        return await self._store.remember_tagged(key, ttl_seconds(duration), thunk, self._tag_tuple())

    async def remember_forever(self, key: str, thunk: Thunk) -> Any:
        return await self._store.remember_tagged(key, None, thunk, self._tag_tuple())

    async def flush_tag(self, tag: str) -> bool:
        return await self._store.flush_tag(tag)

    async def flush(self) -> bool:
        """Flush every tag of this view."""
        results = [await self._store.flush_tag(tag) for tag in self._tag_tuple()]
        return all(results)

    def __repr__(self) -> str:
        return f"<TaggedCache store={self._store.name!r} tags={sorted(self._tags)}>"
