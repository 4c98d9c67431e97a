"""
QueryCache — In-memory store.

LRU-ordered ``OrderedDict`` with capacity eviction, monotonic TTL
expiry and an inverted tag index for O(m) tag flushes. Safe for
concurrent coroutines via a single ``asyncio.Lock``; ``remember``
runs its thunk once per key under contention.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict, defaultdict
from typing import Any, Dict, Optional, Set, Tuple

from ..core import CacheEntry, CacheStats
from ..faults import CacheConfigFault
from .base import TaggableStore

logger = logging.getLogger("querycache.stores.memory")


class MemoryStore(TaggableStore):
    """
    Process-local taggable store.

    - O(1) get/put/forget with LRU promotion
    - Tag-based group invalidation via inverted index
    - Capacity warning once the store crosses a fill threshold
    """

    def __init__(
        self,
        max_size: int = 10000,
        capacity_warning_threshold: float = 0.85,
    ):
        """
        Args:
            max_size: Maximum number of entries before LRU eviction
            capacity_warning_threshold: Warn when fill ratio exceeds this fraction
        """
        if max_size < 1:
            raise CacheConfigFault(f"max_size must be >= 1, got {max_size}")

        self._max_size = max_size
        self._capacity_warning_threshold = capacity_warning_threshold
        self._capacity_warned = False

        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()

        # Inverted index: tag -> set of keys
        self._tag_index: Dict[str, Set[str]] = defaultdict(set)

        super().__init__()
        self._stats.max_size = max_size

    @property
    def name(self) -> str:
        return "memory"

    async def shutdown(self) -> None:
        await self.flush()

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            if entry.is_expired:
                self._evict_key(key)
                self._stats.misses += 1
                return None

            entry.hits += 1
            self._stats.hits += 1
            self._store.move_to_end(key)
            return entry

    async def put(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        tags: Tuple[str, ...] = (),
    ) -> None:
        async with self._lock:
            if key in self._store:
                self._evict_key(key)

            while len(self._store) >= self._max_size:
                self._evict_one()

            expires_at = None
            if ttl is not None and ttl > 0:
                expires_at = time.monotonic() + ttl

            self._store[key] = CacheEntry(
                key=key,
                value=value,
                expires_at=expires_at,
                tags=tuple(tags),
            )
            for tag in tags:
                self._tag_index[tag].add(key)

            self._stats.sets += 1
            self._stats.size = len(self._store)
            self._check_capacity_warning()

    async def forget(self, key: str) -> bool:
        async with self._lock:
            if key in self._store:
                self._evict_key(key)
                self._stats.deletes += 1
                return True
            return False

    async def flush(self) -> int:
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            self._tag_index.clear()
            self._stats.size = 0
            return count

    async def flush_tag(self, tag: str) -> bool:
        """O(m) tag invalidation via the inverted index."""
        async with self._lock:
            keys = list(self._tag_index.get(tag, ()))
            for key in keys:
                self._evict_key(key)
            self._stats.deletes += len(keys)
            self._stats.tag_flushes += 1
        logger.debug(f"Flushed tag '{tag}' ({len(keys)} entries)")
        return True

    async def keys(self) -> list:
        async with self._lock:
            return [k for k, e in self._store.items() if not e.is_expired]

    async def tagged_keys(self, tag: str) -> Set[str]:
        async with self._lock:
            return set(self._tag_index.get(tag, ()))

    async def stats(self) -> CacheStats:
        self._stats.size = len(self._store)
        return self._stats

    # ── Private helpers ──────────────────────────────────────────────

    def _evict_key(self, key: str) -> None:
        """Remove a key and clean up the tag index. Caller must hold lock."""
        entry = self._store.pop(key, None)
        if entry is None:
            return

        for tag in entry.tags:
            tag_set = self._tag_index.get(tag)
            if tag_set:
                tag_set.discard(key)
                if not tag_set:
                    del self._tag_index[tag]

        self._stats.size = len(self._store)

    def _evict_one(self) -> None:
        """Evict the least recently used entry. Caller must hold lock."""
        if not self._store:
            return
        self._evict_key(next(iter(self._store)))
        self._stats.evictions += 1

    def _check_capacity_warning(self) -> None:
        """Log once when the store is near capacity. Caller must hold lock."""
        ratio = len(self._store) / self._max_size if self._max_size > 0 else 0.0
        if ratio >= self._capacity_warning_threshold and not self._capacity_warned:
            logger.warning(
                f"Query cache capacity at {ratio:.0%} ({len(self._store)}/{self._max_size})"
            )
            self._capacity_warned = True
        elif ratio < self._capacity_warning_threshold * 0.9:
            self._capacity_warned = False
