"""
QueryCache — Null (no-op) store.

Never stores anything and has no tag support. Useful for disabling
caching in tests or development without touching query code: every
``remember`` simply runs the query.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

from ..core import CacheEntry
from .base import CacheStore


class NullStore(CacheStore):
    """Store that misses on every lookup and drops every write."""

    @property
    def name(self) -> str:
        return "null"

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        self._stats.misses += 1
        return None

    async def put(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        tags: Tuple[str, ...] = (),
    ) -> None:
        self._stats.sets += 1

    async def forget(self, key: str) -> bool:
        return False

    async def flush(self) -> int:
        return 0
