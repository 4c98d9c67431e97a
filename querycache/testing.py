"""
QueryCache Testing — store and connection doubles.

Provides :class:`RecordingStore` and :class:`FakeConnection`.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .faults import UnsupportedOperationFault
from .stores.base import TaggedCache
from .stores.memory import MemoryStore


class RecordingStore(MemoryStore):
    """
    In-memory store that records every compute-once and flush call.

    Tag support can be switched off to exercise fallback paths, and
    individual tags can be made to fail on flush.

    Usage::

        store = RecordingStore(supports_tags=False)
        ...
        assert store.calls == [("remember", "Model:...", 60.0, ())]
    """

    def __init__(
        self,
        supports_tags: bool = True,
        fail_tags: Iterable[str] = (),
        max_size: int = 10000,
    ):
        super().__init__(max_size=max_size)
        self._tags_supported = supports_tags
        self.fail_tags = set(fail_tags)
        self.calls: List[Tuple[Any, ...]] = []
        self.flushed_tags: List[str] = []

    @property
    def name(self) -> str:
        return "recording"

    @property
    def supports_tags(self) -> bool:
        return self._tags_supported

    def with_tags(self, tags: Iterable[str]) -> TaggedCache:
        if not self._tags_supported:
            raise UnsupportedOperationFault(self.name, "with_tags")
        return super().with_tags(tags)

    async def remember_tagged(self, key, ttl, thunk, tags):
        if ttl is None:
            self.calls.append(("remember_forever", key, tuple(tags)))
        else:
            self.calls.append(("remember", key, ttl, tuple(tags)))
        return await super().remember_tagged(key, ttl, thunk, tags)

    async def flush_tag(self, tag: str) -> bool:
        self.calls.append(("flush_tag", tag))
        if not self._tags_supported:
            return False
        if tag in self.fail_tags:
            raise UnsupportedOperationFault(self.name, f"flush_tag({tag})")
        self.flushed_tags.append(tag)
        return await super().flush_tag(tag)

    def reset(self) -> None:
        self.calls.clear()
        self.flushed_tags.clear()


class FakeConnection:
    """
    Connection double that serves canned rows and records executed SQL.

    ``count`` overrides the value returned by ``fetch_val``; by default
    it is the number of canned rows.
    """

    def __init__(self, name: str = "main", rows: Optional[Sequence[Any]] = None, count: Optional[int] = None):
        self.name = name
        self.rows: List[Any] = list(rows or [])
        self.count = count
        self.executed: List[Tuple[str, List[Any]]] = []

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Any]:
        self.executed.append((sql, list(params or [])))
        return list(self.rows)

    async def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        self.executed.append((sql, list(params or [])))
        return self.count if self.count is not None else len(self.rows)

    @property
    def execution_count(self) -> int:
        return len(self.executed)
