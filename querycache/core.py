"""
QueryCache — Core types, protocols, and data structures.

Defines the contracts the cache layer consumes (``QueryExecutor``),
the value types it passes around (durations, key formats, entries,
stats) and the duration arithmetic shared by every store.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Any,
    Dict,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)


# ============================================================================
# Durations
# ============================================================================

class _Forever:
    """Sentinel duration: cache with no expiry."""

    _instance: Optional["_Forever"] = None

    def __new__(cls) -> "_Forever":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "FOREVER"

    def __reduce__(self):
        return (_Forever, ())


FOREVER = _Forever()

Duration = Union[int, float, timedelta, datetime, _Forever]


def has_expiry(duration: Any) -> bool:
    """
    Whether ``duration`` should be stored with a TTL.

    Absolute instants always carry an expiry. Numbers and timedeltas
    carry one only when positive; everything else (``FOREVER``,
    non-positive numbers, ``None``) is stored without expiry.
    """
    if isinstance(duration, datetime):
        return True
    if isinstance(duration, timedelta):
        return duration.total_seconds() > 0
    if isinstance(duration, bool):
        return False
    if isinstance(duration, (int, float)):
        return duration > 0
    return False


def ttl_seconds(duration: Duration) -> float:
    """
    Convert a duration into seconds-from-now.

    Absolute instants in the past yield a non-positive number; stores
    treat that as "do not store".
    """
    if isinstance(duration, datetime):
        now = datetime.now(tz=duration.tzinfo)
        return (duration - now).total_seconds()
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        return float(duration)
    raise TypeError(f"Duration {duration!r} has no finite TTL")


# ============================================================================
# Key format
# ============================================================================

class KeyFormat(str, Enum):
    """How the generated cache key is rendered."""
    HASHED = "hashed"   # SHA-256 hex digest of the plain key
    PLAIN = "plain"     # Raw concatenation, for debugging


# ============================================================================
# Query executor contract
# ============================================================================

@runtime_checkable
class QueryExecutor(Protocol):
    """
    Contract the cache layer needs from the query being cached.

    The executor exposes its connection identity, a deterministic SQL
    rendering, its positional bindings, and a coroutine that runs the
    query for an operation kind.
    """

    @property
    def connection_name(self) -> str:
        ...

    def to_sql(self) -> str:
        ...

    def get_bindings(self) -> Sequence[Any]:
        ...

    async def execute(
        self,
        operation: str = "get",
        columns: Sequence[str] = ("*",),
        row_id: Any = None,
    ) -> Any:
        ...


# ============================================================================
# Cache Entry
# ============================================================================

@dataclass(slots=True)
class CacheEntry:
    """
    Single stored value with expiry and tag metadata.
    """
    key: str
    value: Any
    created_at: float = field(default_factory=time.monotonic)
    expires_at: Optional[float] = None
    tags: Tuple[str, ...] = ()
    hits: int = 0

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return time.monotonic() >= self.expires_at

    @property
    def ttl_remaining(self) -> Optional[float]:
        """Remaining TTL in seconds, or None if no expiry."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def __repr__(self) -> str:
        ttl = f", ttl={self.ttl_remaining:.1f}s" if self.ttl_remaining else ""
        return f"<CacheEntry key={self.key!r} tags={list(self.tags)} hits={self.hits}{ttl}>"


# ============================================================================
# Cache Stats
# ============================================================================

@dataclass
class CacheStats:
    """Aggregate store statistics for observability."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    errors: int = 0
    tag_flushes: int = 0
    singleflight_joins: int = 0   # remember() calls served by a concurrent computation
    size: int = 0
    max_size: int = 0
    store: str = "unknown"

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits / total) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "errors": self.errors,
            "tag_flushes": self.tag_flushes,
            "singleflight_joins": self.singleflight_joins,
            "hit_rate": round(self.hit_rate, 2),
            "size": self.size,
            "max_size": self.max_size,
            "store": self.store,
        }
