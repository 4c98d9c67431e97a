"""
QueryCache — Per-query cache configuration.

``CacheOptions`` is an immutable value. Every setter returns a NEW
options instance (the same cloning discipline a chainable query
builder uses), so a configured value can be shared between queries
without one query's setup leaking into another.

Usage::

    opts = (
        CacheOptions()
        .cache_for(60)
        .cache_tags(["users"])
        .cache_prefix("User")
    )
    opts.should_avoid_cache   # False
    opts.dont_cache().duration  # still 60, but caching is suppressed
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Optional

from .core import FOREVER, Duration, KeyFormat
from .key_builder import DEFAULT_PREFIX


def _tag_set(tags: Optional[Iterable[str]]) -> FrozenSet[str]:
    if tags is None:
        return frozenset()
    if isinstance(tags, str):
        return frozenset((tags,))
    return frozenset(tags)


@dataclass(frozen=True)
class CacheOptions:
    """
    Caching configuration for one query.

    Caching is opt-in: ``suppress`` stays True until a duration is set
    with ``cache_for`` or ``cache_forever``.
    """
    duration: Optional[Duration] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    base_tags: FrozenSet[str] = field(default_factory=frozenset)
    driver: Optional[str] = None
    key_format: KeyFormat = KeyFormat.HASHED
    prefix: str = DEFAULT_PREFIX
    suppress: bool = True

    # ── Duration ─────────────────────────────────────────────────────

    def cache_for(self, duration: Duration) -> "CacheOptions":
        """Cache for ``duration`` seconds, a timedelta, or until a datetime."""
        return replace(self, duration=duration, suppress=False)

    def cache_forever(self) -> "CacheOptions":
        return self.cache_for(FOREVER)

    def dont_cache(self) -> "CacheOptions":
        """
        Suppress caching.

        The configured duration is kept, so ``cache_for`` is needed only
        to change it, not to re-enable it.
        """
        # TODO: decide whether dont_cache should also clear the duration;
        # callers toggling back on currently inherit the previous value.
        return replace(self, suppress=True)

    def do_not_cache(self) -> "CacheOptions":
        return self.dont_cache()

    # ── Tags ─────────────────────────────────────────────────────────

    def cache_tags(self, tags: Optional[Iterable[str]] = None) -> "CacheOptions":
        """Replace the per-query tags."""
        return replace(self, tags=_tag_set(tags))

    def append_cache_tags(self, tags: Optional[Iterable[str]] = None) -> "CacheOptions":
        """Union ``tags`` into the per-query tags."""
        return replace(self, tags=self.tags | _tag_set(tags))

    def cache_base_tags(self, tags: Optional[Iterable[str]] = None) -> "CacheOptions":
        """Set tags applied to every cached query on top of per-query tags."""
        return replace(self, base_tags=_tag_set(tags))

    # ── Keys & store ─────────────────────────────────────────────────

    def cache_prefix(self, prefix: str) -> "CacheOptions":
        return replace(self, prefix=prefix)

    def cache_driver(self, driver: Optional[str]) -> "CacheOptions":
        return replace(self, driver=driver)

    def with_plain_key(self) -> "CacheOptions":
        return replace(self, key_format=KeyFormat.PLAIN)

    # ── Accessors ────────────────────────────────────────────────────

    @property
    def should_avoid_cache(self) -> bool:
        return self.suppress

    @property
    def should_use_plain_key(self) -> bool:
        return self.key_format is KeyFormat.PLAIN

    @property
    def all_tags(self) -> FrozenSet[str]:
        """Per-query tags plus base tags."""
        return self.tags | self.base_tags
