"""
QueryCache — Cache orchestrator.

Decides cache-or-execute for one query and manages tag invalidation.

Flow of ``get_cached_result``::

    options ──► key builder ──► "{prefix}:{sha256(...)}"
       │
       └──► StoreManager.driver(name) ──► with_tags(tags) if supported
                                              │
                 remember(key, ttl, thunk) ◄──┘  (or remember_forever)

The thunk marks the orchestrator as suppressed while the query runs,
so cache-aware accessors re-entered by the execution path go straight
to the database instead of recursing into the cache.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Optional, Union

from .core import Duration, QueryExecutor, has_expiry
from .faults import UnsupportedOperationFault
from .key_builder import QueryKeyBuilder
from .options import CacheOptions
from .stores.base import CacheStore, TaggedCache
from .stores.manager import StoreManager

logger = logging.getLogger("querycache.orchestrator")

ExecuteFn = Callable[[], Any]


class QueryCache:
    """
    Cache orchestrator bound to one query executor.

    Holds the query's ``CacheOptions`` and swaps them for new values on
    every setter, so the chainable setters below return ``self`` while
    the options values themselves stay immutable.

    Usage::

        cache = QueryCache(query, manager).cache_for(60).cache_tags(["users"])
        rows = await cache.get_cached_result("get", None, query.fetch_rows)

        # After a write to the users table
        await cache.flush_tags(["users"])

    A QueryCache instance must not be shared by concurrently running
    queries: the suppress flag is instance state.
    """

    __slots__ = ("_executor", "_stores", "_options", "_key_builder")

    def __init__(
        self,
        executor: QueryExecutor,
        stores: StoreManager,
        options: Optional[CacheOptions] = None,
    ):
        self._executor = executor
        self._stores = stores
        self._options = options or CacheOptions()
        self._key_builder = QueryKeyBuilder(executor)

    # ── Configuration ────────────────────────────────────────────────

    @property
    def options(self) -> CacheOptions:
        return self._options

    @property
    def stores(self) -> StoreManager:
        return self._stores

    def configure(self, options: CacheOptions) -> "QueryCache":
        self._options = options
        return self

    def cache_for(self, duration: Duration) -> "QueryCache":
        return self.configure(self._options.cache_for(duration))

    def cache_forever(self) -> "QueryCache":
        return self.configure(self._options.cache_forever())

    def dont_cache(self) -> "QueryCache":
        return self.configure(self._options.dont_cache())

    def do_not_cache(self) -> "QueryCache":
        return self.dont_cache()

    def cache_tags(self, tags: Optional[Iterable[str]] = None) -> "QueryCache":
        return self.configure(self._options.cache_tags(tags))

    def append_cache_tags(self, tags: Optional[Iterable[str]] = None) -> "QueryCache":
        return self.configure(self._options.append_cache_tags(tags))

    def cache_base_tags(self, tags: Optional[Iterable[str]] = None) -> "QueryCache":
        return self.configure(self._options.cache_base_tags(tags))

    def cache_prefix(self, prefix: str) -> "QueryCache":
        return self.configure(self._options.cache_prefix(prefix))

    def cache_driver(self, driver: Optional[str]) -> "QueryCache":
        return self.configure(self._options.cache_driver(driver))

    def with_plain_key(self) -> "QueryCache":
        return self.configure(self._options.with_plain_key())

    def should_avoid_cache(self) -> bool:
        return self._options.should_avoid_cache

    # ── Keys ─────────────────────────────────────────────────────────

    def generate_plain_cache_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
    ) -> str:
        return self._key_builder.generate_plain_key(operation, row_id, suffix)

    def generate_cache_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
    ) -> str:
        return self._key_builder.generate_key(
            operation, row_id, suffix, self._options.key_format,
        )

    def get_cache_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
    ) -> str:
        return self._key_builder.get_cache_key(
            operation,
            row_id,
            suffix,
            key_format=self._options.key_format,
            prefix=self._options.prefix,
        )

    # ── Store resolution ─────────────────────────────────────────────

    def get_store(self) -> CacheStore:
        """The configured store, without tag scoping."""
        return self._stores.driver(self._options.driver)

    def get_cache(self) -> Union[CacheStore, TaggedCache]:
        """
        The store to read and write through.

        Tagged view when tags are configured and the store supports
        them, otherwise the plain store.
        """
        store = self.get_store()
        tags = self._options.all_tags

        if not tags:
            return store

        if not store.supports_tags:
            logger.debug(
                f"Store '{store.name}' has no tag support, caching without tags {sorted(tags)}"
            )
            return store

        return store.with_tags(tags)

    # ── Cache-or-execute ─────────────────────────────────────────────

    async def get_cached_result(
        self,
        operation: str = "get",
        row_id: Any = None,
        execute_fn: Optional[ExecuteFn] = None,
        *,
        suffix: Optional[str] = None,
    ) -> Any:
        """
        Return the cached result for this query, executing it on a miss.

        Args:
            operation: Operation kind ("get", "first", "count", "find", ...)
            row_id: Target row identifier, if any
            execute_fn: Zero-argument callable (sync or async) producing the result
            suffix: Extra key material to disambiguate otherwise equal queries

        Errors raised by ``execute_fn`` propagate unchanged and nothing is
        stored for the key.
        """
        if execute_fn is None:
            raise TypeError("get_cached_result() requires an execute_fn")

        if self._options.should_avoid_cache:
            logger.debug(f"Caching suppressed, executing '{operation}' directly")
            return await _call(execute_fn)

        key = self.get_cache_key(operation, row_id, suffix)
        cache = self.get_cache()
        thunk = self._execution_thunk(execute_fn)
        duration = self._options.duration

        if has_expiry(duration):
            return await cache.remember(key, duration, thunk)

        return await cache.remember_forever(key, thunk)

    def _execution_thunk(self, execute_fn: ExecuteFn):
        async def thunk():
            suppressed = self._options.suppress
            self._options = self._options.dont_cache()
            logger.debug("Query cache miss, executing query")
            try:
                return await _call(execute_fn)
            finally:
                # Only the flag is restored; setters called meanwhile stick
                self._options = replace(self._options, suppress=suppressed)

        return thunk

    # ── Invalidation ─────────────────────────────────────────────────

    async def flush_tags(self, tags: Optional[Iterable[str]] = None) -> bool:
        """
        Flush every entry carrying any of ``tags``.

        An empty ``tags`` flushes the base tags. Returns False when the
        store has no tag support. A tag that fails to flush does not stop
        the remaining tags from being flushed.
        """
        store = self.get_store()

        if not store.supports_tags:
            logger.debug(f"Store '{store.name}' has no tag support, skipping flush")
            return False

        if isinstance(tags, str):
            tags = [tags]
        tag_list = list(tags or ())
        if not tag_list:
            tag_list = sorted(self._options.base_tags)

        for tag in tag_list:
            await self._flush_one(store, tag)

        return True

    async def flush_tag(self, tag: str) -> bool:
        """Flush a single tag. False when the store cannot flush tags."""
        return await self._flush_one(self.get_store(), tag)

    async def flush_for_table(self, tags: Optional[Iterable[str]]) -> bool:
        """Flush after a table write; does nothing when ``tags`` is empty."""
        if not tags:
            return False
        return await self.flush_tags(tags)

    async def _flush_one(self, store: CacheStore, tag: str) -> bool:
        try:
            flushed = await store.flush_tag(tag)
        except UnsupportedOperationFault as e:
            logger.debug(f"Tag flush unsupported for '{tag}': {e}")
            return False

        if not flushed:
            logger.debug(f"Store '{store.name}' did not flush tag '{tag}'")
        return flushed

    def __repr__(self) -> str:
        opts = self._options
        return (
            f"<QueryCache connection={self._executor.connection_name!r} "
            f"duration={opts.duration!r} suppress={opts.suppress} tags={sorted(opts.all_tags)}>"
        )


async def _call(func: ExecuteFn) -> Any:
    """Call a sync or async zero-argument function."""
    result = func()
    if inspect.isawaitable(result):
        result = await result
    return result
