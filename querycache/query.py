"""
QueryCache — Cache-aware query object.

``CachedQuery`` is a small chainable, immutable query over a
``Connection``. Every chain method returns a NEW instance; terminal
methods (``all``, ``first``, ``count``, ``find``) are async and go
through the query cache unless caching is suppressed.

Usage::

    users = CachedQuery("users", db, manager)
    rows = await (
        users.where("active = ?", True)
        .order("-id")
        .cache_for(60)
        .cache_tags(["users"])
        .all()
    )

    # After a write
    await users.flush_query_cache(["users"])
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .core import Duration
from .options import CacheOptions
from .orchestrator import QueryCache
from .stores.manager import StoreManager

__all__ = ["CachedQuery", "Connection"]


@runtime_checkable
class Connection(Protocol):
    """Minimal async database connection the query runs against."""

    name: str

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Any]:
        ...

    async def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        ...


class CachedQuery:
    """
    Chainable query with transparent result caching.

    Chain methods (return new CachedQuery):
        where(clause, *args)     — Raw parameterized WHERE
        order(*fields)           — ORDER BY ("-field" for DESC)
        limit(n) / offset(n)     — LIMIT / OFFSET
        only(*columns)           — Column projection
        cache_for(duration)      — Enable caching
        cache_forever()          — Enable caching with no expiry
        dont_cache()             — Suppress caching
        cache_tags(tags)         — Replace per-query tags
        append_cache_tags(tags)  — Add per-query tags
        cache_base_tags(tags)    — Tags applied to every cached query
        cache_prefix(prefix)     — Key prefix
        cache_driver(name)       — Store name
        with_plain_key()         — Unhashed keys

    Terminal methods (async):
        all()       — List of rows
        first()     — First row or None
        count()     — int
        find(id)    — Row with primary key ``id`` or None
    """

    __slots__ = (
        "_table",
        "_connection",
        "_pk",
        "_wheres",
        "_params",
        "_order_clauses",
        "_limit_val",
        "_offset_val",
        "_columns",
        "_cache",
    )

    def __init__(
        self,
        table: str,
        connection: Connection,
        stores: StoreManager,
        options: Optional[CacheOptions] = None,
        pk: str = "id",
    ):
        self._table = table
        self._connection = connection
        self._pk = pk
        self._wheres: List[str] = []
        self._params: List[Any] = []
        self._order_clauses: List[str] = []
        self._limit_val: Optional[int] = None
        self._offset_val: Optional[int] = None
        self._columns: Tuple[str, ...] = ("*",)
        self._cache = QueryCache(self, stores, options)

    # ── QueryExecutor contract ───────────────────────────────────────

    @property
    def connection_name(self) -> str:
        return self._connection.name

    def to_sql(self) -> str:
        return self._build_select()

    def get_bindings(self) -> List[Any]:
        return list(self._params)

    async def execute(
        self,
        operation: str = "get",
        columns: Sequence[str] = ("*",),
        row_id: Any = None,
    ) -> Any:
        """Run the query against the connection, bypassing the cache."""
        cols = tuple(columns) if tuple(columns) != ("*",) else None

        if operation == "get":
            return await self._connection.fetch_all(self._build_select(columns=cols), self.get_bindings())

        if operation == "first":
            sql = self._build_select(columns=cols, limit=1)
            rows = await self._connection.fetch_all(sql, self.get_bindings())
            return rows[0] if rows else None

        if operation == "count":
            val = await self._connection.fetch_val(self._build_select(count=True), self.get_bindings())
            return int(val) if val else 0

        if operation == "find":
            scoped = self.where(f'"{self._pk}" = ?', row_id)
            sql = scoped._build_select(columns=cols, limit=1)
            rows = await self._connection.fetch_all(sql, scoped.get_bindings())
            return rows[0] if rows else None

        raise ValueError(f"Unsupported query operation: {operation!r}")

    # ── Chain methods ────────────────────────────────────────────────

    def where(self, clause: str, *args: Any) -> "CachedQuery":
        """
        Add raw WHERE clause with positional ``?`` parameters.

        Usage:
            .where("age > ?", 18)
        """
        new = self._clone()
        new._wheres.append(clause)
        new._params.extend(args)
        return new

    def order(self, *fields: str) -> "CachedQuery":
        new = self._clone()
        for f in fields:
            if f.startswith("-"):
                new._order_clauses.append(f'"{f[1:]}" DESC')
            else:
                new._order_clauses.append(f'"{f}" ASC')
        return new

    def limit(self, n: int) -> "CachedQuery":
        new = self._clone()
        new._limit_val = n
        return new

    def offset(self, n: int) -> "CachedQuery":
        new = self._clone()
        new._offset_val = n
        return new

    def only(self, *columns: str) -> "CachedQuery":
        new = self._clone()
        new._columns = tuple(columns) or ("*",)
        return new

    def cache_for(self, duration: Duration) -> "CachedQuery":
        return self._with_options(self.cache_options.cache_for(duration))

    def cache_forever(self) -> "CachedQuery":
        return self._with_options(self.cache_options.cache_forever())

    def dont_cache(self) -> "CachedQuery":
        return self._with_options(self.cache_options.dont_cache())

    def do_not_cache(self) -> "CachedQuery":
        return self.dont_cache()

    def cache_tags(self, tags: Optional[Iterable[str]] = None) -> "CachedQuery":
        return self._with_options(self.cache_options.cache_tags(tags))

    def append_cache_tags(self, tags: Optional[Iterable[str]] = None) -> "CachedQuery":
        return self._with_options(self.cache_options.append_cache_tags(tags))

    def cache_base_tags(self, tags: Optional[Iterable[str]] = None) -> "CachedQuery":
        return self._with_options(self.cache_options.cache_base_tags(tags))

    def cache_prefix(self, prefix: str) -> "CachedQuery":
        return self._with_options(self.cache_options.cache_prefix(prefix))

    def cache_driver(self, driver: Optional[str]) -> "CachedQuery":
        return self._with_options(self.cache_options.cache_driver(driver))

    def with_plain_key(self) -> "CachedQuery":
        return self._with_options(self.cache_options.with_plain_key())

    # ── Terminal methods ─────────────────────────────────────────────

    async def all(self) -> List[Any]:
        if self._cache.should_avoid_cache():
            return await self.execute("get", self._columns)
        return await self._cache.get_cached_result("get", None, self.all)

    async def first(self) -> Optional[Any]:
        if self._cache.should_avoid_cache():
            return await self.execute("first", self._columns)
        return await self._cache.get_cached_result("first", None, self.first)

    async def count(self) -> int:
        if self._cache.should_avoid_cache():
            return await self.execute("count")
        # Count keys carry no SQL; the rendered count query tells tables
        # and clauses with equal bindings apart.
        return await self._cache.get_cached_result(
            "count", None, self.count, suffix=self._build_select(count=True),
        )

    async def find(self, row_id: Any) -> Optional[Any]:
        if self._cache.should_avoid_cache():
            return await self.execute("find", self._columns, row_id)
        return await self._cache.get_cached_result("find", row_id, lambda: self.find(row_id))

    # ── Cache access ─────────────────────────────────────────────────

    @property
    def cache(self) -> QueryCache:
        return self._cache

    @property
    def cache_options(self) -> CacheOptions:
        return self._cache.options

    def get_cache_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
    ) -> str:
        return self._cache.get_cache_key(operation, row_id, suffix)

    async def flush_query_cache(self, tags: Optional[Iterable[str]] = None) -> bool:
        return await self._cache.flush_tags(tags)

    async def flush_query_cache_with_tag(self, tag: str) -> bool:
        return await self._cache.flush_tag(tag)

    async def flush_for_table(self, tags: Optional[Iterable[str]]) -> bool:
        return await self._cache.flush_for_table(tags)

    # ── Internal ─────────────────────────────────────────────────────

    def _with_options(self, options: CacheOptions) -> "CachedQuery":
        new = self._clone()
        new._cache.configure(options)
        return new

    def _clone(self) -> "CachedQuery":
        c = CachedQuery(
            self._table,
            self._connection,
            self._cache.stores,
            self._cache.options,
            pk=self._pk,
        )
        c._wheres = self._wheres.copy()
        c._params = self._params.copy()
        c._order_clauses = self._order_clauses.copy()
        c._limit_val = self._limit_val
        c._offset_val = self._offset_val
        c._columns = self._columns
        return c

    def _build_select(
        self,
        count: bool = False,
        columns: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> str:
        if count:
            col = "COUNT(*)"
        else:
            cols = tuple(columns) if columns else self._columns
            col = "*" if cols == ("*",) else ", ".join(f'"{c}"' for c in cols)

        sql = f'SELECT {col} FROM "{self._table}"'

        if self._wheres:
            sql += " WHERE " + " AND ".join(f"({w})" for w in self._wheres)

        if not count and self._order_clauses:
            sql += " ORDER BY " + ", ".join(self._order_clauses)

        effective_limit = limit if limit is not None else self._limit_val
        if not count and effective_limit is not None:
            sql += f" LIMIT {effective_limit}"
        if not count and self._offset_val is not None:
            sql += f" OFFSET {self._offset_val}"

        return sql

    def __repr__(self) -> str:
        return f"<CachedQuery {self.to_sql()!r} bindings={self._params!r}>"
