"""
QueryCache — Cache key builder.

Derives a deterministic fingerprint for a query from its semantic
identity: connection name, operation kind, row id, SQL text, ordered
bindings and a disambiguating suffix. Keys are SHA-256 hashed by
default; plain keys exist for debugging.

Pattern: ``{prefix}:{sha256(connection + operation + id + sql + bindings + suffix)}``

Example: ``Model:3f1c...e9``
"""

from __future__ import annotations

import hashlib
from typing import Any, Optional

from .core import KeyFormat, QueryExecutor
from .serializers import serialize_bindings

DEFAULT_PREFIX = "Model"

# Count queries are keyed on bindings alone: some executors cannot
# render SQL for a count without re-deriving the whole query.
COUNT_OPERATION = "count"


class QueryKeyBuilder:
    """
    Builds cache keys for a single query executor.

    The key depends only on what the executor renders (connection name,
    SQL text, bindings), never on the executor object itself, so two
    equivalent query objects share cache entries.
    """

    __slots__ = ("_executor",)

    def __init__(self, executor: QueryExecutor):
        self._executor = executor

    def generate_plain_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
    ) -> str:
        """Build the unhashed key for the query."""
        name = self._executor.connection_name
        row = "" if row_id is None else str(row_id)
        appends = suffix or ""
        bindings = serialize_bindings(self._executor.get_bindings())

        if operation == COUNT_OPERATION:
            return f"{name}{operation}{row}{bindings}{appends}"

        return f"{name}{operation}{row}{self._executor.to_sql()}{bindings}{appends}"

    def generate_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
        key_format: KeyFormat = KeyFormat.HASHED,
    ) -> str:
        """Build the key body, hashed unless ``key_format`` is PLAIN."""
        key = self.generate_plain_key(operation, row_id, suffix)

        if KeyFormat(key_format) is KeyFormat.PLAIN:
            return key

        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def get_cache_key(
        self,
        operation: str = "get",
        row_id: Any = None,
        suffix: Optional[str] = None,
        key_format: KeyFormat = KeyFormat.HASHED,
        prefix: str = DEFAULT_PREFIX,
    ) -> str:
        """Build the externally visible ``{prefix}:{key}`` string."""
        key = self.generate_key(operation, row_id, suffix, key_format)
        return f"{prefix}:{key}"
