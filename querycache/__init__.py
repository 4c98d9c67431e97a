"""
QueryCache — Transparent, tag-aware result caching for read queries.

Sits between application code and a query-execution engine:

- **Fingerprinting**: deterministic SHA-256 keys from connection, operation,
  SQL text and positional bindings
- **Cache-or-execute**: compute-once ``remember`` semantics with TTLs,
  absolute expiry or no expiry
- **Tags**: group entries under tags and flush them after writes
- **Graceful degradation**: stores without tag support cache untagged and
  report flushes as unsupported instead of raising
- **Stores**: Memory (LRU), Redis, Null, behind a named ``StoreManager``

Usage::

    from querycache import CachedQuery, MemoryStore, StoreManager

    manager = StoreManager({"memory": MemoryStore()})
    users = CachedQuery("users", db, manager)

    rows = await users.where("id = ?", 5).cache_for(60).cache_tags(["users"]).all()
    await users.flush_query_cache(["users"])
"""

__version__ = "1.0.0"

from .core import (
    FOREVER,
    CacheEntry,
    CacheStats,
    Duration,
    KeyFormat,
    QueryExecutor,
)

from .options import CacheOptions
from .key_builder import QueryKeyBuilder, DEFAULT_PREFIX
from .orchestrator import QueryCache
from .query import CachedQuery, Connection

from .stores import (
    CacheStore,
    TaggableStore,
    TaggedCache,
    MemoryStore,
    NullStore,
    RedisStore,
    StoreManager,
)

from .serializers import (
    serialize_bindings,
    JsonCacheSerializer,
    PickleCacheSerializer,
    MsgpackCacheSerializer,
)

from .faults import (
    Fault,
    CacheFault,
    CacheConfigFault,
    CacheConnectionFault,
    CacheSerializationFault,
    UnknownStoreFault,
    UnsupportedOperationFault,
)

from .config import ConfigLoader, QueryCacheConfig, build_cache_config
from .providers import create_store, create_store_manager, create_query_cache
from .decorators import invalidates_tags

__all__ = [
    # Core
    "FOREVER",
    "CacheEntry",
    "CacheStats",
    "Duration",
    "KeyFormat",
    "QueryExecutor",
    # Orchestration
    "CacheOptions",
    "QueryKeyBuilder",
    "DEFAULT_PREFIX",
    "QueryCache",
    "CachedQuery",
    "Connection",
    # Stores
    "CacheStore",
    "TaggableStore",
    "TaggedCache",
    "MemoryStore",
    "NullStore",
    "RedisStore",
    "StoreManager",
    # Serializers
    "serialize_bindings",
    "JsonCacheSerializer",
    "PickleCacheSerializer",
    "MsgpackCacheSerializer",
    # Faults
    "Fault",
    "CacheFault",
    "CacheConfigFault",
    "CacheConnectionFault",
    "CacheSerializationFault",
    "UnknownStoreFault",
    "UnsupportedOperationFault",
    # Config
    "ConfigLoader",
    "QueryCacheConfig",
    "build_cache_config",
    "create_store",
    "create_store_manager",
    "create_query_cache",
    # Decorators
    "invalidates_tags",
]
