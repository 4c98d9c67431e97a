"""
QueryCache — Factories.

Turns a ``QueryCacheConfig`` into stores, a ``StoreManager`` and
ready-configured ``QueryCache`` instances.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .config import QueryCacheConfig
from .core import QueryExecutor
from .faults import CacheConfigFault
from .options import CacheOptions
from .orchestrator import QueryCache
from .stores.base import CacheStore
from .stores.manager import StoreManager
from .stores.memory import MemoryStore
from .stores.null import NullStore

logger = logging.getLogger("querycache.providers")


def create_store(name: str, settings: Dict[str, Any]) -> CacheStore:
    """
    Factory: create a store from its settings mapping.

    ``settings["driver"]`` selects the implementation and defaults to
    the store name.
    """
    driver = str(settings.get("driver", name)).lower()

    if driver == "memory":
        return MemoryStore(
            max_size=settings.get("max_size", 10000),
            capacity_warning_threshold=settings.get("capacity_warning_threshold", 0.85),
        )

    elif driver == "redis":
        from .stores.redis import RedisStore
        from .serializers import get_serializer

        return RedisStore(
            url=settings.get("url", "redis://localhost:6379/0"),
            max_connections=settings.get("max_connections", 10),
            socket_timeout=settings.get("socket_timeout", 5.0),
            connect_timeout=settings.get("connect_timeout", 5.0),
            key_prefix=settings.get("key_prefix", "qc:"),
            serializer=get_serializer(settings.get("serializer", "json")),
        )

    elif driver == "null":
        return NullStore()

    raise CacheConfigFault(f"unknown driver '{driver}' for store '{name}'")


def create_store_manager(config: QueryCacheConfig) -> StoreManager:
    """Factory: create every configured store and register them by name."""
    logging.getLogger("querycache").setLevel(config.log_level)

    manager = StoreManager(default=config.default_store)
    for name, settings in config.stores.items():
        manager.register(name, create_store(name, settings), default=(name == config.default_store))

    logger.info(f"Query cache stores ready: {list(manager)} (default={manager.default})")
    return manager


def default_options(config: QueryCacheConfig) -> CacheOptions:
    """Per-query options seeded from config."""
    options = (
        CacheOptions(key_format=config.key_format, prefix=config.prefix)
        .cache_base_tags(config.base_tags)
    )
    if config.default_ttl is not None:
        options = options.cache_for(config.default_ttl)
    return options


def create_query_cache(
    executor: QueryExecutor,
    manager: StoreManager,
    config: Optional[QueryCacheConfig] = None,
) -> QueryCache:
    """Factory: a ``QueryCache`` for ``executor`` with config-derived defaults."""
    options = default_options(config) if config is not None else CacheOptions()
    return QueryCache(executor, manager, options)
