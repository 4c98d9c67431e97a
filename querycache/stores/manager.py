"""
QueryCache — Store manager.

Named registry of cache stores. ``QueryCache`` receives a manager
explicitly and resolves stores through ``driver(name)``; there is no
process-wide store lookup.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Optional

from ..faults import UnknownStoreFault
from .base import CacheStore

logger = logging.getLogger("querycache.stores.manager")


class StoreManager:
    """
    Maps store names to ``CacheStore`` instances.

    Usage::

        manager = StoreManager({"memory": MemoryStore(), "redis": RedisStore()})
        store = manager.driver()          # default store
        store = manager.driver("redis")   # named store
    """

    def __init__(
        self,
        stores: Optional[Dict[str, CacheStore]] = None,
        default: Optional[str] = None,
    ):
        self._stores: Dict[str, CacheStore] = dict(stores or {})
        if default is None and self._stores:
            default = next(iter(self._stores))
        self._default = default

    @property
    def default(self) -> Optional[str]:
        return self._default

    def register(self, name: str, store: CacheStore, *, default: bool = False) -> None:
        self._stores[name] = store
        if default or self._default is None:
            self._default = name
        logger.debug(f"Registered cache store '{name}' ({store.name})")

    def driver(self, name: Optional[str] = None) -> CacheStore:
        """Return the named store, or the default store when ``name`` is None."""
        target = name or self._default
        store = self._stores.get(target) if target else None
        if store is None:
            raise UnknownStoreFault(str(target), tuple(self._stores))
        return store

    async def initialize(self) -> None:
        for store in self._stores.values():
            await store.initialize()

    async def shutdown(self) -> None:
        for store in self._stores.values():
            await store.shutdown()

    def __contains__(self, name: str) -> bool:
        return name in self._stores

    def __iter__(self) -> Iterator[str]:
        return iter(self._stores)

    def __len__(self) -> int:
        return len(self._stores)
