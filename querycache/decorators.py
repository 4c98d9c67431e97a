"""
QueryCache — Write-side invalidation decorator.

``@invalidates_tags`` flushes query cache tags after a write
coroutine completes, so cached reads of the touched tables are
recomputed on next access.
"""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Callable, Optional, TypeVar

from .faults import UnsupportedOperationFault
from .stores.manager import StoreManager

logger = logging.getLogger("querycache.decorators")

T = TypeVar("T")


def invalidates_tags(
    *tags: str,
    manager: Optional[StoreManager] = None,
    store: Optional[str] = None,
):
    """
    Decorator to flush cache tags after the wrapped function succeeds.

    The store manager is taken from ``manager`` or, for methods, from
    ``self.cache_manager`` / ``self._cache_manager``. Stores without tag
    support make this a no-op. Nothing is flushed if the function raises.

    Usage::

        class UserRepository:
            def __init__(self, db, cache_manager: StoreManager):
                self.db = db
                self.cache_manager = cache_manager

            @invalidates_tags("users")
            async def rename(self, user_id: int, name: str):
                await self.db.execute("UPDATE users SET name = ? WHERE id = ?", [name, user_id])
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result

            resolved = manager or _resolve_manager(args)
            if resolved is None:
                logger.debug(f"No store manager for {func.__qualname__}, skipping tag flush")
                return result

            cache_store = resolved.driver(store)
            if not cache_store.supports_tags:
                return result

            for tag in tags:
                try:
                    await cache_store.flush_tag(tag)
                except UnsupportedOperationFault as e:
                    logger.debug(f"Tag flush unsupported for '{tag}': {e}")

            return result

        wrapper.__invalidates_tags__ = tags
        return wrapper
    return decorator


def _resolve_manager(args: tuple) -> Optional[StoreManager]:
    if not args:
        return None
    obj: Any = args[0]
    for attr in ("cache_manager", "_cache_manager"):
        candidate = getattr(obj, attr, None)
        if isinstance(candidate, StoreManager):
            return candidate
    return None
