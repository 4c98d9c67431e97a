"""
QueryCache Stores — storage implementations and the store manager.
"""

from .base import CacheStore, TaggableStore, TaggedCache
from .memory import MemoryStore
from .null import NullStore
from .redis import RedisStore
from .manager import StoreManager

__all__ = [
    "CacheStore",
    "TaggableStore",
    "TaggedCache",
    "MemoryStore",
    "NullStore",
    "RedisStore",
    "StoreManager",
]
