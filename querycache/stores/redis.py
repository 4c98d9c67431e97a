"""
QueryCache — Redis store for distributed query caching.

- Connection pooling via ``redis.asyncio``
- Tag membership via Redis sets (``{prefix}_tags:{tag}``) that expire
  with their longest-lived member
- Pipelined writes so a value and its tag registrations land together
- Pluggable value serializer (JSON by default)

Read errors degrade to a cache miss; the query then simply runs.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from redis.exceptions import RedisError

from ..core import CacheEntry
from ..faults import CacheConnectionFault, CacheSerializationFault
from ..serializers import JsonCacheSerializer
from .base import TaggableStore

logger = logging.getLogger("querycache.stores.redis")


class RedisStore(TaggableStore):
    """
    Redis-backed taggable store.

    A pre-built client may be passed as ``client`` (any
    ``redis.asyncio.Redis`` compatible object); otherwise one is created
    from ``url`` on first use.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        max_connections: int = 10,
        socket_timeout: float = 5.0,
        connect_timeout: float = 5.0,
        key_prefix: str = "qc:",
        serializer: Optional[Any] = None,
        client: Optional[Any] = None,
    ):
        self._url = url
        self._max_connections = max_connections
        self._socket_timeout = socket_timeout
        self._connect_timeout = connect_timeout
        self._key_prefix = key_prefix
        self._serializer = serializer or JsonCacheSerializer()
        self._redis = client
        self._owns_client = client is None
        super().__init__()

    @property
    def name(self) -> str:
        return "redis"

    async def initialize(self) -> None:
        """Connect to Redis and verify the connection."""
        if self._redis is not None:
            return

        import redis.asyncio as aioredis

        client = aioredis.from_url(
            self._url,
            max_connections=self._max_connections,
            socket_timeout=self._socket_timeout,
            socket_connect_timeout=self._connect_timeout,
            decode_responses=False,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise CacheConnectionFault(store=self.name, reason=str(e)) from e

        self._redis = client
        logger.info(f"Redis query cache connected: {self._url}")

    async def shutdown(self) -> None:
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None

    async def _client(self):
        if self._redis is None:
            await self.initialize()
        return self._redis

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _tag_set_key(self, tag: str) -> str:
        return f"{self._key_prefix}_tags:{tag}"

    # ── Entry operations ─────────────────────────────────────────────

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        redis = await self._client()
        try:
            raw = await redis.get(self._full_key(key))
        except RedisError as e:
            logger.warning(f"Redis GET error for key '{key}': {e}")
            self._stats.errors += 1
            return None

        if raw is None:
            self._stats.misses += 1
            return None

        try:
            value = self._serializer.deserialize(raw)
        except CacheSerializationFault as e:
            logger.warning(f"Discarding undecodable entry '{key}': {e}")
            self._stats.errors += 1
            return None

        self._stats.hits += 1
        return CacheEntry(key=key, value=value)

    async def put(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        tags: Tuple[str, ...] = (),
    ) -> None:
        redis = await self._client()
        full_key = self._full_key(key)
        serialized = self._serializer.serialize(value)

        ttl_ms = max(1, int(ttl * 1000)) if ttl is not None and ttl > 0 else None
        tag_keys = [self._tag_set_key(tag) for tag in tags]

        try:
            # A tag set lives as long as its longest-lived member
            tag_ttls = []
            if tag_keys and ttl_ms is not None:
                lookup = redis.pipeline()
                for tag_key in tag_keys:
                    lookup.pttl(tag_key)
                tag_ttls = await lookup.execute()

            pipe = redis.pipeline()
            if ttl_ms is not None:
                pipe.set(full_key, serialized, px=ttl_ms)
            else:
                pipe.set(full_key, serialized)

            for i, tag_key in enumerate(tag_keys):
                pipe.sadd(tag_key, full_key)
                if ttl_ms is None:
                    pipe.persist(tag_key)
                elif tag_ttls[i] == -2 or 0 <= tag_ttls[i] < ttl_ms:
                    # -2: new set; -1: holds a member without expiry, keep it
                    pipe.pexpire(tag_key, ttl_ms)

            await pipe.execute()
            self._stats.sets += 1
        except RedisError as e:
            logger.warning(f"Redis SET error for key '{key}': {e}")
            self._stats.errors += 1

    async def forget(self, key: str) -> bool:
        redis = await self._client()
        try:
            deleted = await redis.delete(self._full_key(key))
        except RedisError as e:
            logger.warning(f"Redis DELETE error for key '{key}': {e}")
            self._stats.errors += 1
            return False
        if deleted:
            self._stats.deletes += 1
        return bool(deleted)

    async def flush(self) -> int:
        """Delete every key under this store's prefix, tag sets included."""
        redis = await self._client()
        count = 0
        cursor = 0
        try:
            while True:
                cursor, keys = await redis.scan(
                    cursor=cursor,
                    match=f"{self._key_prefix}*",
                    count=1000,
                )
                if keys:
                    await redis.delete(*keys)
                    count += len(keys)
                if cursor == 0:
                    break
        except RedisError as e:
            logger.warning(f"Redis FLUSH error: {e}")
            self._stats.errors += 1
        return count

    async def flush_tag(self, tag: str) -> bool:
        """Delete every entry registered under ``tag`` and the tag set itself."""
        redis = await self._client()
        tag_key = self._tag_set_key(tag)
        try:
            members = await redis.smembers(tag_key)
            pipe = redis.pipeline()
            for member in members:
                pipe.delete(member)
            pipe.delete(tag_key)
            await pipe.execute()
        except RedisError as e:
            logger.warning(f"Redis tag flush error for tag '{tag}': {e}")
            self._stats.errors += 1
            return False

        self._stats.deletes += len(members)
        self._stats.tag_flushes += 1
        logger.debug(f"Flushed tag '{tag}' ({len(members)} entries)")
        return True

    async def health_check(self) -> bool:
        try:
            redis = await self._client()
            await redis.ping()
            return True
        except (RedisError, CacheConnectionFault, OSError):
            return False
