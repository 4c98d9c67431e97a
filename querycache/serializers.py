"""
QueryCache — Serialization.

Two concerns live here:

- ``serialize_bindings``: the deterministic, order-preserving encoding
  of a query's positional bindings that feeds the cache key.
- Value serializers (JSON, pickle, msgpack) used by remote stores to
  encode query results. All include structured error handling and
  logging for serialization failures.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence
from uuid import UUID

from .faults import CacheSerializationFault

logger = logging.getLogger("querycache.serializers")


# ============================================================================
# Binding serialization (cache key payload)
# ============================================================================

def _encode_binding(value: Any) -> Any:
    """
    ``json.dumps`` hook for binding values JSON cannot encode natively.

    Each type is tagged so that values of different types never render
    identically (``Decimal("5")`` vs ``5``).
    """
    if isinstance(value, Enum):
        return {"__enum__": f"{type(value).__qualname__}.{value.name}", "value": value.value}
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, date):
        return {"__date__": value.isoformat()}
    if isinstance(value, time):
        return {"__time__": value.isoformat()}
    if isinstance(value, Decimal):
        return {"__decimal__": str(value)}
    if isinstance(value, UUID):
        return {"__uuid__": str(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"__bytes__": bytes(value).hex()}
    if isinstance(value, (set, frozenset)):
        # Unordered: sort by the encoded form of each member
        return {"__set__": sorted(value, key=serialize_binding)}
    raise CacheSerializationFault(
        key="<bindings>",
        operation="serialize",
        reason=f"Unsupported binding type {type(value).__name__}",
    )


def serialize_binding(value: Any) -> str:
    """Serialize a single binding value deterministically."""
    return json.dumps(
        value,
        default=_encode_binding,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
    )


def serialize_bindings(bindings: Sequence[Any]) -> str:
    """
    Serialize positional bindings into a stable string.

    Order is preserved (bindings are positional), types are preserved
    (``5`` and ``"5"`` differ) and the output never depends on object
    identity.

    Example::

        >>> serialize_bindings([5, "a", None])
        '[5,"a",null]'
    """
    return serialize_binding(list(bindings))


# ============================================================================
# Value serializers
# ============================================================================

class JsonCacheSerializer:
    """
    JSON serializer for query results.

    Default serializer for remote stores. Falls back to ``str()`` for
    non-serializable types.
    """

    name = "json"

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, default=str, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"JSON serialization failed: {e}")
            raise CacheSerializationFault(key="<value>", operation="serialize", reason=str(e)) from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"JSON deserialization failed: {e}")
            raise CacheSerializationFault(key="<value>", operation="deserialize", reason=str(e)) from e


class PickleCacheSerializer:
    """
    Pickle serializer, for results holding arbitrary Python objects.

    WARNING: Only use with trusted data. Pickle can execute
    arbitrary code during deserialization.
    """

    name = "pickle"

    def serialize(self, value: Any) -> bytes:
        import pickle
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.warning(f"Pickle serialization failed: {e}")
            raise CacheSerializationFault(key="<value>", operation="serialize", reason=str(e)) from e

    def deserialize(self, data: bytes) -> Any:
        import pickle
        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError) as e:
            logger.warning(f"Pickle deserialization failed: {e}")
            raise CacheSerializationFault(key="<value>", operation="deserialize", reason=str(e)) from e


class MsgpackCacheSerializer:
    """
    MessagePack serializer for compact binary results.
    """

    name = "msgpack"

    def serialize(self, value: Any) -> bytes:
        import msgpack
        try:
            return msgpack.packb(value, use_bin_type=True, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Msgpack serialization failed: {e}")
            raise CacheSerializationFault(key="<value>", operation="serialize", reason=str(e)) from e

    def deserialize(self, data: bytes) -> Any:
        import msgpack
        try:
            return msgpack.unpackb(data, raw=False)
        except (ValueError, msgpack.ExtraData, msgpack.FormatError, msgpack.StackError) as e:
            logger.warning(f"Msgpack deserialization failed: {e}")
            raise CacheSerializationFault(key="<value>", operation="deserialize", reason=str(e)) from e


def get_serializer(name: str = "json"):
    """
    Factory for serializer instances.

    Args:
        name: "json", "pickle", or "msgpack"
    """
    serializers = {
        "json": JsonCacheSerializer,
        "pickle": PickleCacheSerializer,
        "msgpack": MsgpackCacheSerializer,
    }

    cls = serializers.get(name)
    if cls is None:
        raise ValueError(f"Unknown serializer: {name}. Options: {list(serializers.keys())}")

    return cls()
