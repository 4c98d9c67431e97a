"""
Tests for cache key generation and binding serialization.

Covers:
- Plain key recipe, including the count special case
- SHA-256 hashing and the ``{prefix}:{key}`` form
- Determinism, binding order and type sensitivity
- Independence from executor object identity
- Binding encoding for non-JSON types
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

import pytest

from querycache.core import KeyFormat
from querycache.faults import CacheSerializationFault
from querycache.key_builder import DEFAULT_PREFIX, QueryKeyBuilder
from querycache.serializers import serialize_binding, serialize_bindings


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ============================================================================
# Plain keys
# ============================================================================


class TestPlainKey:

    def test_get_recipe(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_plain_key("get") == "maingetSELECT * FROM users WHERE id=?[5]"

    def test_row_id_follows_operation(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_plain_key("find", 7) == "mainfind7SELECT * FROM users WHERE id=?[5]"

    def test_suffix_is_appended(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_plain_key("get", None, "page2").endswith("[5]page2")

    def test_count_omits_sql(self, make_executor):
        kb = QueryKeyBuilder(make_executor(sql="SELECT COUNT(*) FROM users", bindings=[1, 2]))
        assert kb.generate_plain_key("count") == "maincount[1,2]"

    def test_count_ignores_sql_text(self, make_executor):
        a = QueryKeyBuilder(make_executor(sql="SELECT 1", bindings=[3]))
        b = QueryKeyBuilder(make_executor(sql="SELECT 2", bindings=[3]))
        assert a.generate_key("count") == b.generate_key("count")
        assert a.generate_key("get") != b.generate_key("get")

    def test_empty_bindings(self, make_executor):
        kb = QueryKeyBuilder(make_executor(sql="SELECT * FROM users", bindings=[]))
        assert kb.generate_plain_key() == "mainget" + "SELECT * FROM users" + "[]"


# ============================================================================
# Hashed keys
# ============================================================================


class TestHashedKey:

    def test_hash_of_plain_key(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_key("get") == sha256(kb.generate_plain_key("get"))

    def test_hash_is_64_hex_chars(self, executor):
        key = QueryKeyBuilder(executor).generate_key("get")
        assert len(key) == 64
        int(key, 16)

    def test_plain_format_skips_hashing(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_key("get", key_format=KeyFormat.PLAIN) == kb.generate_plain_key("get")

    def test_key_format_accepts_string_value(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_key("get", key_format="plain") == kb.generate_plain_key("get")

    def test_cache_key_default_prefix(self, executor):
        key = QueryKeyBuilder(executor).get_cache_key("get")
        expected = "Model:" + sha256("main" + "get" + "SELECT * FROM users WHERE id=?" + "[5]")
        assert DEFAULT_PREFIX == "Model"
        assert key == expected

    def test_cache_key_custom_prefix(self, executor):
        key = QueryKeyBuilder(executor).get_cache_key("get", prefix="User")
        assert key.startswith("User:")
        assert len(key) == len("User:") + 64


# ============================================================================
# Determinism
# ============================================================================


class TestKeyDeterminism:

    def test_same_query_same_key(self, make_executor):
        k1 = QueryKeyBuilder(make_executor()).get_cache_key("get")
        k2 = QueryKeyBuilder(make_executor()).get_cache_key("get")
        assert k1 == k2

    def test_binding_order_matters(self, make_executor):
        k1 = QueryKeyBuilder(make_executor(bindings=[1, 2])).generate_key()
        k2 = QueryKeyBuilder(make_executor(bindings=[2, 1])).generate_key()
        assert k1 != k2

    def test_binding_type_matters(self, make_executor):
        k1 = QueryKeyBuilder(make_executor(bindings=[5])).generate_key()
        k2 = QueryKeyBuilder(make_executor(bindings=["5"])).generate_key()
        assert k1 != k2

    def test_connection_name_matters(self, make_executor):
        k1 = QueryKeyBuilder(make_executor(connection_name="main")).generate_key()
        k2 = QueryKeyBuilder(make_executor(connection_name="replica")).generate_key()
        assert k1 != k2

    def test_operation_matters(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_key("get") != kb.generate_key("first")

    def test_row_id_matters(self, executor):
        kb = QueryKeyBuilder(executor)
        assert kb.generate_key("find", 1) != kb.generate_key("find", 2)

    def test_key_reflects_current_bindings(self, executor):
        kb = QueryKeyBuilder(executor)
        before = kb.generate_key()
        executor.bindings = [6]
        assert kb.generate_key() != before


# ============================================================================
# Binding serialization
# ============================================================================


class Color(Enum):
    RED = "red"


class TestBindingSerialization:

    def test_scalars(self):
        assert serialize_bindings([5, "a", None, True, 1.5]) == '[5,"a",null,true,1.5]'

    def test_order_preserved(self):
        assert serialize_bindings([2, 1]) == "[2,1]"

    def test_tuple_and_list_encode_alike(self):
        assert serialize_bindings((1, 2)) == serialize_bindings([1, 2])

    def test_nested_dict_keys_sorted(self):
        assert serialize_binding({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_non_ascii_kept(self):
        assert serialize_bindings(["é"]) == '["é"]'

    def test_datetime_and_date_tagged(self):
        dt = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        out = serialize_bindings([dt, date(2024, 1, 2)])
        assert "__datetime__" in out
        assert "2024-01-02T03:04:05+00:00" in out
        assert '"__date__":"2024-01-02"' in out

    def test_decimal_differs_from_int(self):
        assert serialize_bindings([Decimal("5")]) != serialize_bindings([5])

    def test_uuid_and_bytes(self):
        u = uuid.UUID("12345678-1234-5678-1234-567812345678")
        out = serialize_bindings([u, b"\x01\xff"])
        assert str(u) in out
        assert "01ff" in out

    def test_enum(self):
        assert "RED" in serialize_bindings([Color.RED])

    def test_set_is_order_independent(self):
        assert serialize_bindings([{3, 1, 2}]) == serialize_bindings([{2, 3, 1}])

    def test_unsupported_type_raises(self):
        with pytest.raises(CacheSerializationFault):
            serialize_bindings([object()])
