"""
Tests for value serializers.
"""

from __future__ import annotations

import pytest

from querycache.faults import CacheSerializationFault
from querycache.serializers import (
    JsonCacheSerializer,
    MsgpackCacheSerializer,
    PickleCacheSerializer,
    get_serializer,
)


class TestSerializers:

    def test_json_round_trip(self):
        s = JsonCacheSerializer()
        data = s.serialize([{"id": 1, "name": "alice"}])
        assert isinstance(data, bytes)
        assert s.deserialize(data) == [{"id": 1, "name": "alice"}]

    def test_json_falls_back_to_str(self):
        s = JsonCacheSerializer()
        assert s.deserialize(s.serialize({"obj": object})) == {"obj": str(object)}

    def test_json_bad_payload(self):
        with pytest.raises(CacheSerializationFault):
            JsonCacheSerializer().deserialize(b"{not json")

    def test_pickle_preserves_types(self):
        s = PickleCacheSerializer()
        assert s.deserialize(s.serialize({"ids": (1, 2), "set": {3}})) == {"ids": (1, 2), "set": {3}}

    def test_pickle_bad_payload(self):
        with pytest.raises(CacheSerializationFault):
            PickleCacheSerializer().deserialize(b"")

    def test_msgpack_round_trip(self):
        pytest.importorskip("msgpack")
        s = MsgpackCacheSerializer()
        assert s.deserialize(s.serialize({"rows": [1, 2]})) == {"rows": [1, 2]}

    def test_get_serializer(self):
        assert isinstance(get_serializer("json"), JsonCacheSerializer)
        assert isinstance(get_serializer("pickle"), PickleCacheSerializer)
        assert get_serializer("msgpack").name == "msgpack"

    def test_unknown_serializer(self):
        with pytest.raises(ValueError):
            get_serializer("xml")
