"""
Tests for the fault taxonomy.
"""

from __future__ import annotations

from querycache.faults import (
    CacheConfigFault,
    CacheConnectionFault,
    CacheFault,
    CacheSerializationFault,
    Fault,
    FaultDomain,
    Severity,
    UnknownStoreFault,
    UnsupportedOperationFault,
)


class TestCacheFaults:

    def test_hierarchy(self):
        for fault in (
            CacheConfigFault("bad"),
            CacheConnectionFault("redis", "refused"),
            CacheSerializationFault("k", "serialize", "nope"),
            UnknownStoreFault("x"),
            UnsupportedOperationFault("null", "flush_tag"),
        ):
            assert isinstance(fault, CacheFault)
            assert isinstance(fault, Fault)
            assert isinstance(fault, Exception)
            assert fault.domain == FaultDomain.CACHE

    def test_codes(self):
        assert CacheConfigFault("bad").code == "CACHE_CONFIG_INVALID"
        assert CacheConnectionFault("redis", "refused").code == "CACHE_CONNECTION_FAILED"
        assert UnknownStoreFault("x").code == "CACHE_STORE_UNKNOWN"
        assert UnsupportedOperationFault("null", "flush_tag").code == "CACHE_OPERATION_UNSUPPORTED"

    def test_severity_and_retry(self):
        conn = CacheConnectionFault("redis", "refused")
        assert conn.severity is Severity.ERROR
        assert conn.retryable is True

        config = CacheConfigFault("bad")
        assert config.severity is Severity.FATAL
        assert config.retryable is False

    def test_str_and_metadata(self):
        fault = UnknownStoreFault("redis", ("memory",))
        assert str(fault).startswith("[CACHE_STORE_UNKNOWN]")
        assert "redis" in fault.message
        assert fault.metadata == {"store": "redis", "available": ["memory"]}

    def test_to_dict(self):
        d = CacheSerializationFault("k", "deserialize", "truncated").to_dict()
        assert d["code"] == "CACHE_SERIALIZATION_FAILED"
        assert d["domain"] == "cache"
        assert d["severity"] == "warn"
        assert d["retryable"] is False
        assert d["metadata"]["operation"] == "deserialize"

    def test_domain_defaults(self):
        fault = Fault("X", "custom", domain=FaultDomain.CONFIG)
        assert fault.severity is Severity.FATAL
        assert fault.retryable is False
        assert FaultDomain.CONFIG == "config"
