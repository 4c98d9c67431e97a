"""
Tests for CacheOptions and duration helpers.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from querycache.core import FOREVER, KeyFormat, has_expiry, ttl_seconds
from querycache.options import CacheOptions


class TestCacheOptionsDefaults:

    def test_caching_is_opt_in(self):
        opts = CacheOptions()
        assert opts.should_avoid_cache is True
        assert opts.duration is None

    def test_defaults(self):
        opts = CacheOptions()
        assert opts.prefix == "Model"
        assert opts.key_format is KeyFormat.HASHED
        assert opts.driver is None
        assert opts.tags == frozenset()
        assert opts.base_tags == frozenset()

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            CacheOptions().prefix = "x"


class TestCacheOptionsSetters:

    def test_setters_return_new_instances(self):
        base = CacheOptions()
        configured = base.cache_for(60)
        assert configured is not base
        assert base.should_avoid_cache is True
        assert configured.should_avoid_cache is False
        assert configured.duration == 60

    def test_cache_forever(self):
        opts = CacheOptions().cache_forever()
        assert opts.duration is FOREVER
        assert opts.should_avoid_cache is False

    def test_dont_cache_keeps_duration(self):
        opts = CacheOptions().cache_for(60).dont_cache()
        assert opts.should_avoid_cache is True
        assert opts.duration == 60

    def test_do_not_cache_alias(self):
        assert CacheOptions().cache_for(60).do_not_cache() == CacheOptions().cache_for(60).dont_cache()

    def test_cache_for_reenables(self):
        opts = CacheOptions().cache_for(60).dont_cache().cache_for(30)
        assert opts.should_avoid_cache is False
        assert opts.duration == 30

    def test_cache_tags_replaces(self):
        opts = CacheOptions().cache_tags(["a", "b"]).cache_tags(["c"])
        assert opts.tags == frozenset({"c"})

    def test_cache_tags_none_clears(self):
        assert CacheOptions().cache_tags(["a"]).cache_tags(None).tags == frozenset()

    def test_append_cache_tags_unions(self):
        opts = CacheOptions().cache_tags(["a"]).append_cache_tags(["b", "a"])
        assert opts.tags == frozenset({"a", "b"})

    def test_single_string_is_one_tag(self):
        assert CacheOptions().cache_tags("users").tags == frozenset({"users"})

    def test_all_tags_includes_base_tags(self):
        opts = CacheOptions().cache_base_tags(["base"]).cache_tags(["users"])
        assert opts.all_tags == frozenset({"base", "users"})

    def test_prefix_driver_plain_key(self):
        opts = CacheOptions().cache_prefix("User").cache_driver("redis").with_plain_key()
        assert opts.prefix == "User"
        assert opts.driver == "redis"
        assert opts.should_use_plain_key is True

    def test_tags_do_not_enable_caching(self):
        assert CacheOptions().cache_tags(["users"]).should_avoid_cache is True


# ============================================================================
# Durations
# ============================================================================


class TestDurations:

    @pytest.mark.parametrize("duration", [60, 0.5, timedelta(seconds=1)])
    def test_positive_durations_expire(self, duration):
        assert has_expiry(duration) is True

    @pytest.mark.parametrize("duration", [0, -5, timedelta(0), FOREVER, None, True])
    def test_non_positive_durations_are_forever(self, duration):
        assert has_expiry(duration) is False

    def test_datetime_always_expires(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        assert has_expiry(past) is True

    def test_ttl_seconds_number_and_timedelta(self):
        assert ttl_seconds(60) == 60.0
        assert ttl_seconds(timedelta(minutes=2)) == 120.0

    def test_ttl_seconds_datetime(self):
        ttl = ttl_seconds(datetime.now(timezone.utc) + timedelta(seconds=100))
        assert 90 < ttl <= 100

    def test_ttl_seconds_naive_datetime(self):
        assert ttl_seconds(datetime.now() - timedelta(seconds=10)) < 0

    def test_ttl_seconds_forever_raises(self):
        with pytest.raises(TypeError):
            ttl_seconds(FOREVER)
