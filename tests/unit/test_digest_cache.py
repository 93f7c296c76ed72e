"""
Unit tests for the TTL cache.
"""
import asyncio

import pytest

from mqdockerup.REGISTRY.digest_cache import DigestCache, cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestDigestCache:
    """Tests for DigestCache."""

    def test_set_and_get(self):
        cache = DigestCache(ttl=10, clock=FakeClock())
        cache.set("registry:nginx", "DockerHub")
        assert cache.get("registry:nginx") == "DockerHub"

    def test_entries_expire(self):
        clock = FakeClock()
        cache = DigestCache(ttl=10, clock=clock)
        cache.set("k", "v")
        clock.now += 9.9
        assert cache.get("k") == "v"
        clock.now += 0.1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_default_for_missing(self):
        assert DigestCache().get("missing", "fallback") == "fallback"

    def test_oldest_evicted_first(self):
        cache = DigestCache(ttl=60, max_entries=2, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_clear(self):
        cache = DigestCache()
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0

    def test_get_or_load_caches(self):
        cache = DigestCache(ttl=60, clock=FakeClock())
        calls = []

        async def loader():
            calls.append(1)
            return "github.com/a/b"

        async def scenario():
            first = await cache.get_or_load("source:a/b", loader)
            second = await cache.get_or_load("source:a/b", loader)
            return first, second

        assert asyncio.run(scenario()) == ("github.com/a/b", "github.com/a/b")
        assert len(calls) == 1

    def test_get_or_load_caches_none(self):
        cache = DigestCache(ttl=60, clock=FakeClock())
        calls = []

        async def loader():
            calls.append(1)
            return None

        async def scenario():
            await cache.get_or_load("source:x", loader)
            await cache.get_or_load("source:x", loader)

        asyncio.run(scenario())
        assert len(calls) == 1

    def test_get_or_load_does_not_cache_errors(self):
        cache = DigestCache()

        async def loader():
            raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            asyncio.run(cache.get_or_load("k", loader))
        assert len(cache) == 0

    def test_cache_key(self):
        assert cache_key("registry", "nginx") == "registry:nginx"
