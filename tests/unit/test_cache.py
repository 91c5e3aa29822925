"""
Unit tests for the app cache.
"""

import threading

import pytest

from routekit.cache import Cache, cache_key


class TestCache:
    def test_key_format(self):
        assert cache_key("file", "/srv/a.html") == "_file:/srv/a.html"
        assert cache_key("format", "views/x") == "_format:views/x"

    def test_get_set(self):
        cache = Cache()
        cache.set("k", "v")

        assert cache.get("k") == "v"
        assert cache.get("missing") is None
        assert cache.get("missing", "d") == "d"
        assert "k" in cache
        assert len(cache) == 1

    def test_get_or_set_calls_factory_once(self):
        cache = Cache()
        calls = []

        def factory():
            calls.append(1)
            return "value"

        assert cache.get_or_set("k", factory) == "value"
        assert cache.get_or_set("k", factory) == "value"
        assert len(calls) == 1

    def test_failing_factory_stores_nothing(self):
        cache = Cache()

        def factory():
            raise OSError("disk")

        with pytest.raises(OSError):
            cache.get_or_set("k", factory)
        assert "k" not in cache

    def test_invalidate_and_clear(self):
        cache = Cache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert list(cache.keys()) == ["b"]
        cache.clear()
        assert len(cache) == 0

    def test_concurrent_get_or_set_agrees_on_one_value(self):
        cache = Cache()
        barrier = threading.Barrier(8)
        results = []

        def worker(n):
            barrier.wait()
            results.append(cache.get_or_set("shared", lambda: f"value-{n}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 1
        assert cache.get("shared") == results[0]
