from __future__ import annotations

from scrobble_collage.cache import ImageUrlCache
from scrobble_collage.models import CacheEntry


def test_get_returns_stored_entry():
    cache = ImageUrlCache()
    cache.set("abcextralarge", CacheEntry(url="https://img.test/a.jpg", album="A"))

    assert cache.get("abcextralarge") == CacheEntry(url="https://img.test/a.jpg", album="A")
    assert cache.get("missing") is None
    assert "abcextralarge" in cache


def test_cache_is_cleared_after_exceeding_store_count():
    cache = ImageUrlCache(max_size=10_000)
    for index in range(10_001):
        cache.set(f"key-{index}", CacheEntry(url=f"https://img.test/{index}.jpg"))

    assert len(cache) == 10_001
    assert cache.store_count == 10_001
    assert cache.get("key-0") is not None

    cache.set("key-next", CacheEntry(url="https://img.test/next.jpg"))

    assert len(cache) == 1
    assert cache.store_count == 1
    assert cache.get("key-0") is None
    assert cache.get("key-next") == CacheEntry(url="https://img.test/next.jpg")


def test_repeated_stores_of_one_key_still_count():
    cache = ImageUrlCache(max_size=2)
    for _ in range(3):
        cache.set("same", CacheEntry(url="https://img.test/same.jpg"))
    cache.set("other", CacheEntry(url="https://img.test/other.jpg"))

    assert "same" not in cache
    assert len(cache) == 1
