"""Expiry and FIFO eviction of the search result cache."""

from cura.cache import SearchCache
from cura.models import SearchResult


def _results(label: str) -> list:
    return [SearchResult(id=label, title=label, url=f"/product/{label}", relevance_score=1.0)]


def test_entries_expire_after_ttl(clock):
    cache = SearchCache(max_size=10, ttl_seconds=300, clock=clock)
    cache.set("k", _results("a"))

    clock.advance(299)
    assert cache.get("k") == _results("a")

    clock.advance(1)
    assert cache.get("k") is None
    assert "k" not in cache


def test_earliest_inserted_key_is_evicted_when_full(clock):
    cache = SearchCache(max_size=100, ttl_seconds=300, clock=clock)
    for index in range(101):
        cache.set(f"key-{index}", _results(str(index)))

    assert len(cache) == 100
    assert "key-0" not in cache
    assert "key-1" in cache
    assert "key-100" in cache


def test_reads_do_not_refresh_eviction_order(clock):
    """Eviction is strict FIFO: a recently read key is still evicted first."""

    cache = SearchCache(max_size=2, ttl_seconds=300, clock=clock)
    cache.set("a", _results("a"))
    cache.set("b", _results("b"))
    assert cache.get("a") is not None

    cache.set("c", _results("c"))

    assert "a" not in cache
    assert "b" in cache
    assert "c" in cache


def test_rewriting_existing_key_does_not_evict_others(clock):
    cache = SearchCache(max_size=2, ttl_seconds=300, clock=clock)
    cache.set("a", _results("a"))
    cache.set("b", _results("b"))

    cache.set("a", _results("a2"))

    assert len(cache) == 2
    assert cache.get("a") == _results("a2")
    assert "b" in cache


def test_purge_expired_drops_only_stale_entries(clock):
    cache = SearchCache(max_size=10, ttl_seconds=300, clock=clock)
    cache.set("old", _results("old"))
    clock.advance(200)
    cache.set("new", _results("new"))
    clock.advance(150)

    assert cache.purge_expired() == 1
    assert "old" not in cache
    assert "new" in cache


def test_stats_and_clear(clock):
    cache = SearchCache(max_size=5, ttl_seconds=300, clock=clock)
    cache.set("a", _results("a"))
    cache.get("a")
    cache.get("missing")
    cache.get("missing")

    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (1, 1, 2)
    assert stats.hit_rate == 1 / 3

    cache.clear()
    cleared = cache.stats()
    assert (cleared.size, cleared.hits, cleared.misses, cleared.hit_rate) == (0, 0, 0, 0.0)
