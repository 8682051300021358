import pytest

from world_synth.runtime.lru_cache import LRUCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        LRUCache(max_entries=0)


def test_evicts_least_recently_used():
    cache = LRUCache(max_entries=2, ttl_seconds=None)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1, "Reading 'a' should make 'b' the eviction candidate"
    cache.set("c", 3)
    assert cache.keys() == ["a", "c"]
    assert cache.get("b") is None


def test_set_refreshes_existing_key():
    cache = LRUCache(max_entries=2, ttl_seconds=None)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)
    assert "b" not in cache
    assert cache.get("a") == 10
    assert len(cache) == 2


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = LRUCache(max_entries=5, ttl_seconds=10.0, clock=clock)
    cache.set("a", 1)
    clock.now = 10.0
    assert cache.has("a"), "An entry exactly at its TTL is still live"
    clock.now = 10.5
    assert cache.get("a") is None
    assert len(cache) == 0, "Reading an expired entry removes it"


def test_prune_counts_removed_entries():
    clock = FakeClock()
    cache = LRUCache(max_entries=5, ttl_seconds=5.0, clock=clock)
    cache.set("old1", 1)
    cache.set("old2", 2)
    clock.now = 4.0
    cache.set("fresh", 3)
    clock.now = 6.0
    assert cache.prune() == 2
    assert cache.keys() == ["fresh"]


def test_delete_and_clear():
    cache = LRUCache(max_entries=3)
    cache.set("a", 1)
    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.set("b", 2)
    cache.clear()
    assert len(cache) == 0
