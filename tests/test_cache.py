from fakes import FakeClock
from utils.cache import TTLCache


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("k", 1)
    clock.advance(10)
    assert cache.get("k") == 1
    clock.advance(0.5)
    assert cache.get("k") is None


def test_oldest_entry_evicted_when_full():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=100, maxsize=2, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    clock.advance(1)
    cache.set("a", 3)  # overwrite does not evict
    assert cache.get("b") == 2
    cache.set("c", 4)
    assert cache.get("b") is None
    assert cache.get("a") == 3
    assert cache.get("c") == 4
