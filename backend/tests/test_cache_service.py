import pytest

from employee_space.services.cache_service import EXTENSION_KEY, TTLCache, get_cache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_entries_expire_after_ttl(clock):
    cache = TTLCache(max_entries=4, ttl_seconds=30, clock=clock)
    cache.set("toil:counts", [1])

    clock.now += 29
    assert cache.get("toil:counts") == [1]

    clock.now += 1
    assert cache.get("toil:counts") is None
    assert len(cache) == 0


def test_per_key_ttl(clock):
    cache = TTLCache(ttl_seconds=30, clock=clock)
    cache.set("short", 1, ttl_seconds=5)
    clock.now += 6
    assert cache.get("short", "gone") == "gone"


def test_least_recently_used_is_evicted(clock):
    cache = TTLCache(max_entries=2, ttl_seconds=30, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_invalidate_by_prefix(clock):
    cache = TTLCache(clock=clock)
    cache.set("projects:user:1", [])
    cache.set("projects:managed:1", [])
    cache.set("toil:pending_counts", [])

    assert cache.invalidate("projects:") == 2
    assert cache.get("toil:pending_counts") == []


def test_get_or_load_calls_loader_once(clock):
    cache = TTLCache(clock=clock)
    loads = []

    def loader():
        loads.append(1)
        return {"value": 1}

    assert cache.get_or_load("k", loader) == {"value": 1}
    assert cache.get_or_load("k", loader) == {"value": 1}
    assert len(loads) == 1


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        TTLCache(max_entries=0)


def test_application_cache_is_default(app):
    injected = TTLCache()
    assert get_cache(injected) is injected
    assert get_cache() is app.extensions[EXTENSION_KEY]
    assert get_cache().ttl_seconds == app.config["CACHE_TTL_SECONDS"]
