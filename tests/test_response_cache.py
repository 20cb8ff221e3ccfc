from habit_engine.response_cache import ResponseCache, make_cache_key
from habit_engine.storage import MemoryStore

from helpers import FakeClock


def test_cache_key_ignores_vision_order_but_not_identity():
    a = make_cache_key("u1", ["v2", "v1"])
    b = make_cache_key("u1", ["v1", "v2"])
    c = make_cache_key("u2", ["v1", "v2"])

    assert a == b
    assert a != c
    assert a.startswith("actions_")
    assert make_cache_key("u1", ["v1"]) != make_cache_key("u1", ["v1", "v2"])


def test_entry_expires_at_ttl():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=300, clock=clock)
    cache.set("k", [{"description": "walk"}])

    clock.advance(299)
    assert cache.get("k") == [{"description": "walk"}]

    clock.advance(1)
    assert cache.get("k") is None


def test_expired_entry_is_removed_from_store():
    clock = FakeClock()
    store = MemoryStore()
    cache = ResponseCache(ttl_seconds=10, store=store, clock=clock)
    cache.set("k", 1)

    clock.advance(10)
    cache.get("k")

    assert store.read("cache:k") is None


def test_evict_expired_only_touches_old_entries():
    clock = FakeClock()
    store = MemoryStore()
    store.write("rate:u1", {"identity": "u1", "count": 1, "windowStart": 0})
    cache = ResponseCache(ttl_seconds=10, store=store, clock=clock)
    cache.set("old", 1)
    clock.advance(6)
    cache.set("new", 2)
    clock.advance(5)

    assert cache.evict_expired() == 1
    assert cache.get("new") == 2
    assert store.read("rate:u1") is not None


def test_clear_drops_all_cache_entries():
    cache = ResponseCache(clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    cache.clear()

    assert cache.get("a") is None
    assert cache.get("b") is None


def test_set_sweeps_entries_nobody_asks_for_again():
    clock = FakeClock()
    store = MemoryStore()
    cache = ResponseCache(ttl_seconds=300, store=store, clock=clock)
    cache.set("u1-visions", 1)
    cache.set("u2-visions", 2)

    clock.advance(300)
    cache.set("u3-visions", 3)

    assert store.read("cache:u1-visions") is None
    assert store.read("cache:u2-visions") is None
    assert cache.get("u3-visions") == 3
