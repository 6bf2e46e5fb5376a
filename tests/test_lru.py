import threading

import pytest

from blinkdb.lru import LRUCache


def test_put_then_get_returns_value():
    cache = LRUCache(2)
    assert cache.put("a", "1") is True
    assert cache.get("a") == "1"


def test_missing_key_returns_none():
    cache = LRUCache(2)
    assert cache.get("missing") is None


def test_capacity_property():
    assert LRUCache(5).capacity == 5


def test_evicts_least_recently_used():
    cache = LRUCache(2)
    cache.put("a", "1")
    cache.put("b", "2")
    cache.put("c", "3")
    assert cache.get("a") is None
    assert cache.get("b") == "2"
    assert cache.get("c") == "3"
    assert len(cache) == 2


def test_get_refreshes_recency():
    cache = LRUCache(2)
    cache.put("a", "1")
    cache.put("b", "2")
    cache.get("a")
    cache.put("c", "3")
    assert cache.get("b") is None
    assert cache.get("a") == "1"


def test_update_existing_does_not_evict():
    cache = LRUCache(2)
    cache.put("a", "1")
    cache.put("b", "2")
    cache.put("a", "updated")
    assert len(cache) == 2
    assert cache.get("a") == "updated"
    assert cache.get("b") == "2"


def test_update_refreshes_recency():
    cache = LRUCache(2)
    cache.put("a", "1")
    cache.put("b", "2")
    cache.put("a", "x")
    cache.put("c", "3")
    assert cache.get("b") is None
    assert cache.get("a") == "x"


def test_remove():
    cache = LRUCache(3)
    cache.put("a", "1")
    assert cache.remove("a") is True
    assert cache.remove("a") is False
    assert cache.get("a") is None
    assert len(cache) == 0


@pytest.mark.parametrize("position", ["first", "middle", "last"])
def test_remove_any_position_keeps_rest(position):
    cache = LRUCache(3)
    for key in ("first", "middle", "last"):
        cache.put(key, key.upper())
    cache.remove(position)
    remaining = {k for k in ("first", "middle", "last") if k != position}
    assert {k for k in remaining if cache.get(k) == k.upper()} == remaining
    assert len(cache) == 2


def test_zero_capacity_holds_one_entry():
    cache = LRUCache(0)
    cache.put("a", "1")
    cache.put("b", "2")
    assert len(cache) == 1
    assert cache.get("b") == "2"


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        LRUCache(-1)


def test_concurrent_puts_respect_capacity():
    cache = LRUCache(10)

    def worker(prefix):
        for i in range(200):
            cache.put(f"{prefix}{i}", str(i))

    threads = [threading.Thread(target=worker, args=(p,)) for p in "abcd"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(cache) == 10