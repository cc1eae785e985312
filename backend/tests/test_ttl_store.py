"""Tests for TTLStore."""

import pytest

from repo_preview.utils.ttl_store import TTLStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestTTLStore:
    """Tests for TTLStore."""

    def test_get_before_expiry(self, clock):
        store = TTLStore(60, clock=clock)
        store.set("octo/demo:", ["file"])

        clock.now += 59
        assert store.get("octo/demo:") == ["file"]

    def test_entry_expires(self, clock):
        store = TTLStore(60, clock=clock)
        store.set("key", "value")

        clock.now += 60
        assert store.get("key") is None
        assert len(store) == 0

    def test_set_refreshes_expiry(self, clock):
        store = TTLStore(60, clock=clock)
        store.set("key", "old")
        clock.now += 30
        store.set("key", "new")
        clock.now += 45

        assert store.get("key") == "new"

    def test_missing_key(self, clock):
        assert TTLStore(60, clock=clock).get("nope") is None

    def test_delete_and_clear(self, clock):
        store = TTLStore(60, clock=clock)
        store.set("a", 1)
        store.set("b", 2)

        store.delete("a")
        store.delete("a")
        assert store.get("a") is None
        assert len(store) == 1

        store.clear()
        assert len(store) == 0

    def test_evict_expired(self, clock):
        store = TTLStore(10, clock=clock)
        store.set("a", 1)
        clock.now += 5
        store.set("b", 2)
        clock.now += 6

        assert store.evict_expired() == 1
        assert store.get("b") == 2

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_ttl_rejected(self, ttl):
        with pytest.raises(ValueError):
            TTLStore(ttl)
