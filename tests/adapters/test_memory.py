"""Tests for memory store."""

from typing import Any

from optisync import CacheEntry, CacheStore, KeySelector, MemoryStore, keys


class TestMemoryStore:
    """Tests for MemoryStore reads and writes."""

    def test_implements_protocol(self, store: MemoryStore) -> None:
        """Test that the store satisfies CacheStore."""
        assert isinstance(store, CacheStore)

    def test_get_nonexistent_returns_none(self, store: MemoryStore) -> None:
        """Test that getting a nonexistent key returns None."""
        assert store.get(keys.like_data("nope")) is None

    def test_set_and_get(self, store: MemoryStore) -> None:
        """Test setting and getting a value."""
        store.set(keys.user_data("alice"), {"id": "u2"})
        assert store.get(keys.user_data("alice")) == CacheEntry(value={"id": "u2"}, updated_at=1000)

    def test_delete(self, store: MemoryStore) -> None:
        """Test deleting a value."""
        store.set(keys.user_data("alice"), {"id": "u2"})
        store.delete(keys.user_data("alice"))
        store.delete(keys.user_data("alice"))
        assert store.get(keys.user_data("alice")) is None

    def test_clear(self, store: MemoryStore) -> None:
        """Test clearing all entries."""
        store.set(keys.user_data("alice"), 1)
        store.set(keys.for_you_feed(), 2)
        store.clear()
        assert store.keys(KeySelector.for_prefix()) == []

    def test_keys_by_selector(self, store: MemoryStore) -> None:
        """Test listing keys in insertion order."""
        store.set(keys.user_feed("u1"), 1)
        store.set(keys.like_data("p1"), 2)
        store.set(keys.for_you_feed(), 3)
        assert store.keys(keys.all_post_feeds()) == [keys.user_feed("u1"), keys.for_you_feed()]

    def test_invalidate_keeps_value(self, store: MemoryStore) -> None:
        """Test that invalidation marks entries stale without dropping them."""
        store.set(keys.for_you_feed(), "feed")
        assert store.invalidate(keys.all_post_feeds()) == [keys.for_you_feed()]
        assert store.get(keys.for_you_feed()) == CacheEntry(
            value="feed", updated_at=1000, is_stale=True
        )


class TestReadTokens:
    """Tests for in-flight read tracking."""

    def test_current_read_is_written(self, store: MemoryStore) -> None:
        """Test a read that is not superseded."""
        token = store.begin_read(keys.like_data("p1"))
        assert store.pending_reads(keys.like_data("p1")) == 1
        assert store.end_read(keys.like_data("p1"), token, "value")
        assert store.pending_reads(keys.like_data("p1")) == 0
        entry = store.get(keys.like_data("p1"))
        assert entry is not None and entry.value == "value"

    def test_cancelled_read_is_discarded(self, store: MemoryStore) -> None:
        """Test that cancel_reads supersedes a pending read."""
        key = keys.like_data("p1")
        token = store.begin_read(key)

        assert store.cancel_reads(keys.all_post_feeds()) == []
        assert store.cancel_reads(KeySelector.exact(key)) == [key]
        assert not store.is_current(key, token)
        assert not store.end_read(key, token, "late")
        assert store.get(key) is None

    def test_cancel_without_pending_reads(self, store: MemoryStore) -> None:
        """Test that idle keys keep their generation."""
        key = keys.like_data("p1")
        assert store.cancel_reads(KeySelector.exact(key)) == []
        token = store.begin_read(key)
        assert store.is_current(key, token)

    def test_abort_releases(self, store: MemoryStore) -> None:
        """Test that aborting a read releases it."""
        key = keys.like_data("p1")
        store.begin_read(key)
        store.begin_read(key)
        store.abort_read(key)
        assert store.pending_reads(key) == 1
        store.abort_read(key)
        assert store.pending_reads(key) == 0


class TestListeners:
    """Tests for per-key listeners."""

    def test_notified_on_write_and_delete(self, store: MemoryStore) -> None:
        """Test listener calls."""
        events: list[tuple[Any, Any]] = []
        key = keys.like_data("p1")
        unsubscribe = store.subscribe(key, lambda k, e: events.append((k, e)))

        store.set(key, 1)
        store.delete(key)
        unsubscribe()
        store.set(key, 2)

        assert events == [(key, CacheEntry(value=1, updated_at=1000)), (key, None)]
        assert not store.has_listeners(key)

    def test_failing_listener_does_not_break_writes(self, store: MemoryStore) -> None:
        """Test that listener errors are logged and swallowed."""

        def broken(key: Any, entry: Any) -> None:
            raise RuntimeError("listener bug")

        store.subscribe(keys.like_data("p1"), broken)
        store.set(keys.like_data("p1"), 1)

        entry = store.get(keys.like_data("p1"))
        assert entry is not None and entry.value == 1
