"""In-memory cache store."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from optisync.adapters.base import Listener
from optisync.keys import serialize_key
from optisync.types import CacheEntry, CacheKey, KeySelector

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class MemoryStore:
    """In-memory store with read cancellation and per-key listeners.

    Entries are never expired or evicted on their own; they leave the store
    only through delete() or clear().
    """

    def __init__(self, *, clock: Callable[[], int] = _now_ms) -> None:
        self._entries: OrderedDict[CacheKey, CacheEntry[Any]] = OrderedDict()
        self._generations: dict[CacheKey, int] = {}
        self._pending: dict[CacheKey, int] = {}
        self._listeners: dict[CacheKey, list[Listener]] = {}
        self._clock = clock

    def get(self, key: CacheKey) -> CacheEntry[Any] | None:
        """Get the entry for a key."""
        return self._entries.get(key)

    def set(self, key: CacheKey, value: Any) -> None:
        """Store a fresh value, replacing any existing entry."""
        self.put(key, CacheEntry(value=value, updated_at=self._clock()))

    def put(self, key: CacheKey, entry: CacheEntry[Any]) -> None:
        """Write an entry verbatim, metadata included."""
        self._entries[key] = entry
        self._notify(key, entry)

    def delete(self, key: CacheKey) -> None:
        """Evict a key."""
        if self._entries.pop(key, None) is not None:
            self._notify(key, None)

    def keys(self, selector: KeySelector) -> list[CacheKey]:
        """List the stored keys matched by a selector, in insertion order."""
        return [key for key in self._entries if selector.matches(key)]

    def invalidate(self, selector: KeySelector) -> list[CacheKey]:
        """Mark matching entries stale so the next read re-fetches."""
        marked = []
        for key in self.keys(selector):
            entry = self._entries[key]
            if not entry.is_stale:
                self.put(
                    key,
                    CacheEntry(value=entry.value, updated_at=entry.updated_at, is_stale=True),
                )
            marked.append(key)
        return marked

    def begin_read(self, key: CacheKey) -> int:
        """Register an in-flight read and return its generation token."""
        self._pending[key] = self._pending.get(key, 0) + 1
        return self._generations.get(key, 0)

    def end_read(self, key: CacheKey, token: int, value: Any) -> bool:
        """Finish a read. A superseded read's value is discarded."""
        self._release(key)

        if not self.is_current(key, token):
            logger.debug("Discarding superseded read for %s", serialize_key(key))
            return False
        self.set(key, value)
        return True

    def is_current(self, key: CacheKey, token: int) -> bool:
        return self._generations.get(key, 0) == token

    def abort_read(self, key: CacheKey) -> None:
        """Finish a read that failed without a value."""
        self._release(key)

    def cancel_reads(self, selector: KeySelector) -> list[CacheKey]:
        """Supersede in-flight reads on matching keys."""
        cancelled = [key for key in self._pending if selector.matches(key)]
        for key in cancelled:
            self._generations[key] = self._generations.get(key, 0) + 1
        return cancelled

    def pending_reads(self, key: CacheKey) -> int:
        return self._pending.get(key, 0)

    def subscribe(self, key: CacheKey, listener: Listener) -> Callable[[], None]:
        """Listen for writes to a key. Returns an unsubscribe callable."""
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def has_listeners(self, key: CacheKey) -> bool:
        return bool(self._listeners.get(key))

    def clear(self) -> None:
        """Evict every entry."""
        for key in list(self._entries):
            self.delete(key)

    def _release(self, key: CacheKey) -> None:
        remaining = self._pending.get(key, 0) - 1
        if remaining > 0:
            self._pending[key] = remaining
        else:
            self._pending.pop(key, None)

    def _notify(self, key: CacheKey, entry: CacheEntry[Any] | None) -> None:
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(key, entry)
            except Exception:
                logger.exception("Cache listener failed for %s", serialize_key(key))
