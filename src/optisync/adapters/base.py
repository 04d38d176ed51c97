"""Protocols for the cache store and the network transport."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from optisync.types import CacheEntry, CacheKey, KeySelector, MutationRequest, MutationResponse

# Called with the key and the new entry, or None when the key was removed.
Listener = Callable[[CacheKey, CacheEntry[Any] | None], None]


@runtime_checkable
class CacheStore(Protocol):
    """Sync key-addressed store of query results.

    Writes are synchronous so that, on a single event loop, every write is
    atomic with respect to readers.
    """

    def get(self, key: CacheKey) -> CacheEntry[Any] | None:
        """Get the entry for a key."""
        ...

    def set(self, key: CacheKey, value: Any) -> None:
        """Store a fresh value, replacing any existing entry."""
        ...

    def put(self, key: CacheKey, entry: CacheEntry[Any]) -> None:
        """Write an entry verbatim, metadata included."""
        ...

    def delete(self, key: CacheKey) -> None:
        """Evict a key."""
        ...

    def keys(self, selector: KeySelector) -> list[CacheKey]:
        """List the stored keys matched by a selector."""
        ...

    def invalidate(self, selector: KeySelector) -> list[CacheKey]:
        """Mark matching entries stale. Returns the keys marked."""
        ...

    def begin_read(self, key: CacheKey) -> int:
        """Register an in-flight read and return its generation token."""
        ...

    def end_read(self, key: CacheKey, token: int, value: Any) -> bool:
        """Finish a read; the value is written only if it was not cancelled."""
        ...

    def is_current(self, key: CacheKey, token: int) -> bool:
        """Whether a read with this token has not been superseded."""
        ...

    def abort_read(self, key: CacheKey) -> None:
        """Finish a read that failed without a value."""
        ...

    def cancel_reads(self, selector: KeySelector) -> list[CacheKey]:
        """Supersede in-flight reads on matching keys."""
        ...

    def subscribe(self, key: CacheKey, listener: Listener) -> Callable[[], None]:
        """Listen for writes to a key. Returns an unsubscribe callable."""
        ...

    def has_listeners(self, key: CacheKey) -> bool:
        """Whether anything is subscribed to a key."""
        ...

    def clear(self) -> None:
        """Evict every entry."""
        ...


@runtime_checkable
class MutationTransport(Protocol):
    """Async network mutation interface."""

    async def send(self, request: MutationRequest) -> MutationResponse:
        """Send a mutation. Raises a SyncError subclass on failure."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        ...
