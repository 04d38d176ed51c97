"""Query client - authoritative reads into the cache store.

This module provides:
- fetch(): cached read with stampede protection and stale re-fetch
- cancel_reads(): cooperative cancellation of in-flight reads
- invalidate(): mark keys stale and refetch the ones something listens to
- get_data(), set_data(): raw escape hatches
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar, cast

from optisync.adapters.base import CacheStore
from optisync.keys import serialize_key
from optisync.types import CacheKey, InfiniteData, KeySelector, Page

T = TypeVar("T")

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
PageFetcher = Callable[[str | None], Awaitable[Page]]


@dataclass
class _InFlightRead:
    token: int
    future: asyncio.Future[Any]


@dataclass
class QueryClient:
    """Reads authoritative state into a store on one event loop."""

    _store: CacheStore
    _in_flight: dict[CacheKey, _InFlightRead] = field(default_factory=dict)
    _fetchers: dict[CacheKey, Fetcher] = field(default_factory=dict)
    _background_tasks: set[asyncio.Task[None]] = field(default_factory=set)

    @property
    def store(self) -> CacheStore:
        return self._store

    async def fetch(
        self,
        key: CacheKey,
        fn: Callable[[], Awaitable[T]],
        *,
        force: bool = False,
    ) -> T:
        """Return the cached value, fetching when missing, stale or forced.

        Concurrent fetches of one key share a single call to fn. If the read
        is superseded by cancel_reads() while in flight, its result is not
        written and the caller receives the store's current value instead.
        """
        self._fetchers[key] = fn
        entry = self._store.get(key)
        if entry is not None and not entry.is_stale and not force:
            return cast(T, entry.value)

        existing = self._in_flight.get(key)
        if existing is not None and self._store.is_current(key, existing.token):
            return cast(T, await asyncio.shield(existing.future))

        return await self._read(key, fn)

    async def fetch_infinite(
        self,
        key: CacheKey,
        fetch_page: PageFetcher,
        *,
        force: bool = False,
    ) -> InfiniteData:
        """Read a paginated feed.

        A missing feed loads its first page. A stale feed reloads as many
        pages as were loaded before, following the fresh cursors.
        """

        async def load() -> InfiniteData:
            current = self.get_data(key)
            page_count = len(current.pages) if isinstance(current, InfiniteData) else 1
            pages: list[Page] = []
            params: list[str | None] = []
            cursor: str | None = None
            for _ in range(max(page_count, 1)):
                page = await fetch_page(cursor)
                pages.append(page)
                params.append(cursor)
                cursor = page.next_cursor
                if cursor is None:
                    break
            return InfiniteData(pages=tuple(pages), page_params=tuple(params))

        return await self.fetch(key, load, force=force)

    async def fetch_next_page(self, key: CacheKey, fetch_page: PageFetcher) -> InfiniteData:
        """Append the page after the last loaded one. No-op at the end of a feed."""
        current = self.get_data(key)
        if not isinstance(current, InfiniteData):
            return await self.fetch_infinite(key, fetch_page)
        cursor = current.pages[-1].next_cursor if current.pages else None
        if cursor is None:
            return current

        async def load_next() -> InfiniteData:
            page = await fetch_page(cursor)
            return InfiniteData(
                pages=(*current.pages, page),
                page_params=(*current.page_params, cursor),
            )

        return await self._read(key, load_next)

    def get_data(self, key: CacheKey) -> Any | None:
        """Raw get - the cached value, stale or not."""
        entry = self._store.get(key)
        return entry.value if entry is not None else None

    def set_data(self, key: CacheKey, value: Any) -> None:
        """Raw set - seed the cache, e.g. with server-rendered initial data."""
        self._store.set(key, value)

    def register(self, key: CacheKey, fn: Fetcher) -> None:
        """Remember how to refetch a key without fetching it now."""
        self._fetchers[key] = fn

    def cancel_reads(self, selector: KeySelector) -> list[CacheKey]:
        """Supersede in-flight reads matched by selector."""
        cancelled = self._store.cancel_reads(selector)
        for key in cancelled:
            logger.debug("Cancelled in-flight read for %s", serialize_key(key))
        return cancelled

    def invalidate(self, selector: KeySelector, *, refetch_active: bool = True) -> list[CacheKey]:
        """Mark matching keys stale.

        Keys with listeners are "active" and, when a fetcher is known for
        them, get refetched in a background task.
        """
        marked = self._store.invalidate(selector)
        if refetch_active:
            for key in marked:
                fn = self._fetchers.get(key)
                if fn is not None and self._store.has_listeners(key):
                    self._refetch_in_background(key, fn)
        return marked

    async def wait_idle(self) -> None:
        """Wait for background refetches to finish."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _read(self, key: CacheKey, fn: Callable[[], Awaitable[T]]) -> T:
        token = self._store.begin_read(key)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        read = _InFlightRead(token=token, future=future)
        self._in_flight[key] = read

        try:
            value = await fn()
        except asyncio.CancelledError:
            self._store.abort_read(key)
            future.cancel()
            raise
        except Exception as e:
            self._store.abort_read(key)
            future.set_exception(e)
            # Retrieve so an unawaited future does not log "exception never retrieved".
            future.exception()
            raise
        finally:
            if self._in_flight.get(key) is read:
                del self._in_flight[key]

        if not self._store.end_read(key, token, value):
            entry = self._store.get(key)
            if entry is not None:
                value = entry.value
        future.set_result(value)
        return value

    def _refetch_in_background(self, key: CacheKey, fn: Fetcher) -> None:
        """Refresh an active key in a background task."""

        async def refresh() -> None:
            try:
                await self._read(key, fn)
            except Exception:
                logger.warning("Background refetch failed for %s", serialize_key(key), exc_info=True)

        task = asyncio.create_task(refresh())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


def create_query_client(*, store: CacheStore) -> QueryClient:
    """Create a query client over a store."""
    return QueryClient(_store=store)


__all__ = ["QueryClient", "create_query_client"]
