"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from optisync import (
    MemoryStore,
    MutationRequest,
    MutationResponse,
    Notice,
    QueryClient,
    Synchronizer,
    create_query_client,
)
from optisync.types import InfiniteData, Page


class FakeTransport:
    """Records requests and answers from a queue of responses or errors.

    Each queued item is a MutationResponse, an exception to raise, or a
    callable taking the request and returning either. Set `gate` to hold
    every send until the event is set.
    """

    def __init__(self) -> None:
        self.requests: list[MutationRequest] = []
        self.queue: list[Any] = []
        self.default: Any = MutationResponse(status=200)
        self.gate: asyncio.Event | None = None
        self.closed = False

    def respond(self, *items: Any) -> None:
        self.queue.extend(items)

    async def send(self, request: MutationRequest) -> MutationResponse:
        self.requests.append(request)
        item = self.queue.pop(0) if self.queue else self.default
        if self.gate is not None:
            await self.gate.wait()
        if callable(item) and not isinstance(item, type):
            item = item(request)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def feed(*records: dict[str, Any], next_cursor: str | None = None) -> InfiniteData:
    """Build a one-page feed."""
    return InfiniteData(pages=(Page(records=tuple(records), next_cursor=next_cursor),))


def post(post_id: str, user_id: str = "author", **extra: Any) -> dict[str, Any]:
    """Build a post record as the feed endpoints return it."""
    record: dict[str, Any] = {
        "id": post_id,
        "content": f"post {post_id}",
        "user": {"id": user_id, "username": user_id, "followers": [], "_count": {"followers": 0}},
        "likes": [],
        "bookmarks": [],
        "_count": {"likes": 0, "comments": 0},
    }
    record.update(extra)
    return record


@pytest.fixture
def store() -> MemoryStore:
    """Create a fresh MemoryStore with a fixed clock."""
    return MemoryStore(clock=lambda: 1000)


@pytest.fixture
def client(store: MemoryStore) -> QueryClient:
    """Create a query client over the store."""
    return create_query_client(store=store)


@pytest.fixture
def transport() -> FakeTransport:
    """Create a transport that succeeds with an empty 200 by default."""
    return FakeTransport()


@pytest.fixture
def notices() -> list[Notice]:
    """Collect notices emitted by the synchronizer."""
    return []


@pytest.fixture
def sync(client: QueryClient, transport: FakeTransport, notices: list[Notice]) -> Synchronizer:
    """Create a synchronizer signed in as u1."""
    return Synchronizer(client, transport, viewer_id="u1", notify=notices.append)
