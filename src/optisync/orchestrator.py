"""Mutation orchestrator - the optimistic update lifecycle.

Every action runs through one MutationLifecycle:

    Idle -> Canceling -> Snapshotting -> Applying -> InFlight
         -> Succeeded | Failed -> Settled

Invalid and unauthenticated actions go from Idle straight to Settled
without touching the cache. Applying is synchronous, so the optimistic
state is visible to every reader before the request is sent. Settled
always invalidates the affected keys, which makes the next read come from
the server no matter how concurrent actions interleaved.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from optisync import keys
from optisync.actions import (
    Action,
    BookmarkToggle,
    FollowToggle,
    LikeToggle,
    parse_action,
)
from optisync.adapters.base import CacheStore, MutationTransport
from optisync.adapters.http import HttpTransport
from optisync.adapters.memory import MemoryStore
from optisync.client import QueryClient, create_query_client
from optisync.errors import (
    ActionValidationError,
    NetworkError,
    SyncError,
    UnauthorizedError,
)
from optisync.keys import serialize_key
from optisync.rules import SKIP, ActionContext, UpdateRule, default_rules
from optisync.snapshot import Snapshot, take_snapshot
from optisync.types import (
    BookmarkData,
    CacheKey,
    Duration,
    FollowerData,
    KeySelector,
    LikeData,
    MutationResponse,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    CANCELING = "canceling"
    SNAPSHOTTING = "snapshotting"
    APPLYING = "applying"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SETTLED = "settled"


_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.IDLE: frozenset({Phase.CANCELING, Phase.SETTLED}),
    Phase.CANCELING: frozenset({Phase.SNAPSHOTTING}),
    Phase.SNAPSHOTTING: frozenset({Phase.APPLYING}),
    Phase.APPLYING: frozenset({Phase.IN_FLIGHT, Phase.FAILED}),
    Phase.IN_FLIGHT: frozenset({Phase.SUCCEEDED, Phase.FAILED}),
    Phase.SUCCEEDED: frozenset({Phase.SETTLED}),
    Phase.FAILED: frozenset({Phase.SETTLED}),
    Phase.SETTLED: frozenset(),
}


class MutationLifecycle:
    """State of one action's round trip. Not persisted."""

    __slots__ = ("_history", "kind")

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._history: list[Phase] = [Phase.IDLE]

    @property
    def phase(self) -> Phase:
        return self._history[-1]

    @property
    def history(self) -> tuple[Phase, ...]:
        return tuple(self._history)

    def advance(self, phase: Phase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"{self.kind}: illegal transition {self.phase.value} -> {phase.value}")
        logger.debug("%s: %s -> %s", self.kind, self.phase.value, phase.value)
        self._history.append(phase)


@dataclass(frozen=True, slots=True)
class Notice:
    """Non-blocking message for the UI (a toast)."""

    message: str
    variant: str = "default"  # "default" or "destructive"


Notifier = Callable[[Notice], None]


@dataclass(frozen=True, slots=True)
class MutationOutcome:
    """What the caller gets back once a lifecycle has settled."""

    kind: str
    ok: bool
    phases: tuple[Phase, ...]
    response: MutationResponse | None = None
    error: SyncError | None = None
    affected: tuple[CacheKey, ...] = ()

    @property
    def data(self) -> Any:
        return self.response.data if self.response is not None else None

    @property
    def rejected(self) -> bool:
        """True when the action never reached Snapshotting."""
        return Phase.SNAPSHOTTING not in self.phases


class Synchronizer:
    """Runs user actions as optimistic mutations against a query client.

    Usage:
        sync = Synchronizer(client, transport, viewer_id="u1")
        outcome = await sync.run(LikeToggle(post_id="p1", like=True))
        if not outcome.ok:
            ...  # the cache has already been rolled back
    """

    def __init__(
        self,
        client: QueryClient,
        transport: MutationTransport,
        *,
        viewer_id: str | None = None,
        rules: Mapping[str, UpdateRule[Any]] | None = None,
        notify: Notifier | None = None,
    ) -> None:
        self._client = client
        self._transport = transport
        self._viewer_id = viewer_id
        self._rules: dict[str, UpdateRule[Any]] = dict(rules if rules is not None else default_rules())
        self._notify = notify

    @property
    def client(self) -> QueryClient:
        return self._client

    @property
    def viewer_id(self) -> str | None:
        return self._viewer_id

    def set_session(self, viewer_id: str | None) -> None:
        """Switch the signed-in user; None signs out."""
        self._viewer_id = viewer_id

    def register_rule(self, rule: UpdateRule[Any]) -> None:
        self._rules[rule.kind] = rule

    async def dispatch(self, kind: str, payload: Mapping[str, Any] | None = None) -> MutationOutcome:
        """Validate a raw payload and run it. Malformed payloads are rejected."""
        try:
            action = parse_action(kind, payload)
        except ActionValidationError as e:
            return self._reject(MutationLifecycle(kind), e)
        return await self.run(action)

    async def run(self, action: Action) -> MutationOutcome:
        """Run one action through the full lifecycle. Never raises SyncError."""
        lifecycle = MutationLifecycle(action.kind)

        rule = self._rules.get(action.kind)
        if rule is None:
            return self._reject(lifecycle, ActionValidationError(f"No rule for {action.kind!r}"))
        if self._viewer_id is None:
            return self._reject(lifecycle, UnauthorizedError("Not signed in"))

        ctx: ActionContext[Any] = ActionContext(action=action, viewer_id=self._viewer_id)
        selectors = rule.selectors(ctx)

        lifecycle.advance(Phase.CANCELING)
        for selector in selectors:
            self._client.cancel_reads(selector)

        lifecycle.advance(Phase.SNAPSHOTTING)
        affected = self._affected_keys(selectors)
        snapshot = take_snapshot(self._client.store, affected)

        lifecycle.advance(Phase.APPLYING)
        try:
            self._apply(affected, lambda key, value: rule.transform(key, value, ctx))
            request = rule.request(ctx)
        except Exception:
            lifecycle.advance(Phase.FAILED)
            snapshot.restore()
            self._settle(lifecycle, selectors, snapshot)
            raise

        lifecycle.advance(Phase.IN_FLIGHT)
        try:
            response = await self._transport.send(request)
        except asyncio.CancelledError:
            lifecycle.advance(Phase.FAILED)
            snapshot.restore()
            self._settle(lifecycle, selectors, snapshot)
            raise
        except SyncError as e:
            return self._fail(lifecycle, rule, selectors, snapshot, affected, e)
        except Exception as e:
            error = NetworkError(str(e) or type(e).__name__)
            error.__cause__ = e
            return self._fail(lifecycle, rule, selectors, snapshot, affected, error)

        lifecycle.advance(Phase.SUCCEEDED)
        try:
            self._apply(affected, lambda key, value: rule.merge(key, value, ctx, response))
        finally:
            self._settle(lifecycle, selectors, snapshot)
        if rule.success_message:
            self._emit(Notice(rule.success_message))
        return MutationOutcome(
            kind=action.kind,
            ok=True,
            phases=lifecycle.history,
            response=response,
            affected=tuple(affected),
        )

    # -------------------------------------------------------------------------
    # Shortcuts for the UI trigger surface
    # -------------------------------------------------------------------------

    async def toggle_like(self, post_id: str, current: LikeData | None = None) -> MutationOutcome:
        current = current or self._known(keys.like_data(post_id), LikeData)
        if current is None:
            return self._reject(
                MutationLifecycle(LikeToggle.kind),
                ActionValidationError(f"No known like state for post {post_id}"),
            )
        return await self.run(LikeToggle.toggle(post_id, current))

    async def toggle_follow(
        self, user_id: str, current: FollowerData | None = None
    ) -> MutationOutcome:
        current = current or self._known(keys.follower_data(user_id), FollowerData)
        if current is None:
            return self._reject(
                MutationLifecycle(FollowToggle.kind),
                ActionValidationError(f"No known follower state for user {user_id}"),
            )
        return await self.run(FollowToggle.toggle(user_id, current))

    async def toggle_bookmark(
        self, post_id: str, current: BookmarkData | None = None
    ) -> MutationOutcome:
        current = current or self._known(keys.bookmark_data(post_id), BookmarkData)
        if current is None:
            return self._reject(
                MutationLifecycle(BookmarkToggle.kind),
                ActionValidationError(f"No known bookmark state for post {post_id}"),
            )
        return await self.run(BookmarkToggle.toggle(post_id, current))

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _known(self, key: CacheKey, expected: type[Any]) -> Any | None:
        value = self._client.get_data(key)
        return value if isinstance(value, expected) else None

    def _affected_keys(self, selectors: Iterable[KeySelector]) -> list[CacheKey]:
        """Exact keys (present or not) plus every stored key a selector matches."""
        found: dict[CacheKey, None] = {}
        for selector in selectors:
            exact = selector.exact_key
            if exact is not None:
                found[exact] = None
            else:
                for key in self._client.store.keys(selector):
                    found[key] = None
        return list(found)

    def _apply(self, affected: Iterable[CacheKey], step: Callable[[CacheKey, Any], Any]) -> None:
        store = self._client.store
        for key in affected:
            entry = store.get(key)
            if entry is None:
                continue  # not materialized, nothing to update
            new_value = step(key, entry.value)
            if new_value is SKIP or new_value is entry.value:
                continue
            store.set(key, new_value)

    def _fail(
        self,
        lifecycle: MutationLifecycle,
        rule: UpdateRule[Any],
        selectors: list[KeySelector],
        snapshot: Snapshot,
        affected: list[CacheKey],
        error: SyncError,
    ) -> MutationOutcome:
        lifecycle.advance(Phase.FAILED)
        snapshot.restore()
        logger.warning(
            "%s failed, rolled back %d keys: %s",
            lifecycle.kind,
            len(affected),
            error,
            exc_info=error,
        )
        self._settle(lifecycle, selectors, snapshot)
        self._emit(Notice(rule.error_message, variant="destructive"))
        return MutationOutcome(
            kind=lifecycle.kind,
            ok=False,
            phases=lifecycle.history,
            error=error,
            affected=tuple(affected),
        )

    def _settle(
        self,
        lifecycle: MutationLifecycle,
        selectors: list[KeySelector],
        snapshot: Snapshot,
    ) -> None:
        snapshot.discard()
        lifecycle.advance(Phase.SETTLED)
        for selector in selectors:
            for key in self._client.invalidate(selector):
                logger.debug("%s: invalidated %s", lifecycle.kind, serialize_key(key))

    def _reject(self, lifecycle: MutationLifecycle, error: SyncError) -> MutationOutcome:
        lifecycle.advance(Phase.SETTLED)
        logger.info("%s rejected: %s", lifecycle.kind, error)
        self._emit(Notice(str(error), variant="destructive"))
        return MutationOutcome(
            kind=lifecycle.kind, ok=False, phases=lifecycle.history, error=error
        )

    def _emit(self, notice: Notice) -> None:
        if self._notify is not None:
            self._notify(notice)


def create_synchronizer(
    *,
    transport: MutationTransport | None = None,
    base_url: str | None = None,
    store: CacheStore | None = None,
    viewer_id: str | None = None,
    timeout: Duration = "10s",
    headers: dict[str, str] | None = None,
    notify: Notifier | None = None,
) -> Synchronizer:
    """Create a synchronizer with its store, query client and transport.

    Args:
        transport: Mutation transport (default: HttpTransport on base_url)
        base_url: API root, required when no transport is given
        store: Cache store (default: a fresh MemoryStore)
        viewer_id: Signed-in user id, None when signed out
        timeout: Request timeout for the default transport
        headers: Extra headers for the default transport
        notify: Receives success and error notices

    Returns:
        Synchronizer ready to run actions
    """
    if transport is None:
        if base_url is None:
            raise ValueError("Either transport or base_url is required")
        transport = HttpTransport(base_url, headers=headers, timeout=timeout)

    client = create_query_client(store=store if store is not None else MemoryStore())
    return Synchronizer(client, transport, viewer_id=viewer_id, notify=notify)


__all__ = [
    "MutationLifecycle",
    "MutationOutcome",
    "Notice",
    "Notifier",
    "Phase",
    "Synchronizer",
    "create_synchronizer",
]
