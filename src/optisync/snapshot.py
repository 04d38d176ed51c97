"""Snapshot/rollback primitive.

A snapshot captures the entries of a key set immediately before an
optimistic write. restore() puts every captured entry back verbatim and
evicts keys that were absent, so no optimistic value survives a failure.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import Any

from optisync.adapters.base import CacheStore
from optisync.errors import SnapshotError
from optisync.keys import serialize_key
from optisync.types import ABSENT, CacheEntry, CacheKey

logger = logging.getLogger(__name__)


class Snapshot:
    """Pre-mutation capture of cache state, owned by one mutation lifecycle."""

    __slots__ = ("_captured", "_discarded", "_restored", "_store")

    def __init__(
        self,
        store: CacheStore,
        captured: dict[CacheKey, CacheEntry[Any] | object],
    ) -> None:
        self._store = store
        self._captured = captured
        self._restored = False
        self._discarded = False

    @property
    def keys(self) -> tuple[CacheKey, ...]:
        return tuple(self._captured)

    @property
    def restored(self) -> bool:
        return self._restored

    def captured(self, key: CacheKey) -> CacheEntry[Any] | object:
        """The entry captured for a key, or ABSENT."""
        self._check_live()
        return self._captured[key]

    def restore(self) -> None:
        """Write back every captured entry. The second call is a no-op."""
        self._check_live()
        if self._restored:
            return
        for key, entry in self._captured.items():
            if entry is ABSENT:
                self._store.delete(key)
            else:
                # Copy again so later writes cannot alias the captured value.
                self._store.put(key, copy.deepcopy(entry))
        self._restored = True
        logger.debug("Restored %d cache keys", len(self._captured))

    def discard(self) -> None:
        """Release the captured values once the mutation has settled."""
        self._captured = {key: ABSENT for key in self._captured}
        self._discarded = True

    def _check_live(self) -> None:
        if self._discarded:
            raise SnapshotError("Snapshot used after its mutation settled")


def take_snapshot(store: CacheStore, keys: Iterable[CacheKey]) -> Snapshot:
    """Capture the current entries for keys. Missing keys are marked ABSENT.

    Raises:
        SnapshotError: a value cannot be copied.
    """
    captured: dict[CacheKey, CacheEntry[Any] | object] = {}
    for key in keys:
        if key in captured:
            continue
        entry = store.get(key)
        if entry is None:
            captured[key] = ABSENT
            continue
        try:
            captured[key] = copy.deepcopy(entry)
        except Exception as e:
            raise SnapshotError(f"Cannot snapshot {serialize_key(key)}: {e}") from e
    return Snapshot(store, captured)


__all__ = ["Snapshot", "take_snapshot"]
