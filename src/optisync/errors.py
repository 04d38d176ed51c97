"""Error taxonomy for optimistic mutations.

Validation and Unauthorized errors are raised before any cache state is
touched. NotFound and Network errors are raised by transports while a
mutation is in flight and cause a rollback. SnapshotError is fatal.
"""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base class for every error surfaced by the synchronizer."""

    status: int | None = None

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        if status is not None:
            self.status = status


class ActionValidationError(SyncError):
    """The action context is malformed."""

    status = 400

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message, status=status)
        self.errors = errors or []


class UnauthorizedError(SyncError):
    """No valid session, or the server refused the session."""

    status = 401


class NotFoundError(SyncError):
    """The target record vanished server side."""

    status = 404


class NetworkError(SyncError):
    """Transport failure, timeout or server error."""


class SnapshotError(Exception):
    """A snapshot could not be taken or was used after settle.

    Not a SyncError: this signals a broken invariant and is never caught
    at the orchestrator boundary.
    """


def classify_status(status: int, message: str) -> SyncError:
    """Map an HTTP error status to the matching SyncError."""
    if status in (401, 403):
        return UnauthorizedError(message, status=status)
    if status == 404:
        return NotFoundError(message, status=status)
    if status in (400, 422):
        return ActionValidationError(message, status=status)
    return NetworkError(message, status=status)
