"""Core types for the optisync cache synchronizer."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Final, Generic, TypeVar

T = TypeVar("T")

# Duration type alias
Duration = str | int  # "500ms", "10s", "5m" or milliseconds


class _Absent:
    """Marker for a key that has no entry in the store."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Absent:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Absent:
        return self


ABSENT: Final = _Absent()


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Structured identifier for one cached query result."""

    parts: tuple[str, ...]

    @classmethod
    def of(cls, *parts: object) -> CacheKey:
        return cls(tuple(str(p) for p in parts))

    def startswith(self, prefix: tuple[str, ...]) -> bool:
        if len(prefix) > len(self.parts):
            return False
        return self.parts[: len(prefix)] == prefix

    def contains(self, *tokens: str) -> bool:
        return all(token in self.parts for token in tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(self.parts)

    def __len__(self) -> int:
        return len(self.parts)

    def __repr__(self) -> str:
        return f"CacheKey({'/'.join(self.parts)})"


@dataclass(frozen=True, slots=True)
class KeySelector:
    """Addresses one exact key or every key matching a prefix/predicate.

    Usage:
        KeySelector.exact(CacheKey.of("like-data", "p1"))
        KeySelector.for_prefix("post-feed")
        KeySelector.contains("user-feed", "u1", prefix=("post-feed",))
    """

    prefix: tuple[str, ...]
    is_exact: bool = False
    tokens: tuple[str, ...] = ()
    predicate: Callable[[CacheKey], bool] | None = field(default=None, compare=False)

    @classmethod
    def exact(cls, key: CacheKey) -> KeySelector:
        return cls(prefix=key.parts, is_exact=True)

    @classmethod
    def for_prefix(cls, *parts: object) -> KeySelector:
        return cls(prefix=tuple(str(p) for p in parts))

    @classmethod
    def contains(cls, *tokens: object, prefix: tuple[str, ...] = ()) -> KeySelector:
        return cls(prefix=prefix, tokens=tuple(str(t) for t in tokens))

    @classmethod
    def where(
        cls, predicate: Callable[[CacheKey], bool], *, prefix: tuple[str, ...] = ()
    ) -> KeySelector:
        return cls(prefix=prefix, predicate=predicate)

    @property
    def exact_key(self) -> CacheKey | None:
        """The addressed key when this selector is exact, else None."""
        return CacheKey(self.prefix) if self.is_exact else None

    def matches(self, key: CacheKey) -> bool:
        if self.is_exact:
            return key.parts == self.prefix
        if not key.startswith(self.prefix):
            return False
        if self.tokens and not key.contains(*self.tokens):
            return False
        if self.predicate is not None and not self.predicate(key):
            return False
        return True

    def __repr__(self) -> str:
        mode = "exact" if self.is_exact else "prefix"
        extra = f", contains={list(self.tokens)}" if self.tokens else ""
        if self.predicate is not None:
            extra += ", predicate"
        return f"KeySelector({mode}={'/'.join(self.prefix)}{extra})"


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value with metadata."""

    value: T
    updated_at: int  # Unix timestamp ms
    is_stale: bool = False


# =============================================================================
# Paginated collections
# =============================================================================


@dataclass(frozen=True, slots=True)
class Page:
    """One page of a cursor-paginated feed."""

    records: tuple[dict[str, Any], ...]
    next_cursor: str | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> Page:
        return cls(
            records=tuple(data.get("records", ())),
            next_cursor=data.get("nextCursor"),
        )


@dataclass(frozen=True, slots=True)
class InfiniteData:
    """Pages fetched so far for a feed, in fetch order."""

    pages: tuple[Page, ...]
    page_params: tuple[str | None, ...] = ()

    @classmethod
    def empty(cls) -> InfiniteData:
        # One page but no params, so pages and page_params differ in length.
        return cls(pages=(Page(records=()),), page_params=())

    def records(self) -> list[dict[str, Any]]:
        return [record for page in self.pages for record in page.records]


# =============================================================================
# Single-record state
# =============================================================================


@dataclass(frozen=True, slots=True)
class LikeData:
    likes_count: int
    is_liked_by_user: bool

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> LikeData:
        return cls(
            likes_count=int(data["likesCount"]),
            is_liked_by_user=bool(data["isLikedByUser"]),
        )


@dataclass(frozen=True, slots=True)
class FollowerData:
    follower_count: int
    is_followed_by_user: bool

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> FollowerData:
        return cls(
            follower_count=int(data["followerCount"]),
            is_followed_by_user=bool(data["isFollowedByUser"]),
        )


@dataclass(frozen=True, slots=True)
class BookmarkData:
    is_bookmarked_by_user: bool

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> BookmarkData:
        return cls(is_bookmarked_by_user=bool(data["isBookmarkedByUser"]))


@dataclass(frozen=True, slots=True)
class UnreadCountData:
    unread_count: int

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> UnreadCountData:
        return cls(unread_count=int(data["unreadCount"]))


# =============================================================================
# Network mutations
# =============================================================================


@dataclass(frozen=True, slots=True)
class MutationRequest:
    """One HTTP-style mutation call."""

    method: str  # POST, DELETE, PATCH
    path: str
    json: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class MutationResponse:
    """Authoritative response; data is None for an empty acknowledgement."""

    status: int
    data: Any = None
