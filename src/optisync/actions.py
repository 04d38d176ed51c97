"""User actions, validated before any cache state is touched."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic import ValidationError as PydanticValidationError

from optisync.errors import ActionValidationError
from optisync.types import BookmarkData, FollowerData, LikeData

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _placeholder_id() -> str:
    return f"optimistic-{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Action(BaseModel):
    """Base class for a fully specified user action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[str]


class FollowToggle(Action):
    kind: ClassVar[str] = "follow-toggle"

    user_id: RequiredStr
    follow: bool

    @classmethod
    def toggle(cls, user_id: str, current: FollowerData) -> FollowToggle:
        """Build the action that flips the current known follow state."""
        return cls(user_id=user_id, follow=not current.is_followed_by_user)


class LikeToggle(Action):
    kind: ClassVar[str] = "like-toggle"

    post_id: RequiredStr
    like: bool

    @classmethod
    def toggle(cls, post_id: str, current: LikeData) -> LikeToggle:
        return cls(post_id=post_id, like=not current.is_liked_by_user)


class BookmarkToggle(Action):
    kind: ClassVar[str] = "bookmark-toggle"

    post_id: RequiredStr
    bookmark: bool

    @classmethod
    def toggle(cls, post_id: str, current: BookmarkData) -> BookmarkToggle:
        return cls(post_id=post_id, bookmark=not current.is_bookmarked_by_user)


class CommentCreate(Action):
    kind: ClassVar[str] = "comment-create"

    post_id: RequiredStr
    content: RequiredStr
    # Embedded in the placeholder so the comment renders before the server answers.
    author: dict[str, Any] | None = None
    client_id: str = Field(default_factory=_placeholder_id)
    created_at: datetime = Field(default_factory=_utcnow)


class CommentDelete(Action):
    kind: ClassVar[str] = "comment-delete"

    comment_id: RequiredStr
    post_id: RequiredStr


class PostCreate(Action):
    kind: ClassVar[str] = "post-create"

    content: RequiredStr
    media_ids: list[str] = Field(default_factory=list, max_length=5)
    author: dict[str, Any] | None = None
    client_id: str = Field(default_factory=_placeholder_id)
    created_at: datetime = Field(default_factory=_utcnow)


class PostDelete(Action):
    kind: ClassVar[str] = "post-delete"

    post_id: RequiredStr


class NotificationMarkOne(Action):
    kind: ClassVar[str] = "notification-mark-one"

    notification_id: RequiredStr


class NotificationMarkAll(Action):
    kind: ClassVar[str] = "notification-mark-all"


class ProfileUpdate(Action):
    kind: ClassVar[str] = "profile-update"

    user_id: RequiredStr
    username: RequiredStr
    display_name: RequiredStr
    bio: str | None = Field(default=None, max_length=1000)
    avatar_url: str | None = None


ACTION_TYPES: dict[str, type[Action]] = {
    cls.kind: cls
    for cls in (
        FollowToggle,
        LikeToggle,
        BookmarkToggle,
        CommentCreate,
        CommentDelete,
        PostCreate,
        PostDelete,
        NotificationMarkOne,
        NotificationMarkAll,
        ProfileUpdate,
    )
}


def parse_action(kind: str, payload: Mapping[str, Any] | None = None) -> Action:
    """Validate a raw payload into the action model for kind.

    Raises:
        ActionValidationError: unknown kind or malformed payload.
    """
    action_type = ACTION_TYPES.get(kind)
    if action_type is None:
        raise ActionValidationError(f"Unknown action kind: {kind!r}")
    try:
        return action_type.model_validate(payload or {})
    except PydanticValidationError as e:
        raise ActionValidationError(
            f"Invalid {kind} action: {e.error_count()} error(s)",
            errors=[dict(err) for err in e.errors(include_url=False)],
        ) from e


__all__ = [
    "ACTION_TYPES",
    "Action",
    "BookmarkToggle",
    "CommentCreate",
    "CommentDelete",
    "FollowToggle",
    "LikeToggle",
    "NotificationMarkAll",
    "NotificationMarkOne",
    "PostCreate",
    "PostDelete",
    "ProfileUpdate",
    "parse_action",
]
