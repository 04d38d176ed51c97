"""Update rules: how each action kind changes the cache.

A rule names the keys an action touches (selectors), how each cached value
changes (transform), the network call to make (request) and, optionally,
how the authoritative response is folded back in (merge). Transforms and
merges are pure: they never perform I/O and never mutate their inputs.
Keys that are not in the cache are never passed to a rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Final, Generic, TypeVar

from optisync import keys
from optisync.actions import (
    Action,
    BookmarkToggle,
    CommentCreate,
    CommentDelete,
    FollowToggle,
    LikeToggle,
    NotificationMarkAll,
    NotificationMarkOne,
    PostCreate,
    PostDelete,
    ProfileUpdate,
)
from optisync.feeds import (
    Record,
    adjust_count,
    append_to_first_page,
    map_records,
    prepend_to_first_page,
    remove_record,
    replace_record,
    set_membership,
    step_counter,
)
from optisync.types import (
    BookmarkData,
    CacheKey,
    FollowerData,
    InfiniteData,
    KeySelector,
    LikeData,
    MutationRequest,
    MutationResponse,
    UnreadCountData,
)

A = TypeVar("A", bound=Action)


class _Skip:
    def __repr__(self) -> str:
        return "SKIP"


# Returned by transform/merge to leave a key untouched.
SKIP: Final = _Skip()

GENERIC_ERROR = "Something went wrong. Please try again."


@dataclass(frozen=True, slots=True)
class ActionContext(Generic[A]):
    """An action plus the session it runs under."""

    action: A
    viewer_id: str


class UpdateRule(Generic[A]):
    """Base rule. Subclasses set kind and override the hooks they need."""

    kind: ClassVar[str]
    success_message: ClassVar[str | None] = None
    error_message: ClassVar[str] = GENERIC_ERROR

    def selectors(self, ctx: ActionContext[A]) -> list[KeySelector]:
        raise NotImplementedError

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[A]) -> Any:
        raise NotImplementedError

    def request(self, ctx: ActionContext[A]) -> MutationRequest:
        raise NotImplementedError

    def merge(
        self,
        key: CacheKey,
        value: Any,
        ctx: ActionContext[A],
        response: MutationResponse,
    ) -> Any:
        return SKIP


def _is_feed(key: CacheKey, value: Any) -> bool:
    return key.parts[0] == keys.POST_FEED and isinstance(value, InfiniteData)


def _toggle_request(path: str, on: bool) -> MutationRequest:
    return MutationRequest(method="POST" if on else "DELETE", path=path)


# =============================================================================
# Toggles
# =============================================================================


class FollowToggleRule(UpdateRule[FollowToggle]):
    kind = FollowToggle.kind

    def selectors(self, ctx: ActionContext[FollowToggle]) -> list[KeySelector]:
        return [
            KeySelector.exact(keys.follower_data(ctx.action.user_id)),
            keys.all_user_data(),
            keys.all_post_feeds(),
        ]

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[FollowToggle]) -> Any:
        action = ctx.action
        if isinstance(value, FollowerData):
            return FollowerData(
                follower_count=step_counter(value.follower_count, action.follow),
                is_followed_by_user=action.follow,
            )
        if key.parts[0] == keys.USER_DATA and isinstance(value, dict):
            if value.get("id") != action.user_id:
                return SKIP
            return self._update_user(value, ctx)
        if _is_feed(key, value):

            def update_post(post: Record) -> Record:
                user = post.get("user") or {}
                if user.get("id") != action.user_id:
                    return post
                return {**post, "user": self._update_user(user, ctx)}

            return map_records(value, update_post)
        return SKIP

    def _update_user(self, user: Record, ctx: ActionContext[FollowToggle]) -> Record:
        follow = ctx.action.follow
        user = set_membership(user, "followers", ctx.viewer_id, follow)
        return adjust_count(user, "followers", follow)

    def request(self, ctx: ActionContext[FollowToggle]) -> MutationRequest:
        return _toggle_request(f"/api/users/{ctx.action.user_id}/followers", ctx.action.follow)


class LikeToggleRule(UpdateRule[LikeToggle]):
    kind = LikeToggle.kind

    def selectors(self, ctx: ActionContext[LikeToggle]) -> list[KeySelector]:
        return [KeySelector.exact(keys.like_data(ctx.action.post_id)), keys.all_post_feeds()]

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[LikeToggle]) -> Any:
        action = ctx.action
        if isinstance(value, LikeData):
            return LikeData(
                likes_count=step_counter(value.likes_count, action.like),
                is_liked_by_user=action.like,
            )
        if _is_feed(key, value):

            def update_post(post: Record) -> Record:
                if post.get("id") != action.post_id:
                    return post
                post = set_membership(post, "likes", ctx.viewer_id, action.like)
                return adjust_count(post, "likes", action.like)

            return map_records(value, update_post)
        return SKIP

    def request(self, ctx: ActionContext[LikeToggle]) -> MutationRequest:
        return _toggle_request(f"/api/posts/{ctx.action.post_id}/likes", ctx.action.like)


class BookmarkToggleRule(UpdateRule[BookmarkToggle]):
    kind = BookmarkToggle.kind

    def selectors(self, ctx: ActionContext[BookmarkToggle]) -> list[KeySelector]:
        return [
            KeySelector.exact(keys.bookmark_data(ctx.action.post_id)),
            keys.all_post_feeds(),
        ]

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[BookmarkToggle]) -> Any:
        action = ctx.action
        if isinstance(value, BookmarkData):
            return BookmarkData(is_bookmarked_by_user=action.bookmark)
        if _is_feed(key, value):
            if key == keys.bookmarks_feed() and not action.bookmark:
                return remove_record(value, action.post_id)

            def update_post(post: Record) -> Record:
                if post.get("id") != action.post_id:
                    return post
                return set_membership(post, "bookmarks", ctx.viewer_id, action.bookmark)

            return map_records(value, update_post)
        return SKIP

    def request(self, ctx: ActionContext[BookmarkToggle]) -> MutationRequest:
        return _toggle_request(
            f"/api/posts/{ctx.action.post_id}/bookmarks", ctx.action.bookmark
        )


# =============================================================================
# Comments and posts
# =============================================================================


def _count_on_post(value: InfiniteData, post_id: str, field: str, up: bool) -> InfiniteData:
    def update_post(post: Record) -> Record:
        if post.get("id") != post_id:
            return post
        return adjust_count(post, field, up)

    return map_records(value, update_post)


class CommentCreateRule(UpdateRule[CommentCreate]):
    kind = CommentCreate.kind
    success_message = "Your comment has been created!"
    error_message = "An error occurred while submitting your comment."

    def selectors(self, ctx: ActionContext[CommentCreate]) -> list[KeySelector]:
        return [KeySelector.exact(keys.comment_feed(ctx.action.post_id)), keys.all_post_feeds()]

    def placeholder(self, ctx: ActionContext[CommentCreate]) -> Record:
        action = ctx.action
        return {
            "id": action.client_id,
            "content": action.content,
            "postId": action.post_id,
            "userId": ctx.viewer_id,
            "user": action.author or {"id": ctx.viewer_id},
            "createdAt": action.created_at.isoformat(),
        }

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[CommentCreate]) -> Any:
        if key == keys.comment_feed(ctx.action.post_id) and isinstance(value, InfiniteData):
            return append_to_first_page(value, self.placeholder(ctx))
        if _is_feed(key, value):
            return _count_on_post(value, ctx.action.post_id, "comments", up=True)
        return SKIP

    def request(self, ctx: ActionContext[CommentCreate]) -> MutationRequest:
        return MutationRequest(
            method="POST",
            path=f"/api/posts/{ctx.action.post_id}/comments",
            json={"content": ctx.action.content},
        )

    def merge(
        self,
        key: CacheKey,
        value: Any,
        ctx: ActionContext[CommentCreate],
        response: MutationResponse,
    ) -> Any:
        if key != keys.comment_feed(ctx.action.post_id) or not isinstance(value, InfiniteData):
            return SKIP
        if not isinstance(response.data, dict):
            return SKIP
        return replace_record(value, ctx.action.client_id, response.data)


class CommentDeleteRule(UpdateRule[CommentDelete]):
    kind = CommentDelete.kind
    success_message = "Your comment has been deleted!"
    error_message = "An error occurred while deleting your comment."

    def selectors(self, ctx: ActionContext[CommentDelete]) -> list[KeySelector]:
        return [KeySelector.exact(keys.comment_feed(ctx.action.post_id)), keys.all_post_feeds()]

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[CommentDelete]) -> Any:
        if key == keys.comment_feed(ctx.action.post_id) and isinstance(value, InfiniteData):
            return remove_record(value, ctx.action.comment_id)
        if _is_feed(key, value):
            return _count_on_post(value, ctx.action.post_id, "comments", up=False)
        return SKIP

    def request(self, ctx: ActionContext[CommentDelete]) -> MutationRequest:
        return MutationRequest(method="DELETE", path=f"/api/comments/{ctx.action.comment_id}")


class PostCreateRule(UpdateRule[PostCreate]):
    kind = PostCreate.kind
    success_message = "Your post has been created!"
    error_message = "An error occurred while submitting your post."

    def selectors(self, ctx: ActionContext[PostCreate]) -> list[KeySelector]:
        return [
            KeySelector.exact(keys.for_you_feed()),
            KeySelector.exact(keys.user_feed(ctx.viewer_id)),
        ]

    def placeholder(self, ctx: ActionContext[PostCreate]) -> Record:
        action = ctx.action
        return {
            "id": action.client_id,
            "content": action.content,
            "userId": ctx.viewer_id,
            "user": action.author or {"id": ctx.viewer_id},
            "createdAt": action.created_at.isoformat(),
            "attachments": [{"id": media_id} for media_id in action.media_ids],
            "likes": [],
            "bookmarks": [],
            "_count": {"likes": 0, "comments": 0},
        }

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[PostCreate]) -> Any:
        if not isinstance(value, InfiniteData):
            return SKIP
        return prepend_to_first_page(value, self.placeholder(ctx))

    def request(self, ctx: ActionContext[PostCreate]) -> MutationRequest:
        return MutationRequest(
            method="POST",
            path="/api/posts",
            json={"content": ctx.action.content, "mediaIds": list(ctx.action.media_ids)},
        )

    def merge(
        self,
        key: CacheKey,
        value: Any,
        ctx: ActionContext[PostCreate],
        response: MutationResponse,
    ) -> Any:
        if not isinstance(value, InfiniteData) or not isinstance(response.data, dict):
            return SKIP
        return replace_record(value, ctx.action.client_id, response.data)


class PostDeleteRule(UpdateRule[PostDelete]):
    kind = PostDelete.kind
    success_message = "Post deleted"
    error_message = "Failed to delete post"

    def selectors(self, ctx: ActionContext[PostDelete]) -> list[KeySelector]:
        return [keys.all_post_feeds()]

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[PostDelete]) -> Any:
        if not _is_feed(key, value):
            return SKIP
        return remove_record(value, ctx.action.post_id)

    def request(self, ctx: ActionContext[PostDelete]) -> MutationRequest:
        return MutationRequest(method="DELETE", path=f"/api/posts/{ctx.action.post_id}")


# =============================================================================
# Notifications
# =============================================================================


def _notification_selectors() -> list[KeySelector]:
    return [
        KeySelector.exact(keys.notifications_feed()),
        KeySelector.exact(keys.unread_notifications_count()),
    ]


class NotificationMarkOneRule(UpdateRule[NotificationMarkOne]):
    kind = NotificationMarkOne.kind

    def selectors(self, ctx: ActionContext[NotificationMarkOne]) -> list[KeySelector]:
        return _notification_selectors()

    def transform(
        self, key: CacheKey, value: Any, ctx: ActionContext[NotificationMarkOne]
    ) -> Any:
        if isinstance(value, InfiniteData):
            return remove_record(value, ctx.action.notification_id)
        if isinstance(value, UnreadCountData):
            return UnreadCountData(unread_count=step_counter(value.unread_count, up=False))
        return SKIP

    def request(self, ctx: ActionContext[NotificationMarkOne]) -> MutationRequest:
        return MutationRequest(
            method="PATCH",
            path="/api/notifications/mark-as-read",
            json={"notificationId": ctx.action.notification_id},
        )


class NotificationMarkAllRule(UpdateRule[NotificationMarkAll]):
    kind = NotificationMarkAll.kind

    def selectors(self, ctx: ActionContext[NotificationMarkAll]) -> list[KeySelector]:
        return _notification_selectors()

    def transform(
        self, key: CacheKey, value: Any, ctx: ActionContext[NotificationMarkAll]
    ) -> Any:
        if isinstance(value, InfiniteData):
            return InfiniteData.empty()
        if isinstance(value, UnreadCountData):
            return UnreadCountData(unread_count=0)
        return SKIP

    def request(self, ctx: ActionContext[NotificationMarkAll]) -> MutationRequest:
        return MutationRequest(method="PATCH", path="/api/notifications/mark-as-read")


# =============================================================================
# Profile
# =============================================================================


class ProfileUpdateRule(UpdateRule[ProfileUpdate]):
    kind = ProfileUpdate.kind
    success_message = "Your profile has been updated"
    error_message = "Failed to update your profile"

    def selectors(self, ctx: ActionContext[ProfileUpdate]) -> list[KeySelector]:
        return [KeySelector.exact(keys.user_data(ctx.action.username)), keys.all_post_feeds()]

    def _with_profile(self, user: Record, profile: Record) -> Record:
        return {**user, **profile}

    def _apply(self, key: CacheKey, value: Any, user_id: str, profile: Record) -> Any:
        if key.parts[0] == keys.USER_DATA and isinstance(value, dict):
            if value.get("id") != user_id:
                return SKIP
            return self._with_profile(value, profile)
        if _is_feed(key, value):

            def update_post(post: Record) -> Record:
                user = post.get("user") or {}
                if user.get("id") != user_id:
                    return post
                return {**post, "user": self._with_profile(user, profile)}

            return map_records(value, update_post)
        return SKIP

    def transform(self, key: CacheKey, value: Any, ctx: ActionContext[ProfileUpdate]) -> Any:
        action = ctx.action
        profile: Record = {"displayName": action.display_name, "bio": action.bio}
        if action.avatar_url:
            profile["avatarUrl"] = action.avatar_url
        return self._apply(key, value, action.user_id, profile)

    def request(self, ctx: ActionContext[ProfileUpdate]) -> MutationRequest:
        return MutationRequest(
            method="PATCH",
            path=f"/api/users/{ctx.action.user_id}",
            json={"displayName": ctx.action.display_name, "bio": ctx.action.bio},
        )

    def merge(
        self,
        key: CacheKey,
        value: Any,
        ctx: ActionContext[ProfileUpdate],
        response: MutationResponse,
    ) -> Any:
        if not isinstance(response.data, dict):
            return SKIP
        updated = dict(response.data)
        # Avatars upload separately, so keep the one from the action if the
        # response has none.
        if not updated.get("avatarUrl") and ctx.action.avatar_url:
            updated["avatarUrl"] = ctx.action.avatar_url
        return self._apply(key, value, ctx.action.user_id, updated)


def default_rules() -> dict[str, UpdateRule[Any]]:
    """One rule instance per built-in action kind."""
    rules: list[UpdateRule[Any]] = [
        FollowToggleRule(),
        LikeToggleRule(),
        BookmarkToggleRule(),
        CommentCreateRule(),
        CommentDeleteRule(),
        PostCreateRule(),
        PostDeleteRule(),
        NotificationMarkOneRule(),
        NotificationMarkAllRule(),
        ProfileUpdateRule(),
    ]
    return {rule.kind: rule for rule in rules}


__all__ = [
    "SKIP",
    "ActionContext",
    "BookmarkToggleRule",
    "CommentCreateRule",
    "CommentDeleteRule",
    "FollowToggleRule",
    "LikeToggleRule",
    "NotificationMarkAllRule",
    "NotificationMarkOneRule",
    "PostCreateRule",
    "PostDeleteRule",
    "ProfileUpdateRule",
    "UpdateRule",
    "default_rules",
]
