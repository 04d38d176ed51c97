"""Query key factories and key utilities.

Every cached query in the application is addressed through one of these
factories so that rules, reads and invalidations agree on key shapes.
"""

from optisync.types import CacheKey, KeySelector

_ESCAPE_MAP = {"\\": "\\\\", "/": "\\/"}

POST_FEED = "post-feed"
COMMENT_FEED = "comment-feed"
NOTIFICATIONS_FEED = "notifications-feed"
UNREAD_NOTIFICATIONS_COUNT = "unread-notifications-count"
FOLLOWER_DATA = "follower-data"
LIKE_DATA = "like-data"
BOOKMARK_DATA = "bookmark-data"
USER_DATA = "user-data"


def follower_data(user_id: str) -> CacheKey:
    return CacheKey.of(FOLLOWER_DATA, user_id)


def like_data(post_id: str) -> CacheKey:
    return CacheKey.of(LIKE_DATA, post_id)


def bookmark_data(post_id: str) -> CacheKey:
    return CacheKey.of(BOOKMARK_DATA, post_id)


def user_data(username: str) -> CacheKey:
    return CacheKey.of(USER_DATA, username)


def comment_feed(post_id: str) -> CacheKey:
    return CacheKey.of(COMMENT_FEED, post_id)


def for_you_feed() -> CacheKey:
    return CacheKey.of(POST_FEED, "for-you")


def following_feed() -> CacheKey:
    return CacheKey.of(POST_FEED, "following")


def bookmarks_feed() -> CacheKey:
    return CacheKey.of(POST_FEED, "bookmarks")


def user_feed(user_id: str) -> CacheKey:
    return CacheKey.of(POST_FEED, "user-feed", user_id)


def search_feed(query: str) -> CacheKey:
    return CacheKey.of(POST_FEED, "search", query)


def notifications_feed() -> CacheKey:
    return CacheKey.of(NOTIFICATIONS_FEED)


def unread_notifications_count() -> CacheKey:
    return CacheKey.of(UNREAD_NOTIFICATIONS_COUNT)


def all_post_feeds() -> KeySelector:
    """Every cached post feed (for-you, following, bookmarks, user, search)."""
    return KeySelector.for_prefix(POST_FEED)


def all_user_data() -> KeySelector:
    return KeySelector.for_prefix(USER_DATA)


def serialize_key(key: CacheKey) -> str:
    """Serialize a key to a single string, e.g. for log lines."""

    def escape(part: str) -> str:
        result = part
        for char, escaped in _ESCAPE_MAP.items():
            result = result.replace(char, escaped)
        return result

    return "/".join(escape(p) for p in key.parts)

