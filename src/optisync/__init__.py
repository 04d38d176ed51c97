"""optisync - Optimistic cache synchronization for Python clients."""

# Actions
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
    parse_action,
)

# Adapters
from optisync.adapters import (
    CacheStore,
    HttpTransport,
    MemoryStore,
    MutationTransport,
    page_fetcher,
    record_fetcher,
)

# Reads
from optisync.client import QueryClient, create_query_client

# Duration parsing
from optisync.duration import parse_duration

# Errors
from optisync.errors import (
    ActionValidationError,
    NetworkError,
    NotFoundError,
    SnapshotError,
    SyncError,
    UnauthorizedError,
)

# Mutations
from optisync.orchestrator import (
    MutationLifecycle,
    MutationOutcome,
    Notice,
    Phase,
    Synchronizer,
    create_synchronizer,
)
from optisync.rules import SKIP, ActionContext, UpdateRule, default_rules
from optisync.snapshot import Snapshot, take_snapshot

# Core types
from optisync.types import (
    ABSENT,
    BookmarkData,
    CacheEntry,
    CacheKey,
    Duration,
    FollowerData,
    InfiniteData,
    KeySelector,
    LikeData,
    MutationRequest,
    MutationResponse,
    Page,
    UnreadCountData,
)

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "SKIP",
    "Action",
    "ActionContext",
    "ActionValidationError",
    "BookmarkData",
    "BookmarkToggle",
    "CacheEntry",
    "CacheKey",
    "CacheStore",
    "CommentCreate",
    "CommentDelete",
    "Duration",
    "FollowToggle",
    "FollowerData",
    "HttpTransport",
    "InfiniteData",
    "KeySelector",
    "LikeData",
    "LikeToggle",
    "MemoryStore",
    "MutationLifecycle",
    "MutationOutcome",
    "MutationRequest",
    "MutationResponse",
    "MutationTransport",
    "NetworkError",
    "NotFoundError",
    "Notice",
    "NotificationMarkAll",
    "NotificationMarkOne",
    "Page",
    "Phase",
    "PostCreate",
    "PostDelete",
    "ProfileUpdate",
    "QueryClient",
    "Snapshot",
    "SnapshotError",
    "SyncError",
    "Synchronizer",
    "UnauthorizedError",
    "UnreadCountData",
    "UpdateRule",
    "create_query_client",
    "create_synchronizer",
    "default_rules",
    "page_fetcher",
    "parse_action",
    "parse_duration",
    "record_fetcher",
    "take_snapshot",
]
