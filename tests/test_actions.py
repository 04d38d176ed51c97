"""Tests for action validation."""

import pytest

from optisync import (
    ActionValidationError,
    CommentCreate,
    FollowerData,
    FollowToggle,
    LikeData,
    LikeToggle,
    NotificationMarkAll,
    PostCreate,
    ProfileUpdate,
    parse_action,
)
from optisync.actions import ACTION_TYPES


class TestParseAction:
    """Tests for parse_action function."""

    def test_parses_known_kind(self) -> None:
        """Test validating a well-formed payload."""
        action = parse_action("like-toggle", {"post_id": "p1", "like": True})
        assert action == LikeToggle(post_id="p1", like=True)

    def test_unknown_kind(self) -> None:
        """Test that an unknown kind is a validation error."""
        with pytest.raises(ActionValidationError, match="Unknown action kind"):
            parse_action("retweet", {})

    def test_missing_field(self) -> None:
        """Test that a missing identifier is rejected."""
        with pytest.raises(ActionValidationError) as exc_info:
            parse_action("follow-toggle", {"follow": True})
        assert exc_info.value.status == 400
        assert exc_info.value.errors[0]["loc"] == ("user_id",)

    def test_blank_identifier(self) -> None:
        """Test that whitespace-only identifiers are rejected."""
        with pytest.raises(ActionValidationError):
            parse_action("like-toggle", {"post_id": "   ", "like": True})

    def test_extra_field(self) -> None:
        """Test that unexpected fields are rejected."""
        with pytest.raises(ActionValidationError):
            parse_action("post-delete", {"post_id": "p1", "force": True})

    def test_payload_must_be_a_mapping(self) -> None:
        """Test that a non-mapping payload is a validation error."""
        with pytest.raises(ActionValidationError, match="Invalid like-toggle action"):
            parse_action("like-toggle", ["not", "a", "mapping"])  # type: ignore[arg-type]

    def test_mark_all_needs_no_payload(self) -> None:
        """Test parsing an action with no fields."""
        assert isinstance(parse_action("notification-mark-all"), NotificationMarkAll)

    def test_every_kind_is_registered(self) -> None:
        """Test that kinds are unique and map back to their class."""
        for kind, action_type in ACTION_TYPES.items():
            assert action_type.kind == kind
        assert len(ACTION_TYPES) == 10


class TestActionModels:
    """Tests for individual action models."""

    def test_toggle_flips_known_state(self) -> None:
        """Test building toggles from the cached state."""
        assert LikeToggle.toggle("p1", LikeData(likes_count=4, is_liked_by_user=False)).like
        follow = FollowToggle.toggle("u2", FollowerData(follower_count=10, is_followed_by_user=True))
        assert follow.follow is False

    def test_comment_gets_placeholder_id(self) -> None:
        """Test that comments carry a unique client id."""
        first = CommentCreate(post_id="p1", content="hi")
        second = CommentCreate(post_id="p1", content="hi")
        assert first.client_id.startswith("optimistic-")
        assert first.client_id != second.client_id

    def test_comment_content_is_stripped(self) -> None:
        """Test that content is stripped and must not be empty."""
        assert CommentCreate(post_id="p1", content="  hi  ").content == "hi"
        with pytest.raises(ValueError):
            CommentCreate(post_id="p1", content="   ")

    def test_post_media_limit(self) -> None:
        """Test that a post takes at most five attachments."""
        PostCreate(content="x", media_ids=[str(i) for i in range(5)])
        with pytest.raises(ActionValidationError):
            parse_action("post-create", {"content": "x", "media_ids": [str(i) for i in range(6)]})

    def test_bio_length(self) -> None:
        """Test the profile bio limit."""
        with pytest.raises(ActionValidationError):
            parse_action(
                "profile-update",
                {"user_id": "u1", "username": "me", "display_name": "Me", "bio": "x" * 1001},
            )
        assert ProfileUpdate(user_id="u1", username="me", display_name="Me").bio is None

    def test_actions_are_frozen(self) -> None:
        """Test that actions cannot be changed after validation."""
        action = LikeToggle(post_id="p1", like=True)
        with pytest.raises(ValueError):
            action.like = False  # type: ignore[misc]
