"""Unit tests for the action catalog."""

from datetime import timedelta

import pytest

from action_catalog import (
    COOLDOWN_24H,
    COOLDOWN_ONCE,
    DEFAULT_CATALOG,
    RECURRING_COOLDOWN,
    REQUIRE_MENTION,
    Action,
    ActionCatalog,
)


class TestDefaultCatalog:
    def test_has_all_actions_in_declaration_order(self):
        keys = DEFAULT_CATALOG.keys()
        assert len(keys) == 17
        assert keys[0] == "follow_twitter"
        assert keys[-1] == "daily_post_farcaster"

    def test_point_values(self):
        assert DEFAULT_CATALOG.get("follow_twitter").points == 250
        assert DEFAULT_CATALOG.get("qt_twitter").points == 200
        assert DEFAULT_CATALOG.get("post_twitter").points == 300
        assert DEFAULT_CATALOG.get("rt_farcaster").points == 150
        assert DEFAULT_CATALOG.get("comment_twitter").points == 100
        assert DEFAULT_CATALOG.get("like_farcaster").points == 50
        assert DEFAULT_CATALOG.get("daily_checkin").points == 50
        assert DEFAULT_CATALOG.get("daily_post_twitter").points == 250

    def test_once_and_recurring_split(self):
        once = {a.key for a in DEFAULT_CATALOG.once_actions()}
        assert once == {"follow_twitter", "follow_farcaster", "join_discord", "join_tg"}
        assert len(DEFAULT_CATALOG.recurring_actions()) == 13

    def test_verification_requirements(self):
        assert DEFAULT_CATALOG.get("follow_twitter").requires_follow is True
        assert DEFAULT_CATALOG.get("post_twitter").post_requirement == REQUIRE_MENTION
        assert DEFAULT_CATALOG.get("post_farcaster").post_requirement is None

    def test_unknown_key(self):
        assert DEFAULT_CATALOG.get("nope") is None
        assert "nope" not in DEFAULT_CATALOG
        assert "join_tg" in DEFAULT_CATALOG

    def test_recurring_cooldown_is_24_hours(self):
        assert RECURRING_COOLDOWN == timedelta(hours=24)


class TestCatalogValidation:
    def test_rejects_duplicate_keys(self):
        a = Action("x", "X", 10, COOLDOWN_ONCE, "daily")
        with pytest.raises(ValueError):
            ActionCatalog([a, a])

    def test_rejects_non_positive_points(self):
        with pytest.raises(ValueError):
            ActionCatalog([Action("x", "X", 0, COOLDOWN_ONCE, "daily")])

    def test_rejects_unknown_cooldown(self):
        with pytest.raises(ValueError):
            ActionCatalog([Action("x", "X", 5, "weekly", "daily")])

    def test_rejects_unknown_requirement(self):
        with pytest.raises(ValueError):
            ActionCatalog([Action("x", "X", 5, COOLDOWN_24H, "daily", post_requirement="like")])

    def test_to_dict_keys(self):
        data = DEFAULT_CATALOG.get("join_discord").to_dict()
        assert data["cooldown"] == "once"
        assert data["platform"] == "discord"
        assert set(data) == {"key", "label", "points", "cooldown", "category", "platform", "url"}
