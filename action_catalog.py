"""Claimable actions and their point values.

The catalog is an immutable value handed to the engines at construction time,
so tests can swap in a smaller one without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterator, Optional


COOLDOWN_ONCE = "once"
COOLDOWN_24H = "24h"

# 86,400,000 ms
RECURRING_COOLDOWN = timedelta(milliseconds=86_400_000)

CATEGORY_SOCIAL_ONCE = "social_once"
CATEGORY_SOCIAL_RECURRING = "social_recurring"
CATEGORY_DAILY = "daily"

PLATFORM_TWITTER = "twitter"
PLATFORM_FARCASTER = "farcaster"
PLATFORM_DISCORD = "discord"
PLATFORM_TELEGRAM = "telegram"

# Structural checks a submitted tweet must pass.
REQUIRE_QUOTE = "quote"
REQUIRE_REPOST = "repost"
REQUIRE_REPLY = "reply"
REQUIRE_MENTION = "mention"

_COOLDOWNS = {COOLDOWN_ONCE, COOLDOWN_24H}
_REQUIREMENTS = {REQUIRE_QUOTE, REQUIRE_REPOST, REQUIRE_REPLY, REQUIRE_MENTION}


@dataclass(frozen=True)
class Action:
    key: str
    label: str
    points: int
    cooldown: str
    category: str
    platform: Optional[str] = None
    url: Optional[str] = None
    requires_follow: bool = False
    post_requirement: Optional[str] = None

    @property
    def is_once(self) -> bool:
        return self.cooldown == COOLDOWN_ONCE

    @property
    def is_recurring(self) -> bool:
        return self.cooldown == COOLDOWN_24H

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "points": self.points,
            "cooldown": self.cooldown,
            "category": self.category,
            "platform": self.platform,
            "url": self.url,
        }


class ActionCatalog:
    """Ordered, read-only set of actions keyed by `Action.key`."""

    def __init__(self, actions):
        by_key: dict[str, Action] = {}
        for action in actions:
            if action.key in by_key:
                raise ValueError(f"Duplicate action key: {action.key}")
            if int(action.points) <= 0:
                raise ValueError(f"Action {action.key} must award a positive number of points")
            if action.cooldown not in _COOLDOWNS:
                raise ValueError(f"Action {action.key} has unknown cooldown {action.cooldown!r}")
            if action.post_requirement is not None and action.post_requirement not in _REQUIREMENTS:
                raise ValueError(f"Action {action.key} has unknown post requirement {action.post_requirement!r}")
            by_key[action.key] = action
        # dicts keep insertion order, which is the declaration order the UI groups by
        self._by_key = by_key

    def get(self, key: str) -> Optional[Action]:
        return self._by_key.get(key)

    def keys(self) -> list[str]:
        return list(self._by_key)

    def once_actions(self) -> list[Action]:
        return [a for a in self if a.is_once]

    def recurring_actions(self) -> list[Action]:
        return [a for a in self if a.is_recurring]

    def __iter__(self) -> Iterator[Action]:
        return iter(self._by_key.values())

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key) -> bool:
        return key in self._by_key


DEFAULT_ACTIONS = [
    Action("follow_twitter", "Follow @abc on Twitter", 250, COOLDOWN_ONCE, CATEGORY_SOCIAL_ONCE,
           PLATFORM_TWITTER, url="https://twitter.com/intent/follow?screen_name=abc", requires_follow=True),
    Action("follow_farcaster", "Follow @abc on Farcaster", 250, COOLDOWN_ONCE, CATEGORY_SOCIAL_ONCE,
           PLATFORM_FARCASTER, url="https://warpcast.com/abc"),
    Action("join_discord", "Join Discord", 250, COOLDOWN_ONCE, CATEGORY_SOCIAL_ONCE,
           PLATFORM_DISCORD, url="https://discord.gg/placeholder"),
    Action("join_tg", "Join Telegram", 250, COOLDOWN_ONCE, CATEGORY_SOCIAL_ONCE,
           PLATFORM_TELEGRAM, url="https://t.me/placeholder"),

    Action("qt_twitter", "Quote Tweet", 200, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING,
           PLATFORM_TWITTER, post_requirement=REQUIRE_QUOTE),
    Action("qt_farcaster", "Quote Cast", 200, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING, PLATFORM_FARCASTER),
    Action("post_twitter", "Post tagging @abc on Twitter", 300, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING,
           PLATFORM_TWITTER, post_requirement=REQUIRE_MENTION),
    Action("post_farcaster", "Post tagging @abc on Farcaster", 300, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING,
           PLATFORM_FARCASTER),
    Action("rt_twitter", "Retweet", 150, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING,
           PLATFORM_TWITTER, post_requirement=REQUIRE_REPOST),
    Action("rt_farcaster", "Recast", 150, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING, PLATFORM_FARCASTER),
    Action("comment_twitter", "Comment on Twitter", 100, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING,
           PLATFORM_TWITTER, post_requirement=REQUIRE_REPLY),
    Action("comment_farcaster", "Comment on Farcaster", 100, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING,
           PLATFORM_FARCASTER),
    Action("like_twitter", "Like on Twitter", 50, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING, PLATFORM_TWITTER),
    Action("like_farcaster", "Like on Farcaster", 50, COOLDOWN_24H, CATEGORY_SOCIAL_RECURRING, PLATFORM_FARCASTER),

    Action("daily_checkin", "Daily Check-in", 50, COOLDOWN_24H, CATEGORY_DAILY),
    Action("daily_post_twitter", "Daily Post on Twitter", 250, COOLDOWN_24H, CATEGORY_DAILY,
           PLATFORM_TWITTER, post_requirement=REQUIRE_MENTION),
    Action("daily_post_farcaster", "Daily Post on Farcaster", 250, COOLDOWN_24H, CATEGORY_DAILY, PLATFORM_FARCASTER),
]

DEFAULT_CATALOG = ActionCatalog(DEFAULT_ACTIONS)

DAILY_CHECKIN_KEY = "daily_checkin"
