"""Leaderboard ranks, reward tiers and lottery tickets.

Ranks are competition-style: accounts with equal points share a rank and the
next distinct score skips ahead (500, 500, 100 -> 1, 1, 3).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select

from extensions import db
from models_accounts import Account


TOP_100_CUTOFF = 100
TOP_500_CUTOFF = 500
POINTS_PER_TICKET = 500


class RewardTier(enum.Enum):
    UNRANKED = "unranked"
    TOP_100 = "top_100"
    TOP_500 = "top_500"
    LOTTERY_ONLY = "lottery_only"

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]


_TIER_LABELS = {
    RewardTier.UNRANKED: "Unranked",
    RewardTier.TOP_100: "$25 Pass",
    RewardTier.TOP_500: "$5 Pass",
    RewardTier.LOTTERY_ONLY: "Lottery Only",
}


def reward_tier(rank: int) -> RewardTier:
    if rank <= 0:
        return RewardTier.UNRANKED
    if rank <= TOP_100_CUTOFF:
        return RewardTier.TOP_100
    if rank <= TOP_500_CUTOFF:
        return RewardTier.TOP_500
    return RewardTier.LOTTERY_ONLY


def lottery_tickets(points: int) -> int:
    return max(0, int(points or 0)) // POINTS_PER_TICKET


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    username: str
    pfp_url: Optional[str]
    points: int

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "username": self.username,
            "pfp_url": self.pfp_url,
            "points": self.points,
        }


class RankEngine:
    def rank(self, user_id: str) -> int:
        """1 + number of accounts with strictly more points; 0 for unknown users."""
        points = db.session.execute(
            select(Account.points).where(Account.user_id == user_id)
        ).scalar()
        if points is None:
            return 0
        ahead = db.session.execute(
            select(func.count()).select_from(Account).where(Account.points > points)
        ).scalar_one()
        return int(ahead) + 1

    def cutoff_points(self, n: int) -> int:
        """Points held by the account at 1-based position n; 0 if there is none."""
        if n < 1:
            return 0
        points = db.session.execute(
            select(Account.points).order_by(Account.points.desc()).offset(n - 1).limit(1)
        ).scalar()
        return int(points) if points is not None else 0

    reward_tier = staticmethod(reward_tier)
    lottery_tickets = staticmethod(lottery_tickets)

    def leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        rows = db.session.execute(
            select(Account.username, Account.pfp_url, Account.points)
            .order_by(Account.points.desc(), Account.created_at.asc(), Account.user_id.asc())
            .limit(max(0, int(limit)))
        ).all()
        return [
            LeaderboardEntry(rank=i, username=username, pfp_url=pfp_url, points=int(points or 0))
            for i, (username, pfp_url, points) in enumerate(rows, start=1)
        ]

    def standing(self, user_id: str) -> Optional[dict]:
        points = db.session.execute(
            select(Account.points).where(Account.user_id == user_id)
        ).scalar()
        if points is None:
            return None
        rank = self.rank(user_id)
        tier = reward_tier(rank)
        return {
            "rank": rank,
            "points": int(points),
            "reward_tier": tier.value,
            "reward_tier_label": tier.label,
            "tickets": lottery_tickets(points),
        }
