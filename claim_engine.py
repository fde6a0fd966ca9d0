"""Action claims.

Per (user, action) the state is derived from storage, never stored:

    never claimed -> eligible -> claimed (once actions)
                              -> on cooldown -> eligible (24h actions)

A claim checks eligibility, runs the external verification gate, and only then
writes: reservation, points, log entry and display stamps commit together or
not at all.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from action_catalog import (
    DAILY_CHECKIN_KEY,
    PLATFORM_TWITTER,
    RECURRING_COOLDOWN,
    REQUIRE_MENTION,
    REQUIRE_QUOTE,
    REQUIRE_REPLY,
    REQUIRE_REPOST,
    Action,
    ActionCatalog,
)
from cooldown_ledger import CooldownLedger, cooldown_ends_at, is_on_cooldown
from errors import StorageUnavailable
from extensions import db, utcnow
from points_accounts import PointsAccounts
from twitter_verify import VerificationCapabilities, parse_tweet_url


class ClaimErrorKind(enum.Enum):
    UNKNOWN_ACTION = "Unknown action"
    USER_NOT_FOUND = "User not found"
    ALREADY_COMPLETED = "Action already completed"
    ON_COOLDOWN = "On cooldown"
    FOLLOW_NOT_VERIFIED = "Follow our X account first, then try again."
    LINK_REQUIRED = "Paste your tweet link to verify."
    LINK_INVALID = "Invalid tweet link. Use a link like https://x.com/username/status/123..."
    CONTENT_UNAVAILABLE = "Could not load that tweet. Check the link or try again later."
    AUTHOR_MISMATCH = "That tweet was not posted by your account."
    REQUIREMENT_NOT_MET = "That tweet does not meet the requirements for this action."

    @property
    def message(self) -> str:
        return self.value


_REQUIREMENT_MESSAGES = {
    REQUIRE_QUOTE: "That tweet is not a Quote Tweet.",
    REQUIRE_REPOST: "That tweet is not a Retweet.",
    REQUIRE_REPLY: "That tweet is not a reply/comment.",
    REQUIRE_MENTION: "Your post must mention @{handle}.",
}


@dataclass
class ClaimResult:
    success: bool
    points_awarded: Optional[int] = None
    total_points: Optional[int] = None
    cooldown_ends_at: Optional[datetime] = None
    error_kind: Optional[ClaimErrorKind] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, points_awarded: int, total_points: int) -> "ClaimResult":
        return cls(success=True, points_awarded=points_awarded, total_points=total_points)

    @classmethod
    def fail(cls, kind: ClaimErrorKind, error: Optional[str] = None, ends_at: Optional[datetime] = None) -> "ClaimResult":
        return cls(success=False, error_kind=kind, error=error or kind.message, cooldown_ends_at=ends_at)

    def to_dict(self) -> dict:
        if self.success:
            return {
                "success": True,
                "points_awarded": self.points_awarded,
                "total_points": self.total_points,
            }
        out = {
            "success": False,
            "error": self.error,
            "error_kind": self.error_kind.name if self.error_kind else None,
        }
        if self.cooldown_ends_at is not None:
            out["cooldown_ends_at"] = self.cooldown_ends_at.isoformat()
        return out


def requirement_met(post, requirement: str, handle: str) -> bool:
    if requirement == REQUIRE_QUOTE:
        return post.is_quote
    if requirement == REQUIRE_REPOST:
        return post.is_repost
    if requirement == REQUIRE_REPLY:
        return post.is_reply
    if requirement == REQUIRE_MENTION:
        return post.mentions(handle)
    return True


class ClaimEngine:
    def __init__(
        self,
        catalog: ActionCatalog,
        accounts: PointsAccounts,
        ledger: CooldownLedger,
        capabilities: VerificationCapabilities,
        verifier=None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.catalog = catalog
        self.accounts = accounts
        self.ledger = ledger
        self.capabilities = capabilities
        self.verifier = verifier
        self.clock = clock

    # ---- claim ----

    def claim(self, user_id: str, action_key: str, tweet_url: Optional[str] = None) -> ClaimResult:
        action = self.catalog.get(action_key)
        if action is None:
            return ClaimResult.fail(ClaimErrorKind.UNKNOWN_ACTION)

        account = self.accounts.get_account(user_id)
        if account is None:
            return ClaimResult.fail(ClaimErrorKind.USER_NOT_FOUND)

        now = self.clock()

        if action.is_once:
            if self.accounts.is_once_completed(user_id, action.key):
                return ClaimResult.fail(ClaimErrorKind.ALREADY_COMPLETED)
        else:
            last = self.ledger.last_claim_time(user_id, action.key)
            if is_on_cooldown(last, now, RECURRING_COOLDOWN):
                logger.debug(f"CLAIM: {user_id} {action.key} still on cooldown (last {last.isoformat()})")
                return ClaimResult.fail(ClaimErrorKind.ON_COOLDOWN, ends_at=cooldown_ends_at(last))

        denied = self._verify(action, account.social_id, tweet_url)
        if denied is not None:
            logger.info(f"CLAIM: {user_id} {action.key} denied: {denied.error_kind.name}")
            return denied

        return self._commit(user_id, action, now)

    def _verify(self, action: Action, social_id: Optional[str], tweet_url: Optional[str]) -> Optional[ClaimResult]:
        """Run the external checks this deployment supports. None means pass."""
        caps = self.capabilities

        if action.requires_follow and caps.follow_check_enabled:
            try:
                follows = bool(self.verifier and self.verifier.user_follows(social_id, caps.account_id))
            except Exception as e:
                logger.warning(f"CLAIM: follow check raised for {social_id}: {e}")
                follows = False
            if not follows:
                return ClaimResult.fail(ClaimErrorKind.FOLLOW_NOT_VERIFIED)

        if action.post_requirement and action.platform == PLATFORM_TWITTER and caps.post_check_enabled:
            if not tweet_url or not str(tweet_url).strip():
                return ClaimResult.fail(ClaimErrorKind.LINK_REQUIRED)

            post_id = parse_tweet_url(str(tweet_url))
            if not post_id:
                return ClaimResult.fail(ClaimErrorKind.LINK_INVALID)

            try:
                post = self.verifier.fetch_post(post_id) if self.verifier else None
            except Exception as e:
                logger.warning(f"CLAIM: tweet fetch raised for {post_id}: {e}")
                post = None
            if post is None:
                return ClaimResult.fail(ClaimErrorKind.CONTENT_UNAVAILABLE)

            if str(post.author_id) != str(social_id or ""):
                return ClaimResult.fail(ClaimErrorKind.AUTHOR_MISMATCH)

            if not requirement_met(post, action.post_requirement, caps.handle):
                message = _REQUIREMENT_MESSAGES[action.post_requirement].format(handle=caps.handle)
                return ClaimResult.fail(ClaimErrorKind.REQUIREMENT_NOT_MET, message)

        return None

    def _conflict(self, user_id: str, action: Action) -> ClaimResult:
        if action.is_once:
            return ClaimResult.fail(ClaimErrorKind.ALREADY_COMPLETED)
        last = self.ledger.last_claim_time(user_id, action.key)
        return ClaimResult.fail(ClaimErrorKind.ON_COOLDOWN, ends_at=cooldown_ends_at(last) if last else None)

    def _commit(self, user_id: str, action: Action, now: datetime) -> ClaimResult:
        try:
            if action.is_once:
                reserved = self.accounts.mark_once_completed(user_id, action.key, now)
            else:
                reserved = self.ledger.reserve(user_id, action.key, now, RECURRING_COOLDOWN)
            if not reserved:
                db.session.rollback()
                return self._conflict(user_id, action)

            total = self.accounts.add_points(user_id, action.points)
            self.ledger.record(user_id, action.key, action.points, now)

            if action.key == DAILY_CHECKIN_KEY:
                self.accounts.stamp_last_check_in(user_id, now)
            elif action.key.startswith("daily_post_") and action.platform:
                self.accounts.stamp_last_daily_post(user_id, action.platform, now)

            db.session.commit()
        except IntegrityError:
            # A concurrent claim took the same slot first.
            db.session.rollback()
            logger.info(f"CLAIM: {user_id} {action.key} lost a concurrent claim")
            return self._conflict(user_id, action)
        except LookupError:
            db.session.rollback()
            return ClaimResult.fail(ClaimErrorKind.USER_NOT_FOUND)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"CLAIM: storage error for {user_id} {action.key}: {e}")
            raise StorageUnavailable(str(e)) from e

        logger.info(f"CLAIM: {user_id} +{action.points} for {action.key} (total {total})")
        return ClaimResult.ok(action.points, total)

    # ---- status ----

    def cooldown_status(self, user_id: str) -> dict:
        if self.accounts.get_account(user_id) is None:
            return {}

        now = self.clock()
        completed = self.accounts.completed_actions(user_id)
        last_by_key = self.ledger.last_claim_times(user_id)

        status = {}
        for action in self.catalog:
            if action.is_once:
                done = action.key in completed
                status[action.key] = {"available": not done, "cooldown_ends_at": None, "completed": done}
                continue
            last = last_by_key.get(action.key)
            if is_on_cooldown(last, now, RECURRING_COOLDOWN):
                status[action.key] = {
                    "available": False,
                    "cooldown_ends_at": cooldown_ends_at(last).isoformat(),
                    "completed": False,
                }
            else:
                status[action.key] = {"available": True, "cooldown_ends_at": None, "completed": False}
        return status
