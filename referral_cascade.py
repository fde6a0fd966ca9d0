"""Referral bonus cascade.

Runs once, inside the transaction that creates a new account with a valid
referral code. The referrer's count is incremented first; the bonus tier is
picked from the count *after* the increment:

    1st-5th referral   -> 200 points each
    6th-20th referral  -> 300 points each
    21st and later     -> 500 points each
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update

from extensions import db
from models_accounts import Account, Referral


# (last referral number in tier, bonus); the final tier is open-ended.
REFERRAL_BONUS_TIERS = [
    (5, 200),
    (20, 300),
]
REFERRAL_BONUS_TOP = 500


def bonus_for(referral_number: int) -> int:
    for upper, bonus in REFERRAL_BONUS_TIERS:
        if referral_number <= upper:
            return bonus
    return REFERRAL_BONUS_TOP


class ReferralCascade:
    def __init__(self, accounts):
        # Anything with add_points(user_id, delta); normally PointsAccounts.
        self.accounts = accounts

    @staticmethod
    def is_self_referral(referrer: Account, user_id: str, social_id: Optional[str] = None) -> bool:
        if referrer.user_id == user_id:
            return True
        return bool(social_id) and referrer.social_id == social_id

    def apply(self, referrer: Account, referee: Account, code_used: str, now: datetime) -> Optional[int]:
        """Credit `referrer` for bringing in `referee`. Returns the bonus, or None for self-referrals.

        Does not commit; the account-creation transaction does.
        """
        if self.is_self_referral(referrer, referee.user_id, referee.social_id):
            logger.info(f"REFERRAL: ignoring self-referral by {referee.user_id} with code {code_used}")
            return None

        db.session.execute(
            update(Account)
            .where(Account.user_id == referrer.user_id)
            .values(referral_count=Account.referral_count + 1)
        )
        referral_number = int(
            db.session.execute(
                select(Account.referral_count).where(Account.user_id == referrer.user_id)
            ).scalar_one()
        )

        bonus = bonus_for(referral_number)
        self.accounts.add_points(referrer.user_id, bonus)

        db.session.add(Referral(
            referrer_id=referrer.user_id,
            referee_id=referee.user_id,
            code_used=code_used,
            referral_number=referral_number,
            bonus_points=bonus,
            created_at=now,
        ))
        db.session.flush()

        logger.info(
            f"REFERRAL: {referee.user_id} joined with code {code_used}; "
            f"referrer {referrer.user_id} now has {referral_number} referrals (+{bonus} pts)"
        )
        return bonus
