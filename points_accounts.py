"""Account store: lookups, atomic point increments and the once-completion set.

Only create_account_if_absent() and update_wallet() commit on their own. The
other mutators join the caller's transaction so the claim engine can commit a
claim (reservation + points + log) as one unit.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import StorageUnavailable
from extensions import db, utcnow
from models_accounts import Account
from models_actions import ActionCompletion
from referral_cascade import ReferralCascade


REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8

_WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def normalize_referral_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def is_valid_wallet(wallet: str) -> bool:
    return bool(_WALLET_RE.match(wallet or ""))


class PointsAccounts:
    def __init__(self):
        self.cascade = ReferralCascade(self)

    # ---- reads ----

    def get_account(self, user_id: str) -> Optional[Account]:
        return db.session.get(Account, user_id)

    def get_by_referral_code(self, code: str) -> Optional[Account]:
        code = normalize_referral_code(code)
        if not code:
            return None
        return Account.query.filter_by(referral_code=code).first()

    def points_of(self, user_id: str) -> Optional[int]:
        return db.session.execute(
            select(Account.points).where(Account.user_id == user_id)
        ).scalar()

    def is_once_completed(self, user_id: str, action_key: str) -> bool:
        row = db.session.execute(
            select(ActionCompletion.id).where(
                ActionCompletion.user_id == user_id,
                ActionCompletion.action_key == action_key,
            )
        ).first()
        return row is not None

    def completed_actions(self, user_id: str) -> set[str]:
        rows = db.session.execute(
            select(ActionCompletion.action_key).where(ActionCompletion.user_id == user_id)
        ).scalars()
        return set(rows)

    # ---- claim-path writes (no commit) ----

    def add_points(self, user_id: str, delta: int) -> int:
        """Atomically add `delta` points and return the new total."""
        delta = int(delta)
        if delta <= 0:
            raise ValueError("Points delta must be positive")

        result = db.session.execute(
            update(Account)
            .where(Account.user_id == user_id)
            .values(points=Account.points + delta)
        )
        if result.rowcount != 1:
            raise LookupError(f"No account for user {user_id}")
        return int(self.points_of(user_id))

    def mark_once_completed(self, user_id: str, action_key: str, now: Optional[datetime] = None) -> bool:
        """Add-if-absent. True when newly marked, False when it already was.

        A concurrent insert of the same pair fails the flush with IntegrityError.
        """
        if self.is_once_completed(user_id, action_key):
            return False
        db.session.add(ActionCompletion(user_id=user_id, action_key=action_key, completed_at=now or utcnow()))
        db.session.flush()
        return True

    def stamp_last_check_in(self, user_id: str, now: datetime) -> None:
        db.session.execute(
            update(Account).where(Account.user_id == user_id).values(last_check_in=now)
        )

    def stamp_last_daily_post(self, user_id: str, platform: str, now: datetime) -> None:
        column = {
            "twitter": Account.last_daily_post_twitter,
            "farcaster": Account.last_daily_post_farcaster,
        }.get(platform)
        if column is None:
            return
        db.session.execute(
            update(Account).where(Account.user_id == user_id).values({column: now})
        )

    # ---- account lifecycle (commits) ----

    def _unique_referral_code(self) -> str:
        code = generate_referral_code()
        while self.get_by_referral_code(code) is not None:
            code = generate_referral_code()
        return code

    def create_account_if_absent(
        self,
        user_id: str,
        social_id: str,
        username: str,
        pfp_url: Optional[str] = None,
        referral_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Account, bool]:
        """Return (account, is_new). The referral cascade only runs when is_new."""
        now = now or utcnow()
        try:
            existing = self.get_account(user_id)
            if existing is not None:
                return existing, False

            code_used = normalize_referral_code(referral_code)
            referrer = None
            if code_used:
                candidate = self.get_by_referral_code(code_used)
                # Unknown or self-owned codes are treated as if none was given.
                if candidate is not None and not self.cascade.is_self_referral(candidate, user_id, social_id):
                    referrer = candidate

            account = Account(
                user_id=user_id,
                social_id=social_id,
                username=username,
                pfp_url=pfp_url,
                points=0,
                referral_code=self._unique_referral_code(),
                referred_by_code=referrer.referral_code if referrer else None,
                referral_count=0,
                created_at=now,
            )
            db.session.add(account)
            db.session.flush()

            if referrer is not None:
                self.cascade.apply(referrer, account, code_used, now)

            db.session.commit()
            logger.info(f"ACCOUNTS: created {user_id} ({username}) referral_code={account.referral_code}")
            return account, True
        except IntegrityError:
            # Lost a creation race for the same user; the winner already ran the cascade.
            db.session.rollback()
            existing = self.get_account(user_id)
            if existing is None:
                raise StorageUnavailable(f"Could not create account for {user_id}")
            return existing, False
        except LookupError:
            # Referrer row vanished between lookup and cascade.
            db.session.rollback()
            logger.warning(f"ACCOUNTS: referrer for code {referral_code} disappeared; creating {user_id} without referral")
            return self.create_account_if_absent(user_id, social_id, username, pfp_url, None, now)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"ACCOUNTS: create failed for {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e

    def update_wallet(self, user_id: str, wallet_address: str) -> Optional[Account]:
        wallet_address = (wallet_address or "").strip()
        if not is_valid_wallet(wallet_address):
            raise ValueError("Invalid Ethereum address")
        try:
            account = self.get_account(user_id)
            if account is None:
                return None
            account.wallet_address = wallet_address
            db.session.commit()
            return account
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"ACCOUNTS: wallet update failed for {user_id}: {e}")
            raise StorageUnavailable(str(e)) from e
