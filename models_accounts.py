"""Account and referral models.

- One Account per identity subject (Privy user id), created once on first sync.
- points / referral_count are only ever changed with single UPDATE statements
  (see points_accounts.py), never read-modify-write in Python.
- referred_by_code is a weak reference by code, not a foreign key.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from extensions import db, utcnow


class Account(db.Model):
    __tablename__ = "accounts"

    user_id = Column(String(128), primary_key=True)
    social_id = Column(String(64), nullable=False, index=True)  # twitter id or farcaster_<fid>
    username = Column(String(100), nullable=False)
    pfp_url = Column(String(500), nullable=True)
    wallet_address = Column(String(42), nullable=True)

    points = Column(Integer, nullable=False, default=0)
    referral_code = Column(String(16), nullable=False, unique=True, index=True)
    referred_by_code = Column(String(16), nullable=True, index=True)
    referral_count = Column(Integer, nullable=False, default=0)

    # Display only; eligibility comes from the action log.
    last_check_in = Column(DateTime, nullable=True)
    last_daily_post_twitter = Column(DateTime, nullable=True)
    last_daily_post_farcaster = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_accounts_points", "points"),
        Index("idx_accounts_points_created", "points", "created_at"),
    )

    @property
    def last_daily_post_by_platform(self) -> dict:
        return {
            "twitter": self.last_daily_post_twitter,
            "farcaster": self.last_daily_post_farcaster,
        }

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "social_id": self.social_id,
            "username": self.username,
            "pfp_url": self.pfp_url,
            "wallet_address": self.wallet_address,
            "points": int(self.points or 0),
            "referral_code": self.referral_code,
            "referred_by": self.referred_by_code,
            "referral_count": int(self.referral_count or 0),
            "last_check_in": self.last_check_in.isoformat() if self.last_check_in else None,
            "last_daily_post": {
                platform: ts.isoformat() if ts else None
                for platform, ts in self.last_daily_post_by_platform.items()
            },
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Referral(db.Model):
    """One row per referral bonus paid. referee_id is unique: a user refers in at most once."""

    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True)
    referrer_id = Column(String(128), nullable=False, index=True)
    referee_id = Column(String(128), nullable=False)
    code_used = Column(String(16), nullable=False)
    referral_number = Column(Integer, nullable=False)  # referrer's count after this referral
    bonus_points = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("referee_id", name="uq_referrals_referee"),
        Index("idx_referrals_referrer_created", "referrer_id", "created_at"),
    )

    def to_dict(self):
        return {
            "referrer_id": self.referrer_id,
            "referee_id": self.referee_id,
            "code_used": self.code_used,
            "referral_number": self.referral_number,
            "bonus_points": self.bonus_points,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
