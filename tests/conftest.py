"""Pytest configuration and shared fixtures for all tests."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from action_catalog import DEFAULT_CATALOG
from app import create_app
from claim_engine import ClaimEngine
from cooldown_ledger import CooldownLedger
from errors import InvalidToken
from extensions import db
from models_accounts import Account
from points_accounts import PointsAccounts
from rank_engine import RankEngine
from twitter_verify import VerificationCapabilities


T0 = datetime(2025, 1, 1, 12, 0, 0)


class FakeClock:
    """Settable clock; engines call it like utcnow()."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeIdentity:
    """Accepts tokens of the form "token-<user_id>"."""

    def verify(self, token):
        if not token or not token.startswith("token-"):
            raise InvalidToken("Invalid or expired token")
        return token[len("token-"):]


class FakeVerifier:
    def __init__(self):
        self.followers = set()
        self.posts = {}
        self.fail = False
        self.calls = []

    def user_follows(self, social_id, account_id):
        self.calls.append(("user_follows", social_id, account_id))
        if self.fail:
            raise OSError("network down")
        return social_id in self.followers

    def fetch_post(self, post_id):
        self.calls.append(("fetch_post", post_id))
        if self.fail:
            raise OSError("network down")
        return self.posts.get(post_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def app(clock, verifier):
    app = create_app(
        config_overrides={
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SQLALCHEMY_ENGINE_OPTIONS": {},
            "RATELIMIT_ENABLED": False,
            "LOG_LEVEL": "WARNING",
        },
        identity=FakeIdentity(),
        verifier=verifier,
        capabilities=VerificationCapabilities(),
        clock=clock,
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def accounts(app):
    return PointsAccounts()


@pytest.fixture
def ledger(app):
    return CooldownLedger()


@pytest.fixture
def ranks(app):
    return RankEngine()


@pytest.fixture
def make_engine(accounts, ledger, verifier, clock):
    """Build a ClaimEngine with chosen capabilities."""

    def _make(follow=False, post=False, catalog=DEFAULT_CATALOG):
        caps = VerificationCapabilities(
            follow_check_enabled=follow,
            post_check_enabled=post,
            account_id="999" if follow else None,
            handle="abc",
        )
        return ClaimEngine(catalog, accounts, ledger, caps, verifier=verifier, clock=clock)

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def make_account(app):
    """Insert an account row directly (bypasses referral handling)."""
    counter = {"n": 0}

    def _make(user_id, points=0, social_id=None, username=None, created_at=None):
        counter["n"] += 1
        account = Account(
            user_id=user_id,
            social_id=social_id or f"social-{user_id}",
            username=username or user_id,
            points=points,
            referral_code=f"CODE{counter['n']:04d}",
            referral_count=0,
            created_at=created_at or T0 + timedelta(seconds=counter["n"]),
        )
        db.session.add(account)
        db.session.commit()
        return account

    return _make


def auth(user_id):
    return {"Authorization": f"Bearer token-{user_id}"}
