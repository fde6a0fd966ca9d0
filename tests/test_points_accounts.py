"""Tests for account creation, point increments and wallet updates."""

import pytest

from conftest import T0
from extensions import db
from models_accounts import Account
from points_accounts import (
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_LENGTH,
    generate_referral_code,
    is_valid_wallet,
)


VALID_WALLET = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"


class TestReferralCodes:
    def test_generated_code_shape(self):
        for _ in range(50):
            code = generate_referral_code()
            assert len(code) == REFERRAL_CODE_LENGTH
            assert set(code) <= set(REFERRAL_CODE_ALPHABET)

    def test_ambiguous_characters_excluded(self):
        for ch in "01IO":
            assert ch not in REFERRAL_CODE_ALPHABET


class TestCreateAccount:
    def test_creates_with_zero_points(self, accounts):
        account, is_new = accounts.create_account_if_absent("u1", "tw-1", "alice", now=T0)

        assert is_new is True
        assert account.points == 0
        assert account.referral_count == 0
        assert account.created_at == T0
        assert len(account.referral_code) == REFERRAL_CODE_LENGTH

    def test_existing_account_is_returned_untouched(self, accounts):
        first, _ = accounts.create_account_if_absent("u1", "tw-1", "alice")
        again, is_new = accounts.create_account_if_absent("u1", "tw-other", "renamed")

        assert is_new is False
        assert again.user_id == first.user_id
        assert again.username == "alice"
        assert db.session.query(Account).count() == 1

    def test_lookup_by_code_is_case_insensitive(self, accounts):
        account, _ = accounts.create_account_if_absent("u1", "tw-1", "alice")

        found = accounts.get_by_referral_code(f"  {account.referral_code.lower()} ")
        assert found is not None
        assert found.user_id == "u1"
        assert accounts.get_by_referral_code("") is None

    def test_unknown_referral_code_is_ignored(self, accounts):
        account, is_new = accounts.create_account_if_absent("u1", "tw-1", "alice", referral_code="NOSUCHCD")

        assert is_new is True
        assert account.referred_by_code is None


class TestAddPoints:
    def test_returns_new_total(self, accounts, make_account):
        make_account("u1", points=100)

        assert accounts.add_points("u1", 50) == 150
        assert accounts.add_points("u1", 25) == 175
        db.session.commit()
        assert accounts.points_of("u1") == 175

    @pytest.mark.parametrize("delta", [0, -10])
    def test_rejects_non_positive_delta(self, accounts, make_account, delta):
        make_account("u1")
        with pytest.raises(ValueError):
            accounts.add_points("u1", delta)

    def test_missing_account(self, accounts):
        with pytest.raises(LookupError):
            accounts.add_points("ghost", 10)


class TestOnceCompletion:
    def test_mark_is_add_if_absent(self, accounts, make_account):
        make_account("u1")

        assert accounts.mark_once_completed("u1", "join_tg", T0) is True
        assert accounts.mark_once_completed("u1", "join_tg", T0) is False
        db.session.commit()

        assert accounts.is_once_completed("u1", "join_tg") is True
        assert accounts.completed_actions("u1") == {"join_tg"}


class TestWallet:
    def test_valid_wallet(self):
        assert is_valid_wallet(VALID_WALLET)
        assert not is_valid_wallet("0x123")
        assert not is_valid_wallet("742d35Cc6634C0532925a3b844Bc9e7595f0bEb0aa")

    def test_update_wallet(self, accounts, make_account):
        make_account("u1")
        account = accounts.update_wallet("u1", f" {VALID_WALLET} ")
        assert account.wallet_address == VALID_WALLET

    def test_update_wallet_rejects_bad_address(self, accounts, make_account):
        make_account("u1")
        with pytest.raises(ValueError, match="Invalid Ethereum address"):
            accounts.update_wallet("u1", "0xnothex")

    def test_update_wallet_unknown_user(self, accounts):
        assert accounts.update_wallet("ghost", VALID_WALLET) is None
