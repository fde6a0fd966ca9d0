"""Privy token verification against a locally generated ES256 key."""

import time

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from errors import InvalidToken
from privy_auth import PrivyTokenVerifier, bearer_token


APP_ID = "test-app-id"


@pytest.fixture(scope="module")
def keypair():
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


def _token(private_pem, **overrides):
    now = int(time.time())
    claims = {
        "sub": "did:privy:abc123",
        "iss": "privy.io",
        "aud": APP_ID,
        "iat": now,
        "exp": now + 3600,
        "sid": "session-1",
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="ES256")


class TestPrivyTokenVerifier:
    def test_valid_token_returns_subject(self, keypair):
        private_pem, public_pem = keypair
        verifier = PrivyTokenVerifier(APP_ID, public_pem)
        assert verifier.verify(_token(private_pem)) == "did:privy:abc123"

    def test_escaped_newlines_in_key(self, keypair):
        private_pem, public_pem = keypair
        verifier = PrivyTokenVerifier(APP_ID, public_pem.replace("\n", "\\n"))
        assert verifier.verify(_token(private_pem)) == "did:privy:abc123"

    def test_expired(self, keypair):
        private_pem, public_pem = keypair
        token = _token(private_pem, iat=1_000, exp=2_000)
        with pytest.raises(InvalidToken, match="expired"):
            PrivyTokenVerifier(APP_ID, public_pem).verify(token)

    def test_wrong_audience(self, keypair):
        private_pem, public_pem = keypair
        with pytest.raises(InvalidToken):
            PrivyTokenVerifier(APP_ID, public_pem).verify(_token(private_pem, aud="other-app"))

    def test_wrong_issuer(self, keypair):
        private_pem, public_pem = keypair
        with pytest.raises(InvalidToken):
            PrivyTokenVerifier(APP_ID, public_pem).verify(_token(private_pem, iss="evil.io"))

    def test_signed_by_another_key(self, keypair):
        _, public_pem = keypair
        other = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
        with pytest.raises(InvalidToken):
            PrivyTokenVerifier(APP_ID, public_pem).verify(_token(other))

    def test_garbage_and_empty(self, keypair):
        _, public_pem = keypair
        verifier = PrivyTokenVerifier(APP_ID, public_pem)
        with pytest.raises(InvalidToken):
            verifier.verify("not-a-jwt")
        with pytest.raises(InvalidToken):
            verifier.verify("")

    def test_requires_configuration(self):
        with pytest.raises(ValueError):
            PrivyTokenVerifier("", "")


class FakeRequest:
    def __init__(self, headers):
        self.headers = headers


class TestBearerToken:
    def test_extracts_token(self):
        assert bearer_token(FakeRequest({"Authorization": "Bearer abc.def"})) == "abc.def"

    @pytest.mark.parametrize("header", ["", "Basic xyz", "Bearer ", "bearer abc"])
    def test_rejects_other_schemes(self, header):
        assert bearer_token(FakeRequest({"Authorization": header})) is None
