"""Privy access-token verification.

Privy issues ES256-signed JWTs (issuer "privy.io", audience = the Privy app id,
subject = the user's Privy DID). They are checked locally against the app's
verification key from the Privy dashboard.
"""

from __future__ import annotations

import os
from typing import Optional

import jwt
from flask import current_app, request
from loguru import logger

from errors import InvalidToken


PRIVY_ISSUER = "privy.io"
PRIVY_ALGORITHM = "ES256"


def bearer_token(req) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header, or None."""
    auth = req.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth[7:].strip()
    return token or None


def authenticated_user_id() -> str:
    """Privy DID of the caller. Raises InvalidToken; the app maps it to 401."""
    token = bearer_token(request)
    if not token:
        raise InvalidToken("Missing or invalid Authorization header")
    identity = current_app.extensions.get("identity")
    if identity is None:
        raise InvalidToken("Authentication is not configured")
    return identity.verify(token)


class PrivyTokenVerifier:
    def __init__(self, app_id: str, verification_key: str, leeway: int = 30):
        if not app_id or not verification_key:
            raise ValueError("Privy app id and verification key are required")
        self.app_id = app_id
        # .env files usually carry the PEM on one line with literal \n
        self.verification_key = verification_key.replace("\\n", "\n")
        self.leeway = leeway

    @classmethod
    def from_env(cls) -> Optional["PrivyTokenVerifier"]:
        app_id = os.getenv("PRIVY_APP_ID")
        key = os.getenv("PRIVY_VERIFICATION_KEY")
        if not app_id or not key:
            logger.warning("AUTH: PRIVY_APP_ID / PRIVY_VERIFICATION_KEY not set; authenticated routes will reject all tokens")
            return None
        return cls(app_id, key)

    def verify(self, token: str) -> str:
        """Return the token's subject (Privy DID) or raise InvalidToken."""
        if not token:
            raise InvalidToken("Missing token")
        try:
            claims = jwt.decode(
                token,
                self.verification_key,
                algorithms=[PRIVY_ALGORITHM],
                issuer=PRIVY_ISSUER,
                audience=self.app_id,
                options={"require": ["exp", "iat", "sub"]},
                leeway=self.leeway,
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidToken("Token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug(f"AUTH: invalid token: {e}")
            raise InvalidToken(f"Invalid token: {e}") from e

        subject = claims.get("sub")
        if not subject:
            raise InvalidToken("Token has no subject")
        return str(subject)
