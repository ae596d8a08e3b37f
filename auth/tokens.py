"""
auth/tokens.py -- JWT signing, password hashing, and the session cookie helper.

Security design decisions:
  JWT: python-jose with HS256. TokenService is constructed with the secret
       key (no module-level secret), signs {account_id, exp} and verifies
       signature + expiry. Verification raises InvalidTokenError on any
       failure -- the flow controller turns that into a 401 outcome.

       Verification and reset tokens share one format and differ only in
       lifetime and in the route that consumes them. Session tokens issued
       by sign-in also carry scope="session"; only those authenticate
       requests to protected routes. There is no revocation list, so a
       reset token stays usable until it expires.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force of low-entropy secrets expensive. A fresh salt is generated
       for every hash.

Layer rule: no imports from api/. Import from core/ is not needed here --
settings values arrive through constructor arguments.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

logger = logging.getLogger("authflow.auth")

_ALGORITHM = "HS256"

SESSION_COOKIE = "access_token"

# Claim that marks a token as a sign-in session rather than a link token.
SESSION_SCOPE = "session"


class InvalidTokenError(Exception):
    """Token is malformed, has a bad signature, is expired, or lacks account_id."""


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes. The sign-up and reset request models
    cap new passwords at 72 characters, which keeps ASCII inputs below the limit.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error, and so
    does a candidate longer than 72 bytes, which is refused instead of truncated.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > 72:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenService:
    """Issue and verify time-bounded signed tokens.

    Usage:
        tokens = TokenService(settings.secret_key)
        raw = tokens.sign({"account_id": 7}, timedelta(hours=1))
        tokens.verify(raw)["account_id"]  # -> 7
    """

    def __init__(self, secret_key: str, algorithm: str = _ALGORITHM) -> None:
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret_key = secret_key
        self._algorithm = algorithm

    def sign(self, payload: dict[str, Any], expires_in: timedelta) -> str:
        """Encode payload plus an exp claim of now + expires_in."""
        claims = dict(payload)
        claims["exp"] = datetime.now(timezone.utc) + expires_in
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Decode and verify a token. Raises InvalidTokenError on any failure.

        jose checks both the signature and the exp claim; an expired token
        raises ExpiredSignatureError, a subclass of JWTError.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc
        if "account_id" not in payload:
            raise InvalidTokenError("token has no account_id claim")
        return payload


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )
