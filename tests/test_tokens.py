"""Unit tests for auth/tokens.py -- password hashing, TokenService and the cookie helper."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from auth.tokens import SESSION_COOKIE, InvalidTokenError, TokenService, hash_password, set_session_cookie, verify_password

_SECRET = "unit-test-secret-key-with-enough-length-000"


class TestPasswordHashing:
    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert hashed.startswith("$2")
        assert verify_password("s3cret", hashed)

    def test_wrong_password_does_not_verify(self):
        assert not verify_password("other", hash_password("s3cret"))

    def test_same_password_hashes_differently(self):
        assert hash_password("s3cret") != hash_password("s3cret")

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("s3cret", "not-a-bcrypt-hash") is False

    def test_overlong_candidate_is_a_mismatch(self):
        hashed = hash_password("a" * 72)
        assert verify_password("a" * 72 + "extra", hashed) is False


class TestTokenService:
    def test_sign_then_verify_returns_payload(self):
        tokens = TokenService(_SECRET)
        payload = tokens.verify(tokens.sign({"account_id": 7}, timedelta(minutes=5)))
        assert payload["account_id"] == 7
        assert "exp" in payload

    def test_expired_token_is_rejected(self):
        tokens = TokenService(_SECRET)
        token = tokens.sign({"account_id": 7}, timedelta(seconds=-5))
        with pytest.raises(InvalidTokenError):
            tokens.verify(token)

    def test_token_from_other_secret_is_rejected(self):
        token = TokenService("a-completely-different-secret-key-0000000").sign({"account_id": 7}, timedelta(hours=1))
        with pytest.raises(InvalidTokenError):
            TokenService(_SECRET).verify(token)

    def test_tampered_token_is_rejected(self):
        tokens = TokenService(_SECRET)
        signature = tokens.sign({"account_id": 7}, timedelta(hours=1)).split(".")[2]
        header, payload, _ = tokens.sign({"account_id": 8}, timedelta(hours=1)).split(".")
        with pytest.raises(InvalidTokenError):
            tokens.verify(".".join([header, payload, signature]))

    def test_token_without_account_id_is_rejected(self):
        tokens = TokenService(_SECRET)
        with pytest.raises(InvalidTokenError, match="account_id"):
            tokens.verify(tokens.sign({"sub": "someone"}, timedelta(hours=1)))

    def test_garbage_is_rejected(self):
        with pytest.raises(InvalidTokenError):
            TokenService(_SECRET).verify("not.a.token")

    def test_empty_secret_is_refused(self):
        with pytest.raises(ValueError):
            TokenService("")


def test_set_session_cookie_flags():
    response = MagicMock()
    set_session_cookie(response, "tok", max_age=60, secure=True)
    response.set_cookie.assert_called_once_with(
        SESSION_COOKIE, value="tok", httponly=True, samesite="lax", secure=True, max_age=60
    )
