"""
auth/dependencies.py -- FastAPI Depends() helper for session-token authentication.

Two places are checked for the session token, in priority order:
  1. Cookie ("access_token") -- set by POST /auth/sign-in.
  2. Authorization: Bearer <token> header -- API clients.

Only tokens carrying scope="session" count. Verification and reset tokens
are signed with the same key but never authenticate a request.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated, or
HTTP 403 if the account is unverified or has been locked since the token
was issued.

Tokens are not revoked on sign-out; a token is accepted until it expires.

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Account
from auth.tokens import SESSION_COOKIE, SESSION_SCOPE, InvalidTokenError


def try_get_current_account(request: Request) -> Account | None:
    """Resolve the session token on the request to an Account, or None. Never raises."""
    token: str | None = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    if not token:
        return None

    try:
        payload = request.app.state.token_service.verify(token)
    except InvalidTokenError:
        return None
    if payload.get("scope") != SESSION_SCOPE:
        return None
    return request.app.state.account_store.find_by_id(payload["account_id"])


def get_current_account(request: Request) -> Account:
    """Require a valid session token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    if not account.is_verified:
        raise HTTPException(status_code=403, detail="Please verify your email before signing in")
    if account.is_locked:
        raise HTTPException(status_code=403, detail="Account is locked. Reset your password to unlock it")
    return account
