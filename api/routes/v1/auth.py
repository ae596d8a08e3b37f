"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/sign-up                 -- 201 / 400 / 409 / 502
  POST /api/v1/auth/sign-in                 -- 200 / 401 / 403 / 404; sets session cookie
  POST /api/v1/auth/sign-out                -- 200; clears session cookie
  POST /api/v1/auth/forgot-password         -- 200 / 400 / 404 / 502
  POST /api/v1/auth/reset-password/{token}  -- 200 / 400 / 401 / 404
  GET  /api/v1/auth/verify-email/{token}    -- 200 / 400 / 401 / 404
  GET  /api/v1/auth/me                      -- current account (requires session token)

Handlers stay thin: pull the controller off app.state, call one flow
operation, hand the outcome to respond(). All policy lives in auth/flows.py.

Handlers that hash or check passwords are plain `def` so FastAPI runs them
in the threadpool -- bcrypt and the SQLAlchemy calls block.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    AccountResponse,
    ApiResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
)
from api.responder import respond
from auth.dependencies import get_current_account
from auth.flows import AuthFlowController
from auth.models import Account
from auth.outcomes import Reply
from auth.tokens import SESSION_COOKIE, set_session_cookie

# Auth policy:
# - every route except GET /auth/me is public -- they are how a client gets a session.
# - GET /auth/me requires a session token (get_current_account).
router = APIRouter()


def _flows(request: Request) -> AuthFlowController:
    return request.app.state.auth_flow


@router.post("/auth/sign-up", response_model=ApiResponse, status_code=201)
def sign_up(request: Request, body: SignUpRequest) -> JSONResponse:
    """Register an account and send its verification email."""
    outcome = _flows(request).sign_up(body.name, body.email, body.password, body.confirm_password)
    return respond(outcome)


@router.post("/auth/sign-in", response_model=ApiResponse)
def sign_in(request: Request, body: SignInRequest) -> JSONResponse:
    """Check credentials; on success return a session token and set it as a cookie.

    The client address and User-Agent go into the login audit log.
    """
    flows = _flows(request)
    outcome = flows.sign_in(
        body.email,
        body.password,
        client_address=request.client.host if request.client else None,
        client_agent=request.headers.get("User-Agent"),
    )
    resp = respond(outcome)
    if isinstance(outcome, Reply) and outcome.success:
        set_session_cookie(
            resp,
            outcome.data["token"],
            max_age=flows.session_token_expire_seconds,
            secure=request.app.state.settings.secure_cookies,
        )
    return resp


@router.post("/auth/sign-out", response_model=ApiResponse)
async def sign_out(request: Request) -> JSONResponse:
    """Clear the session cookie. The token itself is not revoked server-side."""
    resp = respond(_flows(request).sign_out())
    resp.delete_cookie(SESSION_COOKIE)
    return resp


@router.post("/auth/forgot-password", response_model=ApiResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> JSONResponse:
    """Email a password reset link."""
    return respond(_flows(request).forgot_password(body.email))


@router.post("/auth/reset-password/{token}", response_model=ApiResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> JSONResponse:
    """Set a new password using the token from the reset email. Also unlocks the account."""
    return respond(_flows(request).reset_password(token, body.password))


@router.get("/auth/verify-email/{token}", response_model=ApiResponse)
def verify_email(request: Request, token: str) -> JSONResponse:
    """Mark the account behind the token as verified."""
    return respond(_flows(request).verify_email(token))


@router.get("/auth/me", response_model=ApiResponse)
async def me(current_account: Account = Depends(get_current_account)) -> ApiResponse:
    """Return the account the session token belongs to."""
    return ApiResponse(
        success=True,
        message="Current account",
        data={"account": AccountResponse.from_account(current_account).model_dump()},
    )
