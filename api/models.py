"""
API request and response models for the authentication endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. The responder maps between the two.

Request bodies accept both the snake_case field names and the camelCase names
browser clients send (confirmPassword), via validation aliases.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from auth.models import Account

# bcrypt only looks at the first 72 bytes of a password.
_PASSWORD_MAX = 72


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-up.

    confirm_password is optional at the schema level so a missing value is
    reported by the flow with its own message instead of a generic
    validation error.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    confirm_password: Optional[str] = Field(
        default=None,
        max_length=_PASSWORD_MAX,
        validation_alias=AliasChoices("confirm_password", "confirmPassword"),
    )


class SignInRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-in."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    # No upper bound: an overlong wrong password must still count as a failed attempt.
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/forgot-password."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=255)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password/{token}."""

    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public view of an Account. The password hash is never serialized."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    is_verified: bool
    is_locked: bool
    login_attempts: int
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            is_verified=account.is_verified,
            is_locked=account.is_locked,
            login_attempts=account.login_attempts,
            created_at=account.created_at or "",
        )


class ApiResponse(BaseModel):
    """Envelope for every auth endpoint response, success or failure."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    data: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
