"""
API request and response models for AuthKit REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Account

# One "@", something on both sides, a dot in the domain.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup.

    Only length limits are enforced here. The configurable password policy is
    applied by AuthService so its messages stay consistent across callers.
    Identity fields are stripped; the password is kept byte-exact so it hashes
    the same way at signup and at login.
    """

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    name: str = Field(min_length=2, max_length=45)
    surname: str = Field(min_length=2, max_length=45)
    password: str = Field(min_length=2, max_length=255)

    @field_validator("email", "name", "surname", mode="before")
    @classmethod
    def strip_identity(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=2, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    surname: str
    email_verified: bool
    created_at: Optional[str] = None
    two_factor_enabled: bool = False

    @classmethod
    def from_account(cls, account: Account) -> "UserResponse":
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            surname=account.surname,
            email_verified=account.email_verified,
            created_at=account.created_at,
        )


class AuthResponse(BaseModel):
    """Returned by login, refresh and /me."""

    success: bool = True
    user: UserResponse


class SignupResponse(BaseModel):
    success: bool = True
    user_id: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class StatusResponse(BaseModel):
    """Response for GET /status."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    service: str
    components: dict[str, str] = Field(default_factory=dict)
