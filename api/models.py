"""
API request and response models for the account service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format: JSON keys are camelCase (fullName, birthDate, accessToken).
Python attributes stay snake_case; the alias generator bridges the two and
populate_by_name lets tests and internal callers use either form.
"""

from datetime import date
from typing import Annotated, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from auth.models import Role, UserProfile, UserStatus

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_email(value: str) -> str:
    """Reject malformed addresses but keep the submitted spelling.

    Emails are matched exactly as stored, so the normalized form that
    email-validator computes is not used.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from exc
    return value


EmailAddress = Annotated[str, AfterValidator(_check_email)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    bcrypt only looks at the first 72 bytes of a password, so max_length
    keeps inputs well below the truncation threshold.
    """

    model_config = _CAMEL

    full_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    birth_date: date
    email: EmailAddress
    password: str = Field(min_length=6, max_length=64)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailAddress
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public projection of a user. Never carries the password hash or refresh token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    full_name: str
    birth_date: date
    email: str
    role: Role
    status: UserStatus
    created_at: str

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserResponse":
        return cls(
            id=profile.id,
            full_name=profile.full_name,
            birth_date=profile.birth_date,
            email=profile.email,
            role=profile.role,
            status=profile.status,
            created_at=profile.created_at,
        )


class RegisterResponse(BaseModel):
    model_config = _CAMEL

    message: str = "Registration successful."
    user: UserResponse
    access_token: str


class LoginResponse(BaseModel):
    model_config = _CAMEL

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"  # noqa: S105 -- OAuth token type, not a password
    expires_in: int


class RefreshResponse(BaseModel):
    model_config = _CAMEL

    access_token: str
    token_type: str = "bearer"  # noqa: S105
    expires_in: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class BlockResponse(BaseModel):
    """Response for PATCH /api/v1/users/{id}/block."""

    model_config = ConfigDict(frozen=True)

    id: int
    status: UserStatus


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


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
