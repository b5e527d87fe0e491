"""
API request and response models for AccessDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Input-shape validation (email format, password length, trimming) happens
here, at the boundary. The service layer assumes well-formed strings.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import AccountProfile, Role, TokenPair
from auth.passwords import PASSWORD_MAX_BYTES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain part.
# Deliverability is not our concern; uniqueness is enforced by the store.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Character cap. bcrypt's limit is in bytes, and 64 non-ASCII characters can
# exceed it, so _check_password_bytes() enforces PASSWORD_MAX_BYTES as well.
PASSWORD_MAX_LENGTH = 64


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    The password is not stripped: surrounding whitespace is part of the secret.
    """

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh.

    Accepts both "refresh_token" and the camelCase "refreshToken" used by
    JavaScript clients.
    """

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken", min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ProfileResponse(BaseModel):
    """Safe account projection. Never includes password or refresh hashes."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: Role
    created_at: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: AccountProfile) -> "ProfileResponse":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            role=profile.role,
            created_at=profile.created_at,
        )


class TokenResponse(BaseModel):
    """Access + refresh pair returned by login and refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class LoginResponse(TokenResponse):
    message: str = "Login successful"
    user: ProfileResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AccountPageResponse(BaseModel):
    """Pagination envelope for GET /api/v1/users.

    Field names follow the camelCase wire format produced by
    core.query.Page.to_dict(), which is also what the cache stores.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    data: list[ProfileResponse]
    total: int
    current_page: int = Field(alias="currentPage")
    total_pages: int = Field(alias="totalPages")
    per_page: int = Field(alias="perPage")


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
    """Response for GET /api/v1/health.

    components.cache is "ok" or "degraded" -- a degraded cache never makes the
    service unhealthy because every read path works without it.
    """

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
