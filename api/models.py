"""
API request and response models for SessionWarden REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import CredentialPair, Principal

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Shape check only; ownership of the address is not verified here.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Whitespace is not stripped here because it would also alter the password;
    the core trims and lower-cases username and email itself.
    """

    username: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    fullname: str = Field(min_length=1, max_length=255)
    # 72 is bcrypt's byte limit; multi-byte input is re-checked in the core.
    password: str = Field(min_length=1, max_length=72)
    avatar: Optional[str] = None
    cover_image: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. identifier is a username or email."""

    identifier: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh.

    refresh_token may be omitted when the client sends the refresh_token cookie.
    """

    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password."""

    old_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a principal. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    fullname: str
    avatar: Optional[str] = None
    cover_image: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_principal(cls, principal: Principal) -> "UserResponse":
        return cls(
            id=principal.id,
            username=principal.username,
            email=principal.email,
            fullname=principal.fullname,
            avatar=principal.avatar,
            cover_image=principal.cover_image,
            created_at=principal.created_at,
        )


class TokenResponse(BaseModel):
    """Response for login and refresh: the new credential pair."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_expires_in: int
    user: Optional[UserResponse] = None

    @classmethod
    def from_pair(cls, pair: CredentialPair, principal: Optional[Principal] = None) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.access_expires_in,
            refresh_expires_in=pair.refresh_expires_in,
            user=UserResponse.from_principal(principal) if principal else None,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

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


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = {}
