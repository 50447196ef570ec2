"""
API request and response models for AccountGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are all optional strings: presence, emptiness, and format are
judged by auth/validation.py so that every input problem comes back as the
same ValidationError envelope.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from auth.models import PublicUser

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/register.

    avatar / cover_image are URLs already produced by the asset storage
    service. Raw image bytes never reach this API.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    fullname: Optional[str] = None
    password: Optional[str] = None
    avatar: Optional[str] = None
    cover_image: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login. Username or email, plus password."""

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(BaseModel):
    """Optional body for POST /api/v1/users/refresh-token when no cookie is sent."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Sanitized user record. Has no field for the password hash or refresh token."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    fullname: str
    avatar: Optional[str] = None
    cover_image: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            fullname=user.fullname,
            avatar=user.avatar,
            cover_image=user.cover_image,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str


class LoginPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse
    access_token: str
    refresh_token: str


class ApiResponse(BaseModel):
    """Success envelope shared by every endpoint."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    payload: Any = None
    message: str
    success: bool = True


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    status_code: int
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
