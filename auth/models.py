"""
auth/models.py -- Domain dataclasses for accounts and sessions.

Pattern: Data class (pure data container, almost no logic). Stores and the
session manager do the work.

Sanitization: UserIdentity carries the password hash and the current refresh
token and must never leave auth/. Every value handed to a caller is a
PublicUser produced by UserIdentity.sanitized(), which has no field for
either secret.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class UserIdentity:
    """A persisted account record.

    refresh_token holds the single active session for this user. A new login
    or refresh overwrites it; logout and password change set it to None.
    """

    username: str
    email: str
    fullname: str
    hashed_password: str
    id: int | None = None
    refresh_token: str | None = None
    avatar: str | None = None  # asset URL from the storage collaborator
    cover_image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def sanitized(self) -> PublicUser:
        return PublicUser(
            id=self.id,
            username=self.username,
            email=self.email,
            fullname=self.fullname,
            avatar=self.avatar,
            cover_image=self.cover_image,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class PublicUser:
    """The only user shape allowed out of the core."""

    id: int | None
    username: str
    email: str
    fullname: str
    avatar: str | None = None
    cover_image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """A caller whose access token has already been verified.

    Produced by auth.dependencies from a verified access token and passed
    explicitly into every operation that needs a logged-in caller.
    """

    user_id: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    user: PublicUser
    tokens: TokenPair
