"""
auth/tokens.py -- Signed access and refresh tokens (python-jose, HS256).

Security design decisions:
  Two purposes, two keys: access tokens are signed with TokenConfig.access_secret,
       refresh tokens with TokenConfig.refresh_secret, and each carries a "typ"
       claim naming its purpose. verify() checks the claim first (WrongPurpose),
       then the signature under the key for the expected purpose (BadSignature),
       then expiry (Expired). An access token can never be replayed as a
       refresh token or the other way round.

  Expiry is exclusive: a token is rejected at exp and after. python-jose's own
       exp check accepts the boundary second, so it is disabled and the
       comparison is done here against the injected clock.

  jti: every token carries 64 random bits so two tokens minted for the same
       user within the same second are still distinct strings. Rotation relies
       on the new refresh token never equalling the one it replaces.

  Access tokens are stateless and never persisted. Refresh tokens are only
       half-validated here; the session manager also compares them with the
       value stored on the user record.

Layer rule: no imports from api/. Settings are read once by the caller and
passed in as an immutable TokenConfig.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import ErrorReason, TokenError
from auth.models import TokenPair

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"


class TokenPurpose(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenConfig:
    """Process-wide signing configuration. Read-only after startup."""

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            access_secret=settings.secret_key,
            refresh_secret=settings.refresh_secret_key,
            access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
        )


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    purpose: TokenPurpose
    issued_at: datetime
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mint and verify purpose-bound JWTs.

    Usage:
        issuer = TokenIssuer(TokenConfig.from_settings(get_settings()))
        pair = issuer.issue_pair(user_id)
        claims = issuer.verify(pair.refresh_token, TokenPurpose.REFRESH)
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        self._config = config
        self._clock = clock

    def _secret(self, purpose: TokenPurpose) -> str:
        return self._config.access_secret if purpose is TokenPurpose.ACCESS else self._config.refresh_secret

    def _ttl(self, purpose: TokenPurpose) -> timedelta:
        return self._config.access_ttl if purpose is TokenPurpose.ACCESS else self._config.refresh_ttl

    def _issue(self, user_id: int, purpose: TokenPurpose) -> str:
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "typ": purpose.value,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl(purpose)).timestamp()),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret(purpose), algorithm=_ALGORITHM)

    def issue_access_token(self, user_id: int) -> str:
        return self._issue(user_id, TokenPurpose.ACCESS)

    def issue_refresh_token(self, user_id: int) -> str:
        return self._issue(user_id, TokenPurpose.REFRESH)

    def issue_pair(self, user_id: int) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user_id),
            refresh_token=self.issue_refresh_token(user_id),
        )

    def verify(self, token: str, expected_purpose: TokenPurpose) -> TokenClaims:
        """Decode a token minted for expected_purpose.

        Raises TokenError(WRONG_PURPOSE | BAD_SIGNATURE | EXPIRED). A token
        that cannot be parsed at all is reported as BAD_SIGNATURE.
        """
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenError(ErrorReason.BAD_SIGNATURE, "malformed token") from exc
        if unverified.get("typ") != expected_purpose.value:
            raise TokenError(ErrorReason.WRONG_PURPOSE, f"expected a {expected_purpose.value} token")

        try:
            payload = jwt.decode(
                token,
                self._secret(expected_purpose),
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenError(ErrorReason.BAD_SIGNATURE, str(exc)) from exc

        try:
            user_id = int(payload["sub"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenError(ErrorReason.BAD_SIGNATURE, "missing or invalid claims") from exc

        if self._clock() >= expires_at:
            raise TokenError(ErrorReason.EXPIRED, "token expired")
        return TokenClaims(user_id=user_id, purpose=expected_purpose, issued_at=issued_at, expires_at=expires_at)
