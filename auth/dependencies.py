"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

This is the token-verification step that sits in front of every operation
requiring a logged-in caller. It turns an access token into an explicit
AuthenticatedIdentity value; the session manager trusts that value and never
looks at the request itself.

Token sources are checked in priority order:
  1. "accessToken" cookie -- set by POST /users/login and /users/refresh-token.
  2. Authorization: Bearer <token> header -- API clients.

get_identity() raises TokenError on a missing or invalid token, which api/main.py renders as 401.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import ErrorReason, TokenError
from auth.models import AuthenticatedIdentity
from auth.tokens import TokenIssuer, TokenPurpose

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def extract_access_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def get_identity(request: Request) -> AuthenticatedIdentity:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: AuthenticatedIdentity = Depends(get_identity)): ...
    """
    token = extract_access_token(request)
    if not token:
        raise TokenError(ErrorReason.BAD_SIGNATURE, "no access token presented")
    issuer: TokenIssuer = request.app.state.token_issuer
    claims = issuer.verify(token, TokenPurpose.ACCESS)
    return AuthenticatedIdentity(user_id=claims.user_id)
