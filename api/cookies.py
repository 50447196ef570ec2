"""
api/cookies.py -- Session cookie delivery for the browser client.

Both tokens travel as httpOnly cookies:
  httponly=True: JS cannot read the cookie (XSS mitigation).
  samesite:      "none" by default so a front-end on another origin can send
                 them; browsers require secure=True alongside samesite=none.
  secure:        only sent over HTTPS when SECURE_COOKIES=true (the default).
  max_age:       matches each token's own lifetime so cookie and token expire together.
"""

from __future__ import annotations

from fastapi import Response

from auth.dependencies import ACCESS_COOKIE, REFRESH_COOKIE
from auth.models import TokenPair
from core.config import Settings


def set_session_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    common = {
        "httponly": True,
        "secure": settings.secure_cookies,
        "samesite": settings.cookie_samesite,
        "path": "/",
    }
    response.set_cookie(
        ACCESS_COOKIE,
        value=tokens.access_token,
        max_age=settings.access_token_expire_seconds,
        **common,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=tokens.refresh_token,
        max_age=settings.refresh_token_expire_seconds,
        **common,
    )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.secure_cookies,
            samesite=settings.cookie_samesite,
        )
