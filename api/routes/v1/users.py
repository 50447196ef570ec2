"""
api/routes/v1/users.py -- Account and session REST endpoints.

Routes:
  POST /api/v1/users/register         -- create account; 201 sanitized user
  POST /api/v1/users/login            -- password login; sets session cookies
  POST /api/v1/users/refresh-token    -- rotate refresh token; sets session cookies
  POST /api/v1/users/logout           -- clear session + cookies (requires auth)
  POST /api/v1/users/change-password  -- new password, ends session (requires auth)
  GET  /api/v1/users/current          -- current user info (requires auth)
  GET  /api/v1/users                  -- list all users (requires auth)

Every handler is a plain `def`: FastAPI runs it in its threadpool, so each
request is an independent unit of work against the store.

Errors are not caught here. SessionManager raises auth.errors.AccountError
subclasses and api/main.py renders them into the shared error envelope.

Security:
  Cache-Control: no-store on every response that carries tokens.
  Login and refresh failures share one public message per error kind.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from api.cookies import clear_session_cookies, set_session_cookies
from api.models import (
    ApiResponse,
    ChangePasswordRequest,
    LoginPayload,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
    UserResponse,
)
from auth.dependencies import REFRESH_COOKIE, get_identity
from auth.models import AuthenticatedIdentity
from auth.sessions import Registration, SessionManager
from core.config import get_settings

# Auth policy:
# - POST /users/register, /users/login, /users/refresh-token: public
# - everything else: requires a valid access token (get_identity)
router = APIRouter()


def _manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def _envelope(status_code: int, payload, message: str) -> JSONResponse:
    body = ApiResponse(status_code=status_code, payload=payload, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account. The response never includes password or session fields."""
    user = _manager(request).register(
        Registration(
            username=body.username,
            email=body.email,
            fullname=body.fullname,
            password=body.password,
            avatar=body.avatar,
            cover_image=body.cover_image,
        )
    )
    return _envelope(201, UserResponse.from_public(user).model_dump(), "User registered successfully.")


@router.post("/users/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email and password; set both session cookies."""
    result = _manager(request).login(body.username, body.email, body.password)
    payload = LoginPayload(
        user=UserResponse.from_public(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )
    resp = _envelope(200, payload.model_dump(), "User logged in successfully.")
    set_session_cookies(resp, result.tokens, get_settings())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/users/refresh-token")
def refresh_token(request: Request, body: Optional[RefreshRequest] = Body(default=None)) -> JSONResponse:
    """Exchange the current refresh token for a new pair.

    The token is read from the refreshToken cookie first, then from the body.
    """
    presented = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    tokens = _manager(request).refresh(presented)
    payload = TokenPairResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    resp = _envelope(200, payload.model_dump(), "Access token refreshed.")
    set_session_cookies(resp, tokens, get_settings())
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/users/logout")
def logout(request: Request, identity: AuthenticatedIdentity = Depends(get_identity)) -> JSONResponse:
    """End the caller's session and clear both cookies."""
    _manager(request).logout(identity)
    resp = _envelope(200, {}, "User logged out successfully.")
    clear_session_cookies(resp, get_settings())
    return resp


@router.post("/users/change-password")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> JSONResponse:
    """Change the caller's password. The active refresh token stops working."""
    _manager(request).change_password(identity, body.old_password, body.new_password)
    resp = _envelope(200, {}, "Password updated successfully.")
    clear_session_cookies(resp, get_settings())
    return resp


@router.get("/users/current")
def current_user(request: Request, identity: AuthenticatedIdentity = Depends(get_identity)) -> JSONResponse:
    user = _manager(request).get_current_user(identity)
    return _envelope(200, UserResponse.from_public(user).model_dump(), f"Welcome {user.fullname}.")


@router.get("/users")
def list_users(request: Request, identity: AuthenticatedIdentity = Depends(get_identity)) -> JSONResponse:
    """List every account, sanitized."""
    users = _manager(request).list_users()
    return _envelope(
        200,
        [UserResponse.from_public(u).model_dump() for u in users],
        "All users fetched successfully.",
    )
