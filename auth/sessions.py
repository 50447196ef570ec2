"""
auth/sessions.py -- Session lifecycle manager.

Composes the validator, password hasher, token issuer and user store into the
account state machine:

    Anonymous --register--> Registered --login--> LoggedIn(refresh_token)
    LoggedIn --refresh--> LoggedIn(new refresh_token)
    LoggedIn --logout / change_password--> LoggedOut (refresh_token = NULL)
    LoggedOut --login--> LoggedIn

Invariants:
  - A user has at most one usable refresh token: the one stored on the record.
    Login overwrites it, refresh swaps it (CAS), logout and password change
    clear it.
  - Tokens are minted before anything is written, so a failure part-way
    through login or refresh never leaves a half-issued session behind.
  - Every user value returned is a PublicUser; password hashes and refresh
    tokens never leave this module.

Every method either returns its result or raises one auth.errors.AccountError
subclass. Methods are synchronous; the API layer runs them in FastAPI's
threadpool, one request per call, with no threads or timers owned here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.errors import AuthError, ConflictError, ErrorReason, StorageError, ValidationError
from auth.models import AuthenticatedIdentity, LoginResult, PublicUser, TokenPair, UserIdentity
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer, TokenPurpose
from auth.validation import (
    PasswordPolicy,
    validate_email_and_password_format,
    validate_email_format,
    validate_password,
    validate_required_fields,
    validate_required_login_fields,
)

logger = logging.getLogger("accountgate.auth")


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


@dataclass(frozen=True)
class Registration:
    """Raw registration fields exactly as the transport layer parsed them."""

    username: str | None
    email: str | None
    fullname: str | None
    password: str | None
    avatar: str | None = None
    cover_image: str | None = None


class SessionManager:
    def __init__(
        self,
        store: UserStore,
        issuer: TokenIssuer,
        hasher: PasswordHasher,
        policy: PasswordPolicy,
        avatar_required: bool = False,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._hasher = hasher
        self._policy = policy
        self._avatar_required = avatar_required

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, form: Registration) -> PublicUser:
        """Create an account and return it sanitized.

        Raises ValidationError, ConflictError, or StorageError.
        """
        required = {
            "username": form.username,
            "email": form.email,
            "fullname": form.fullname,
            "password": form.password,
        }
        if self._avatar_required:
            required["avatar"] = form.avatar
        validate_required_fields(required)
        validate_email_format(form.email)
        validate_password(form.password, self._policy)

        username = _normalize(form.username)
        email = _normalize(form.email)
        if self._store.exists(username, email):
            logger.info("Registration rejected: username or email already taken")
            raise ConflictError()

        user = UserIdentity(
            username=username,
            email=email,
            fullname=form.fullname.strip(),
            hashed_password=self._hasher.hash(form.password),
            avatar=(form.avatar or None),
            cover_image=(form.cover_image or None),
        )
        user_id = self._store.create_user(user)
        created = self._store.get_by_id(user_id)
        if created is None:
            raise StorageError(f"user {user_id} missing after insert")
        logger.info("Registered user id=%s", user_id)
        return created.sanitized()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username: str | None, email: str | None, password: str | None) -> LoginResult:
        """Verify credentials and start a new session.

        Any previously issued refresh token for this user stops working the
        moment the new one is stored.
        """
        validate_required_login_fields(username, email, password)
        validate_email_and_password_format(email, password)

        user = self._store.find_user(username=_normalize(username), email=_normalize(email))
        if user is None:
            self._hasher.verify_dummy(password)
            logger.warning("Login failed: unknown user")
            raise AuthError(ErrorReason.USER_NOT_FOUND)
        if not self._hasher.verify(password, user.hashed_password):
            logger.warning("Login failed: bad password for user id=%s", user.id)
            raise AuthError(ErrorReason.BAD_PASSWORD)

        tokens = self._issuer.issue_pair(user.id)
        if not self._store.set_refresh_token(user.id, tokens.refresh_token):
            raise AuthError(ErrorReason.USER_NOT_FOUND, "user deleted during login")
        logger.info("User id=%s logged in", user.id)
        return LoginResult(user=user.sanitized(), tokens=tokens)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Trade a refresh token for a new access/refresh pair.

        The presented token is single-use: it must equal the stored token and
        is replaced atomically by the new one.
        """
        if not refresh_token:
            raise ValidationError(ErrorReason.MISSING_FIELD, "Refresh token is required.", fields=["refresh_token"])
        claims = self._issuer.verify(refresh_token, TokenPurpose.REFRESH)

        user = self._store.get_by_id(claims.user_id)
        if user is None:
            logger.warning("Refresh failed: user id=%s no longer exists", claims.user_id)
            raise AuthError(ErrorReason.USER_NOT_FOUND)
        if user.refresh_token != refresh_token:
            logger.warning("Refresh failed: stale refresh token for user id=%s", user.id)
            raise AuthError(ErrorReason.SESSION_REVOKED)

        tokens = self._issuer.issue_pair(user.id)
        if not self._store.rotate_refresh_token(user.id, refresh_token, tokens.refresh_token):
            logger.warning("Refresh failed: concurrent rotation for user id=%s", user.id)
            raise AuthError(ErrorReason.SESSION_REVOKED)
        logger.info("Rotated refresh token for user id=%s", user.id)
        return tokens

    # ------------------------------------------------------------------
    # Authenticated operations
    # ------------------------------------------------------------------

    def logout(self, identity: AuthenticatedIdentity) -> None:
        """Clear the caller's session. Logging out twice is not an error."""
        self._store.set_refresh_token(identity.user_id, None)
        logger.info("User id=%s logged out", identity.user_id)

    def change_password(
        self,
        identity: AuthenticatedIdentity,
        old_password: str | None,
        new_password: str | None,
    ) -> None:
        """Replace the caller's password and end their active session."""
        validate_required_fields({"old_password": old_password, "new_password": new_password})
        validate_password(new_password, self._policy)

        stored_hash = self._store.get_password_hash(identity.user_id)
        if stored_hash is None:
            self._hasher.verify_dummy(old_password)
            raise AuthError(ErrorReason.USER_NOT_FOUND)
        if not self._hasher.verify(old_password, stored_hash):
            logger.warning("Password change failed: bad password for user id=%s", identity.user_id)
            raise AuthError(ErrorReason.BAD_PASSWORD)

        self._store.set_password_hash(identity.user_id, self._hasher.hash(new_password), revoke_session=True)
        logger.info("Password changed for user id=%s; active session revoked", identity.user_id)

    def get_current_user(self, identity: AuthenticatedIdentity) -> PublicUser:
        user = self._store.get_by_id(identity.user_id)
        if user is None:
            raise AuthError(ErrorReason.USER_NOT_FOUND)
        return user.sanitized()

    def list_users(self) -> list[PublicUser]:
        return [u.sanitized() for u in self._store.list_users()]
