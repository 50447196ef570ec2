"""
auth/errors.py -- Error taxonomy for the credential and session lifecycle.

Every lifecycle operation either returns its success value or raises exactly
one AccountError subclass. The subclass is the outward error kind; `reason`
is the internal detail used for logging. Route code never inspects `reason`
to build a response -- it renders `code` and `public_message` only, so the
response for "unknown user" and "wrong password" is byte-identical.

Layer rule: stdlib only. No imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class ErrorReason(str, Enum):
    MISSING_FIELD = "missing_field"
    MALFORMED_EMAIL = "malformed_email"
    WEAK_PASSWORD = "weak_password"
    USER_EXISTS = "user_exists"
    USER_NOT_FOUND = "user_not_found"
    BAD_PASSWORD = "bad_password"
    SESSION_REVOKED = "session_revoked"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"
    WRONG_PURPOSE = "wrong_purpose"
    STORAGE_UNAVAILABLE = "storage_unavailable"


_INVALID_CREDENTIALS = "Invalid credentials."
_SESSION_EXPIRED = "Session expired, please log in again."


class AccountError(Exception):
    """Base class for every error a lifecycle operation can raise."""

    status_code: int = 500
    code: str = "account_error"

    def __init__(self, reason: ErrorReason, public_message: str, detail: str | None = None) -> None:
        super().__init__(detail or public_message)
        self.reason = reason
        self.public_message = public_message
        self.detail = detail


class ValidationError(AccountError):
    """Malformed or missing input. Always recoverable by the caller."""

    status_code = 400
    code = "validation_error"

    def __init__(self, reason: ErrorReason, public_message: str, fields: list[str] | None = None) -> None:
        super().__init__(reason, public_message)
        self.fields = fields or []


class ConflictError(AccountError):
    status_code = 409
    code = "conflict"

    def __init__(self) -> None:
        super().__init__(ErrorReason.USER_EXISTS, "A user with that username or email already exists.")


class AuthError(AccountError):
    """Bad credentials, unknown user, or a revoked session.

    The public message is the same for every reason so callers cannot tell
    which factor failed.
    """

    status_code = 401
    code = "invalid_credentials"

    def __init__(self, reason: ErrorReason, detail: str | None = None) -> None:
        message = _SESSION_EXPIRED if reason is ErrorReason.SESSION_REVOKED else _INVALID_CREDENTIALS
        super().__init__(reason, message, detail)


class TokenError(AccountError):
    status_code = 401
    code = "invalid_token"

    def __init__(self, reason: ErrorReason, detail: str | None = None) -> None:
        super().__init__(reason, _SESSION_EXPIRED, detail)


class StorageError(AccountError):
    """Persistence layer failure. Fatal for the request, never retried here."""

    status_code = 500
    code = "storage_error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(ErrorReason.STORAGE_UNAVAILABLE, "An unexpected error occurred.", detail)
