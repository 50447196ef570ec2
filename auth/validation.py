"""
auth/validation.py -- Stateless checks on raw credential input.

Each check either returns None or raises auth.errors.ValidationError. No
check touches storage, and none logs the values it inspects.

The password policy is configuration, not code: PasswordPolicy is built from
Settings at startup (see PasswordPolicy.from_settings) and passed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from auth.errors import ErrorReason, ValidationError

if TYPE_CHECKING:
    from core.config import Settings

# Local part, single @, dotted domain with a 2+ letter TLD. Deliberately not
# RFC 5322 complete -- it rejects the obvious garbage and nothing else.
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9\-]+(\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,}$")

_SPECIAL_CHARS = re.compile(r"[^A-Za-z0-9]")

# bcrypt only looks at the first 72 bytes; longer inputs are refused rather
# than silently truncated.
_BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 8
    require_uppercase: bool = False
    require_lowercase: bool = False
    require_digit: bool = False
    require_special: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> PasswordPolicy:
        return cls(
            min_length=settings.password_min_length,
            require_uppercase=settings.password_require_uppercase,
            require_lowercase=settings.password_require_lowercase,
            require_digit=settings.password_require_digit,
            require_special=settings.password_require_special,
        )


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate_required_fields(fields: dict[str, str | None]) -> None:
    """Raise MISSING_FIELD naming every empty or absent field."""
    missing = [name for name, value in fields.items() if _is_blank(value)]
    if missing:
        raise ValidationError(
            ErrorReason.MISSING_FIELD,
            f"Required fields are missing: {', '.join(missing)}.",
            fields=missing,
        )


def validate_email_format(email: str) -> None:
    if not EMAIL_PATTERN.match(email.strip()):
        raise ValidationError(ErrorReason.MALFORMED_EMAIL, "Email address is not valid.", fields=["email"])


def validate_password(password: str, policy: PasswordPolicy) -> None:
    """Check a new password against the configured policy.

    All unmet rules are reported together so the caller can fix them in one go.
    """
    problems: list[str] = []
    if len(password) < policy.min_length:
        problems.append(f"at least {policy.min_length} characters")
    if len(password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        problems.append(f"at most {_BCRYPT_MAX_BYTES} bytes")
    if policy.require_uppercase and not any(c.isupper() for c in password):
        problems.append("an uppercase letter")
    if policy.require_lowercase and not any(c.islower() for c in password):
        problems.append("a lowercase letter")
    if policy.require_digit and not any(c.isdigit() for c in password):
        problems.append("a digit")
    if policy.require_special and not _SPECIAL_CHARS.search(password):
        problems.append("a special character")
    if problems:
        raise ValidationError(
            ErrorReason.WEAK_PASSWORD,
            f"Password must contain {', '.join(problems)}.",
            fields=["password"],
        )


def validate_required_login_fields(username: str | None, email: str | None, password: str | None) -> None:
    """Login needs a password plus at least one of username or email."""
    if _is_blank(username) and _is_blank(email):
        raise ValidationError(
            ErrorReason.MISSING_FIELD,
            "Username or email is required.",
            fields=["username", "email"],
        )
    validate_required_fields({"password": password})


def validate_email_and_password_format(email: str | None, password: str) -> None:
    """Format checks for login.

    The strength policy is not applied here: a wrong password must surface
    as an AuthError, never as a policy violation.
    """
    if not _is_blank(email):
        validate_email_format(email)
    if len(password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValidationError(ErrorReason.WEAK_PASSWORD, "Password is too long.", fields=["password"])
