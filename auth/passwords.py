"""
auth/passwords.py -- One-way password hashing with bcrypt.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. The 72-byte ceiling itself is enforced by
auth.validation before a password ever reaches hash().

Timing equalization: PasswordHasher.verify_dummy() runs a full bcrypt check
against a throwaway hash. The session manager calls it whenever a login names
an unknown user so "no such user" costs the same as "wrong password".

Plaintext passwords are never logged.
"""

from __future__ import annotations

import bcrypt


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed up front so the first unknown-user login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("accountgate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt digest of the plaintext password."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the digest.

        bcrypt.checkpw compares in constant time. A malformed digest or an
        over-long password counts as a mismatch.
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        self.verify(plain, self._dummy_hash)
