"""
auth/credentials.py -- Password hashing and the administrator credential store.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Its cost factor makes
       brute-force expensive, and every hash carries its own random salt.

  Timing: _DUMMY_HASH lets verify() run bcrypt even for an unknown email, so
       response time does not reveal whether an account exists.

  Secrecy: nothing in this module logs a plaintext attempt or a stored hash.

Layer rule: imports only from auth/ and core/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.models import Admin
from auth.store import AdminStore
from core.errors import NotFound, ValidationError

logger = logging.getLogger("folio.auth")

BCRYPT_MAX_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects input over 72 bytes; CredentialStore.check_policy() runs
    before every call and turns that into a ValidationError.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("folio_timing_dummy")


class CredentialStore:
    """Verifies and replaces administrator passwords.

    The identity is the admin's email address.
    """

    def __init__(self, admins: AdminStore, min_length: int = 6) -> None:
        self._admins = admins
        self.min_length = min_length

    def check_policy(self, plain: str) -> None:
        """Raise ValidationError if the password is too short or too long for bcrypt.

        bcrypt refuses input over 72 bytes, so the upper bound is counted in
        UTF-8 bytes, not characters.
        """
        if len(plain) < self.min_length:
            raise ValidationError(
                f"Password must be at least {self.min_length} characters long.",
                code="weak_password",
            )
        if len(plain.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValidationError(
                f"Password must be at most {BCRYPT_MAX_BYTES} bytes long.",
                code="weak_password",
            )

    def authenticate(self, identity: str, attempt: str) -> Admin | None:
        """Return the admin when the attempt matches, None on any failure.

        Always runs bcrypt whether or not the admin exists:
        - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
        - Wrong password: bcrypt runs against the real hash (same cost)
        """
        admin = self._admins.get_by_email(identity)
        if admin is None or not admin.hashed_password:
            verify_password(attempt, _DUMMY_HASH)
            return None
        if not verify_password(attempt, admin.hashed_password):
            return None
        if not admin.is_active:
            return None
        return admin

    def verify(self, identity: str, attempt: str) -> bool:
        return self.authenticate(identity, attempt) is not None

    def set_credential(self, identity: str, new_plain: str) -> None:
        """Replace the stored hash for identity.

        Raises ValidationError when the password fails the length policy and
        NotFound when no admin has that email.
        """
        self.check_policy(new_plain)
        admin = self._admins.get_by_email(identity)
        if admin is None:
            raise NotFound("Admin not found.")
        self._admins.update_admin(admin.id, hashed_password=hash_password(new_plain))
        logger.info("Password changed for admin id=%s", admin.id)
