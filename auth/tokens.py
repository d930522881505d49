"""
auth/tokens.py -- Stateless JWT issue and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, username (sub), role,
       iat and exp. Verification returns None on any failure -- the gate in
       auth/dependencies.py turns that into a 401.

  Stateless: verify() is a pure function of the token and the signing key.
       There is no database round-trip and therefore no revocation; a token
       is valid until its exp claim elapses.

  Key state: the signing key lives in a frozen SigningConfig built once at
       startup and handed to TokenService. Nothing here reads settings at
       import time.

Layer rule: imports only from auth/ and core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.models import Principal
from core.config import Settings

logger = logging.getLogger("folio.auth")


@dataclass(frozen=True)
class SigningConfig:
    """Process-wide token parameters. Immutable once constructed."""

    secret_key: str
    expire_seconds: int
    algorithm: str = "HS256"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningConfig":
        return cls(secret_key=settings.secret_key, expire_seconds=settings.token_expire_seconds)


class TokenService:
    """Mints and verifies bearer tokens for administrators."""

    def __init__(self, config: SigningConfig) -> None:
        self._config = config

    @property
    def expires_in(self) -> int:
        return self._config.expire_seconds

    def issue(self, principal: Principal, issued_at: datetime | None = None) -> str:
        """Encode a signed JWT for principal.

        issued_at defaults to now; tests pass a past value to mint a token
        that is already expired.
        """
        iat = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": principal.username,
            "user_id": principal.user_id,
            "role": principal.role,
            "iat": iat,
            "exp": iat + timedelta(seconds=self._config.expire_seconds),
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    def verify(self, token: str) -> Principal | None:
        """Decode and verify a JWT. Returns the Principal or None on any failure."""
        if not _has_canonical_signature(token):
            logger.debug("Rejected token: non-canonical signature encoding")
            return None
        try:
            payload = jwt.decode(token, self._config.secret_key, algorithms=[self._config.algorithm])
        except ExpiredSignatureError:
            logger.debug("Rejected token: expired")
            return None
        except JWTError:
            logger.debug("Rejected token: malformed or bad signature")
            return None
        user_id = payload.get("user_id")
        role = payload.get("role")
        username = payload.get("sub")
        if not isinstance(user_id, int) or not isinstance(role, str) or not isinstance(username, str):
            logger.debug("Rejected token: missing claims")
            return None
        return Principal(user_id=user_id, username=username, role=role)


def _has_canonical_signature(token: str) -> bool:
    """Return True when the signature segment is canonical base64url.

    The last character of an HS256 signature carries two unused bits, so
    several spellings decode to the same bytes. Only the one the encoder
    produces is accepted; any other alteration of the token fails here.
    """
    parts = token.split(".")
    if len(parts) != 3 or not parts[2]:
        return False
    try:
        sig = parts[2].encode("ascii")
        return base64url_encode(base64url_decode(sig)) == sig
    except (ValueError, TypeError):
        return False
