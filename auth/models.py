"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work.

Layer rule: no imports from api/, projects/, or contacts/.
"""

from __future__ import annotations

from dataclasses import dataclass

ADMIN_ROLE = "admin"


@dataclass
class Admin:
    """A persisted administrator account.

    email is the login identity and is stored lower-cased. username is the
    display handle carried in tokens as the JWT subject.
    """

    username: str
    email: str
    role: str = ADMIN_ROLE
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    last_login: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Principal:
    """Identity established from a verified token for the current request.

    Never loaded from the database -- every field comes from token claims.
    """

    user_id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
