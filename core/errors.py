"""
core/errors.py -- Error taxonomy shared by every layer.

Domain code raises these; api/main.py owns the single exception handler that
turns them into the JSON error envelope. Route handlers never build error
responses by hand.

  ValidationError   400  bad input shape, size, or type
  Unauthenticated   401  missing or invalid bearer token
  Forbidden         403  authenticated but not allowed
  NotFound          404  unknown id
  ConflictError     409  unique constraint (username/email already taken)
  StorageError      500  asset write/delete failure
  PersistenceError  500  database failure

Layer rule: core/ is the kernel and imports nothing from the project.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class. `message` is safe to show to clients for 4xx errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, code: str | None = None, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.errors = errors


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class StorageError(AppError):
    code = "storage_error"


class PersistenceError(AppError):
    code = "persistence_error"
