"""
auth/dependencies.py -- The authorization gate and its FastAPI Depends() helpers.

authorize() is the gate itself: a plain function from the Authorization
header value to a typed outcome (Principal or AuthRejection). It does not
touch the request object, the database, or any global state.

get_current_principal() and require_admin() adapt the gate to FastAPI's
dependency injection. Routers opt in explicitly, either per route or with
APIRouter(dependencies=[Depends(require_admin)]). Public routes simply do
not declare the dependency -- the allow-list lives in the route modules.

The resolved Principal is the dependency's return value, so it is scoped to
the request that produced it.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from auth.models import Principal
from auth.tokens import TokenService
from core.errors import Forbidden, Unauthenticated

MISSING_TOKEN = "missing_token"
INVALID_TOKEN = "invalid_token"

_BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class AuthRejection:
    reason: str  # MISSING_TOKEN | INVALID_TOKEN


def extract_bearer(header_value: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' value, else None."""
    if not header_value or not header_value.lower().startswith(_BEARER_PREFIX):
        return None
    token = header_value[len(_BEARER_PREFIX) :].strip()
    return token or None


def authorize(header_value: str | None, tokens: TokenService) -> Principal | AuthRejection:
    """Resolve an Authorization header to a Principal or a rejection reason."""
    token = extract_bearer(header_value)
    if token is None:
        return AuthRejection(MISSING_TOKEN)
    principal = tokens.verify(token)
    if principal is None:
        return AuthRejection(INVALID_TOKEN)
    return principal


def get_current_principal(request: Request) -> Principal:
    """Require a valid bearer token. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    outcome = authorize(request.headers.get("Authorization"), request.app.state.tokens)
    if isinstance(outcome, AuthRejection):
        if outcome.reason == MISSING_TOKEN:
            raise Unauthenticated("Access denied. No token provided.", code=outcome.reason)
        raise Unauthenticated("Invalid or expired token.", code=outcome.reason)
    return outcome


def require_admin(request: Request) -> Principal:
    """Require the administrator role. 401 if unauthenticated, 403 if not admin."""
    principal = get_current_principal(request)
    if not principal.is_admin:
        raise Forbidden("Admin access required.")
    return principal
