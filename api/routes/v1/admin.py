"""
api/routes/v1/admin.py -- Administrator registration, login and profile endpoints.

Routes:
  POST /api/admin/register          -- create an admin account (public, toggleable)
  POST /api/admin/login             -- email/password login; returns a bearer token
  GET  /api/admin/profile           -- current admin (requires admin)
  PUT  /api/admin/profile           -- change username/email (requires admin)
  PUT  /api/admin/change-password   -- verify current password, set new one (requires admin)
  GET  /api/admin/dashboard         -- project and contact statistics (requires admin)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  CredentialStore.authenticate() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on responses that carry a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import (
    AdminEnvelope,
    AdminResponse,
    AuthData,
    AuthResponse,
    ChangePasswordRequest,
    ContactStats,
    DashboardData,
    DashboardResponse,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    ProjectStats,
    RegisterRequest,
)
from auth.credentials import CredentialStore, hash_password
from auth.dependencies import require_admin
from auth.models import ADMIN_ROLE, Admin, Principal
from auth.store import AdminStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import ConflictError, Forbidden, NotFound, Unauthenticated, ValidationError

# Auth policy:
# - POST /admin/register:         public -- gated by Settings.self_registration_enabled
# - POST /admin/login:            public -- login endpoint must be unauthenticated
# - everything else:              requires admin (require_admin)
router = APIRouter()

# Read once at import: slowapi needs the limit string at decoration time.
_settings = get_settings()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/admin/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an administrator account and log it in.

    Disabled (403) when SELF_REGISTRATION_ENABLED=false; operators then
    provision accounts with `python main.py setup-admin`.
    """
    if not request.app.state.settings.self_registration_enabled:
        raise Forbidden("Registration is disabled.", code="registration_disabled")

    admins: AdminStore = request.app.state.admin_store
    credentials: CredentialStore = request.app.state.credentials
    credentials.check_policy(body.password)

    try:
        admin_id = admins.create_admin(
            Admin(username=body.username, email=body.email, hashed_password=hash_password(body.password))
        )
    except IntegrityError as exc:
        raise ConflictError("An admin with that username or email already exists.") from exc

    admin = _require_admin_record(admins, admin_id)
    return _auth_response(request, admin, "Admin registered successfully", status_code=201)


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/admin/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Wrong email and wrong password produce the same 401 so the response does
    not reveal which accounts exist.
    """
    credentials: CredentialStore = request.app.state.credentials
    admin = credentials.authenticate(body.email, body.password)
    if admin is None:
        raise Unauthenticated("Invalid credentials.", code="bad_credentials")

    request.app.state.admin_store.update_last_login(admin.id)
    return _auth_response(request, admin, "Login successful")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/admin/profile", response_model=AdminEnvelope)
def get_profile(request: Request, principal: Principal = Depends(require_admin)) -> AdminEnvelope:
    """Return the account behind the current token."""
    admin = _require_admin_record(request.app.state.admin_store, principal.user_id)
    return AdminEnvelope(data=AdminResponse.from_admin(admin))


@router.put("/admin/profile", response_model=AdminEnvelope)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    principal: Principal = Depends(require_admin),
) -> AdminEnvelope:
    """Change username and/or email. Tokens already issued keep the old username until they expire."""
    admins: AdminStore = request.app.state.admin_store
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("No fields to update.", code="no_changes")
    try:
        updated = admins.update_admin(principal.user_id, **updates)
    except IntegrityError as exc:
        raise ConflictError("That username or email is already in use.") from exc
    if not updated:
        raise NotFound("Admin not found.")
    admin = _require_admin_record(admins, principal.user_id)
    return AdminEnvelope(message="Profile updated successfully", data=AdminResponse.from_admin(admin))


@router.put("/admin/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    principal: Principal = Depends(require_admin),
) -> MessageResponse:
    """Replace the password after re-verifying the current one.

    A wrong current password is a 400, not a 401: the bearer token is
    valid, only the form input is wrong.
    """
    credentials: CredentialStore = request.app.state.credentials
    admin = _require_admin_record(request.app.state.admin_store, principal.user_id)
    if not credentials.verify(admin.email, body.current_password):
        raise ValidationError("Current password is incorrect.", code="bad_credentials")
    credentials.set_credential(admin.email, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("/admin/dashboard", response_model=DashboardResponse)
async def dashboard(request: Request, principal: Principal = Depends(require_admin)) -> DashboardResponse:
    """Aggregate counts for the admin landing page."""
    project_stats = await run_in_threadpool(request.app.state.project_store.get_stats)
    contact_stats = await run_in_threadpool(request.app.state.contact_store.get_stats)
    return DashboardResponse(
        data=DashboardData(projects=ProjectStats(**project_stats), contacts=ContactStats(**contact_stats))
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_admin_record(admins: AdminStore, admin_id: int) -> Admin:
    admin = admins.get_by_id(admin_id)
    if admin is None or not admin.is_active:
        raise NotFound("Admin not found.")
    return admin


def _auth_response(request: Request, admin: Admin, message: str, status_code: int = 200) -> JSONResponse:
    tokens: TokenService = request.app.state.tokens
    token = tokens.issue(Principal(user_id=admin.id, username=admin.username, role=admin.role or ADMIN_ROLE))
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            message=message,
            data=AuthData(token=token, expires_in=tokens.expires_in, admin=AdminResponse.from_admin(admin)),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
