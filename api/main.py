"""
api/main.py -- FastAPI application entry point for Folio.

Exposes the portfolio admin API: administrator accounts, projects with
uploaded images, and the contact inbox.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the portfolio front-ends
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every store and service from Settings onto app.state and
closes them on shutdown. init_state()/close_state() are split out so tests
can run the same wiring against temporary databases.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import FileResponse, JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.contacts import router as contacts_router
from api.routes.v1.projects import router as projects_router
from auth.credentials import CredentialStore
from auth.store import AdminStore
from auth.tokens import SigningConfig, TokenService
from contacts.notify import ContactNotifier
from contacts.store import ContactStore
from core.config import Settings, get_settings
from core.errors import AppError, NotFound
from projects.assets import AssetStore, media_type_for
from projects.lifecycle import ProjectLifecycle
from projects.store import ProjectStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("folio.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Application state wiring
# ---------------------------------------------------------------------------


def init_state(app: FastAPI, settings: Settings) -> None:
    """Build every store and service from settings and attach it to app.state.

    Order matters: the lifecycle needs both the project store and the asset
    store, and the credential store wraps the admin store.
    """
    app.state.settings = settings

    app.state.admin_store = AdminStore(db_url=settings.database_url)
    app.state.credentials = CredentialStore(app.state.admin_store, min_length=settings.min_password_length)
    app.state.tokens = TokenService(SigningConfig.from_settings(settings))

    app.state.project_store = ProjectStore(db_url=settings.database_url)
    app.state.asset_store = AssetStore(
        settings.upload_dir,
        url_prefix=settings.upload_url_prefix,
        max_bytes=settings.max_upload_bytes,
    )
    app.state.lifecycle = ProjectLifecycle(
        app.state.project_store,
        app.state.asset_store,
        require_image=settings.require_project_image,
    )

    app.state.contact_store = ContactStore(db_url=settings.database_url)
    app.state.notifier = ContactNotifier(settings)


def close_state(app: FastAPI) -> None:
    app.state.admin_store.close()
    app.state.project_store.close()
    app.state.contact_store.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup and dispose their engines on shutdown."""
    logger.info("Folio API starting up")
    init_state(app, get_settings())
    if not app.state.admin_store.has_admins():
        logger.warning("No admin accounts exist. Run `python main.py setup-admin` or POST /api/admin/register.")
    logger.info("Uploads stored in %s", Path(app.state.settings.upload_dir).resolve())

    yield

    close_state(app)
    logger.info("Folio API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Folio API",
    description="Portfolio admin API: projects with images, contact inbox, administrator accounts.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(admin_router, prefix="/api", tags=["Admin"])
app.include_router(projects_router, prefix="/api", tags=["Projects"])
app.include_router(contacts_router, prefix="/api", tags=["Contact"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, code: str, errors: list[str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, code=code, errors=errors).model_dump(exclude_none=True),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map the domain error taxonomy onto HTTP.

    5xx messages are replaced with a generic one outside DEBUG; the detail
    always goes to the log.
    """
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        message = exc.message if request.app.state.settings.debug else "Internal server error."
        return _error(exc.status_code, message, exc.code)
    return _error(exc.status_code, exc.message, exc.code, exc.errors)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests. Please try again later.", "rate_limited")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one readable line per failing field."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        errors.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return _error(400, errors[0] if errors else "Invalid request.", "validation_error", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Envelope framework errors such as unknown routes (404) and wrong methods (405)."""
    code = "not_found" if exc.status_code == 404 else f"http_{exc.status_code}"
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _error(exc.status_code, message, code)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error.", "internal_error")


# ---------------------------------------------------------------------------
# Uploaded images
#
# Served through the asset store rather than a fixed StaticFiles directory so
# the store's path guard applies and the upload directory can change per
# app instance.
# ---------------------------------------------------------------------------


@app.get(_settings.upload_url_prefix.rstrip("/") + "/{name}", include_in_schema=False)
async def serve_upload(request: Request, name: str) -> FileResponse:
    assets: AssetStore = request.app.state.asset_store
    path = assets.path_for(f"{assets.url_prefix}/{name}")
    if path is None or not path.is_file():
        raise NotFound("File not found")
    return FileResponse(path, media_type=media_type_for(path), headers={"X-Content-Type-Options": "nosniff"})


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit applied -- health checks from load balancers and monitoring
# systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and database reachability."""
    try:
        request.app.state.admin_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
        components={"app": "ok", "database": database},
    )
