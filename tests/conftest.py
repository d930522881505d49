"""
tests/conftest.py -- Shared test fixtures for Folio integration tests.

This module provides:
  - make_settings(): Settings pointed at a temporary SQLite file and upload dir
  - _patch_lifespan(): runs the real init_state() wiring against those settings
  - api_client: TestClient plus an admin bearer token for API tests
  - lifecycle: a ProjectLifecycle over fresh stores for unit tests

Design: each fixture gets its own SQLite file under pytest's tmp dir rather
than a shared in-memory database. TestClient runs sync route handlers in a
thread pool, and a file database presents the same schema to every thread
without shared-cache table locking.

The DEBUG env var must be set before any api/ import so get_settings() can
auto-generate SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, close_state, init_state
from auth.credentials import hash_password
from auth.models import Admin, Principal
from auth.store import AdminStore
from auth.tokens import SigningConfig, TokenService
from core.config import Settings
from projects.assets import AssetStore
from projects.lifecycle import ProjectLifecycle
from projects.store import ProjectStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "testpass123"

# PNG signature plus padding. The asset store checks the declared content
# type and size, not the pixels.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 56


def make_settings(base: Path, **overrides) -> Settings:
    values = dict(
        debug=True,
        secret_key=TEST_SECRET,
        database_url=f"sqlite:///{base / 'folio-test.db'}",
        upload_dir=str(base / "uploads" / "projects"),
        email_host="",
    )
    values.update(overrides)
    return Settings(**values)


def _patch_lifespan(settings: Settings):
    """Return a lifespan that wires app.state from the given test settings."""

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, settings)
        yield
        close_state(app)

    return test_lifespan


def uploaded_files(settings: Settings) -> list[str]:
    root = Path(settings.upload_dir)
    if not root.exists():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_file())


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """Rate-limit counters are process-global; start every test from zero."""
    limiter.reset()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_settings(tmp_path_factory) -> Settings:
    return make_settings(tmp_path_factory.mktemp("api"))


@pytest.fixture(scope="module")
def api_client(api_settings: Settings) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, admin_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated temporary stores. The
    admin is created before the client starts and its token is signed with
    the same key the app verifies with.
    """
    admins = AdminStore(db_url=api_settings.database_url)
    admin_id = admins.create_admin(
        Admin(username="testadmin", email=ADMIN_EMAIL, hashed_password=hash_password(ADMIN_PASSWORD))
    )
    admins.close()

    token = TokenService(SigningConfig.from_settings(api_settings)).issue(
        Principal(user_id=admin_id, username="testadmin", role="admin")
    )

    app.router.lifespan_context = _patch_lifespan(api_settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin_id


@pytest.fixture
def auth_headers(api_client) -> dict[str, str]:
    _client, token, _admin_id = api_client
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Function-scoped fixtures for domain unit tests
# ---------------------------------------------------------------------------


@pytest.fixture
def project_store(tmp_path) -> Generator[ProjectStore, None, None]:
    store = ProjectStore(db_url=f"sqlite:///{tmp_path / 'projects.db'}")
    yield store
    store.close()


@pytest.fixture
def asset_store(tmp_path) -> AssetStore:
    return AssetStore(tmp_path / "uploads", max_bytes=1024)


@pytest.fixture
def lifecycle(project_store: ProjectStore, asset_store: AssetStore) -> ProjectLifecycle:
    return ProjectLifecycle(project_store, asset_store)
