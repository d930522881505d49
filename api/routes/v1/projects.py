"""
api/routes/v1/projects.py -- Portfolio project routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /api/projects              -- public list with pagination, featured and tag filters
  GET    /api/projects/stats/all    -- totals (requires admin; before /{project_id})
  GET    /api/projects/{id}         -- public detail
  POST   /api/projects              -- create, multipart with optional `image` (requires admin)
  PUT    /api/projects/{id}         -- partial update, optional replacement image (requires admin)
  DELETE /api/projects/{id}         -- delete record and its image (requires admin)

All record/image consistency rules live in projects/lifecycle.py. This
module only parses multipart input and maps domain objects to the API
contract.

File uploads:
  The image is read with a cap of max_bytes + 1 so an oversized upload is
  detected without buffering it whole. tags and technologies arrive as
  comma-separated strings.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from api.models import (
    MessageResponse,
    Pagination,
    ProjectEnvelope,
    ProjectListResponse,
    ProjectResponse,
    ProjectStats,
    ProjectStatsEnvelope,
)
from auth.dependencies import require_admin
from core.errors import ValidationError
from projects.lifecycle import ProjectLifecycle
from projects.models import AssetUpload, ProjectInput, split_labels
from projects.store import ProjectStore

# Auth policy:
# - GET    /projects, /projects/{id}:   public -- the portfolio site renders these
# - everything else:                    requires admin (require_admin)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    featured: Optional[bool] = Query(default=None),
    tag: Optional[str] = Query(default=None, max_length=50),
) -> ProjectListResponse:
    """Return one page of projects: featured first, then manual order, newest first."""
    store: ProjectStore = request.app.state.project_store
    items, total = store.list_projects(featured=featured, tag=tag, page=page, limit=limit)
    return ProjectListResponse(
        data=[ProjectResponse.from_project(p) for p in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/projects/stats/all", response_model=ProjectStatsEnvelope, dependencies=[Depends(require_admin)])
def project_stats(request: Request) -> ProjectStatsEnvelope:
    """Return total, featured and distinct-tag counts."""
    store: ProjectStore = request.app.state.project_store
    return ProjectStatsEnvelope(data=ProjectStats(**store.get_stats()))


@router.get("/projects/{project_id}", response_model=ProjectEnvelope)
async def get_project(request: Request, project_id: int) -> ProjectEnvelope:
    lifecycle: ProjectLifecycle = request.app.state.lifecycle
    project = await lifecycle.get(project_id)
    return ProjectEnvelope(data=ProjectResponse.from_project(project))


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------


@router.post(
    "/projects",
    response_model=ProjectEnvelope,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_project(
    request: Request,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    short_description: Optional[str] = Form(default=None),
    live_url: Optional[str] = Form(default=None),
    github_url: Optional[str] = Form(default=None),
    tags: Optional[str] = Form(default=None),
    technologies: Optional[str] = Form(default=None),
    featured: Optional[bool] = Form(default=None),
    sort_order: Optional[int] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
) -> ProjectEnvelope:
    """Create a project, storing the optional image first.

    Missing title or description is a 400 from the lifecycle, not a 422
    from form parsing, so every validation failure has the same shape.
    """
    lifecycle: ProjectLifecycle = request.app.state.lifecycle
    fields = ProjectInput(
        title=title,
        description=description,
        short_description=short_description,
        live_url=live_url,
        github_url=github_url,
        tags=split_labels(tags),
        technologies=split_labels(technologies),
        featured=featured,
        sort_order=sort_order,
    )
    upload = await _read_upload(image, lifecycle.assets.max_bytes)
    project = await lifecycle.create(fields, upload)
    return ProjectEnvelope(message="Project created successfully", data=ProjectResponse.from_project(project))


@router.put("/projects/{project_id}", response_model=ProjectEnvelope, dependencies=[Depends(require_admin)])
async def update_project(
    request: Request,
    project_id: int,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    short_description: Optional[str] = Form(default=None),
    live_url: Optional[str] = Form(default=None),
    github_url: Optional[str] = Form(default=None),
    tags: Optional[str] = Form(default=None),
    technologies: Optional[str] = Form(default=None),
    featured: Optional[bool] = Form(default=None),
    sort_order: Optional[int] = Form(default=None),
    remove_image: bool = Form(default=False),
    image: Optional[UploadFile] = File(default=None),
) -> ProjectEnvelope:
    """Apply a partial update. Fields not sent are left unchanged.

    Sending no image keeps the current one. remove_image=true without a new
    image is rejected: removing the only image is not supported.
    """
    lifecycle: ProjectLifecycle = request.app.state.lifecycle
    changes = ProjectInput(
        title=title,
        description=description,
        short_description=short_description,
        live_url=live_url,
        github_url=github_url,
        tags=split_labels(tags),
        technologies=split_labels(technologies),
        featured=featured,
        sort_order=sort_order,
        remove_image=remove_image,
    )
    upload = await _read_upload(image, lifecycle.assets.max_bytes)
    project = await lifecycle.update(project_id, changes, upload)
    return ProjectEnvelope(message="Project updated successfully", data=ProjectResponse.from_project(project))


@router.delete("/projects/{project_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_project(request: Request, project_id: int) -> MessageResponse:
    lifecycle: ProjectLifecycle = request.app.state.lifecycle
    await lifecycle.delete(project_id)
    return MessageResponse(message="Project deleted successfully")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_upload(image: Optional[UploadFile], max_bytes: int) -> Optional[AssetUpload]:
    """Read an optional multipart image into an AssetUpload.

    Browsers send an empty part with no filename when the file input is left
    blank; that counts as "no image". Reads at most max_bytes + 1 so the
    asset store can reject oversize uploads without holding the whole body.
    """
    if image is None or not image.filename:
        return None
    try:
        content = await image.read(max_bytes + 1)
    finally:
        await image.close()
    if len(content) > max_bytes:
        raise ValidationError(f"Image must be {max_bytes // (1024 * 1024)} MB or smaller.", code="file_too_large")
    return AssetUpload(content=content, content_type=image.content_type or "", filename=image.filename)
