"""
projects/lifecycle.py -- Keeps project records and their image files consistent.

ProjectLifecycle is the only code allowed to change a project's image_url,
and it enforces one rule: a project references zero or one stored image, and
no stored image outlives the last record that referenced it.

Each mutating operation is a Saga (projects/saga.py):

  create   store image [undo: delete it] -> insert record
  update   store new image [undo: delete it] -> update record
           -> (after success) delete previous image
  delete   delete record -> (after success) delete its image

Ordering rules:
  - Uploads are validated before any database interaction, so a rejected
    upload leaves no partial state.
  - A replacement image is written before the old one is removed, and the
    old one is removed only after the record points at the new one.
  - Image deletions after a successful commit are best-effort: the file is
    already unreferenced, so a failure only leaves an orphan for
    sweep_orphans() to collect.

Updates and deletes on the same id are serialized with KeyedLocks, which
removes the lost-update race between two concurrent replacements.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from core.errors import NotFound, PersistenceError, ValidationError
from projects.assets import AssetStore
from projects.locks import KeyedLocks
from projects.models import AssetUpload, Project, ProjectInput
from projects.saga import Saga
from projects.store import ProjectStore

logger = logging.getLogger("folio.projects")

TITLE_MAX = 100
SHORT_DESCRIPTION_MAX = 200
URL_MAX = 512


class ProjectLifecycle:
    def __init__(self, projects: ProjectStore, assets: AssetStore, require_image: bool = False) -> None:
        self.projects = projects
        self.assets = assets
        self.require_image = require_image
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, project_id: int) -> Project:
        project = await run_in_threadpool(self._db, self.projects.get_project, project_id)
        if project is None:
            raise NotFound("Project not found")
        return project

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, fields: ProjectInput, upload: Optional[AssetUpload] = None) -> Project:
        project = _new_project(fields)
        if upload is not None:
            self.assets.validate(upload)
        elif self.require_image:
            raise ValidationError("Image is required", code="image_required")

        async with Saga("create project") as saga:
            if upload is not None:
                project.image_url = await saga.step(
                    "store image",
                    partial(self.assets.save, upload),
                    compensate=self.assets.delete,
                )
            project_id = await saga.step("insert project", partial(self._db, self.projects.create_project, project))

        logger.info("Created project id=%s image=%s", project_id, project.image_url or "-")
        return await self.get(project_id)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update(self, project_id: int, changes: ProjectInput, upload: Optional[AssetUpload] = None) -> Project:
        if changes.remove_image and upload is None:
            raise ValidationError(
                "Removing a project image without a replacement is not supported.",
                code="unsupported_operation",
            )
        fields = _changed_fields(changes)
        if upload is not None:
            self.assets.validate(upload)

        async with self._locks.hold(project_id):
            current = await self.get(project_id)
            async with Saga(f"update project {project_id}") as saga:
                if upload is not None:
                    fields["image_url"] = await saga.step(
                        "store replacement image",
                        partial(self.assets.save, upload),
                        compensate=self.assets.delete,
                    )
                    if current.image_url:
                        saga.defer("delete previous image", partial(self.assets.delete, current.image_url))
                updated = await saga.step(
                    "update project",
                    partial(self._db, self.projects.update_project, project_id, **fields),
                )
                if not updated:
                    raise NotFound("Project not found")
            logger.info("Updated project id=%s fields=%s", project_id, sorted(fields))
            return await self.get(project_id)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, project_id: int) -> Project:
        """Delete the record, then its image. Returns the project as it was."""
        async with self._locks.hold(project_id):
            current = await self.get(project_id)
            async with Saga(f"delete project {project_id}") as saga:
                deleted = await saga.step(
                    "delete project",
                    partial(self._db, self.projects.delete_project, project_id),
                )
                if not deleted:
                    raise NotFound("Project not found")
                if current.image_url:
                    saga.defer("delete image", partial(self.assets.delete, current.image_url))
            logger.info("Deleted project id=%s", project_id)
            return current

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def sweep_orphans(self) -> list[str]:
        """Delete stored images no project references. Returns the removed references.

        Run while no mutation is in flight (e.g. from the CLI); an image
        stored by a create that has not yet inserted its record would look
        orphaned.
        """
        referenced = self._db(self.projects.list_image_urls)
        removed = []
        for reference in sorted(self.assets.list_references() - referenced):
            if self.assets.delete(reference):
                removed.append(reference)
        if removed:
            logger.info("Swept %d orphaned asset(s)", len(removed))
        return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _db(fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Call a store method, translating driver errors into PersistenceError."""
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise PersistenceError("Database operation failed.") from exc


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()


def _check_url(name: str, value: str) -> None:
    if len(value) > URL_MAX:
        raise ValidationError(f"{name} cannot exceed {URL_MAX} characters")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{name} must be an http(s) URL")


def _changed_fields(changes: ProjectInput) -> dict:
    """Validate supplied fields and return them as store column values.

    Blank optional text (short_description, URLs) clears the column.
    """
    errors: list[str] = []
    fields: dict = {}

    title = _clean_text(changes.title)
    if title is not None:
        if not title:
            errors.append("Title is required")
        elif len(title) > TITLE_MAX:
            errors.append(f"Title cannot exceed {TITLE_MAX} characters")
        fields["title"] = title

    description = _clean_text(changes.description)
    if description is not None:
        if not description:
            errors.append("Description is required")
        fields["description"] = description

    short = _clean_text(changes.short_description)
    if short is not None:
        if len(short) > SHORT_DESCRIPTION_MAX:
            errors.append(f"Short description cannot exceed {SHORT_DESCRIPTION_MAX} characters")
        fields["short_description"] = short or None

    for name in ("live_url", "github_url"):
        value = _clean_text(getattr(changes, name))
        if value is None:
            continue
        if value:
            try:
                _check_url(name, value)
            except ValidationError as exc:
                errors.append(exc.message)
        fields[name] = value or None

    if changes.tags is not None:
        fields["tags"] = list(changes.tags)
    if changes.technologies is not None:
        fields["technologies"] = list(changes.technologies)
    if changes.featured is not None:
        fields["featured"] = changes.featured
    if changes.sort_order is not None:
        fields["sort_order"] = changes.sort_order

    if errors:
        raise ValidationError(errors[0], errors=errors)
    return fields


def _new_project(fields: ProjectInput) -> Project:
    errors = [
        f"{label} is required"
        for label, value in (("Title", fields.title), ("Description", fields.description))
        if not (value or "").strip()
    ]
    if errors:
        raise ValidationError(errors[0], errors=errors)
    values = _changed_fields(fields)
    return Project(
        title=values["title"],
        description=values["description"],
        short_description=values.get("short_description"),
        live_url=values.get("live_url"),
        github_url=values.get("github_url"),
        tags=values.get("tags", []),
        technologies=values.get("technologies", []),
        featured=values.get("featured", False),
        sort_order=values.get("sort_order", 0),
    )
