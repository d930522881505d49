"""
tests/test_lifecycle.py -- Record/image consistency for ProjectLifecycle.

Covers:
  - create/update/delete keep exactly the referenced images on disk
  - Validation failures (fields or upload) leave no record and no file
  - Database failures roll back a freshly stored image (failure injection)
  - Concurrent replacements on one project leave one image, the referenced one
  - sweep_orphans() collects unreferenced files only
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import NotFound, PersistenceError, ValidationError
from projects.assets import AssetStore
from projects.lifecycle import ProjectLifecycle
from projects.models import AssetUpload, ProjectInput
from projects.store import ProjectStore

from conftest import PNG_BYTES


def _png(content: bytes = PNG_BYTES) -> AssetUpload:
    return AssetUpload(content=content, content_type="image/png", filename="shot.png")


def _fields(**overrides) -> ProjectInput:
    values = dict(title="Folio", description="Portfolio admin API")
    values.update(overrides)
    return ProjectInput(**values)


def _disk_error() -> OperationalError:
    return OperationalError("INSERT INTO projects", {}, Exception("disk I/O error"))


class FailingInsertStore(ProjectStore):
    def create_project(self, project):
        raise _disk_error()


class FailingUpdateStore(ProjectStore):
    def update_project(self, project_id, **fields):
        raise _disk_error()


class FailingDeleteStore(ProjectStore):
    def delete_project(self, project_id):
        raise _disk_error()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_with_image_stores_one_referenced_file(self, lifecycle: ProjectLifecycle) -> None:
        project = asyncio.run(lifecycle.create(_fields(tags=["python", "api"]), _png()))
        assert project.id is not None
        assert project.tags == ["python", "api"]
        assert lifecycle.assets.list_references() == {project.image_url}

    def test_without_image(self, lifecycle: ProjectLifecycle) -> None:
        project = asyncio.run(lifecycle.create(_fields()))
        assert project.image_url is None
        assert lifecycle.assets.list_references() == set()

    def test_image_required_when_configured(self, project_store: ProjectStore, asset_store: AssetStore) -> None:
        strict = ProjectLifecycle(project_store, asset_store, require_image=True)
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(strict.create(_fields()))
        assert excinfo.value.code == "image_required"

    def test_missing_title_reports_every_missing_field(self, lifecycle: ProjectLifecycle) -> None:
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(lifecycle.create(ProjectInput(title="  "), _png()))
        assert excinfo.value.errors == ["Title is required", "Description is required"]
        assert lifecycle.assets.list_references() == set()

    def test_bad_url_rejected_before_storing(self, lifecycle: ProjectLifecycle) -> None:
        with pytest.raises(ValidationError):
            asyncio.run(lifecycle.create(_fields(live_url="javascript:alert(1)"), _png()))
        assert lifecycle.assets.list_references() == set()
        assert lifecycle.projects.list_projects()[1] == 0

    def test_bad_upload_rejected_before_any_write(self, lifecycle: ProjectLifecycle) -> None:
        with pytest.raises(ValidationError):
            asyncio.run(lifecycle.create(_fields(), AssetUpload(content=b"text", content_type="text/plain")))
        assert lifecycle.projects.list_projects()[1] == 0
        assert lifecycle.assets.list_references() == set()

    def test_insert_failure_removes_stored_image(self, tmp_path, asset_store: AssetStore) -> None:
        store = FailingInsertStore(db_url=f"sqlite:///{tmp_path / 'fail.db'}")
        lifecycle = ProjectLifecycle(store, asset_store)
        with pytest.raises(PersistenceError):
            asyncio.run(lifecycle.create(_fields(), _png()))
        assert asset_store.list_references() == set()
        store.close()


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_replacement_deletes_previous_image(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(), _png()))
        updated = asyncio.run(lifecycle.update(original.id, ProjectInput(), _png()))
        assert updated.image_url != original.image_url
        assert lifecycle.assets.list_references() == {updated.image_url}

    def test_update_without_image_keeps_image(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(), _png()))
        updated = asyncio.run(lifecycle.update(original.id, ProjectInput(title="Renamed", featured=True)))
        assert updated.title == "Renamed"
        assert updated.featured is True
        assert updated.description == original.description
        assert updated.image_url == original.image_url
        assert lifecycle.assets.exists(original.image_url)

    def test_tags_replace_wholesale(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(tags=["a", "b"])))
        updated = asyncio.run(lifecycle.update(original.id, ProjectInput(tags=["c"])))
        assert updated.tags == ["c"]

    def test_blank_url_clears_it(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(github_url="https://github.com/x/y")))
        updated = asyncio.run(lifecycle.update(original.id, ProjectInput(github_url="")))
        assert updated.github_url is None

    def test_remove_image_without_replacement_rejected(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(), _png()))
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(lifecycle.update(original.id, ProjectInput(remove_image=True)))
        assert excinfo.value.code == "unsupported_operation"
        assert lifecycle.assets.exists(original.image_url)

    def test_unknown_id_stores_nothing(self, lifecycle: ProjectLifecycle) -> None:
        with pytest.raises(NotFound):
            asyncio.run(lifecycle.update(999, ProjectInput(title="x"), _png()))
        assert lifecycle.assets.list_references() == set()

    def test_invalid_field_keeps_old_state(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(), _png()))
        with pytest.raises(ValidationError):
            asyncio.run(lifecycle.update(original.id, ProjectInput(title="x" * 101), _png()))
        assert lifecycle.assets.list_references() == {original.image_url}
        assert asyncio.run(lifecycle.get(original.id)).title == "Folio"

    def test_update_failure_keeps_old_image_and_drops_new(self, tmp_path, asset_store: AssetStore) -> None:
        db_url = f"sqlite:///{tmp_path / 'upd.db'}"
        seeded = ProjectLifecycle(ProjectStore(db_url=db_url), asset_store)
        original = asyncio.run(seeded.create(_fields(), _png()))
        seeded.projects.close()

        failing = ProjectLifecycle(FailingUpdateStore(db_url=db_url), asset_store)
        with pytest.raises(PersistenceError):
            asyncio.run(failing.update(original.id, ProjectInput(), _png()))
        assert asset_store.list_references() == {original.image_url}
        assert asyncio.run(failing.get(original.id)).image_url == original.image_url
        failing.projects.close()

    def test_concurrent_replacements_leave_one_referenced_image(self, lifecycle: ProjectLifecycle) -> None:
        original = asyncio.run(lifecycle.create(_fields(), _png()))

        async def race():
            return await asyncio.gather(
                lifecycle.update(original.id, ProjectInput(), _png(PNG_BYTES + b"A")),
                lifecycle.update(original.id, ProjectInput(), _png(PNG_BYTES + b"B")),
            )

        asyncio.run(race())
        final = asyncio.run(lifecycle.get(original.id))
        assert lifecycle.assets.list_references() == {final.image_url}


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_delete_removes_record_and_image(self, lifecycle: ProjectLifecycle) -> None:
        project = asyncio.run(lifecycle.create(_fields(), _png()))
        removed = asyncio.run(lifecycle.delete(project.id))
        assert removed.id == project.id
        assert lifecycle.assets.list_references() == set()
        with pytest.raises(NotFound):
            asyncio.run(lifecycle.get(project.id))

    def test_delete_unknown(self, lifecycle: ProjectLifecycle) -> None:
        with pytest.raises(NotFound):
            asyncio.run(lifecycle.delete(12345))

    def test_delete_failure_keeps_image(self, tmp_path, asset_store: AssetStore) -> None:
        db_url = f"sqlite:///{tmp_path / 'del.db'}"
        seeded = ProjectLifecycle(ProjectStore(db_url=db_url), asset_store)
        project = asyncio.run(seeded.create(_fields(), _png()))
        seeded.projects.close()

        failing = ProjectLifecycle(FailingDeleteStore(db_url=db_url), asset_store)
        with pytest.raises(PersistenceError):
            asyncio.run(failing.delete(project.id))
        assert asset_store.exists(project.image_url)
        failing.projects.close()

    def test_delete_with_missing_file_still_succeeds(self, lifecycle: ProjectLifecycle) -> None:
        project = asyncio.run(lifecycle.create(_fields(), _png()))
        lifecycle.assets.path_for(project.image_url).unlink()
        asyncio.run(lifecycle.delete(project.id))
        assert lifecycle.projects.get_project(project.id) is None


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


def test_sweep_orphans_removes_only_unreferenced(lifecycle: ProjectLifecycle) -> None:
    kept = asyncio.run(lifecycle.create(_fields(), _png()))
    orphan = lifecycle.assets.save(_png())
    assert lifecycle.sweep_orphans() == [orphan]
    assert lifecycle.assets.list_references() == {kept.image_url}
    assert lifecycle.sweep_orphans() == []
