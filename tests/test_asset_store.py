"""
tests/test_asset_store.py -- Unit tests for the image AssetStore (projects/assets.py).

Covers:
  - validate(): allow-listed content type, empty file and size cap
  - save(): stored extension derived from the content type, never the filename
  - save(): unique project-<hex> names under the url prefix, bytes intact
  - delete(): removes owned files, ignores foreign and missing references
  - path_for(): refuses traversal outside the upload directory
"""

from __future__ import annotations

import re

import pytest

from core.errors import ValidationError
from projects.assets import AssetStore, media_type_for
from projects.models import AssetUpload

from conftest import PNG_BYTES


def _png(content: bytes = PNG_BYTES, filename: str = "shot.png") -> AssetUpload:
    return AssetUpload(content=content, content_type="image/png", filename=filename)


class TestValidate:
    def test_accepts_image(self, asset_store: AssetStore) -> None:
        asset_store.validate(_png())

    def test_rejects_non_image(self, asset_store: AssetStore) -> None:
        with pytest.raises(ValidationError) as excinfo:
            asset_store.validate(AssetUpload(content=b"%PDF-1.7", content_type="application/pdf", filename="cv.pdf"))
        assert excinfo.value.code == "unsupported_media_type"

    @pytest.mark.parametrize("content_type", ["image/svg+xml", "image/x-icon", "image/tiff", "text/html"])
    def test_rejects_types_outside_allow_list(self, asset_store: AssetStore, content_type: str) -> None:
        with pytest.raises(ValidationError) as excinfo:
            asset_store.validate(AssetUpload(content=b"<svg/>", content_type=content_type, filename="x.png"))
        assert excinfo.value.code == "unsupported_media_type"

    def test_content_type_parameters_ignored(self, asset_store: AssetStore) -> None:
        asset_store.validate(AssetUpload(content=PNG_BYTES, content_type="IMAGE/PNG; foo=bar", filename="a"))

    def test_rejects_empty(self, asset_store: AssetStore) -> None:
        with pytest.raises(ValidationError) as excinfo:
            asset_store.validate(_png(content=b""))
        assert excinfo.value.code == "empty_file"

    def test_rejects_oversize(self, asset_store: AssetStore) -> None:
        with pytest.raises(ValidationError) as excinfo:
            asset_store.validate(_png(content=b"x" * (asset_store.max_bytes + 1)))
        assert excinfo.value.code == "file_too_large"

    def test_accepts_exactly_max_bytes(self, asset_store: AssetStore) -> None:
        asset_store.validate(_png(content=b"x" * asset_store.max_bytes))


class TestSaveAndDelete:
    def test_save_returns_prefixed_unique_reference(self, asset_store: AssetStore) -> None:
        first = asset_store.save(_png())
        second = asset_store.save(_png())
        assert first != second
        assert re.fullmatch(r"/uploads/projects/project-[0-9a-f]{32}\.png", first)
        assert asset_store.read(first) == PNG_BYTES

    def test_extension_comes_from_content_type(self, asset_store: AssetStore) -> None:
        ref = asset_store.save(AssetUpload(content=PNG_BYTES, content_type="image/png", filename="noext"))
        assert ref.endswith(".png")

    def test_client_filename_extension_ignored(self, asset_store: AssetStore) -> None:
        ref = asset_store.save(AssetUpload(content=b"<html></html>", content_type="image/png", filename="evil.html"))
        assert re.fullmatch(r"/uploads/projects/project-[0-9a-f]{32}\.png", ref)
        assert media_type_for(asset_store.path_for(ref)) == "image/png"

    def test_jpeg_stored_as_jpg(self, asset_store: AssetStore) -> None:
        ref = asset_store.save(AssetUpload(content=b"\xff\xd8\xff", content_type="image/jpeg", filename="a.jpeg"))
        assert ref.endswith(".jpg")

    def test_no_temp_files_left_behind(self, asset_store: AssetStore) -> None:
        ref = asset_store.save(_png())
        assert [p.name for p in asset_store.root.iterdir()] == [ref.rsplit("/", 1)[1]]

    def test_delete_removes_file(self, asset_store: AssetStore) -> None:
        ref = asset_store.save(_png())
        assert asset_store.delete(ref) is True
        assert not asset_store.exists(ref)
        assert asset_store.list_references() == set()

    def test_delete_missing_is_false(self, asset_store: AssetStore) -> None:
        assert asset_store.delete("/uploads/projects/project-0123.png") is False

    def test_delete_foreign_reference_is_false(self, asset_store: AssetStore) -> None:
        assert asset_store.delete("https://cdn.example.com/img.png") is False

    def test_list_references(self, asset_store: AssetStore) -> None:
        refs = {asset_store.save(_png()), asset_store.save(_png())}
        assert asset_store.list_references() == refs


class TestPathGuard:
    @pytest.mark.parametrize(
        "reference",
        [
            "/uploads/projects/../secret.txt",
            "/uploads/projects/a/b.png",
            "/uploads/projects/",
            "/uploads/projects/.hidden",
            "/elsewhere/project-1.png",
            None,
        ],
    )
    def test_unsafe_references_map_to_none(self, asset_store: AssetStore, reference) -> None:
        assert asset_store.path_for(reference) is None

    def test_owned_reference_maps_inside_root(self, asset_store: AssetStore) -> None:
        path = asset_store.path_for("/uploads/projects/project-abc.png")
        assert path == asset_store.root / "project-abc.png"
