"""
projects/assets.py -- Filesystem store for uploaded project images.

The store only knows named blobs in one directory. It has no idea which
project owns which file; projects/lifecycle.py owns that rule.

Naming: project-<uuid4 hex><ext>. uuid4 makes concurrent creates collision
free by construction, so no locking is needed here.

References: a stored file is referenced as "<url_prefix>/<name>", which is
also the public URL the static mount in api/main.py serves it from.
References that do not start with url_prefix (external URLs, legacy data)
are treated as foreign: delete() and exists() ignore them.

Durability: save() writes to a temp file in the same directory and then
os.replace()s it into place, so a crash never leaves a half-written image
under a referenced name.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import uuid
from pathlib import Path
from typing import Optional

from core.errors import StorageError, ValidationError
from projects.models import AssetUpload

logger = logging.getLogger("folio.projects")

DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5 MB

_NAME_PREFIX = "project-"
# Accepted image types and the extension each is stored under. The stored
# name never takes anything from the client filename.
IMAGE_TYPES: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
_MEDIA_TYPES = {".png": "image/png", ".jpg": "image/jpeg", ".gif": "image/gif", ".webp": "image/webp"}
_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class AssetStore:
    def __init__(self, root: str | Path, url_prefix: str = "/uploads/projects", max_bytes: int = DEFAULT_MAX_BYTES):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Validation (no I/O)
    # ------------------------------------------------------------------

    def validate(self, upload: AssetUpload) -> None:
        """Reject anything that is not a non-empty, allow-listed image within the size cap.

        SVG is refused: it can carry script and would be served same-origin.
        """
        if _normalized_type(upload.content_type) not in IMAGE_TYPES:
            raise ValidationError("Only image files are allowed!", code="unsupported_media_type")
        if upload.size == 0:
            raise ValidationError("Uploaded image is empty.", code="empty_file")
        if upload.size > self.max_bytes:
            raise ValidationError(
                f"Image must be {self.max_bytes // (1024 * 1024)} MB or smaller.",
                code="file_too_large",
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, upload: AssetUpload) -> str:
        """Write the upload under a fresh name and return its reference.

        Raises StorageError if the filesystem write fails. Nothing is left
        behind on failure.
        """
        self.validate(upload)
        name = f"{_NAME_PREFIX}{uuid.uuid4().hex}{_extension_for(upload)}"
        target = self.root / name
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".upload-")
            with os.fdopen(fd, "wb") as fh:
                fh.write(upload.content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            raise StorageError("Could not store uploaded image.") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.info("Stored asset %s (%d bytes)", name, upload.size)
        return f"{self.url_prefix}/{name}"

    def delete(self, reference: str) -> bool:
        """Delete the file behind reference.

        Returns False when the reference is foreign or the file is already
        gone. Raises StorageError when the filesystem refuses.
        """
        path = self.path_for(reference)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Could not delete asset {path.name}.") from exc
        logger.info("Deleted asset %s", path.name)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def path_for(self, reference: Optional[str]) -> Optional[Path]:
        """Map a reference to a path inside root, or None if it is not ours.

        Only a single plain filename after the prefix is accepted, which
        rules out traversal such as /uploads/projects/../../etc/passwd.
        """
        if not reference or not reference.startswith(self.url_prefix + "/"):
            return None
        name = reference[len(self.url_prefix) + 1 :]
        if not _SAFE_NAME.match(name) or ".." in name:
            return None
        return self.root / name

    def exists(self, reference: Optional[str]) -> bool:
        path = self.path_for(reference)
        return path is not None and path.is_file()

    def read(self, reference: str) -> bytes:
        path = self.path_for(reference)
        if path is None:
            raise StorageError("Not a stored asset reference.")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Could not read asset {path.name}.") from exc

    def list_references(self) -> set[str]:
        """Return the reference of every stored asset (temp files excluded)."""
        return {
            f"{self.url_prefix}/{p.name}" for p in self.root.iterdir() if p.is_file() and p.name.startswith(_NAME_PREFIX)
        }


def media_type_for(path: Path) -> str:
    """Content type to serve a stored file with, from its extension alone."""
    return _MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream")


def _normalized_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def _extension_for(upload: AssetUpload) -> str:
    """Extension for a validated upload, taken from its MIME type only."""
    return IMAGE_TYPES[_normalized_type(upload.content_type)]
