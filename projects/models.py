"""
projects/models.py -- Domain dataclasses for portfolio projects.

These are pure data containers. Validation and the record/asset consistency
rules live in projects/lifecycle.py; persistence lives in projects/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Project:
    """A portfolio project.

    image_url is the asset reference: a URL path under the upload prefix
    (e.g. /uploads/projects/project-<hex>.png) pointing at a file the asset
    store owns. None means no image.

    id is None before the record is written to the database.
    """

    title: str
    description: str
    id: Optional[int] = None
    short_description: Optional[str] = None
    image_url: Optional[str] = None
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    technologies: list[str] = field(default_factory=list)
    featured: bool = False
    sort_order: int = 0
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, set by store on every write


@dataclass
class ProjectInput:
    """Client-supplied project fields for create and partial update.

    None means "not supplied": on update the stored value is left alone.
    tags/technologies, when supplied, replace the stored lists wholesale.

    remove_image exists so a client asking to drop the image without a
    replacement gets an explicit rejection instead of a silent no-op.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    tags: Optional[list[str]] = None
    technologies: Optional[list[str]] = None
    featured: Optional[bool] = None
    sort_order: Optional[int] = None
    remove_image: bool = False


@dataclass(frozen=True)
class AssetUpload:
    """An uploaded image held in memory until the asset store writes it."""

    content: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


def split_labels(raw: Optional[str]) -> Optional[list[str]]:
    """Split a comma-separated label string into an ordered, de-duplicated list.

    None stays None (field not supplied). An empty string yields [] so a
    client can clear the list explicitly.
    """
    if raw is None:
        return None
    seen: set[str] = set()
    result: list[str] = []
    for part in raw.split(","):
        label = part.strip()
        if label and label not in seen:
            seen.add(label)
            result.append(label)
    return result
