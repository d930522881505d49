"""
projects/store.py -- SQLAlchemy-backed persistence for portfolio projects.

Uses SQLAlchemy Core (not ORM) so the dataclasses in projects/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change.

Pattern: Repository + Data Mapper. ProjectStore is the repository;
_row_to_project is the mapper. Nothing outside this module touches SQL.

The store knows nothing about image files. Keeping image_url consistent with
the asset directory is projects/lifecycle.py's job.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProjectStore("sqlite:///folio.db")
    project_id = store.create_project(Project(title="Site", description="..."))
    store.update_project(project_id, title="New title")
    items, total = store.list_projects(featured=True, page=1, limit=10)
    store.close()
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from projects.models import Project

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
    Column("description", Text, nullable=False),
    Column("short_description", String(200)),
    Column("image_url", String(512)),
    Column("live_url", String(512)),
    Column("github_url", String(512)),
    Column("tags", Text, nullable=False, server_default="[]"),  # JSON array serialized as text
    Column("technologies", Text, nullable=False, server_default="[]"),  # JSON array, like tags
    Column("featured", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("sort_order", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_JSON_LIST_FIELDS = ("tags", "technologies")

# Fields update_project() accepts. id and created_at are immutable.
_MUTABLE_FIELDS = {
    "title",
    "description",
    "short_description",
    "image_url",
    "live_url",
    "github_url",
    "tags",
    "technologies",
    "featured",
    "sort_order",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProjectStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # Route handlers run the store from worker threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create_project(self, project: Project) -> int:
        """Insert a new project and return its assigned database ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _projects.insert().values(
                    title=project.title,
                    description=project.description,
                    short_description=project.short_description,
                    image_url=project.image_url,
                    live_url=project.live_url,
                    github_url=project.github_url,
                    tags=json.dumps(project.tags),
                    technologies=json.dumps(project.technologies),
                    featured=1 if project.featured else 0,
                    sort_order=project.sort_order,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_project(self, project_id: int) -> Optional[Project]:
        """Fetch a single project by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
        return _row_to_project(row) if row is not None else None

    def update_project(self, project_id: int, **fields) -> bool:
        """Update any subset of mutable fields and stamp updated_at.

        tags and technologies must be passed as list[str]; they are serialized
        to JSON here. Unknown keys raise ValueError.

        Returns True if a row was updated, False if project_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown project fields: {unknown!r}")
        for name in _JSON_LIST_FIELDS:
            if name in fields:
                fields[name] = json.dumps(fields[name])
        if "featured" in fields:
            fields["featured"] = 1 if fields["featured"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_projects.update().where(_projects.c.id == project_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_project(self, project_id: int) -> bool:
        """Delete a project record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_projects.delete().where(_projects.c.id == project_id))
            conn.commit()
        return result.rowcount > 0

    def list_projects(
        self,
        featured: Optional[bool] = None,
        tag: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Project], int]:
        """Return one page of projects and the total matching count.

        Ordering: featured first, then sort_order ascending, newest first.
        The tag filter matches a whole element of the JSON tags array.
        """
        conditions = []
        if featured is not None:
            conditions.append(_projects.c.featured == (1 if featured else 0))
        if tag:
            needle = f"%{_like_escape(json.dumps(tag))}%"
            conditions.append(_projects.c.tags.like(needle, escape="\\"))

        query = _projects.select()
        count_query = select(func.count()).select_from(_projects)
        for cond in conditions:
            query = query.where(cond)
            count_query = count_query.where(cond)
        query = (
            query.order_by(_projects.c.featured.desc(), _projects.c.sort_order.asc(), _projects.c.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_project(r) for r in rows], total

    def get_stats(self) -> dict:
        """Return {"total", "featured", "total_tags"} across all projects.

        total_tags counts distinct tag strings.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(select(_projects.c.featured, _projects.c.tags)).fetchall()
        distinct_tags: set[str] = set()
        featured = 0
        for row in rows:
            featured += 1 if row.featured else 0
            distinct_tags.update(json.loads(row.tags or "[]"))
        return {"total": len(rows), "featured": featured, "total_tags": len(distinct_tags)}

    def list_image_urls(self) -> set[str]:
        """Return every non-null image_url currently referenced by a project."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(_projects.c.image_url).where(_projects.c.image_url.is_not(None))).fetchall()
        return {r.image_url for r in rows}

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        title=row.title,
        description=row.description,
        short_description=row.short_description,
        image_url=row.image_url,
        live_url=row.live_url,
        github_url=row.github_url,
        tags=json.loads(row.tags or "[]"),
        technologies=json.loads(row.technologies or "[]"),
        featured=bool(row.featured),
        sort_order=row.sort_order,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
