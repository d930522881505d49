"""
contacts/store.py -- SQLAlchemy-backed persistence for contact messages.

Same Repository + Data Mapper shape as projects/store.py. Plain CRUD with
pagination and a status breakdown for the admin dashboard.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from contacts.models import CONTACT_STATUSES, Contact

metadata = MetaData()

_contacts = Table(
    "contacts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default="new"),
    Column("ip_address", String(45)),
    Column("user_agent", String(512)),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class ContactStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create_contact(self, contact: Contact) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _contacts.insert().values(
                    name=contact.name,
                    email=contact.email,
                    message=contact.message,
                    status=contact.status,
                    ip_address=contact.ip_address,
                    user_agent=(contact.user_agent or "")[:512] or None,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_contact(self, contact_id: int) -> Optional[Contact]:
        with self.engine.connect() as conn:
            row = conn.execute(_contacts.select().where(_contacts.c.id == contact_id)).fetchone()
        return _row_to_contact(row) if row is not None else None

    def list_contacts(
        self,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Contact], int]:
        """Return one page of contacts (newest first) and the total matching count."""
        query = _contacts.select()
        count_query = select(func.count()).select_from(_contacts)
        if status:
            query = query.where(_contacts.c.status == status)
            count_query = count_query.where(_contacts.c.status == status)
        query = (
            query.order_by(_contacts.c.created_at.desc(), _contacts.c.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return [_row_to_contact(r) for r in rows], total

    def update_status(self, contact_id: int, status: str) -> bool:
        """Set a contact's status. Raises ValueError for unknown statuses."""
        if status not in CONTACT_STATUSES:
            raise ValueError(f"Unknown contact status: {status!r}")
        with self.engine.connect() as conn:
            result = conn.execute(_contacts.update().where(_contacts.c.id == contact_id).values(status=status))
            conn.commit()
        return result.rowcount > 0

    def delete_contact(self, contact_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_contacts.delete().where(_contacts.c.id == contact_id))
            conn.commit()
        return result.rowcount > 0

    def get_stats(self) -> dict:
        """Return {"total": N, "by_status": {status: N}} with every status present."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_contacts.c.status, func.count().label("n")).group_by(_contacts.c.status)
            ).fetchall()
        by_status = {s: 0 for s in CONTACT_STATUSES}
        for row in rows:
            by_status[row.status] = row.n
        return {"total": sum(by_status.values()), "by_status": by_status}

    def close(self) -> None:
        self.engine.dispose()


def _row_to_contact(row) -> Contact:
    return Contact(
        id=row.id,
        name=row.name,
        email=row.email,
        message=row.message,
        status=row.status,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )
