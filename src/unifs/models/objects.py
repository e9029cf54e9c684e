"""StoredObject model: one row per key of the SQL-backed flat store.

Provides ``StoredObjectBase`` as a non-table base class.  Subclass with
``table=True`` and a custom ``__tablename__`` to keep several stores
in one database.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, LargeBinary
from sqlmodel import Field, SQLModel


class StoredObjectBase(SQLModel):
    """Base fields for a stored object. Subclass with ``table=True`` for a concrete table."""

    key: str = Field(primary_key=True)
    content: bytes = Field(default=b"", sa_type=LargeBinary)
    size_bytes: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class StoredObject(StoredObjectBase, table=True):
    """Default object table: ``unifs_objects``."""

    __tablename__ = "unifs_objects"
