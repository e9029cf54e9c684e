"""SQLModel database models for unifs."""

from unifs.models.objects import StoredObject, StoredObjectBase

__all__ = [
    "StoredObject",
    "StoredObjectBase",
]
