"""ObjectStoreDriver protocol: runtime-checkable interface for flat stores.

A driver exposes the handful of primitives a flat key/value store can
offer.  It knows nothing about directories: the session layer and its
``DirectoryStrategy`` build hierarchical semantics on top.

Keys never start with ``/``.  ``list_children`` uses ``/`` as the
delimiter and reports common prefixes as ``DIRECTORY`` entries whose
key ends with ``/``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .types import DeleteFailure, ObjectStat


@runtime_checkable
class ObjectStoreDriver(Protocol):
    """Primitive operations every flat-store driver must implement."""

    min_chunk_size: int
    """Smallest chunk the store accepts for streamed writes (bytes)."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def stat(self, key: str) -> ObjectStat | None:
        """Exact-key lookup.  ``None`` when no object has this key."""
        ...

    def list_children(self, prefix: str) -> list[ObjectStat]:
        """Non-recursive, delimiter-based listing under *prefix*."""
        ...

    def iter_keys(self, prefix: str) -> Iterator[str]:
        """Every object key under *prefix*, recursively."""
        ...

    def open_read(self, key: str) -> BinaryIO:
        """Open the object for reading.  The caller closes the stream."""
        ...

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_and_write(self, key: str, stream: BinaryIO, chunk_size: int) -> int:
        """Create *key* from *stream* and return the committed size.

        Must raise ``ConflictError`` if *key* already exists.  Must not
        close *stream*.
        """
        ...

    def delete_one(self, key: str) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> list[DeleteFailure]:
        """Best-effort batch delete; returns the keys that failed."""
        ...

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the connection.  Called once by the owning session."""
        ...
