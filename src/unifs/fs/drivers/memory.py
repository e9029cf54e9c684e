"""InMemoryObjectStore: dict-backed flat key store."""

from __future__ import annotations

import io
import logging
import threading
from typing import TYPE_CHECKING, BinaryIO

from ..exceptions import ConflictError, StorageError
from ..types import DeleteFailure, FileKind, ObjectStat
from ..utils import PATH_SEPARATOR

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class InMemoryObjectStore:
    """Flat store held in a ``dict``.  Safe for concurrent calls.

    A store outlives the sessions built on it: closing a session does not
    clear the data, so one store can back several sessions in turn.
    """

    min_chunk_size: int = 1

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self._objects: dict[str, bytes] = dict(objects or {})
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def stat(self, key: str) -> ObjectStat | None:
        with self._lock:
            data = self._objects.get(key)
        if data is None:
            return None
        return ObjectStat(key, FileKind.SIMPLE_FILE, len(data))

    def list_children(self, prefix: str) -> list[ObjectStat]:
        with self._lock:
            items = [(k, len(v)) for k, v in self._objects.items() if k.startswith(prefix)]
        files: dict[str, ObjectStat] = {}
        dirs: dict[str, ObjectStat] = {}
        for key, size in items:
            rest = key[len(prefix):]
            head, sep, _ = rest.partition(PATH_SEPARATOR)
            if sep:
                common = prefix + head + PATH_SEPARATOR
                dirs.setdefault(common, ObjectStat(common, FileKind.DIRECTORY, 0))
            else:
                files[key] = ObjectStat(key, FileKind.SIMPLE_FILE, size)
        return sorted([*files.values(), *dirs.values()], key=lambda s: s.key)

    def iter_keys(self, prefix: str) -> Iterator[str]:
        with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
        yield from keys

    def open_read(self, key: str) -> BinaryIO:
        with self._lock:
            data = self._objects.get(key)
        if data is None:
            raise StorageError(f"No such object: {key}")
        return io.BytesIO(data)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_and_write(self, key: str, stream: BinaryIO, chunk_size: int) -> int:
        buf = bytearray()
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            buf.extend(chunk)
        with self._lock:
            if key in self._objects:
                raise ConflictError(f"Object already exists: {key}")
            self._objects[key] = bytes(buf)
        return len(buf)

    def delete_one(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def delete_many(self, keys: Iterable[str]) -> list[DeleteFailure]:
        with self._lock:
            for key in keys:
                self._objects.pop(key, None)
        return []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        logger.debug("Released in-memory store (%d objects kept)", len(self))
