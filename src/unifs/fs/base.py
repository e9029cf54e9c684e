"""VFS: the abstract session and the checks every backend shares."""

from __future__ import annotations

import io
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, BinaryIO

from .exceptions import (
    ConflictError,
    ForeignPathError,
    InvalidPathError,
    IsDirectoryError,
    NotDirectoryError,
    NotFileError,
    PathNotFoundError,
    SessionClosedError,
    StorageError,
    UnifsError,
)
from .paths import VPath
from .tree import build_tree, dir_first_then_name
from .types import BackendType, ChildEntry, FileKind, VFile
from .utils import CURRENT_DIR, PARENT_DIR

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from types import TracebackType

    from .tree import TreeNode

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KiB


class SessionState(str, Enum):
    """Lifecycle of a session.  ``CLOSED`` is terminal."""

    CONSTRUCTED = "constructed"
    OPEN = "open"
    CLOSED = "closed"


class VFS(ABC):
    """One open connection to one backend, exposing the uniform contract.

    Subclasses implement the ``_``-prefixed hooks; this class owns the
    session state machine, argument checks and the kind/existence rules
    that are the same for every backend:

    - ``exists`` / ``resolve`` never raise for an absent path
    - ``mkdir`` / ``mk_file`` refuse an occupied position and require an
      existing parent directory
    - ``rmdir`` refuses a non-empty directory unless ``recursive``
    - every data operation on a closed session raises
      ``SessionClosedError``

    Hooks are only called with paths owned by this session, after the
    checks above have passed.
    """

    backend_type: BackendType
    min_chunk_size: int = 1
    """Smallest chunk the backend accepts for streamed writes (bytes)."""

    def __init__(self) -> None:
        self._state = SessionState.CONSTRUCTED
        self._state_lock = threading.Lock()
        self._root = VPath(self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _mark_open(self) -> None:
        """Called once by subclasses when their connection is ready."""
        with self._state_lock:
            if self._state is not SessionState.CONSTRUCTED:
                raise UnifsError(f"Session cannot be opened from state {self._state.value}")
            self._state = SessionState.OPEN
        logger.debug("Opened %r", self)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is not SessionState.OPEN

    def close(self) -> None:
        """Release the backend connection.  Safe to call repeatedly."""
        with self._state_lock:
            if self._state is SessionState.CLOSED:
                return
            was_open = self._state is SessionState.OPEN
            self._state = SessionState.CLOSED
        if was_open:
            try:
                self._release()
            except Exception:
                logger.warning("Backend release failed for %r", self, exc_info=True)
            logger.debug("Closed %r", self)

    def __enter__(self) -> VFS:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._state is not SessionState.OPEN:
            raise SessionClosedError(f"{self!r} is {self._state.value}")

    # ------------------------------------------------------------------
    # Path Helpers
    # ------------------------------------------------------------------

    @property
    def root(self) -> VPath:
        return self._root

    def path(self, *parts: str) -> VPath:
        """Root joined with *parts*."""
        return VPath.of(self, *parts)

    def _checked(self, path: VPath | str) -> VPath:
        self._ensure_open()
        if isinstance(path, str):
            return self._root.join(path)
        if not path.is_owned_by(self):
            raise ForeignPathError(f"{path} does not belong to {self!r}")
        return path

    def _require_parent_directory(self, path: VPath) -> None:
        parent = path.back()
        if parent.is_root:
            return
        found = self._stat(parent)
        if found is None:
            raise PathNotFoundError(f"Parent directory does not exist: {parent}")
        if not found.is_directory:
            raise NotDirectoryError(f"Parent is not a directory: {parent}")

    @contextmanager
    def _storage_errors(self, action: str, path: VPath) -> Iterator[None]:
        """Translate OS-level failures into ``StorageError``."""
        try:
            yield
        except OSError as e:
            raise StorageError(f"Cannot {action} {path}: {e}") from e

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def exists(self, path: VPath | str) -> bool:
        p = self._checked(path)
        if p.is_root:
            return True
        return self._stat(p) is not None

    def resolve(self, path: VPath | str) -> VFile | None:
        """Stat *path*; ``None`` means nothing is at this position."""
        p = self._checked(path)
        if p.is_root:
            return VFile(p, FileKind.DIRECTORY, 0)
        return self._stat(p)

    def stat(self, path: VPath | str) -> VFile:
        """Like :meth:`resolve` but raises ``PathNotFoundError``."""
        found = self.resolve(path)
        if found is None:
            raise PathNotFoundError(f"Path not found: {path}")
        return found

    def list(self, path: VPath | str) -> list[VPath]:
        """Immediate children of a directory, sorted by path."""
        p = self._checked(path)
        return sorted(p.join(e.name) for e in self._listing(p))

    def list_files(self, path: VPath | str, *, strict: bool = False) -> list[VFile]:
        """Immediate children as snapshots, directories first then by name.

        Entries whose names cannot be expressed as a ``VPath`` are skipped,
        or raise ``StorageError`` when *strict* is set.
        """
        p = self._checked(path)
        files = [VFile(p.join(e.name), e.kind, e.size_bytes) for e in self._listing(p, strict)]
        files.sort(key=lambda f: (not f.is_directory, f.name))
        return files

    def _listing(self, path: VPath, strict: bool = False) -> list[ChildEntry]:
        found = self.stat(path)
        if not found.is_directory:
            raise NotDirectoryError(f"Not a directory: {path}")
        entries = []
        for entry in self._list_children(path):
            if _addressable(path, entry.name):
                entries.append(entry)
                continue
            if strict:
                raise StorageError(f"Unaddressable entry {entry.name!r} under {path}")
            logger.debug("Skipping unaddressable entry %r under %s", entry.name, path)
        return entries

    def open_read(self, file: VFile | VPath | str) -> BinaryIO:
        """Open a simple file for reading.  The caller closes the stream."""
        if isinstance(file, VFile):
            p = self._checked(file.path)
            kind = file.kind
        else:
            p = self._checked(file)
            kind = self.stat(p).kind
        if kind is FileKind.DIRECTORY:
            raise IsDirectoryError(f"Is a directory: {p}")
        return self._open_read(p)

    def tree(
        self,
        path: VPath | str,
        depth: int | None = None,
        *,
        sort_key: Callable[[VFile], object] | None = dir_first_then_name,
        predicate: Callable[[VFile], bool] | None = None,
    ) -> TreeNode:
        """Directory tree rooted at *path* (see :func:`unifs.fs.tree.build_tree`)."""
        (node,) = build_tree(
            [self.stat(path)], depth=depth, sort_key=sort_key, predicate=predicate
        )
        return node

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def mkdir(self, path: VPath | str) -> VFile:
        """Create a directory.  The position must be free and the parent must exist."""
        p = self._checked(path)
        if p.is_root:
            raise ConflictError("Root directory already exists")
        existing = self._stat(p)
        if existing is not None:
            if existing.is_directory:
                raise ConflictError(f"Directory already exists: {p}")
            raise ConflictError(f"Path exists as file: {p}")
        self._require_parent_directory(p)
        created = self._make_directory(p)
        logger.debug("mkdir %s on %r", p, self)
        return created

    def mk_file(
        self,
        path: VPath | str,
        data: BinaryIO | bytes,
        *,
        chunk_size: int | None = None,
    ) -> VFile:
        """Create a new simple file from *data*.

        Not an overwrite or append: anything already at *path* is a
        conflict.  A stream passed in stays open; the caller closes it.
        """
        p = self._checked(path)
        stream: BinaryIO = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        if p.is_root:
            raise ConflictError("Root directory already exists")
        if self._stat(p) is not None:
            raise ConflictError(f"Path already exists: {p}")
        self._require_parent_directory(p)
        size = max(chunk_size or DEFAULT_CHUNK_SIZE, self.min_chunk_size)
        created = self._write_file(p, stream, size)
        logger.debug("mk_file %s (%d bytes) on %r", p, created.size_bytes, self)
        return created

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def rm_file(self, path: VPath | str) -> None:
        p = self._checked(path)
        found = self.stat(p)
        if not found.is_simple_file:
            raise NotFileError(f"Not a file: {p}")
        self._remove_file(p)
        logger.debug("rm_file %s on %r", p, self)

    def rmdir(self, path: VPath | str, recursive: bool = False) -> None:
        """Remove a directory; with ``recursive`` also everything below it."""
        p = self._checked(path)
        if p.is_root:
            raise ConflictError("Cannot remove the root directory")
        found = self.stat(p)
        if not found.is_directory:
            raise NotDirectoryError(f"Not a directory: {p}")
        if recursive:
            self._remove_tree(p)
        else:
            if not self._is_empty_directory(p):
                raise ConflictError(f"Directory not empty: {p}")
            self._remove_empty_directory(p)
        logger.debug("rmdir %s (recursive=%s) on %r", p, recursive, self)

    def rm_if_exists(self, path: VPath | str) -> None:
        """Remove whatever is at *path*, recursively; no-op when nothing is there."""
        found = self.resolve(path)
        if found is None:
            return
        if found.is_directory:
            self.rmdir(found.path, recursive=True)
        else:
            self.rm_file(found.path)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    def copy(self, src: VFile | VPath | str, dst: VPath | str, *, buffer_size: int | None = None) -> None:
        """Recursively copy *src* (from this session) to *dst* (any session)."""
        from .copy import copy_tree

        src_file = src if isinstance(src, VFile) else self.stat(src)
        self._checked(src_file.path)
        dst_path = self._root.join(dst) if isinstance(dst, str) else dst
        copy_tree(src_file, dst_path, buffer_size=buffer_size)

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _stat(self, path: VPath) -> VFile | None:
        """Stat a non-root path."""

    @abstractmethod
    def _list_children(self, path: VPath) -> list[ChildEntry]:
        """Immediate children of an existing directory."""

    def _is_empty_directory(self, path: VPath) -> bool:
        """True if the directory holds nothing, hidden entries included."""
        return not self._list_children(path)

    @abstractmethod
    def _make_directory(self, path: VPath) -> VFile: ...

    @abstractmethod
    def _write_file(self, path: VPath, stream: BinaryIO, chunk_size: int) -> VFile: ...

    @abstractmethod
    def _open_read(self, path: VPath) -> BinaryIO: ...

    @abstractmethod
    def _remove_file(self, path: VPath) -> None: ...

    @abstractmethod
    def _remove_empty_directory(self, path: VPath) -> None: ...

    @abstractmethod
    def _remove_tree(self, path: VPath) -> None: ...

    @abstractmethod
    def _release(self) -> None:
        """Release the backend connection.  Called exactly once."""


def _addressable(parent: VPath, name: str) -> bool:
    """True if *name* can be joined onto *parent* as exactly one new segment."""
    if not name.strip() or name in (CURRENT_DIR, PARENT_DIR):
        return False
    try:
        parent.join(name)
    except InvalidPathError:
        return False
    return True
