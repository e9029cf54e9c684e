"""LocalDiskFileSystem: a VFS rooted at a directory on the host disk."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from .base import VFS
from .exceptions import ConflictError, ConstructionError, StorageError
from .types import BackendType, ChildEntry, FileKind, VFile

if TYPE_CHECKING:
    from .paths import VPath

logger = logging.getLogger(__name__)


class LocalDiskFileSystem(VFS):
    """Direct access to a host directory, which becomes the session root.

    Every operation maps to one or two system calls and is safe for
    concurrent use.  Symlinks are never followed: a path that crosses a
    symlink raises ``StorageError``, and listings skip symlinked entries.
    """

    backend_type = BackendType.LOCAL

    def __init__(self, root: Path | str, *, create_root: bool = False) -> None:
        super().__init__()
        host = Path(root).expanduser()
        if not host.exists():
            if not create_root:
                raise ConstructionError(f"Root directory does not exist: {host}")
            try:
                host.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConstructionError(f"Cannot create root directory {host}: {e}") from e
        if not host.is_dir():
            raise ConstructionError(f"Root path is not a directory: {host}")
        self.host_dir = host.resolve()
        self._mark_open()

    def __repr__(self) -> str:
        return f"LocalDiskFileSystem({str(self.host_dir)!r}, state={self.state.value})"

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve_path(self, path: VPath) -> Path:
        """Physical location of *path*, guaranteed to stay inside ``host_dir``."""
        if path.is_root:
            return self.host_dir

        current = self.host_dir
        for part in path.parts:
            current = current / part
            if current.is_symlink():
                raise StorageError(
                    f"Symlinks not allowed: {path} contains symlink at "
                    f"{current.relative_to(self.host_dir)}"
                )

        resolved = current.resolve()
        try:
            resolved.relative_to(self.host_dir)
        except ValueError:
            raise StorageError(f"Path traversal detected: {path} resolves outside root") from None
        return resolved

    # =========================================================================
    # Backend hooks
    # =========================================================================

    def _stat(self, path: VPath) -> VFile | None:
        physical = self._resolve_path(path)
        try:
            st = physical.stat()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise StorageError(f"Cannot stat {path}: {e}") from e
        if stat.S_ISDIR(st.st_mode):
            return VFile(path, FileKind.DIRECTORY, 0)
        return VFile(path, FileKind.SIMPLE_FILE, st.st_size)

    def _list_children(self, path: VPath) -> list[ChildEntry]:
        physical = self._resolve_path(path)
        entries: list[ChildEntry] = []
        with self._storage_errors("list", path), os.scandir(physical) as it:
            for entry in it:
                if entry.is_symlink():
                    logger.debug("Skipping symlink %s under %s", entry.name, path)
                    continue
                if entry.is_dir(follow_symlinks=False):
                    entries.append(ChildEntry(entry.name, FileKind.DIRECTORY, 0))
                else:
                    size = entry.stat(follow_symlinks=False).st_size
                    entries.append(ChildEntry(entry.name, FileKind.SIMPLE_FILE, size))
        entries.sort(key=lambda e: e.name)
        return entries

    def _is_empty_directory(self, path: VPath) -> bool:
        physical = self._resolve_path(path)
        with self._storage_errors("list", path), os.scandir(physical) as it:
            return next(it, None) is None

    def _make_directory(self, path: VPath) -> VFile:
        physical = self._resolve_path(path)
        try:
            physical.mkdir()
        except FileExistsError:
            raise ConflictError(f"Path already exists: {path}") from None
        except OSError as e:
            raise StorageError(f"Cannot create directory {path}: {e}") from e
        return VFile(path, FileKind.DIRECTORY, 0)

    def _write_file(self, path: VPath, stream: BinaryIO, chunk_size: int) -> VFile:
        """Write into a temp file beside the target, then hard-link it into place.

        ``os.link`` fails if the target exists, so a concurrent creator
        can never be overwritten and readers never see a partial file.
        """
        physical = self._resolve_path(path)
        size = 0
        with self._storage_errors("write", path):
            fd, tmp_path = tempfile.mkstemp(dir=str(physical.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    while True:
                        chunk = stream.read(chunk_size)
                        if not chunk:
                            break
                        f.write(chunk)
                        size += len(chunk)
                try:
                    os.link(tmp_path, physical)
                except FileExistsError:
                    raise ConflictError(f"Path already exists: {path}") from None
            finally:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
        return VFile(path, FileKind.SIMPLE_FILE, size)

    def _open_read(self, path: VPath) -> BinaryIO:
        physical = self._resolve_path(path)
        with self._storage_errors("read", path):
            return open(physical, "rb")  # noqa: SIM115

    def _remove_file(self, path: VPath) -> None:
        physical = self._resolve_path(path)
        with self._storage_errors("delete", path):
            physical.unlink()

    def _remove_empty_directory(self, path: VPath) -> None:
        physical = self._resolve_path(path)
        with self._storage_errors("delete", path):
            physical.rmdir()

    def _remove_tree(self, path: VPath) -> None:
        physical = self._resolve_path(path)
        with self._storage_errors("delete", path):
            shutil.rmtree(physical)

    def _release(self) -> None:
        """Nothing to release for local disk."""
