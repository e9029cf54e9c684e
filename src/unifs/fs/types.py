"""Entity types: VFile, FileKind, ObjectStat, etc."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from .base import VFS
    from .paths import VPath
    from .tree import TreeNode


class FileKind(str, Enum):
    """Kind of entity found at a position."""

    SIMPLE_FILE = "simple_file"
    DIRECTORY = "directory"


class BackendType(str, Enum):
    """Backend-type tag used by the factory registry."""

    LOCAL = "local"
    MEMORY = "memory"
    SQL = "sql"
    S3 = "s3"
    FTP = "ftp"


@dataclass(frozen=True)
class VFile:
    """Stat snapshot of an entity at a ``VPath``.

    Valid only at the instant it was produced; nothing refreshes it.
    For directories ``size_bytes`` is always 0 on the backends shipped
    with unifs.
    """

    path: VPath
    kind: FileKind
    size_bytes: int = 0

    def __post_init__(self) -> None:
        if self.size_bytes < 0:
            raise ValueError(f"size_bytes must be >= 0, got {self.size_bytes}")

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_directory(self) -> bool:
        return self.kind is FileKind.DIRECTORY

    @property
    def is_simple_file(self) -> bool:
        return self.kind is FileKind.SIMPLE_FILE

    @property
    def vfs(self) -> VFS:
        return self.path.vfs

    def open_read(self) -> BinaryIO:
        return self.vfs.open_read(self)

    def list_files(self) -> list[VFile]:
        return self.vfs.list_files(self.path)

    def copy_to(self, dst: VPath) -> None:
        self.vfs.copy(self, dst)

    def tree(self, depth: int | None = None) -> TreeNode:
        return self.vfs.tree(self.path, depth=depth)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.path.path}"


@dataclass(frozen=True)
class ObjectStat:
    """Driver-level stat record for one flat-store entry.

    ``key`` never starts with ``/``.  Directory entries (common
    prefixes) end with ``/``.
    """

    key: str
    kind: FileKind
    size_bytes: int = 0


@dataclass(frozen=True)
class DeleteFailure:
    """One key that a batch delete could not remove."""

    key: str
    message: str


@dataclass(frozen=True)
class ChildEntry:
    """One immediate child reported by a directory listing."""

    name: str
    kind: FileKind
    size_bytes: int = 0
