"""Filesystem layer: paths, sessions, directory strategies, drivers, copy."""

from unifs.fs.base import VFS, SessionState
from unifs.fs.config import FTPConfig, LocalDiskConfig, MemoryConfig, S3Config, SQLConfig
from unifs.fs.copy import DEFAULT_BUFFER_SIZE, copy_tree
from unifs.fs.directories import (
    MARKER_NAME,
    DirectoryStrategy,
    DirectoryStrategyKind,
    build_strategy,
)
from unifs.fs.drivers import InMemoryObjectStore, SQLObjectStore
from unifs.fs.exceptions import (
    ConflictError,
    ConstructionError,
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
from unifs.fs.factory import BackendRegistry, build_vfs, default_registry
from unifs.fs.ftp import FTPFileSystem
from unifs.fs.local_disk import LocalDiskFileSystem
from unifs.fs.object_fs import ObjectStoreFileSystem
from unifs.fs.paths import VPath
from unifs.fs.protocol import ObjectStoreDriver
from unifs.fs.tree import TreeNode, build_tree, by_name, dir_first, dir_first_then_name
from unifs.fs.types import BackendType, ChildEntry, DeleteFailure, FileKind, ObjectStat, VFile

__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "MARKER_NAME",
    "VFS",
    "BackendRegistry",
    "BackendType",
    "ChildEntry",
    "ConflictError",
    "ConstructionError",
    "DeleteFailure",
    "DirectoryStrategy",
    "DirectoryStrategyKind",
    "FTPConfig",
    "FTPFileSystem",
    "FileKind",
    "ForeignPathError",
    "InMemoryObjectStore",
    "InvalidPathError",
    "IsDirectoryError",
    "LocalDiskConfig",
    "LocalDiskFileSystem",
    "MemoryConfig",
    "NotDirectoryError",
    "NotFileError",
    "ObjectStat",
    "ObjectStoreDriver",
    "ObjectStoreFileSystem",
    "PathNotFoundError",
    "S3Config",
    "SQLConfig",
    "SQLObjectStore",
    "SessionClosedError",
    "SessionState",
    "StorageError",
    "TreeNode",
    "UnifsError",
    "VFile",
    "VPath",
    "build_strategy",
    "build_tree",
    "build_vfs",
    "by_name",
    "copy_tree",
    "default_registry",
    "dir_first",
    "dir_first_then_name",
]
