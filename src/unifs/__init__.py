"""unifs: one virtual filesystem contract over local disk and flat object stores.

Paths, stat snapshots, directory emulation for key/prefix stores and
recursive copy between any two backends.
"""

__version__ = "0.1.0"

from unifs.fs import (
    VFS,
    BackendType,
    ConflictError,
    ConstructionError,
    DirectoryStrategyKind,
    FTPConfig,
    FileKind,
    ForeignPathError,
    InvalidPathError,
    IsDirectoryError,
    LocalDiskConfig,
    MemoryConfig,
    NotDirectoryError,
    NotFileError,
    PathNotFoundError,
    S3Config,
    SessionClosedError,
    SQLConfig,
    StorageError,
    TreeNode,
    UnifsError,
    VFile,
    VPath,
    build_vfs,
    copy_tree,
)

__all__ = [
    "VFS",
    "BackendType",
    "ConflictError",
    "ConstructionError",
    "DirectoryStrategyKind",
    "FTPConfig",
    "FileKind",
    "ForeignPathError",
    "InvalidPathError",
    "IsDirectoryError",
    "LocalDiskConfig",
    "MemoryConfig",
    "NotDirectoryError",
    "NotFileError",
    "PathNotFoundError",
    "S3Config",
    "SQLConfig",
    "SessionClosedError",
    "StorageError",
    "TreeNode",
    "UnifsError",
    "VFile",
    "VPath",
    "__version__",
    "build_vfs",
    "copy_tree",
]
