"""Custom exception hierarchy for the unifs filesystem layer."""


class UnifsError(Exception):
    """Base exception for all unifs filesystem errors."""


class ConstructionError(UnifsError):
    """Raised when a session cannot be built (unreachable backend, bad config)."""


class SessionClosedError(UnifsError):
    """Raised when a data operation is attempted on a closed session."""


class StorageError(UnifsError):
    """Raised on storage backend failures (disk I/O, DB connection, HTTP, etc.)."""


class ConflictError(UnifsError):
    """Raised when the target position is occupied or a non-empty delete is refused."""


class PathNotFoundError(UnifsError):
    """Raised when a file or directory path does not exist."""


class NotDirectoryError(UnifsError):
    """Raised when an operation requires a directory but finds a simple file."""


class NotFileError(UnifsError):
    """Raised when an operation requires a simple file but finds a directory."""


class IsDirectoryError(UnifsError):
    """Raised when a directory is opened for reading."""


class InvalidPathError(UnifsError, ValueError):
    """Raised on malformed path input or invalid navigation arguments."""


class ForeignPathError(UnifsError, ValueError):
    """Raised when a path owned by one session is handed to another."""
