"""Path and object-key utilities shared by sessions and drivers."""

from __future__ import annotations

import posixpath

PATH_SEPARATOR = "/"
CURRENT_DIR = "."
PARENT_DIR = ".."

MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a virtual file system path.

    - Ensures leading /
    - Resolves .. and . references
    - Removes double slashes
    - Removes trailing slash (except for root)

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("/foo//bar.txt") -> "/foo/bar.txt"
        normalize_path("/foo/../bar.txt") -> "/bar.txt"
        normalize_path("/foo/") -> "/foo"
        normalize_path("") -> "/"
    """
    if not path:
        return "/"

    path = path.strip()

    if not path.startswith("/"):
        path = "/" + path

    path = posixpath.normpath(path)

    # normpath keeps a leading "//" per POSIX
    if path.startswith("//"):
        path = "/" + path.lstrip("/")

    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return path


def validate_segment(name: str) -> tuple[bool, str]:
    """Validate a single path segment.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if "\x00" in name:
        return False, "Path contains null bytes"

    for ch in name:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            return False, f"Path contains control character: 0x{code:02x}"

    if len(name) > MAX_NAME_LENGTH:
        return False, f"Filename too long (max {MAX_NAME_LENGTH} characters)"

    return True, ""


# =============================================================================
# Object Key Utilities
# =============================================================================


def path_to_key(path: str) -> str:
    """Convert a canonical virtual path to an object key.

    Examples:
        path_to_key("/a/b.txt") -> "a/b.txt"
        path_to_key("/") -> ""
    """
    return normalize_path(path).lstrip("/")


def dir_prefix(path: str) -> str:
    """Listing prefix for the directory at *path*.

    Examples:
        dir_prefix("/a/b") -> "a/b/"
        dir_prefix("/") -> ""
    """
    key = path_to_key(path)
    return key + PATH_SEPARATOR if key else ""


def child_name(prefix: str, key: str) -> str:
    """Strip *prefix* from *key* and return the immediate child name.

    Examples:
        child_name("a/", "a/b.txt") -> "b.txt"
        child_name("a/", "a/c/") -> "c"
    """
    if not key.startswith(prefix):
        raise ValueError(f"Key {key!r} is not under prefix {prefix!r}")
    rest = key[len(prefix):]
    return rest.split(PATH_SEPARATOR, 1)[0]
