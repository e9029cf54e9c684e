"""VPath: immutable, canonical path values and navigation algebra."""

from __future__ import annotations

import functools
import weakref
from typing import TYPE_CHECKING, BinaryIO

from .exceptions import InvalidPathError, SessionClosedError
from .utils import (
    CURRENT_DIR,
    MAX_PATH_LENGTH,
    PARENT_DIR,
    PATH_SEPARATOR,
    validate_segment,
)

if TYPE_CHECKING:
    from .base import VFS
    from .types import VFile


@functools.total_ordering
class VPath:
    """A position inside one VFS session.

    A ``VPath`` says nothing about whether an entity exists at that
    position; it is pure navigation.  Every method that changes the
    position returns a new instance.

    The owning session is held through a weak reference so that path
    values never keep a session (and its connection) alive.  Equality
    compares the weak references (the live session, or the reference
    object itself once the session is gone) plus the canonical path;
    ordering is lexicographic over the canonical path.

    Usage::

        root = fs.root
        ab = root.join("a/b")          # "/a/b"
        abcd = ab.join("c//d")         # "/a/b/c/d"
        assert abcd.back(2) == ab
        assert root.back() == root
    """

    __slots__ = ("_parts", "_vfs_id", "_vfs_ref")

    def __init__(self, vfs: VFS, path: str = PATH_SEPARATOR) -> None:
        if vfs is None:
            raise ValueError("vfs is required")
        if path is None or not path.strip():
            raise InvalidPathError("path is empty")
        object.__setattr__(self, "_vfs_ref", weakref.ref(vfs))
        object.__setattr__(self, "_vfs_id", id(vfs))
        object.__setattr__(self, "_parts", _resolve_segments((), path))

    @classmethod
    def of(cls, vfs: VFS, *parts: str) -> VPath:
        """Root of *vfs* joined with *parts*; the root itself when none are given."""
        root = vfs.root
        if not parts:
            return root
        return root.join(PATH_SEPARATOR.join(parts))

    def _with_parts(self, parts: tuple[str, ...]) -> VPath:
        new = object.__new__(VPath)
        object.__setattr__(new, "_vfs_ref", self._vfs_ref)
        object.__setattr__(new, "_vfs_id", self._vfs_id)
        object.__setattr__(new, "_parts", parts)
        return new

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("VPath is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("VPath is immutable")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def join(self, relative: str) -> VPath:
        """Descend one or more levels.

        Repeated separators collapse, ``.`` is ignored and ``..`` steps
        back one level (stopping at the root).  The resulting path may not
        exceed ``MAX_PATH_LENGTH`` characters.
        """
        if relative is None or not relative.strip():
            raise InvalidPathError("Cannot join an empty path")
        return self._with_parts(_resolve_segments(self._parts, relative))

    def back(self, n: int = 1) -> VPath:
        """Go up *n* levels; the root is returned once it is reached."""
        if n < 0:
            raise InvalidPathError(f"Back count cannot be negative: {n}")
        if n == 0 or not self._parts:
            return self
        if n >= len(self._parts):
            return self._with_parts(())
        return self._with_parts(self._parts[:-n])

    @property
    def parent(self) -> VPath:
        return self.back()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        """Canonical absolute path string."""
        if not self._parts:
            return PATH_SEPARATOR
        return PATH_SEPARATOR + PATH_SEPARATOR.join(self._parts)

    @property
    def key(self) -> str:
        """Object-store key: the canonical path without its leading separator."""
        return PATH_SEPARATOR.join(self._parts)

    @property
    def parts(self) -> tuple[str, ...]:
        return self._parts

    @property
    def level(self) -> int:
        """Depth below the root; the root is level 0."""
        return len(self._parts)

    @property
    def name(self) -> str:
        """Last segment, or the separator itself for the root."""
        if not self._parts:
            return PATH_SEPARATOR
        return self._parts[-1]

    @property
    def is_root(self) -> bool:
        return not self._parts

    @property
    def vfs(self) -> VFS:
        """The owning session."""
        vfs = self._vfs_ref()
        if vfs is None:
            raise SessionClosedError(f"Session owning {self.path} no longer exists")
        return vfs

    def is_owned_by(self, vfs: VFS) -> bool:
        """True if *vfs* is the session this path belongs to."""
        return self._vfs_ref() is vfs

    def is_relative_to(self, other: VPath) -> bool:
        """True if *other* is this path or one of its ancestors."""
        return (
            self._vfs_ref == other._vfs_ref
            and self._parts[: len(other._parts)] == other._parts
        )

    # ------------------------------------------------------------------
    # Session shortcuts
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.vfs.exists(self)

    def resolve(self) -> VFile | None:
        return self.vfs.resolve(self)

    def mkdir(self) -> VFile:
        return self.vfs.mkdir(self)

    def mk_file(self, data: BinaryIO | bytes) -> VFile:
        return self.vfs.mk_file(self, data)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VPath):
            return NotImplemented
        return self._vfs_ref == other._vfs_ref and self._parts == other._parts

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, VPath):
            return NotImplemented
        return (self.path, self._vfs_id) < (other.path, other._vfs_id)

    def __hash__(self) -> int:
        return hash((self._vfs_id, self._parts))

    def __repr__(self) -> str:
        return f"VPath({self.path!r})"

    def __str__(self) -> str:
        return self.path


def _resolve_segments(base: tuple[str, ...], relative: str) -> tuple[str, ...]:
    parts = list(base)
    for segment in relative.split(PATH_SEPARATOR):
        if not segment or segment == CURRENT_DIR:
            continue
        if segment == PARENT_DIR:
            if parts:
                parts.pop()
            continue
        valid, error = validate_segment(segment)
        if not valid:
            raise InvalidPathError(f"{error}: {relative!r}")
        parts.append(segment)
    # separators included, one per segment
    if sum(len(p) + 1 for p in parts) > MAX_PATH_LENGTH:
        raise InvalidPathError(f"Path too long (max {MAX_PATH_LENGTH} characters)")
    return tuple(parts)
