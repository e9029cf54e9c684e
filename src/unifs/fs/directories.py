"""DirectoryStrategy: hierarchical directories emulated on a flat key store.

A flat store has no directory primitive: a "directory" is inferred from
keys that share its path as a prefix.  Each strategy below decides how
an *empty* directory is represented.  One strategy is chosen when a
session is built and is never switched afterwards.

``NATIVE_PREFIX``
    No placeholder object is written.  ``mkdir`` records the path in a
    process-local pending-set so the directory is observable before it
    has any child.  The pending-set is not durable: after a restart, a
    directory that never received a child reports ``exists == False``.
    This is an accepted, documented gap of this strategy.

``MARKER_FILE``
    ``mkdir`` writes a zero-length object named ``.unifs-dir`` inside the
    directory.  Listings hide the marker and the name is reserved.

``API_FOLDER``
    ``mkdir`` writes a zero-length object whose key is the directory
    prefix itself (``a/b/``), the folder convention of S3 consoles.
    Listings hide that self-entry.

Callers (``ObjectStoreFileSystem``) have already checked existence and
kinds; strategies never re-check whether a path is a file.
"""

from __future__ import annotations

import io
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import ConstructionError, StorageError
from .types import ChildEntry, FileKind
from .utils import PATH_SEPARATOR, child_name, dir_prefix

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .paths import VPath
    from .protocol import ObjectStoreDriver

logger = logging.getLogger(__name__)

MARKER_NAME = ".unifs-dir"


class DirectoryStrategyKind(str, Enum):
    """Closed set of directory emulation strategies."""

    NATIVE_PREFIX = "native_prefix"
    MARKER_FILE = "marker_file"
    API_FOLDER = "api_folder"


class DirectoryStrategy(ABC):
    """Shared listing/removal logic; subclasses decide how empty dirs persist."""

    kind: DirectoryStrategyKind

    def __init__(self, driver: ObjectStoreDriver, exclude_names: Iterable[str] = ()) -> None:
        self._driver = driver
        self._exclude_names = frozenset(exclude_names)

    # ------------------------------------------------------------------
    # Existence
    # ------------------------------------------------------------------

    def directory_exists(self, path: VPath) -> bool:
        """True if *path* is a directory.  The root always is."""
        if path.is_root:
            return True
        return bool(self._driver.list_children(dir_prefix(path.path))) or self._has_placeholder(path)

    @abstractmethod
    def _has_placeholder(self, path: VPath) -> bool:
        """True if an empty directory at *path* is recorded by this strategy."""

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_children(self, path: VPath) -> list[ChildEntry]:
        """Immediate children of the directory at *path*, sorted by name."""
        prefix = dir_prefix(path.path)
        children: dict[str, ChildEntry] = {}
        for stat in self._driver.list_children(prefix):
            if self._is_hidden_key(prefix, stat.key):
                continue
            name = child_name(prefix, stat.key)
            if not name:
                continue
            kind = FileKind.DIRECTORY if stat.key.endswith(PATH_SEPARATOR) else stat.kind
            size = stat.size_bytes if kind is FileKind.SIMPLE_FILE else 0
            children.setdefault(name, ChildEntry(name, kind, size))
        for name in self._extra_children(path):
            children.setdefault(name, ChildEntry(name, FileKind.DIRECTORY, 0))
        for name in self._exclude_names:
            children.pop(name, None)
        return [children[name] for name in sorted(children)]

    def _is_hidden_key(self, prefix: str, key: str) -> bool:
        return False

    def _extra_children(self, path: VPath) -> Iterable[str]:
        return ()

    def is_reserved_name(self, name: str) -> bool:
        return False

    # ------------------------------------------------------------------
    # Create / Remove
    # ------------------------------------------------------------------

    @abstractmethod
    def mkdir(self, path: VPath) -> None: ...

    def _placeholder_key(self, path: VPath) -> str | None:
        """Key this strategy writes for an empty directory, if any."""
        return None

    def is_empty(self, path: VPath) -> bool:
        """True if no key other than this strategy's placeholder lives under *path*.

        Raw keys are counted, so entries hidden from listings (excluded
        names, unaddressable names) keep the directory non-empty.
        """
        placeholder = self._placeholder_key(path)
        for key in self._driver.iter_keys(dir_prefix(path.path)):
            if key != placeholder:
                return False
        return not self._extra_children(path)

    def remove_empty(self, path: VPath) -> None:
        """Remove an empty directory: only the placeholder is deleted."""
        placeholder = self._placeholder_key(path)
        if placeholder is not None:
            self._driver.delete_one(placeholder)
        self._forget(path)

    def remove_tree(self, path: VPath) -> None:
        """Delete every key under the directory prefix in one batch."""
        keys = list(self._driver.iter_keys(dir_prefix(path.path)))
        if keys:
            failures = self._driver.delete_many(keys)
            if failures:
                detail = ", ".join(f"{f.key} ({f.message})" for f in failures)
                raise StorageError(f"Failed to delete {len(failures)} key(s) under {path}: {detail}")
        logger.debug("Removed %d key(s) under %s", len(keys), path)
        self._forget(path)

    def _forget(self, path: VPath) -> None:
        """Drop any in-process record of *path* and its descendants."""


class NativePrefixStrategy(DirectoryStrategy):
    """Prefix inference plus a process-local pending-set for empty directories."""

    kind = DirectoryStrategyKind.NATIVE_PREFIX

    def __init__(self, driver: ObjectStoreDriver, exclude_names: Iterable[str] = ()) -> None:
        super().__init__(driver, exclude_names)
        self._pending: set[str] = set()
        self._lock = threading.Lock()

    @property
    def pending(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    def _has_placeholder(self, path: VPath) -> bool:
        with self._lock:
            return path.path in self._pending

    def _extra_children(self, path: VPath) -> Iterable[str]:
        parent = path.path
        prefix = parent.rstrip(PATH_SEPARATOR) + PATH_SEPARATOR
        with self._lock:
            pending = list(self._pending)
        names = []
        for entry in pending:
            if entry.startswith(prefix):
                rest = entry[len(prefix):]
                if rest and PATH_SEPARATOR not in rest:
                    names.append(rest)
        return names

    def mkdir(self, path: VPath) -> None:
        with self._lock:
            self._pending.add(path.path)

    def _forget(self, path: VPath) -> None:
        prefix = path.path + PATH_SEPARATOR
        with self._lock:
            stale = {p for p in self._pending if p == path.path or p.startswith(prefix)}
            self._pending -= stale
        if stale:
            logger.debug("Evicted %d pending director(ies) under %s", len(stale), path)


class MarkerFileStrategy(DirectoryStrategy):
    """Zero-length ``.unifs-dir`` object inside every created directory."""

    kind = DirectoryStrategyKind.MARKER_FILE

    @staticmethod
    def _marker_key(path: VPath) -> str:
        return dir_prefix(path.path) + MARKER_NAME

    def _has_placeholder(self, path: VPath) -> bool:
        return self._driver.stat(self._marker_key(path)) is not None

    def _placeholder_key(self, path: VPath) -> str | None:
        return self._marker_key(path)

    def _is_hidden_key(self, prefix: str, key: str) -> bool:
        return key == prefix + MARKER_NAME

    def is_reserved_name(self, name: str) -> bool:
        return name == MARKER_NAME

    def mkdir(self, path: VPath) -> None:
        self._driver.create_and_write(self._marker_key(path), io.BytesIO(b""), self._driver.min_chunk_size)


class ApiFolderStrategy(DirectoryStrategy):
    """Zero-length object keyed by the directory prefix itself (``a/b/``)."""

    kind = DirectoryStrategyKind.API_FOLDER

    def _has_placeholder(self, path: VPath) -> bool:
        return self._driver.stat(dir_prefix(path.path)) is not None

    def _placeholder_key(self, path: VPath) -> str | None:
        return dir_prefix(path.path)

    def _is_hidden_key(self, prefix: str, key: str) -> bool:
        return key == prefix

    def mkdir(self, path: VPath) -> None:
        self._driver.create_and_write(dir_prefix(path.path), io.BytesIO(b""), self._driver.min_chunk_size)


_STRATEGIES: dict[DirectoryStrategyKind, type[DirectoryStrategy]] = {
    DirectoryStrategyKind.NATIVE_PREFIX: NativePrefixStrategy,
    DirectoryStrategyKind.MARKER_FILE: MarkerFileStrategy,
    DirectoryStrategyKind.API_FOLDER: ApiFolderStrategy,
}


def build_strategy(
    kind: DirectoryStrategyKind | str,
    driver: ObjectStoreDriver,
    exclude_names: Iterable[str] = (),
) -> DirectoryStrategy:
    """Instantiate the strategy for *kind*."""
    try:
        kind = DirectoryStrategyKind(kind)
    except ValueError:
        raise ConstructionError(f"Unknown directory strategy: {kind!r}") from None
    return _STRATEGIES[kind](driver, exclude_names)
