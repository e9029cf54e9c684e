"""ObjectStoreFileSystem: hierarchical session over a flat key store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, BinaryIO

from .base import VFS
from .directories import DirectoryStrategyKind, build_strategy
from .exceptions import InvalidPathError
from .types import BackendType, FileKind, VFile

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .directories import DirectoryStrategy
    from .paths import VPath
    from .protocol import ObjectStoreDriver
    from .types import ChildEntry

logger = logging.getLogger(__name__)


class ObjectStoreFileSystem(VFS):
    """``VFS`` served by an ``ObjectStoreDriver`` plus a ``DirectoryStrategy``.

    An exact key is a simple file; a directory is whatever the strategy
    says exists under the key prefix.  When both a file and a prefix
    share a name, the file wins.

    Thread-safe as long as the driver is; every driver shipped with
    unifs is.  The driver is closed together with the session.
    """

    def __init__(
        self,
        driver: ObjectStoreDriver,
        *,
        directory_strategy: DirectoryStrategyKind | str = DirectoryStrategyKind.NATIVE_PREFIX,
        exclude_names: Iterable[str] = (),
        backend_type: BackendType = BackendType.MEMORY,
    ) -> None:
        super().__init__()
        self.backend_type = backend_type
        self._driver = driver
        self._strategy = build_strategy(directory_strategy, driver, exclude_names)
        self.min_chunk_size = max(1, driver.min_chunk_size)
        self._mark_open()

    @property
    def driver(self) -> ObjectStoreDriver:
        return self._driver

    @property
    def strategy(self) -> DirectoryStrategy:
        return self._strategy

    def __repr__(self) -> str:
        return (
            f"ObjectStoreFileSystem({type(self._driver).__name__}, "
            f"strategy={self._strategy.kind.value}, state={self.state.value})"
        )

    def _reject_reserved(self, path: VPath) -> None:
        if self._strategy.is_reserved_name(path.name):
            raise InvalidPathError(f"Name is reserved by the directory strategy: {path}")

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def _stat(self, path: VPath) -> VFile | None:
        if self._strategy.is_reserved_name(path.name):
            return None
        found = self._driver.stat(path.key)
        if found is not None:
            return VFile(path, FileKind.SIMPLE_FILE, found.size_bytes)
        if self._strategy.directory_exists(path):
            return VFile(path, FileKind.DIRECTORY, 0)
        return None

    def _list_children(self, path: VPath) -> list[ChildEntry]:
        return self._strategy.list_children(path)

    def _make_directory(self, path: VPath) -> VFile:
        self._reject_reserved(path)
        self._strategy.mkdir(path)
        return VFile(path, FileKind.DIRECTORY, 0)

    def _write_file(self, path: VPath, stream: BinaryIO, chunk_size: int) -> VFile:
        self._reject_reserved(path)
        size = self._driver.create_and_write(path.key, stream, chunk_size)
        return VFile(path, FileKind.SIMPLE_FILE, size)

    def _open_read(self, path: VPath) -> BinaryIO:
        return self._driver.open_read(path.key)

    def _remove_file(self, path: VPath) -> None:
        self._driver.delete_one(path.key)

    def _is_empty_directory(self, path: VPath) -> bool:
        return self._strategy.is_empty(path)

    def _remove_empty_directory(self, path: VPath) -> None:
        self._strategy.remove_empty(path)

    def _remove_tree(self, path: VPath) -> None:
        self._strategy.remove_tree(path)

    def _release(self) -> None:
        self._driver.close()
