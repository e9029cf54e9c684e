"""FTPFileSystem: a VFS over a remote directory reached through ftplib."""

from __future__ import annotations

import ftplib
import logging
import posixpath
import tempfile
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, BinaryIO

from .base import VFS
from .exceptions import ConflictError, ConstructionError, StorageError
from .types import BackendType, ChildEntry, FileKind, VFile
from .utils import normalize_path

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from .paths import VPath

logger = logging.getLogger(__name__)

DEFAULT_PORT = 21
SPOOL_MAX_SIZE = 8 * 1024 * 1024  # 8MiB, larger downloads spill to a temp file
LIST_FACTS = ["type", "size"]

# MLSD entries describing the listed directory itself and its parent
_SELF_TYPES = frozenset({"cdir", "pdir"})


# =============================================================================
# Reply helpers
# =============================================================================


def reply_code(error: BaseException) -> str:
    """Three-digit reply code carried by an ftplib error, or ``""``."""
    text = str(error)
    return text[:3] if text[:3].isdigit() else ""


def is_missing(error: BaseException) -> bool:
    """True for a permanent "file unavailable" (550) reply."""
    return isinstance(error, ftplib.error_perm) and reply_code(error) == "550"


def entry_from_facts(name: str, facts: Mapping[str, str]) -> ChildEntry | None:
    """Map one MLSD entry to a ``ChildEntry``.

    Only plain files and directories are visible; ``cdir``/``pdir``
    entries, links and OS-specific types yield ``None``.
    """
    kind = facts.get("type", "").lower()
    if kind == "dir":
        return ChildEntry(name, FileKind.DIRECTORY, 0)
    if kind == "file":
        return ChildEntry(name, FileKind.SIMPLE_FILE, int(facts.get("size") or 0))
    return None


# =============================================================================
# Session
# =============================================================================


class FTPFileSystem(VFS):
    """A remote FTP directory, which becomes the session root.

    One control connection is shared by every operation and guarded by
    a lock, so the session is thread-safe but serial.  Stat and listing
    use ``MLSD``; the server must support it.

    FTP has no create-if-absent primitive: ``mk_file`` checks and then
    stores while holding the session lock, which excludes writers in this
    session but not other clients of the same server.

    Reads are downloaded in full into a spooled temp file before the
    stream is returned, so the control connection is never held by a
    caller.
    """

    backend_type = BackendType.FTP

    def __init__(
        self,
        host: str | None = None,
        *,
        port: int = DEFAULT_PORT,
        user: str = "anonymous",
        password: str = "",
        root: str = "/",
        passive: bool = True,
        timeout: float = 10.0,
        encoding: str = "utf-8",
        client: Any = None,
    ) -> None:
        super().__init__()
        self.host = host
        self._base = normalize_path(root)
        self._lock = threading.RLock()
        if client is None:
            if not host:
                raise ConstructionError("host is required when no client is given")
            client = ftplib.FTP(encoding=encoding)
            try:
                client.connect(host, port, timeout=timeout)
                client.login(user, password)
                client.set_pasv(passive)
            except ftplib.all_errors as e:
                client.close()
                raise ConstructionError(f"Cannot connect to ftp://{host}:{port}: {e}") from e
        try:
            client.cwd(self._base)
        except ftplib.all_errors as e:
            client.close()
            raise ConstructionError(f"Root directory unavailable: {self._base}: {e}") from e
        self._client = client
        self._mark_open()

    def __repr__(self) -> str:
        return f"FTPFileSystem({self.host!r}, root={self._base!r}, state={self.state.value})"

    # =========================================================================
    # Helpers
    # =========================================================================

    def _remote(self, path: VPath) -> str:
        """Server-side absolute path of *path*."""
        if path.is_root:
            return self._base
        return posixpath.join(self._base, path.key)

    @contextmanager
    def _ftp_errors(self, action: str, path: VPath) -> Iterator[None]:
        """Hold the connection lock and translate ftplib failures."""
        try:
            with self._lock:
                yield
        except ftplib.all_errors as e:
            raise StorageError(f"Cannot {action} {path}: {e}") from e

    def _entries(self, remote: str) -> list[ChildEntry]:
        entries = []
        for name, facts in self._client.mlsd(remote, facts=LIST_FACTS):
            entry = entry_from_facts(name, facts)
            if entry is None:
                logger.debug("Skipping %r (%s) under %s", name, facts.get("type"), remote)
                continue
            entries.append(entry)
        return entries

    # =========================================================================
    # Backend hooks
    # =========================================================================

    def _stat(self, path: VPath) -> VFile | None:
        parent = self._remote(path.back())
        with self._ftp_errors("stat", path):
            try:
                entries = self._entries(parent)
            except ftplib.error_perm as e:
                if is_missing(e):
                    return None
                raise
        for entry in entries:
            if entry.name == path.name:
                return VFile(path, entry.kind, entry.size_bytes)
        return None

    def _list_children(self, path: VPath) -> list[ChildEntry]:
        with self._ftp_errors("list", path):
            entries = self._entries(self._remote(path))
        entries.sort(key=lambda e: e.name)
        return entries

    def _is_empty_directory(self, path: VPath) -> bool:
        with self._ftp_errors("list", path):
            for _name, facts in self._client.mlsd(self._remote(path), facts=["type"]):
                if facts.get("type", "").lower() not in _SELF_TYPES:
                    return False
        return True

    def _make_directory(self, path: VPath) -> VFile:
        with self._ftp_errors("create directory", path):
            self._client.mkd(self._remote(path))
        return VFile(path, FileKind.DIRECTORY, 0)

    def _write_file(self, path: VPath, stream: BinaryIO, chunk_size: int) -> VFile:
        written = 0

        def count(block: bytes) -> None:
            nonlocal written
            written += len(block)

        with self._ftp_errors("write", path):
            if self._stat(path) is not None:
                raise ConflictError(f"Path already exists: {path}")
            self._client.storbinary(
                f"STOR {self._remote(path)}", stream, blocksize=chunk_size, callback=count
            )
        return VFile(path, FileKind.SIMPLE_FILE, written)

    def _open_read(self, path: VPath) -> BinaryIO:
        buffer = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)  # noqa: SIM115
        try:
            with self._ftp_errors("read", path):
                self._client.retrbinary(f"RETR {self._remote(path)}", buffer.write)
        except StorageError:
            buffer.close()
            raise
        buffer.seek(0)
        return buffer  # type: ignore[return-value]

    def _remove_file(self, path: VPath) -> None:
        with self._ftp_errors("delete", path):
            self._client.delete(self._remote(path))

    def _remove_empty_directory(self, path: VPath) -> None:
        with self._ftp_errors("delete", path):
            self._client.rmd(self._remote(path))

    def _remove_tree(self, path: VPath) -> None:
        with self._ftp_errors("delete", path):
            self._delete_tree(self._remote(path))

    def _delete_tree(self, remote: str) -> None:
        """Depth-first delete; the first failing command aborts."""
        for name, facts in list(self._client.mlsd(remote, facts=["type"])):
            kind = facts.get("type", "").lower()
            if kind in _SELF_TYPES:
                continue
            child = posixpath.join(remote, name)
            if kind == "dir":
                self._delete_tree(child)
            else:
                self._client.delete(child)
        self._client.rmd(remote)
        logger.debug("Removed remote directory %s", remote)

    def _release(self) -> None:
        with self._lock:
            try:
                self._client.quit()
            except ftplib.all_errors:
                logger.debug("QUIT failed for %r, closing the socket", self, exc_info=True)
                self._client.close()
