"""Recursive copy between any two sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import ConflictError

if TYPE_CHECKING:
    from .paths import VPath
    from .types import VFile

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 64 * 1024  # 64KiB


def effective_buffer_size(src: VFile, dst: VPath, buffer_size: int | None = None) -> int:
    """Largest of the requested size and both backends' minimum chunk sizes."""
    requested = buffer_size if buffer_size is not None else DEFAULT_BUFFER_SIZE
    if requested <= 0:
        raise ValueError(f"buffer_size must be positive, got {requested}")
    return max(requested, src.vfs.min_chunk_size, dst.vfs.min_chunk_size)


def copy_tree(src: VFile, dst: VPath, *, buffer_size: int | None = None) -> None:
    """Copy *src* (file or directory) to the free position *dst*.

    *src* and *dst* may belong to different sessions, or to the same
    one; bytes always stream through this process.  Directories are
    created before their children, which are copied in name order.

    A source entry whose name cannot be addressed raises ``StorageError``
    instead of being skipped.  The first error stops the copy and
    propagates unchanged.  Nothing is rolled back: entries copied
    before the failure stay in place.
    """
    if dst.is_root:
        raise ConflictError("Cannot copy onto the root directory")
    if src.is_directory and dst.is_relative_to(src.path):
        raise ConflictError(f"Cannot copy {src.path} into itself: {dst}")
    dst_vfs = dst.vfs
    if dst_vfs.exists(dst):
        raise ConflictError(f"Destination already exists: {dst}")
    size = effective_buffer_size(src, dst, buffer_size)
    _copy_entry(src, dst, size)


def _copy_entry(src: VFile, dst: VPath, buffer_size: int) -> None:
    if src.is_directory:
        dst.vfs.mkdir(dst)
        logger.debug("copy dir %s -> %s", src.path, dst)
        for child in sorted(src.vfs.list_files(src.path, strict=True), key=lambda f: f.name):
            _copy_entry(child, dst.join(child.name), buffer_size)
        return
    with src.vfs.open_read(src) as stream:
        dst.vfs.mk_file(dst, stream, chunk_size=buffer_size)
    logger.debug("copy file %s -> %s (%d bytes)", src.path, dst, src.size_bytes)
