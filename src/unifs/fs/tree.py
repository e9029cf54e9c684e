"""Depth-limited directory trees built from VFS listings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import NotDirectoryError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from .types import VFile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sort keys
# ---------------------------------------------------------------------------


def dir_first(file: VFile) -> object:
    """Directories before simple files; ties keep listing order."""
    return not file.is_directory


def by_name(file: VFile) -> object:
    return file.name


def dir_first_then_name(file: VFile) -> object:
    return (not file.is_directory, file.name)


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


@dataclass
class TreeNode:
    """One entity in a tree plus the children that were expanded under it."""

    file: VFile
    children: list[TreeNode] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.file.name

    def walk(self) -> Iterator[TreeNode]:
        """Pre-order traversal starting at this node."""
        yield self
        for child in self.children:
            yield from child.walk()


def build_tree(
    roots: Iterable[VFile],
    depth: int | None = None,
    sort_key: Callable[[VFile], object] | None = dir_first_then_name,
    predicate: Callable[[VFile], bool] | None = None,
) -> list[TreeNode]:
    """Expand each directory in *roots* into a ``TreeNode``.

    *depth* counts edges below a root: ``0`` returns bare roots, ``1``
    adds their children, ``None`` expands everything.  *predicate*
    filters children (a rejected directory is not descended into).
    *sort_key* orders siblings; ``None`` keeps the listing order.
    """
    if depth is not None and depth < 0:
        raise ValueError(f"depth must be >= 0, got {depth}")
    nodes = []
    for root in roots:
        if not root.is_directory:
            raise NotDirectoryError(f"Tree root is not a directory: {root.path}")
        nodes.append(_expand(root, depth, sort_key, predicate))
    return nodes


def _expand(
    file: VFile,
    depth: int | None,
    sort_key: Callable[[VFile], object] | None,
    predicate: Callable[[VFile], bool] | None,
) -> TreeNode:
    node = TreeNode(file)
    if not file.is_directory or depth == 0:
        return node
    children = file.list_files()
    if predicate is not None:
        children = [c for c in children if predicate(c)]
    if sort_key is not None:
        children.sort(key=sort_key)  # type: ignore[arg-type]
    remaining = None if depth is None else depth - 1
    node.children = [_expand(child, remaining, sort_key, predicate) for child in children]
    return node
