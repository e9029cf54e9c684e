"""Shared fixtures for unifs tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from unifs.fs.directories import DirectoryStrategyKind
from unifs.fs.drivers.memory import InMemoryObjectStore
from unifs.fs.drivers.sql import SQLObjectStore
from unifs.fs.local_disk import LocalDiskFileSystem
from unifs.fs.object_fs import ObjectStoreFileSystem
from unifs.fs.types import BackendType

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Engine

    from unifs.fs.base import VFS


def _memory_engine() -> Engine:
    return create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with all tables created, shared across threads."""
    eng = _memory_engine()
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def local_fs(tmp_path) -> Iterator[LocalDiskFileSystem]:
    """Local-disk session rooted at a fresh temporary directory."""
    root = tmp_path / "root"
    root.mkdir()
    fs = LocalDiskFileSystem(root)
    yield fs
    fs.close()


@pytest.fixture
def memory_fs(store) -> Iterator[ObjectStoreFileSystem]:
    fs = ObjectStoreFileSystem(store)
    yield fs
    fs.close()


def _make_backend(kind: str, tmp_path, engine: Engine | None = None) -> VFS:
    if kind == "local":
        root = tmp_path / "disk"
        root.mkdir()
        return LocalDiskFileSystem(root)
    backend, _, strategy = kind.partition(":")
    if backend == "memory":
        return ObjectStoreFileSystem(InMemoryObjectStore(), directory_strategy=strategy)
    if engine is None:
        store = SQLObjectStore(_memory_engine(), owns_engine=True)
    else:
        store = SQLObjectStore(engine)
    return ObjectStoreFileSystem(
        store,
        directory_strategy=strategy,
        backend_type=BackendType.SQL,
    )


BACKENDS = [
    pytest.param("local", id="local"),
    *(
        pytest.param(f"memory:{k.value}", id=f"memory-{k.value}")
        for k in DirectoryStrategyKind
    ),
    *(pytest.param(f"sql:{k.value}", id=f"sql-{k.value}") for k in DirectoryStrategyKind),
]


@pytest.fixture(params=BACKENDS)
def vfs(request, tmp_path, engine) -> Iterator[VFS]:
    """Every backend/strategy combination that runs without a network."""
    fs = _make_backend(request.param, tmp_path, engine)
    yield fs
    fs.close()


@pytest.fixture
def make_vfs(tmp_path):
    """Factory for extra sessions; all of them are closed after the test."""
    made: list[VFS] = []
    counter = iter(range(1000))

    def _make(kind: str = "memory:native_prefix") -> VFS:
        if kind == "local":
            root = tmp_path / f"disk{next(counter)}"
            root.mkdir()
            fs: VFS = LocalDiskFileSystem(root)
        else:
            fs = _make_backend(kind, tmp_path)
        made.append(fs)
        return fs

    yield _make
    for fs in made:
        fs.close()
