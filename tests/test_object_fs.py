"""Tests for ObjectStoreFileSystem and the directory strategies."""

from __future__ import annotations

import io

import pytest

from unifs.fs.directories import (
    MARKER_NAME,
    ApiFolderStrategy,
    DirectoryStrategyKind,
    MarkerFileStrategy,
    NativePrefixStrategy,
    build_strategy,
)
from unifs.fs.drivers.memory import InMemoryObjectStore
from unifs.fs.exceptions import (
    ConflictError,
    ConstructionError,
    InvalidPathError,
    StorageError,
)
from unifs.fs.object_fs import ObjectStoreFileSystem
from unifs.fs.protocol import ObjectStoreDriver
from unifs.fs.types import DeleteFailure, FileKind


class FailingDeleteStore(InMemoryObjectStore):
    """Store whose batch delete refuses keys ending in ``.locked``."""

    def delete_many(self, keys):
        failures = []
        allowed = []
        for key in keys:
            if key.endswith(".locked"):
                failures.append(DeleteFailure(key, "access denied"))
            else:
                allowed.append(key)
        super().delete_many(allowed)
        return failures


class ClosingStore(InMemoryObjectStore):
    def __init__(self) -> None:
        super().__init__()
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1


def _fs(store, kind: DirectoryStrategyKind, **kwargs) -> ObjectStoreFileSystem:
    return ObjectStoreFileSystem(store, directory_strategy=kind, **kwargs)


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------


class TestStrategySelection:
    @pytest.mark.parametrize(
        ("kind", "cls"),
        [
            pytest.param(DirectoryStrategyKind.NATIVE_PREFIX, NativePrefixStrategy, id="native"),
            pytest.param(DirectoryStrategyKind.MARKER_FILE, MarkerFileStrategy, id="marker"),
            pytest.param(DirectoryStrategyKind.API_FOLDER, ApiFolderStrategy, id="api-folder"),
        ],
    )
    def test_build_strategy(self, store, kind, cls):
        assert isinstance(build_strategy(kind, store), cls)
        assert isinstance(build_strategy(kind.value, store), cls)

    def test_unknown_strategy(self, store):
        with pytest.raises(ConstructionError):
            build_strategy("magic", store)

    def test_default_is_native_prefix(self, memory_fs):
        assert memory_fs.strategy.kind is DirectoryStrategyKind.NATIVE_PREFIX

    def test_drivers_satisfy_protocol(self, store):
        assert isinstance(store, ObjectStoreDriver)


# ---------------------------------------------------------------------------
# NATIVE_PREFIX
# ---------------------------------------------------------------------------


class TestNativePrefix:
    def test_mkdir_writes_nothing(self, store):
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        fs.mkdir("x")
        assert len(store) == 0
        assert fs.exists("x")
        assert fs.strategy.pending == frozenset({"/x"})

    def test_empty_directory_lost_across_sessions(self, store):
        first = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        first.mkdir("x")
        assert first.exists("x")
        first.close()

        second = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        assert not second.exists("x")

    def test_populated_directory_survives_sessions(self, store):
        first = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        first.mkdir("x")
        first.mk_file("x/y.txt", b"1")
        first.close()

        second = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        assert second.stat("x").is_directory

    def test_rmdir_evicts_descendants(self, store):
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        fs.mkdir("a")
        fs.mkdir("a/b")
        fs.mkdir("a/b/c")
        fs.mkdir("ab")
        fs.rmdir("a", recursive=True)
        assert fs.strategy.pending == frozenset({"/ab"})
        assert not fs.exists("a/b/c")

    def test_pending_children_listed(self, store):
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        fs.mkdir("a")
        fs.mkdir("a/empty")
        fs.mkdir("a/full")
        fs.mk_file("a/full/f", b"1")
        assert [(f.name, f.kind) for f in fs.list_files("a")] == [
            ("empty", FileKind.DIRECTORY),
            ("full", FileKind.DIRECTORY),
        ]

    def test_directory_implied_by_foreign_keys(self, store):
        store.create_and_write("imported/deep/file.txt", io.BytesIO(b"abc"), 1)
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        assert fs.stat("imported").is_directory
        assert fs.stat("imported/deep/file.txt").size_bytes == 3


# ---------------------------------------------------------------------------
# MARKER_FILE
# ---------------------------------------------------------------------------


class TestMarkerFile:
    def test_mkdir_writes_marker(self, store):
        fs = _fs(store, DirectoryStrategyKind.MARKER_FILE)
        fs.mkdir("x")
        assert store.keys() == [f"x/{MARKER_NAME}"]

    def test_empty_directory_survives_sessions(self, store):
        _fs(store, DirectoryStrategyKind.MARKER_FILE).mkdir("x")
        again = _fs(store, DirectoryStrategyKind.MARKER_FILE)
        assert again.stat("x").is_directory
        assert again.list("x") == []

    def test_marker_hidden(self, store):
        fs = _fs(store, DirectoryStrategyKind.MARKER_FILE)
        fs.mkdir("x")
        fs.mk_file("x/y.txt", b"1")
        assert [p.name for p in fs.list("x")] == ["y.txt"]
        assert not fs.exists(f"x/{MARKER_NAME}")

    def test_marker_name_reserved(self, store):
        fs = _fs(store, DirectoryStrategyKind.MARKER_FILE)
        fs.mkdir("x")
        with pytest.raises(InvalidPathError):
            fs.mk_file(f"x/{MARKER_NAME}", b"evil")
        with pytest.raises(InvalidPathError):
            fs.mkdir(MARKER_NAME)

    def test_rmdir_removes_marker(self, store):
        fs = _fs(store, DirectoryStrategyKind.MARKER_FILE)
        fs.mkdir("x")
        fs.rmdir("x")
        assert len(store) == 0


# ---------------------------------------------------------------------------
# API_FOLDER
# ---------------------------------------------------------------------------


class TestApiFolder:
    def test_mkdir_writes_folder_object(self, store):
        fs = _fs(store, DirectoryStrategyKind.API_FOLDER)
        fs.mkdir("x")
        fs.mkdir("x/y")
        assert store.keys() == ["x/", "x/y/"]

    def test_self_entry_hidden(self, store):
        fs = _fs(store, DirectoryStrategyKind.API_FOLDER)
        fs.mkdir("x")
        fs.mk_file("x/a.txt", b"1")
        assert [p.name for p in fs.list("x")] == ["a.txt"]

    def test_empty_directory_survives_sessions(self, store):
        _fs(store, DirectoryStrategyKind.API_FOLDER).mkdir("x")
        again = _fs(store, DirectoryStrategyKind.API_FOLDER)
        assert again.stat("x").is_directory

    def test_rmdir_recursive_removes_folder_objects(self, store):
        fs = _fs(store, DirectoryStrategyKind.API_FOLDER)
        fs.mkdir("x")
        fs.mkdir("x/y")
        fs.mk_file("x/y/z", b"1")
        fs.mkdir("other")
        fs.rmdir("x", recursive=True)
        assert store.keys() == ["other/"]


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


class TestShared:
    @pytest.mark.parametrize("kind", list(DirectoryStrategyKind))
    def test_exclude_names(self, store, kind):
        fs = _fs(store, kind, exclude_names=("Thumbs.db", ".DS_Store"))
        fs.mkdir("d")
        fs.mk_file("d/Thumbs.db", b"x")
        fs.mk_file("d/photo.jpg", b"y")
        assert [p.name for p in fs.list("d")] == ["photo.jpg"]

    @pytest.mark.parametrize("kind", list(DirectoryStrategyKind))
    def test_rmdir_keeps_directory_holding_excluded_file(self, store, kind):
        fs = _fs(store, kind, exclude_names=("Thumbs.db",))
        fs.mkdir("d")
        fs.mk_file("d/Thumbs.db", b"precious")
        assert fs.list("d") == []
        with pytest.raises(ConflictError):
            fs.rmdir("d")
        assert "d/Thumbs.db" in store.keys()
        assert fs.stat("d").is_directory

    def test_rmdir_keeps_directory_holding_unaddressable_key(self, store):
        store.create_and_write("d/bad\x01.txt", io.BytesIO(b"x"), 1)
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        assert fs.list("d") == []
        with pytest.raises(ConflictError):
            fs.rmdir("d")
        assert store.keys() == ["d/bad\x01.txt"]

    @pytest.mark.parametrize(
        ("kind", "placeholder"),
        [
            pytest.param(DirectoryStrategyKind.MARKER_FILE, f"d/{MARKER_NAME}", id="marker"),
            pytest.param(DirectoryStrategyKind.API_FOLDER, "d/", id="api-folder"),
        ],
    )
    def test_remove_empty_deletes_only_placeholder(self, store, kind, placeholder):
        fs = _fs(store, kind)
        fs.mkdir("d")
        assert store.keys() == [placeholder]
        # a child written after the emptiness check must survive
        store.create_and_write("d/late.txt", io.BytesIO(b"late"), 1)
        fs.strategy.remove_empty(fs.path("d"))
        assert store.keys() == ["d/late.txt"]

    def test_remove_empty_forgets_pending_directory(self, store):
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        fs.mkdir("d")
        fs.rmdir("d")
        assert fs.strategy.pending == frozenset()
        assert not fs.exists("d")

    def test_rmdir_refuses_pending_subdirectory(self, store):
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        fs.mkdir("d")
        fs.mkdir("d/sub")
        with pytest.raises(ConflictError):
            fs.rmdir("d")
        assert fs.exists("d/sub")

    def test_strict_listing_reports_unaddressable_key(self, store):
        store.create_and_write("d/ok.txt", io.BytesIO(b"1"), 1)
        store.create_and_write("d/bad\x01.txt", io.BytesIO(b"2"), 1)
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        assert [f.name for f in fs.list_files("d")] == ["ok.txt"]
        with pytest.raises(StorageError, match="Unaddressable"):
            fs.list_files("d", strict=True)

    @pytest.mark.parametrize("kind", list(DirectoryStrategyKind))
    def test_batch_delete_failures_reported(self, kind):
        store = FailingDeleteStore()
        fs = _fs(store, kind)
        fs.mkdir("d")
        fs.mk_file("d/a.txt", b"1")
        fs.mk_file("d/b.locked", b"2")
        with pytest.raises(StorageError, match="d/b.locked"):
            fs.rmdir("d", recursive=True)
        assert "d/b.locked" in store.keys()
        assert "d/a.txt" not in store.keys()

    def test_file_wins_over_prefix(self, store):
        store.create_and_write("x", io.BytesIO(b"file"), 1)
        store.create_and_write("x/y", io.BytesIO(b"child"), 1)
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        assert fs.stat("x").is_simple_file

    def test_close_releases_driver_once(self):
        store = ClosingStore()
        fs = _fs(store, DirectoryStrategyKind.NATIVE_PREFIX)
        fs.close()
        fs.close()
        assert store.close_calls == 1

    def test_store_data_outlives_session(self, store):
        with _fs(store, DirectoryStrategyKind.MARKER_FILE) as fs:
            fs.mkdir("d")
            fs.mk_file("d/f", b"1")
        with _fs(store, DirectoryStrategyKind.MARKER_FILE) as fs:
            with fs.open_read("d/f") as stream:
                assert stream.read() == b"1"
