"""Tests for copy_tree: recursive copy within and across backends."""

from __future__ import annotations

import io

import pytest

from unifs.fs.copy import DEFAULT_BUFFER_SIZE, copy_tree, effective_buffer_size
from unifs.fs.drivers.memory import InMemoryObjectStore
from unifs.fs.exceptions import ConflictError, StorageError
from unifs.fs.object_fs import ObjectStoreFileSystem

BACKEND_PAIRS = [
    pytest.param("local", "memory:native_prefix", id="local-to-memory"),
    pytest.param("memory:marker_file", "local", id="memory-to-local"),
    pytest.param("sql:api_folder", "memory:marker_file", id="sql-to-memory"),
    pytest.param("memory:native_prefix", "sql:native_prefix", id="memory-to-sql"),
    pytest.param("local", "local", id="local-to-local"),
]


def _build_source(fs) -> None:
    fs.mkdir("src")
    fs.mk_file("src/a.txt", b"alpha")
    fs.mkdir("src/b")
    fs.mk_file("src/b/c.txt", b"charlie" * 1000)


def _read(fs, path: str) -> bytes:
    with fs.open_read(path) as stream:
        return stream.read()


class TrackingStream(io.BytesIO):
    closed_calls = 0

    def close(self) -> None:
        TrackingStream.closed_calls += 1
        super().close()


class TrackingStore(InMemoryObjectStore):
    """Hands out streams that record being closed."""

    def open_read(self, key):
        return TrackingStream(super().open_read(key).read())


class BigChunkStore(InMemoryObjectStore):
    min_chunk_size = 1024 * 1024


# ---------------------------------------------------------------------------
# Cross-backend copy
# ---------------------------------------------------------------------------


class TestCopyTree:
    @pytest.mark.parametrize(("src_kind", "dst_kind"), BACKEND_PAIRS)
    def test_copy_directory_tree(self, make_vfs, src_kind, dst_kind):
        src_fs = make_vfs(src_kind)
        dst_fs = make_vfs(dst_kind)
        _build_source(src_fs)

        src_fs.copy("src", dst_fs.root.join("dst"))

        assert [p.name for p in dst_fs.list("dst")] == ["a.txt", "b"]
        assert [p.name for p in dst_fs.list("dst/b")] == ["c.txt"]
        assert _read(dst_fs, "dst/a.txt") == b"alpha"
        assert _read(dst_fs, "dst/b/c.txt") == b"charlie" * 1000

    def test_copy_is_independent_of_source(self, make_vfs):
        src_fs = make_vfs("memory:native_prefix")
        dst_fs = make_vfs("local")
        _build_source(src_fs)
        copy_tree(src_fs.stat("src"), dst_fs.root.join("dst"))
        src_fs.rmdir("src", recursive=True)
        assert _read(dst_fs, "dst/b/c.txt") == b"charlie" * 1000

    def test_copy_single_file(self, make_vfs):
        src_fs = make_vfs("memory:native_prefix")
        dst_fs = make_vfs("memory:api_folder")
        f = src_fs.mk_file("one.txt", b"1")
        f.copy_to(dst_fs.root.join("copy.txt"))
        assert _read(dst_fs, "copy.txt") == b"1"

    def test_copy_within_session(self, make_vfs):
        fs = make_vfs("memory:marker_file")
        _build_source(fs)
        fs.copy("src", "dup")
        assert _read(fs, "dup/b/c.txt") == _read(fs, "src/b/c.txt")

    def test_copy_empty_directory(self, make_vfs):
        src_fs = make_vfs("local")
        dst_fs = make_vfs("memory:marker_file")
        src_fs.mkdir("empty")
        src_fs.copy("empty", dst_fs.root.join("empty"))
        assert dst_fs.stat("empty").is_directory
        assert dst_fs.list("empty") == []


# ---------------------------------------------------------------------------
# Preconditions & failures
# ---------------------------------------------------------------------------


class TestCopyFailures:
    def test_destination_root(self, make_vfs):
        src_fs = make_vfs()
        dst_fs = make_vfs()
        _build_source(src_fs)
        with pytest.raises(ConflictError):
            src_fs.copy("src", dst_fs.root)

    def test_destination_exists(self, make_vfs):
        src_fs = make_vfs()
        dst_fs = make_vfs()
        _build_source(src_fs)
        dst_fs.mkdir("dst")
        with pytest.raises(ConflictError):
            src_fs.copy("src", dst_fs.root.join("dst"))
        assert dst_fs.list("dst") == []

    def test_into_itself(self, make_vfs):
        fs = make_vfs()
        _build_source(fs)
        with pytest.raises(ConflictError):
            fs.copy("src", "src/b/inner")
        assert not fs.exists("src/b/inner")

    def test_unaddressable_source_entry_aborts(self, make_vfs):
        store = InMemoryObjectStore()
        store.create_and_write("src/ok.txt", io.BytesIO(b"ok"), 1)
        store.create_and_write("src/bad\x01.txt", io.BytesIO(b"bad"), 1)
        src_fs = ObjectStoreFileSystem(store)
        dst_fs = make_vfs("memory:marker_file")

        with pytest.raises(StorageError, match="Unaddressable"):
            src_fs.copy("src", dst_fs.root.join("dst"))

        assert dst_fs.stat("dst").is_directory
        assert not dst_fs.exists("dst/ok.txt")
        src_fs.close()

    def test_fail_fast_leaves_partial_state(self, make_vfs):
        src_fs = make_vfs("memory:native_prefix")
        dst_fs = make_vfs("memory:marker_file")
        _build_source(src_fs)

        real_mkdir = dst_fs.mkdir

        def mkdir_then_collide(path):
            created = real_mkdir(path)
            if created.path.path == "/dst/b":
                dst_fs.mk_file("dst/b/c.txt", b"squatter")
            return created

        dst_fs.mkdir = mkdir_then_collide  # type: ignore[method-assign]

        with pytest.raises(ConflictError):
            src_fs.copy("src", dst_fs.root.join("dst"))

        assert _read(dst_fs, "dst/a.txt") == b"alpha"
        assert dst_fs.stat("dst/b").is_directory
        assert _read(dst_fs, "dst/b/c.txt") == b"squatter"
        assert [p.name for p in dst_fs.list("dst")] == ["a.txt", "b"]

    def test_source_stream_closed_on_failure(self, make_vfs):
        src_fs = ObjectStoreFileSystem(TrackingStore())
        dst_fs = make_vfs()
        src_fs.mk_file("f.txt", b"data")
        dst_fs.mkdir("d")
        TrackingStream.closed_calls = 0

        def broken_write(path, stream, chunk_size):
            raise StorageError("disk full")

        dst_fs._write_file = broken_write  # type: ignore[method-assign]
        with pytest.raises(StorageError, match="disk full"):
            src_fs.copy("f.txt", dst_fs.root.join("d/f.txt"))
        assert TrackingStream.closed_calls == 1
        src_fs.close()


# ---------------------------------------------------------------------------
# Buffer sizing
# ---------------------------------------------------------------------------


class TestBufferSize:
    def test_default(self, make_vfs):
        src_fs = make_vfs()
        dst_fs = make_vfs()
        f = src_fs.mk_file("f", b"x")
        assert effective_buffer_size(f, dst_fs.root.join("g")) == DEFAULT_BUFFER_SIZE

    def test_raised_to_backend_minimum(self, make_vfs):
        src_fs = make_vfs()
        dst_fs = ObjectStoreFileSystem(BigChunkStore())
        f = src_fs.mk_file("f", b"x")
        assert effective_buffer_size(f, dst_fs.root.join("g"), 16) == 1024 * 1024
        dst_fs.close()

    def test_explicit(self, make_vfs):
        src_fs = make_vfs()
        f = src_fs.mk_file("f", b"x")
        assert effective_buffer_size(f, src_fs.root.join("g"), 128) == 128

    def test_non_positive_rejected(self, make_vfs):
        src_fs = make_vfs()
        f = src_fs.mk_file("f", b"x")
        with pytest.raises(ValueError):
            effective_buffer_size(f, src_fs.root.join("g"), 0)
