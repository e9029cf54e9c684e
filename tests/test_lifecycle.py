"""Tests for session lifecycle, ownership checks and concurrent use."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from unifs.fs.base import SessionState
from unifs.fs.drivers.memory import InMemoryObjectStore
from unifs.fs.exceptions import ConflictError, ForeignPathError, SessionClosedError
from unifs.fs.object_fs import ObjectStoreFileSystem
from unifs.fs.types import BackendType


class ExplodingStore(InMemoryObjectStore):
    def close(self) -> None:
        raise RuntimeError("connection reset")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_close_is_idempotent(self, vfs):
        vfs.close()
        vfs.close()
        assert vfs.state is SessionState.CLOSED
        assert vfs.closed

    @pytest.mark.parametrize(
        "call",
        [
            pytest.param(lambda fs: fs.exists("a"), id="exists"),
            pytest.param(lambda fs: fs.resolve("a"), id="resolve"),
            pytest.param(lambda fs: fs.list(fs.root), id="list"),
            pytest.param(lambda fs: fs.mkdir("a"), id="mkdir"),
            pytest.param(lambda fs: fs.mk_file("a", b"x"), id="mk_file"),
            pytest.param(lambda fs: fs.rm_file("a"), id="rm_file"),
            pytest.param(lambda fs: fs.rmdir("a"), id="rmdir"),
            pytest.param(lambda fs: fs.open_read("a"), id="open_read"),
            pytest.param(lambda fs: fs.tree(fs.root), id="tree"),
        ],
    )
    def test_closed_session_rejects_operations(self, vfs, call):
        vfs.close()
        with pytest.raises(SessionClosedError):
            call(vfs)

    def test_context_manager_closes(self, store):
        with ObjectStoreFileSystem(store) as fs:
            assert fs.state is SessionState.OPEN
        assert fs.state is SessionState.CLOSED

    def test_release_failure_logged_not_raised(self, caplog):
        fs = ObjectStoreFileSystem(ExplodingStore())
        with caplog.at_level(logging.WARNING, logger="unifs.fs.base"):
            fs.close()
        assert fs.closed
        assert "release failed" in caplog.text

    def test_copy_to_closed_destination(self, make_vfs):
        src = make_vfs()
        dst = make_vfs()
        src.mk_file("f", b"x")
        dst.close()
        with pytest.raises(SessionClosedError):
            src.copy("f", dst.root.join("f"))


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


class TestOwnership:
    def test_foreign_path(self, make_vfs):
        one = make_vfs()
        two = make_vfs()
        with pytest.raises(ForeignPathError):
            two.mkdir(one.root.join("x"))

    def test_foreign_path_is_value_error(self, make_vfs):
        one = make_vfs()
        two = make_vfs()
        with pytest.raises(ValueError):
            two.list(one.root)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    @pytest.fixture(autouse=True)
    def _skip_shared_sqlite(self, vfs):
        if vfs.backend_type is BackendType.SQL:
            pytest.skip("in-memory SQLite runs every session on one shared connection")

    def test_racing_creates_single_winner(self, vfs):
        barrier = threading.Barrier(8)

        def create(i: int) -> bool:
            barrier.wait()
            try:
                vfs.mk_file("race.txt", f"writer-{i}".encode())
            except ConflictError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(create, range(8)))
        assert results.count(True) == 1
        with vfs.open_read("race.txt") as stream:
            assert stream.read().startswith(b"writer-")

    def test_parallel_mkdir_distinct_paths(self, vfs):
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: vfs.mkdir(f"d{i:02d}"), range(32)))
        assert len(vfs.list(vfs.root)) == 32
