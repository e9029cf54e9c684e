"""SQLObjectStore: flat key store in one SQL table via SQLModel."""

from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, BinaryIO

from sqlalchemy import delete, true
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from unifs.models.objects import StoredObject

from ..exceptions import ConflictError, StorageError
from ..types import DeleteFailure, FileKind, ObjectStat
from ..utils import PATH_SEPARATOR

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from sqlalchemy.engine import Engine

    from unifs.models.objects import StoredObjectBase

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 500


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so *value* matches literally (escape char ``\\``)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLObjectStore:
    """Objects stored as rows keyed by the object key.

    Each call runs in its own short-lived ``Session``; the engine's pool
    makes the store safe for concurrent calls.  Creation relies on the
    primary-key constraint, so two racing creates of one key cannot both
    succeed.
    """

    min_chunk_size: int = 1

    def __init__(
        self,
        engine: Engine,
        *,
        model: type[StoredObjectBase] = StoredObject,
        owns_engine: bool = False,
        create_tables: bool = True,
    ) -> None:
        self._engine = engine
        self._model = model
        self._owns_engine = owns_engine
        if create_tables:
            SQLModel.metadata.create_all(engine, tables=[model.__table__])  # type: ignore[attr-defined]

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with Session(self._engine) as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot {action}: {e}") from e

    def _prefix_filter(self, prefix: str):  # noqa: ANN202
        model = self._model
        if not prefix:
            return true()
        return model.key.like(escape_like(prefix) + "%", escape="\\")  # type: ignore[union-attr]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def stat(self, key: str) -> ObjectStat | None:
        model = self._model
        with self._session(f"stat {key}") as session:
            row = session.exec(
                select(model.size_bytes).where(model.key == key)  # type: ignore[arg-type]
            ).first()
        if row is None:
            return None
        return ObjectStat(key, FileKind.SIMPLE_FILE, row)

    def list_children(self, prefix: str) -> list[ObjectStat]:
        model = self._model
        with self._session(f"list {prefix!r}") as session:
            rows = session.exec(
                select(model.key, model.size_bytes).where(self._prefix_filter(prefix))  # type: ignore[arg-type]
            ).all()
        files: dict[str, ObjectStat] = {}
        dirs: dict[str, ObjectStat] = {}
        for key, size in rows:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            head, sep, _ = rest.partition(PATH_SEPARATOR)
            if sep:
                common = prefix + head + PATH_SEPARATOR
                dirs.setdefault(common, ObjectStat(common, FileKind.DIRECTORY, 0))
            else:
                files[key] = ObjectStat(key, FileKind.SIMPLE_FILE, size)
        return sorted([*files.values(), *dirs.values()], key=lambda s: s.key)

    def iter_keys(self, prefix: str) -> Iterator[str]:
        model = self._model
        with self._session(f"list keys under {prefix!r}") as session:
            keys = session.exec(
                select(model.key).where(self._prefix_filter(prefix)).order_by(model.key)  # type: ignore[arg-type]
            ).all()
        # LIKE is case-insensitive on some databases
        yield from (key for key in keys if key.startswith(prefix))

    def open_read(self, key: str) -> BinaryIO:
        model = self._model
        with self._session(f"read {key}") as session:
            content = session.exec(
                select(model.content).where(model.key == key)  # type: ignore[arg-type]
            ).first()
        if content is None:
            raise StorageError(f"No such object: {key}")
        return io.BytesIO(content)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_and_write(self, key: str, stream: BinaryIO, chunk_size: int) -> int:
        buf = bytearray()
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            buf.extend(chunk)
        data = bytes(buf)
        try:
            with self._session(f"create {key}") as session:
                session.add(self._model(key=key, content=data, size_bytes=len(data)))
                session.commit()
        except StorageError as e:
            if isinstance(e.__cause__, IntegrityError):
                raise ConflictError(f"Object already exists: {key}") from e.__cause__
            raise
        return len(data)

    def delete_one(self, key: str) -> None:
        model = self._model
        with self._session(f"delete {key}") as session:
            session.exec(delete(model).where(model.key == key))  # type: ignore[arg-type, call-overload]
            session.commit()

    def delete_many(self, keys: Iterable[str]) -> list[DeleteFailure]:
        model = self._model
        pending = list(keys)
        failures: list[DeleteFailure] = []
        for start in range(0, len(pending), DELETE_BATCH_SIZE):
            batch = pending[start : start + DELETE_BATCH_SIZE]
            try:
                with self._session("delete batch") as session:
                    session.exec(delete(model).where(model.key.in_(batch)))  # type: ignore[union-attr, call-overload]
                    session.commit()
            except StorageError as e:
                failures.extend(DeleteFailure(key, str(e)) for key in batch)
        return failures

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_engine:
            self._engine.dispose()
            logger.debug("Disposed engine %s", self._engine.url)
