"""BackendRegistry: build sessions from a backend-type tag plus config."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .config import FTPConfig, LocalDiskConfig, MemoryConfig, S3Config, SQLConfig
from .exceptions import ConstructionError
from .types import BackendType

if TYPE_CHECKING:
    from collections.abc import Callable

    from .base import VFS

logger = logging.getLogger(__name__)

# =============================================================================
# Builders
# =============================================================================


def build_local(config: LocalDiskConfig) -> VFS:
    from .local_disk import LocalDiskFileSystem

    return LocalDiskFileSystem(config.root, create_root=config.create_root)


def build_memory(config: MemoryConfig) -> VFS:
    from .drivers.memory import InMemoryObjectStore
    from .object_fs import ObjectStoreFileSystem

    store = config.store if config.store is not None else InMemoryObjectStore()
    return ObjectStoreFileSystem(
        store,
        directory_strategy=config.directory_strategy,
        exclude_names=config.exclude_names,
        backend_type=BackendType.MEMORY,
    )


def build_sql(config: SQLConfig) -> VFS:
    from sqlalchemy import create_engine
    from sqlalchemy.engine import make_url
    from sqlalchemy.pool import StaticPool

    from .drivers.sql import SQLObjectStore
    from .object_fs import ObjectStoreFileSystem

    if config.engine is not None:
        store = SQLObjectStore(config.engine)
    else:
        url = make_url(config.url)
        kwargs: dict[str, Any] = {"echo": config.echo}
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # in-memory SQLite: every connection is a separate database
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        store = SQLObjectStore(create_engine(url, **kwargs), owns_engine=True)
    try:
        return ObjectStoreFileSystem(
            store,
            directory_strategy=config.directory_strategy,
            exclude_names=config.exclude_names,
            backend_type=BackendType.SQL,
        )
    except Exception:
        _close_quietly(store)
        raise


def build_s3(config: S3Config) -> VFS:
    from .drivers.s3 import S3ObjectStore
    from .object_fs import ObjectStoreFileSystem

    store = S3ObjectStore(
        config.bucket,
        endpoint_url=config.endpoint_url,
        region_name=config.region_name,
        access_key=config.access_key,
        secret_key=config.secret_key,
        part_size=config.part_size,
    )
    try:
        return ObjectStoreFileSystem(
            store,
            directory_strategy=config.directory_strategy,
            exclude_names=config.exclude_names,
            backend_type=BackendType.S3,
        )
    except Exception:
        _close_quietly(store)
        raise


def build_ftp(config: FTPConfig) -> VFS:
    from .ftp import FTPFileSystem

    return FTPFileSystem(
        config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        root=config.root,
        passive=config.passive,
        timeout=config.timeout,
        encoding=config.encoding,
    )


def _close_quietly(store: Any) -> None:
    try:
        store.close()
    except Exception:
        logger.warning("Cleanup of %r failed", store, exc_info=True)


# =============================================================================
# Registry
# =============================================================================


class BackendRegistry:
    """Maps backend types to a config class and a builder.

    ``build`` accepts either an instance of the registered config class
    or a mapping of its fields.  Every failure, including an unknown
    type, surfaces as ``ConstructionError``.
    """

    def __init__(self) -> None:
        self._entries: dict[BackendType, tuple[type, Callable[[Any], VFS]]] = {}

    def register(
        self,
        backend_type: BackendType | str,
        config_cls: type,
        builder: Callable[[Any], VFS],
    ) -> None:
        """Add or replace the builder for *backend_type*."""
        key = BackendType(backend_type)
        if key in self._entries:
            logger.debug("Replacing builder for backend %s", key.value)
        self._entries[key] = (config_cls, builder)

    def unregister(self, backend_type: BackendType | str) -> None:
        self._entries.pop(BackendType(backend_type), None)

    def supports(self, backend_type: BackendType | str) -> bool:
        try:
            return BackendType(backend_type) in self._entries
        except ValueError:
            return False

    def registered(self) -> list[BackendType]:
        return sorted(self._entries, key=lambda t: t.value)

    def build(self, backend_type: BackendType | str, config: Any) -> VFS:
        """Build an open session, or raise ``ConstructionError``."""
        try:
            key = BackendType(backend_type)
            config_cls, builder = self._entries[key]
        except (ValueError, KeyError):
            raise ConstructionError(f"Unsupported backend type: {backend_type!r}") from None

        try:
            if isinstance(config, Mapping):
                config = config_cls(**config)
            elif not isinstance(config, config_cls):
                raise TypeError(
                    f"Expected {config_cls.__name__} or a mapping, got {type(config).__name__}"
                )
            vfs = builder(config)
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError(f"Cannot build {key.value} backend: {e}") from e

        logger.debug("Built %r from %s", vfs, type(config).__name__)
        return vfs


def default_registry() -> BackendRegistry:
    """Registry with every backend shipped with unifs."""
    registry = BackendRegistry()
    registry.register(BackendType.LOCAL, LocalDiskConfig, build_local)
    registry.register(BackendType.MEMORY, MemoryConfig, build_memory)
    registry.register(BackendType.SQL, SQLConfig, build_sql)
    registry.register(BackendType.S3, S3Config, build_s3)
    registry.register(BackendType.FTP, FTPConfig, build_ftp)
    return registry


_DEFAULT_REGISTRY = default_registry()


def build_vfs(backend_type: BackendType | str, config: Any = None) -> VFS:
    """Build a session with the default registry.

    ``config`` may be omitted for backends whose config has no required
    field (memory, SQL).
    """
    return _DEFAULT_REGISTRY.build(backend_type, {} if config is None else config)
