"""Per-backend configuration dataclasses."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .directories import DirectoryStrategyKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from .drivers.memory import InMemoryObjectStore

logger = logging.getLogger(__name__)

MIN_S3_PART_SIZE = 5 * 1024 * 1024  # 5MiB


def _strategy(value: DirectoryStrategyKind | str) -> DirectoryStrategyKind:
    try:
        return DirectoryStrategyKind(value)
    except ValueError:
        choices = ", ".join(k.value for k in DirectoryStrategyKind)
        raise ValueError(f"Unknown directory strategy {value!r} (expected one of: {choices})") from None


def _names(value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)  # type: ignore[arg-type]


@dataclass
class LocalDiskConfig:
    """Configuration for a local-disk session."""

    root: Path | str
    """Host directory that becomes the session root."""

    create_root: bool = False
    """Create ``root`` (and parents) when it does not exist."""

    def __post_init__(self) -> None:
        if not str(self.root).strip():
            raise ValueError("root is required")
        self.root = Path(self.root)


@dataclass
class MemoryConfig:
    """Configuration for an in-memory object-store session."""

    store: InMemoryObjectStore | None = None
    """Existing store to attach to.  ``None`` creates a fresh one."""

    directory_strategy: DirectoryStrategyKind | str = DirectoryStrategyKind.NATIVE_PREFIX
    exclude_names: tuple[str, ...] = field(default_factory=tuple)
    """Child names hidden from every listing."""

    def __post_init__(self) -> None:
        self.directory_strategy = _strategy(self.directory_strategy)
        self.exclude_names = _names(self.exclude_names)


@dataclass
class SQLConfig:
    """Configuration for a SQL-table object-store session."""

    url: str = "sqlite://"
    """SQLAlchemy database URL.  Ignored when ``engine`` is given."""

    engine: Engine | None = None
    """Existing engine to use.  The session never disposes it."""

    directory_strategy: DirectoryStrategyKind | str = DirectoryStrategyKind.NATIVE_PREFIX
    exclude_names: tuple[str, ...] = field(default_factory=tuple)
    echo: bool = False

    def __post_init__(self) -> None:
        if self.engine is None and not self.url:
            raise ValueError("url is required when no engine is given")
        self.directory_strategy = _strategy(self.directory_strategy)
        self.exclude_names = _names(self.exclude_names)


@dataclass
class S3Config:
    """Configuration for an S3-compatible object-store session."""

    bucket: str
    endpoint_url: str | None = None
    region_name: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    directory_strategy: DirectoryStrategyKind | str = DirectoryStrategyKind.NATIVE_PREFIX
    exclude_names: tuple[str, ...] = field(default_factory=tuple)
    part_size: int = MIN_S3_PART_SIZE
    """Multipart chunk size in bytes, never below 5MiB."""

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("bucket is required")
        self.directory_strategy = _strategy(self.directory_strategy)
        self.exclude_names = _names(self.exclude_names)
        if self.part_size < MIN_S3_PART_SIZE:
            logger.debug(
                "part_size %d is below the S3 minimum, using %d", self.part_size, MIN_S3_PART_SIZE
            )
            self.part_size = MIN_S3_PART_SIZE


@dataclass
class FTPConfig:
    """Configuration for an FTP session."""

    host: str
    port: int = 21
    user: str = "anonymous"
    password: str = ""
    root: str = "/"
    """Server directory that becomes the session root."""

    passive: bool = True
    timeout: float = 10.0
    """Connect and socket timeout in seconds."""

    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host is required")
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
