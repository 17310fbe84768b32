"""Store connection settings.

Both configs are plain frozen dataclasses; the facades accept them through
``from_config`` constructors.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .primitives.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class MongoConfig:
    """Configuration for the MongoDB facade.

    Attributes:
        url: MongoDB connection string.
        database: Database name holding the collections.
        server_selection_timeout_ms: Motor ``serverSelectionTimeoutMS``.
        connect_timeout_ms: Motor ``connectTimeoutMS``.
    """

    url: str = "mongodb://localhost:27017"
    database: str = "joinery"
    server_selection_timeout_ms: int = 5000
    connect_timeout_ms: int = 10000

    @classmethod
    def from_env(
        cls, prefix: str = "JOINERY_MONGO_", environ: Mapping[str, str] | None = None
    ) -> MongoConfig:
        """Read ``<prefix>URL``, ``<prefix>DATABASE`` and the timeouts."""
        env = os.environ if environ is None else environ
        return cls(
            url=env.get(f"{prefix}URL", cls.url),
            database=env.get(f"{prefix}DATABASE", cls.database),
            server_selection_timeout_ms=_env_int(
                env,
                f"{prefix}SERVER_SELECTION_TIMEOUT_MS",
                cls.server_selection_timeout_ms,
            ),
            connect_timeout_ms=_env_int(
                env, f"{prefix}CONNECT_TIMEOUT_MS", cls.connect_timeout_ms
            ),
        )


@dataclass(frozen=True)
class SQLConfig:
    """Configuration for the SQLAlchemy facade.

    Attributes:
        url: Async SQLAlchemy URL, e.g. ``postgresql+asyncpg://...`` or
            ``sqlite+aiosqlite:///:memory:``.
        echo: Log every statement through SQLAlchemy's own logger.
        pool_pre_ping: Test pooled connections before use.
    """

    url: str = "sqlite+aiosqlite:///:memory:"
    echo: bool = False
    pool_pre_ping: bool = True

    @classmethod
    def from_env(
        cls, prefix: str = "JOINERY_SQL_", environ: Mapping[str, str] | None = None
    ) -> SQLConfig:
        """Read ``<prefix>URL`` and ``<prefix>ECHO``."""
        env = os.environ if environ is None else environ
        echo = env.get(f"{prefix}ECHO")
        return cls(
            url=env.get(f"{prefix}URL", cls.url),
            echo=cls.echo if echo is None else echo.strip().lower() in _TRUTHY,
        )
