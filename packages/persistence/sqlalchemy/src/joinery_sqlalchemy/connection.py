"""SQLAlchemyConnectionManager: async engine lifecycle and health check."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .exceptions import SQLAlchemyConnectionError

if TYPE_CHECKING:
    from joinery_core.config import SQLConfig

logger = logging.getLogger("joinery.sqlalchemy.connection")


class SQLAlchemyConnectionManager:
    """Own an ``AsyncEngine`` created from a URL, or wrap an existing one."""

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        echo: bool = False,
        pool_pre_ping: bool = True,
        **kwargs: Any,
    ) -> None:
        if url is None and engine is None:
            raise SQLAlchemyConnectionError("Either url or engine is required")
        self._url = url
        self._echo = echo
        self._pool_pre_ping = pool_pre_ping
        self._kwargs = kwargs
        self._engine: AsyncEngine | None = engine
        self._owns_engine = engine is None

    @classmethod
    def from_config(cls, config: SQLConfig, **kwargs: Any) -> SQLAlchemyConnectionManager:
        return cls(
            config.url,
            echo=config.echo,
            pool_pre_ping=config.pool_pre_ping,
            **kwargs,
        )

    async def connect(self) -> AsyncEngine:
        """Create and cache the engine. Idempotent."""
        if self._engine is not None:
            return self._engine
        try:
            self._engine = create_async_engine(
                self._url,  # type: ignore[arg-type]
                echo=self._echo,
                pool_pre_ping=self._pool_pre_ping,
                **self._kwargs,
            )
        except Exception as e:
            raise SQLAlchemyConnectionError(str(e)) from e
        logger.debug("Async engine created for %s", self._engine.url.render_as_string())
        return self._engine

    @property
    def engine(self) -> AsyncEngine:
        """Return the engine; raises if not connected."""
        if self._engine is None:
            raise SQLAlchemyConnectionError("Not connected; call connect() first")
        return self._engine

    async def close(self) -> None:
        """Dispose the engine if this manager created it."""
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None

    async def health_check(self) -> bool:
        """Run ``SELECT 1``; return True if the database answers."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:  # noqa: BLE001
            logger.warning("Database health check failed", exc_info=True)
            return False
