"""MongoConnectionManager: Motor client lifecycle, pooling, health check."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from motor.motor_asyncio import AsyncIOMotorClient

from .exceptions import MongoConnectionError

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from joinery_core.config import MongoConfig

logger = logging.getLogger("joinery.mongo.connection")


class MongoConnectionManager:
    """Wrap Motor client with lifecycle and health-check helpers."""

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        *,
        database: str = "joinery",
        server_selection_timeout_ms: int = 5000,
        connect_timeout_ms: int = 10000,
        **kwargs: Any,
    ) -> None:
        self._url = url
        self._database = database
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._connect_timeout_ms = connect_timeout_ms
        self._kwargs = kwargs
        self._client: AsyncIOMotorClient[Any] | None = None

    @classmethod
    def from_config(cls, config: MongoConfig, **kwargs: Any) -> MongoConnectionManager:
        return cls(
            config.url,
            database=config.database,
            server_selection_timeout_ms=config.server_selection_timeout_ms,
            connect_timeout_ms=config.connect_timeout_ms,
            **kwargs,
        )

    @property
    def database_name(self) -> str:
        return self._database

    async def connect(self) -> AsyncIOMotorClient[Any]:
        """Create and cache the Motor client. Idempotent."""
        if self._client is not None:
            return self._client
        try:
            self._client = AsyncIOMotorClient(
                self._url,
                serverSelectionTimeoutMS=self._server_selection_timeout_ms,
                connectTimeoutMS=self._connect_timeout_ms,
                **self._kwargs,
            )
        except Exception as e:
            raise MongoConnectionError(str(e)) from e
        logger.debug("Motor client created for database %r", self._database)
        return self._client

    @property
    def client(self) -> AsyncIOMotorClient[Any]:
        """Return the Motor client; raises if not connected."""
        if self._client is None:
            raise MongoConnectionError("Not connected; call connect() first")
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase[Any]:
        return self.client.get_database(self._database)

    def close(self) -> None:
        """Close the client (synchronous; Motor client.close() is sync)."""
        if self._client is not None:
            self._client.close()
            self._client = None

    async def health_check(self) -> bool:
        """Ping the server; return True if reachable."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception:  # noqa: BLE001
            logger.warning("MongoDB ping failed", exc_info=True)
            return False
